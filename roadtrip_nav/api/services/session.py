# roadtrip_nav/api/services/session.py
"""State of one trip planning conversation."""

import itertools
import logging
from datetime import datetime
from typing import Dict, List, Optional

from roadtrip_nav.api.errors import UnknownStopError
from roadtrip_nav.api.models import CandidateStop, Route
from roadtrip_nav.api.services.ledger import WaypointLedger

logger = logging.getLogger(__name__)

CHANNEL_CHAT = "chat"
CHANNEL_ROUTE = "route"        # plan and recalculate both replace the route
CHANNEL_DISCOVER = "discover"


class RequestTokens:
    """Monotonic request tokens per channel.

    A response is applied only if the token it was issued with is still the
    newest on its channel; anything older was superseded.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._current: Dict[str, int] = {}

    def issue(self, channel: str) -> int:
        token = next(self._counter)
        self._current[channel] = token
        return token

    def is_current(self, channel: str, token: int) -> bool:
        return self._current.get(channel) == token

    def invalidate(self) -> None:
        """Make every in-flight request stale."""
        self._current = {}


class TripSession:
    """Owns the trip request id, route, candidate stops and waypoint ledger.

    Stage handlers get this object passed in and replace its fields
    wholesale when they succeed.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.created_at = datetime.now()
        self.last_activity = datetime.now()

        self.trip_request_id: Optional[str] = None
        self.route: Optional[Route] = None
        self.candidates: List[CandidateStop] = []
        self.ledger = WaypointLedger()
        self.tokens = RequestTokens()

        self.message_count = 0
        self.recalculations = 0

    def touch(self) -> None:
        self.last_activity = datetime.now()

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def find_candidate(self, key: str) -> Optional[CandidateStop]:
        for stop in self.candidates:
            if stop.stop_id == key:
                return stop
        for stop in self.candidates:
            if stop.name == key:
                return stop
        return None

    def take_candidate(self, key: str) -> CandidateStop:
        """Remove a candidate from the suggestion list and return it."""
        stop = self.find_candidate(key)
        if stop is None:
            raise UnknownStopError(f"No suggested stop matches '{key}'")
        self.candidates = [s for s in self.candidates if s is not stop]
        return stop

    def restore_candidate(self, stop: CandidateStop, index: int) -> None:
        """Put a stop taken by ``take_candidate`` back where it was listed."""
        if any(s.stop_id == stop.stop_id for s in self.candidates):
            return
        self.candidates.insert(index, stop)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget the current trip; in-flight responses become stale."""
        self.trip_request_id = None
        self.route = None
        self.candidates = []
        self.ledger = WaypointLedger()
        self.tokens.invalidate()
        logger.info("Session %s reset for a new trip", self.session_id)

