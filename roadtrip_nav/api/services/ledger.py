# roadtrip_nav/api/services/ledger.py
"""Ordered collection of the stops the user accepted onto the route."""

import logging
from typing import Iterator, List, Optional, Sequence

from roadtrip_nav.api.errors import StopWithoutLocationError, UnknownStopError
from roadtrip_nav.api.geo import haversine_meters
from roadtrip_nav.api.models import CandidateStop, ProviderWaypoint, Waypoint

logger = logging.getLogger(__name__)


class WaypointLedger:
    """Single source of truth for which stops are currently part of the route.

    The order is the order actually driven: it starts as the order in which
    stops were added and is rebuilt from the provider's (possibly optimized)
    order after every recalculation.
    """

    def __init__(self, waypoints: Optional[Sequence[Waypoint]] = None):
        self._waypoints: List[Waypoint] = list(waypoints or [])

    def __len__(self) -> int:
        return len(self._waypoints)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(list(self._waypoints))

    def __bool__(self) -> bool:
        return bool(self._waypoints)

    @property
    def waypoints(self) -> List[Waypoint]:
        return list(self._waypoints)

    @property
    def names(self) -> List[str]:
        return [wp.name for wp in self._waypoints]

    def find(self, key: str) -> Optional[Waypoint]:
        """Look a waypoint up by stop id, then by name."""
        for wp in self._waypoints:
            if wp.stop_id is not None and wp.stop_id == key:
                return wp
        for wp in self._waypoints:
            if wp.name == key:
                return wp
        return None

    def __contains__(self, key: str) -> bool:
        return self.find(key) is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def accept(self, candidate: CandidateStop) -> Waypoint:
        """Append a waypoint made from *candidate*; category is copied now."""
        if candidate.position is None:
            raise StopWithoutLocationError(f"{candidate.name} has no location and cannot be routed through")
        if any(wp.stop_id == candidate.stop_id for wp in self._waypoints):
            raise ValueError(f"{candidate.name} is already on the route")

        waypoint = Waypoint.from_candidate(candidate)
        self._waypoints.append(waypoint)
        logger.info("Accepted stop %s (%s); %d on route", waypoint.name, waypoint.category, len(self))
        return waypoint

    def remove(self, key: str) -> Waypoint:
        waypoint = self.find(key)
        if waypoint is None:
            raise UnknownStopError(f"No waypoint matches '{key}'")
        self._waypoints.remove(waypoint)
        logger.info("Removed stop %s; %d on route", waypoint.name, len(self))
        return waypoint

    def index(self, key: str) -> int:
        waypoint = self.find(key)
        if waypoint is None:
            raise UnknownStopError(f"No waypoint matches '{key}'")
        return next(i for i, wp in enumerate(self._waypoints) if wp is waypoint)

    def insert(self, index: int, waypoint: Waypoint) -> None:
        """Put a removed waypoint back at *index* (clamped to the ledger)."""
        if waypoint.stop_id is not None and any(wp.stop_id == waypoint.stop_id for wp in self._waypoints):
            raise ValueError(f"{waypoint.name} is already on the route")
        self._waypoints.insert(index, waypoint)
        logger.info("Restored stop %s at position %d", waypoint.name, min(index, len(self) - 1))

    def clear(self) -> None:
        self._waypoints = []

    def reconcile(
        self,
        provider_waypoints: Sequence[ProviderWaypoint],
        optimized_order: Optional[Sequence[int]] = None,
        submitted: Optional[Sequence[Waypoint]] = None,
    ) -> List[Waypoint]:
        """Rebuild the ledger in the order the provider will drive it.

        Args:
            provider_waypoints: waypoints echoed back by the recalculation,
                already in optimized order
            optimized_order: the route's waypoint order, used when the
                provider did not echo the waypoint list
            submitted: the list as it was sent; defaults to the current ledger

        Returns:
            The new ledger order
        """
        submitted = list(submitted if submitted is not None else self._waypoints)

        if provider_waypoints:
            self._waypoints = self._match_by_name(provider_waypoints, submitted)
        elif optimized_order and sorted(optimized_order) == list(range(len(submitted))):
            self._waypoints = [submitted[i] for i in optimized_order]
        else:
            self._waypoints = submitted
        return self.waypoints

    @staticmethod
    def _match_by_name(
        provider_waypoints: Sequence[ProviderWaypoint], submitted: Sequence[Waypoint]
    ) -> List[Waypoint]:
        unused = list(submitted)
        rebuilt: List[Waypoint] = []

        for entry in provider_waypoints:
            matches = [wp for wp in unused if wp.name == entry.name]
            if len(matches) > 1 and entry.position is not None:
                matches.sort(key=lambda wp: haversine_meters(wp.position, entry.position))

            if matches:
                match = matches[0]
                unused.remove(match)
                rebuilt.append(match)
                continue

            if entry.position is None:
                logger.warning("Provider returned waypoint %r without a location; dropped", entry.name)
                continue

            logger.warning("Provider waypoint %r does not match any accepted stop", entry.name)
            rebuilt.append(Waypoint(name=entry.name, position=entry.position, category="stop"))

        return rebuilt

    def to_request(self) -> List[dict]:
        return [wp.to_request() for wp in self._waypoints]

    def to_list(self) -> List[dict]:
        return [wp.to_dict() for wp in self._waypoints]
