# roadtrip_nav/api/services/pipeline.py
"""The plan -> discover -> recalculate chain.

Each stage takes the ``TripSession`` it works on, awaits one backend call and,
if its request token is still the newest on its channel, replaces the
session's state wholesale. A failing stage reports a ``stage_error`` and the
chain stops there; nothing already in the session is touched.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from roadtrip_nav.api.backend import (
    STAGE_CHAT,
    STAGE_DISCOVER,
    STAGE_PLAN,
    STAGE_RECALCULATE,
    PlanningBackend,
)
from roadtrip_nav.api.config import get_route_config
from roadtrip_nav.api.errors import BackendError
from roadtrip_nav.api.geo import haversine_meters
from roadtrip_nav.api.models import CandidateStop, ChatReply, Position, Route
from roadtrip_nav.api.services.route_service import RouteService
from roadtrip_nav.api.services.session import (
    CHANNEL_CHAT,
    CHANNEL_DISCOVER,
    CHANNEL_ROUTE,
    TripSession,
)

logger = logging.getLogger(__name__)

Emitter = Callable[[str, Dict[str, Any]], None]

STAGE_TITLES = {
    STAGE_CHAT: "Error",
    STAGE_PLAN: "Route Planning Error",
    STAGE_DISCOVER: "Error Finding Stops",
    STAGE_RECALCULATE: "Route Recalculation Error",
}

STAGE_LABELS = {
    STAGE_CHAT: "Thinking...",
    STAGE_PLAN: "Planning route...",
    STAGE_DISCOVER: "Finding stops...",
    STAGE_RECALCULATE: "Recalculating route...",
}


class StageOutcome(str, Enum):
    """What became of a stage run whose result the caller may need to undo."""

    APPLIED = "applied"
    FAILED = "failed"            # the newest request on its channel failed
    SUPERSEDED = "superseded"    # a newer request owns the channel
    SKIPPED = "skipped"


# A via point of a discovered route is matched to a suggested stop within this radius
THREADED_STOP_RADIUS_METERS = 1000.0


def _discard(event: str, payload: Dict[str, Any]) -> None:
    pass


class PlanningPipeline:
    """Runs the planning stages against a session."""

    def __init__(self, backend: PlanningBackend, emit: Optional[Emitter] = None,
                 stop_overhead_seconds: Optional[int] = None):
        self.backend = backend
        self.emit = emit or _discard
        if stop_overhead_seconds is None:
            stop_overhead_seconds = get_route_config()["stop_overhead_seconds"]
        self.stop_overhead_seconds = stop_overhead_seconds

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def chat(self, session: TripSession, message: str,
                   origin_override: Optional[Position] = None) -> Optional[ChatReply]:
        """Send a chat turn; when the trip is fully specified, plan it."""
        token = session.tokens.issue(CHANNEL_CHAT)
        self._pending(STAGE_CHAT, True)
        try:
            reply = await self.backend.chat(message, session.trip_request_id, origin_override)
        except BackendError as exc:
            self._failed(exc)
            return None
        finally:
            self._pending(STAGE_CHAT, False)

        if not session.tokens.is_current(CHANNEL_CHAT, token):
            logger.info("Dropping superseded chat reply for session %s", session.session_id)
            return None

        session.message_count += 1
        if reply.trip_request_id:
            session.trip_request_id = reply.trip_request_id
        self._say(reply.response)

        if not reply.has_missing_info and session.trip_request_id:
            await self.plan(session)
        return reply

    async def plan(self, session: TripSession, discover: bool = True) -> Optional[Route]:
        """Fetch the base route; optionally chain into stop discovery."""
        trip_id = session.trip_request_id
        if not trip_id:
            logger.warning("Plan requested without a trip request id")
            return None

        token = session.tokens.issue(CHANNEL_ROUTE)
        self._pending(STAGE_PLAN, True)
        try:
            route = await self.backend.plan_route(trip_id)
        except BackendError as exc:
            self._failed(exc)
            return None
        finally:
            self._pending(STAGE_PLAN, False)

        if not session.tokens.is_current(CHANNEL_ROUTE, token):
            logger.info("Dropping superseded route plan for trip %s", trip_id)
            return None

        logger.info("Planned route for trip %s: %d leg(s)", trip_id, len(route.legs))
        session.route = route
        if session.ledger:
            # A base route has no via points; keep the ledger consistent with it
            logger.info("Clearing %d waypoint(s) for the re-planned base route", len(session.ledger))
            session.ledger.clear()
            self._emit_waypoints(session)
        self._emit_route(session)

        if discover:
            self._say(RouteService.route_found_message())
            await self.discover(session)
        return route

    async def discover(self, session: TripSession) -> Optional[List[CandidateStop]]:
        """Fetch suggested stops for the planned route."""
        trip_id = session.trip_request_id
        if not trip_id:
            return None

        token = session.tokens.issue(CHANNEL_DISCOVER)
        self._pending(STAGE_DISCOVER, True)
        try:
            result = await self.backend.find_stops(trip_id)
        except BackendError as exc:
            self._failed(exc)
            return None
        finally:
            self._pending(STAGE_DISCOVER, False)

        if not session.tokens.is_current(CHANNEL_DISCOVER, token):
            logger.info("Dropping superseded stop discovery for trip %s", trip_id)
            return None

        session.candidates = list(result.stops)
        if result.route is not None:
            self._apply_discovered_route(session, result.route)

        self.emit("stops_updated", {"stops": [s.to_dict() for s in session.candidates]})
        self._say(RouteService.stops_found_message(len(session.candidates)))
        return session.candidates

    async def recalculate(self, session: TripSession) -> StageOutcome:
        """Re-route through the ledger's waypoints, in ledger order.

        Only a ``FAILED`` outcome leaves the ledger ahead of the route; a
        failure that arrives after a newer route request is ``SUPERSEDED``
        and reports nothing.
        """
        trip_id = session.trip_request_id
        submitted = session.ledger.waypoints
        if not trip_id or not submitted:
            logger.warning("Recalculate needs a trip and at least one waypoint")
            return StageOutcome.SKIPPED

        token = session.tokens.issue(CHANNEL_ROUTE)
        self._pending(STAGE_RECALCULATE, True)
        try:
            result = await self.backend.recalculate_route(trip_id, submitted)
        except BackendError as exc:
            if not session.tokens.is_current(CHANNEL_ROUTE, token):
                logger.info("Ignoring superseded recalculation failure for trip %s: %s", trip_id, exc)
                return StageOutcome.SUPERSEDED
            self._failed(exc)
            return StageOutcome.FAILED
        finally:
            self._pending(STAGE_RECALCULATE, False)

        if not session.tokens.is_current(CHANNEL_ROUTE, token):
            logger.info("Dropping superseded recalculation for trip %s", trip_id)
            return StageOutcome.SUPERSEDED

        session.route = result.route
        ordered = session.ledger.reconcile(
            result.waypoints, result.route.optimized_waypoint_order, submitted
        )
        session.recalculations += 1

        if len(ordered) != len(result.route.legs) - 1:
            logger.warning(
                "Route has %d legs for %d waypoints", len(result.route.legs), len(ordered)
            )
        dropped = [wp.name for wp in submitted if wp not in ordered]
        if dropped:
            logger.warning("Provider did not route through: %s", ", ".join(dropped))

        self._emit_route(session)
        self._emit_waypoints(session)
        summary = RouteService.summarize(session.route, len(session.ledger), self.stop_overhead_seconds)
        if summary is not None:
            self._say(RouteService.route_updated_message(summary, self.stop_overhead_seconds))
        return StageOutcome.APPLIED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_discovered_route(self, session: TripSession, route: Route) -> None:
        """Adopt a route the backend already threaded through some stops.

        The route is only taken over if each of its via points can be tied to
        a suggested stop, which then moves onto the ledger. Otherwise the
        planned route stays.
        """
        vias = [leg.end_location for leg in route.legs[:-1]]
        if len(vias) == len(session.ledger):
            session.route = route
            self._emit_route(session)
            return
        if session.ledger:
            logger.warning("Ignoring discovered route: ledger already has waypoints")
            return

        chosen: List[CandidateStop] = []
        for via in vias:
            stop = self._nearest_candidate(session.candidates, via, exclude=chosen)
            if stop is None:
                logger.warning("Ignoring discovered route: via point %s matches no stop", via)
                return
            chosen.append(stop)

        for stop in chosen:
            session.ledger.accept(stop)
        session.candidates = [s for s in session.candidates if s not in chosen]
        session.route = route

        self._emit_route(session)
        self._emit_waypoints(session)
        self._say(RouteService.discovery_route_message(len(chosen)))

    @staticmethod
    def _nearest_candidate(candidates: List[CandidateStop], point: Position,
                           exclude: List[CandidateStop]) -> Optional[CandidateStop]:
        best = None
        best_distance = THREADED_STOP_RADIUS_METERS
        for stop in candidates:
            if stop.position is None or stop in exclude:
                continue
            distance = haversine_meters(stop.position, point)
            if distance <= best_distance:
                best, best_distance = stop, distance
        return best

    def _emit_route(self, session: TripSession) -> None:
        self.emit("route_updated", {"route": RouteService.route_payload(session.route)})
        summary = RouteService.summarize(session.route, len(session.ledger), self.stop_overhead_seconds)
        self.emit("route_summary", summary.to_dict() if summary else {})

    def _emit_waypoints(self, session: TripSession) -> None:
        self.emit("waypoints_updated", {"waypoints": session.ledger.to_list()})

    def _say(self, text: str) -> None:
        if text:
            self.emit("assistant_message", {"text": text})

    def _pending(self, stage: str, pending: bool) -> None:
        self.emit("stage_status", {"stage": stage, "pending": pending, "label": STAGE_LABELS[stage]})

    def _failed(self, exc: BackendError) -> None:
        logger.error("Pipeline stage %s failed: %s", exc.stage, exc)
        self.emit(
            "stage_error",
            {"stage": exc.stage, "title": STAGE_TITLES.get(exc.stage, "Error"), "message": exc.message},
        )
