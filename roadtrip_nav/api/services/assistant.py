# roadtrip_nav/api/services/assistant.py
"""Entry point for everything a connected traveler can do.

``TripAssistant`` ties one ``TripSession`` to the location resolver, the
planning pipeline and the navigation tracker, and reports every state change
through a single ``emit(event, payload)`` hook. All coroutines here must run
on the same event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from roadtrip_nav.api.backend import PlanningBackend
from roadtrip_nav.api.errors import UnknownStopError
from roadtrip_nav.api.geo import validate_coordinates
from roadtrip_nav.api.location import LocationResolver
from roadtrip_nav.api.models import CandidateStop, ChatReply, Position, Waypoint
from roadtrip_nav.api.position import ClientPositionSource, PositionSubscription
from roadtrip_nav.api.services.navigation import NavigationTracker
from roadtrip_nav.api.services.pipeline import Emitter, PlanningPipeline, StageOutcome
from roadtrip_nav.api.services.route_service import RouteService
from roadtrip_nav.api.services.session import TripSession

logger = logging.getLogger(__name__)


class TripAssistant:
    """Planning and navigation operations for one conversation."""

    def __init__(
        self,
        session_id: str,
        backend: Optional[PlanningBackend] = None,
        position_source: Optional[ClientPositionSource] = None,
        emit: Optional[Emitter] = None,
        tracker: Optional[NavigationTracker] = None,
    ):
        self.session = TripSession(session_id)
        self.emit: Emitter = emit or (lambda event, payload: None)
        self.position_source = position_source or ClientPositionSource()
        self.resolver = LocationResolver(self.position_source)
        self.pipeline = PlanningPipeline(backend or PlanningBackend(), self._emit)

        self.tracker = tracker or NavigationTracker()
        self.tracker.on_update = self._on_navigation_update
        self._navigation_task: Optional["asyncio.Task[None]"] = None
        self._subscription: Optional[PositionSubscription] = None

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> Optional[ChatReply]:
        """Resolve the origin for *text*, then run the pipeline from chat."""
        self.session.touch()
        origin = await self.resolver.resolve(text)
        if origin.location_needed:
            self._emit("location_needed", {
                "title": "Location Access Needed",
                "message": "Please allow location access or specify a starting location "
                           "(e.g., 'from Atlanta to...')",
            })
        return await self.pipeline.chat(self.session, text, origin.position)

    async def new_trip(self) -> None:
        """Discard the current trip so the next message starts over."""
        await self.stop_navigation()
        self.session.reset()
        self._emit("snapshot", self.snapshot())

    # ------------------------------------------------------------------
    # Waypoint edits
    # ------------------------------------------------------------------

    async def accept(self, stop_id: str) -> Waypoint:
        """Move a suggested stop onto the route and recalculate.

        If the recalculation fails the stop goes back to the suggestions.
        """
        self.session.touch()
        candidate = self.session.find_candidate(stop_id)
        if candidate is None:
            raise UnknownStopError(f"No suggested stop matches '{stop_id}'")

        listed_at = next(i for i, s in enumerate(self.session.candidates) if s is candidate)
        waypoint = self.session.ledger.accept(candidate)
        self.session.take_candidate(candidate.stop_id)

        self._emit_stops()
        self._emit_waypoints()
        self._notice("Stop Added", RouteService.stop_added_message(waypoint.name))

        if await self.pipeline.recalculate(self.session) is StageOutcome.FAILED:
            self._undo_accept(candidate, listed_at, waypoint)
        return waypoint

    async def reject(self, stop_id: str) -> str:
        """Skip a suggestion, or take an accepted stop off the route.

        Returns:
            "waypoint" if a stop was removed from the route, "candidate" if a
            suggestion was dropped
        """
        self.session.touch()
        ledger = self.session.ledger

        if stop_id not in ledger:
            stop = self.session.take_candidate(stop_id)
            self._emit_stops()
            self._notice("Stop Skipped", RouteService.stop_skipped_message(stop.name))
            return "candidate"

        position = ledger.index(stop_id)
        waypoint = ledger.remove(stop_id)
        self._emit_waypoints()
        self._notice("Stop Removed", RouteService.stop_removed_message(waypoint.name))

        if ledger:
            if await self.pipeline.recalculate(self.session) is StageOutcome.FAILED:
                self._undo_remove(waypoint, position)
        else:
            await self.pipeline.plan(self.session, discover=False)
        return "waypoint"

    def _undo_accept(self, candidate: CandidateStop, listed_at: int, waypoint: Waypoint) -> None:
        logger.info("Recalculation failed; returning %s to the suggestions", waypoint.name)
        if waypoint.stop_id in self.session.ledger:
            self.session.ledger.remove(waypoint.stop_id)
        self.session.restore_candidate(candidate, listed_at)
        self._emit_stops()
        self._emit_waypoints()

    def _undo_remove(self, waypoint: Waypoint, position: int) -> None:
        logger.info("Recalculation failed; putting %s back on the route", waypoint.name)
        if (waypoint.stop_id or waypoint.name) not in self.session.ledger:
            self.session.ledger.insert(position, waypoint)
        self._emit_waypoints()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def start_navigation(self) -> None:
        """Enter navigation mode and follow the device position."""
        if self.tracker.is_active:
            await self.stop_navigation()

        self.tracker.start(self.session.route)
        self._subscription = self.position_source.subscribe()
        loop = asyncio.get_running_loop()
        self._navigation_task = loop.create_task(self._follow(self._subscription))
        self._notice("Navigation Started", "Follow the route on the map. Drive safely!")

    async def stop_navigation(self) -> None:
        task, self._navigation_task = self._navigation_task, None
        subscription, self._subscription = self._subscription, None

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if subscription is not None:
            subscription.close()

        if self.tracker.is_active:
            self.tracker.stop()
            self._emit("navigation_stopped", {"status": self.tracker.status.value})

    async def _follow(self, subscription: PositionSubscription) -> None:
        try:
            await self.tracker.follow(subscription)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Navigation tracking failed: %s", exc)
            self.tracker.stop()
            self._emit("error", {"message": str(exc), "event": "navigation"})

    def _on_navigation_update(self, tracker: NavigationTracker) -> None:
        self._emit("navigation_update", tracker.to_dict())

    # ------------------------------------------------------------------
    # Device position
    # ------------------------------------------------------------------

    def push_position(self, lat: float, lng: float) -> None:
        if not validate_coordinates(lat, lng):
            raise ValueError(f"Invalid coordinates: {lat}, {lng}")
        self.position_source.push(Position(lat, lng))

    def position_failed(self, message: str) -> None:
        self.position_source.fail(message)

    # ------------------------------------------------------------------
    # Teardown / snapshots
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release the position subscription and drop in-flight results."""
        await self.stop_navigation()
        self.session.tokens.invalidate()

    def snapshot(self) -> Dict[str, Any]:
        session = self.session
        summary = RouteService.summarize(
            session.route, len(session.ledger), self.pipeline.stop_overhead_seconds
        )
        return {
            "session_id": session.session_id,
            "trip_request_id": session.trip_request_id,
            "route": RouteService.route_payload(session.route),
            "stops": [s.to_dict() for s in session.candidates],
            "waypoints": session.ledger.to_list(),
            "summary": summary.to_dict() if summary else None,
            "navigation": self.tracker.to_dict(),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            self.emit(event, payload)
        except Exception as exc:
            logger.error("Failed to emit %s: %s", event, exc)

    def _emit_stops(self) -> None:
        self._emit("stops_updated", {"stops": [s.to_dict() for s in self.session.candidates]})

    def _emit_waypoints(self) -> None:
        self._emit("waypoints_updated", {"waypoints": self.session.ledger.to_list()})
        summary = RouteService.summarize(
            self.session.route, len(self.session.ledger), self.pipeline.stop_overhead_seconds
        )
        self._emit("route_summary", summary.to_dict() if summary else {})

    def _notice(self, title: str, message: str) -> None:
        self._emit("notice", {"title": title, "message": message})
