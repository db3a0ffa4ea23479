from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from roadtrip_nav.api.errors import BackendError
from roadtrip_nav.api.models import (
    CandidateStop,
    ChatReply,
    DiscoveryResult,
    Position,
    RecalculationResult,
    Route,
    RouteLeg,
    RouteStep,
    StopKind,
    Waypoint,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# --------------------------------------------------------------------------- #
# Builders
# --------------------------------------------------------------------------- #

def make_step(lat: float, lng: float, text: str = "Head north", meters: int = 1000) -> RouteStep:
    return RouteStep(
        start_location=Position(lat, lng),
        distance_meters=meters,
        instruction_text=text,
        instruction_html=f"<b>{text}</b>",
    )


def make_leg(
    start: Tuple[float, float],
    end: Tuple[float, float],
    meters: int = 10_000,
    seconds: int = 600,
    steps: Optional[List[RouteStep]] = None,
) -> RouteLeg:
    return RouteLeg(
        start_location=Position(*start),
        end_location=Position(*end),
        distance_meters=meters,
        duration_seconds=seconds,
        steps=steps if steps is not None else [make_step(*start)],
    )


def make_route(
    points: Sequence[Tuple[float, float]],
    meters: int = 10_000,
    seconds: int = 600,
    order: Optional[List[int]] = None,
) -> Route:
    """A route through *points*, one leg between each consecutive pair."""
    legs = [
        make_leg(points[i], points[i + 1], meters=meters, seconds=seconds)
        for i in range(len(points) - 1)
    ]
    return Route(legs=legs, optimized_waypoint_order=order)


def make_candidate(
    name: str,
    lat: Optional[float] = 40.0,
    lng: Optional[float] = -75.0,
    kind: StopKind = StopKind.FOOD,
    stop_id: Optional[str] = None,
) -> CandidateStop:
    stop = CandidateStop(
        kind=kind,
        name=name,
        category="Diner" if kind is StopKind.FOOD else kind.value,
        position=Position(lat, lng) if lat is not None and lng is not None else None,
    )
    if stop_id is not None:
        stop.stop_id = stop_id
    return stop


def make_waypoint(name: str, lat: float, lng: float, stop_id: Optional[str] = None) -> Waypoint:
    return Waypoint(name=name, position=Position(lat, lng), category="Diner", kind="food",
                    stop_id=stop_id)


# --------------------------------------------------------------------------- #
# Fakes
# --------------------------------------------------------------------------- #

class FakeBackend:
    """Planning backend double with scripted replies.

    Each operation pops the next scripted reply from its queue. A reply may be
    a value, an exception instance (raised) or an ``asyncio.Event`` followed by
    a value, in which case the call waits for the event first.
    """

    def __init__(self):
        self.replies: Dict[str, List[Any]] = {
            "chat": [], "plan": [], "discover": [], "recalculate": [],
        }
        self.calls: List[Tuple[str, Any]] = []
        self.closed = False

    def script(self, operation: str, *replies: Any) -> None:
        self.replies[operation].extend(replies)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    async def _next(self, operation: str) -> Any:
        if not self.replies[operation]:
            raise AssertionError(f"Unexpected backend call: {operation}")
        reply = self.replies[operation].pop(0)
        if isinstance(reply, tuple) and isinstance(reply[0], asyncio.Event):
            gate, reply = reply
            await gate.wait()
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def chat(self, message: str, trip_request_id: Optional[str],
                   origin_override: Optional[Position] = None) -> ChatReply:
        self.calls.append(("chat", {"message": message, "origin": origin_override}))
        return await self._next("chat")

    async def plan_route(self, trip_request_id: str) -> Route:
        self.calls.append(("plan", trip_request_id))
        return await self._next("plan")

    async def find_stops(self, trip_request_id: str) -> DiscoveryResult:
        self.calls.append(("discover", trip_request_id))
        return await self._next("discover")

    async def recalculate_route(self, trip_request_id: str,
                                waypoints: List[Waypoint]) -> RecalculationResult:
        self.calls.append(("recalculate", [wp.name for wp in waypoints]))
        return await self._next("recalculate")

    def close(self) -> None:
        self.closed = True


class EventRecorder:
    """Collects ``emit(event, payload)`` calls."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def payloads(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]

    def last(self, event: str) -> Dict[str, Any]:
        payloads = self.payloads(event)
        assert payloads, f"no {event} event emitted"
        return payloads[-1]


def backend_error(stage: str, message: str = "boom") -> BackendError:
    return BackendError(stage, message, 500)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
