"""Tests for the navigation tracker and the geometry it relies on."""

from __future__ import annotations

import asyncio

import pytest
from conftest import make_leg, make_step

from roadtrip_nav.api.errors import NavigationError, NoRouteError
from roadtrip_nav.api.geo import haversine_meters, initial_bearing
from roadtrip_nav.api.models import Position, Route
from roadtrip_nav.api.position import ClientPositionSource
from roadtrip_nav.api.services.navigation import (
    DEFAULT_INSTRUCTION,
    NavigationStatus,
    NavigationTracker,
)

STEP_POINTS = [(40.0, -75.0), (40.01, -75.0), (40.02, -75.0)]


@pytest.fixture
def route() -> Route:
    steps = [make_step(lat, lng, text=f"Step {i}") for i, (lat, lng) in enumerate(STEP_POINTS)]
    return Route(legs=[make_leg(STEP_POINTS[0], (40.03, -75.0), steps=steps)])


@pytest.fixture
def tracker() -> NavigationTracker:
    return NavigationTracker(step_threshold_meters=50, arrival_message="Arrived!")


def _near(lat: float, lng: float) -> Position:
    # ~11 m north
    return Position(lat + 0.0001, lng)


def test_haversine_one_degree_of_latitude() -> None:
    meters = haversine_meters(Position(0.0, 0.0), Position(1.0, 0.0))
    assert meters == pytest.approx(111_195, rel=1e-3)
    assert haversine_meters(Position(5.0, 5.0), Position(5.0, 5.0)) == 0.0


@pytest.mark.parametrize(
    ("target", "expected"),
    [((1.0, 0.0), 0.0), ((0.0, 1.0), 90.0), ((-1.0, 0.0), 180.0), ((0.0, -1.0), 270.0)],
)
def test_initial_bearing_cardinal_directions(target, expected) -> None:
    bearing = initial_bearing(Position(0.0, 0.0), Position(*target))
    assert bearing == pytest.approx(expected, abs=1e-6)
    assert 0.0 <= bearing < 360.0


def test_start_requires_route_with_steps(tracker: NavigationTracker) -> None:
    with pytest.raises(NoRouteError):
        tracker.start(None)
    with pytest.raises(NoRouteError):
        tracker.start(Route(legs=[]))
    with pytest.raises(NoRouteError):
        tracker.start(Route(legs=[make_leg((0.0, 0.0), (1.0, 1.0), steps=[])]))
    assert tracker.status is NavigationStatus.IDLE


def test_start_shows_first_instruction(tracker: NavigationTracker, route: Route) -> None:
    state = tracker.start(route)
    assert tracker.status is NavigationStatus.ACTIVE
    assert state.active_step_index == 0
    assert state.current_instruction == "Step 0"
    assert tracker.step_count == 3


def test_fix_within_threshold_advances(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)

    state = tracker.process_fix(_near(*STEP_POINTS[0]))

    assert state.active_step_index == 1
    assert state.current_instruction == "Step 1"
    assert state.last_known_position == _near(*STEP_POINTS[0])


def test_fix_outside_threshold_keeps_step(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)
    tracker.process_fix(_near(*STEP_POINTS[0]))

    state = tracker.process_fix(Position(40.005, -75.0))

    assert state.active_step_index == 1
    assert state.distance_to_step_meters == pytest.approx(556, rel=0.01)
    assert state.bearing_to_step_degrees == pytest.approx(0.0, abs=0.01)


def test_index_never_moves_backwards(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)
    tracker.process_fix(_near(*STEP_POINTS[0]))
    tracker.process_fix(_near(*STEP_POINTS[1]))

    state = tracker.process_fix(_near(*STEP_POINTS[0]))

    assert state.active_step_index == 2


def test_last_step_reached_means_arrived(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)
    for lat, lng in STEP_POINTS:
        tracker.process_fix(_near(lat, lng))

    assert tracker.status is NavigationStatus.ARRIVED
    assert tracker.state.current_instruction == "Arrived!"
    assert tracker.state.active_step_index == 2

    # Further fixes only move the reported position
    state = tracker.process_fix(Position(41.0, -75.0))
    assert tracker.status is NavigationStatus.ARRIVED
    assert state.last_known_position == Position(41.0, -75.0)
    assert state.current_instruction == "Arrived!"


def test_steps_flattened_across_legs(tracker: NavigationTracker) -> None:
    route = Route(legs=[
        make_leg((0.0, 0.0), (0.0, 1.0), steps=[make_step(0.0, 0.0, "First leg")]),
        make_leg((0.0, 1.0), (0.0, 2.0), steps=[make_step(0.0, 1.0, "Second leg")]),
    ])
    tracker.start(route)

    state = tracker.process_fix(_near(0.0, 0.0))

    assert tracker.step_count == 2
    assert state.current_instruction == "Second leg"


def test_missing_instruction_uses_default(tracker: NavigationTracker) -> None:
    route = Route(legs=[make_leg((0.0, 0.0), (0.0, 1.0), steps=[make_step(0.0, 0.0, "")])])
    assert tracker.start(route).current_instruction == DEFAULT_INSTRUCTION


def test_stop_resets_and_fix_after_stop_fails(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)
    tracker.process_fix(_near(*STEP_POINTS[0]))

    tracker.stop()

    assert tracker.status is NavigationStatus.IDLE
    assert tracker.state is None
    assert tracker.to_dict() == {"status": "idle", "step_count": 0, "state": None}
    with pytest.raises(NavigationError):
        tracker.process_fix(_near(*STEP_POINTS[1]))


def test_restart_begins_at_first_step(tracker: NavigationTracker, route: Route) -> None:
    tracker.start(route)
    tracker.process_fix(_near(*STEP_POINTS[0]))

    state = tracker.start(route)

    assert state.active_step_index == 0
    assert tracker.status is NavigationStatus.ACTIVE


def test_updates_are_reported(route: Route) -> None:
    updates = []
    tracker = NavigationTracker(step_threshold_meters=50, on_update=lambda t: updates.append(t.to_dict()))

    tracker.start(route)
    tracker.process_fix(_near(*STEP_POINTS[0]))

    assert [u["state"]["active_step_index"] for u in updates] == [0, 1]
    assert updates[-1]["status"] == "active"


@pytest.mark.anyio
async def test_follow_closes_subscription_when_cancelled(tracker: NavigationTracker, route: Route) -> None:
    source = ClientPositionSource()
    subscription = source.subscribe()
    tracker.start(route)

    task = asyncio.create_task(tracker.follow(subscription))
    source.push(_near(*STEP_POINTS[0]))
    await asyncio.sleep(0.01)
    assert tracker.state.active_step_index == 1

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert subscription.closed
    assert source.subscriber_count == 0
