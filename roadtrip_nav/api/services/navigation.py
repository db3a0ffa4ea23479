# roadtrip_nav/api/services/navigation.py
"""Turn-by-turn progress tracking driven by device position fixes."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional

from roadtrip_nav.api.config import get_navigation_config
from roadtrip_nav.api.errors import NavigationError, NoRouteError
from roadtrip_nav.api.geo import haversine_meters, initial_bearing
from roadtrip_nav.api.models import NavigationState, Position, Route, RouteStep
from roadtrip_nav.api.position import PositionSubscription

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTION = "Continue on route"


class NavigationStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ARRIVED = "arrived"


class NavigationTracker:
    """State machine Idle -> Active -> Arrived.

    The tracker walks the steps of every leg in travel order. A fix within
    the threshold of the active step's start location moves on to the next
    step; the index never goes backwards while navigating.
    """

    def __init__(
        self,
        step_threshold_meters: Optional[float] = None,
        arrival_message: Optional[str] = None,
        on_update: Optional[Callable[["NavigationTracker"], None]] = None,
    ):
        cfg = get_navigation_config()
        self.step_threshold_meters = step_threshold_meters or cfg["step_threshold_meters"]
        self.arrival_message = arrival_message or cfg["arrival_message"]
        self.on_update = on_update

        self.status = NavigationStatus.IDLE
        self.state: Optional[NavigationState] = None
        self._steps: List[RouteStep] = []

    @property
    def is_active(self) -> bool:
        return self.status is not NavigationStatus.IDLE

    @property
    def step_count(self) -> int:
        return len(self._steps)

    def start(self, route: Optional[Route]) -> NavigationState:
        """Begin navigating *route* from its first step."""
        if route is None or route.is_empty:
            raise NoRouteError("Plan a route before starting navigation")
        steps = route.steps
        if not steps:
            raise NoRouteError("The current route has no turn-by-turn steps")

        self._steps = steps
        self.status = NavigationStatus.ACTIVE
        self.state = NavigationState(
            active_step_index=0,
            current_instruction=self._instruction(steps[0]),
        )
        logger.info("Navigation started with %d steps", len(steps))
        self._notify()
        return self.state

    def stop(self) -> None:
        if self.status is NavigationStatus.IDLE:
            return
        logger.info("Navigation stopped at step %s", self.state.active_step_index if self.state else "?")
        self.status = NavigationStatus.IDLE
        self.state = None
        self._steps = []

    def process_fix(self, position: Position) -> NavigationState:
        """Advance the active step for a new position fix."""
        if self.status is NavigationStatus.IDLE or self.state is None:
            raise NavigationError("Navigation is not active")

        state = self.state
        state.last_known_position = position

        if self.status is NavigationStatus.ARRIVED:
            self._notify()
            return state

        index = state.active_step_index
        step = self._steps[index]
        distance = haversine_meters(position, step.start_location)
        state.distance_to_step_meters = distance
        state.bearing_to_step_degrees = initial_bearing(position, step.start_location)

        if distance < self.step_threshold_meters:
            next_index = index + 1
            if next_index < len(self._steps):
                state.active_step_index = next_index
                state.current_instruction = self._instruction(self._steps[next_index])
                logger.debug("Advanced to step %d/%d", next_index + 1, len(self._steps))
            else:
                self.status = NavigationStatus.ARRIVED
                state.current_instruction = self.arrival_message
                logger.info("Arrived at destination")
        else:
            state.current_instruction = self._instruction(step)

        self._notify()
        return state

    async def follow(self, subscription: PositionSubscription) -> None:
        """Feed fixes from *subscription* until it ends or the task is cancelled."""
        try:
            async for position in subscription:
                if not self.is_active:
                    break
                self.process_fix(position)
        finally:
            subscription.close()

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "step_count": self.step_count,
            "state": self.state.to_dict() if self.state else None,
        }

    @staticmethod
    def _instruction(step: RouteStep) -> str:
        return step.instruction_text or DEFAULT_INSTRUCTION

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self)
