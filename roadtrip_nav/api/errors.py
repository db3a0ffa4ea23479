"""Exceptions raised by the trip planning core."""

from __future__ import annotations

from typing import Optional


class TripPlannerError(Exception):
    """Base class for all trip planning errors."""


class PositionUnavailableError(TripPlannerError):
    """The device position could not be acquired in time."""


class BackendError(TripPlannerError):
    """A planning backend operation failed or timed out."""

    def __init__(self, stage: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.stage} failed ({self.status_code}): {self.message}"
        return f"{self.stage} failed: {self.message}"


class UnknownStopError(TripPlannerError):
    """No candidate or waypoint matches the given identifier."""


class StopWithoutLocationError(TripPlannerError):
    """A candidate stop without coordinates cannot become a waypoint."""


class NavigationError(TripPlannerError):
    """Navigation was requested in a state that does not allow it."""


class NoRouteError(NavigationError):
    """Navigation needs a route with at least one step."""
