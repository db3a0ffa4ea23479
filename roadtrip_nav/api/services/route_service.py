# roadtrip_nav/api/services/route_service.py
"""Service layer for route summaries and assistant messages."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from roadtrip_nav.api.config import get_route_config
from roadtrip_nav.api.geo import route_bounds
from roadtrip_nav.api.models import Route

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34


@dataclass(frozen=True)
class RouteSummary:
    eta: str
    stops: int
    distance: str
    total_duration: int

    def to_dict(self) -> dict:
        return {
            "eta": self.eta,
            "stops": self.stops,
            "distance": self.distance,
            "total_duration": self.total_duration,
        }


class RouteService:
    """Derives user-facing figures from a route without touching it."""

    @staticmethod
    def format_duration(seconds: int) -> str:
        """Format seconds as "1h 5m", or "45m" under an hour."""
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    @staticmethod
    def format_miles(meters: int) -> str:
        return f"{meters / METERS_PER_MILE:.1f}"

    @staticmethod
    def summarize(route: Optional[Route], stop_count: int,
                  stop_overhead_seconds: Optional[int] = None) -> Optional[RouteSummary]:
        """Compute the ETA and distance shown next to the route.

        Args:
            route: Current route
            stop_count: Number of accepted stops
            stop_overhead_seconds: Time spent at each stop; from config if omitted

        Returns:
            RouteSummary or None when there is no route
        """
        if route is None or route.is_empty:
            return None

        if stop_overhead_seconds is None:
            stop_overhead_seconds = get_route_config()["stop_overhead_seconds"]

        total = route.total_duration_seconds + stop_count * stop_overhead_seconds
        return RouteSummary(
            eta=RouteService.format_duration(total),
            stops=stop_count,
            distance=RouteService.format_miles(route.total_distance_meters),
            total_duration=total,
        )

    @staticmethod
    def route_payload(route: Optional[Route]) -> Optional[Dict[str, Any]]:
        """Route as sent to the map front-end, with bounds filled in."""
        if route is None:
            return None
        payload = route.to_dict()
        bounds = route_bounds(route)
        payload["bounds"] = bounds.to_dict() if bounds else None
        return payload

    # ------------------------------------------------------------------
    # Assistant messages
    # ------------------------------------------------------------------

    @staticmethod
    def route_found_message() -> str:
        return "I've found your route! Let me find some great stops along the way..."

    @staticmethod
    def stops_found_message(count: int) -> str:
        if count == 0:
            return (
                "I couldn't find any stops along this route. Try adding preferences like "
                "restaurant types or scenic views to get better recommendations."
            )
        plural = "s" if count > 1 else ""
        return (
            f"Found {count} recommended stop{plural} along your route! "
            f'Click "Add to Route" to include them in your directions.'
        )

    @staticmethod
    def discovery_route_message(count: int) -> str:
        plural = "" if count == 1 else "s"
        return (
            f"Route recalculated to include {count} stop{plural}. "
            "The directions now go through each stop in order."
        )

    @staticmethod
    def route_updated_message(summary: RouteSummary, stop_overhead_seconds: int = 600) -> str:
        plural = "" if summary.stops == 1 else "s"
        stop_minutes = summary.stops * stop_overhead_seconds // 60
        return (
            f"Route updated! Your journey now includes {summary.stops} stop{plural}. "
            f"Estimated travel time: {summary.eta} (including {stop_minutes} minutes for stops), "
            f"Total distance: {summary.distance} miles."
        )

    @staticmethod
    def stop_added_message(name: str) -> str:
        return f"{name} has been added to your route. Recalculating directions..."

    @staticmethod
    def stop_removed_message(name: str) -> str:
        return f"{name} has been removed from your route. Recalculating directions..."

    @staticmethod
    def stop_skipped_message(name: str) -> str:
        return f"{name} has been removed from suggestions."


__all__ = ["RouteService", "RouteSummary"]
