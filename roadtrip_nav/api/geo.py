# roadtrip_nav/api/geo.py
from __future__ import annotations

import logging
import math
from typing import List, Optional

from googlemaps import convert

from roadtrip_nav.api.models import Bounds, Position, Route

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_meters(a: Position, b: Position) -> float:
    """Great-circle distance between two positions, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c * 1000.0


def initial_bearing(a: Position, b: Position) -> float:
    """Initial compass bearing from *a* to *b*, in degrees within [0, 360)."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lng = math.radians(b.longitude - a.longitude)

    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-0.0 + 360) % 360 can round to 360.0
    return 0.0 if bearing >= 360.0 else bearing


def validate_coordinates(lat: float, lng: float) -> bool:
    """Check that coordinates are within valid ranges."""
    return -90 <= lat <= 90 and -180 <= lng <= 180


def format_latlng(position: Position) -> str:
    """Render a position as the ``"lat,lng"`` string used in logs and requests."""
    return convert.latlng(position.to_dict())


def decode_path(encoded: Optional[str]) -> List[Position]:
    """Decode a Google encoded polyline into positions."""
    if not encoded:
        return []
    try:
        points = convert.decode_polyline(encoded)
    except (IndexError, ValueError) as exc:
        logger.warning("Could not decode overview polyline: %s", exc)
        return []
    return [Position(p["lat"], p["lng"]) for p in points]


def calculate_bounds(positions: List[Position]) -> Optional[Bounds]:
    """Bounding box around a set of positions, or None when empty."""
    if not positions:
        return None
    lats = [p.latitude for p in positions]
    lngs = [p.longitude for p in positions]
    return Bounds(
        northeast=Position(max(lats), max(lngs)),
        southwest=Position(min(lats), min(lngs)),
    )


def route_path(route: Route) -> List[Position]:
    """Points to draw for a route.

    The overview polyline when the provider sent one, otherwise the leg and
    step start points in travel order.
    """
    path = decode_path(route.overview_polyline)
    if path:
        return path
    points: List[Position] = []
    for leg in route.legs:
        points.append(leg.start_location)
        points.extend(step.start_location for step in leg.steps)
        points.append(leg.end_location)
    return points


def route_bounds(route: Route) -> Optional[Bounds]:
    """Provider bounds, falling back to the box around the route path."""
    if route.bounds is not None:
        return route.bounds
    return calculate_bounds(route_path(route))


__all__ = [
    "haversine_meters",
    "initial_bearing",
    "validate_coordinates",
    "format_latlng",
    "decode_path",
    "calculate_bounds",
    "route_path",
    "route_bounds",
]
