"""Shared data structures for route orchestration and navigation.

The planning backend speaks the Google Directions JSON shape (``legs``,
``steps``, ``html_instructions``, ``waypoint_order`` ...). The ``from_dict``
constructors here are the single place where that wire shape is turned
into typed objects, so the services never poke at raw dicts.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def _strip_html(html: str) -> str:
    text = _TAG_RE.sub(" ", html or "")
    return _SPACE_RE.sub(" ", text).strip()


def _value(raw: Any) -> int:
    """Read a Directions ``{"value": n, "text": ...}`` quantity or a bare number."""
    if isinstance(raw, dict):
        raw = raw.get("value")
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Position:
    """A WGS84 coordinate pair."""

    latitude: float
    longitude: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        if "lat" in data:
            return cls(float(data["lat"]), float(data["lng"]))
        return cls(float(data["latitude"]), float(data["longitude"]))

    @classmethod
    def maybe_from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Position"]:
        if not data:
            return None
        try:
            return cls.from_dict(data)
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self) -> dict:
        return {"lat": self.latitude, "lng": self.longitude}


@dataclass
class RouteStep:
    """A turn-by-turn instruction unit within a leg."""

    start_location: Position
    distance_meters: int
    instruction_text: str
    instruction_html: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteStep":
        html = data.get("html_instructions") or ""
        text = data.get("instruction_text") or data.get("instructionText") or _strip_html(html)
        return cls(
            start_location=Position.from_dict(data.get("start_location") or data["startLocation"]),
            distance_meters=_value(data.get("distance")),
            instruction_text=text,
            instruction_html=html,
        )

    def to_dict(self) -> dict:
        return {
            "start_location": self.start_location.to_dict(),
            "distance": {"value": self.distance_meters},
            "instruction_text": self.instruction_text,
            "html_instructions": self.instruction_html,
        }


@dataclass
class RouteLeg:
    """One continuous travel segment between two consecutive stops."""

    start_location: Position
    end_location: Position
    distance_meters: int
    duration_seconds: int
    steps: List[RouteStep] = field(default_factory=list)
    start_address: Optional[str] = None
    end_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteLeg":
        return cls(
            start_location=Position.from_dict(data["start_location"]),
            end_location=Position.from_dict(data["end_location"]),
            distance_meters=_value(data.get("distance")),
            duration_seconds=_value(data.get("duration")),
            steps=[RouteStep.from_dict(s) for s in data.get("steps") or []],
            start_address=data.get("start_address"),
            end_address=data.get("end_address"),
        )

    def to_dict(self) -> dict:
        return {
            "start_location": self.start_location.to_dict(),
            "end_location": self.end_location.to_dict(),
            "distance": {"value": self.distance_meters},
            "duration": {"value": self.duration_seconds},
            "steps": [s.to_dict() for s in self.steps],
            "start_address": self.start_address,
            "end_address": self.end_address,
        }


@dataclass(frozen=True)
class Bounds:
    northeast: Position
    southwest: Position

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bounds":
        return cls(
            northeast=Position.from_dict(data["northeast"]),
            southwest=Position.from_dict(data["southwest"]),
        )

    def to_dict(self) -> dict:
        return {
            "north": self.northeast.latitude,
            "east": self.northeast.longitude,
            "south": self.southwest.latitude,
            "west": self.southwest.longitude,
        }


@dataclass
class Route:
    """A route as chosen by the directions provider.

    ``legs`` are in travel order. ``optimized_waypoint_order`` holds indices
    into the waypoint list as it was submitted, when the provider reordered
    the stops.
    """

    legs: List[RouteLeg]
    optimized_waypoint_order: Optional[List[int]] = None
    overview_polyline: Optional[str] = None
    bounds: Optional[Bounds] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Route":
        polyline = data.get("overview_polyline")
        if isinstance(polyline, dict):
            polyline = polyline.get("points")
        bounds = data.get("bounds")
        order = data.get("waypoint_order")
        return cls(
            legs=[RouteLeg.from_dict(leg) for leg in data.get("legs") or []],
            optimized_waypoint_order=[int(i) for i in order] if order else None,
            overview_polyline=polyline or None,
            bounds=Bounds.from_dict(bounds) if bounds and "northeast" in bounds else None,
        )

    @property
    def is_empty(self) -> bool:
        return not self.legs

    @property
    def total_distance_meters(self) -> int:
        return sum(leg.distance_meters for leg in self.legs)

    @property
    def total_duration_seconds(self) -> int:
        return sum(leg.duration_seconds for leg in self.legs)

    @property
    def steps(self) -> List[RouteStep]:
        """All steps of all legs, in travel order."""
        return [step for leg in self.legs for step in leg.steps]

    def to_dict(self) -> dict:
        return {
            "legs": [leg.to_dict() for leg in self.legs],
            "waypoint_order": self.optimized_waypoint_order,
            "overview_polyline": {"points": self.overview_polyline} if self.overview_polyline else None,
            "bounds": self.bounds.to_dict() if self.bounds else None,
        }


# Food-like types the discovery stage reports on their own
_FOOD_TYPES = ("restaurant", "grocery", "coffee", "dessert", "tea", "bubbletea")


class StopKind(str, Enum):
    FUEL = "fuel"
    FOOD = "food"
    SCENIC = "scenic"

    @classmethod
    def parse(cls, raw: str) -> "StopKind":
        value = (raw or "").strip().lower()
        aliases = {"gas": cls.FUEL, **{name: cls.FOOD for name in _FOOD_TYPES}}
        if value in aliases:
            return aliases[value]
        return cls(value)


def new_stop_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class CandidateStop:
    """A suggested stop produced by the discovery stage."""

    kind: StopKind
    name: str
    category: str
    position: Optional[Position]
    distance_off_route_text: str = ""
    rationale: str = ""
    stop_id: str = field(default_factory=new_stop_id)
    rating: Optional[float] = None
    price_level: Optional[str] = None
    hours: Optional[str] = None
    verified_attributes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateStop":
        raw_type = data.get("type") or data.get("kind") or ""
        kind = StopKind.parse(raw_type)
        return cls(
            kind=kind,
            name=data["name"],
            category=data.get("category") or raw_type,
            position=Position.maybe_from_dict(data.get("location") or data.get("position")),
            distance_off_route_text=data.get("distanceOffRoute") or "",
            rationale=data.get("reason") or "",
            rating=data.get("rating"),
            price_level=data.get("priceLevel"),
            hours=data.get("hours"),
            verified_attributes=list(data.get("verifiedAttributes") or []),
        )

    def to_dict(self) -> dict:
        return {
            "stop_id": self.stop_id,
            "type": self.kind.value,
            "name": self.name,
            "category": self.category,
            "location": self.position.to_dict() if self.position else None,
            "distanceOffRoute": self.distance_off_route_text,
            "reason": self.rationale,
            "rating": self.rating,
            "priceLevel": self.price_level,
            "hours": self.hours,
            "verifiedAttributes": list(self.verified_attributes),
        }


@dataclass(frozen=True)
class Waypoint:
    """A user-accepted stop that is part of the driven route."""

    name: str
    position: Position
    category: str
    kind: str = "waypoint"
    stop_id: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: CandidateStop) -> "Waypoint":
        if candidate.position is None:
            raise ValueError(f"Stop '{candidate.name}' has no location")
        return cls(
            name=candidate.name,
            position=candidate.position,
            category=candidate.category or candidate.kind.value,
            kind=candidate.kind.value,
            stop_id=candidate.stop_id,
        )

    def to_request(self) -> dict:
        return {"name": self.name, "location": self.position.to_dict()}

    def to_dict(self) -> dict:
        return {
            "stop_id": self.stop_id,
            "type": self.kind,
            "name": self.name,
            "category": self.category,
            "location": self.position.to_dict(),
        }


@dataclass(frozen=True)
class ProviderWaypoint:
    """A waypoint as echoed back by the recalculation operation."""

    name: str
    position: Optional[Position]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderWaypoint":
        return cls(
            name=data.get("name", ""),
            position=Position.maybe_from_dict(data.get("location") or data.get("position")),
        )


@dataclass
class NavigationState:
    active_step_index: int = 0
    last_known_position: Optional[Position] = None
    current_instruction: str = ""
    distance_to_step_meters: Optional[float] = None
    bearing_to_step_degrees: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "active_step_index": self.active_step_index,
            "last_known_position": (
                self.last_known_position.to_dict() if self.last_known_position else None
            ),
            "current_instruction": self.current_instruction,
            "distance_to_step_meters": self.distance_to_step_meters,
            "bearing_to_step_degrees": self.bearing_to_step_degrees,
        }


# --------------------------------------------------------------------------- #
# Backend replies
# --------------------------------------------------------------------------- #

@dataclass
class ChatReply:
    response: str
    trip_request_id: Optional[str]
    has_missing_info: bool

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatReply":
        return cls(
            response=data.get("response") or "",
            trip_request_id=data.get("tripRequestId"),
            has_missing_info=bool(data.get("hasMissingInfo")),
        )


@dataclass
class DiscoveryResult:
    stops: List[CandidateStop]
    route: Optional[Route] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscoveryResult":
        route = data.get("route")
        stops = []
        for raw in data.get("stops") or []:
            try:
                stops.append(CandidateStop.from_dict(raw))
            except ValueError:
                logger.warning(f"Skipping stop {raw.get('name')!r} with unknown type {raw.get('type')!r}")
        return cls(
            stops=stops,
            route=Route.from_dict(route) if route else None,
        )


@dataclass
class RecalculationResult:
    route: Route
    waypoints: List[ProviderWaypoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecalculationResult":
        return cls(
            route=Route.from_dict(data["route"]),
            waypoints=[ProviderWaypoint.from_dict(w) for w in data.get("waypoints") or []],
        )
