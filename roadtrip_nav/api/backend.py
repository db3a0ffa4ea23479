# roadtrip_nav/api/backend.py
"""Client for the trip planning backend.

The backend owns the conversation, the directions provider and the places
search; this module only moves JSON back and forth. Calls are blocking
``requests`` posts pushed onto a worker thread with ``asyncio.to_thread`` so
the session event loop keeps running while a stage is in flight.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from roadtrip_nav.api.config import get_backend_config
from roadtrip_nav.api.errors import BackendError
from roadtrip_nav.api.geo import format_latlng, validate_coordinates
from roadtrip_nav.api.models import (
    ChatReply,
    DiscoveryResult,
    Position,
    RecalculationResult,
    Route,
    Waypoint,
)

logger = logging.getLogger(__name__)

# Stage names double as the error "stage" field
STAGE_CHAT = "chat"
STAGE_PLAN = "plan"
STAGE_DISCOVER = "discover"
STAGE_RECALCULATE = "recalculate"


class PlanningBackend:
    """Thin wrapper around the planning backend's JSON API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ):
        cfg = get_backend_config()
        self.base_url = (base_url or cfg["base_url"]).rstrip("/")
        self.timeout_seconds = timeout_seconds or cfg["timeout_seconds"]
        self.http = http or requests.Session()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chat(
        self,
        message: str,
        trip_request_id: Optional[str],
        origin_override: Optional[Position] = None,
    ) -> ChatReply:
        payload = {
            "message": message,
            "tripRequestId": trip_request_id,
            "userLocation": origin_override.to_dict() if origin_override else None,
        }
        data = await self._call(STAGE_CHAT, "/api/chat", payload)
        return self._parse(STAGE_CHAT, ChatReply.from_dict, data)

    async def plan_route(self, trip_request_id: str) -> Route:
        data = await self._call(STAGE_PLAN, "/api/plan-route", {"tripRequestId": trip_request_id})
        selected = data.get("selectedRoute")
        if not selected:
            raise BackendError(STAGE_PLAN, "No route found for this trip")
        return self._parse(STAGE_PLAN, Route.from_dict, selected)

    async def find_stops(self, trip_request_id: str) -> DiscoveryResult:
        data = await self._call(STAGE_DISCOVER, "/api/find-stops", {"tripRequestId": trip_request_id})
        return self._parse(STAGE_DISCOVER, DiscoveryResult.from_dict, data)

    async def recalculate_route(
        self, trip_request_id: str, waypoints: List[Waypoint]
    ) -> RecalculationResult:
        for wp in waypoints:
            if not validate_coordinates(wp.position.latitude, wp.position.longitude):
                raise BackendError(
                    STAGE_RECALCULATE, f"Waypoint coordinates out of range: {wp.name}"
                )

        logger.info(
            "Recalculating trip %s through %s",
            trip_request_id,
            " | ".join(f"{wp.name} ({format_latlng(wp.position)})" for wp in waypoints),
        )
        payload = {
            "tripRequestId": trip_request_id,
            "waypoints": [wp.to_request() for wp in waypoints],
        }
        data = await self._call(STAGE_RECALCULATE, "/api/recalculate-route", payload)
        if not data.get("route"):
            raise BackendError(STAGE_RECALCULATE, "No route returned for the selected stops")
        return self._parse(STAGE_RECALCULATE, RecalculationResult.from_dict, data)

    def close(self) -> None:
        self.http.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    async def _call(self, stage: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._post, stage, path, payload)

    def _post(self, stage: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        start_time = time.time()
        try:
            response = self.http.post(url, json=payload, timeout=self.timeout_seconds)
        except requests.Timeout:
            raise BackendError(stage, f"Request timed out after {self.timeout_seconds:.0f}s")
        except requests.RequestException as exc:
            raise BackendError(stage, f"Could not reach planning backend: {exc}")

        duration = time.time() - start_time
        logger.debug("POST %s -> %s in %.2fs", path, response.status_code, duration)

        if not response.ok:
            raise BackendError(stage, self._error_message(response), response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise BackendError(stage, "Planning backend returned invalid JSON", response.status_code)
        if not isinstance(data, dict):
            raise BackendError(stage, "Planning backend returned an unexpected payload")
        return data

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or "Unknown error"
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.reason or "Unknown error"

    @staticmethod
    def _parse(stage: str, parser, data):
        try:
            return parser(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed %s response: %s", stage, exc)
            raise BackendError(stage, f"Malformed response from planning backend: {exc}")


__all__ = [
    "PlanningBackend",
    "STAGE_CHAT",
    "STAGE_PLAN",
    "STAGE_DISCOVER",
    "STAGE_RECALCULATE",
]
