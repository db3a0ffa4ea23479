"""Decide whether a chat message should start from the device position.

Best-effort heuristics over natural language, not a parser. Each rule is a
named predicate so edge cases can be tested one at a time; ``classify_origin``
applies them in precedence order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from roadtrip_nav.api.config import get_location_config
from roadtrip_nav.api.errors import PositionUnavailableError
from roadtrip_nav.api.models import Position
from roadtrip_nav.api.position import AcquireOptions, ClientPositionSource

logger = logging.getLogger(__name__)

_HERE = r"(?:here|my\s+(?:current\s+)?location|current\s+location)"

_FROM_TO_RE = re.compile(r"\bfrom\s+([a-zA-Z\s,]+?)\s+to\s+[a-zA-Z\s,]+", re.IGNORECASE)
_HERE_OPERAND_RE = re.compile(rf"^{_HERE}$", re.IGNORECASE)
_CURRENT_LOCATION_RE = re.compile(
    r"\b(?:my\s+(?:current\s+)?location|current\s+location|from\s+here|start\s+here|starting\s+from\s+here)\b",
    re.IGNORECASE,
)
_DESTINATION_RE = re.compile(
    r"(?:\bplan\s+(?:a\s+)?(?:trip|route)\s+)?\bto\s+[a-zA-Z][a-zA-Z\s,]*", re.IGNORECASE
)
_FROM_RE = re.compile(r"\bfrom\s+[a-zA-Z]", re.IGNORECASE)


class OriginPolicy(str, Enum):
    TEXT = "text"                                  # origin named in the message
    DEVICE_REQUESTED = "device_requested"          # "from here", "my location"
    DEVICE_FOR_DESTINATION = "device_for_destination"  # "to Boston"
    DEVICE_DEFAULT = "device_default"              # anything else

    @property
    def uses_device(self) -> bool:
        return self is not OriginPolicy.TEXT


def has_explicit_route(text: str) -> bool:
    """True for "from A to B" where A is a real place, not "here"."""
    for match in _FROM_TO_RE.finditer(text or ""):
        operand = match.group(1).strip(" ,")
        if operand and not _HERE_OPERAND_RE.match(operand):
            return True
    return False


def mentions_current_location(text: str) -> bool:
    return bool(_CURRENT_LOCATION_RE.search(text or ""))


def has_from_clause(text: str) -> bool:
    return bool(_FROM_RE.search(text or ""))


def is_destination_only(text: str) -> bool:
    """True for "to B" (optionally "plan a trip to B") with no "from" clause."""
    return bool(_DESTINATION_RE.search(text or "")) and not has_from_clause(text)


def classify_origin(text: str) -> OriginPolicy:
    if has_explicit_route(text):
        return OriginPolicy.TEXT
    if mentions_current_location(text):
        return OriginPolicy.DEVICE_REQUESTED
    if is_destination_only(text):
        return OriginPolicy.DEVICE_FOR_DESTINATION
    return OriginPolicy.DEVICE_DEFAULT


@dataclass(frozen=True)
class ResolvedOrigin:
    policy: OriginPolicy
    position: Optional[Position] = None
    location_needed: bool = False


class LocationResolver:
    """Supplies the device position as origin override when the text calls for it."""

    def __init__(self, source: ClientPositionSource, options: Optional[AcquireOptions] = None):
        cfg = get_location_config()
        self.source = source
        self.options = options or AcquireOptions.from_config()
        self.max_cache_age_ms = cfg["max_cache_age_ms"]

    async def resolve(self, text: str, cached: Optional[Position] = None) -> ResolvedOrigin:
        policy = classify_origin(text)
        if not policy.uses_device:
            logger.debug("Origin taken from message text")
            return ResolvedOrigin(policy)

        position = cached or self.source.cached(self.max_cache_age_ms)
        if position is not None:
            logger.debug("Using cached device position as origin (%s)", policy.value)
            return ResolvedOrigin(policy, position)

        try:
            position = await self.source.acquire(self.options)
        except PositionUnavailableError as exc:
            logger.warning("Could not get device position: %s", exc)
            return ResolvedOrigin(policy, None, location_needed=not has_from_clause(text))

        logger.info("Acquired fresh device position as origin (%s)", policy.value)
        return ResolvedOrigin(policy, position)
