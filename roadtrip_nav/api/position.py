"""Device position sources.

The browser owns the GPS. It pushes fixes over the socket (``position_fix``)
and can be asked for a fresh one (``request_position``) or told to start and
stop a continuous watch. ``ClientPositionSource`` turns that into the two
primitives the core needs: a one-shot ``acquire`` with a bounded timeout,
and a ``subscribe`` stream that must be closed by its owner.

All methods are meant to be called on the session's event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from roadtrip_nav.api.config import get_location_config
from roadtrip_nav.api.errors import PositionUnavailableError
from roadtrip_nav.api.models import Position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquireOptions:
    high_accuracy: bool = True
    timeout_ms: int = 5000
    max_cache_age_ms: int = 0

    @classmethod
    def from_config(cls) -> "AcquireOptions":
        cfg = get_location_config()
        return cls(high_accuracy=cfg["high_accuracy"], timeout_ms=cfg["timeout_ms"])


class PositionSubscription:
    """A stream of position fixes that lives until ``close()``."""

    def __init__(self, source: "ClientPositionSource"):
        self._source = source
        self._queue: "asyncio.Queue[Optional[Position]]" = asyncio.Queue()
        self.closed = False

    def _deliver(self, position: Position) -> None:
        if not self.closed:
            self._queue.put_nowait(position)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._source._unsubscribe(self)
        # Wake up a pending __anext__ so iteration ends
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Position:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        position = await self._queue.get()
        if position is None:
            raise StopAsyncIteration
        return position


class ClientPositionSource:
    """Position source fed by fixes pushed from the connected client.

    Args:
        on_request: called when a fresh fix is needed (one-shot acquisition)
        on_watch: called with True when the first subscriber appears and with
            False when the last one goes away
    """

    def __init__(
        self,
        on_request: Optional[Callable[[AcquireOptions], None]] = None,
        on_watch: Optional[Callable[[bool], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.on_request = on_request
        self.on_watch = on_watch
        self._clock = clock

        self._last_fix: Optional[Position] = None
        self._last_fix_at: Optional[float] = None
        self._waiters: List["asyncio.Future[Position]"] = []
        self._subscriptions: Set[PositionSubscription] = set()

    # ------------------------------------------------------------------
    # Feeding
    # ------------------------------------------------------------------

    def push(self, position: Position) -> None:
        """Record a fix from the device and fan it out."""
        self._last_fix = position
        self._last_fix_at = self._clock()

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(position)

        for subscription in list(self._subscriptions):
            subscription._deliver(position)

    def fail(self, message: str) -> None:
        """The device reported an error; pending acquisitions fail now."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(PositionUnavailableError(message))

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------

    def cached(self, max_age_ms: int) -> Optional[Position]:
        """Last fix if it is no older than *max_age_ms*."""
        if self._last_fix is None or self._last_fix_at is None:
            return None
        age_ms = (self._clock() - self._last_fix_at) * 1000.0
        if age_ms > max_age_ms:
            return None
        return self._last_fix

    async def acquire(self, options: Optional[AcquireOptions] = None) -> Position:
        """Get one position fix, failing with PositionUnavailableError on timeout."""
        options = options or AcquireOptions.from_config()

        if options.max_cache_age_ms > 0:
            cached = self.cached(options.max_cache_age_ms)
            if cached is not None:
                return cached

        loop = asyncio.get_running_loop()
        waiter: "asyncio.Future[Position]" = loop.create_future()
        self._waiters.append(waiter)

        if self.on_request is not None:
            self.on_request(options)

        try:
            return await asyncio.wait_for(waiter, timeout=options.timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning("No position fix within %d ms", options.timeout_ms)
            raise PositionUnavailableError("Timed out waiting for a position fix")
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def subscribe(self) -> PositionSubscription:
        subscription = PositionSubscription(self)
        first = not self._subscriptions
        self._subscriptions.add(subscription)
        if first and self.on_watch is not None:
            self.on_watch(True)
        logger.debug("Position subscription opened (%d active)", len(self._subscriptions))
        return subscription

    def _unsubscribe(self, subscription: PositionSubscription) -> None:
        self._subscriptions.discard(subscription)
        if not self._subscriptions and self.on_watch is not None:
            self.on_watch(False)
        logger.debug("Position subscription closed (%d active)", len(self._subscriptions))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
