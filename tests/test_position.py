"""Tests for the client-fed position source and its subscriptions."""

from __future__ import annotations

import asyncio

import pytest

from roadtrip_nav.api.errors import PositionUnavailableError
from roadtrip_nav.api.models import Position
from roadtrip_nav.api.position import AcquireOptions, ClientPositionSource


def test_cached_respects_max_age() -> None:
    now = [0.0]
    source = ClientPositionSource(clock=lambda: now[0])
    assert source.cached(1000) is None

    source.push(Position(1.0, 2.0))
    now[0] = 0.5
    assert source.cached(1000) == Position(1.0, 2.0)
    now[0] = 2.0
    assert source.cached(1000) is None


@pytest.mark.anyio
async def test_acquire_waits_for_pushed_fix() -> None:
    source = ClientPositionSource()
    task = asyncio.create_task(source.acquire(AcquireOptions(timeout_ms=1000)))
    await asyncio.sleep(0)

    source.push(Position(3.0, 4.0))

    assert await task == Position(3.0, 4.0)


@pytest.mark.anyio
async def test_acquire_passes_options_to_request_hook() -> None:
    seen = []
    source = ClientPositionSource()

    def _on_request(options: AcquireOptions) -> None:
        seen.append(options)
        source.push(Position(0.0, 0.0))

    source.on_request = _on_request
    options = AcquireOptions(high_accuracy=False, timeout_ms=250)
    await source.acquire(options)

    assert seen == [options]


@pytest.mark.anyio
async def test_acquire_times_out() -> None:
    source = ClientPositionSource()
    with pytest.raises(PositionUnavailableError):
        await source.acquire(AcquireOptions(timeout_ms=10))


@pytest.mark.anyio
async def test_fail_rejects_pending_acquisition() -> None:
    source = ClientPositionSource()
    task = asyncio.create_task(source.acquire(AcquireOptions(timeout_ms=1000)))
    await asyncio.sleep(0)

    source.fail("denied")

    with pytest.raises(PositionUnavailableError, match="denied"):
        await task


@pytest.mark.anyio
async def test_subscription_receives_fixes_until_closed() -> None:
    watch = []
    source = ClientPositionSource(on_watch=watch.append)
    subscription = source.subscribe()
    assert watch == [True]

    source.push(Position(1.0, 1.0))
    source.push(Position(2.0, 2.0))
    received = [await subscription.__anext__(), await subscription.__anext__()]
    assert received == [Position(1.0, 1.0), Position(2.0, 2.0)]

    subscription.close()
    subscription.close()
    assert watch == [True, False]
    assert source.subscriber_count == 0

    with pytest.raises(StopAsyncIteration):
        await subscription.__anext__()


@pytest.mark.anyio
async def test_close_wakes_pending_iteration() -> None:
    source = ClientPositionSource()
    subscription = source.subscribe()

    async def _consume() -> list:
        return [p async for p in subscription]

    task = asyncio.create_task(_consume())
    await asyncio.sleep(0)
    subscription.close()

    assert await task == []


@pytest.mark.anyio
async def test_watch_hook_fires_for_first_and_last_subscriber_only() -> None:
    watch = []
    source = ClientPositionSource(on_watch=watch.append)
    first = source.subscribe()
    second = source.subscribe()
    first.close()
    assert watch == [True]
    second.close()
    assert watch == [True, False]
