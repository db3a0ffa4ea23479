"""Tests for the session manager and its event loop thread."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Iterator, List

import pytest
from conftest import FakeBackend

from roadtrip_nav.api.session_manager import SessionManager


@pytest.fixture
def backends() -> List[FakeBackend]:
    return []


@pytest.fixture
def manager(backends: List[FakeBackend]) -> Iterator[SessionManager]:
    def _factory() -> FakeBackend:
        backend = FakeBackend()
        backends.append(backend)
        return backend

    manager = SessionManager(backend_factory=_factory, start_cleanup=False)
    try:
        yield manager
    finally:
        manager.shutdown()


def _drain(manager: SessionManager) -> None:
    manager.runner.submit(asyncio.sleep(0)).result(timeout=2)


def test_create_and_get_session(manager: SessionManager) -> None:
    client_session = manager.create_session("10.0.0.1")

    assert client_session.session_id.startswith("trip_")
    assert manager.get_session(client_session.session_id) is client_session
    assert manager.get_stats()["total_sessions"] == 1


def test_rate_limit_per_ip(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_RATE_LIMIT_PER_IP", "1")
    manager = SessionManager(backend_factory=FakeBackend, start_cleanup=False)
    try:
        assert manager.create_session("10.0.0.1") is not None
        assert manager.create_session("10.0.0.1") is None
        assert manager.create_session("10.0.0.2") is not None
    finally:
        manager.shutdown()


def test_run_executes_on_session_loop(manager: SessionManager) -> None:
    client_session = manager.create_session("10.0.0.1")

    async def _action(assistant):
        asyncio.get_running_loop()
        return assistant.session_id

    future = manager.run(client_session.session_id, _action)

    assert future.result(timeout=2) == client_session.session_id


def test_run_unknown_session_returns_none(manager: SessionManager) -> None:
    async def _action(assistant):
        return None

    assert manager.run("trip_missing", _action) is None
    assert manager.call("trip_missing", lambda assistant: None) is False


def test_call_pushes_position_on_loop(manager: SessionManager) -> None:
    client_session = manager.create_session("10.0.0.1")

    assert manager.call(client_session.session_id, lambda assistant: assistant.push_position(1.0, 2.0))
    _drain(manager)

    assert client_session.assistant.position_source.cached(60_000) is not None


def test_remove_session_closes_backend(manager: SessionManager, backends: List[FakeBackend]) -> None:
    client_session = manager.create_session("10.0.0.1")

    manager.remove_session(client_session.session_id, "test")
    _drain(manager)

    assert manager.get_session(client_session.session_id) is None
    assert backends[0].closed
    assert manager.ip_session_count["10.0.0.1"] == 0


def test_cleanup_expired_sessions(manager: SessionManager) -> None:
    stale = manager.create_session("10.0.0.1")
    fresh = manager.create_session("10.0.0.2")
    long_ago = datetime.now() - timedelta(hours=2)
    stale.last_activity = long_ago
    stale.assistant.session.last_activity = long_ago

    assert manager.cleanup_expired_sessions() == 1
    assert manager.get_session(stale.session_id) is None
    assert manager.get_session(fresh.session_id) is fresh
