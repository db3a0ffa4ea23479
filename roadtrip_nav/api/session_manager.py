# roadtrip_nav/api/session_manager.py
"""Session lifecycle management for connected travelers.

Socket.IO handlers run on worker threads, but every ``TripAssistant`` must be
driven from a single asyncio loop so that no two stage continuations
interleave. The manager owns that loop (in a daemon thread) and hands work
to it with ``run_coroutine_threadsafe``.
"""

import asyncio
import logging
import secrets
import threading
import time
from collections import defaultdict
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Any, Callable, Coroutine, Dict, Optional

from roadtrip_nav.api.backend import PlanningBackend
from roadtrip_nav.api.config import get_session_config
from roadtrip_nav.api.position import ClientPositionSource
from roadtrip_nav.api.services.assistant import TripAssistant

logger = logging.getLogger(__name__)


class EventLoopThread:
    """An asyncio loop running forever in a daemon thread."""

    def __init__(self, name: str = "trip-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Coroutine) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable, *args) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=2.0)


class ClientSession:
    """A connected client and its trip assistant."""

    def __init__(self, session_id: str, user_ip: str, assistant: TripAssistant):
        self.session_id = session_id
        self.user_ip = user_ip
        self.assistant = assistant
        self.created_at = datetime.now()
        self.last_activity = datetime.now()
        self.sid: Optional[str] = None


class SessionManager:
    """Manages the trip sessions of all connected clients."""

    def __init__(self, backend_factory: Callable[[], PlanningBackend] = PlanningBackend,
                 start_cleanup: bool = True):
        self.config = get_session_config()
        self.sessions: Dict[str, ClientSession] = {}
        self.ip_session_count = defaultdict(int)
        self.backend_factory = backend_factory
        self.runner = EventLoopThread()

        # Thread safety
        self.lock = threading.RLock()

        if start_cleanup:
            self.cleanup_thread = threading.Thread(target=self._cleanup_loop, daemon=True)
            self.cleanup_thread.start()

        logger.info("SessionManager initialized")

    def create_session(self, user_ip: str) -> Optional[ClientSession]:
        """Create a session for a newly connected client.

        Args:
            user_ip: Client IP address for rate limiting

        Returns:
            ClientSession or None if rate limited
        """
        with self.lock:
            if self.ip_session_count[user_ip] >= self.config["rate_limit_per_ip"]:
                logger.warning(f"Rate limit exceeded for IP {user_ip}")
                return None

            if len(self.sessions) >= self.config["max_concurrent_sessions"]:
                logger.warning("Maximum concurrent sessions reached")
                return None

            session_id = f"trip_{secrets.token_urlsafe(16)}"
            assistant = TripAssistant(
                session_id,
                backend=self.backend_factory(),
                position_source=ClientPositionSource(),
            )
            client_session = ClientSession(session_id, user_ip, assistant)
            self.sessions[session_id] = client_session
            self.ip_session_count[user_ip] += 1

            logger.info(f"Created session {session_id} for IP {user_ip}")
            return client_session

    def get_session(self, session_id: str) -> Optional[ClientSession]:
        with self.lock:
            client_session = self.sessions.get(session_id)
            if client_session:
                client_session.last_activity = datetime.now()
            return client_session

    def run(self, session_id: str, action: Callable[[TripAssistant], Coroutine]) -> Optional[Future]:
        """Schedule ``action(assistant)`` on the session loop."""
        client_session = self.get_session(session_id)
        if client_session is None:
            logger.error(f"Session {session_id} not found")
            return None
        return self.runner.submit(action(client_session.assistant))

    def call(self, session_id: str, action: Callable[[TripAssistant], Any]) -> bool:
        """Run a plain callable against the assistant on the session loop."""
        client_session = self.get_session(session_id)
        if client_session is None:
            return False
        self.runner.call(action, client_session.assistant)
        return True

    def remove_session(self, session_id: str, reason: str = "manual") -> None:
        """Tear a session down, releasing its navigation subscription."""
        with self.lock:
            client_session = self.sessions.pop(session_id, None)
            if client_session is None:
                return
            if client_session.user_ip in self.ip_session_count:
                self.ip_session_count[client_session.user_ip] = max(
                    0, self.ip_session_count[client_session.user_ip] - 1
                )

        self.runner.submit(self._close(client_session))
        duration = (datetime.now() - client_session.created_at).total_seconds()
        logger.info(
            f"Removed session {session_id} - Reason: {reason}, Duration: {duration:.1f}s, "
            f"Messages: {client_session.assistant.session.message_count}"
        )

    async def _close(self, client_session: ClientSession) -> None:
        try:
            await client_session.assistant.close()
        finally:
            client_session.assistant.pipeline.backend.close()

    def get_stats(self) -> Dict[str, Any]:
        with self.lock:
            navigating = sum(
                1 for s in self.sessions.values() if s.assistant.tracker.is_active
            )
            return {
                "total_sessions": len(self.sessions),
                "navigating_sessions": navigating,
                "unique_ips": len([ip for ip, n in self.ip_session_count.items() if n > 0]),
                "config": {
                    "max_concurrent": self.config["max_concurrent_sessions"],
                    "rate_limit_per_ip": self.config["rate_limit_per_ip"],
                    "timeout_seconds": self.config["session_timeout_seconds"],
                },
            }

    def _cleanup_loop(self):
        """Background thread to clean up expired sessions."""
        while True:
            try:
                time.sleep(30)
                self.cleanup_expired_sessions()
            except Exception as e:
                logger.error(f"Error in cleanup loop: {e}")

    def cleanup_expired_sessions(self) -> int:
        timeout_seconds = self.config["session_timeout_seconds"]
        cutoff_time = datetime.now() - timedelta(seconds=timeout_seconds)

        with self.lock:
            expired = [
                sid for sid, s in self.sessions.items()
                if max(s.last_activity, s.assistant.session.last_activity) < cutoff_time
            ]

        for sid in expired:
            self.remove_session(sid, "timeout")

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
        return len(expired)

    def shutdown(self) -> None:
        for sid in list(self.sessions):
            self.remove_session(sid, "shutdown")
        self.runner.stop()


# Global session manager instance
_session_manager = None


def get_session_manager() -> SessionManager:
    """Get the global SessionManager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def set_session_manager(manager: Optional[SessionManager]) -> None:
    """Replace the global instance (used by tests and app factories)."""
    global _session_manager
    _session_manager = manager
