# roadtrip_nav/routes/websocket/base.py
"""Base WebSocket handler with common functionality."""

import logging
from concurrent.futures import Future
from typing import Callable, Coroutine, Optional

from flask import request, session
from flask_socketio import emit

from roadtrip_nav.api.errors import TripPlannerError
from roadtrip_nav.api.services.assistant import TripAssistant
from roadtrip_nav.api.session_manager import get_session_manager

logger = logging.getLogger(__name__)

# Define namespace constant
NAMESPACE = "/trip/ws"

SESSION_KEY = "trip_session_id"


class BaseWebSocketHandler:
    """Base class for WebSocket handlers with common functionality."""

    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_client(self, event, data, room=None):
        """Emit event to a specific client or room."""
        try:
            if room:
                self.socketio.emit(event, data, room=room, namespace=self.namespace)
            else:
                emit(event, data, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to emit {event}: {e}")

    def get_client_info(self):
        """Get information about the connected client."""
        return {
            "sid": request.sid,
            "ip": request.remote_addr,
            "origin": request.headers.get("Origin", "unknown"),
        }

    def log_event(self, event_name, data=None):
        """Log WebSocket events consistently."""
        client_info = self.get_client_info()
        if data:
            logger.info(f"[WS] {event_name} - Client: {client_info['sid']}, Data: {data}")
        else:
            logger.info(f"[WS] {event_name} - Client: {client_info['sid']}")

    def handle_error(self, error, event_name="", room=None):
        """Handle and log errors consistently."""
        if isinstance(error, TripPlannerError):
            logger.warning(f"[WS] {event_name} rejected: {error}")
        else:
            logger.error(f"[WS] Error in {event_name}: {error}")
        self.emit_to_client("error", {"message": str(error), "event": event_name}, room=room)

    def current_session_id(self) -> Optional[str]:
        return session.get(SESSION_KEY)

    def dispatch(self, event_name: str,
                 action: Callable[[TripAssistant], Coroutine]) -> Optional[Future]:
        """Run an assistant coroutine on the session loop for the current client.

        Failures are reported back to the client as ``error`` events once the
        coroutine finishes.
        """
        session_id = self.current_session_id()
        if not session_id:
            self.emit_to_client("error", {"message": "No session available", "event": event_name})
            return None

        future = get_session_manager().run(session_id, action)
        if future is None:
            self.emit_to_client("error", {"message": "Session not found", "event": event_name})
            return None

        sid = request.sid

        def _on_done(done: Future) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                self.handle_error(exc, event_name, room=sid)

        future.add_done_callback(_on_done)
        return future
