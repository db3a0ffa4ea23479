# roadtrip_nav/routes/websocket/connection.py
"""WebSocket connection and disconnection handlers."""

import logging
import time

from flask import session
from flask_socketio import disconnect

from roadtrip_nav.api.session_manager import get_session_manager

from .base import NAMESPACE, SESSION_KEY, BaseWebSocketHandler
from .callback_helpers import wire_trip_callbacks

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hi! I'm your Journey Assistant. Tell me where you're headed and I'll help you plan "
    "the perfect route with gas stops, restaurants, and scenic viewpoints along the way. "
    "You can say something like 'to Boston' and I'll use your current location as the "
    "starting point!"
)


class ConnectionHandler(BaseWebSocketHandler):
    """Handles WebSocket connection lifecycle events."""

    def register_handlers(self):
        """Register connection-related event handlers."""

        @self.socketio.on("connect", namespace=NAMESPACE)
        def handle_connect(auth=None):
            """Create a trip session for the connecting browser."""
            client_info = self.get_client_info()
            self.log_event("connect")

            try:
                manager = get_session_manager()
                client_session = manager.create_session(client_info["ip"])
                if client_session is None:
                    logger.error("❌ Failed to create trip session - rate limited")
                    self.emit_to_client("error", {
                        "message": "Rate limit exceeded or server at capacity"
                    })
                    disconnect()
                    return

                session[SESSION_KEY] = client_session.session_id
                wire_trip_callbacks(self.socketio, client_session, client_info["sid"], NAMESPACE)

                logger.info(f"✅ Session ready: {client_session.session_id}")
                self.emit_to_client("connected", {
                    "session_id": client_session.session_id,
                    "status": "connected",
                })
                self.emit_to_client("assistant_message", {"text": WELCOME_MESSAGE})

            except Exception as e:
                self.handle_error(e, "connect")
                disconnect()

        @self.socketio.on("disconnect", namespace=NAMESPACE)
        def handle_disconnect(*args):
            """Tear the trip session down with the socket."""
            session_id = session.get(SESSION_KEY)
            if not session_id:
                self.log_event("disconnect", {"no_session": True})
                return
            try:
                get_session_manager().remove_session(session_id, "client_disconnect")
                logger.info(f"🔌 WebSocket disconnected, session {session_id} removed")
            except Exception as e:
                logger.error(f"Error during disconnect of {session_id}: {e}")

        @self.socketio.on("ping", namespace=NAMESPACE)
        def handle_ping():
            """Handle ping for connection testing."""
            self.emit_to_client("pong", {"timestamp": time.time()})
