# roadtrip_nav/routes/websocket/navigation.py
"""WebSocket handlers for navigation mode and device position fixes."""

import logging

from roadtrip_nav.api.session_manager import get_session_manager

from .base import NAMESPACE, BaseWebSocketHandler

logger = logging.getLogger(__name__)


class NavigationHandler(BaseWebSocketHandler):
    """Handles navigation start/stop and the position stream."""

    def register_handlers(self):
        """Register navigation-related event handlers."""

        @self.socketio.on("start_navigation", namespace=NAMESPACE)
        def handle_start_navigation(data=None):
            self.log_event("start_navigation")
            self.dispatch("start_navigation", lambda assistant: assistant.start_navigation())

        @self.socketio.on("stop_navigation", namespace=NAMESPACE)
        def handle_stop_navigation(data=None):
            self.log_event("stop_navigation")
            self.dispatch("stop_navigation", lambda assistant: assistant.stop_navigation())

        @self.socketio.on("position_fix", namespace=NAMESPACE)
        def handle_position_fix(data):
            """A fix from the browser's geolocation API."""
            session_id = self.current_session_id()
            if session_id is None:
                return
            try:
                lat = float(data["lat"])
                lng = float(data["lng"])
            except (KeyError, TypeError, ValueError):
                self.emit_to_client("error", {"message": "Invalid position", "event": "position_fix"})
                return

            def _push(assistant):
                try:
                    assistant.push_position(lat, lng)
                except ValueError as exc:
                    logger.warning("Rejected position fix: %s", exc)

            get_session_manager().call(session_id, _push)

        @self.socketio.on("position_error", namespace=NAMESPACE)
        def handle_position_error(data=None):
            """The browser could not produce a fix (denied, unavailable, timeout)."""
            session_id = self.current_session_id()
            if session_id is None:
                return
            message = (data or {}).get("message", "Position unavailable")
            logger.info("⚠️ Client reported geolocation error: %s", message)
            get_session_manager().call(session_id, lambda assistant: assistant.position_failed(message))
