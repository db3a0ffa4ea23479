# roadtrip_nav/routes/websocket/planning.py
"""WebSocket handlers for the conversation and waypoint edits."""

import logging

from .base import NAMESPACE, BaseWebSocketHandler

logger = logging.getLogger(__name__)


class PlanningHandler(BaseWebSocketHandler):
    """Handles chat turns, stop acceptance and removal."""

    def register_handlers(self):
        """Register planning-related event handlers."""

        @self.socketio.on("chat", namespace=NAMESPACE)
        def handle_chat(data):
            """A user message, typed or transcribed."""
            message = (data or {}).get("message", "").strip()
            if not message:
                self.emit_to_client("error", {"message": "Message is empty", "event": "chat"})
                return
            self.log_event("chat", {"length": len(message)})
            self.dispatch("chat", lambda assistant: assistant.send_message(message))

        @self.socketio.on("accept_stop", namespace=NAMESPACE)
        def handle_accept_stop(data):
            stop_id = (data or {}).get("stop_id")
            if not stop_id:
                self.emit_to_client("error", {"message": "stop_id is required", "event": "accept_stop"})
                return
            self.log_event("accept_stop", {"stop_id": stop_id})
            self.dispatch("accept_stop", lambda assistant: assistant.accept(stop_id))

        @self.socketio.on("reject_stop", namespace=NAMESPACE)
        def handle_reject_stop(data):
            stop_id = (data or {}).get("stop_id")
            if not stop_id:
                self.emit_to_client("error", {"message": "stop_id is required", "event": "reject_stop"})
                return
            self.log_event("reject_stop", {"stop_id": stop_id})
            self.dispatch("reject_stop", lambda assistant: assistant.reject(stop_id))

        @self.socketio.on("new_trip", namespace=NAMESPACE)
        def handle_new_trip(data=None):
            self.log_event("new_trip")
            self.dispatch("new_trip", lambda assistant: assistant.new_trip())

        @self.socketio.on("get_snapshot", namespace=NAMESPACE)
        def handle_get_snapshot(data=None):
            """Send the full current state, e.g. after a page reload."""
            async def _snapshot(assistant):
                assistant.emit("snapshot", assistant.snapshot())

            self.dispatch("get_snapshot", _snapshot)
