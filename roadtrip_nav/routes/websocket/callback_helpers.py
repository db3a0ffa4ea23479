# roadtrip_nav/routes/websocket/callback_helpers.py
"""Helper functions for wiring trip assistant callbacks to Socket.IO events."""

import logging

from roadtrip_nav.api.position import AcquireOptions

logger = logging.getLogger(__name__)


def wire_trip_callbacks(socketio, client_session, sid: str, namespace: str = "/trip/ws") -> None:
    """
    Bridges TripAssistant events and position requests -> Socket.IO events
    for one connected client.
    """
    assistant = client_session.assistant
    client_session.sid = sid

    # -- assistant state changes ---------------------------------------------
    def _emit(event: str, payload: dict) -> None:
        try:
            socketio.emit(event, payload, room=sid, namespace=namespace)
        except Exception as exc:
            logger.exception("Failed emitting %s: %s", event, exc)

    # -- one-shot position request -------------------------------------------
    def _on_request(options: AcquireOptions) -> None:
        logger.debug("📍 Asking client %s for a position fix", sid)
        _emit(
            "request_position",
            {
                "enableHighAccuracy": options.high_accuracy,
                "timeout": options.timeout_ms,
                "maximumAge": options.max_cache_age_ms,
            },
        )

    # -- continuous watch while navigating ------------------------------------
    def _on_watch(active: bool) -> None:
        if active:
            logger.info("🛰️ Starting position watch for client %s", sid)
            _emit("watch_position", {"enableHighAccuracy": True, "maximumAge": 0})
        else:
            logger.info("🛑 Clearing position watch for client %s", sid)
            _emit("clear_watch", {})

    assistant.emit = _emit
    assistant.position_source.on_request = _on_request
    assistant.position_source.on_watch = _on_watch
