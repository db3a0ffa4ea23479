# roadtrip_nav/routes/websocket/__init__.py
"""WebSocket route handlers initialization."""

import logging

from .base import NAMESPACE
from .connection import ConnectionHandler
from .navigation import NavigationHandler
from .planning import PlanningHandler

logger = logging.getLogger(__name__)


def register_websocket_handlers(socketio):
    """Register all WebSocket event handlers with SocketIO.

    Args:
        socketio: Flask-SocketIO instance
    """
    logger.info("Registering trip WebSocket handlers...")

    try:
        connection_handler = ConnectionHandler(socketio, NAMESPACE)
        planning_handler = PlanningHandler(socketio, NAMESPACE)
        navigation_handler = NavigationHandler(socketio, NAMESPACE)

        logger.info(f"Registering connection handler for namespace: {NAMESPACE}")
        connection_handler.register_handlers()

        logger.info(f"Registering planning handler for namespace: {NAMESPACE}")
        planning_handler.register_handlers()

        logger.info(f"Registering navigation handler for namespace: {NAMESPACE}")
        navigation_handler.register_handlers()

        logger.info("✅ Trip WebSocket handlers registered successfully")

    except Exception as e:
        logger.error(f"❌ Failed to register WebSocket handlers: {e}")
        logger.exception("WebSocket registration error:")
        raise


__all__ = ["register_websocket_handlers", "NAMESPACE"]
