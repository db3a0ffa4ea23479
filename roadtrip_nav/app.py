"""Flask application factory for the road-trip assistant.

* Flask app + Socket.IO in threading mode; no eventlet/gevent required.
* Trip state lives on the session manager's asyncio loop thread, the
  Socket.IO workers only hand events over to it.
* The Socket.IO namespace is ``/trip/ws``.
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from roadtrip_nav.api.config import get_websocket_config, validate_config
from roadtrip_nav.routes import create_trip_blueprint, register_websocket_handlers

logger = logging.getLogger(__name__)


def create_app(testing: bool = False):
    """Build the Flask app and its SocketIO server.

    Returns:
        (app, socketio)
    """
    validate_config()

    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    app.config.update(
        TESTING=testing,
        SESSION_COOKIE_SECURE=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )

    # CORS for local dev / cross-origin front-end requests
    CORS(app, origins="*", supports_credentials=True)

    ws_config = get_websocket_config()
    socketio = SocketIO(
        app,
        cors_allowed_origins=ws_config["cors_allowed_origins"],
        async_mode="threading",
        ping_interval=ws_config["ping_interval"],
        ping_timeout=ws_config["ping_timeout"],
        logger=not testing,
        engineio_logger=False,
    )
    logger.info("Socket.IO initialised (async_mode=threading)")

    app.register_blueprint(create_trip_blueprint())
    register_websocket_handlers(socketio)

    return app, socketio


__all__ = ["create_app"]
