# roadtrip_nav/routes/trip.py
"""Trip routes and blueprint configuration."""

import logging
from concurrent.futures import TimeoutError as FutureTimeoutError

from flask import Blueprint, jsonify

from roadtrip_nav.api.config import get_google_maps_config
from roadtrip_nav.api.session_manager import get_session_manager

logger = logging.getLogger(__name__)

SNAPSHOT_TIMEOUT_SECONDS = 5


def create_trip_blueprint():
    """Create and configure the trip blueprint.

    Returns:
        Configured Flask Blueprint
    """
    trip_bp = Blueprint("trip", __name__, url_prefix="/trip")

    @trip_bp.route("/api/config")
    def api_config():
        """Return Google Maps configuration for the map front-end."""
        config = get_google_maps_config()

        if config.get("api_key"):
            return jsonify({
                "auth_type": "api_key",
                "google_maps_api_key": config["api_key"],
                "google_maps_client_id": config.get("client_id", ""),
            })
        return jsonify({"error": "No Google Maps API key configured"}), 500

    @trip_bp.route("/api/sessions/<session_id>")
    def api_session_snapshot(session_id):
        """Read-only snapshot of a trip session."""
        async def _snapshot(assistant):
            return assistant.snapshot()

        future = get_session_manager().run(session_id, _snapshot)
        if future is None:
            return jsonify({"error": "Session not found"}), 404
        try:
            return jsonify(future.result(timeout=SNAPSHOT_TIMEOUT_SECONDS))
        except FutureTimeoutError:
            logger.error(f"Timed out reading snapshot for {session_id}")
            return jsonify({"error": "Session busy, try again"}), 503

    @trip_bp.route("/api/stats")
    def api_stats():
        return jsonify(get_session_manager().get_stats())

    @trip_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "trip"})

    return trip_bp


__all__ = ["create_trip_blueprint"]
