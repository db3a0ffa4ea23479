"""
Road-trip assistant entry point.

Serves the `/trip` blueprint and the `/trip/ws` Socket.IO namespace from one
process (threading async mode). Planning itself happens in the backend at
PLANNING_BACKEND_URL; this process keeps per-traveler trip state and tracks
navigation progress from the browser's position fixes.
"""

import logging

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from roadtrip_nav.api.config import get_backend_config, get_port  # noqa: E402
from roadtrip_nav.api.session_manager import get_session_manager  # noqa: E402
from roadtrip_nav.app import create_app  # noqa: E402
from roadtrip_nav.routes import NAMESPACE  # noqa: E402

app, socketio = create_app()


@app.route("/debug")
def debug():
    """Wiring and load at a glance."""
    stats = get_session_manager().get_stats()
    return {
        "status": "ok",
        "planning_backend": get_backend_config()["base_url"],
        "active_sessions": stats["total_sessions"],
        "navigating_sessions": stats["navigating_sessions"],
        "endpoints": {
            "health": "/trip/health",
            "stats": "/trip/api/stats",
            "websocket_namespace": NAMESPACE,
        },
    }


if __name__ == "__main__":
    port = get_port()
    logger.info(f"🚗 Trip assistant listening on http://localhost:{port} (backend: "
                f"{get_backend_config()['base_url']})")
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)

__all__ = ["app", "socketio"]
