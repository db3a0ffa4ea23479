from roadtrip_nav.routes.trip import create_trip_blueprint
from roadtrip_nav.routes.websocket import NAMESPACE, register_websocket_handlers

__all__ = ["create_trip_blueprint", "register_websocket_handlers", "NAMESPACE"]
