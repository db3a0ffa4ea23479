# roadtrip_nav/api/config.py
"""Configuration management for the road-trip assistant."""
import os
from dotenv import load_dotenv

load_dotenv()


def _get_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_backend_config():
    """Get planning backend configuration."""
    return {
        "base_url": os.getenv("PLANNING_BACKEND_URL", "http://localhost:5000").rstrip("/"),
        "timeout_seconds": float(os.getenv("PLANNING_BACKEND_TIMEOUT_SECONDS", "30")),
    }


def get_location_config():
    """Get device position acquisition configuration."""
    return {
        "high_accuracy": _get_bool("LOCATION_HIGH_ACCURACY", True),
        "timeout_ms": int(os.getenv("LOCATION_TIMEOUT_MS", "5000")),
        # A fix older than this is not reused as the request origin
        "max_cache_age_ms": int(os.getenv("LOCATION_MAX_CACHE_AGE_MS", "300000")),
    }


def get_navigation_config():
    """Get navigation tracker configuration."""
    return {
        "step_threshold_meters": float(os.getenv("NAVIGATION_STEP_THRESHOLD_METERS", "50")),
        "arrival_message": os.getenv(
            "NAVIGATION_ARRIVAL_MESSAGE", "You have arrived at your destination"
        ),
    }


def get_route_config():
    """Get route summary configuration."""
    return {
        "stop_overhead_seconds": int(os.getenv("STOP_OVERHEAD_SECONDS", "600")),
    }


def get_session_config():
    """Get trip session lifecycle configuration."""
    return {
        "session_timeout_seconds": int(os.getenv("SESSION_TIMEOUT_SECONDS", "3600")),
        "max_concurrent_sessions": int(os.getenv("MAX_CONCURRENT_SESSIONS", "100")),
        "rate_limit_per_ip": int(os.getenv("SESSION_RATE_LIMIT_PER_IP", "10")),
    }


def get_google_maps_config():
    """Get Google Maps configuration for the map front-end."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "client_id": os.getenv("maps_client_id", ""),
    }


def get_websocket_config():
    """Get WebSocket configuration."""
    return {
        "ping_interval": int(os.getenv("WEBSOCKET_PING_INTERVAL", "25")),
        "ping_timeout": int(os.getenv("WEBSOCKET_PING_TIMEOUT", "60")),
        "cors_allowed_origins": os.getenv("WEBSOCKET_CORS_ORIGINS", "*").split(","),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5050))


def validate_config():
    """Validate that numeric settings are usable."""
    backend = get_backend_config()
    location = get_location_config()
    navigation = get_navigation_config()
    route = get_route_config()

    if not backend["base_url"].startswith(("http://", "https://")):
        raise ValueError("PLANNING_BACKEND_URL must be an http(s) URL")
    if backend["timeout_seconds"] <= 0:
        raise ValueError("PLANNING_BACKEND_TIMEOUT_SECONDS must be positive")
    if location["timeout_ms"] <= 0:
        raise ValueError("LOCATION_TIMEOUT_MS must be positive")
    if location["max_cache_age_ms"] < 0:
        raise ValueError("LOCATION_MAX_CACHE_AGE_MS cannot be negative")
    if navigation["step_threshold_meters"] <= 0:
        raise ValueError("NAVIGATION_STEP_THRESHOLD_METERS must be positive")
    if route["stop_overhead_seconds"] < 0:
        raise ValueError("STOP_OVERHEAD_SECONDS cannot be negative")

    return True
