"""Stateful services for trip planning and navigation."""

from .assistant import TripAssistant
from .ledger import WaypointLedger
from .navigation import NavigationStatus, NavigationTracker
from .pipeline import PlanningPipeline
from .route_service import RouteService, RouteSummary
from .session import RequestTokens, TripSession

__all__ = [
    'TripAssistant',
    'WaypointLedger',
    'NavigationStatus',
    'NavigationTracker',
    'PlanningPipeline',
    'RouteService',
    'RouteSummary',
    'RequestTokens',
    'TripSession',
]
