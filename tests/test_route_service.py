"""Tests for route summaries and the route payload sent to the map."""

from __future__ import annotations

from conftest import make_route

from roadtrip_nav.api.models import Bounds, Position
from roadtrip_nav.api.services.route_service import RouteService


def test_format_duration() -> None:
    assert RouteService.format_duration(3600) == "1h 0m"
    assert RouteService.format_duration(2700) == "45m"
    assert RouteService.format_duration(5430) == "1h 30m"
    assert RouteService.format_duration(0) == "0m"


def test_summary_without_stops() -> None:
    route = make_route([(40.0, -75.0), (41.0, -75.0)], meters=100_000, seconds=3600)

    summary = RouteService.summarize(route, 0, stop_overhead_seconds=600)

    assert summary.eta == "1h 0m"
    assert summary.distance == "62.1"
    assert summary.stops == 0
    assert summary.total_duration == 3600


def test_stop_overhead_added_to_eta_not_route() -> None:
    route = make_route([(40.0, -75.0), (40.5, -75.0), (41.0, -75.0)], meters=50_000, seconds=1800)

    summary = RouteService.summarize(route, 2, stop_overhead_seconds=600)

    assert summary.total_duration == 3600 + 1200
    assert summary.eta == "1h 20m"
    assert route.total_duration_seconds == 3600


def test_summary_of_missing_route_is_none() -> None:
    assert RouteService.summarize(None, 3) is None


def test_route_updated_message_mentions_stop_minutes() -> None:
    route = make_route([(40.0, -75.0), (40.5, -75.0), (41.0, -75.0)], meters=50_000, seconds=1800)
    summary = RouteService.summarize(route, 2, stop_overhead_seconds=600)

    message = RouteService.route_updated_message(summary, 600)

    assert "2 stops" in message
    assert "1h 20m" in message
    assert "20 minutes for stops" in message
    assert "62.1 miles" in message


def test_stops_found_message_singular_and_empty() -> None:
    assert "Found 1 recommended stop along" in RouteService.stops_found_message(1)
    assert "Found 3 recommended stops" in RouteService.stops_found_message(3)
    assert "couldn't find any stops" in RouteService.stops_found_message(0)


def test_route_payload_uses_provider_bounds() -> None:
    route = make_route([(40.0, -75.0), (41.0, -74.0)])
    route.bounds = Bounds(northeast=Position(42.0, -73.0), southwest=Position(39.0, -76.0))

    payload = RouteService.route_payload(route)

    assert payload["bounds"] == {"north": 42.0, "east": -73.0, "south": 39.0, "west": -76.0}


def test_route_payload_computes_bounds_from_legs() -> None:
    route = make_route([(40.0, -75.0), (41.0, -74.0)])

    payload = RouteService.route_payload(route)

    assert payload["bounds"] == {"north": 41.0, "east": -74.0, "south": 40.0, "west": -75.0}
    assert len(payload["legs"]) == 1
    assert RouteService.route_payload(None) is None
