"""Pytest configuration and fixtures."""

import os
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["GRAPHHOPPER_API_KEY"] = "test-key"
os.environ["REROUTE_SETTLE_DELAY_S"] = "0"

from ridenav.dependencies import get_navigation_service
from ridenav.main import app
from ridenav.schemas.route import ActiveRoute
from ridenav.services.navigation_service import NavigationService
from ridenav.services.routing_service import RoutingService
from ridenav.services.signals import NavigationSignals
from tests.factories import EAST, NORTH, ORIGIN, FakeClock, build_points, make_route


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def straight_route() -> ActiveRoute:
    """1000 m due east in four 250 m segments."""
    return make_route(build_points(ORIGIN, [(EAST, 250.0)] * 4))


@pytest.fixture
def l_route() -> ActiveRoute:
    """East 300 m, north 300 m, east 300 m: one left and one right turn."""
    return make_route(build_points(ORIGIN, [(EAST, 300.0), (NORTH, 300.0), (EAST, 300.0)]))


@pytest.fixture
def routing_service() -> AsyncMock:
    service = AsyncMock(spec=RoutingService)
    service.calculate_routes.return_value = []
    return service


@pytest.fixture
def signals() -> NavigationSignals:
    return NavigationSignals()


@pytest.fixture
def navigation(routing_service, signals, clock) -> NavigationService:
    return NavigationService(routing_service=routing_service, signals=signals, clock=clock)


@pytest.fixture
def api_navigation(routing_service) -> NavigationService:
    """Engine behind the API, using the wall clock."""
    return NavigationService(routing_service=routing_service)


@pytest.fixture
def client(api_navigation) -> Generator[TestClient, None, None]:
    """Create a test client with the navigation engine overridden."""
    app.dependency_overrides[get_navigation_service] = lambda: api_navigation

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
