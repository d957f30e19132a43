"""FastAPI dependencies."""

from typing import Optional

from ridenav.config import Settings, get_settings
from ridenav.services.navigation_service import NavigationService
from ridenav.services.routing_service import RoutingService

# One engine per process: exactly one navigation session is active at a time
_navigation_service: Optional[NavigationService] = None


def get_settings_dependency() -> Settings:
    """Get settings instance as a dependency."""
    return get_settings()


def get_navigation_service() -> NavigationService:
    """Get the process-wide navigation engine."""
    global _navigation_service
    if _navigation_service is None:
        _navigation_service = NavigationService()
    return _navigation_service


def get_routing_service() -> RoutingService:
    """Get the routing client used by the navigation engine."""
    return get_navigation_service().routing_service
