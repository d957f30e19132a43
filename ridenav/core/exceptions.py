"""Custom exception classes."""

from fastapi import status


class RideNavException(Exception):
    """Base exception for RideNav application."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(RideNavException):
    """Validation error."""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class InvalidRouteError(ValidationError):
    """Route geometry cannot be navigated (too few or invalid points)."""

    def __init__(self, message: str = "Route must contain at least two valid points"):
        super().__init__(message)


class ExternalServiceError(RideNavException):
    """External service error."""

    def __init__(self, message: str = "External service unavailable"):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class RoutingServiceError(ExternalServiceError):
    """Route-computation service (GraphHopper) failed or is not configured."""

    def __init__(self, message: str = "Routing service unavailable"):
        super().__init__(message)
