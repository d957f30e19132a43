"""Navigation API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ridenav.dependencies import get_navigation_service
from ridenav.schemas.navigation import (
    NavigationSnapshot,
    PositionFix,
    PositionUpdateResponse,
    RerouteResponse,
    SignalsResponse,
    StartNavigationRequest,
)
from ridenav.schemas.route import RouteOptionsResponse, RouteRequest
from ridenav.services.navigation_service import NavigationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/routes",
    response_model=RouteOptionsResponse,
    summary="Compute candidate routes",
    description="""
    Compute one bike route per configured preference (fastest, safest,
    shortest) between two points using GraphHopper.

    Pick one of the returned routes and pass it to `/start`.
    """,
    responses={
        404: {
            "description": "No route found between the specified points",
            "content": {"application/json": {"example": {"detail": "No routes found"}}},
        },
        503: {"description": "Routing service unavailable"},
    },
)
async def calculate_routes(
    request: RouteRequest,
    navigation: NavigationService = Depends(get_navigation_service),
):
    routes = await navigation.routing_service.calculate_routes(
        request.origin, request.destination
    )
    if not routes:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No routes found")

    return RouteOptionsResponse(
        routes=routes,
        meta={"preferences": [route.preference.value for route in routes]},
    )


@router.post("/start", response_model=NavigationSnapshot, summary="Start navigation")
async def start_navigation(
    request: StartNavigationRequest,
    navigation: NavigationService = Depends(get_navigation_service),
):
    """Start navigating a route. Replaces any active session."""
    return navigation.start_navigation(request.route, request.hazards)


@router.post("/stop", response_model=NavigationSnapshot, summary="Stop navigation")
async def stop_navigation(navigation: NavigationService = Depends(get_navigation_service)):
    """Stop navigating. A no-op when idle."""
    return navigation.stop_navigation()


@router.post(
    "/position",
    response_model=PositionUpdateResponse,
    summary="Submit a position fix",
    description="""
    Offer a position fix to the engine. Fixes arriving faster than the
    position update interval are dropped and reported with `accepted: false`.
    """,
)
async def submit_position(
    fix: PositionFix,
    navigation: NavigationService = Depends(get_navigation_service),
):
    accepted, snapshot = navigation.submit_fix(fix)
    return PositionUpdateResponse(accepted=accepted, snapshot=snapshot)


@router.post(
    "/off-route/dismiss",
    response_model=NavigationSnapshot,
    summary="Dismiss the off-route prompt",
)
async def dismiss_off_route(navigation: NavigationService = Depends(get_navigation_service)):
    return navigation.dismiss_off_route_dialog()


@router.post(
    "/recalculate",
    response_model=RerouteResponse,
    summary="Recalculate the route manually",
    description="""
    Recalculate the route from the current position to the destination.
    Subject to the same cooldown and position guards as automatic rerouting;
    the outcome tells which guard rejected the request, if any.
    """,
)
async def recalculate_route(navigation: NavigationService = Depends(get_navigation_service)):
    outcome = await navigation.recalculate_route()
    return RerouteResponse(outcome=outcome, snapshot=navigation.snapshot())


@router.get("/state", response_model=NavigationSnapshot, summary="Current navigation state")
async def get_state(navigation: NavigationService = Depends(get_navigation_service)):
    return navigation.snapshot()


@router.get("/signals", response_model=SignalsResponse, summary="Poll navigation signals")
async def get_signals(navigation: NavigationService = Depends(get_navigation_service)):
    """Return and clear the signals emitted since the previous poll."""
    return SignalsResponse(signals=navigation.signals.drain())
