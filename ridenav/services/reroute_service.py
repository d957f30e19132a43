"""Automatic and manual rerouting.

The controller guards every reroute request (cooldown, position delta,
single-flight) synchronously, then runs the route computation in a background
task so position fixes keep updating the old route while it is in flight.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

from ridenav.config import get_settings
from ridenav.core.exceptions import RideNavException
from ridenav.schemas.navigation import RerouteOutcome, SignalType
from ridenav.schemas.route import ActiveRoute, Coordinate, RoutePreference
from ridenav.services.routing_service import RoutingService
from ridenav.services.signals import NavigationSignals
from ridenav.utils.geometry import geodesic_distance_m

if TYPE_CHECKING:
    from ridenav.services.navigation_service import NavigationService

logger = logging.getLogger(__name__)


@dataclass
class RerouteState:
    """Reroute bookkeeping for one navigation session."""

    last_reroute_time: Optional[float] = None
    last_reroute_position: Optional[Coordinate] = None
    in_progress: bool = False


def select_route(routes: List[ActiveRoute], preference: RoutePreference) -> ActiveRoute:
    """Candidate matching the preference, otherwise the first one."""
    return next((route for route in routes if route.preference == preference), routes[0])


class RerouteController:
    """Recomputes the active route from the rider's position to the destination."""

    def __init__(
        self,
        navigation: "NavigationService",
        routing_service: RoutingService,
        signals: NavigationSignals,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.navigation = navigation
        self.routing_service = routing_service
        self.signals = signals
        self.clock = clock
        self.state = RerouteState()
        self._task: Optional["asyncio.Task[RerouteOutcome]"] = None
        # State of the reroute whose session swap is settling, if any
        self._swapping: Optional[RerouteState] = None

    @property
    def in_progress(self) -> bool:
        return self.state.in_progress

    @property
    def swapping(self) -> bool:
        """True between stopping the old session and starting the rerouted one."""
        return self._swapping is not None

    def reset(self) -> None:
        """Start fresh bookkeeping.

        A reroute still in flight keeps its own state object and discards its
        result once it sees the controller moved on.
        """
        self.state = RerouteState()
        self._swapping = None

    def request(
        self, position: Optional[Coordinate] = None, automatic: bool = True
    ) -> RerouteOutcome:
        """Check the guards and, if they pass, start a reroute in the background.

        Must be called from a running event loop.

        Args:
            position: Rider position (defaults to the session's current position)
            automatic: Triggered by off-route detection rather than by the user

        Returns:
            STARTED when a route request was issued, otherwise the guard that
            rejected it
        """
        settings = get_settings()
        session = self.navigation.session
        if session is None:
            return RerouteOutcome.NOT_NAVIGATING

        if position is None:
            position = session.current_position or session.route.start

        state = self.state
        now = self.clock()

        if state.last_reroute_time is not None:
            elapsed = now - state.last_reroute_time
            if elapsed < settings.REROUTE_COOLDOWN_S:
                wait_s = math.ceil(settings.REROUTE_COOLDOWN_S - elapsed)
                self.signals.emit(
                    SignalType.REROUTE_COOLDOWN,
                    f"Rerouting on cooldown, wait {wait_s}s",
                    wait_s=wait_s,
                )
                return RerouteOutcome.COOLDOWN

        if state.last_reroute_position is not None:
            moved = geodesic_distance_m(position, state.last_reroute_position)
            if moved < settings.REROUTE_POSITION_THRESHOLD_M:
                move_m = math.ceil(settings.REROUTE_POSITION_THRESHOLD_M - moved)
                # Counts as an attempt so a stationary rider is rate-limited too
                state.last_reroute_time = now
                self.signals.emit(
                    SignalType.REROUTE_POSITION_GUARD,
                    f"Rerouting blocked: move {move_m}m more",
                    move_m=move_m,
                )
                return RerouteOutcome.SAME_POSITION

        if state.in_progress:
            logger.debug("Reroute already in progress")
            return RerouteOutcome.IN_PROGRESS

        run = self._run(state, session.session_id, position, session.route)
        try:
            self._task = asyncio.create_task(run)
        except RuntimeError:
            run.close()
            raise
        state.in_progress = True

        preference = session.route.preference
        self.signals.emit(
            SignalType.REROUTE_STARTED,
            f"Calculating new {preference.value} route",
            preference=preference.value,
            automatic=automatic,
        )
        return RerouteOutcome.STARTED

    async def wait(self) -> Optional[RerouteOutcome]:
        """Wait for the reroute in flight, if any, and return its outcome."""
        if self._task is None:
            return None
        return await self._task

    def _is_current(self, state: RerouteState, session_id: str) -> bool:
        session = self.navigation.session
        return (
            self.state is state and session is not None and session.session_id == session_id
        )

    async def _run(
        self,
        state: RerouteState,
        session_id: str,
        position: Coordinate,
        route: ActiveRoute,
    ) -> RerouteOutcome:
        settings = get_settings()
        routes: List[ActiveRoute] = []
        error: Optional[str] = None

        try:
            try:
                routes = await asyncio.wait_for(
                    self.routing_service.calculate_routes(position, route.destination),
                    timeout=settings.REROUTE_REQUEST_TIMEOUT_S,
                )
            except asyncio.TimeoutError:
                error = "Route request timed out"
            except RideNavException as e:
                error = e.message
            except Exception as e:
                logger.error(f"Unexpected rerouting error: {str(e)}", exc_info=True)
                error = str(e)

            if not self._is_current(state, session_id):
                logger.info(
                    "Discarding reroute result, navigation session changed",
                    extra={"extra_fields": {"reroute_session_id": session_id}},
                )
                return RerouteOutcome.DISCARDED

            if error is not None or not routes:
                state.last_reroute_time = self.clock()
                message = error or "No route found"
                self.signals.emit(
                    SignalType.REROUTE_FAILED, f"Rerouting failed: {message}", reason=message
                )
                return RerouteOutcome.FAILED

            new_route = select_route(routes, route.preference)
            state.last_reroute_position = position
            state.last_reroute_time = self.clock()

            catalog = self.navigation.catalog_hazards
            self._swapping = state
            self.navigation.end_session()
            try:
                await asyncio.sleep(settings.REROUTE_SETTLE_DELAY_S)
            finally:
                if self._swapping is state:
                    self._swapping = None

            # The user may have stopped or started navigation during the settle delay
            if self.state is not state or self.navigation.session is not None:
                logger.info("Discarding reroute result, navigation changed while settling")
                return RerouteOutcome.DISCARDED

            self.navigation.begin_session(new_route, catalog)
            self.signals.emit(
                SignalType.REROUTE_SUCCEEDED,
                "Route recalculated",
                preference=new_route.preference.value,
                distance_km=new_route.distance_km,
                duration_min=new_route.duration_min,
            )
            return RerouteOutcome.SUCCEEDED

        finally:
            state.in_progress = False
