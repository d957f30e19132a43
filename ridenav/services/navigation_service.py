"""Navigation session state machine.

Owns the single active navigation session: starts it from an accepted route,
updates it on every accepted position fix and tears it down on stop. Off-route
and arrival are flags on top of the navigating state.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import AsyncIterable, Callable, Iterable, List, Optional, Tuple

from ridenav.config import get_settings
from ridenav.core.logging_config import clear_session_id, set_session_id
from ridenav.schemas.navigation import (
    HazardWarning,
    NavigationSnapshot,
    NavigationStatus,
    PositionFix,
    RerouteOutcome,
    RouteWarning,
    SignalType,
    TripStats,
)
from ridenav.schemas.route import (
    ActiveRoute,
    CatalogHazard,
    Coordinate,
    ManeuverInstruction,
    RouteHazard,
)
from ridenav.services.hazard_service import detect_hazards_on_route
from ridenav.services.maneuver_service import (
    calculate_distance_to_maneuver,
    detect_maneuvers,
    find_next_maneuver,
)
from ridenav.services.position_gate import PositionGate
from ridenav.services.reroute_service import RerouteController
from ridenav.services.routing_service import RoutingService
from ridenav.services.signals import NavigationSignals
from ridenav.services.surface_service import analyze_route_surface
from ridenav.utils.geometry import (
    RouteGeometry,
    as_geometry,
    exceeds_off_route_threshold,
    geodesic_distance_m,
    progress_along_route,
)

logger = logging.getLogger(__name__)


def hazard_warnings(hazards: Iterable[RouteHazard]) -> List[RouteWarning]:
    return [
        RouteWarning(
            distance_along_route_m=h.distance_along_route_m,
            distance_from_position_m=h.distance_along_route_m,
            detail=HazardWarning(hazard=h.hazard, distance_from_route_m=h.distance_from_route_m),
        )
        for h in hazards
    ]


def rank_warnings(warnings: Iterable[RouteWarning], progress_m: float) -> List[RouteWarning]:
    """Re-measure warnings from the rider's progress, drop passed ones, sort.

    Args:
        warnings: Warnings with their distance along the route
        progress_m: Rider's distance from the route start

    Returns:
        Warnings still ahead, nearest first
    """
    ahead = []
    for warning in warnings:
        remaining = warning.distance_along_route_m - progress_m
        if remaining > 0:
            ahead.append(warning.model_copy(update={"distance_from_position_m": remaining}))
    ahead.sort(key=lambda w: w.distance_along_route_m)
    return ahead


class NavigationSession:
    """Mutable state of one navigation session."""

    def __init__(
        self,
        route: ActiveRoute,
        geometry: RouteGeometry,
        maneuvers: List[ManeuverInstruction],
        warnings: List[RouteWarning],
    ):
        self.session_id = uuid.uuid4().hex[:12]
        self.route = route
        self.geometry = geometry
        self.maneuvers = maneuvers
        self.warnings = warnings

        self.current_position: Optional[Coordinate] = None
        self.current_speed_mps: Optional[float] = None
        self.current_heading_deg: Optional[float] = None
        self.current_segment = 0
        self.next_maneuver = find_next_maneuver(maneuvers, 0)
        self.distance_to_next_maneuver_m = (
            self.next_maneuver.distance_from_start_m if self.next_maneuver else 0.0
        )
        self.distance_remaining_m = route.distance_m
        self.time_remaining_s = int(round(route.duration_ms / 1000))
        self.eta_range_s: Optional[Tuple[int, int]] = None
        self.progress_m = 0.0

        self.is_off_route = False
        self.off_route_distance_m = 0.0
        self.showing_off_route_dialog = False

        self.is_approaching_destination = False
        self.has_arrived = False
        self.arrival_zone_entry_time: Optional[datetime] = None

        self.trip = TripStats()
        self.last_fix: Optional[PositionFix] = None
        self.last_update_time: Optional[datetime] = None


class NavigationService:
    """Turn-by-turn navigation engine with automatic rerouting."""

    def __init__(
        self,
        routing_service: Optional[RoutingService] = None,
        signals: Optional[NavigationSignals] = None,
        clock: Callable[[], float] = time.monotonic,
        gate: Optional[PositionGate] = None,
    ):
        self.routing_service = routing_service or RoutingService()
        self.signals = signals or NavigationSignals()
        self.gate = gate or PositionGate()
        self.reroute = RerouteController(self, self.routing_service, self.signals, clock)
        self.session: Optional[NavigationSession] = None
        self.catalog_hazards: List[CatalogHazard] = []

    @property
    def is_navigating(self) -> bool:
        return self.session is not None

    # Commands

    def start_navigation(
        self, route: ActiveRoute, hazards: Iterable[CatalogHazard] = ()
    ) -> NavigationSnapshot:
        """Start navigating a route, replacing any active session.

        Args:
            route: Accepted route
            hazards: Hazard catalog snapshot used for this session and its reroutes

        Returns:
            Initial snapshot

        Raises:
            InvalidRouteError: Route cannot be navigated
        """
        if self.session is not None:
            self.end_session()
        self.reroute.reset()
        self.begin_session(route, list(hazards))
        return self.snapshot()

    def stop_navigation(self) -> NavigationSnapshot:
        """Stop navigating. Safe to call while idle or while a reroute is in flight."""
        if self.session is None and not self.reroute.swapping:
            return self.snapshot()
        self.reroute.reset()
        self.end_session()
        self.catalog_hazards = []
        return self.snapshot()

    def dismiss_off_route_dialog(self) -> NavigationSnapshot:
        """Hide the off-route prompt without touching the off-route flag."""
        if self.session is not None:
            self.session.showing_off_route_dialog = False
        return self.snapshot()

    async def recalculate_route(self) -> RerouteOutcome:
        """Manual reroute from the current position, subject to the same guards."""
        if self.session is not None:
            self.session.showing_off_route_dialog = False
        outcome = self.reroute.request(automatic=False)
        if outcome == RerouteOutcome.STARTED:
            outcome = await self.reroute.wait()
        return outcome

    async def wait_for_reroute(self) -> Optional[RerouteOutcome]:
        return await self.reroute.wait()

    # Session lifecycle

    def begin_session(self, route: ActiveRoute, hazards: List[CatalogHazard]) -> None:
        """Build a session for the route. Reroute bookkeeping is left as is."""
        settings = get_settings()
        geometry = as_geometry(route.points)

        maneuvers = detect_maneuvers(geometry)
        route_hazards = detect_hazards_on_route(geometry, hazards, settings.HAZARD_BUFFER_M)
        route = route.with_hazards(route_hazards)
        warnings = rank_warnings(
            hazard_warnings(route_hazards) + analyze_route_surface(route), 0.0
        )

        self.catalog_hazards = hazards
        self.session = NavigationSession(route, geometry, maneuvers, warnings)
        self.gate.reset()
        set_session_id(self.session.session_id)

        logger.info(
            "Navigation started",
            extra={
                "extra_fields": {
                    "preference": route.preference.value,
                    "points": len(route.points),
                    "distance_km": route.distance_km,
                    "maneuvers": len(maneuvers),
                    "warnings": len(warnings),
                }
            },
        )

    def end_session(self) -> None:
        if self.session is None:
            return
        logger.info(
            "Navigation stopped",
            extra={
                "extra_fields": {
                    "distance_traveled_m": round(self.session.trip.distance_traveled_m, 1),
                    "has_arrived": self.session.has_arrived,
                }
            },
        )
        self.session = None
        clear_session_id()

    # Position handling

    def submit_fix(self, fix: PositionFix) -> Tuple[bool, NavigationSnapshot]:
        """Offer a raw fix to the engine through the position gate.

        Returns:
            (accepted, snapshot) where accepted is False for dropped fixes
        """
        if self.session is None or not self.gate.accept(fix):
            return False, self.snapshot()
        return True, self.on_position_fix(fix)

    async def track_positions(
        self,
        source: AsyncIterable[PositionFix],
        on_snapshot: Optional[Callable[[NavigationSnapshot], None]] = None,
    ) -> int:
        """Consume a position source until it ends or navigation stops.

        Fixes arriving while a reroute swaps sessions are skipped.

        Args:
            source: Async iterator of raw fixes
            on_snapshot: Called with the snapshot after every accepted fix

        Returns:
            Number of fixes that passed the gate
        """
        accepted = 0
        async for fix in self.gate.throttle(source):
            if self.session is None:
                if self.reroute.swapping:
                    continue
                break
            snapshot = self.on_position_fix(fix)
            accepted += 1
            if on_snapshot is not None:
                on_snapshot(snapshot)
        return accepted

    def on_position_fix(self, fix: PositionFix) -> NavigationSnapshot:
        """Update the session from one accepted fix."""
        session = self.session
        if session is None:
            return self.snapshot()

        settings = get_settings()
        geometry = session.geometry
        position = fix.coordinate

        # Progress
        nearest = geometry.nearest_segment(position)
        segment = max(nearest.segment_index, session.current_segment)
        off_route = exceeds_off_route_threshold(nearest.distance_m, fix.speed_kmh)
        remaining = geometry.distance_to_index(position, segment, len(geometry.points) - 1)
        progress_m = progress_along_route(position, geometry, segment)

        session.current_position = position
        session.current_speed_mps = fix.speed_mps
        session.current_heading_deg = fix.heading_deg
        session.current_segment = segment
        session.distance_remaining_m = remaining
        session.progress_m = progress_m

        # Warnings
        session.warnings = rank_warnings(session.warnings, progress_m)

        # Maneuvers
        session.next_maneuver = find_next_maneuver(
            session.maneuvers, segment, progress_m - geometry.cumulative[segment]
        )
        session.distance_to_next_maneuver_m = calculate_distance_to_maneuver(
            position, geometry, segment, session.next_maneuver
        )

        # ETA
        speed = fix.speed_mps
        if speed is None or speed < settings.MIN_ETA_SPEED_MPS:
            speed = settings.DEFAULT_CYCLING_SPEED_MPS
        session.time_remaining_s = int(round(remaining / speed))

        self._update_arrival(session, fix)
        self._update_trip(session, fix)
        session.eta_range_s = self._eta_range(session)
        session.last_fix = fix
        session.last_update_time = fix.timestamp

        # Off-route
        was_off_route = session.is_off_route
        session.is_off_route = off_route
        session.off_route_distance_m = nearest.distance_m
        if off_route and not was_off_route:
            session.showing_off_route_dialog = True
            self.signals.emit(
                SignalType.OFF_ROUTE,
                "Off route",
                distance_m=round(nearest.distance_m, 1),
            )
        elif not off_route:
            session.showing_off_route_dialog = False

        logger.debug(
            "Position update",
            extra={
                "extra_fields": {
                    "segment": segment,
                    "distance_to_route_m": round(nearest.distance_m, 1),
                    "remaining_m": round(remaining, 1),
                    "off_route": off_route,
                    "arrived": session.has_arrived,
                }
            },
        )

        snapshot = self.snapshot()

        if off_route and not self.reroute.in_progress:
            self.reroute.request(position, automatic=True)
        elif off_route:
            logger.debug("Off route, reroute already in flight")

        return snapshot

    def _update_arrival(self, session: NavigationSession, fix: PositionFix) -> None:
        settings = get_settings()
        if session.has_arrived:
            return

        distance = geodesic_distance_m(fix.coordinate, session.route.destination)
        in_zone = (
            distance < settings.ARRIVAL_DISTANCE_M
            and fix.accuracy_m is not None
            and fix.accuracy_m < settings.ARRIVAL_ACCURACY_M
        )
        if not in_zone:
            session.is_approaching_destination = False
            session.arrival_zone_entry_time = None
            return

        session.is_approaching_destination = True
        if (fix.speed_kmh or 0.0) >= settings.ARRIVAL_SPEED_KMH:
            session.arrival_zone_entry_time = None
            return

        if session.arrival_zone_entry_time is None:
            session.arrival_zone_entry_time = fix.timestamp
            return

        dwell = (fix.timestamp - session.arrival_zone_entry_time).total_seconds()
        if dwell >= settings.ARRIVAL_DWELL_S:
            session.has_arrived = True
            session.is_approaching_destination = False
            self.signals.emit(
                SignalType.ARRIVED,
                "You have arrived at your destination",
                dwell_s=round(dwell, 1),
            )

    def _update_trip(self, session: NavigationSession, fix: PositionFix) -> None:
        settings = get_settings()
        previous = session.last_fix
        if previous is None:
            return

        trip = session.trip
        dt = max((fix.timestamp - previous.timestamp).total_seconds(), 0.0)
        dd = geodesic_distance_m(previous.coordinate, fix.coordinate)
        speed = fix.speed_mps
        if speed is None:
            speed = dd / dt if dt > 0 else 0.0

        trip.distance_traveled_m += dd
        trip.elapsed_s += dt
        if speed > settings.MOVING_SPEED_MPS:
            trip.moving_s += dt

        if trip.elapsed_s > 0:
            trip.average_speed_with_stops_mps = trip.distance_traveled_m / trip.elapsed_s
        if trip.moving_s > 0:
            trip.average_speed_without_stops_mps = trip.distance_traveled_m / trip.moving_s

    @staticmethod
    def _eta_range(session: NavigationSession) -> Optional[Tuple[int, int]]:
        """(optimistic, pessimistic) seconds from the moving and overall averages."""
        settings = get_settings()
        trip = session.trip
        if trip.elapsed_s < settings.ETA_RANGE_MIN_ELAPSED_S:
            return None
        slow = trip.average_speed_with_stops_mps
        fast = trip.average_speed_without_stops_mps
        if slow < settings.MIN_ETA_SPEED_MPS or fast < settings.MIN_ETA_SPEED_MPS:
            return None
        remaining = session.distance_remaining_m
        return int(round(remaining / fast)), int(round(remaining / slow))

    # Views

    def snapshot(self) -> NavigationSnapshot:
        session = self.session
        if session is None:
            return NavigationSnapshot()

        settings = get_settings()
        total = session.geometry.length_m
        progress = min(max(session.progress_m / total, 0.0), 1.0) if total > 0 else 0.0
        if session.has_arrived:
            progress = 1.0

        return NavigationSnapshot(
            status=NavigationStatus.NAVIGATING,
            session_id=session.session_id,
            route=session.route,
            current_position=session.current_position,
            current_speed_mps=session.current_speed_mps,
            current_heading_deg=session.current_heading_deg,
            current_segment_index=session.current_segment,
            maneuvers=list(session.maneuvers),
            next_maneuver=session.next_maneuver,
            distance_to_next_maneuver_m=session.distance_to_next_maneuver_m,
            total_distance_remaining_m=session.distance_remaining_m,
            estimated_time_remaining_s=session.time_remaining_s,
            eta_range_s=session.eta_range_s,
            progress=progress,
            is_off_route=session.is_off_route,
            off_route_distance_m=session.off_route_distance_m,
            showing_off_route_dialog=session.showing_off_route_dialog,
            is_approaching_destination=session.is_approaching_destination,
            has_arrived=session.has_arrived,
            arrival_zone_entry_time=session.arrival_zone_entry_time,
            warnings=list(session.warnings),
            upcoming_warnings=session.warnings[: settings.UPCOMING_WARNINGS_LIMIT],
            trip=session.trip.model_copy(),
            last_update_time=session.last_update_time,
        )
