"""Navigation session, position and warning schemas."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ridenav.schemas.route import ActiveRoute, CatalogHazard, Coordinate, ManeuverInstruction


class PositionFix(BaseModel):
    """Single reading from the position source.

    Speed, heading and accuracy are optional; sources that report an invalid
    reading as a negative number are treated the same as a missing value.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None
    accuracy_m: Optional[float] = None
    timestamp: datetime

    @field_validator("speed_mps", "accuracy_m", "heading_deg")
    @classmethod
    def negative_is_unknown(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            return None
        return v

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)

    @property
    def speed_kmh(self) -> Optional[float]:
        if self.speed_mps is None:
            return None
        return self.speed_mps * 3.6


class SurfaceQuality(str, Enum):
    """Road surface quality classification."""

    POOR = "poor"
    UNKNOWN = "unknown"


class HazardWarning(BaseModel):
    """Community hazard part of a route warning."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["community_hazard"] = "community_hazard"
    hazard: CatalogHazard
    distance_from_route_m: float = 0.0


class SurfaceWarning(BaseModel):
    """Surface quality part of a route warning."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["surface_quality"] = "surface_quality"
    quality: SurfaceQuality
    length_m: float
    surface_type: str = ""


WarningDetail = Annotated[Union[HazardWarning, SurfaceWarning], Field(discriminator="kind")]


class RouteWarning(BaseModel):
    """Upcoming warning on the active route."""

    model_config = ConfigDict(frozen=True)

    distance_along_route_m: float
    distance_from_position_m: float
    detail: WarningDetail

    @property
    def kind(self) -> str:
        return self.detail.kind

    @property
    def title(self) -> str:
        if isinstance(self.detail, HazardWarning):
            return self.detail.hazard.title or "Warning"
        quality = "Poor" if self.detail.quality == SurfaceQuality.POOR else "Unknown surface"
        length = self.detail.length_m
        if length <= 0:
            return quality
        if length >= 1000:
            return f"{quality} - {length / 1000:.1f}km"
        return f"{quality} - {length:.0f}m"


class NavigationStatus(str, Enum):
    """Top-level engine state."""

    IDLE = "idle"
    NAVIGATING = "navigating"


class TripStats(BaseModel):
    """Trip accumulators of a navigation session."""

    distance_traveled_m: float = 0.0
    elapsed_s: float = 0.0
    moving_s: float = 0.0
    average_speed_with_stops_mps: float = 0.0
    average_speed_without_stops_mps: float = 0.0


class NavigationSnapshot(BaseModel):
    """Read-only view of the navigation state after an accepted fix."""

    status: NavigationStatus = NavigationStatus.IDLE
    session_id: Optional[str] = None
    route: Optional[ActiveRoute] = None
    current_position: Optional[Coordinate] = None
    current_speed_mps: Optional[float] = None
    current_heading_deg: Optional[float] = None
    current_segment_index: int = 0
    maneuvers: List[ManeuverInstruction] = Field(default_factory=list)
    next_maneuver: Optional[ManeuverInstruction] = None
    distance_to_next_maneuver_m: float = 0.0
    total_distance_remaining_m: float = 0.0
    estimated_time_remaining_s: int = 0
    eta_range_s: Optional[Tuple[int, int]] = None
    progress: float = 0.0
    is_off_route: bool = False
    off_route_distance_m: float = 0.0
    showing_off_route_dialog: bool = False
    is_approaching_destination: bool = False
    has_arrived: bool = False
    arrival_zone_entry_time: Optional[datetime] = None
    warnings: List[RouteWarning] = Field(default_factory=list)
    upcoming_warnings: List[RouteWarning] = Field(default_factory=list)
    trip: TripStats = Field(default_factory=TripStats)
    last_update_time: Optional[datetime] = None


class SignalType(str, Enum):
    """One-shot notifications for the presentation layer."""

    REROUTE_STARTED = "reroute_started"
    REROUTE_COOLDOWN = "reroute_cooldown"
    REROUTE_POSITION_GUARD = "reroute_position_guard"
    REROUTE_SUCCEEDED = "reroute_succeeded"
    REROUTE_FAILED = "reroute_failed"
    OFF_ROUTE = "off_route"
    ARRIVED = "arrived"


class NavigationSignal(BaseModel):
    """A discrete navigation event."""

    type: SignalType
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RerouteOutcome(str, Enum):
    """Result of a reroute request."""

    NOT_NAVIGATING = "not_navigating"
    COOLDOWN = "cooldown"
    SAME_POSITION = "same_position"
    IN_PROGRESS = "in_progress"
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISCARDED = "discarded"


class StartNavigationRequest(BaseModel):
    """Start navigating a route against a hazard catalog snapshot."""

    route: ActiveRoute
    hazards: List[CatalogHazard] = Field(default_factory=list)


class PositionUpdateResponse(BaseModel):
    """Whether a fix passed the position gate, plus the resulting state."""

    accepted: bool
    snapshot: NavigationSnapshot


class RerouteResponse(BaseModel):
    """Outcome of a manual route recalculation."""

    outcome: RerouteOutcome
    snapshot: NavigationSnapshot


class SignalsResponse(BaseModel):
    """Buffered signals since the previous poll."""

    signals: List[NavigationSignal]
