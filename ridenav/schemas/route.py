"""Route, maneuver and hazard schemas."""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """Geographic coordinate (WGS84)."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RoutePreference(str, Enum):
    """Route preference tag used when the route was computed."""

    FASTEST = "fastest"
    SAFEST = "safest"
    SHORTEST = "shortest"


class SurfaceDetail(BaseModel):
    """Surface type for the route stretch between two point indices."""

    model_config = ConfigDict(frozen=True)

    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    surface: str = ""


class CatalogHazard(BaseModel):
    """Community-reported point hazard from the warning catalog."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    type: str = "hazard"  # pothole, construction, debris, flooding, ...
    severity: str = "medium"  # low, medium, high
    title: str
    description: str = ""
    location: Coordinate
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RouteHazard(BaseModel):
    """Catalog hazard projected onto a route."""

    model_config = ConfigDict(frozen=True)

    hazard: CatalogHazard
    distance_along_route_m: float
    distance_from_route_m: float
    closest_point: Coordinate


class ActiveRoute(BaseModel):
    """A computed route accepted for navigation.

    Immutable: a reroute replaces the whole route, it never edits one in place.
    """

    model_config = ConfigDict(frozen=True)

    preference: RoutePreference = RoutePreference.FASTEST
    points: Tuple[Coordinate, ...] = Field(..., min_length=2)
    distance_m: float = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)
    surface_details: Tuple[SurfaceDetail, ...] = ()
    hazards: Tuple[RouteHazard, ...] = ()

    @property
    def start(self) -> Coordinate:
        return self.points[0]

    @property
    def destination(self) -> Coordinate:
        return self.points[-1]

    @property
    def distance_km(self) -> float:
        return round(self.distance_m / 1000, 2)

    @property
    def duration_min(self) -> int:
        return round(self.duration_ms / 60000)

    def with_hazards(self, hazards: List[RouteHazard]) -> "ActiveRoute":
        """Return a copy of this route with the projected hazards attached."""
        return self.model_copy(update={"hazards": tuple(hazards)})


class ManeuverType(str, Enum):
    """Type of navigation maneuver."""

    DEPART = "depart"
    STRAIGHT = "straight"
    SLIGHT_LEFT = "slight_left"
    TURN_LEFT = "turn_left"
    SHARP_LEFT = "sharp_left"
    SLIGHT_RIGHT = "slight_right"
    TURN_RIGHT = "turn_right"
    SHARP_RIGHT = "sharp_right"
    U_TURN = "u_turn"
    ARRIVE = "arrive"


class ManeuverInstruction(BaseModel):
    """Turn-by-turn instruction located at a route point."""

    model_config = ConfigDict(frozen=True)

    type: ManeuverType
    route_index: int = Field(..., ge=0)
    text: str
    location: Coordinate
    distance_from_start_m: float = 0.0


class RouteRequest(BaseModel):
    """Request for candidate routes between two points."""

    origin: Coordinate
    destination: Coordinate


class RouteOptionsResponse(BaseModel):
    """Candidate routes returned by the routing service."""

    routes: List[ActiveRoute]
    meta: Dict[str, Any] = Field(default_factory=dict)
