"""Builders for synthetic routes, fixes and hazards.

Routes are laid out with geodesic steps so segment lengths are exact metres.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from pyproj import Geod

from ridenav.schemas.navigation import PositionFix
from ridenav.schemas.route import ActiveRoute, CatalogHazard, Coordinate, RoutePreference

GEOD = Geod(ellps="WGS84")

# Southampton city centre
ORIGIN = Coordinate(lat=50.9097, lng=-1.4044)
BASE_TIME = datetime(2024, 6, 1, 8, 0, 0, tzinfo=timezone.utc)

EAST = 90.0
NORTH = 0.0


def offset(point: Coordinate, bearing: float, distance_m: float) -> Coordinate:
    """Coordinate at a geodesic distance and bearing from a point."""
    lng, lat, _ = GEOD.fwd(point.lng, point.lat, bearing, distance_m)
    return Coordinate(lat=lat, lng=lng)


def build_points(start: Coordinate, legs: Sequence[Tuple[float, float]]) -> List[Coordinate]:
    """Route points from a start and a list of (bearing, length_m) legs."""
    points = [start]
    for bearing, length in legs:
        points.append(offset(points[-1], bearing, length))
    return points


def make_route(
    points: Sequence[Coordinate],
    preference: RoutePreference = RoutePreference.FASTEST,
    surface_details=(),
) -> ActiveRoute:
    distance = 0.0
    for a, b in zip(points, points[1:]):
        _, _, d = GEOD.inv(a.lng, a.lat, b.lng, b.lat)
        distance += d
    return ActiveRoute(
        preference=preference,
        points=tuple(points),
        distance_m=distance,
        duration_ms=int(distance / 4.17 * 1000),
        surface_details=tuple(surface_details),
    )


def along(route: ActiveRoute, distance_m: float) -> Coordinate:
    """Point at a distance from the start of a route heading due east."""
    return offset(route.start, EAST, distance_m)


def make_fix(
    position: Coordinate,
    t_s: float,
    speed_mps: Optional[float] = 5.0,
    accuracy_m: Optional[float] = 5.0,
    heading_deg: Optional[float] = None,
) -> PositionFix:
    return PositionFix(
        lat=position.lat,
        lng=position.lng,
        speed_mps=speed_mps,
        heading_deg=heading_deg,
        accuracy_m=accuracy_m,
        timestamp=BASE_TIME + timedelta(seconds=t_s),
    )


def make_hazard(
    location: Coordinate, title: str = "Pothole", hazard_id: str = "h1"
) -> CatalogHazard:
    return CatalogHazard(id=hazard_id, type="pothole", title=title, location=location)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
