"""RideNav Route Geometry Utilities.

This module provides the geometric primitives the navigation engine runs on:
closest-segment lookup, perpendicular distance to a route, cumulative distance
along a route and remaining distance to the destination.

Routes arrive in WGS84 (EPSG:4326). Each route is projected once into a local
azimuthal equidistant frame centred on its first point, so segment distances
and projections are plain planar operations in metres. Point-to-point
distances between fixes use the WGS84 ellipsoid directly.
"""

import logging
from functools import lru_cache
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

from pyproj import Geod, Transformer
from shapely.geometry import LineString, Point

from ridenav.config import get_settings
from ridenav.core.exceptions import InvalidRouteError
from ridenav.schemas.route import Coordinate

logger = logging.getLogger(__name__)

GEOD = Geod(ellps="WGS84")


def geodesic_distance_m(a: Coordinate, b: Coordinate) -> float:
    """Distance between two coordinates on the WGS84 ellipsoid, in metres."""
    _, _, distance = GEOD.inv(a.lng, a.lat, b.lng, b.lat)
    return distance


def bearing_deg(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from a to b (0-360 degrees, 0 = North)."""
    azimuth, _, _ = GEOD.inv(a.lng, a.lat, b.lng, b.lat)
    return azimuth % 360


def normalize_angle(angle: float) -> float:
    """Normalize an angle difference to the -180..+180 range."""
    while angle > 180:
        angle -= 360
    while angle < -180:
        angle += 360
    return angle


class SegmentProjection(NamedTuple):
    """Projection of a position onto one route segment."""

    segment_index: int
    distance_m: float  # perpendicular distance from the segment
    offset_m: float  # distance from the segment start to the projection point


class RouteGeometry:
    """Route polyline projected into a local metric frame."""

    def __init__(self, points: Sequence[Coordinate]):
        if len(points) < 2:
            raise InvalidRouteError()

        self.points: Tuple[Coordinate, ...] = tuple(points)
        origin = self.points[0]
        local_crs = (
            f"+proj=aeqd +lat_0={origin.lat} +lon_0={origin.lng} +datum=WGS84 +units=m"
        )
        self._to_local = Transformer.from_crs("EPSG:4326", local_crs, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(local_crs, "EPSG:4326", always_xy=True)

        xs, ys = self._to_local.transform(
            [p.lng for p in self.points], [p.lat for p in self.points]
        )
        self._xy: List[Tuple[float, float]] = list(zip(xs, ys))
        self.line = LineString(self._xy)

        self.segments: List[LineString] = [
            LineString([self._xy[i], self._xy[i + 1]]) for i in range(len(self._xy) - 1)
        ]
        self.segment_lengths: List[float] = [segment.length for segment in self.segments]

        # cumulative[i] = length of all segments strictly before point i
        self.cumulative: List[float] = [0.0]
        for length in self.segment_lengths:
            self.cumulative.append(self.cumulative[-1] + length)

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    @property
    def length_m(self) -> float:
        return self.cumulative[-1]

    def clamp_segment(self, segment_index: int) -> int:
        return min(max(segment_index, 0), self.segment_count - 1)

    def to_local(self, position: Coordinate) -> Point:
        x, y = self._to_local.transform(position.lng, position.lat)
        return Point(x, y)

    def to_coordinate(self, point: Point) -> Coordinate:
        lng, lat = self._to_wgs84.transform(point.x, point.y)
        return Coordinate(lat=lat, lng=lng)

    def project(self, position: Coordinate, segment_index: int) -> SegmentProjection:
        """Project a position onto a single segment."""
        segment_index = self.clamp_segment(segment_index)
        return self._project_local(self.to_local(position), segment_index)

    def _project_local(self, point: Point, segment_index: int) -> SegmentProjection:
        segment = self.segments[segment_index]
        if self.segment_lengths[segment_index] == 0:
            start = Point(self._xy[segment_index])
            return SegmentProjection(segment_index, point.distance(start), 0.0)
        return SegmentProjection(segment_index, segment.distance(point), segment.project(point))

    def nearest_segment(self, position: Coordinate) -> SegmentProjection:
        """Segment with the smallest perpendicular distance; ties go to the lowest index."""
        point = self.to_local(position)
        best = self._project_local(point, 0)
        for index in range(1, self.segment_count):
            candidate = self._project_local(point, index)
            if candidate.distance_m < best.distance_m:
                best = candidate
        return best

    def point_on_segment(self, segment_index: int, offset_m: float) -> Coordinate:
        """Coordinate at a distance along a segment."""
        segment_index = self.clamp_segment(segment_index)
        return self.to_coordinate(self.segments[segment_index].interpolate(offset_m))

    def distance_to_index(
        self, position: Coordinate, current_segment: int, point_index: int
    ) -> float:
        """Distance from a position to a route point, following the route.

        Sums the offset from the position to its projection on the current
        segment, the rest of that segment and every full segment up to the
        target point. Points at or behind the current segment start yield 0.
        """
        current_segment = self.clamp_segment(current_segment)
        point_index = min(max(point_index, 0), len(self.points) - 1)
        if point_index <= current_segment:
            return 0.0

        projection = self.project(position, current_segment)
        rest_of_segment = self.segment_lengths[current_segment] - projection.offset_m
        following = self.cumulative[point_index] - self.cumulative[current_segment + 1]
        return projection.distance_m + max(rest_of_segment, 0.0) + following

    def within_bounds(self, position: Coordinate, margin_m: float) -> bool:
        """Cheap bounding-box test in the local frame."""
        point = self.to_local(position)
        min_x, min_y, max_x, max_y = self.line.bounds
        return (
            min_x - margin_m <= point.x <= max_x + margin_m
            and min_y - margin_m <= point.y <= max_y + margin_m
        )


RouteLike = Union[RouteGeometry, Sequence[Coordinate]]


@lru_cache(maxsize=16)
def route_geometry(points: Tuple[Coordinate, ...]) -> RouteGeometry:
    """Build (and cache) the projected geometry of a route."""
    logger.debug(f"Projecting route geometry with {len(points)} points")
    return RouteGeometry(points)


def as_geometry(route: RouteLike) -> RouteGeometry:
    if isinstance(route, RouteGeometry):
        return route
    return route_geometry(tuple(route))


def closest_segment(position: Coordinate, route: RouteLike) -> int:
    """Index of the route segment nearest to the position (lowest index on ties)."""
    return as_geometry(route).nearest_segment(position).segment_index


def distance_to_route(position: Coordinate, route: RouteLike) -> float:
    """Minimum perpendicular distance in metres from the position to any segment."""
    return as_geometry(route).nearest_segment(position).distance_m


def off_route_threshold(speed_kmh: Optional[float] = None) -> float:
    """Speed-adaptive off-route threshold in metres.

    Unknown speed uses the base threshold. Above the loosening speed the
    threshold grows linearly, bounded by the configured floor and cap.
    """
    settings = get_settings()
    threshold = settings.OFF_ROUTE_BASE_THRESHOLD_M
    if speed_kmh is not None and speed_kmh > settings.OFF_ROUTE_LOOSEN_FROM_KMH:
        threshold += (speed_kmh - settings.OFF_ROUTE_LOOSEN_FROM_KMH) * (
            settings.OFF_ROUTE_LOOSEN_M_PER_KMH
        )
    return min(max(threshold, settings.OFF_ROUTE_MIN_THRESHOLD_M), settings.OFF_ROUTE_MAX_THRESHOLD_M)


def exceeds_off_route_threshold(distance_m: float, speed_kmh: Optional[float] = None) -> bool:
    """True only when the distance is strictly beyond the threshold."""
    return distance_m > off_route_threshold(speed_kmh)


def is_off_route(
    position: Coordinate, route: RouteLike, speed_kmh: Optional[float] = None
) -> bool:
    """Whether the position is farther from the route than the adaptive threshold."""
    return exceeds_off_route_threshold(distance_to_route(position, route), speed_kmh)


def remaining_distance(position: Coordinate, route: RouteLike, current_segment: int) -> float:
    """Distance from the position to the end of the route, following the route."""
    geometry = as_geometry(route)
    return geometry.distance_to_index(position, current_segment, len(geometry.points) - 1)


def distance_along_route(route: RouteLike, upto_segment_index: int) -> float:
    """Cumulative length of all segments strictly before the given index."""
    geometry = as_geometry(route)
    index = min(max(upto_segment_index, 0), len(geometry.points) - 1)
    return geometry.cumulative[index]


def progress_along_route(position: Coordinate, route: RouteLike, current_segment: int) -> float:
    """Rider's distance from the route start: segment start plus projection offset."""
    geometry = as_geometry(route)
    projection = geometry.project(position, current_segment)
    return geometry.cumulative[projection.segment_index] + projection.offset_m
