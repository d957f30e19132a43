"""Turn-by-turn maneuver extraction.

Runs once per accepted route: walks consecutive point triples, measures the
bearing change at the middle point and classifies it into a maneuver type.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ridenav.config import get_settings
from ridenav.schemas.route import Coordinate, ManeuverInstruction, ManeuverType
from ridenav.utils.geometry import RouteLike, as_geometry, bearing_deg, normalize_angle

logger = logging.getLogger(__name__)

INSTRUCTION_TEXT: Dict[ManeuverType, str] = {
    ManeuverType.DEPART: "Start your route",
    ManeuverType.STRAIGHT: "Continue straight",
    ManeuverType.SLIGHT_LEFT: "Keep left",
    ManeuverType.TURN_LEFT: "Turn left",
    ManeuverType.SHARP_LEFT: "Sharp left turn",
    ManeuverType.SLIGHT_RIGHT: "Keep right",
    ManeuverType.TURN_RIGHT: "Turn right",
    ManeuverType.SHARP_RIGHT: "Sharp right turn",
    ManeuverType.U_TURN: "Make a U-turn",
    ManeuverType.ARRIVE: "You have arrived at your destination",
}


def classify_turn(bearing_change: float) -> ManeuverType:
    """Classify a signed bearing change (degrees, clockwise positive).

    Args:
        bearing_change: Outgoing minus incoming bearing, normalized to -180..180

    Returns:
        Maneuver type; clockwise changes are right turns
    """
    settings = get_settings()
    magnitude = abs(bearing_change)

    if magnitude < settings.MANEUVER_SLIGHT_ANGLE_DEG:
        return ManeuverType.STRAIGHT

    if magnitude > settings.MANEUVER_UTURN_ANGLE_DEG:
        return ManeuverType.U_TURN

    if bearing_change > 0:
        if magnitude > settings.MANEUVER_SHARP_ANGLE_DEG:
            return ManeuverType.SHARP_RIGHT
        if magnitude > settings.MANEUVER_MEDIUM_ANGLE_DEG:
            return ManeuverType.TURN_RIGHT
        return ManeuverType.SLIGHT_RIGHT

    if magnitude > settings.MANEUVER_SHARP_ANGLE_DEG:
        return ManeuverType.SHARP_LEFT
    if magnitude > settings.MANEUVER_MEDIUM_ANGLE_DEG:
        return ManeuverType.TURN_LEFT
    return ManeuverType.SLIGHT_LEFT


def detect_maneuvers(route: RouteLike) -> List[ManeuverInstruction]:
    """Detect all maneuvers along a route.

    Args:
        route: Route points or their projected geometry

    Returns:
        Instructions ordered by route index: a depart at the first point, one
        per direction change, and an arrive at the last point
    """
    settings = get_settings()
    geometry = as_geometry(route)
    points: Sequence[Coordinate] = geometry.points

    maneuvers = [_instruction(ManeuverType.DEPART, 0, points[0], 0.0)]

    for i in range(1, len(points) - 1):
        # Direction changes on very short segments are GPS/geometry noise
        if (
            geometry.segment_lengths[i - 1] < settings.MANEUVER_MIN_SEGMENT_M
            or geometry.segment_lengths[i] < settings.MANEUVER_MIN_SEGMENT_M
        ):
            continue

        bearing_in = bearing_deg(points[i - 1], points[i])
        bearing_out = bearing_deg(points[i], points[i + 1])
        change = normalize_angle(bearing_out - bearing_in)

        maneuver_type = classify_turn(change)
        if maneuver_type == ManeuverType.STRAIGHT:
            continue

        maneuvers.append(_instruction(maneuver_type, i, points[i], geometry.cumulative[i]))
        logger.debug(
            "Maneuver detected",
            extra={
                "extra_fields": {
                    "type": maneuver_type.value,
                    "index": i,
                    "bearing_change": round(change, 1),
                }
            },
        )

    last = len(points) - 1
    maneuvers.append(_instruction(ManeuverType.ARRIVE, last, points[last], geometry.length_m))

    logger.info(f"Detected {len(maneuvers)} maneuvers")
    return maneuvers


def _instruction(
    maneuver_type: ManeuverType, index: int, location: Coordinate, distance_from_start: float
) -> ManeuverInstruction:
    return ManeuverInstruction(
        type=maneuver_type,
        route_index=index,
        text=INSTRUCTION_TEXT[maneuver_type],
        location=location,
        distance_from_start_m=distance_from_start,
    )


def find_next_maneuver(
    maneuvers: Sequence[ManeuverInstruction], current_segment: int, offset_m: float = 0.0
) -> Optional[ManeuverInstruction]:
    """First maneuver whose route index is at or after the current segment.

    Args:
        maneuvers: Maneuvers ordered by route index
        current_segment: Rider's current segment
        offset_m: Rider's distance along the current segment; a maneuver at
            the segment start is already behind the rider once this is > 0

    Returns:
        Next maneuver, or None past the last one
    """
    for maneuver in maneuvers:
        if maneuver.route_index > current_segment:
            return maneuver
        if maneuver.route_index == current_segment and offset_m <= 0:
            return maneuver
    return None


def calculate_distance_to_maneuver(
    position: Coordinate,
    route: RouteLike,
    current_segment: int,
    maneuver: Optional[ManeuverInstruction],
) -> float:
    """Distance from the position to the maneuver point, following the route."""
    if maneuver is None:
        return 0.0
    return as_geometry(route).distance_to_index(position, current_segment, maneuver.route_index)
