"""Route surface classification.

Turns the per-stretch surface details of a route into surface warnings. Paved
stretches produce nothing; everything else is reported as poor or unknown.
"""

import logging
from typing import List, Optional

from ridenav.schemas.navigation import RouteWarning, SurfaceQuality, SurfaceWarning
from ridenav.schemas.route import ActiveRoute, Coordinate
from ridenav.utils.geometry import as_geometry, closest_segment, progress_along_route

logger = logging.getLogger(__name__)

GOOD_SURFACES = frozenset({"asphalt", "concrete", "paved", "compacted", "fine_gravel"})

POOR_SURFACES = frozenset(
    {
        "gravel",
        "unpaved",
        "dirt",
        "ground",
        "earth",
        "sand",
        "grass",
        "mud",
        "cobblestone",
        "sett",
        "unhewn_cobblestone",
        "pebblestone",
        "wood",
    }
)


def classify_surface_quality(surface: Optional[str]) -> Optional[SurfaceQuality]:
    """Classify a surface tag.

    Returns:
        None for good surfaces, otherwise POOR or UNKNOWN
    """
    tag = (surface or "").strip().lower()
    if tag in GOOD_SURFACES:
        return None
    if tag in POOR_SURFACES or tag.startswith("cobble"):
        return SurfaceQuality.POOR
    return SurfaceQuality.UNKNOWN


def analyze_route_surface(
    route: ActiveRoute, current_position: Optional[Coordinate] = None
) -> List[RouteWarning]:
    """Build surface warnings for every non-paved stretch of a route.

    Adjacent stretches with the same classification are merged into one
    warning. Distances from the current position are measured along the route
    when a position is given, otherwise from the route start.

    Args:
        route: Route with surface details attached
        current_position: Rider position, if known

    Returns:
        Surface warnings sorted by distance along route
    """
    geometry = as_geometry(route.points)
    last_index = len(geometry.points) - 1

    origin_m = 0.0
    if current_position is not None:
        segment = closest_segment(current_position, geometry)
        origin_m = progress_along_route(current_position, geometry, segment)

    stretches = []  # [start_m, end_m, quality, surface]
    for detail in sorted(route.surface_details, key=lambda d: d.start_index):
        quality = classify_surface_quality(detail.surface)
        if quality is None:
            continue

        start_index = min(detail.start_index, last_index)
        end_index = min(max(detail.end_index, start_index), last_index)
        start_m = geometry.cumulative[start_index]
        end_m = geometry.cumulative[end_index]

        previous = stretches[-1] if stretches else None
        if previous and previous[2] == quality and abs(previous[1] - start_m) < 1e-6:
            previous[1] = end_m
            if detail.surface and detail.surface not in previous[3].split(", "):
                previous[3] = f"{previous[3]}, {detail.surface}" if previous[3] else detail.surface
            continue

        stretches.append([start_m, end_m, quality, detail.surface or ""])

    warnings = [
        RouteWarning(
            distance_along_route_m=start_m,
            distance_from_position_m=start_m - origin_m,
            detail=SurfaceWarning(quality=quality, length_m=end_m - start_m, surface_type=surface),
        )
        for start_m, end_m, quality, surface in stretches
    ]

    logger.debug(f"Surface analysis produced {len(warnings)} warnings")
    return warnings
