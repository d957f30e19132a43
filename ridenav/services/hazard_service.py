"""Community hazard projection onto a route.

Each catalog hazard is projected onto its nearest route segment and kept only
when it lies within the proximity buffer. The result is ordered by distance
along the route so it can be merged straight into the warning list.
"""

import logging
from typing import Iterable, List, Optional

from ridenav.config import get_settings
from ridenav.schemas.route import CatalogHazard, RouteHazard
from ridenav.utils.geometry import RouteLike, as_geometry

logger = logging.getLogger(__name__)


def detect_hazards_on_route(
    route: RouteLike,
    catalog_hazards: Iterable[CatalogHazard],
    buffer_m: Optional[float] = None,
) -> List[RouteHazard]:
    """Project catalog hazards onto a route.

    Args:
        route: Route points or their projected geometry
        catalog_hazards: Snapshot of the hazard catalog
        buffer_m: Proximity tolerance in metres (defaults to HAZARD_BUFFER_M)

    Returns:
        One record per hazard within the buffer, sorted by distance along route
    """
    if buffer_m is None:
        buffer_m = get_settings().HAZARD_BUFFER_M

    geometry = as_geometry(route)
    hazards = list(catalog_hazards)
    found: List[RouteHazard] = []
    skipped_bbox = 0

    for hazard in hazards:
        if not geometry.within_bounds(hazard.location, buffer_m):
            skipped_bbox += 1
            continue

        projection = geometry.nearest_segment(hazard.location)
        if projection.distance_m > buffer_m:
            continue

        found.append(
            RouteHazard(
                hazard=hazard,
                distance_along_route_m=geometry.cumulative[projection.segment_index]
                + projection.offset_m,
                distance_from_route_m=projection.distance_m,
                closest_point=geometry.point_on_segment(
                    projection.segment_index, projection.offset_m
                ),
            )
        )

    found.sort(key=lambda h: h.distance_along_route_m)

    logger.info(
        f"Found {len(found)} hazards on route",
        extra={
            "extra_fields": {
                "catalog_size": len(hazards),
                "outside_bbox": skipped_bbox,
                "buffer_m": buffer_m,
            }
        },
    )
    return found
