"""CLI for replaying a recorded position track through the navigation engine.

Usage:
    python -m ridenav.replay.cli route.json track.json [--hazards hazards.json]

route.json holds one route as returned by POST /api/v1/navigation/routes,
track.json a list of position fixes and hazards.json a list of catalog hazards.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import AsyncIterator, List

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from ridenav.core.exceptions import RideNavException
from ridenav.core.logging_config import setup_logging
from ridenav.schemas.navigation import NavigationSignal, NavigationSnapshot, PositionFix
from ridenav.schemas.route import ActiveRoute, CatalogHazard
from ridenav.services.navigation_service import NavigationService

logger = logging.getLogger(__name__)


def load_json(path: str):
    with Path(path).open(encoding="utf-8") as f:
        return json.load(f)


async def _feed(fixes: List[PositionFix]) -> AsyncIterator[PositionFix]:
    for fix in fixes:
        yield fix
        # Let an in-flight reroute make progress between fixes
        await asyncio.sleep(0)


def log_snapshot(snapshot: NavigationSnapshot) -> None:
    maneuver = snapshot.next_maneuver
    logger.info(
        "Fix accepted",
        extra={
            "extra_fields": {
                "segment": snapshot.current_segment_index,
                "remaining_m": round(snapshot.total_distance_remaining_m, 1),
                "eta_s": snapshot.estimated_time_remaining_s,
                "next": maneuver.type.value if maneuver else None,
                "to_next_m": round(snapshot.distance_to_next_maneuver_m, 1),
                "off_route": snapshot.is_off_route,
                "arrived": snapshot.has_arrived,
                "warnings": len(snapshot.warnings),
            }
        },
    )


def log_signal(signal: NavigationSignal) -> None:
    logger.warning(f"[{signal.type.value}] {signal.message}")


async def replay(route_path: str, track_path: str, hazards_path: str | None = None) -> int:
    """Replay a track and return the number of accepted fixes.

    Args:
        route_path: JSON file with one route
        track_path: JSON file with a list of position fixes
        hazards_path: Optional JSON file with a list of catalog hazards
    """
    route = ActiveRoute.model_validate(load_json(route_path))
    fixes = TypeAdapter(List[PositionFix]).validate_python(load_json(track_path))
    hazards: List[CatalogHazard] = []
    if hazards_path:
        hazards = TypeAdapter(List[CatalogHazard]).validate_python(load_json(hazards_path))

    service = NavigationService()
    service.signals.subscribe(log_signal)
    service.start_navigation(route, hazards)

    logger.info(f"Replaying {len(fixes)} fixes")
    accepted = await service.track_positions(_feed(fixes), on_snapshot=log_snapshot)
    await service.wait_for_reroute()

    final = service.snapshot()
    logger.info(
        f"Replay complete: {accepted}/{len(fixes)} fixes accepted",
        extra={
            "extra_fields": {
                "distance_traveled_m": round(final.trip.distance_traveled_m, 1),
                "moving_s": round(final.trip.moving_s, 1),
                "arrived": final.has_arrived,
            }
        },
    )
    service.stop_navigation()
    return accepted


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="RideNav track replay CLI")
    parser.add_argument("route", help="Route JSON file")
    parser.add_argument("track", help="Position fix track JSON file")
    parser.add_argument("--hazards", help="Hazard catalog JSON file")

    args = parser.parse_args()
    setup_logging()

    try:
        asyncio.run(replay(args.route, args.track, args.hazards))
    except (OSError, json.JSONDecodeError, SchemaValidationError) as e:
        logger.error(f"Cannot load replay input: {str(e)}")
        sys.exit(1)
    except RideNavException as e:
        logger.error(f"Replay failed: {e.message}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
