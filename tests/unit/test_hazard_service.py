"""Unit tests for hazard projection."""

import pytest

from ridenav.services.hazard_service import detect_hazards_on_route
from ridenav.utils.geometry import RouteGeometry, geodesic_distance_m
from tests.factories import NORTH, along, make_hazard, offset


def test_scenario_one_hazard_within_tolerance(straight_route):
    """Test 50 m beside segment 3 is kept, 500 m beside it is not."""
    near = make_hazard(offset(along(straight_route, 875.0), NORTH, 50.0), hazard_id="near")
    far = make_hazard(offset(along(straight_route, 875.0), NORTH, 500.0), hazard_id="far")

    hazards = detect_hazards_on_route(straight_route.points, [near, far])

    assert len(hazards) == 1
    record = hazards[0]
    assert record.hazard.id == "near"

    geometry = RouteGeometry(straight_route.points)
    assert geometry.cumulative[3] <= record.distance_along_route_m <= geometry.cumulative[4]
    assert record.distance_along_route_m == pytest.approx(875.0, abs=1.0)
    assert record.distance_from_route_m == pytest.approx(50.0, abs=0.5)
    assert geodesic_distance_m(record.closest_point, along(straight_route, 875.0)) < 1.0


def test_hazards_sorted_by_distance_along_route(straight_route):
    hazards = [
        make_hazard(offset(along(straight_route, 600.0), NORTH, 10.0), hazard_id="b"),
        make_hazard(offset(along(straight_route, 200.0), NORTH, 20.0), hazard_id="a"),
        make_hazard(offset(along(straight_route, 900.0), 180.0, 30.0), hazard_id="c"),
    ]

    result = detect_hazards_on_route(straight_route.points, hazards)

    assert [h.hazard.id for h in result] == ["a", "b", "c"]


def test_hazard_on_shared_vertex_appears_once(straight_route):
    hazard = make_hazard(straight_route.points[2])

    result = detect_hazards_on_route(straight_route.points, [hazard])

    assert len(result) == 1
    assert result[0].distance_along_route_m == pytest.approx(500.0, abs=1.0)


def test_custom_buffer(straight_route):
    hazard = make_hazard(offset(along(straight_route, 400.0), NORTH, 50.0))

    assert detect_hazards_on_route(straight_route.points, [hazard], buffer_m=40.0) == []
    assert len(detect_hazards_on_route(straight_route.points, [hazard], buffer_m=60.0)) == 1


def test_hazard_far_from_route_bbox(straight_route):
    hazard = make_hazard(offset(straight_route.start, NORTH, 10000.0))

    assert detect_hazards_on_route(straight_route.points, [hazard]) == []


def test_empty_catalog(straight_route):
    assert detect_hazards_on_route(straight_route.points, []) == []
