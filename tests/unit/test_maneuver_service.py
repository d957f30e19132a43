"""Unit tests for maneuver extraction."""

import pytest

from ridenav.schemas.route import ManeuverType
from ridenav.services.maneuver_service import (
    calculate_distance_to_maneuver,
    classify_turn,
    detect_maneuvers,
    find_next_maneuver,
)
from tests.factories import EAST, NORTH, ORIGIN, build_points, offset


@pytest.mark.parametrize(
    "change,expected",
    [
        (0.0, ManeuverType.STRAIGHT),
        (10.0, ManeuverType.STRAIGHT),
        (-19.0, ManeuverType.STRAIGHT),
        (30.0, ManeuverType.SLIGHT_RIGHT),
        (-30.0, ManeuverType.SLIGHT_LEFT),
        (90.0, ManeuverType.TURN_RIGHT),
        (-90.0, ManeuverType.TURN_LEFT),
        (135.0, ManeuverType.SHARP_RIGHT),
        (-135.0, ManeuverType.SHARP_LEFT),
        (170.0, ManeuverType.U_TURN),
        (-170.0, ManeuverType.U_TURN),
    ],
)
def test_classify_turn(change, expected):
    """Test clockwise bearing changes are right turns."""
    assert classify_turn(change) == expected


class TestDetectManeuvers:
    """Tests for detect_maneuvers."""

    def test_l_route(self, l_route):
        maneuvers = detect_maneuvers(l_route.points)

        assert [m.type for m in maneuvers] == [
            ManeuverType.DEPART,
            ManeuverType.TURN_LEFT,
            ManeuverType.TURN_RIGHT,
            ManeuverType.ARRIVE,
        ]
        assert [m.route_index for m in maneuvers] == [0, 1, 2, 3]
        assert maneuvers[1].text == "Turn left"
        assert maneuvers[1].location == l_route.points[1]
        assert maneuvers[1].distance_from_start_m == pytest.approx(300.0, abs=1.0)
        assert maneuvers[-1].distance_from_start_m == pytest.approx(900.0, abs=1.0)

    def test_ordered_by_route_index(self, l_route):
        indices = [m.route_index for m in detect_maneuvers(l_route.points)]

        assert indices == sorted(indices)

    def test_straight_five_point_route(self, straight_route):
        """Test a straight route yields only depart and arrive."""
        maneuvers = detect_maneuvers(straight_route.points)

        assert maneuvers[-1].type == ManeuverType.ARRIVE
        assert maneuvers[-1].route_index == len(straight_route.points) - 1

        next_maneuver = find_next_maneuver(maneuvers, 0)
        assert next_maneuver.type != ManeuverType.ARRIVE
        assert next_maneuver == maneuvers[0]

    def test_two_point_route(self):
        points = [ORIGIN, offset(ORIGIN, EAST, 200.0)]

        maneuvers = detect_maneuvers(points)

        assert [m.type for m in maneuvers] == [ManeuverType.DEPART, ManeuverType.ARRIVE]

    def test_short_segment_is_ignored(self):
        """Test a 5 m jog does not produce two turns."""
        points = build_points(ORIGIN, [(EAST, 300.0), (NORTH, 5.0), (EAST, 300.0)])

        maneuvers = detect_maneuvers(points)

        assert [m.type for m in maneuvers] == [ManeuverType.DEPART, ManeuverType.ARRIVE]

    def test_u_turn(self):
        points = build_points(ORIGIN, [(EAST, 200.0), (EAST + 175.0, 200.0)])

        maneuvers = detect_maneuvers(points)

        assert maneuvers[1].type == ManeuverType.U_TURN


class TestFindNextManeuver:
    """Tests for find_next_maneuver."""

    def test_first_at_or_after_segment(self, l_route):
        maneuvers = detect_maneuvers(l_route.points)

        assert find_next_maneuver(maneuvers, 1).type == ManeuverType.TURN_LEFT
        assert find_next_maneuver(maneuvers, 2).type == ManeuverType.TURN_RIGHT
        assert find_next_maneuver(maneuvers, 3).type == ManeuverType.ARRIVE

    def test_maneuver_behind_rider_is_skipped(self, l_route):
        """Test a maneuver at the segment start no longer shows once passed."""
        maneuvers = detect_maneuvers(l_route.points)

        assert find_next_maneuver(maneuvers, 0, 0.0).type == ManeuverType.DEPART
        assert find_next_maneuver(maneuvers, 0, 50.0).type == ManeuverType.TURN_LEFT
        assert find_next_maneuver(maneuvers, 1, 50.0).type == ManeuverType.TURN_RIGHT
        assert find_next_maneuver(maneuvers, 2, 50.0).type == ManeuverType.ARRIVE

    def test_past_last_maneuver(self, l_route):
        maneuvers = detect_maneuvers(l_route.points)

        assert find_next_maneuver(maneuvers, 4) is None

    def test_empty_list(self):
        assert find_next_maneuver([], 0) is None


class TestDistanceToManeuver:
    """Tests for calculate_distance_to_maneuver."""

    def test_distance_follows_route(self, l_route):
        maneuvers = detect_maneuvers(l_route.points)
        position = offset(l_route.start, EAST, 100.0)

        assert calculate_distance_to_maneuver(
            position, l_route.points, 0, maneuvers[1]
        ) == pytest.approx(200.0, abs=1.0)
        assert calculate_distance_to_maneuver(
            position, l_route.points, 0, maneuvers[2]
        ) == pytest.approx(500.0, abs=1.0)

    def test_maneuver_behind_is_zero(self, l_route):
        maneuvers = detect_maneuvers(l_route.points)
        position = offset(l_route.points[1], NORTH, 50.0)

        assert calculate_distance_to_maneuver(position, l_route.points, 1, maneuvers[1]) == 0.0

    def test_no_maneuver(self, l_route):
        assert calculate_distance_to_maneuver(l_route.start, l_route.points, 0, None) == 0.0
