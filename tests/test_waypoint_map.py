"""Tests for the waypoint map."""

import math

import numpy as np
import pytest

from highway_planner.config import PlannerConfig
from highway_planner.core import Waypoint, WaypointMap


def test_to_cartesian_straight(straight_map):
    x, y = straight_map.to_cartesian(15.0, 6.0)
    assert x == pytest.approx(15.0)
    assert y == pytest.approx(-6.0)


def test_to_frenet_straight(straight_map):
    s, d = straight_map.to_frenet(15.0, -6.0)
    assert s == pytest.approx(15.0)
    assert d == pytest.approx(6.0)


@pytest.mark.parametrize("s", [5.3, 100.7, 1234.5, 3000.1])
@pytest.mark.parametrize("d", [0.0, 2.0, 6.0, 10.0])
def test_round_trip_on_loop(loop_map, s, d):
    """to_frenet inverts to_cartesian away from the track seam."""
    x, y = loop_map.to_cartesian(s, d)
    s_back, d_back = loop_map.to_frenet(x, y)
    assert s_back == pytest.approx(s, abs=1e-6 * loop_map.track_length)
    assert d_back == pytest.approx(d, abs=1e-6)


def test_round_trip_at_waypoint(loop_map):
    s = loop_map.waypoints[10].s
    x, y = loop_map.to_cartesian(s, 6.0)
    s_back, d_back = loop_map.to_frenet(x, y)
    assert loop_map.wrap_distance(s_back - s) == pytest.approx(0.0, abs=1e-6)
    assert d_back == pytest.approx(6.0, abs=1e-6)


def test_to_cartesian_continuous_across_waypoint(loop_map):
    s = loop_map.waypoints[5].s
    before = np.array(loop_map.to_cartesian(s - 1e-6, 10.0))
    after = np.array(loop_map.to_cartesian(s + 1e-6, 10.0))
    assert np.linalg.norm(after - before) < 1e-4


def test_s_wraps_around_track(loop_map):
    L = loop_map.track_length
    assert loop_map.to_cartesian(50.0 + L, 6.0) == pytest.approx(loop_map.to_cartesian(50.0, 6.0))
    assert loop_map.to_cartesian(-5.0, 2.0) == pytest.approx(loop_map.to_cartesian(L - 5.0, 2.0))


def test_closing_segment(loop_map):
    """Between the last waypoint and the track end the point lies on the closing segment."""
    last = loop_map.waypoints[-1]
    first = loop_map.waypoints[0]
    s_mid = (last.s + loop_map.track_length) / 2.0
    x, y = loop_map.to_cartesian(s_mid, 0.0)
    assert x == pytest.approx((last.x + first.x) / 2.0)
    assert y == pytest.approx((last.y + first.y) / 2.0)


def test_lane_helpers(straight_map):
    assert straight_map.lane_center(0) == 2.0
    assert straight_map.lane_center(1) == 6.0
    assert straight_map.lane_center(2) == 10.0

    assert straight_map.in_lane(5.0, 1)
    assert not straight_map.in_lane(4.0, 1)
    assert not straight_map.in_lane(4.0, 0)
    assert not straight_map.in_lane(8.0, 1)


def test_wrap_distance(straight_map):
    assert straight_map.wrap_distance(10.0) == pytest.approx(10.0)
    assert straight_map.wrap_distance(-10.0) == pytest.approx(-10.0)
    assert straight_map.wrap_distance(990.0) == pytest.approx(-10.0)
    assert straight_map.wrap_distance(-990.0) == pytest.approx(10.0)


def test_heading(straight_map, loop_map):
    assert straight_map.heading_at(15.0) == pytest.approx(0.0)
    # Counter-clockwise loop starting at (R, 0): heading close to +y
    assert loop_map.heading_at(1.0) == pytest.approx(math.pi / 2, abs=0.02)


def test_loop_geometry(loop_map):
    assert len(loop_map) == 180
    chord = 2 * 500.0 * math.sin(math.pi / 180)
    assert loop_map.track_length == pytest.approx(180 * chord)
    # Lanes lie outside the circle
    x, y = loop_map.to_cartesian(0.0, 6.0)
    assert (x, y) == pytest.approx((506.0, 0.0))


def test_invalid_waypoints():
    with pytest.raises(ValueError):
        WaypointMap([Waypoint(0.0, 0.0, 0.0, 0.0, -1.0)], track_length=100.0)

    unordered = [
        Waypoint(0.0, 0.0, 0.0, 0.0, -1.0),
        Waypoint(20.0, 0.0, 20.0, 0.0, -1.0),
        Waypoint(10.0, 0.0, 10.0, 0.0, -1.0),
    ]
    with pytest.raises(ValueError):
        WaypointMap(unordered, track_length=100.0)

    with pytest.raises(ValueError):
        WaypointMap(unordered[:2], track_length=20.0)


def test_from_csv(tmp_path):
    map_path = tmp_path / "track.csv"
    rows = [f"{x} 0.0 {x} 0.0 -1.0" for x in range(0, 100, 10)]
    map_path.write_text("\n".join(rows) + "\n")

    waypoint_map = WaypointMap.from_csv(map_path, track_length=100.0)
    assert len(waypoint_map) == 10
    assert waypoint_map.to_cartesian(25.0, 2.0) == pytest.approx((25.0, -2.0))


def test_from_csv_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        WaypointMap.from_csv(tmp_path / "missing.csv", track_length=100.0)

    bad = tmp_path / "bad.csv"
    bad.write_text("0 0 0 0\n10 0 10 0\n")
    with pytest.raises(ValueError):
        WaypointMap.from_csv(bad, track_length=100.0)


def test_from_config(tmp_path):
    config = PlannerConfig(sim_track_radius=200.0, sim_track_waypoints=90)
    loop = WaypointMap.from_config(config)
    assert len(loop) == 90

    map_path = tmp_path / "track.csv"
    map_path.write_text("\n".join(f"{x} 0 {x} 0 -1" for x in range(0, 50, 10)))
    config = PlannerConfig(map_file=str(map_path), track_length=50.0)
    loaded = WaypointMap.from_config(config)
    assert len(loaded) == 5
    assert loaded.track_length == 50.0
