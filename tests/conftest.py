"""Shared fixtures: a straight test road and a circular loop track."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from highway_planner.config import PlannerConfig
from highway_planner.core import EgoState, VehicleObservation, Waypoint, WaypointMap


@pytest.fixture
def straight_map():
    """Road along +x, s equal to x, d growing towards -y (right of travel)."""
    waypoints = [Waypoint(x=float(x), y=0.0, s=float(x), dx=0.0, dy=-1.0) for x in range(0, 1000, 10)]
    return WaypointMap(waypoints, track_length=1000.0)


@pytest.fixture
def loop_map():
    """Counter-clockwise circle of radius 500 m."""
    return WaypointMap.loop(500.0, 180)


@pytest.fixture
def config():
    return PlannerConfig()


def make_vehicle(id, s, d, speed=0.0):
    """Vehicle on the straight road driving along +x."""
    return VehicleObservation(id=id, x=s, y=-d, vx=speed, vy=0.0, s=s, d=d)


def ego_on(waypoint_map, s, d=6.0, speed=0.0):
    """Ego pose on the lane at (s, d), heading along the road."""
    x, y = waypoint_map.to_cartesian(s, d)
    return EgoState(x=x, y=y, s=s, d=d, yaw=waypoint_map.heading_at(s), speed=speed)
