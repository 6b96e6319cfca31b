"""Core module for fundamental data structures and utilities."""

from .data_structures import (
    Waypoint,
    VehicleObservation,
    EgoState,
    RetainedPath,
    Telemetry,
    PlannerState,
    LaneCosts,
    Trajectory,
    TrackedVehicle,
    BehaviorDecision,
)
from .waypoint_map import WaypointMap

__all__ = [
    'Waypoint',
    'VehicleObservation',
    'EgoState',
    'RetainedPath',
    'Telemetry',
    'PlannerState',
    'LaneCosts',
    'Trajectory',
    'TrackedVehicle',
    'BehaviorDecision',
    'WaypointMap',
]
