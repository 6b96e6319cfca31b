"""Path planning module."""

from .cubic_spline import CubicSpline1D
from .vehicle_tracker import VehicleTracker
from .behavior_planner import BehaviorPlanner
from .trajectory_generator import TrajectoryGenerator
from .motion_planner import MotionPlanner, PlanningSession, PlanResult

__all__ = [
    'CubicSpline1D',
    'VehicleTracker',
    'BehaviorPlanner',
    'TrajectoryGenerator',
    'MotionPlanner',
    'PlanningSession',
    'PlanResult',
]
