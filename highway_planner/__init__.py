"""Highway motion planner: lane selection and spline trajectories."""

__version__ = "0.1.0"
