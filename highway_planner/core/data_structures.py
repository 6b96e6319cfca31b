"""Core data structures for the highway motion planner.

This module defines the values exchanged between the planning components
once per telemetry tick. Everything here is plain data: the components own
the behavior.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Waypoint:
    """One sample of the track centerline.

    Attributes:
        x, y: World position [m]
        s: Arc length along the centerline [m]
        dx, dy: Unit normal pointing towards increasing d
    """
    x: float
    y: float
    s: float
    dx: float
    dy: float


@dataclass(frozen=True)
class VehicleObservation:
    """State of one sensed vehicle at the current tick.

    Attributes:
        id: Simulator identifier
        x, y: World position [m]
        vx, vy: World velocity [m/s]
        s: Frenet arc length [m]
        d: Frenet lateral offset [m]
    """
    id: int
    x: float
    y: float
    vx: float
    vy: float
    s: float
    d: float

    @property
    def speed(self) -> float:
        """Absolute speed [m/s]."""
        return math.hypot(self.vx, self.vy)

    @classmethod
    def from_row(cls, row) -> 'VehicleObservation':
        """Create from a sensor fusion row [id, x, y, vx, vy, s, d]."""
        return cls(id=int(row[0]), x=float(row[1]), y=float(row[2]),
                   vx=float(row[3]), vy=float(row[4]),
                   s=float(row[5]), d=float(row[6]))


@dataclass(frozen=True)
class EgoState:
    """Localization of the ego vehicle.

    Attributes:
        x, y: World position [m]
        s, d: Frenet position [m]
        yaw: Heading [rad]
        speed: Speed [m/s]
    """
    x: float
    y: float
    s: float
    d: float
    yaw: float
    speed: float


@dataclass
class RetainedPath:
    """Points of the previous trajectory the actuator has not consumed yet.

    Attributes:
        x, y: World coordinates of the remaining points, in execution order
        end_s, end_d: Frenet position of the last remaining point
    """
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)
    end_s: float = 0.0
    end_d: float = 0.0

    def __post_init__(self):
        if len(self.x) != len(self.y):
            raise ValueError(
                f"Retained path x/y lengths differ: {len(self.x)} != {len(self.y)}"
            )

    def __len__(self) -> int:
        return len(self.x)


@dataclass
class Telemetry:
    """Everything the planner receives for one tick."""
    ego: EgoState
    retained_path: RetainedPath = field(default_factory=RetainedPath)
    vehicles: List[VehicleObservation] = field(default_factory=list)

    @property
    def planning_s(self) -> float:
        """Arc length the next trajectory segment starts from.

        The end of the retained path when one is left, otherwise the ego
        position itself.
        """
        if len(self.retained_path) > 0:
            return self.retained_path.end_s
        return self.ego.s


@dataclass(frozen=True)
class PlannerState:
    """Lane and reference speed carried from one planning cycle to the next.

    Attributes:
        lane: Target lane, 0 is the leftmost lane
        reference_speed: Speed the trajectory is resampled for [m/s]
    """
    lane: int = 1
    reference_speed: float = 0.0

    @classmethod
    def initial(cls, lane: int = 1) -> 'PlannerState':
        """State at process start: given lane, standing still."""
        return cls(lane=lane, reference_speed=0.0)


@dataclass(frozen=True)
class LaneCosts:
    """Per-lane costs evaluated once per tick."""
    left: float = 0.0
    middle: float = 0.0
    right: float = 0.0

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.left, self.middle, self.right)


@dataclass
class Trajectory:
    """World-frame points the actuator executes, one per tick.

    Attributes:
        x, y: Point coordinates [m]
    """
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=float)
        self.y = np.asarray(self.y, dtype=float)
        if self.x.shape != self.y.shape:
            raise ValueError(
                f"Trajectory x/y shapes differ: {self.x.shape} != {self.y.shape}"
            )

    def __len__(self) -> int:
        return len(self.x)

    def points(self) -> np.ndarray:
        """Points as an (N, 2) array."""
        return np.column_stack([self.x, self.y])

    def to_lists(self) -> Tuple[List[float], List[float]]:
        """Plain float lists, e.g. for JSON encoding."""
        return self.x.tolist(), self.y.tolist()

    def tail(self, start: int) -> RetainedPath:
        """Points from ``start`` on as a retained path (Frenet end left at 0)."""
        return RetainedPath(x=self.x[start:].tolist(), y=self.y[start:].tolist())


@dataclass(frozen=True)
class TrackedVehicle:
    """A vehicle returned by a nearest-vehicle query.

    Attributes:
        vehicle: The sensed vehicle
        distance: Predicted signed arc distance from the ego vehicle [m]
    """
    vehicle: VehicleObservation
    distance: float

    @property
    def speed(self) -> float:
        return self.vehicle.speed


@dataclass(frozen=True)
class BehaviorDecision:
    """Outcome of one behavior planning step.

    Attributes:
        state: Planner state for the next cycle
        costs: Cost snapshot the lane decision was taken on
        leader: Vehicle ahead in the chosen lane, if any
    """
    state: PlannerState
    costs: LaneCosts
    leader: Optional[TrackedVehicle] = None
