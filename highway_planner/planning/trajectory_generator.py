"""Spline trajectory generation.

The new trajectory continues the retained part of the previous one. A
natural cubic spline is fitted through a handful of sparse anchors expressed
in a local frame attached to the end of the retained path (origin at the
reference point, x axis along the reference heading), then sampled so that
consecutive points are one tick apart at the reference speed.
"""

import math
from typing import List, Sequence, Tuple

import numpy as np
from loguru import logger

from ..core.data_structures import EgoState, PlannerState, RetainedPath, Trajectory
from ..core.waypoint_map import WaypointMap
from .cubic_spline import CubicSpline1D


# Planning parameters
DT = 0.02  # Actuator tick [s]
HORIZON = 50  # Points per trajectory
LOOKAHEAD_OFFSETS = (30.0, 60.0, 90.0)  # Forward anchor offsets [m]

# Below this, two retained points are treated as the same position [m]
MIN_POINT_SPACING = 1e-6


class TrajectoryGenerator:
    """Builds the fixed-horizon point sequence sent to the actuator.

    Args:
        waypoint_map: Track used to place forward anchors
        dt: Duration of one actuator tick [s]
        horizon: Number of points per trajectory
        lookahead_offsets: Arc-length offsets of the forward anchors [m]
    """

    def __init__(
        self,
        waypoint_map: WaypointMap,
        dt: float = DT,
        horizon: int = HORIZON,
        lookahead_offsets: Sequence[float] = LOOKAHEAD_OFFSETS,
    ):
        self.map = waypoint_map
        self.dt = dt
        self.horizon = horizon
        self.lookahead_offsets = tuple(lookahead_offsets)

        logger.info(
            f"Trajectory generator initialized with dt={dt}s, horizon={horizon}, "
            f"lookahead={list(self.lookahead_offsets)}m"
        )

    def generate(
        self,
        ego: EgoState,
        retained_path: RetainedPath,
        state: PlannerState,
        start_s: float,
    ) -> Trajectory:
        """Generate the next trajectory.

        Args:
            ego: Current ego localization
            retained_path: Unconsumed points of the previous trajectory
            state: Lane and reference speed to plan for
            start_s: Arc length of the reference point [m]; recomputed from the
                last kept point when the retained path is truncated

        Returns:
            Trajectory of exactly ``horizon`` points
        """
        retained_x = list(retained_path.x)
        retained_y = list(retained_path.y)
        if len(retained_x) > self.horizon:
            logger.warning(
                f"Retained path has {len(retained_x)} points, keeping the first {self.horizon}"
            )
            retained_x = retained_x[:self.horizon]
            retained_y = retained_y[:self.horizon]
            start_s, _ = self.map.to_frenet(retained_x[-1], retained_y[-1])

        ref_x, ref_y, ref_yaw, prev_x, prev_y = self._reference_pose(ego, retained_x, retained_y)

        # Anchors: tangent pair, then forward points at the target lane center
        anchors = [(prev_x, prev_y), (ref_x, ref_y)]
        d = self.map.lane_center(state.lane)
        for offset in self.lookahead_offsets:
            anchors.append(self.map.to_cartesian(start_s + offset, d))

        local = self._monotonic(self.to_local(anchors, ref_x, ref_y, ref_yaw))
        spline = CubicSpline1D([p[0] for p in local], [p[1] for p in local])

        n_new = self.horizon - len(retained_x)
        local_x, local_y = self._resample(spline, state.reference_speed, n_new)
        new_x, new_y = self.to_world(local_x, local_y, ref_x, ref_y, ref_yaw)

        return Trajectory(
            x=np.concatenate([np.asarray(retained_x, dtype=float), new_x]),
            y=np.concatenate([np.asarray(retained_y, dtype=float), new_y]),
        )

    def _reference_pose(
        self,
        ego: EgoState,
        retained_x: List[float],
        retained_y: List[float],
    ) -> Tuple[float, float, float, float, float]:
        """Reference point, heading, and the point just behind it."""
        if len(retained_x) >= 2:
            ref_x, ref_y = retained_x[-1], retained_y[-1]
            prev_x, prev_y = retained_x[-2], retained_y[-2]
            if math.hypot(ref_x - prev_x, ref_y - prev_y) > MIN_POINT_SPACING:
                return ref_x, ref_y, math.atan2(ref_y - prev_y, ref_x - prev_x), prev_x, prev_y
            # Stationary tail carries no heading, use the vehicle's
            ref_yaw = ego.yaw
        else:
            ref_x, ref_y, ref_yaw = ego.x, ego.y, ego.yaw

        prev_x = ref_x - math.cos(ref_yaw)
        prev_y = ref_y - math.sin(ref_yaw)
        return ref_x, ref_y, ref_yaw, prev_x, prev_y

    @staticmethod
    def to_local(points, ref_x: float, ref_y: float, ref_yaw: float) -> List[Tuple[float, float]]:
        """World points into the reference frame."""
        cos_yaw, sin_yaw = math.cos(ref_yaw), math.sin(ref_yaw)
        local = []
        for x, y in points:
            shift_x, shift_y = x - ref_x, y - ref_y
            local.append((shift_x * cos_yaw + shift_y * sin_yaw,
                          -shift_x * sin_yaw + shift_y * cos_yaw))
        return local

    @staticmethod
    def to_world(local_x, local_y, ref_x: float, ref_y: float, ref_yaw: float) -> Tuple[np.ndarray, np.ndarray]:
        """Reference-frame points back into the world frame."""
        local_x = np.asarray(local_x, dtype=float)
        local_y = np.asarray(local_y, dtype=float)
        cos_yaw, sin_yaw = math.cos(ref_yaw), math.sin(ref_yaw)
        x = local_x * cos_yaw - local_y * sin_yaw + ref_x
        y = local_x * sin_yaw + local_y * cos_yaw + ref_y
        return x, y

    def _monotonic(self, local: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
        """Drop anchors that do not advance along the local x axis."""
        kept = [local[0]]
        for point in local[1:]:
            if point[0] > kept[-1][0] + MIN_POINT_SPACING:
                kept.append(point)
            else:
                logger.warning(f"Dropping anchor at local ({point[0]:.2f}, {point[1]:.2f}): not ahead")

        if len(kept) < 3:
            # Nothing usable ahead: keep the current heading
            logger.warning("Too few forward anchors, continuing straight ahead")
            kept = [(-1.0, 0.0), (0.0, 0.0)] + [(offset, 0.0) for offset in self.lookahead_offsets]
        return kept

    def _resample(self, spline: CubicSpline1D, speed: float, n_points: int) -> Tuple[np.ndarray, np.ndarray]:
        """Sample ``n_points`` along the spline spaced for ``speed``.

        The chord to the first lookahead point approximates the arc length;
        the x step covers that chord in ``chord / (dt * speed)`` ticks.
        """
        if n_points <= 0:
            return np.empty(0), np.empty(0)

        target_x = min(self.lookahead_offsets[0], spline.x[-1])
        target_y = spline.calc_position(target_x)
        target_dist = math.hypot(target_x, target_y)

        x_step = target_x * self.dt * speed / target_dist
        local_x = np.minimum(x_step * np.arange(1, n_points + 1), spline.x[-1])
        local_y = spline.calc_position(local_x)
        return local_x, local_y
