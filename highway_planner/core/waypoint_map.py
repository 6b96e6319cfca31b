"""Conversion between Frenet and Cartesian coordinates along the track.

The track centerline is a closed loop sampled by waypoints. Each waypoint
carries its arc length ``s`` and the unit normal ``(dx, dy)`` pointing towards
increasing lateral offset ``d``. Between two waypoints the centerline is the
straight segment joining them and the offset direction is the linear blend of
their normals, which keeps the mapping continuous across waypoints and lets
``to_frenet`` invert ``to_cartesian`` exactly.
"""

import bisect
import math
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union, TYPE_CHECKING

import numpy as np
from loguru import logger

from .data_structures import Waypoint

if TYPE_CHECKING:
    from ..config import PlannerConfig


def _cross(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * by - ay * bx


class WaypointMap:
    """Fixed track centerline with Frenet <-> Cartesian conversion.

    Lanes are numbered from 0 (leftmost, next to the centerline) upwards;
    lane ``i`` covers ``d`` in ``[i * lane_width, (i + 1) * lane_width]``.

    Args:
        waypoints: Centerline samples ordered by increasing ``s``
        track_length: Arc length at which ``s`` wraps back to the start [m]
        lane_width: Width of one lane [m]
        n_lanes: Number of lanes
    """

    def __init__(
        self,
        waypoints: Sequence[Waypoint],
        track_length: float,
        lane_width: float = 4.0,
        n_lanes: int = 3,
    ):
        if len(waypoints) < 2:
            raise ValueError(f"At least 2 waypoints are required, got {len(waypoints)}")
        if track_length <= 0:
            raise ValueError(f"track_length must be positive, got {track_length}")

        self.waypoints = list(waypoints)
        self.track_length = float(track_length)
        self.lane_width = float(lane_width)
        self.n_lanes = int(n_lanes)

        self._x = np.array([w.x for w in self.waypoints], dtype=float)
        self._y = np.array([w.y for w in self.waypoints], dtype=float)
        self._s = [float(w.s) for w in self.waypoints]
        self._nx = np.array([w.dx for w in self.waypoints], dtype=float)
        self._ny = np.array([w.dy for w in self.waypoints], dtype=float)

        if any(b <= a for a, b in zip(self._s, self._s[1:])):
            raise ValueError("Waypoint s values must be strictly increasing")
        if self._s[0] < 0 or self._s[-1] >= self.track_length:
            raise ValueError(
                f"Waypoint s values must lie in [0, {self.track_length}), "
                f"got [{self._s[0]}, {self._s[-1]}]"
            )

        # Arc length at the end of each segment; the last one closes the loop
        self._s_end = self._s[1:] + [self.track_length + self._s[0]]

        logger.info(
            f"Waypoint map initialized with {len(self.waypoints)} waypoints, "
            f"track_length={self.track_length:.1f}m, "
            f"{self.n_lanes} lanes of {self.lane_width:.1f}m"
        )

    @classmethod
    def from_csv(cls, map_path: Union[str, Path], track_length: float, **kwargs) -> 'WaypointMap':
        """Load a whitespace separated track file with rows ``x y s dx dy``.

        Args:
            map_path: Path to the track file
            track_length: Arc length at which ``s`` wraps [m]
            **kwargs: Forwarded to the constructor

        Returns:
            Loaded waypoint map
        """
        map_path = Path(map_path)
        if not map_path.exists():
            raise FileNotFoundError(f"Map file not found: {map_path}")

        try:
            rows = np.loadtxt(map_path, ndmin=2)
        except ValueError as e:
            raise ValueError(f"Failed to parse map file {map_path}: {e}") from e

        if rows.shape[1] != 5:
            raise ValueError(f"Map file {map_path} must have 5 columns (x y s dx dy), got {rows.shape[1]}")

        waypoints = [Waypoint(*map(float, row)) for row in rows]
        logger.info(f"Loaded {len(waypoints)} waypoints from {map_path}")
        return cls(waypoints, track_length, **kwargs)

    @classmethod
    def loop(cls, radius: float, n_waypoints: int, **kwargs) -> 'WaypointMap':
        """Circular track driven counter-clockwise, lanes on the outside.

        Arc lengths are measured along the polygon through the waypoints.
        """
        theta = np.linspace(0.0, 2.0 * np.pi, n_waypoints, endpoint=False)
        x = radius * np.cos(theta)
        y = radius * np.sin(theta)
        chord = 2.0 * radius * math.sin(np.pi / n_waypoints)
        waypoints = [
            Waypoint(x=float(xi), y=float(yi), s=float(i * chord),
                     dx=float(np.cos(t)), dy=float(np.sin(t)))
            for i, (xi, yi, t) in enumerate(zip(x, y, theta))
        ]
        return cls(waypoints, chord * n_waypoints, **kwargs)

    @classmethod
    def from_config(cls, config: 'PlannerConfig') -> 'WaypointMap':
        """Track file from the configuration, or a generated loop without one."""
        lanes = dict(lane_width=config.lane_width, n_lanes=config.n_lanes)
        if config.map_file:
            return cls.from_csv(config.map_file, config.track_length, **lanes)
        logger.info(
            f"No map_file configured, generating loop track "
            f"(radius={config.sim_track_radius}m, {config.sim_track_waypoints} waypoints)"
        )
        return cls.loop(config.sim_track_radius, config.sim_track_waypoints, **lanes)

    def __len__(self) -> int:
        return len(self.waypoints)

    def lane_center(self, lane: int) -> float:
        """Lateral offset of the center of ``lane``."""
        return self.lane_width * lane + self.lane_width / 2.0

    def in_lane(self, d: float, lane: int) -> bool:
        """Whether ``d`` lies strictly inside the band of ``lane``."""
        return self.lane_width * lane < d < self.lane_width * (lane + 1)

    def wrap_s(self, s: float) -> float:
        """Map ``s`` into ``[0, track_length)``."""
        return s % self.track_length

    def wrap_distance(self, ds: float) -> float:
        """Signed shortest arc distance equivalent to ``ds`` on the loop."""
        half = self.track_length / 2.0
        return (ds + half) % self.track_length - half

    def _segment(self, i: int):
        j = (i + 1) % len(self.waypoints)
        return (
            self._x[i], self._y[i],
            self._x[j] - self._x[i], self._y[j] - self._y[i],
            self._nx[i], self._ny[i],
            self._nx[j] - self._nx[i], self._ny[j] - self._ny[i],
            self._s[i], self._s_end[i],
        )

    def to_cartesian(self, s: float, d: float) -> Tuple[float, float]:
        """Convert a Frenet position to world coordinates.

        Args:
            s: Arc length, wrapped onto the track
            d: Lateral offset

        Returns:
            (x, y) world position
        """
        s = self.wrap_s(s)
        i = bisect.bisect_right(self._s, s) - 1
        if i < 0:
            # Before the first waypoint: still on the closing segment
            i = len(self.waypoints) - 1
            s += self.track_length

        px, py, ax, ay, nx, ny, bx, by, s0, s1 = self._segment(i)
        t = (s - s0) / (s1 - s0)

        x = px + t * ax + d * (nx + t * bx)
        y = py + t * ay + d * (ny + t * by)
        return float(x), float(y)

    def to_frenet(self, x: float, y: float) -> Tuple[float, float]:
        """Convert a world position to Frenet coordinates.

        The two segments touching the closest waypoint are inverted and the
        one whose segment parameter falls inside [0, 1] wins.

        Args:
            x, y: World position

        Returns:
            (s, d) Frenet position
        """
        n = len(self.waypoints)
        closest = int(np.argmin(np.hypot(self._x - x, self._y - y)))

        best = None
        for i in ((closest - 1) % n, closest):
            candidate = self._invert_segment(i, x, y)
            if candidate is None:
                continue
            t, d = candidate
            outside = max(0.0, -t, t - 1.0)
            key = (outside > 1e-9, outside, abs(d))
            if best is None or key < best[0]:
                best = (key, i, t, d)

        if best is None:
            # Degenerate geometry, fall back to the closest waypoint itself
            logger.debug(f"No segment inversion for ({x:.2f}, {y:.2f}), using closest waypoint")
            w = self.waypoints[closest]
            return w.s, float((x - w.x) * w.dx + (y - w.y) * w.dy)

        _, i, t, d = best
        s0, s1 = self._s[i], self._s_end[i]
        return float(self.wrap_s(s0 + t * (s1 - s0))), float(d)

    def _invert_segment(self, i: int, x: float, y: float) -> Optional[Tuple[float, float]]:
        """Solve ``p = p0 + t*a + d*(n0 + t*b)`` for (t, d) on segment ``i``."""
        px, py, ax, ay, nx, ny, bx, by, _, _ = self._segment(i)
        qx, qy = x - px, y - py

        # (q - d*n0) must be parallel to (a + d*b): quadratic in d
        qa = -_cross(nx, ny, bx, by)
        qb = _cross(qx, qy, bx, by) - _cross(nx, ny, ax, ay)
        qc = _cross(qx, qy, ax, ay)

        if abs(qa) < 1e-12:
            if abs(qb) < 1e-12:
                return None
            d = -qc / qb
        else:
            disc = qb * qb - 4.0 * qa * qc
            if disc < 0:
                return None
            root = -0.5 * (qb + math.copysign(math.sqrt(disc), qb))
            roots = [root / qa]
            if root != 0.0:
                roots.append(qc / root)
            d = min(roots, key=abs)

        wx, wy = ax + d * bx, ay + d * by
        norm2 = wx * wx + wy * wy
        if norm2 < 1e-12:
            return None
        t = ((qx - d * nx) * wx + (qy - d * ny) * wy) / norm2
        return t, d

    def heading_at(self, s: float) -> float:
        """Heading of the centerline segment containing ``s`` [rad]."""
        s = self.wrap_s(s)
        i = bisect.bisect_right(self._s, s) - 1
        if i < 0:
            i = len(self.waypoints) - 1
        _, _, ax, ay, *_ = self._segment(i)
        return math.atan2(ay, ax)
