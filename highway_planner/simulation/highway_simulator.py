"""Offline closed-loop highway simulator.

Stands in for the external driving simulator during development: the ego
vehicle follows the emitted trajectory exactly, consuming a fixed number of
points between planning cycles, while traffic vehicles drive their lane at
constant speed.
"""

import csv
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
from loguru import logger

from ..config import PlannerConfig
from ..core.data_structures import (
    EgoState,
    LaneCosts,
    PlannerState,
    RetainedPath,
    Telemetry,
    Trajectory,
    VehicleObservation,
)
from ..core.waypoint_map import WaypointMap
from ..planning.motion_planner import MotionPlanner, PlanningSession


# Two vehicles closer than this are counted as a collision [m]
COLLISION_DISTANCE = 2.0


def make_loop_track(radius: float, n_waypoints: int, **kwargs) -> WaypointMap:
    """Circular test track, see :meth:`WaypointMap.loop`."""
    return WaypointMap.loop(radius, n_waypoints, **kwargs)


@dataclass
class TrafficVehicle:
    """Vehicle keeping its lane at constant speed.

    Attributes:
        id: Identifier reported in the sensor fusion list
        lane: Lane the vehicle drives in
        s: Current arc length [m]
        speed: Constant speed [m/s]
    """
    id: int
    lane: int
    s: float
    speed: float

    def advance(self, duration: float, track_length: float):
        self.s = (self.s + self.speed * duration) % track_length

    def observe(self, waypoint_map: WaypointMap) -> VehicleObservation:
        """Sensor fusion entry for the current position."""
        d = waypoint_map.lane_center(self.lane)
        x, y = waypoint_map.to_cartesian(self.s, d)
        heading = waypoint_map.heading_at(self.s)
        return VehicleObservation(
            id=self.id, x=x, y=y,
            vx=self.speed * math.cos(heading),
            vy=self.speed * math.sin(heading),
            s=self.s, d=d,
        )


@dataclass
class TickRecord:
    """Snapshot of one planning cycle.

    Attributes:
        time: Simulation time at the start of the cycle [s]
        ego: Ego localization the cycle planned from
        state: Planner state after the cycle
        costs: Lane costs of the cycle
        trajectory: Emitted trajectory
        vehicles: Sensed vehicles of the cycle
        min_distance: Distance to the closest traffic vehicle [m]
        planning_time: Wall clock time of the cycle [s]
    """
    time: float
    ego: EgoState
    state: PlannerState
    costs: LaneCosts
    trajectory: Trajectory
    vehicles: List[VehicleObservation]
    min_distance: float = math.inf
    planning_time: float = 0.0


class HighwaySimulator:
    """Runs the planner in closed loop on a track with traffic.

    Args:
        config: Planner and simulation configuration
        waypoint_map: Track; built from ``config`` when omitted
        traffic: Traffic vehicles; built from ``config.sim_traffic`` when omitted
    """

    def __init__(
        self,
        config: PlannerConfig,
        waypoint_map: Optional[WaypointMap] = None,
        traffic: Optional[List[TrafficVehicle]] = None,
    ):
        self.config = config
        self.map = waypoint_map if waypoint_map is not None else WaypointMap.from_config(config)
        if traffic is None:
            traffic = [
                TrafficVehicle(id=i, lane=int(lane), s=float(s), speed=float(speed))
                for i, (lane, s, speed) in enumerate(config.sim_traffic)
            ]
        self.traffic = traffic
        self.points_per_tick = config.sim_points_per_tick

        planner = MotionPlanner.from_config(config, self.map)
        self.session = PlanningSession(planner, PlannerState.initial(config.initial_lane))

        d = self.map.lane_center(config.initial_lane)
        x, y = self.map.to_cartesian(0.0, d)
        self.ego = EgoState(x=x, y=y, s=0.0, d=d, yaw=self.map.heading_at(0.0), speed=0.0)
        self.retained = RetainedPath()

        self.time = 0.0
        self.history: List[TickRecord] = []

        logger.info(
            f"Highway simulator initialized: {len(self.traffic)} traffic vehicles, "
            f"{self.points_per_tick} points consumed per cycle, start lane {config.initial_lane}"
        )

    def telemetry(self) -> Telemetry:
        """Telemetry for the current simulation state."""
        return Telemetry(
            ego=self.ego,
            retained_path=self.retained,
            vehicles=[vehicle.observe(self.map) for vehicle in self.traffic],
        )

    def step(self) -> TickRecord:
        """Plan once, then drive ``points_per_tick`` points of the result."""
        telemetry = self.telemetry()
        trajectory = self.session.step(telemetry)
        result = self.session.last_result

        record = TickRecord(
            time=self.time,
            ego=self.ego,
            state=result.state,
            costs=result.decision.costs,
            trajectory=trajectory,
            vehicles=telemetry.vehicles,
            min_distance=self._min_distance(telemetry.vehicles),
            planning_time=result.planning_time,
        )
        self.history.append(record)

        self._drive(trajectory)
        duration = self.points_per_tick * self.config.dt
        for vehicle in self.traffic:
            vehicle.advance(duration, self.map.track_length)
        self.time += duration
        return record

    def _drive(self, trajectory: Trajectory):
        """Move the ego vehicle along the consumed points."""
        n = self.points_per_tick
        points = trajectory.points()
        previous = points[n - 2] if n >= 2 else np.array([self.ego.x, self.ego.y])
        x, y = points[n - 1]

        step = math.hypot(x - previous[0], y - previous[1])
        yaw = math.atan2(y - previous[1], x - previous[0]) if step > 1e-9 else self.ego.yaw
        s, d = self.map.to_frenet(x, y)
        self.ego = EgoState(x=float(x), y=float(y), s=s, d=d, yaw=yaw, speed=step / self.config.dt)

        self.retained = trajectory.tail(n)
        if len(self.retained) > 0:
            end_s, end_d = self.map.to_frenet(self.retained.x[-1], self.retained.y[-1])
            self.retained.end_s = end_s
            self.retained.end_d = end_d

    def _min_distance(self, vehicles: List[VehicleObservation]) -> float:
        if not vehicles:
            return math.inf
        return min(math.hypot(v.x - self.ego.x, v.y - self.ego.y) for v in vehicles)

    def run(self, n_ticks: Optional[int] = None) -> List[TickRecord]:
        """Run the closed loop.

        Args:
            n_ticks: Number of planning cycles (defaults to ``config.sim_ticks``)

        Returns:
            Simulation history
        """
        if n_ticks is None:
            n_ticks = self.config.sim_ticks

        logger.info(f"Running simulation for {n_ticks} planning cycles")

        for i in range(n_ticks):
            record = self.step()

            if i % 100 == 0:
                logger.info(
                    f"Cycle {i}/{n_ticks}, t={record.time:.1f}s, lane={record.state.lane}, "
                    f"v={self.ego.speed:.2f}m/s, v_ref={record.state.reference_speed:.2f}m/s"
                )

            if record.min_distance < COLLISION_DISTANCE:
                logger.error(f"Collision detected at t={record.time:.1f}s!")
                break

        logger.info(f"Simulation complete: {len(self.history)} cycles, t={self.time:.1f}s")
        return self.history

    def summary(self) -> dict:
        """Aggregate figures of the recorded history."""
        if not self.history:
            return {}

        speeds = np.array([r.ego.speed for r in self.history])
        lanes = [r.state.lane for r in self.history]
        times = np.array([r.planning_time for r in self.history])
        path = np.array([[r.ego.x, r.ego.y] for r in self.history] + [[self.ego.x, self.ego.y]])

        return {
            'scenario_file': str(self.config.config_path),
            'cycles': len(self.history),
            'total_time': self.time,
            'distance': float(np.sum(np.hypot(*np.diff(path, axis=0).T))),
            'mean_speed': float(speeds.mean()),
            'max_speed': float(speeds.max()),
            'lane_changes': sum(1 for a, b in zip(lanes, lanes[1:]) if a != b),
            'min_distance': min(r.min_distance for r in self.history),
            'collision': any(r.min_distance < COLLISION_DISTANCE for r in self.history),
            'avg_planning_time': float(times.mean()),
            'max_planning_time': float(times.max()),
        }

    def save_results(self, output_path: Optional[str] = None):
        """Write ``history.npz``, ``summary.csv`` and, when enabled, the dashboard.

        Args:
            output_path: Output directory (defaults to ``config.output_path``)
        """
        if not self.history:
            logger.warning("No history to save")
            return

        output_dir = Path(output_path or self.config.output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        npz_path = output_dir / "history.npz"
        np.savez(
            npz_path,
            time=np.array([r.time for r in self.history]),
            ego_x=np.array([r.ego.x for r in self.history]),
            ego_y=np.array([r.ego.y for r in self.history]),
            ego_s=np.array([r.ego.s for r in self.history]),
            ego_d=np.array([r.ego.d for r in self.history]),
            ego_speed=np.array([r.ego.speed for r in self.history]),
            lane=np.array([r.state.lane for r in self.history]),
            reference_speed=np.array([r.state.reference_speed for r in self.history]),
            costs=np.array([r.costs.as_tuple() for r in self.history]),
            min_distance=np.array([r.min_distance for r in self.history]),
            planning_time=np.array([r.planning_time for r in self.history]),
            trajectory=np.array([r.trajectory.points() for r in self.history]),
        )
        logger.info(f"Saved history to {npz_path}")

        summary = self.summary()
        csv_path = output_dir / "summary.csv"
        with open(csv_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=list(summary.keys()))
            writer.writeheader()
            writer.writerow(summary)
        logger.info(f"Saved summary to {csv_path}")

        if self.config.visualization_enabled:
            from ..visualization.dashboard import create_dashboard
            create_dashboard(
                self.history,
                str(output_dir / "dashboard.png"),
                waypoint_map=self.map,
                summary=summary,
            )
        else:
            logger.debug("Visualization disabled, skipping dashboard generation.")
