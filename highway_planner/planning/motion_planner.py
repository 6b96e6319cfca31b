"""One planning cycle per telemetry tick.

``MotionPlanner.plan`` runs behavior planning followed by trajectory
generation and hands the updated ``PlannerState`` back to the caller.
``PlanningSession`` is the single owner of that state across ticks.
"""

import time
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from loguru import logger

from ..core.data_structures import BehaviorDecision, PlannerState, Telemetry, Trajectory
from ..core.waypoint_map import WaypointMap
from .behavior_planner import BehaviorPlanner
from .trajectory_generator import TrajectoryGenerator
from .vehicle_tracker import VehicleTracker

if TYPE_CHECKING:
    from ..config import PlannerConfig


@dataclass(frozen=True)
class PlanResult:
    """Output of one planning cycle.

    Attributes:
        trajectory: Points for the actuator
        state: Planner state for the next cycle
        decision: Behavior decision the trajectory was built for
        planning_time: Wall clock time spent in the cycle [s]
    """
    trajectory: Trajectory
    state: PlannerState
    decision: BehaviorDecision
    planning_time: float = 0.0


class MotionPlanner:
    """Behavior planning and trajectory generation for one tick.

    Args:
        behavior: Lane and speed selection
        generator: Trajectory builder
    """

    def __init__(self, behavior: BehaviorPlanner, generator: TrajectoryGenerator):
        self.behavior = behavior
        self.generator = generator

    @classmethod
    def from_config(cls, config: 'PlannerConfig', waypoint_map: WaypointMap) -> 'MotionPlanner':
        """Wire all components from a configuration."""
        tracker = VehicleTracker(waypoint_map, dt=config.dt)
        behavior = BehaviorPlanner(
            tracker,
            speed_limit=config.speed_limit,
            accel_step=config.accel_step,
            leader_margin=config.leader_margin,
            search_buffer=config.search_buffer,
            w_speed=config.w_speed,
            w_dist=config.w_dist,
            w_stay=config.w_stay,
            w_coll=config.w_coll,
            min_gap=config.min_gap,
        )
        generator = TrajectoryGenerator(
            waypoint_map,
            dt=config.dt,
            horizon=config.horizon,
            lookahead_offsets=config.lookahead_offsets,
        )
        return cls(behavior, generator)

    def plan(self, telemetry: Telemetry, state: PlannerState) -> PlanResult:
        """Run one planning cycle.

        Args:
            telemetry: Input of this tick
            state: Planner state from the previous cycle

        Returns:
            Trajectory, next planner state and the behavior decision
        """
        t_start = time.perf_counter()
        retained_length = len(telemetry.retained_path)
        start_s = telemetry.planning_s

        decision = self.behavior.decide(state, start_s, telemetry.vehicles, retained_length)
        trajectory = self.generator.generate(
            telemetry.ego, telemetry.retained_path, decision.state, start_s
        )
        t_plan = time.perf_counter() - t_start

        logger.debug(
            f"Planned lane={decision.state.lane} v_ref={decision.state.reference_speed:.2f}m/s "
            f"retained={retained_length} vehicles={len(telemetry.vehicles)} in {t_plan * 1e3:.2f}ms"
        )
        return PlanResult(
            trajectory=trajectory,
            state=decision.state,
            decision=decision,
            planning_time=t_plan,
        )


class PlanningSession:
    """Holds the planner state from process start to shutdown.

    Args:
        planner: Planner run on every tick
        initial_state: State before the first tick
    """

    def __init__(self, planner: MotionPlanner, initial_state: Optional[PlannerState] = None):
        self.planner = planner
        self.initial_state = initial_state or PlannerState.initial()
        self.state = self.initial_state
        self.tick_count = 0
        self.last_result: Optional[PlanResult] = None

    def step(self, telemetry: Telemetry) -> Trajectory:
        """Plan for one tick and keep the resulting state."""
        result = self.planner.plan(telemetry, self.state)
        self.state = result.state
        self.last_result = result
        self.tick_count += 1
        return result.trajectory

    def reset(self):
        """Back to the initial state, e.g. on simulator reconnect."""
        self.state = self.initial_state
        self.tick_count = 0
        self.last_result = None
        logger.debug("Planning session reset")
