"""Cost-based lane and speed selection.

Each lane is scored from the vehicles around the ego vehicle:

- slow leader: ``w_speed * (speed_limit - leader_speed)``
- close leader: ``w_dist / max(leader_distance, min_gap)``
- current lane: ``-w_stay`` (hysteresis)
- vehicle behind in another lane: ``+w_coll`` (blind spot)

The lane decision moves at most one lane per cycle, and the reference speed
ramps by one acceleration step towards the leader's speed or the limit.
"""

from typing import Dict, Iterable, Optional

from loguru import logger

from ..core.data_structures import (
    BehaviorDecision,
    LaneCosts,
    PlannerState,
    TrackedVehicle,
    VehicleObservation,
)
from .vehicle_tracker import VehicleTracker


# Lane indices
LEFT_LANE = 0
MIDDLE_LANE = 1
RIGHT_LANE = 2

# Speed control [m/s]
SPEED_LIMIT = 49.5 / 2.24
ACCEL_STEP = 0.224 / 2.24
LEADER_MARGIN = 0.5

# Search distances [m]
SEARCH_BUFFER = 30.0
MIN_GAP = 0.1

# Cost weights
W_SPEED = 2.24
W_DIST = 40.0
W_STAY = 5.0
W_COLL = 1000.0


class BehaviorPlanner:
    """Chooses the target lane and reference speed once per cycle.

    ``decide`` is a pure function of its arguments: the previous
    ``PlannerState`` goes in, the next one comes out.

    Args:
        tracker: Nearest-vehicle query helper
        speed_limit: Maximum reference speed [m/s]
        accel_step: Reference speed change per cycle [m/s]
        leader_margin: Speed deficit to the leader before accelerating [m/s]
        search_buffer: Forward search distance; backward uses a third of it [m]
        w_speed, w_dist, w_stay, w_coll: Cost weights
        min_gap: Floor of the distance in the proximity penalty [m]
    """

    def __init__(
        self,
        tracker: VehicleTracker,
        speed_limit: float = SPEED_LIMIT,
        accel_step: float = ACCEL_STEP,
        leader_margin: float = LEADER_MARGIN,
        search_buffer: float = SEARCH_BUFFER,
        w_speed: float = W_SPEED,
        w_dist: float = W_DIST,
        w_stay: float = W_STAY,
        w_coll: float = W_COLL,
        min_gap: float = MIN_GAP,
    ):
        self.tracker = tracker
        self.speed_limit = speed_limit
        self.accel_step = accel_step
        self.leader_margin = leader_margin
        self.search_buffer = search_buffer
        self.w_speed = w_speed
        self.w_dist = w_dist
        self.w_stay = w_stay
        self.w_coll = w_coll
        self.min_gap = min_gap
        self.lanes = (LEFT_LANE, MIDDLE_LANE, RIGHT_LANE)

        logger.info(
            f"Behavior planner initialized with speed_limit={speed_limit:.2f}m/s, "
            f"accel_step={accel_step:.3f}m/s, buffer={search_buffer:.1f}m, "
            f"weights=(speed={w_speed}, dist={w_dist}, stay={w_stay}, coll={w_coll})"
        )

    def decide(
        self,
        state: PlannerState,
        ego_s: float,
        vehicles: Iterable[VehicleObservation],
        retained_length: int,
    ) -> BehaviorDecision:
        """Compute the next planner state.

        Args:
            state: State from the previous cycle
            ego_s: Arc length the new trajectory starts from [m]
            vehicles: Sensed vehicles
            retained_length: Number of retained path points

        Returns:
            Decision holding the next state, the cost snapshot and the leader
        """
        vehicles = list(vehicles)

        ahead: Dict[int, Optional[TrackedVehicle]] = {}
        behind: Dict[int, Optional[TrackedVehicle]] = {}
        for lane in self.lanes:
            ahead[lane] = self.tracker.find_ahead(
                ego_s, lane, vehicles, retained_length, self.search_buffer
            )
            behind[lane] = self.tracker.find_behind(
                ego_s, lane, vehicles, retained_length, self.search_buffer / 3.0
            )

        costs = LaneCosts(*(
            self.lane_cost(lane, state.lane, ahead[lane], behind[lane])
            for lane in self.lanes
        ))

        lane = self.select_lane(state.lane, costs)
        if lane != state.lane:
            logger.debug(
                f"Lane change {state.lane} -> {lane}, costs="
                f"({costs.left:.1f}, {costs.middle:.1f}, {costs.right:.1f})"
            )

        leader = ahead[lane]
        speed = self.update_speed(state.reference_speed, leader)

        return BehaviorDecision(
            state=PlannerState(lane=lane, reference_speed=speed),
            costs=costs,
            leader=leader,
        )

    def lane_cost(
        self,
        lane: int,
        current_lane: int,
        ahead: Optional[TrackedVehicle],
        behind: Optional[TrackedVehicle],
    ) -> float:
        """Cost of driving in ``lane`` for this cycle."""
        cost = 0.0
        if ahead is not None:
            cost += self.w_speed * (self.speed_limit - ahead.speed)
            cost += self.w_dist / max(ahead.distance, self.min_gap)
        if lane == current_lane:
            cost -= self.w_stay
        elif behind is not None:
            cost += self.w_coll
        return cost

    @staticmethod
    def select_lane(current_lane: int, costs: LaneCosts) -> int:
        """Apply at most one lane transition based on a single cost snapshot."""
        left, middle, right = costs.as_tuple()

        if current_lane == LEFT_LANE:
            return MIDDLE_LANE if middle < left else LEFT_LANE

        if current_lane == MIDDLE_LANE:
            if right < middle and right <= left:
                return RIGHT_LANE
            if left < middle and left < right:
                return LEFT_LANE
            return MIDDLE_LANE

        if current_lane == RIGHT_LANE:
            return MIDDLE_LANE if middle < right else RIGHT_LANE

        raise ValueError(f"Lane must be one of {LEFT_LANE}, {MIDDLE_LANE}, {RIGHT_LANE}, got {current_lane}")

    def update_speed(self, reference_speed: float, leader: Optional[TrackedVehicle]) -> float:
        """Ramp the reference speed by at most one step."""
        speed = reference_speed
        if leader is not None:
            if reference_speed > leader.speed:
                speed = reference_speed - self.accel_step
            elif reference_speed < leader.speed - self.leader_margin:
                speed = reference_speed + self.accel_step
        elif reference_speed < self.speed_limit:
            speed = reference_speed + self.accel_step

        return min(max(speed, 0.0), self.speed_limit)

