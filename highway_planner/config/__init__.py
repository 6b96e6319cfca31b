"""Configuration management module."""

import yaml
from pathlib import Path
from typing import Optional, List
from dataclasses import dataclass, field, asdict
from loguru import logger


MPH_TO_MPS = 1.0 / 2.24


@dataclass
class PlannerConfig:
    """Configuration for the highway motion planner.

    Attributes:
        # Timing
        dt: Duration of one actuator tick [s]
        horizon: Number of points emitted per planning cycle

        # Road geometry
        n_lanes: Number of lanes
        lane_width: Lane width [m]
        initial_lane: Lane the planner starts in

        # Speed control
        speed_limit: Maximum reference speed [m/s]
        accel_step: Reference speed change per tick [m/s]
        leader_margin: Speed margin below the leader before speeding up [m/s]

        # Trajectory shaping
        lookahead_offsets: Arc-length offsets of the forward anchors [m]

        # Behavior costs
        search_buffer: Forward search distance for vehicles ahead [m]
        w_speed: Weight of the slow-leader penalty
        w_dist: Weight of the proximity penalty
        w_stay: Bonus for keeping the current lane
        w_coll: Penalty for a vehicle behind in another lane
        min_gap: Lower clamp of the distance used by the proximity penalty [m]

        # Track
        map_file: Whitespace separated waypoint file (x y s dx dy)
        track_length: Arc length at which s wraps back to 0 [m]

        # Bridge
        host: Websocket bind address
        port: Websocket port

        # Offline simulation
        sim_ticks: Number of planning cycles to simulate
        sim_points_per_tick: Trajectory points consumed between cycles
        sim_track_radius: Radius of the generated loop track [m]
        sim_track_waypoints: Number of waypoints of the generated loop track
        sim_traffic: List of [lane, s, speed] traffic vehicles
        output_path: Output directory for results
        visualization_enabled: Write plots alongside results
    """
    # Timing
    dt: float = 0.02
    horizon: int = 50

    # Road geometry
    n_lanes: int = 3
    lane_width: float = 4.0
    initial_lane: int = 1

    # Speed control
    speed_limit: float = 49.5 * MPH_TO_MPS
    accel_step: float = 0.224 * MPH_TO_MPS
    leader_margin: float = 0.5

    # Trajectory shaping
    lookahead_offsets: list = field(default_factory=lambda: [30.0, 60.0, 90.0])

    # Behavior costs
    search_buffer: float = 30.0
    w_speed: float = 2.24
    w_dist: float = 40.0
    w_stay: float = 5.0
    w_coll: float = 1000.0
    min_gap: float = 0.1

    # Track
    map_file: Optional[str] = None
    track_length: float = 6945.554

    # Bridge
    host: str = '0.0.0.0'
    port: int = 4567

    # Offline simulation
    sim_ticks: int = 1500
    sim_points_per_tick: int = 2
    sim_track_radius: float = 500.0
    sim_track_waypoints: int = 180
    sim_traffic: list = field(default_factory=list)
    output_path: str = 'output'
    visualization_enabled: bool = True

    # Internal: loaded from
    config_path: Optional[str] = None


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""
    pass


def validate_config(config: PlannerConfig) -> None:
    """Validate configuration values for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors: List[str] = []

    # Timing
    if config.dt <= 0:
        errors.append(f"dt must be positive, got {config.dt}")
    if config.horizon < 2:
        errors.append(f"horizon must be at least 2, got {config.horizon}")

    # Road geometry
    if config.n_lanes <= 0:
        errors.append(f"n_lanes must be positive, got {config.n_lanes}")
    if config.lane_width <= 0:
        errors.append(f"lane_width must be positive, got {config.lane_width}")
    if not 0 <= config.initial_lane < config.n_lanes:
        errors.append(f"initial_lane must be in [0, {config.n_lanes - 1}], got {config.initial_lane}")

    # Speed control
    if config.speed_limit <= 0:
        errors.append(f"speed_limit must be positive, got {config.speed_limit}")
    if config.accel_step <= 0:
        errors.append(f"accel_step must be positive, got {config.accel_step}")
    if config.accel_step > config.speed_limit:
        errors.append(f"accel_step ({config.accel_step}) must be <= speed_limit ({config.speed_limit})")
    if config.leader_margin < 0:
        errors.append(f"leader_margin must be non-negative, got {config.leader_margin}")

    # Trajectory shaping
    offsets = list(config.lookahead_offsets)
    if len(offsets) < 1:
        errors.append("lookahead_offsets must contain at least one offset")
    elif any(o <= 0 for o in offsets) or any(b <= a for a, b in zip(offsets, offsets[1:])):
        errors.append(f"lookahead_offsets must be positive and strictly increasing, got {offsets}")
    elif config.horizon * config.dt * config.speed_limit >= offsets[0]:
        # The resampled horizon must stay inside the fitted spline
        errors.append(
            f"horizon distance at speed_limit ({config.horizon * config.dt * config.speed_limit:.1f}m) "
            f"must be shorter than the first lookahead offset ({offsets[0]}m)"
        )

    # Behavior costs
    if config.search_buffer <= 0:
        errors.append(f"search_buffer must be positive, got {config.search_buffer}")
    if config.min_gap <= 0:
        errors.append(f"min_gap must be positive, got {config.min_gap}")
    cost_weights = {
        'w_speed': config.w_speed,
        'w_dist': config.w_dist,
        'w_stay': config.w_stay,
        'w_coll': config.w_coll,
    }
    for name, value in cost_weights.items():
        if value < 0:
            errors.append(f"{name} must be non-negative, got {value}")

    # Track
    if config.track_length <= 0:
        errors.append(f"track_length must be positive, got {config.track_length}")
    if config.map_file:
        if not Path(config.map_file).exists():
            errors.append(f"map_file does not exist: {config.map_file}")

    # Bridge
    if not 0 < config.port < 65536:
        errors.append(f"port must be in (0, 65536), got {config.port}")

    # Offline simulation
    if config.sim_ticks <= 0:
        errors.append(f"sim_ticks must be positive, got {config.sim_ticks}")
    if not 0 < config.sim_points_per_tick <= config.horizon:
        errors.append(f"sim_points_per_tick must be in [1, {config.horizon}], got {config.sim_points_per_tick}")
    if config.sim_track_radius <= 0:
        errors.append(f"sim_track_radius must be positive, got {config.sim_track_radius}")
    if config.sim_track_waypoints < 3:
        errors.append(f"sim_track_waypoints must be at least 3, got {config.sim_track_waypoints}")
    for i, vehicle in enumerate(config.sim_traffic):
        if len(vehicle) != 3:
            errors.append(f"sim_traffic[{i}] must have 3 elements [lane, s, speed], got {len(vehicle)}")
        elif not 0 <= vehicle[0] < config.n_lanes:
            errors.append(f"sim_traffic[{i}] lane must be in [0, {config.n_lanes - 1}], got {vehicle[0]}")
        elif vehicle[2] < 0:
            errors.append(f"sim_traffic[{i}] speed must be non-negative, got {vehicle[2]}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigValidationError(error_msg)


def load_config(config_path: str) -> PlannerConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Loaded configuration
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file {config_path}: {e}") from e

    if config_dict is None:
        raise ValueError(f"YAML file {config_path} is empty or contains no valid content")

    try:
        config = PlannerConfig(**config_dict)
    except TypeError as e:
        raise ValueError(f"Invalid configuration structure in {config_path}: {e}") from e

    config.config_path = str(config_path)

    try:
        validate_config(config)
    except ConfigValidationError:
        logger.error(f"Configuration validation failed for {config_path}")
        raise

    logger.info(f"Configuration loaded and validated from {config_path}")

    return config


def save_config(config: PlannerConfig, config_path: str):
    """Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to save YAML file
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = asdict(config)
    config_dict.pop('config_path', None)

    with open(config_path, 'w') as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    logger.info(f"Configuration saved to {config_path}")
