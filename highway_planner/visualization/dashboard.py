"""Static plots of planner output and simulation runs."""

import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

import matplotlib

# Plots are only ever written to files
if os.environ.get("MPLBACKEND") is None:
    matplotlib.use("Agg")

import matplotlib.gridspec as gridspec
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger

from ..core.data_structures import Trajectory, VehicleObservation
from ..core.waypoint_map import WaypointMap

if TYPE_CHECKING:
    from ..simulation.highway_simulator import TickRecord


LANE_COLORS = ('tab:blue', 'tab:green', 'tab:orange')


def plot_road(ax, waypoint_map: WaypointMap, n_samples: int = 720):
    """Draw the lane boundaries of the track."""
    s = np.linspace(0.0, waypoint_map.track_length, n_samples)
    for i in range(waypoint_map.n_lanes + 1):
        d = i * waypoint_map.lane_width
        xy = np.array([waypoint_map.to_cartesian(si, d) for si in s])
        outer = i in (0, waypoint_map.n_lanes)
        ax.plot(xy[:, 0], xy[:, 1],
                'k-' if outer else 'k--',
                linewidth=1.5 if outer else 0.8,
                alpha=0.8 if outer else 0.4, zorder=1)


def plot_trajectory(
    waypoint_map: WaypointMap,
    trajectory: Trajectory,
    vehicles: Sequence[VehicleObservation] = (),
    ax=None,
):
    """Plot one emitted trajectory with the surrounding traffic.

    The view is cropped to the neighbourhood of the trajectory.

    Args:
        waypoint_map: Track to draw
        trajectory: Trajectory to draw
        vehicles: Sensed vehicles of the same tick
        ax: Axes to draw into; a new figure is created when omitted

    Returns:
        The axes drawn into
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    plot_road(ax, waypoint_map)
    ax.plot(trajectory.x, trajectory.y, 'b.-', markersize=3, label='Trajectory', zorder=3)
    ax.plot(trajectory.x[0], trajectory.y[0], 'go', label='Start', zorder=4)

    if vehicles:
        ax.plot([v.x for v in vehicles], [v.y for v in vehicles],
                'rs', markersize=6, label='Vehicles', zorder=3)

    margin = 40.0
    ax.set_xlim(trajectory.x.min() - margin, trajectory.x.max() + margin)
    ax.set_ylim(trajectory.y.min() - margin, trajectory.y.max() + margin)
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='upper right', fontsize=8)
    return ax


def create_dashboard(
    history: List['TickRecord'],
    output_path: str,
    waypoint_map: Optional[WaypointMap] = None,
    summary: Optional[Dict] = None,
):
    """Create and save the run dashboard.

    Args:
        history: Simulation history
        output_path: Path of the image to write
        waypoint_map: Track, drawn under the ego path when given
        summary: Aggregate figures shown as a table
    """
    if not history:
        raise ValueError("History is empty")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    times = np.array([r.time for r in history])
    speeds = np.array([r.ego.speed for r in history])
    ref_speeds = np.array([r.state.reference_speed for r in history])
    lanes = np.array([r.state.lane for r in history])
    costs = np.array([r.costs.as_tuple() for r in history])

    fig = plt.figure(figsize=(18, 12), constrained_layout=True)
    gs = gridspec.GridSpec(4, 3, figure=fig)

    # Path map
    ax_map = fig.add_subplot(gs[:, 0:2])
    if waypoint_map is not None:
        plot_road(ax_map, waypoint_map)
    ego_x = [r.ego.x for r in history]
    ego_y = [r.ego.y for r in history]
    ax_map.plot(ego_x, ego_y, 'b-', linewidth=2, label='Ego', zorder=2)
    ax_map.plot(ego_x[0], ego_y[0], 'go', label='Start', zorder=3)
    ax_map.plot(ego_x[-1], ego_y[-1], 'ro', label='End', zorder=3)
    last = history[-1].vehicles
    if last:
        ax_map.plot([v.x for v in last], [v.y for v in last], 'rs', markersize=4,
                    label='Traffic (final)', zorder=3)
    ax_map.set_title("Ego Path")
    ax_map.set_aspect('equal')
    ax_map.grid(True, alpha=0.3)
    ax_map.legend(loc='upper right', fontsize=9)

    # Speed
    ax_speed = fig.add_subplot(gs[0, 2])
    ax_speed.plot(times, speeds, color='blue', label='Ego speed')
    ax_speed.plot(times, ref_speeds, color='gray', linestyle='--', label='Reference')
    ax_speed.set_ylabel("Speed [m/s]")
    ax_speed.set_title("Speed")
    ax_speed.grid(True, alpha=0.3)
    ax_speed.legend(fontsize=8)

    # Lane
    ax_lane = fig.add_subplot(gs[1, 2])
    ax_lane.step(times, lanes, where='post', color='purple')
    ax_lane.set_yticks(range(len(LANE_COLORS)))
    ax_lane.set_yticklabels(['left', 'middle', 'right'])
    ax_lane.invert_yaxis()
    ax_lane.set_title("Target Lane")
    ax_lane.grid(True, alpha=0.3)

    # Costs
    ax_cost = fig.add_subplot(gs[2, 2])
    for lane, color in enumerate(LANE_COLORS):
        ax_cost.plot(times, np.clip(costs[:, lane], -10, 100), color=color, label=f"lane {lane}")
    ax_cost.set_xlabel("Time [s]")
    ax_cost.set_title("Lane Costs (clipped)")
    ax_cost.grid(True, alpha=0.3)
    ax_cost.legend(fontsize=8)

    # Summary table
    ax_table = fig.add_subplot(gs[3, 2])
    ax_table.axis('off')
    if summary:
        rows = [[k, f"{v:.2f}" if isinstance(v, float) else str(v)]
                for k, v in summary.items() if k != 'scenario_file']
        table = ax_table.table(cellText=rows, colLabels=["Metric", "Value"],
                               loc='center', cellLoc='center')
        table.auto_set_font_size(False)
        table.set_fontsize(9)
        ax_table.set_title("Summary")
    else:
        ax_table.text(0.5, 0.5, "No summary available", ha='center')

    fig.suptitle("Highway Planner Run", fontsize=16)
    plt.savefig(output_path, dpi=120)
    plt.close(fig)
    logger.info(f"Dashboard saved to {output_path}")
