#!/usr/bin/env python3
"""Run the highway planner in the offline closed-loop simulator.

Example:
    python examples/run_simulation.py --scenario scenarios/highway.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from highway_planner.config import PlannerConfig, load_config
from highway_planner.simulation import HighwaySimulator


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description='Run the highway planner in the offline simulator'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default=None,
        help='Path to scenario configuration file (defaults built in)'
    )
    parser.add_argument(
        '--ticks',
        type=int,
        default=None,
        help='Number of planning cycles (overrides config)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output directory (overrides config)'
    )
    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip dashboard generation'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=args.log_level
    )
    logging.getLogger('matplotlib').setLevel(logging.WARNING)

    # Load configuration
    if args.scenario is not None:
        logger.info(f"Loading scenario from {args.scenario}")
        config = load_config(args.scenario)
    else:
        logger.info("No scenario given, using default configuration")
        config = PlannerConfig()

    if args.output is not None:
        config.output_path = args.output
    if args.no_plots:
        config.visualization_enabled = False

    simulator = HighwaySimulator(config)

    logger.info("Starting simulation")
    history = simulator.run(n_ticks=args.ticks)

    logger.info("Saving results")
    simulator.save_results()

    summary = simulator.summary()
    logger.info("=" * 60)
    logger.info("SIMULATION SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Planning cycles: {len(history)}")
    logger.info(f"Simulated time: {summary['total_time']:.2f}s")
    logger.info(f"Distance driven: {summary['distance']:.1f}m")
    logger.info(f"Mean speed: {summary['mean_speed']:.2f} m/s (max {summary['max_speed']:.2f} m/s)")
    logger.info(f"Lane changes: {summary['lane_changes']}")
    logger.info(f"Minimum distance to traffic: {summary['min_distance']:.2f}m")
    logger.info(f"Planning time: avg {summary['avg_planning_time'] * 1e3:.2f}ms, "
                f"max {summary['max_planning_time'] * 1e3:.2f}ms")

    if summary['collision']:
        logger.error("COLLISION OCCURRED!")
    else:
        logger.success("No collisions")

    logger.info("=" * 60)
    logger.success("Simulation complete!")


if __name__ == '__main__':
    main()
