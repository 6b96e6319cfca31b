#!/usr/bin/env python3
"""Serve the planner to the driving simulator over a websocket.

Example:
    python examples/run_server.py --map data/highway_map.csv
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from highway_planner.config import PlannerConfig, load_config, validate_config
from highway_planner.bridge import run_server


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description='Serve the highway planner to the simulator'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (defaults built in)'
    )
    parser.add_argument(
        '--map',
        type=str,
        default=None,
        help='Track waypoint file, rows of "x y s dx dy" (overrides config)'
    )
    parser.add_argument(
        '--host',
        type=str,
        default=None,
        help='Bind address (overrides config)'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Port (overrides config)'
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

    config = load_config(args.config) if args.config else PlannerConfig()
    if args.map is not None:
        config.map_file = args.map
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    validate_config(config)

    run_server(config)


if __name__ == '__main__':
    main()
