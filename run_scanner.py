#!/usr/bin/env python3
"""
Cross-DEX arbitrage scanner CLI.

Quotes every configured token on every ordered pair of DEXes, logs
round trips whose net profit clears the threshold and records them in
SQLite.

Usage:
    python3 run_scanner.py
    python3 run_scanner.py --config configs/polygon.yaml
    python3 run_scanner.py --config configs/polygon.yaml --once
"""

import argparse
import asyncio
import logging
import sys

from dex_arbitrage import logging_config
from dex_arbitrage.config import ConfigError, load_config
from dex_arbitrage.exceptions import ConfigurationError, NetworkError
from dex_arbitrage.runner import DetectionRunner


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cross-DEX arbitrage opportunity scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_scanner.py

  # Single cycle (for testing/CI)
  python3 run_scanner.py --config configs/polygon.yaml --once

  # Write opportunities to another database
  python3 run_scanner.py --db data/opportunities.db
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/polygon.yaml",
        help="Path to config YAML file (default: configs/polygon.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single detection cycle and exit (overrides config setting)",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (overrides database_url / DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    logging_config.setup(level=getattr(logging, args.log_level))

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    if args.once:
        config.once = True
    if args.db:
        config.database_url = args.db

    runner = DetectionRunner(config)
    try:
        runner.connect()
    except NetworkError as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(runner.run())
    except ConfigurationError as e:
        print(f"❌ Stopped on config error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
