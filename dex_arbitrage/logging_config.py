"""
Logging configuration for cleaner console output.

Usage:
    from dex_arbitrage import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses verbose HTTP/RPC request logs from web3 and urllib3
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    # Application loggers follow the requested level and print through the
    # root console handler only
    for name in list(logging.root.manager.loggerDict):
        if name == "dex_arbitrage" or name.startswith("dex_arbitrage."):
            app_logger = logging.getLogger(name)
            app_logger.handlers.clear()
            app_logger.setLevel(level)
