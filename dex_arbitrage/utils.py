"""
Common helpers for the DEX arbitrage scanner.

Provides structured loggers and small formatting helpers shared by the
evaluator, runner and CLI.
"""

import logging
from typing import Union


def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a structured logger with consistent formatting.

    Args:
        name: Logger name (typically __name__)
        level: Logging level

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def fee_tier_to_pct(fee: int) -> float:
    """Convert a V3 fee tier to percent (3000 -> 0.30)."""
    return fee / 10_000.0


def short_address(address: str) -> str:
    """Shorten an address for log output (0x1234...abcd)."""
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
