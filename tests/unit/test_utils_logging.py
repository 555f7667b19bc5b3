"""Tests for utils logging and formatting helpers."""

import io
import logging

import pytest

from dex_arbitrage import logging_config
from dex_arbitrage.utils import (
    fee_tier_to_pct,
    format_duration,
    get_logger,
    short_address,
)


def test_get_logger_basic():
    """Test basic get_logger functionality."""
    logger = get_logger(__name__)
    assert isinstance(logger, logging.Logger)
    assert logger.name == __name__


def test_get_logger_with_level():
    """Test get_logger with custom level."""
    logger = get_logger(__name__ + ".test1", level=logging.DEBUG)
    assert logger.level == logging.DEBUG


def test_get_logger_structured_format():
    """Test that get_logger produces structured log format."""
    logger = get_logger(__name__ + ".test3", level=logging.INFO)

    captured_output = io.StringIO()
    original_stream = logger.handlers[0].stream
    logger.handlers[0].stream = captured_output
    try:
        logger.info("Test message")
    finally:
        logger.handlers[0].stream = original_stream

    log_output = captured_output.getvalue()
    assert "INFO" in log_output
    assert "Test message" in log_output
    assert __name__ + ".test3" in log_output


def test_get_logger_does_not_duplicate_handlers():
    """Calling get_logger twice reuses the existing handler."""
    name = __name__ + ".test5"
    get_logger(name)
    logger = get_logger(name)
    assert len(logger.handlers) == 1


def test_setup_routes_app_loggers_through_root():
    """After setup, package loggers have no handlers of their own."""
    app_logger = get_logger("dex_arbitrage.test_setup")
    assert app_logger.handlers

    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    app_loggers = {
        name: logging.getLogger(name)
        for name in list(logging.root.manager.loggerDict)
        if name.startswith("dex_arbitrage")
    }
    saved_app = {
        name: (list(lg.handlers), lg.level) for name, lg in app_loggers.items()
    }
    try:
        logging_config.setup(level=logging.WARNING)

        assert app_logger.handlers == []
        assert app_logger.level == logging.WARNING
        assert logging.getLogger("web3").level == logging.WARNING
        assert len(root.handlers) == 1
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        for name, (handlers, level) in saved_app.items():
            app_loggers[name].handlers[:] = handlers
            app_loggers[name].setLevel(level)


@pytest.mark.parametrize(
    "seconds,expected",
    [(0.5, "0.50s"), (59.99, "59.99s"), (90, "1.5m"), (7200, "2.0h")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_fee_tier_to_pct():
    assert fee_tier_to_pct(3000) == pytest.approx(0.30)
    assert fee_tier_to_pct(500) == pytest.approx(0.05)


def test_short_address():
    address = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
    assert short_address(address) == "0x2791...4174"
    assert short_address("0x1234") == "0x1234"
