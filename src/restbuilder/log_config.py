# restbuilder/log_config.py
"""Logging configuration for the restbuilder library using Loguru.

Every restbuilder module logs through the shared Loguru ``logger`` exported
here. Applications call `configure_logging` once to pick a level and a sink;
the library itself never installs handlers on import.
"""

import sys

from loguru import logger

__all__ = ["configure_logging", "logger"]

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", sink=sys.stderr) -> int:
    """
    Configures Loguru logger.

    Removes default handlers and adds a new one with the specified level and sink.

    Args:
        level: The minimum logging level (e.g., "TRACE", "DEBUG", "INFO").
        sink: The output sink (e.g., sys.stderr, "restbuilder.log").

    Returns:
        int: The Loguru handler id of the installed sink.
    """
    logger.remove()
    handler_id = logger.add(
        sink,
        level=level.upper(),
        format=LOG_FORMAT,
        colorize=sink is sys.stderr,
        backtrace=True,
        diagnose=True,
    )
    logger.info(
        f"Loguru logger configured with level={level.upper()} writing to {sink}"
    )
    return handler_id
