"""
Central logging configuration for calendar_aggregator.

Keeps the package's own loggers at INFO (or DEBUG when requested) while
suppressing verbose debug output from the HTTP stack.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

PACKAGE_LOGGER = "calendar_aggregator"

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party libraries that generate excessive debug logs
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "charset_normalizer")


def _build_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
    return handler


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level_name: Optional[str] = None,
) -> None:
    """
    Configure logging levels for calendar_aggregator.

    Args:
        debug_mode: Whether to enable debug logging for calendar_aggregator modules
        force_debug: Override debug mode setting (None to use env var detection)
        level_name: Explicit root level name (DEBUG, INFO, WARNING, ERROR)

    Environment Variables:
        CALAGG_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALAGG_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALAGG_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = (level_name or os.getenv("CALAGG_LOG_LEVEL", "")).upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist so embedding applications keep theirs
    if not root_logger.handlers:
        root_logger.addHandler(_build_handler())

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        root_logger.debug("Debug logging enabled for calendar_aggregator modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in (PACKAGE_LOGGER, *NOISY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
