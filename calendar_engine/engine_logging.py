"""
Central logging configuration for calendar_engine.

Keeps engine diagnostics visible while suppressing verbose DEBUG output from
the HTTP libraries used by the REST server and the HTTP store.
"""

import logging
import os
from typing import Optional

# Third-party libraries that generate excessive debug logs
NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

ENGINE_MODULES: tuple[str, ...] = (
    "calendar_engine",
    "calendar_engine.engine",
    "calendar_engine.domain.recurrence",
    "calendar_engine.domain.series_mutator",
    "calendar_engine.domain.notifications",
    "calendar_engine.store",
    "calendar_engine.api.server",
)


def configure_engine_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for calendar_engine and its HTTP dependencies.

    Args:
        debug_mode: Whether to enable debug logging for calendar_engine modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALENDAR_ENGINE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDAR_ENGINE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALENDAR_ENGINE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALENDAR_ENGINE_LOG_LEVEL", "").upper()

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

    logger_config = dict(NOISY_LOGGERS)
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for calendar_engine modules")
    else:
        root_logger.info("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("calendar_engine", "aiohttp.access", "httpx", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
