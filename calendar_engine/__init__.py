"""calendar_engine - recurrence and scheduling engine for a personal calendar.

Expands recurring rules into occurrences, detects overlaps, applies
single-vs-series edits and fires reminders. Imports stay light so the package
can be inspected without starting the HTTP server.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the CALENDAR_ENGINE_DEBUG environment variable (truthy values:
    "1", "true", "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALENDAR_ENGINE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the calendar REST server.

    Args:
        args: Optional argparse namespace with ``port``, ``host``, ``store``,
            ``config`` and ``log_level`` attributes overriding settings.
    """
    from .api.server import run_app
    from .config import EngineSettings
    from .engine_logging import configure_engine_logging

    overrides = {}
    for attr, setting in (
        ("port", "server_port"),
        ("host", "server_host"),
        ("store", "store_path"),
        ("log_level", "log_level"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            overrides[setting] = value

    settings = EngineSettings.load(getattr(args, "config", None), **overrides)
    _init_logging(settings.log_level)
    configure_engine_logging(debug_mode=settings.log_level == "DEBUG")
    run_app(settings)


__all__ = ["__version__", "run_server"]
