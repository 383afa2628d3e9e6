"""Command-line entry for calendar_engine.

Starts the REST server that exposes the event store used by the engine.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn

from . import run_server


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calendar_engine CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendar_engine",
        description="Calendar engine - event store REST server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_engine                          # Serve on the default port (3000)
  python -m calendar_engine --port 8080              # Serve on port 8080
  python -m calendar_engine --store ./events.json    # Use a specific JSON store file
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port for the REST server (default: 3000, or CALENDAR_ENGINE_SERVER_PORT)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Bind address (default: 127.0.0.1, or CALENDAR_ENGINE_SERVER_HOST)",
    )
    parser.add_argument(
        "--store",
        type=Path,
        metavar="PATH",
        help="JSON file backing the event store (default: ./data/events.json)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="YAML configuration file (default: ./config.yaml when present)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level",
    )

    return parser


def main() -> NoReturn:
    """Run the calendar_engine CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run_server(args)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(0)


if __name__ == "__main__":
    main()
