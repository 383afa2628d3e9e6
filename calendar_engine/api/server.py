"""aiohttp server exposing an EventStore over REST."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any, Optional

from aiohttp import web

from ..config import EngineSettings
from ..store import HttpEventStore, JsonFileEventStore
from .middleware import error_middleware
from .routes import register_event_routes

logger = logging.getLogger(__name__)

STORE_APP_KEY = web.AppKey("store", object)


def create_app(store: Any) -> web.Application:
    """Build the web application serving ``store``."""
    app = web.Application(middlewares=[error_middleware])
    app[STORE_APP_KEY] = store
    register_event_routes(app, store)
    logger.debug("Web application created for %s", type(store).__name__)
    return app


def create_store(settings: EngineSettings) -> Any:
    """Choose the backing store: a remote API when configured, else the JSON file."""
    if settings.api_base_url:
        logger.info("Proxying events to %s", settings.api_base_url)
        return HttpEventStore(settings.api_base_url, timeout=settings.store_timeout_seconds)
    logger.info("Using JSON event store at %s", settings.store_path)
    return JsonFileEventStore(settings.store_path)


async def serve(settings: EngineSettings, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until ``stop_event`` is set (or SIGINT/SIGTERM when not given)."""
    store = create_store(settings)
    app = create_app(store)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=settings.server_host, port=settings.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", settings.server_host, settings.server_port)
        await runner.cleanup()
        raise
    logger.info("Server started on http://%s:%d", settings.server_host, settings.server_port)

    if stop_event is None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        await runner.cleanup()
        if isinstance(store, HttpEventStore):
            await store.aclose()
        logger.info("Server shutdown complete")


def run_app(settings: EngineSettings) -> None:
    """Blocking entry point used by the CLI."""
    asyncio.run(serve(settings))
