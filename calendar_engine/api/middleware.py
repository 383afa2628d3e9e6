"""aiohttp middleware translating engine exceptions into JSON error responses."""

import logging
from collections.abc import Callable
from typing import Any

from aiohttp import web

from ..exceptions import CalendarEngineError, NotFoundError, TransportError, ValidationError

logger = logging.getLogger(__name__)

# Exception class -> HTTP status; checked in order
ERROR_STATUS: tuple[tuple[type[CalendarEngineError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (TransportError, 502),
)


def status_for(exc: CalendarEngineError) -> int:
    for exc_type, status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


@web.middleware
async def error_middleware(
    request: web.Request, handler: Callable[[web.Request], Any]
) -> web.StreamResponse:
    """Turn CalendarEngineError into ``{"error": ...}`` with a matching status.

    ValidationError responses also carry the individual ``problems``.
    """
    try:
        return await handler(request)
    except CalendarEngineError as exc:
        status = status_for(exc)
        log = logger.warning if status >= 500 else logger.info
        log("%s %s -> %d: %s", request.method, request.path, status, exc)
        body: dict[str, Any] = {"error": str(exc)}
        if isinstance(exc, ValidationError):
            body["problems"] = exc.problems
        return web.json_response(body, status=status)
