"""Event REST routes.

Wire format is the camelCase JSON produced by ``Event.to_wire``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import pydantic
from aiohttp import web

from ..domain.validation import describe_pydantic_errors, parse_draft
from ..exceptions import NotFoundError, ValidationError
from ..models import EventPatch

logger = logging.getLogger(__name__)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError("invalid json") from exc


def _parse_patch(payload: Any) -> EventPatch:
    if not isinstance(payload, dict):
        raise ValidationError("expected a JSON object")
    fields = {k: v for k, v in payload.items() if k != "id"}
    try:
        return EventPatch.model_validate(fields)
    except pydantic.ValidationError as exc:
        raise ValidationError(describe_pydantic_errors(exc)) from exc


def register_event_routes(app: web.Application, store: Any) -> None:
    """Register the event CRUD routes on ``app``.

    Args:
        app: aiohttp web application
        store: Any EventStore implementation
    """

    async def list_events(_request: web.Request) -> web.Response:
        events = await store.list()
        return web.json_response({"events": [event.to_wire() for event in events]})

    async def create_event(request: web.Request) -> web.Response:
        payload = await _read_json(request)
        if not isinstance(payload, dict):
            raise ValidationError("expected a JSON object")
        series_id = payload.get("seriesId")
        if series_id is not None and not isinstance(series_id, str):
            raise ValidationError("seriesId must be a string")

        draft = parse_draft(payload)
        if series_id is not None and not draft.is_recurring:
            raise ValidationError("seriesId requires a recurring repeat rule")
        event = await store.create(draft, series_id=series_id)
        logger.info("Created event %s via API", event.id)
        return web.json_response(event.to_wire(), status=201)

    async def update_event(request: web.Request) -> web.Response:
        event_id = request.match_info["event_id"]
        patch = _parse_patch(await _read_json(request))
        event = await store.update(event_id, patch)
        return web.json_response(event.to_wire())

    async def delete_event(request: web.Request) -> web.Response:
        await store.delete(request.match_info["event_id"])
        return web.Response(status=204)

    async def create_events_list(request: web.Request) -> web.Response:
        payload = await _read_json(request)
        items = payload.get("events") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ValidationError("expected an object with an 'events' list")
        series_id = payload.get("seriesId")
        if series_id is not None and not isinstance(series_id, str):
            raise ValidationError("seriesId must be a string")

        drafts = [parse_draft(item) for item in items]
        if series_id is None and any(draft.is_recurring for draft in drafts):
            series_id = uuid.uuid4().hex
        events = await store.create_many(drafts, series_id=series_id)
        logger.info("Created %d event(s) via API", len(events))
        return web.json_response({"events": [event.to_wire() for event in events]}, status=201)

    async def update_events_list(request: web.Request) -> web.Response:
        payload = await _read_json(request)
        items = payload.get("events") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ValidationError("expected an object with an 'events' list")

        patches: dict[str, EventPatch] = {}
        for item in items:
            event_id = item.get("id") if isinstance(item, dict) else None
            if not isinstance(event_id, str) or not event_id:
                raise ValidationError("every entry needs a string id")
            patches[event_id] = _parse_patch(item)

        events = await store.update_batch(patches)
        return web.json_response({"events": [event.to_wire() for event in events]})

    async def delete_events_list(request: web.Request) -> web.Response:
        payload = await _read_json(request)
        event_ids = payload.get("eventIds") if isinstance(payload, dict) else None
        if not isinstance(event_ids, list) or not all(isinstance(i, str) for i in event_ids):
            raise ValidationError("expected an object with an 'eventIds' list of strings")

        await store.delete_many(event_ids)
        return web.Response(status=204)

    async def update_series(request: web.Request) -> web.Response:
        series_id = request.match_info["series_id"]
        patch = _parse_patch(await _read_json(request))
        event_ids = [event.id for event in await store.list() if event.series_id == series_id]
        if not event_ids:
            raise NotFoundError(f"Series {series_id} not found", series_id=series_id)

        events = await store.update_many(event_ids, patch)
        logger.info("Updated %d row(s) of series %s via API", len(events), series_id)
        return web.json_response({"events": [event.to_wire() for event in events]})

    async def delete_series(request: web.Request) -> web.Response:
        await store.delete_by_series(request.match_info["series_id"])
        return web.Response(status=204)

    async def health_check(_request: web.Request) -> web.Response:
        events = await store.list()
        return web.json_response({"status": "ok", "event_count": len(events)})

    app.router.add_get("/api/events", list_events)
    app.router.add_post("/api/events", create_event)
    app.router.add_put("/api/events/{event_id}", update_event)
    app.router.add_delete("/api/events/{event_id}", delete_event)
    app.router.add_post("/api/events-list", create_events_list)
    app.router.add_put("/api/events-list", update_events_list)
    app.router.add_delete("/api/events-list", delete_events_list)
    app.router.add_put("/api/recurring-events/{series_id}", update_series)
    app.router.add_delete("/api/recurring-events/{series_id}", delete_series)
    app.router.add_get("/api/health", health_check)
