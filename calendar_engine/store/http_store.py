"""EventStore client for the calendar REST API (see calendar_engine.api.server)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx
import pydantic

from ..exceptions import NotFoundError, TransportError, ValidationError
from ..models import Event, EventDraft, EventPatch

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

_DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "User-Agent": "calendar-engine",
}


class HttpEventStore:
    """Talks to a remote event store over HTTP using a pooled httpx client.

    Args:
        base_url: Server root, e.g. ``http://localhost:3000``
        timeout: Per-request timeout in seconds
        client: Pre-built client (tests pass one with ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers=_DEFAULT_HEADERS,
        )

    async def __aenter__(self) -> HttpEventStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, url, exc)
            raise TransportError(f"{method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError(f"{method} {url}: {_error_text(response)}")
        if response.status_code == 400:
            raise ValidationError(_error_text(response))
        if response.is_error:
            logger.warning("%s %s returned HTTP %d", method, url, response.status_code)
            raise TransportError(f"{method} {url} returned HTTP {response.status_code}")
        return response

    async def list(self) -> list[Event]:
        response = await self._request("GET", "/api/events")
        return _parse_events(response.json().get("events", []))

    async def create(self, draft: EventDraft, series_id: Optional[str] = None) -> Event:
        body = draft.to_wire()
        if series_id is not None:
            body["seriesId"] = series_id
        response = await self._request("POST", "/api/events", json=body)
        return _parse_event(response.json())

    async def create_many(self, drafts: list[EventDraft], series_id: Optional[str] = None) -> list[Event]:
        body: dict[str, Any] = {"events": [draft.to_wire() for draft in drafts]}
        if series_id is not None:
            body["seriesId"] = series_id
        response = await self._request("POST", "/api/events-list", json=body)
        return _parse_events(response.json().get("events", []))

    async def update(self, event_id: str, patch: EventPatch) -> Event:
        response = await self._request("PUT", f"/api/events/{event_id}", json=patch.to_wire())
        return _parse_event(response.json())

    async def update_many(self, event_ids: list[str], patch: EventPatch) -> list[Event]:
        return await self.update_batch({event_id: patch for event_id in event_ids})

    async def update_batch(self, patches: Mapping[str, EventPatch]) -> list[Event]:
        body = {"events": [{"id": event_id, **patch.to_wire()} for event_id, patch in patches.items()]}
        response = await self._request("PUT", "/api/events-list", json=body)
        return _parse_events(response.json().get("events", []))

    async def delete(self, event_id: str) -> None:
        await self._request("DELETE", f"/api/events/{event_id}")

    async def delete_many(self, event_ids: list[str]) -> None:
        await self._request("DELETE", "/api/events-list", json={"eventIds": list(event_ids)})

    async def delete_by_series(self, series_id: str) -> None:
        await self._request("DELETE", f"/api/recurring-events/{series_id}")


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return response.text


def _parse_event(raw: Any) -> Event:
    try:
        return Event.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise TransportError(f"Malformed event in server response: {exc}") from exc


def _parse_events(raw: Any) -> list[Event]:
    return [_parse_event(item) for item in raw]
