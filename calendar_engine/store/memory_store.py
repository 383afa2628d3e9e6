"""In-process event store.

Used by tests and as the base of the JSON file store. Every write builds the
new row set first and swaps it in only when the whole request succeeded, so
multi-row writes are all-or-nothing. Rows are validated before they are
swapped in, whichever caller wrote them.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Optional

from ..domain.validation import validate_draft
from ..exceptions import NotFoundError
from ..models import Event, EventDraft, EventPatch

logger = logging.getLogger(__name__)


def new_event_id() -> str:
    return uuid.uuid4().hex


def event_from_draft(draft: EventDraft, event_id: str, series_id: Optional[str] = None) -> Event:
    """Attach identity (and series membership) to a draft."""
    values = {name: getattr(draft, name) for name in EventDraft.model_fields}
    return Event(**values, id=event_id, series_id=series_id)


class InMemoryEventStore:
    """EventStore backed by a dict of rows, guarded by an asyncio lock."""

    def __init__(self, events: Optional[Iterable[Event]] = None) -> None:
        self._lock = asyncio.Lock()
        self._rows: dict[str, Event] = {}
        for event in events or ():
            self._rows[event.id] = event.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._rows)

    async def list(self) -> list[Event]:
        async with self._lock:
            return [row.model_copy(deep=True) for row in self._rows.values()]

    async def create(self, draft: EventDraft, series_id: Optional[str] = None) -> Event:
        validate_draft(draft)
        async with self._lock:
            event = event_from_draft(draft, new_event_id(), series_id)
            rows = dict(self._rows)
            rows[event.id] = event
            await self._commit(rows)
            logger.debug("Created event %s (%s) on %s", event.id, event.title, event.date)
            return event.model_copy(deep=True)

    async def create_many(self, drafts: list[EventDraft], series_id: Optional[str] = None) -> list[Event]:
        for draft in drafts:
            validate_draft(draft)
        async with self._lock:
            rows = dict(self._rows)
            created = []
            for draft in drafts:
                event = event_from_draft(draft, new_event_id(), series_id if draft.is_recurring else None)
                rows[event.id] = event
                created.append(event)
            await self._commit(rows)
            logger.debug("Created %d event(s)", len(created))
            return [event.model_copy(deep=True) for event in created]

    async def update(self, event_id: str, patch: EventPatch) -> Event:
        updated = await self.update_batch({event_id: patch})
        return updated[0]

    async def update_many(self, event_ids: list[str], patch: EventPatch) -> list[Event]:
        return await self.update_batch({event_id: patch for event_id in event_ids})

    async def update_batch(self, patches: Mapping[str, EventPatch]) -> list[Event]:
        async with self._lock:
            missing = [event_id for event_id in patches if event_id not in self._rows]
            if missing:
                raise NotFoundError(
                    f"Unknown event id(s): {', '.join(missing)}", event_id=missing[0]
                )

            rows = dict(self._rows)
            updated = []
            for event_id, patch in patches.items():
                rows[event_id] = validate_draft(rows[event_id].apply_patch(patch))
                updated.append(rows[event_id])
            await self._commit(rows)
            logger.debug("Updated %d event(s)", len(updated))
            return [row.model_copy(deep=True) for row in updated]

    async def delete(self, event_id: str) -> None:
        async with self._lock:
            if event_id not in self._rows:
                raise NotFoundError(f"Event {event_id} not found", event_id=event_id)
            rows = dict(self._rows)
            del rows[event_id]
            await self._commit(rows)
            logger.debug("Deleted event %s", event_id)

    async def delete_many(self, event_ids: list[str]) -> None:
        async with self._lock:
            missing = [event_id for event_id in event_ids if event_id not in self._rows]
            if missing:
                raise NotFoundError(
                    f"Unknown event id(s): {', '.join(missing)}", event_id=missing[0]
                )
            doomed = set(event_ids)
            rows = {k: v for k, v in self._rows.items() if k not in doomed}
            await self._commit(rows)
            logger.debug("Deleted %d event(s)", len(doomed))

    async def delete_by_series(self, series_id: str) -> None:
        async with self._lock:
            rows = {k: v for k, v in self._rows.items() if v.series_id != series_id}
            removed = len(self._rows) - len(rows)
            if not removed:
                raise NotFoundError(f"Series {series_id} not found", series_id=series_id)
            await self._commit(rows)
            logger.debug("Deleted %d row(s) of series %s", removed, series_id)

    async def _commit(self, rows: dict[str, Event]) -> None:
        """Make ``rows`` the current row set. Called with the lock held."""
        self._rows = rows
