"""Protocol definition for the event persistence collaborator.

The engine never mutates stored rows itself; every change goes through one of
these calls and is followed by a re-read.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional, Protocol

from ..models import Event, EventDraft, EventPatch


class EventStore(Protocol):
    """Async persistence contract used by CalendarEngine."""

    async def list(self) -> list[Event]:
        """Return every stored event."""
        ...

    async def create(self, draft: EventDraft, series_id: Optional[str] = None) -> Event:
        """Store a new row and assign its id.

        Recurring drafts are expanded by the caller, which issues one create
        per occurrence with a shared ``series_id``.
        """
        ...

    async def create_many(self, drafts: list[EventDraft], series_id: Optional[str] = None) -> list[Event]:
        """Store several rows in one step, all or nothing.

        Only the recurring drafts are tagged with ``series_id``.

        Raises:
            ValidationError: If any draft is invalid (nothing is written)
        """
        ...

    async def update(self, event_id: str, patch: EventPatch) -> Event:
        """Apply ``patch`` to one row.

        Raises:
            NotFoundError: If ``event_id`` is unknown
            ValidationError: If the patched row would be invalid (nothing is written)
        """
        ...

    async def update_many(self, event_ids: list[str], patch: EventPatch) -> list[Event]:
        """Apply the same patch to several rows, all or nothing.

        Raises:
            NotFoundError: If any id is unknown (nothing is written)
        """
        ...

    async def update_batch(self, patches: Mapping[str, EventPatch]) -> list[Event]:
        """Apply a different patch per row, all or nothing.

        Raises:
            NotFoundError: If any id is unknown (nothing is written)
        """
        ...

    async def delete(self, event_id: str) -> None:
        """Remove one row.

        Raises:
            NotFoundError: If ``event_id`` is unknown
        """
        ...

    async def delete_many(self, event_ids: list[str]) -> None:
        """Remove several rows in one step.

        Raises:
            NotFoundError: If any id is unknown (nothing is removed)
        """
        ...

    async def delete_by_series(self, series_id: str) -> None:
        """Remove every row of a series in one step.

        Raises:
            NotFoundError: If no row carries ``series_id``
        """
        ...
