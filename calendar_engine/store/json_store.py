"""JSON-file event store with atomic writes.

On-disk format matches the REST wire format::

    {"events": [{"id": "...", "title": "...", "date": "2024-03-05",
                 "startTime": "09:00", "endTime": "10:00", "repeat": {...}, ...}]}
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Union

import pydantic

from ..exceptions import TransportError
from ..models import Event
from .memory_store import InMemoryEventStore

logger = logging.getLogger(__name__)


def _read_events(path: Path) -> list[Event]:
    if not path.exists():
        logger.debug("Event store file not found; starting empty: %s", path)
        return []

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict) or not isinstance(data.get("events", []), list):
        raise ValueError(f"{path}: expected an object with an 'events' list")  # noqa: TRY004

    events = []
    for index, raw in enumerate(data.get("events", [])):
        try:
            events.append(Event.model_validate(raw))
        except pydantic.ValidationError as exc:
            logger.warning("Skipping malformed event #%d in %s: %s", index, path, exc)
    return events


def _write_events(path: Path, events: list[Event]) -> None:
    """Write to a temp file in the same directory, then replace into place."""
    payload: dict[str, Any] = {"events": [event.to_wire() for event in events]}
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, encoding="utf-8", suffix=".tmp"
        ) as tf:
            tmp_path = Path(tf.name)
            json.dump(payload, tf, ensure_ascii=False, indent=2)
            tf.flush()
            os.fsync(tf.fileno())
        os.replace(tmp_path, path)
    except OSError:
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
        raise


class JsonFileEventStore(InMemoryEventStore):
    """Keeps rows in memory and persists the full set on every write.

    A failed write leaves both the file and the in-memory rows unchanged.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(_read_events(self._path))
        logger.info("Loaded %d event(s) from %s", len(self), self._path)

    @property
    def path(self) -> Path:
        return self._path

    async def _commit(self, rows: dict[str, Event]) -> None:
        try:
            await asyncio.to_thread(_write_events, self._path, list(rows.values()))
        except OSError as exc:
            logger.error("Failed to persist event store to %s: %s", self._path, exc)
            raise TransportError(f"Could not write {self._path}: {exc}") from exc
        await super()._commit(rows)
