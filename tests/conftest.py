"""Shared fixtures for calendar_engine tests."""

import datetime
from collections.abc import Callable, Generator
from types import SimpleNamespace
from typing import Any

import pytest

from calendar_engine.engine import CalendarEngine
from calendar_engine.models import Event, EventDraft, NoRecurrence
from calendar_engine.store.memory_store import InMemoryEventStore

FIXED_NOW = datetime.datetime(2024, 3, 5, 8, 30)


def pytest_configure(config: Any) -> None:
    """Register markers used across the suite."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that finish in milliseconds")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")
    config.addinivalue_line("markers", "integration: Tests that run a real HTTP server")


@pytest.fixture
def make_draft() -> Callable[..., EventDraft]:
    """Factory for drafts with sensible defaults; keyword args override fields."""

    def _make(**overrides: Any) -> EventDraft:
        values: dict[str, Any] = {
            "title": "Team sync",
            "date": datetime.date(2024, 3, 5),
            "start_time": datetime.time(9, 0),
            "end_time": datetime.time(10, 0),
            "recurrence": NoRecurrence(),
        }
        values.update(overrides)
        return EventDraft(**values)

    return _make


@pytest.fixture
def make_event(make_draft: Callable[..., EventDraft]) -> Callable[..., Event]:
    """Factory for stored rows; ``id`` defaults to ``evt-<n>``."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> Event:
        identity = {
            key: overrides.pop(key)
            for key in ("id", "series_id", "exception_dates")
            if key in overrides
        }
        identity.setdefault("id", f"evt-{next(counter)}")
        draft = make_draft(**overrides)
        values = {name: getattr(draft, name) for name in EventDraft.model_fields}
        return Event(**values, **identity)

    return _make


@pytest.fixture
def engine_settings() -> SimpleNamespace:
    """Lightweight settings object with the attributes the engine reads."""
    return SimpleNamespace(
        horizon_days=60,
        max_occurrences=100,
        week_start="sunday",
        store_timeout_seconds=1.0,
        notification_interval_seconds=0.01,
    )


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def engine(memory_store: InMemoryEventStore, engine_settings: SimpleNamespace) -> CalendarEngine:
    return CalendarEngine(memory_store, engine_settings, time_provider=lambda: FIXED_NOW)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Remove CALENDAR_ENGINE_* variables so settings tests see defaults."""
    import os

    for name in list(os.environ):
        if name.startswith("CALENDAR_ENGINE_"):
            monkeypatch.delenv(name, raising=False)
    yield
