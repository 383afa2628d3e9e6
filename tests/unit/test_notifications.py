"""Unit tests for calendar_engine.domain.notifications."""

from datetime import date, datetime, time

import pytest

from calendar_engine.domain.notifications import (
    NotificationScheduler,
    is_in_reminder_window,
    reminder_message,
    trigger_time,
)
from calendar_engine.models import Occurrence

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.fixture
def occurrence(make_event) -> Occurrence:
    """09:00 on 2024-03-05 with a 10 minute reminder."""
    event = make_event(
        id="evt-1", title="Standup", date=date(2024, 3, 5), start_time=time(9, 0), reminder_lead_minutes=10
    )
    return Occurrence.from_event(event)


def test_trigger_time_subtracts_lead(occurrence) -> None:
    assert trigger_time(occurrence) == datetime(2024, 3, 5, 8, 50)


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (datetime(2024, 3, 5, 8, 49, 59), False),
        (datetime(2024, 3, 5, 8, 50), True),
        (datetime(2024, 3, 5, 8, 59, 59), True),
        (datetime(2024, 3, 5, 9, 0), False),
    ],
)
def test_reminder_window_bounds(occurrence, now, expected) -> None:
    assert is_in_reminder_window(occurrence, now) is expected


def test_zero_lead_never_fires(make_event) -> None:
    occurrence = Occurrence.from_event(make_event(reminder_lead_minutes=0))

    assert not is_in_reminder_window(occurrence, datetime(2024, 3, 5, 9, 0))
    assert not is_in_reminder_window(occurrence, datetime(2024, 3, 5, 8, 59))


def test_reminder_message_text(occurrence) -> None:
    assert reminder_message(occurrence) == "10 minutes until Standup starts"


def test_tick_fires_once_per_occurrence(occurrence) -> None:
    scheduler = NotificationScheduler()

    first = scheduler.tick(datetime(2024, 3, 5, 8, 51), [occurrence])
    second = scheduler.tick(datetime(2024, 3, 5, 8, 52), [occurrence])

    assert first == [occurrence]
    assert second == []
    assert scheduler.notified_event_ids == frozenset({"evt-1"})
    assert scheduler.notified_keys == frozenset({"evt-1@2024-03-05"})


def test_tick_never_fires_late(occurrence) -> None:
    scheduler = NotificationScheduler()

    assert scheduler.tick(datetime(2024, 3, 5, 9, 1), [occurrence]) == []


def test_tick_returns_every_due_occurrence(make_event) -> None:
    a = Occurrence.from_event(make_event(id="a", start_time=time(9, 0), reminder_lead_minutes=60))
    b = Occurrence.from_event(make_event(id="b", start_time=time(9, 30), end_time=time(10, 0), reminder_lead_minutes=60))
    scheduler = NotificationScheduler()

    due = scheduler.tick(datetime(2024, 3, 5, 8, 45), [a, b])

    assert [o.id for o in due] == ["a", "b"]


def test_occurrences_of_same_event_are_tracked_separately(make_event) -> None:
    event = make_event(id="s", reminder_lead_minutes=10)
    monday = Occurrence.from_event(event, date(2024, 3, 4))
    tuesday = Occurrence.from_event(event, date(2024, 3, 5))
    scheduler = NotificationScheduler()

    scheduler.tick(datetime(2024, 3, 4, 8, 55), [monday, tuesday])
    due = scheduler.tick(datetime(2024, 3, 5, 8, 55), [monday, tuesday])

    assert due == [tuesday]


def test_forget_allows_event_to_fire_again(occurrence) -> None:
    scheduler = NotificationScheduler()
    scheduler.tick(datetime(2024, 3, 5, 8, 51), [occurrence])

    assert scheduler.forget(["evt-1"]) == 1
    assert scheduler.tick(datetime(2024, 3, 5, 8, 52), [occurrence]) == [occurrence]


def test_reset_clears_all_bookkeeping(occurrence) -> None:
    scheduler = NotificationScheduler()
    scheduler.tick(datetime(2024, 3, 5, 8, 51), [occurrence])

    scheduler.reset()

    assert scheduler.notified_keys == frozenset()
