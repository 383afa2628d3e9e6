"""Reminder scheduling.

An occurrence is due once ``now`` reaches ``start - reminder_lead_minutes``
and until ``now`` reaches its start. Each occurrence fires at most once per
scheduler instance; the bookkeeping for an event is dropped when that event
is edited, deleted or recreated, so a changed reminder time can fire again.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from ..models import Occurrence

logger = logging.getLogger(__name__)

# Lead times offered by the event form, in minutes
REMINDER_LEAD_OPTIONS: tuple[int, ...] = (1, 10, 60, 120, 1440)


def trigger_time(occurrence: Occurrence) -> datetime.datetime:
    """Moment the reminder for ``occurrence`` becomes due."""
    return occurrence.start_at - datetime.timedelta(minutes=occurrence.reminder_lead_minutes)


def is_in_reminder_window(occurrence: Occurrence, now: datetime.datetime) -> bool:
    """True while ``trigger <= now < start``. Never true without a lead time."""
    if not occurrence.reminder_lead_minutes:
        return False
    return trigger_time(occurrence) <= now < occurrence.start_at


def reminder_message(occurrence: Occurrence) -> str:
    """Text shown when the reminder fires."""
    lead = occurrence.reminder_lead_minutes
    unit = "minute" if lead == 1 else "minutes"
    return f"{lead} {unit} until {occurrence.title} starts"


class NotificationScheduler:
    """Decides which occurrences newly crossed their reminder threshold."""

    def __init__(self) -> None:
        # occurrence key -> event id, so bookkeeping can be dropped per event
        self._notified: dict[str, str] = {}

    @property
    def notified_keys(self) -> frozenset[str]:
        return frozenset(self._notified)

    @property
    def notified_event_ids(self) -> frozenset[str]:
        """Ids of events with at least one fired reminder (for highlighting)."""
        return frozenset(self._notified.values())

    def tick(self, now: datetime.datetime, live: Iterable[Occurrence]) -> list[Occurrence]:
        """Return the occurrences that became due since the last tick.

        Args:
            now: Current naive local time
            live: Occurrences of events that currently exist

        Returns:
            Newly due occurrences in input order. Each is recorded and will not
            be returned again.
        """
        due = []
        for occurrence in live:
            key = occurrence.key
            if key in self._notified or not is_in_reminder_window(occurrence, now):
                continue
            self._notified[key] = occurrence.id
            due.append(occurrence)

        if due:
            logger.info(
                "%d reminder(s) due at %s: %s",
                len(due),
                now.isoformat(timespec="seconds"),
                ", ".join(o.key for o in due),
            )
        return due

    def forget(self, event_ids: Iterable[str]) -> int:
        """Drop bookkeeping for the given events (after edit, delete or recreate).

        Returns:
            Number of occurrence entries removed
        """
        ids = set(event_ids)
        stale = [key for key, event_id in self._notified.items() if event_id in ids]
        for key in stale:
            del self._notified[key]
        if stale:
            logger.debug("Forgot %d reminder record(s) for %d event(s)", len(stale), len(ids))
        return len(stale)

    def reset(self) -> None:
        self._notified.clear()
