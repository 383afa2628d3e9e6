"""Time-overlap detection between a candidate event and existing events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TypeVar, Union

from ..models import Event, EventDraft

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=EventDraft)


def events_overlap(a: EventDraft, b: EventDraft) -> bool:
    """Check whether two events share a date and their [start, end) ranges intersect.

    Back-to-back events (one ends exactly when the other starts) do not overlap.
    The predicate is symmetric.
    """
    if a.date != b.date:
        return False
    return a.start_time < b.end_time and b.start_time < a.end_time


def find_overlaps(candidate: Union[EventDraft, Event], existing: Iterable[E]) -> list[E]:
    """Return the existing events that conflict with ``candidate``.

    A candidate that carries an ``id`` (an event being edited) is never compared
    with the stored row of the same id. Recurring candidates are checked at their
    anchor date only.

    Args:
        candidate: Draft or stored event to test
        existing: Events to compare against

    Returns:
        Conflicting events in input order; empty when there is no conflict
    """
    candidate_id = getattr(candidate, "id", None)
    conflicts = [
        other
        for other in existing
        if not (candidate_id is not None and getattr(other, "id", None) == candidate_id)
        and events_overlap(candidate, other)
    ]
    if conflicts:
        logger.debug(
            "Candidate %r on %s overlaps %d event(s)", candidate.title, candidate.date, len(conflicts)
        )
    return conflicts
