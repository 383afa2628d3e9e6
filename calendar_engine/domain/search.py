"""Search and view-window filtering of occurrences."""

from __future__ import annotations

import calendar
import datetime
import logging
from collections.abc import Iterable
from typing import Literal

from ..models import Occurrence, ViewMode, ViewRange, WeekStart

logger = logging.getLogger(__name__)

Direction = Literal["prev", "next"]


def week_range(day: datetime.date, week_start: WeekStart = WeekStart.SUNDAY) -> ViewRange:
    """The 7-day window containing ``day``, starting on ``week_start``."""
    offset = (day.weekday() - week_start.weekday) % 7
    start = day - datetime.timedelta(days=offset)
    return ViewRange(mode=ViewMode.WEEK, start=start, end=start + datetime.timedelta(days=6))


def month_range(day: datetime.date) -> ViewRange:
    """Every day of ``day``'s calendar month."""
    last_day = calendar.monthrange(day.year, day.month)[1]
    return ViewRange(mode=ViewMode.MONTH, start=day.replace(day=1), end=day.replace(day=last_day))


def view_range_for(
    mode: ViewMode, day: datetime.date, week_start: WeekStart = WeekStart.SUNDAY
) -> ViewRange:
    if mode == ViewMode.WEEK:
        return week_range(day, week_start)
    return month_range(day)


def week_dates(day: datetime.date, week_start: WeekStart = WeekStart.SUNDAY) -> list[datetime.date]:
    return week_range(day, week_start).days


def navigate(day: datetime.date, mode: ViewMode, direction: Direction) -> datetime.date:
    """Move the displayed date one week or one month back or forward.

    Month steps keep the day-of-month, clamped to the target month's length.
    """
    step = -1 if direction == "prev" else 1
    if mode == ViewMode.WEEK:
        return day + datetime.timedelta(weeks=step)

    month_index = day.year * 12 + (day.month - 1) + step
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, min(day.day, last_day))


def matches_term(occurrence: Occurrence, term: str) -> bool:
    """Case-insensitive substring match on title, description or location.

    An empty (or whitespace-only) term matches everything.
    """
    needle = term.strip().lower()
    if not needle:
        return True
    return any(
        needle in (field or "").lower()
        for field in (occurrence.title, occurrence.description, occurrence.location)
    )


def filter_occurrences(
    occurrences: Iterable[Occurrence], term: str, view_range: ViewRange
) -> list[Occurrence]:
    """Occurrences inside ``view_range`` that match ``term``, in input order."""
    results = [o for o in occurrences if view_range.contains(o.date) and matches_term(o, term)]
    logger.debug(
        "Search %r in %s %s..%s: %d match(es)",
        term,
        view_range.mode.value,
        view_range.start,
        view_range.end,
        len(results),
    )
    return results
