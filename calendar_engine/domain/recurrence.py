"""Recurrence expansion for calendar_engine.

Turns a recurrence rule plus an anchor date into the ordered, finite list of
dates it produces. Expansion is delegated to dateutil's RFC 5545 ``rrule``:
monthly rules keep the anchor's day-of-month and yearly rules keep the anchor's
month and day, so months (or years) lacking that date are skipped rather than
clamped. A rule anchored on Jan 31 yields Jan 31, Mar 31, May 31, ... and one
anchored on Feb 29 yields only leap years.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule

from ..exceptions import ValidationError
from ..models import (
    DailyRecurrence,
    Event,
    MonthlyRecurrence,
    NoRecurrence,
    WeeklyRecurrence,
    YearlyRecurrence,
)

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365
DEFAULT_MAX_OCCURRENCES = 1000

# One dateutil frequency per recurring variant; NoRecurrence is handled separately
_FREQUENCIES: dict[type, int] = {
    DailyRecurrence: DAILY,
    WeeklyRecurrence: WEEKLY,
    MonthlyRecurrence: MONTHLY,
    YearlyRecurrence: YEARLY,
}


@dataclass
class ExpanderConfig:
    """Configuration for recurrence expansion."""

    horizon_days: int = DEFAULT_HORIZON_DAYS
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES

    @classmethod
    def from_settings(cls, settings: Any) -> "ExpanderConfig":
        """Extract expansion settings from a settings object, keeping defaults for missing values."""
        return cls(
            horizon_days=getattr(settings, "horizon_days", DEFAULT_HORIZON_DAYS),
            max_occurrences=getattr(settings, "max_occurrences", DEFAULT_MAX_OCCURRENCES),
        )


def default_horizon(anchor: datetime.date, horizon_days: int = DEFAULT_HORIZON_DAYS) -> datetime.date:
    """Last date considered for a rule without an end date."""
    return anchor + datetime.timedelta(days=horizon_days)


def expand(
    rule: Any,
    anchor: datetime.date,
    horizon: Optional[datetime.date] = None,
    exception_dates: Iterable[datetime.date] = (),
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[datetime.date]:
    """Expand ``rule`` anchored at ``anchor`` into concrete dates.

    Args:
        rule: One of the recurrence variants from calendar_engine.models
        anchor: Date of the first occurrence
        horizon: Upper bound used when the rule has no end date. Defaults to
            ``DEFAULT_HORIZON_DAYS`` after the anchor.
        exception_dates: Dates removed from the result
        max_occurrences: Hard cap on the number of generated dates

    Returns:
        Strictly increasing list of dates

    Raises:
        ValidationError: If a recurring rule has a non-positive interval
        TypeError: If ``rule`` is not a known recurrence variant
    """
    if isinstance(rule, NoRecurrence):
        dates = [anchor]
    else:
        frequency = _FREQUENCIES.get(type(rule))
        if frequency is None:
            raise TypeError(f"Unsupported recurrence rule: {rule!r}")
        if rule.interval < 1:
            raise ValidationError(f"Recurrence interval must be a positive integer, got {rule.interval}")

        until = rule.end_date if rule.end_date is not None else (horizon or default_horizon(anchor))
        dates = list(_iter_dates(frequency, rule.interval, anchor, until, max_occurrences))

    excluded = set(exception_dates)
    if excluded:
        dates = [d for d in dates if d not in excluded]

    logger.debug(
        "Expanded %s rule from %s into %d date(s)", getattr(rule, "kind", "?"), anchor, len(dates)
    )
    return dates


def _iter_dates(
    frequency: int,
    interval: int,
    anchor: datetime.date,
    until: datetime.date,
    max_occurrences: int,
) -> Iterator[datetime.date]:
    dtstart = datetime.datetime.combine(anchor, datetime.time.min)
    until_dt = datetime.datetime.combine(until, datetime.time.min)

    for i, occurrence in enumerate(rrule(frequency, dtstart=dtstart, interval=interval, until=until_dt)):
        if i >= max_occurrences:
            logger.warning(
                "Recurrence from %s truncated at %d occurrences (until %s)",
                anchor,
                max_occurrences,
                until,
            )
            return
        yield occurrence.date()


def expand_event(
    event: Event,
    horizon: Optional[datetime.date] = None,
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[datetime.date]:
    """Expand a stored event's rule from its own date, minus its exception dates."""
    return expand(
        event.recurrence,
        event.date,
        horizon,
        event.exception_dates,
        max_occurrences=max_occurrences,
    )


class RecurrenceExpander:
    """Expander bound to configured horizon and occurrence cap."""

    def __init__(self, settings: Any = None):
        self.config = ExpanderConfig.from_settings(settings)

    def horizon_for(self, anchor: datetime.date) -> datetime.date:
        return default_horizon(anchor, self.config.horizon_days)

    def expand(
        self,
        rule: Any,
        anchor: datetime.date,
        exception_dates: Iterable[datetime.date] = (),
    ) -> list[datetime.date]:
        """Expand with the configured horizon. See ``expand``."""
        return expand(
            rule,
            anchor,
            self.horizon_for(anchor),
            exception_dates,
            max_occurrences=self.config.max_occurrences,
        )

    def expand_event(self, event: Event) -> list[datetime.date]:
        return expand_event(
            event, self.horizon_for(event.date), max_occurrences=self.config.max_occurrences
        )
