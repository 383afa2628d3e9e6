"""Data models for calendar events, recurrence rules and occurrences.

Field names are snake_case in Python; the wire format (JSON store file and
REST API) uses the camelCase aliases below, e.g. ``startTime``, ``repeat``,
``notificationTime``, ``seriesId`` and ``exceptionDates``.
"""

import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator


class RecurrenceKind(str, Enum):
    """Supported recurrence frequencies."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Recurrence rules: one variant per kind, discriminated on ``kind`` (wire key "type")


class _RecurrenceBase(BaseModel):
    """Fields shared by every recurrence variant."""

    end_date: Optional[datetime.date] = Field(
        default=None, alias="endDate", description="Last possible occurrence date (inclusive)"
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_recurring(self) -> bool:
        """True for every variant except NoRecurrence."""
        return self.kind != RecurrenceKind.NONE.value  # type: ignore[attr-defined]


class NoRecurrence(_RecurrenceBase):
    """A one-off event. Interval and end date are ignored."""

    kind: Literal["none"] = Field(default="none", alias="type")
    interval: int = Field(default=0, description="Ignored for non-recurring events")


class DailyRecurrence(_RecurrenceBase):
    """Every ``interval`` days."""

    kind: Literal["daily"] = Field(default="daily", alias="type")
    interval: int = Field(default=1, ge=1, description="Days between occurrences")


class WeeklyRecurrence(_RecurrenceBase):
    """Every ``interval`` weeks on the anchor's weekday."""

    kind: Literal["weekly"] = Field(default="weekly", alias="type")
    interval: int = Field(default=1, ge=1, description="Weeks between occurrences")


class MonthlyRecurrence(_RecurrenceBase):
    """Every ``interval`` months on the anchor's day-of-month.

    Months that lack that day are skipped, never clamped.
    """

    kind: Literal["monthly"] = Field(default="monthly", alias="type")
    interval: int = Field(default=1, ge=1, description="Months between occurrences")


class YearlyRecurrence(_RecurrenceBase):
    """Every ``interval`` years on the anchor's month and day."""

    kind: Literal["yearly"] = Field(default="yearly", alias="type")
    interval: int = Field(default=1, ge=1, description="Years between occurrences")


RecurrenceRule = Annotated[
    Union[NoRecurrence, DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence, YearlyRecurrence],
    Field(discriminator="kind"),
]

RULE_CLASSES: dict[RecurrenceKind, type[_RecurrenceBase]] = {
    RecurrenceKind.NONE: NoRecurrence,
    RecurrenceKind.DAILY: DailyRecurrence,
    RecurrenceKind.WEEKLY: WeeklyRecurrence,
    RecurrenceKind.MONTHLY: MonthlyRecurrence,
    RecurrenceKind.YEARLY: YearlyRecurrence,
}


def make_rule(
    kind: Union[RecurrenceKind, str],
    interval: int = 1,
    end_date: Optional[datetime.date] = None,
) -> Any:
    """Build the recurrence variant for ``kind``.

    Raises:
        ValueError: If ``kind`` is unknown
        pydantic.ValidationError: If ``interval`` is not positive for a recurring kind
    """
    rule_cls = RULE_CLASSES[RecurrenceKind(kind)]
    if rule_cls is NoRecurrence:
        return NoRecurrence()
    return rule_cls(interval=interval, end_date=end_date)


# Events


class EventDraft(BaseModel):
    """User input for a new event. Has no identity yet."""

    title: str = Field(..., description="Event title")
    date: datetime.date = Field(..., description="Calendar date (naive local)")
    start_time: datetime.time = Field(..., alias="startTime", description="Wall-clock start")
    end_time: datetime.time = Field(..., alias="endTime", description="Wall-clock end")
    description: str = Field(default="", description="Free-text description")
    location: str = Field(default="", description="Free-text location")
    category: str = Field(default="", description="User category, e.g. work or family")
    recurrence: RecurrenceRule = Field(default_factory=NoRecurrence, alias="repeat")
    reminder_lead_minutes: int = Field(
        default=0, ge=0, alias="notificationTime", description="Minutes before start; 0 disables"
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_recurring(self) -> bool:
        """Check if the event carries a recurring rule."""
        return self.recurrence.is_recurring

    @property
    def start_at(self) -> datetime.datetime:
        """Start as a naive datetime."""
        return datetime.datetime.combine(self.date, self.start_time)

    @property
    def end_at(self) -> datetime.datetime:
        """End as a naive datetime."""
        return datetime.datetime.combine(self.date, self.end_time)

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: datetime.time) -> str:
        """Serialize times as HH:MM."""
        return value.strftime("%H:%M")

    def to_wire(self) -> dict[str, Any]:
        """Dump using the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True)


class Event(EventDraft):
    """A persisted event row."""

    id: str = Field(..., description="Opaque unique identifier")
    series_id: Optional[str] = Field(
        default=None, alias="seriesId", description="Shared by all rows of one recurring series"
    )
    exception_dates: set[datetime.date] = Field(
        default_factory=set, alias="exceptionDates", description="Dates hidden from the series"
    )

    @property
    def is_series_member(self) -> bool:
        """True when the row belongs to a recurring series."""
        return self.series_id is not None

    @field_serializer("exception_dates")
    def serialize_exception_dates(self, value: set[datetime.date]) -> list[str]:
        """Serialize exception dates as a sorted list of ISO dates."""
        return [d.isoformat() for d in sorted(value)]

    def apply_patch(self, patch: "EventPatch") -> "Event":
        """Return a copy with every explicitly set patch field applied."""
        return self.model_copy(update=patch.changes())

    def detached(self) -> "Event":
        """Return a copy removed from its series (no series id, no recurrence)."""
        return self.model_copy(update={"series_id": None, "recurrence": NoRecurrence()})

    def to_draft(self) -> EventDraft:
        """Strip identity and series bookkeeping."""
        return EventDraft(**{name: getattr(self, name) for name in EventDraft.model_fields})


# Fields a series-wide edit propagates to every row; date and times stay per-occurrence
SERIES_SHARED_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "location",
    "category",
    "reminder_lead_minutes",
    "recurrence",
)

_NON_NULLABLE_FIELDS: tuple[str, ...] = (
    "title",
    "date",
    "start_time",
    "end_time",
    "recurrence",
    "exception_dates",
)


class EventPatch(BaseModel):
    """Partial update. Only fields explicitly set are applied."""

    title: Optional[str] = None
    date: Optional[datetime.date] = None
    start_time: Optional[datetime.time] = Field(default=None, alias="startTime")
    end_time: Optional[datetime.time] = Field(default=None, alias="endTime")
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    recurrence: Optional[RecurrenceRule] = Field(default=None, alias="repeat")
    reminder_lead_minutes: Optional[int] = Field(default=None, ge=0, alias="notificationTime")
    series_id: Optional[str] = Field(default=None, alias="seriesId")
    exception_dates: Optional[set[datetime.date]] = Field(default=None, alias="exceptionDates")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "EventPatch":
        for name in _NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields as a name -> value mapping (model objects kept intact)."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def restricted_to(self, field_names: tuple[str, ...]) -> "EventPatch":
        """Return a patch containing only the set fields named in ``field_names``."""
        kept = {name: value for name, value in self.changes().items() if name in field_names}
        return EventPatch(**kept)

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set

    @field_serializer("start_time", "end_time")
    def serialize_time(self, value: Optional[datetime.time]) -> Optional[str]:
        return value.strftime("%H:%M") if value is not None else None

    @field_serializer("exception_dates")
    def serialize_exception_dates(self, value: Optional[set[datetime.date]]) -> Optional[list[str]]:
        return [d.isoformat() for d in sorted(value)] if value is not None else None

    def to_wire(self) -> dict[str, Any]:
        """Dump the set fields using the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class Occurrence(Event):
    """An event projected onto one concrete date. Derived, never persisted.

    ``series_id`` is the back-reference to the owning series (if any); ``key``
    identifies the occurrence for reminder bookkeeping.
    """

    @classmethod
    def from_event(cls, event: Event, on_date: Optional[datetime.date] = None) -> "Occurrence":
        values = {name: getattr(event, name) for name in Event.model_fields}
        values["date"] = on_date or event.date
        return cls(**values)

    @property
    def key(self) -> str:
        return f"{self.id}@{self.date.isoformat()}"


# Calendar view


class ViewMode(str, Enum):
    """Displayed calendar granularity."""

    WEEK = "week"
    MONTH = "month"


class WeekStart(str, Enum):
    """First day of the displayed week."""

    SUNDAY = "sunday"
    MONDAY = "monday"

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday == 0)."""
        return 6 if self is WeekStart.SUNDAY else 0


class ViewRange(BaseModel):
    """Inclusive date window currently displayed."""

    mode: ViewMode
    start: datetime.date
    end: datetime.date

    model_config = ConfigDict(frozen=True)

    def contains(self, day: datetime.date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> list[datetime.date]:
        """Every date in the window, in order."""
        count = (self.end - self.start).days + 1
        return [self.start + datetime.timedelta(days=i) for i in range(count)]
