"""Exception hierarchy for calendar_engine.

Every error raised by the engine, its stores and its HTTP layer derives from
CalendarEngineError so callers can handle engine failures in one place while
still telling the user-facing categories apart.
"""

from __future__ import annotations

from typing import Any, Optional


class CalendarEngineError(Exception):
    """Base exception for all calendar engine errors."""


class ValidationError(CalendarEngineError):
    """Input was rejected before any write was attempted.

    Raised when:
    - A required draft field (title, date, start/end time) is missing
    - The end time is not after the start time
    - A recurring rule has a non-positive interval
    - The repeat end date precedes the first occurrence

    Should result in HTTP 400 Bad Request response.
    """

    def __init__(self, problems: list[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class NotFoundError(CalendarEngineError):
    """The target event or series no longer exists in the store.

    Should result in HTTP 404 Not Found response.
    """

    def __init__(self, message: str, *, event_id: Optional[str] = None, series_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.event_id = event_id
        self.series_id = series_id


class ConflictError(CalendarEngineError):
    """A candidate event overlaps existing events.

    The engine reports overlaps as a decision point (see
    CalendarEngine.check_overlap); this exception exists for callers that
    prefer to treat a conflict as an error path.
    """

    def __init__(self, conflicts: list[Any]) -> None:
        self.conflicts = list(conflicts)
        titles = ", ".join(getattr(c, "title", "?") for c in self.conflicts)
        super().__init__(f"Overlaps with {len(self.conflicts)} event(s): {titles}")


class TransportError(CalendarEngineError):
    """A persistence call failed or timed out.

    The action is left uncommitted and any optimistic local change is rolled
    back. Should result in HTTP 502 Bad Gateway response when proxied.
    """


class InvalidStateError(CalendarEngineError):
    """A scope decision was applied or requested in the wrong mutator state."""
