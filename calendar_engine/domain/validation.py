"""Input validation for event drafts.

Every check here runs before a write is attempted; failures raise
ValidationError and leave stored state untouched.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..models import EventDraft

logger = logging.getLogger(__name__)

# Input validation limits for event fields
MAX_TITLE_LENGTH = 200
MAX_LOCATION_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000

START_AFTER_END_MESSAGE = "Start time must be earlier than end time."
END_BEFORE_START_MESSAGE = "End time must be later than start time."

# Wire field names mapped to the labels used in problem messages
_FIELD_LABELS = {
    "title": "title",
    "date": "date",
    "startTime": "start time",
    "start_time": "start time",
    "endTime": "end time",
    "end_time": "end time",
    "repeat": "repeat",
    "recurrence": "repeat",
    "notificationTime": "reminder",
    "reminder_lead_minutes": "reminder",
}


def time_error_message(
    start: Optional[datetime.time], end: Optional[datetime.time]
) -> tuple[Optional[str], Optional[str]]:
    """Live feedback for a start/end pair as ``(start_error, end_error)``.

    Both are None while either value is missing or the range is valid.
    """
    if start is None or end is None:
        return None, None
    if start >= end:
        return START_AFTER_END_MESSAGE, END_BEFORE_START_MESSAGE
    return None, None


def validate_draft(draft: EventDraft) -> EventDraft:
    """Check a draft before it is written.

    Args:
        draft: Draft (or stored event) to check

    Returns:
        The same draft, for chaining

    Raises:
        ValidationError: Listing every problem found
    """
    problems: list[str] = []

    title = draft.title.strip()
    if not title:
        problems.append("title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        problems.append(f"title must be at most {MAX_TITLE_LENGTH} characters")
    if len(draft.location) > MAX_LOCATION_LENGTH:
        problems.append(f"location must be at most {MAX_LOCATION_LENGTH} characters")
    if len(draft.description) > MAX_DESCRIPTION_LENGTH:
        problems.append(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    start_error, _ = time_error_message(draft.start_time, draft.end_time)
    if start_error:
        problems.append(start_error)

    rule = draft.recurrence
    if rule.is_recurring:
        if rule.interval < 1:
            problems.append("repeat interval must be a positive integer")
        if rule.end_date is not None and rule.end_date < draft.date:
            problems.append("repeat end date must not be before the event date")

    if problems:
        logger.debug("Rejected draft %r: %s", draft.title, "; ".join(problems))
        raise ValidationError(problems)
    return draft


def parse_draft(payload: Any) -> EventDraft:
    """Build and validate a draft from wire data (camelCase or snake_case keys).

    Raises:
        ValidationError: If the payload is malformed or fails validate_draft
    """
    if not isinstance(payload, dict):
        raise ValidationError("event payload must be a JSON object")
    try:
        draft = EventDraft.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(describe_pydantic_errors(exc)) from exc
    return validate_draft(draft)


def describe_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Translate pydantic errors into short, user-facing problem messages."""
    problems = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        label = _FIELD_LABELS.get(loc[0], loc[0]) if loc else "event"
        if error.get("type") == "missing":
            problems.append(f"{label} is required")
        elif loc and loc[-1] == "interval":
            problems.append("repeat interval must be a positive integer")
        else:
            problems.append(f"{label}: {error.get('msg', 'invalid value')}")
    return problems
