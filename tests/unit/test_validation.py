"""Unit tests for calendar_engine.domain.validation."""

from datetime import date, time

import pytest

from calendar_engine.domain.validation import (
    END_BEFORE_START_MESSAGE,
    MAX_TITLE_LENGTH,
    START_AFTER_END_MESSAGE,
    parse_draft,
    time_error_message,
    validate_draft,
)
from calendar_engine.exceptions import ValidationError
from calendar_engine.models import DailyRecurrence, WeeklyRecurrence

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestTimeErrorMessage:
    def test_when_start_before_end_then_no_errors(self) -> None:
        assert time_error_message(time(9, 0), time(10, 0)) == (None, None)

    def test_when_start_equals_end_then_both_errors(self) -> None:
        assert time_error_message(time(9, 0), time(9, 0)) == (
            START_AFTER_END_MESSAGE,
            END_BEFORE_START_MESSAGE,
        )

    def test_when_value_missing_then_no_errors(self) -> None:
        assert time_error_message(None, time(9, 0)) == (None, None)
        assert time_error_message(time(9, 0), None) == (None, None)


class TestValidateDraft:
    def test_valid_draft_is_returned(self, make_draft) -> None:
        draft = make_draft()

        assert validate_draft(draft) is draft

    def test_blank_title_is_rejected(self, make_draft) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_draft(make_draft(title="   "))

        assert "title is required" in exc_info.value.problems

    def test_long_title_is_rejected(self, make_draft) -> None:
        with pytest.raises(ValidationError):
            validate_draft(make_draft(title="x" * (MAX_TITLE_LENGTH + 1)))

    def test_end_not_after_start_is_rejected(self, make_draft) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_draft(make_draft(start_time=time(11, 0), end_time=time(10, 0)))

        assert START_AFTER_END_MESSAGE in exc_info.value.problems

    def test_repeat_end_before_anchor_is_rejected(self, make_draft) -> None:
        draft = make_draft(
            date=date(2024, 3, 5),
            recurrence=WeeklyRecurrence(interval=1, end_date=date(2024, 3, 1)),
        )

        with pytest.raises(ValidationError):
            validate_draft(draft)

    def test_non_positive_interval_is_rejected(self, make_draft) -> None:
        draft = make_draft()
        draft.recurrence = DailyRecurrence.model_construct(interval=0)

        with pytest.raises(ValidationError) as exc_info:
            validate_draft(draft)

        assert "repeat interval must be a positive integer" in exc_info.value.problems

    def test_every_problem_is_reported(self, make_draft) -> None:
        draft = make_draft(title="", start_time=time(12, 0), end_time=time(11, 0))

        with pytest.raises(ValidationError) as exc_info:
            validate_draft(draft)

        assert len(exc_info.value.problems) == 2


class TestParseDraft:
    def test_parses_wire_payload(self) -> None:
        draft = parse_draft(
            {
                "title": "Dentist",
                "date": "2024-03-05",
                "startTime": "14:00",
                "endTime": "15:00",
                "repeat": {"type": "monthly", "interval": 1, "endDate": "2024-12-31"},
                "notificationTime": 60,
            }
        )

        assert draft.start_time == time(14, 0)
        assert isinstance(draft.recurrence.end_date, date)
        assert draft.recurrence.kind == "monthly"
        assert draft.reminder_lead_minutes == 60

    def test_missing_fields_are_listed(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            parse_draft({"title": "No date"})

        assert "date is required" in exc_info.value.problems
        assert "start time is required" in exc_info.value.problems
        assert "end time is required" in exc_info.value.problems

    def test_zero_interval_reports_positive_integer_problem(self) -> None:
        payload = {
            "title": "Gym",
            "date": "2024-03-05",
            "startTime": "07:00",
            "endTime": "08:00",
            "repeat": {"type": "daily", "interval": 0},
        }

        with pytest.raises(ValidationError) as exc_info:
            parse_draft(payload)

        assert "repeat interval must be a positive integer" in exc_info.value.problems

    def test_non_object_payload_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_draft(["not", "an", "object"])
