"""Single-occurrence vs whole-series edit, delete and move.

Editing, deleting or moving a row that belongs to a recurring series needs a
scope decision from the user: "only this occurrence" or "the whole series".
SeriesMutator holds that pending decision as an explicit state machine:

    IDLE --request()--> AWAITING_SCOPE_DECISION --decide()--> COMMITTING --complete()--> IDLE
                                  |
                                  +--cancel()--> IDLE   (no side effects)

``decide`` does not touch the store. It returns a WritePlan describing the
store requests to issue; every series-wide action is exactly one atomic
request, so a half-updated series is never visible.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..exceptions import CalendarEngineError, InvalidStateError, NotFoundError, ValidationError
from ..models import SERIES_SHARED_FIELDS, Event, EventDraft, EventPatch, NoRecurrence

logger = logging.getLogger(__name__)

SERIES_TIME_FIELDS: tuple[str, ...] = ("start_time", "end_time")

# Fields a single-occurrence edit may change; series membership is set by detaching
_SINGLE_EDIT_FIELDS: tuple[str, ...] = tuple(
    name
    for name in EventPatch.model_fields
    if name not in ("recurrence", "series_id", "exception_dates")
)


class MutationAction(str, Enum):
    """User action that may need a scope decision."""

    EDIT = "edit"
    DELETE = "delete"
    MOVE = "move"


class MutatorState(str, Enum):
    """States of the scope-decision state machine."""

    IDLE = "idle"
    AWAITING_SCOPE_DECISION = "awaiting_scope_decision"
    COMMITTING = "committing"


@dataclass(frozen=True)
class ScopeDecisionRequest:
    """A pending edit/delete/move waiting for the single-vs-series decision."""

    event: Event
    action: MutationAction
    changes: Optional[EventPatch] = None
    new_date: Optional[datetime.date] = None
    include_times: bool = False


# Write operations. Each maps to exactly one store request.


@dataclass(frozen=True)
class CreateOne:
    draft: EventDraft

    async def apply(self, store: Any) -> Any:
        return await store.create(self.draft)


@dataclass(frozen=True)
class UpdateOne:
    event_id: str
    patch: EventPatch

    async def apply(self, store: Any) -> Any:
        return await store.update(self.event_id, self.patch)


@dataclass(frozen=True)
class UpdateMany:
    event_ids: tuple[str, ...]
    patch: EventPatch

    async def apply(self, store: Any) -> Any:
        return await store.update_many(list(self.event_ids), self.patch)


@dataclass(frozen=True)
class UpdateBatch:
    patches: Mapping[str, EventPatch]

    async def apply(self, store: Any) -> Any:
        return await store.update_batch(dict(self.patches))


@dataclass(frozen=True)
class DeleteOne:
    event_id: str

    async def apply(self, store: Any) -> Any:
        return await store.delete(self.event_id)


@dataclass(frozen=True)
class DeleteSeries:
    series_id: str

    async def apply(self, store: Any) -> Any:
        return await store.delete_by_series(self.series_id)


WriteOp = Union[CreateOne, UpdateOne, UpdateMany, UpdateBatch, DeleteOne, DeleteSeries]


@dataclass
class WritePlan:
    """Store requests computed for one scope decision."""

    request: ScopeDecisionRequest
    single_only: bool
    ops: list[WriteOp] = field(default_factory=list)
    affected_ids: tuple[str, ...] = ()

    @property
    def requires_refetch(self) -> bool:
        """Series-wide writes are followed by a full re-read of the store."""
        return not self.single_only


def needs_scope_decision(event: Event) -> bool:
    """True when an edit/delete/move on ``event`` must ask single vs series.

    That is every row carrying a recurring rule: materialized series rows and
    master rows (recurring, no ``series_id``) alike.
    """
    return event.is_recurring


def plan_writes(request: ScopeDecisionRequest, single_only: bool, rows: Iterable[Event]) -> WritePlan:
    """Compute the store writes for a scope decision.

    ``request.event`` may be an Occurrence; its ``date`` is the occurrence
    the user acted on.

    Args:
        request: The pending request
        single_only: True for "this occurrence only", False for the whole series
        rows: Current stored rows (fresh from the store)

    Returns:
        WritePlan with the operations to issue, in order

    Raises:
        NotFoundError: If the target row (single) or every series row (series) is gone
        ValidationError: If the request lacks the data its action needs
    """
    rows = list(rows)
    target = request.event

    if target.series_id is None:
        master = next((row for row in rows if row.id == target.id), None)
        if master is None:
            raise NotFoundError(f"Event {target.id} no longer exists", event_id=target.id)
        if single_only:
            ops = _plan_master_single(request, master)
        else:
            ops = _plan_master_series(request, master)
        affected: tuple[str, ...] = (master.id,)
    else:
        series_rows = [row for row in rows if row.series_id == target.series_id]
        if not series_rows:
            raise NotFoundError(
                f"Series {target.series_id} no longer exists", event_id=target.id, series_id=target.series_id
            )
        if single_only:
            stored = next((row for row in series_rows if row.id == target.id), None)
            if stored is None:
                raise NotFoundError(f"Event {target.id} no longer exists", event_id=target.id)
            ops = _plan_single(request, stored)
            affected = (stored.id,)
        else:
            ops = _plan_series(request, series_rows)
            affected = tuple(row.id for row in series_rows)

    logger.info(
        "Planned %s (%s) for event %s: %d write(s) over %d row(s)",
        request.action.value,
        "single" if single_only else "series",
        target.id,
        len(ops),
        len(affected),
    )
    return WritePlan(request=request, single_only=single_only, ops=ops, affected_ids=affected)


def _detach_patch(**changes: Any) -> EventPatch:
    return EventPatch(series_id=None, recurrence=NoRecurrence(), **changes)


def _single_changes(request: ScopeDecisionRequest) -> EventPatch:
    return request.changes.restricted_to(_SINGLE_EDIT_FIELDS) if request.changes else EventPatch()


def _series_changes(request: ScopeDecisionRequest) -> EventPatch:
    allowed = SERIES_SHARED_FIELDS + (SERIES_TIME_FIELDS if request.include_times else ())
    patch = request.changes.restricted_to(allowed) if request.changes else EventPatch()
    if "recurrence" in patch.model_fields_set and not patch.recurrence.is_recurring:
        # Dropping the rule dissolves the series into independent events
        patch = EventPatch(**patch.changes(), series_id=None)
    return patch


def _plan_single(request: ScopeDecisionRequest, stored: Event) -> list[WriteOp]:
    if request.action is MutationAction.DELETE:
        return [DeleteOne(stored.id)]

    if request.action is MutationAction.MOVE:
        return [UpdateOne(stored.id, _detach_patch(date=request.new_date))]

    return [UpdateOne(stored.id, _detach_patch(**_single_changes(request).changes()))]


def _plan_master_single(request: ScopeDecisionRequest, master: Event) -> list[WriteOp]:
    """Hide one date of a master; an edit or move re-creates it as its own row."""
    occurrence_date = request.event.date
    hide = UpdateOne(master.id, EventPatch(exception_dates=master.exception_dates | {occurrence_date}))
    if request.action is MutationAction.DELETE:
        return [hide]

    detached = master.detached().model_copy(update={"date": occurrence_date})
    if request.action is MutationAction.MOVE:
        detached = detached.model_copy(update={"date": request.new_date})
    else:
        detached = detached.apply_patch(_single_changes(request))
    return [CreateOne(detached.to_draft()), hide]


def _shift_patch(row: Event, day_delta: datetime.timedelta) -> EventPatch:
    """Move ``row`` by ``day_delta``; a repeat end date and exception dates move with it."""
    changes: dict[str, Any] = {"date": row.date + day_delta}
    rule = row.recurrence
    if rule.end_date is not None:
        changes["recurrence"] = rule.model_copy(update={"end_date": rule.end_date + day_delta})
    if row.exception_dates:
        changes["exception_dates"] = {day + day_delta for day in row.exception_dates}
    return EventPatch(**changes)


def _plan_series(request: ScopeDecisionRequest, series_rows: list[Event]) -> list[WriteOp]:
    series_id = series_rows[0].series_id

    if request.action is MutationAction.DELETE:
        return [DeleteSeries(series_id)]

    if request.action is MutationAction.MOVE:
        day_delta = request.new_date - request.event.date
        if not day_delta:
            return []
        return [UpdateBatch({row.id: _shift_patch(row, day_delta) for row in series_rows})]

    patch = _series_changes(request)
    if patch.is_empty:
        logger.info("Series edit for %s changes no shared fields; nothing to write", series_id)
        return []
    return [UpdateMany(tuple(row.id for row in series_rows), patch)]


def _plan_master_series(request: ScopeDecisionRequest, master: Event) -> list[WriteOp]:
    if request.action is MutationAction.DELETE:
        return [DeleteOne(master.id)]

    if request.action is MutationAction.MOVE:
        day_delta = request.new_date - request.event.date
        if not day_delta:
            return []
        return [UpdateOne(master.id, _shift_patch(master, day_delta))]

    patch = _series_changes(request)
    if patch.is_empty:
        logger.info("Series edit for master %s changes no shared fields; nothing to write", master.id)
        return []
    return [UpdateOne(master.id, patch)]


class SeriesMutator:
    """Holds at most one pending scope decision."""

    def __init__(self) -> None:
        self._state = MutatorState.IDLE
        self._pending: Optional[ScopeDecisionRequest] = None

    @property
    def state(self) -> MutatorState:
        return self._state

    @property
    def pending(self) -> Optional[ScopeDecisionRequest]:
        return self._pending

    def request(
        self,
        event: Event,
        action: MutationAction,
        *,
        changes: Optional[EventPatch] = None,
        new_date: Optional[datetime.date] = None,
        include_times: bool = False,
    ) -> Optional[ScopeDecisionRequest]:
        """Start an edit/delete/move.

        Returns:
            The pending request when a scope decision is needed, or None when
            the event is not part of a recurring series and the caller should
            proceed immediately.

        Raises:
            InvalidStateError: If another decision is pending or committing
            ValidationError: If an edit has no changes or a move has no target date
        """
        if self._state is not MutatorState.IDLE:
            raise InvalidStateError(f"Cannot start {action.value}: mutator is {self._state.value}")
        if action is MutationAction.EDIT and changes is None:
            raise ValidationError("edit requires changes")
        if action is MutationAction.MOVE and new_date is None:
            raise ValidationError("move requires a target date")

        if not needs_scope_decision(event):
            return None

        self._pending = ScopeDecisionRequest(
            event=event,
            action=action,
            changes=changes,
            new_date=new_date,
            include_times=include_times,
        )
        self._state = MutatorState.AWAITING_SCOPE_DECISION
        logger.debug("Awaiting scope decision for %s of event %s", action.value, event.id)
        return self._pending

    def cancel(self) -> Optional[ScopeDecisionRequest]:
        """Abandon the pending decision. Nothing has been written yet.

        Returns:
            The abandoned request, or None when nothing was pending

        Raises:
            InvalidStateError: If writes are already being committed
        """
        if self._state is MutatorState.COMMITTING:
            raise InvalidStateError("Cannot cancel while committing")
        abandoned = self._pending
        self._reset()
        if abandoned is not None:
            logger.debug("Scope decision for event %s cancelled", abandoned.event.id)
        return abandoned

    def decide(self, single_only: bool, rows: Iterable[Event]) -> WritePlan:
        """Receive the scope decision and compute the writes.

        Moves to COMMITTING on success; the caller issues the plan and then
        calls complete(). Errors while planning return the mutator to IDLE.
        """
        if self._state is not MutatorState.AWAITING_SCOPE_DECISION or self._pending is None:
            raise InvalidStateError(f"No scope decision pending (state: {self._state.value})")

        self._state = MutatorState.COMMITTING
        try:
            return plan_writes(self._pending, single_only, rows)
        except CalendarEngineError:
            self._reset()
            raise

    def complete(self) -> None:
        """Return to IDLE after the plan was issued (successfully or not)."""
        self._reset()

    def _reset(self) -> None:
        self._state = MutatorState.IDLE
        self._pending = None
