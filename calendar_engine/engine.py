"""CalendarEngine: the boundary between a calendar UI and its event store.

The engine keeps a read projection of the stored rows and never mutates them
directly. Every change is a store request followed by reconciliation: single
row writes are applied optimistically and rolled back on failure, series-wide
writes are followed by a full re-read.

Stored rows come in two shapes:

* materialized occurrences: one row per date, tagged with a shared
  ``series_id`` (what ``create_event`` writes);
* masters: a recurring row without ``series_id``, expanded on read and minus
  its ``exception_dates``. A single-occurrence delete on a master adds the
  date to ``exception_dates``; a single edit or move also re-creates the
  occurrence as its own row.

A materialized row whose own date is listed in its ``exception_dates`` is
hidden, so both shapes answer "does this occurrence exist" the same way.
"""

from __future__ import annotations

import asyncio
import datetime
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Optional, TypeVar

from .domain.notifications import NotificationScheduler
from .domain.overlap import find_overlaps
from .domain.recurrence import RecurrenceExpander
from .domain.search import filter_occurrences, view_range_for
from .domain.series_mutator import (
    CreateOne,
    DeleteOne,
    MutationAction,
    MutatorState,
    ScopeDecisionRequest,
    SeriesMutator,
    UpdateBatch,
    UpdateMany,
    UpdateOne,
    WriteOp,
    WritePlan,
    needs_scope_decision,
)
from .domain.validation import validate_draft
from .exceptions import CalendarEngineError, InvalidStateError, NotFoundError, TransportError
from .models import Event, EventDraft, EventPatch, Occurrence, ViewMode, ViewRange, WeekStart

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_NOTIFICATION_INTERVAL_SECONDS = 1.0

DueCallback = Callable[[Occurrence], Optional[Awaitable[Any]]]


class CalendarEngine:
    """Recurrence, overlap, series mutation and reminders over one EventStore.

    Args:
        store: Any EventStore implementation
        settings: Optional EngineSettings (or any object with the same attributes)
        time_provider: Callable returning the current naive local datetime
    """

    def __init__(
        self,
        store: Any,
        settings: Any = None,
        time_provider: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        self._store = store
        self._timeout = getattr(settings, "store_timeout_seconds", DEFAULT_STORE_TIMEOUT_SECONDS)
        self._interval = getattr(
            settings, "notification_interval_seconds", DEFAULT_NOTIFICATION_INTERVAL_SECONDS
        )
        self.week_start = WeekStart(getattr(settings, "week_start", WeekStart.SUNDAY))
        self._time_provider = time_provider or datetime.datetime.now

        self._expander = RecurrenceExpander(settings)
        self._mutator = SeriesMutator()
        self._scheduler = NotificationScheduler()
        self._events: dict[str, Event] = {}

    # Read side

    @property
    def events(self) -> list[Event]:
        """Current projection of stored rows."""
        return list(self._events.values())

    @property
    def mutator_state(self) -> MutatorState:
        return self._mutator.state

    @property
    def pending_decision(self) -> Optional[ScopeDecisionRequest]:
        return self._mutator.pending

    @property
    def notified_event_ids(self) -> frozenset[str]:
        """Events whose reminder has fired (the UI highlights them)."""
        return self._scheduler.notified_event_ids

    async def refresh(self) -> list[Event]:
        """Discard the projection and re-read every row from the store."""
        rows = await self._call(self._store.list(), "list")
        self._events = {row.id: row for row in rows}
        logger.debug("Projection refreshed: %d row(s)", len(self._events))
        return list(rows)

    def view_range(self, mode: ViewMode, day: datetime.date) -> ViewRange:
        return view_range_for(ViewMode(mode), day, self.week_start)

    def get_occurrences(self, view_range: Optional[ViewRange] = None) -> list[Occurrence]:
        """Visible occurrences ordered by date, start time and title."""
        occurrences = self._all_occurrences()
        if view_range is not None:
            occurrences = [o for o in occurrences if view_range.contains(o.date)]
        return occurrences

    def search(self, term: str, view_range: ViewRange) -> list[Occurrence]:
        return filter_occurrences(self._all_occurrences(), term, view_range)

    def check_overlap(self, draft: EventDraft) -> list[Occurrence]:
        """Occurrences that clash with ``draft`` on its own date.

        A recurring draft is only checked at its first date. When ``draft`` is
        a stored Event its own row is ignored. An empty list means no conflict.
        """
        return find_overlaps(draft, self._all_occurrences())

    def _all_occurrences(self) -> list[Occurrence]:
        occurrences: list[Occurrence] = []
        for event in self._events.values():
            if event.is_recurring and event.series_id is None:
                dates = self._expander.expand_event(event)
            elif event.date in event.exception_dates:
                continue
            else:
                dates = [event.date]
            occurrences.extend(Occurrence.from_event(event, day) for day in dates)
        occurrences.sort(key=lambda o: (o.date, o.start_time, o.title))
        return occurrences

    # Write side: immediate operations

    async def create_event(self, draft: EventDraft) -> list[Event]:
        """Validate and store ``draft``; a recurring draft becomes one row per date.

        Returns:
            The created rows in date order

        Raises:
            ValidationError: Before anything is written
            TransportError: If a create fails; rows already created for the
                series are removed again
        """
        validate_draft(draft)
        if not draft.is_recurring:
            event = await self._call(self._store.create(draft), "create")
            self._events[event.id] = event
            logger.info("Created event %s (%s) on %s", event.id, event.title, event.date)
            return [event]

        series_id = uuid.uuid4().hex
        dates = self._expander.expand(draft.recurrence, draft.date)
        created: list[Event] = []
        try:
            for day in dates:
                occurrence_draft = draft.model_copy(update={"date": day})
                created.append(
                    await self._call(self._store.create(occurrence_draft, series_id), "create")
                )
        except CalendarEngineError:
            if created:
                await self._discard_partial_series(series_id, len(created))
            raise

        await self.refresh()
        logger.info(
            "Created series %s (%s): %d occurrence(s) from %s",
            series_id,
            draft.title,
            len(created),
            draft.date,
        )
        return created

    async def _discard_partial_series(self, series_id: str, count: int) -> None:
        logger.warning("Series %s failed after %d create(s); removing them", series_id, count)
        try:
            await self._call(self._store.delete_by_series(series_id), "delete_by_series")
        except CalendarEngineError:
            logger.exception("Could not remove partial series %s", series_id)

    async def update_event(self, event_id: str, patch: EventPatch) -> Event:
        """Apply ``patch`` to one row with an optimistic local update.

        Raises:
            ValidationError: If the patched row would be invalid
            NotFoundError: After refreshing the projection
            TransportError: After rolling the local change back
        """
        previous = self._events.get(event_id)
        if previous is not None:
            candidate = validate_draft(previous.apply_patch(patch))
            self._events[event_id] = candidate

        try:
            updated = await self._call(self._store.update(event_id, patch), "update")
        except NotFoundError:
            await self.refresh()
            raise
        except CalendarEngineError:
            self._rollback(event_id, previous)
            raise

        self._events[event_id] = updated
        self._scheduler.forget([event_id])
        logger.info("Updated event %s", event_id)
        return updated

    async def delete_event(self, event_id: str) -> None:
        """Delete one row, optimistically removing it from the projection."""
        previous = self._events.pop(event_id, None)
        try:
            await self._call(self._store.delete(event_id), "delete")
        except NotFoundError:
            await self.refresh()
            raise
        except CalendarEngineError:
            self._rollback(event_id, previous)
            raise

        self._scheduler.forget([event_id])
        logger.info("Deleted event %s", event_id)

    async def move_event(self, event: Event, new_date: datetime.date) -> Event:
        """Move a non-recurring row to ``new_date`` (drag and drop).

        Raises:
            InvalidStateError: If ``event`` is recurring; use request_move
        """
        if needs_scope_decision(event):
            raise InvalidStateError(f"Event {event.id} is recurring; move it through request_move")
        return await self.update_event(event.id, EventPatch(date=new_date))

    def _rollback(self, event_id: str, previous: Optional[Event]) -> None:
        if previous is None:
            self._events.pop(event_id, None)
        else:
            self._events[event_id] = previous
        logger.debug("Rolled back local change to event %s", event_id)

    # Write side: scope decisions

    async def request_edit(
        self, event: Event, changes: EventPatch, *, include_times: bool = False
    ) -> Optional[ScopeDecisionRequest]:
        """Start an edit. Non-series events are updated immediately (returns None)."""
        pending = self._mutator.request(
            event, MutationAction.EDIT, changes=changes, include_times=include_times
        )
        if pending is None:
            await self.update_event(event.id, changes)
        return pending

    async def request_delete(self, event: Event) -> Optional[ScopeDecisionRequest]:
        """Start a delete. Non-series events are deleted immediately (returns None)."""
        pending = self._mutator.request(event, MutationAction.DELETE)
        if pending is None:
            await self.delete_event(event.id)
        return pending

    async def request_move(
        self, event: Event, new_date: datetime.date
    ) -> Optional[ScopeDecisionRequest]:
        """Start a move. Non-series events are moved immediately (returns None)."""
        pending = self._mutator.request(event, MutationAction.MOVE, new_date=new_date)
        if pending is None:
            await self.move_event(event, new_date)
        return pending

    def cancel_scope_decision(self) -> Optional[ScopeDecisionRequest]:
        """Abandon the pending decision; nothing is written."""
        return self._mutator.cancel()

    async def apply_scope_decision(self, single_only: bool) -> WritePlan:
        """Commit the pending request for one occurrence or the whole series.

        Rows are re-read first so the plan is computed against current data.

        Raises:
            InvalidStateError: If no decision is pending
            NotFoundError: If the target (or the whole series) is gone
            ValidationError: If the resulting rows would be invalid
            TransportError: If the store write fails (nothing is committed)
        """
        if self._mutator.pending is None:
            # Let the mutator raise its InvalidStateError
            self._mutator.decide(single_only, ())

        rows = await self.refresh()
        plan = self._mutator.decide(single_only, rows)
        created: list[Event] = []
        try:
            self._validate_plan(plan.ops)
            for op in plan.ops:
                result = await self._call(op.apply(self._store), type(op).__name__)
                if isinstance(op, CreateOne):
                    created.append(result)
                if not plan.requires_refetch:
                    self._reconcile_single(op, result)
        except NotFoundError:
            await self._discard_created(created)
            await self.refresh()
            raise
        except CalendarEngineError:
            await self._discard_created(created)
            raise
        finally:
            self._mutator.complete()

        self._scheduler.forget(plan.affected_ids)
        if plan.requires_refetch:
            await self.refresh()
        return plan

    def _validate_plan(self, ops: Iterable[WriteOp]) -> None:
        for op in ops:
            if isinstance(op, UpdateOne):
                pairs = [(op.event_id, op.patch)]
            elif isinstance(op, UpdateMany):
                pairs = [(event_id, op.patch) for event_id in op.event_ids]
            elif isinstance(op, UpdateBatch):
                pairs = list(op.patches.items())
            elif isinstance(op, CreateOne):
                validate_draft(op.draft)
                continue
            else:
                continue
            for event_id, patch in pairs:
                row = self._events.get(event_id)
                if row is not None:
                    validate_draft(row.apply_patch(patch))

    async def _discard_created(self, created: list[Event]) -> None:
        """Remove rows created earlier in a plan whose later write failed."""
        for event in created:
            self._events.pop(event.id, None)
            try:
                await self._call(self._store.delete(event.id), "delete")
            except CalendarEngineError:
                logger.exception("Could not remove detached event %s", event.id)

    def _reconcile_single(self, op: WriteOp, result: Any) -> None:
        if isinstance(op, DeleteOne):
            self._events.pop(op.event_id, None)
        elif isinstance(result, Event):
            self._events[result.id] = result

    # Reminders

    def tick(self, now: Optional[datetime.datetime] = None) -> list[Occurrence]:
        """Occurrences whose reminder became due since the previous tick."""
        now = now or self._time_provider()
        return self._scheduler.tick(now, self._all_occurrences())

    async def run_notification_loop(
        self,
        on_due: DueCallback,
        interval_seconds: Optional[float] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Call ``on_due`` for every reminder as it becomes due, until stopped.

        ``on_due`` may be a plain function or a coroutine function.
        """
        interval = interval_seconds if interval_seconds is not None else self._interval
        stop_event = stop_event or asyncio.Event()
        logger.info("Reminder loop started (every %.1fs)", interval)

        while not stop_event.is_set():
            for occurrence in self.tick():
                try:
                    result = on_due(occurrence)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Reminder callback failed for %s", occurrence.key)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.info("Reminder loop stopped")

    # Store access

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Store %s timed out after %.1fs", operation, self._timeout)
            raise TransportError(f"Store {operation} timed out after {self._timeout}s") from exc
        except CalendarEngineError as exc:
            logger.warning("Store %s failed: %s", operation, exc)
            raise
