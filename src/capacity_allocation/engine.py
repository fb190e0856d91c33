"""SchedulingEngine: composes calendar, strategies, slicer, validator and detector.

Every mutating operation runs under the translator's store lock and writes
inside one store transaction, so a failed allocation or validation never
leaves a partial reservation set behind.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable

from capacity_allocation.calendar import CalendarModel, blockage_reservation
from capacity_allocation.clock import BusinessClock
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.conflicts import ConflictDetector
from capacity_allocation.slicer import IntradayTimeSlicer
from capacity_allocation.store import ReservationStore
from capacity_allocation.strategies import strategy_for
from capacity_allocation.suggestions import ConflictAdvisor
from capacity_allocation.types import (
    AllocationMode,
    AllocationPlan,
    AllocationRequest,
    Blockage,
    CommitResult,
    Conflict,
    DayAllocation,
    Suggestion,
    Task,
    TimeReservation,
    UnknownTaskError,
)
from capacity_allocation.validator import CHECK_TOTAL, ScheduleValidator

logger = logging.getLogger(__name__)

# Task fields whose change invalidates the committed reservations
_PLAN_FIELDS = (
    "translator_id",
    "total_hours",
    "due",
    "mode",
    "start_date",
    "end_date",
    "morning_delivery",
)


class SchedulingEngine:
    """External interface of the allocation engine.

    Args:
        store: collaborator holding calendars, reservations, tasks and blockages.
        config: engine constants.
        clock: business clock; defaults to the config's timezone.
    """

    def __init__(
        self,
        store: ReservationStore,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: BusinessClock | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.clock = clock or BusinessClock(config.timezone)
        self.validator = ScheduleValidator(config)
        self.detector = ConflictDetector(config, self.clock)
        self.advisor = ConflictAdvisor(store, config, self.clock)

    # ------------------------------------------------------------------
    # Snapshots and requests
    # ------------------------------------------------------------------

    def snapshot(
        self,
        translator_id: str,
        start: date | None = None,
        end: date | None = None,
        exclude_owner_id: str | None = None,
    ) -> CalendarModel:
        """CalendarModel over the store's current data for one translator."""
        calendar = self.store.get_calendar(translator_id)
        model = CalendarModel(
            calendar,
            self.store.get_reservations(translator_id, start, end),
            self.store.get_blockages(translator_id, start, end),
        )
        if exclude_owner_id is not None:
            model = model.excluding(exclude_owner_id)
        return model

    def build_request(
        self,
        translator_id: str,
        total_hours: float,
        due: date | datetime | str,
        mode: AllocationMode | str,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        manual=None,
        morning_delivery: bool = False,
    ) -> AllocationRequest:
        return AllocationRequest(
            translator_id=translator_id,
            total_hours=float(total_hours),
            due=self.clock.normalize_due(due),
            mode=AllocationMode(mode),
            start_date=self.clock.to_date(start_date) if start_date is not None else None,
            end_date=self.clock.to_date(end_date) if end_date is not None else None,
            manual=self._manual_days(manual),
            morning_delivery=morning_delivery,
        )

    def _manual_days(self, manual) -> tuple[DayAllocation, ...]:
        """Accept a plan, a {date: hours} mapping or (date, hours) pairs."""
        if manual is None:
            return ()
        if isinstance(manual, AllocationPlan):
            return manual.days
        items = manual.items() if isinstance(manual, dict) else manual
        days = []
        for item in items:
            if isinstance(item, DayAllocation):
                days.append(item)
            else:
                d, hours = item
                days.append(DayAllocation(self.clock.to_date(d), float(hours)))
        return tuple(days)

    def _request_for(self, task: Task, manual=None) -> AllocationRequest:
        return self.build_request(
            task.translator_id,
            task.total_hours,
            task.due,
            task.mode,
            task.start_date,
            task.end_date,
            manual,
            task.morning_delivery,
        )

    def _snapshot_window(self, request: AllocationRequest, today: date) -> tuple[date, date]:
        start = min(today, request.start_date or today)
        start = min(start, *(d.date for d in request.manual)) if request.manual else start
        end = request.due_date
        if request.manual:
            end = max(end, *(d.date for d in request.manual))
        return start, end

    def _locked(self, *translator_ids: str | None) -> ExitStack:
        """Acquire translator locks in id order."""
        stack = ExitStack()
        for tid in sorted({t for t in translator_ids if t is not None}):
            stack.enter_context(self.store.translator_lock(tid))
        return stack

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def preview_allocation(
        self,
        translator_id: str,
        total_hours: float,
        due: date | datetime | str,
        mode: AllocationMode | str,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        manual=None,
        morning_delivery: bool = False,
        exclude_owner_id: str | None = None,
    ) -> AllocationPlan:
        """Proposed plan for the current snapshot. Read-only.

        Raises InfeasibleAllocationError or InvalidRangeError.
        """
        request = self.build_request(
            translator_id, total_hours, due, mode, start_date, end_date, manual, morning_delivery
        )
        today = self.clock.today()
        start, end = self._snapshot_window(request, today)
        model = self.snapshot(translator_id, start, end, exclude_owner_id)
        return strategy_for(request.mode, self.config).allocate(model, request, today)

    def commit_task(
        self,
        task: Task,
        manual=None,
        allow_incomplete: bool = False,
        allow_non_working_days: bool = False,
    ) -> CommitResult:
        """Plan, validate, slice and persist a task's reservations.

        Existing reservations of the task are replaced. For manual plans,
        allow_incomplete saves a plan whose only failure is its total and
        flags the result inconsistent; allow_non_working_days lets manual
        entries target non-working days.
        """
        try:
            previous = self.store.get_task(task.id)
        except UnknownTaskError:
            previous = None
        old_translator = previous.translator_id if previous is not None else None
        with self._locked(task.translator_id, old_translator):
            return self._commit_locked(task, manual, allow_incomplete, allow_non_working_days)

    def _commit_locked(
        self,
        task: Task,
        manual,
        allow_incomplete: bool,
        allow_non_working_days: bool,
    ) -> CommitResult:
        request = self._request_for(task, manual)
        today = self.clock.today()
        start, end = self._snapshot_window(request, today)
        model = self.snapshot(task.translator_id, start, end, exclude_owner_id=task.id)

        plan = strategy_for(request.mode, self.config).allocate(model, request, today)

        is_manual = request.mode == AllocationMode.MANUAL
        errors = self.validator.check(
            plan, model, task.total_hours,
            allow_non_working_days=is_manual and allow_non_working_days,
        )
        inconsistent = False
        if errors:
            only_total = all(e.check == CHECK_TOTAL for e in errors)
            if not (is_manual and allow_incomplete and only_total):
                raise errors[0]
            inconsistent = True
            logger.warning(
                "Task %s saved with an inconsistent manual plan: %s", task.id, errors[0]
            )

        reservations = IntradayTimeSlicer(model).place(task.id, plan)
        with self.store.transaction():
            self.store.delete_reservations(task.id)
            self.store.save_task(task)
            self.store.save_reservations(reservations)

        logger.info(
            "Committed task %s for %s: %.2fh over %d day(s) (%s)",
            task.id, task.translator_id, plan.total_hours, len(plan), request.mode.value,
        )
        return CommitResult(task.id, tuple(reservations), inconsistent)

    def update_task(
        self,
        task: Task,
        manual=None,
        allow_incomplete: bool = False,
        allow_non_working_days: bool = False,
    ) -> CommitResult:
        """Save a changed task, regenerating its reservations when the plan inputs changed."""
        previous = self.store.get_task(task.id)
        changed = [f for f in _PLAN_FIELDS if getattr(previous, f) != getattr(task, f)]
        if not changed and manual is None:
            with self._locked(task.translator_id):
                self.store.save_task(task)
                kept = self.store.reservations_for(task.id)
            return CommitResult(task.id, tuple(kept))
        logger.info("Recomputing task %s (changed: %s)", task.id, ", ".join(changed) or "manual")
        return self.commit_task(task, manual, allow_incomplete, allow_non_working_days)

    def complete_task(self, task_id: str, completed_on: date | str) -> list[TimeReservation]:
        """Mark a task complete and release its reservations dated after completion."""
        completed_on = self.clock.to_date(completed_on)
        task = self.store.get_task(task_id)
        with self._locked(task.translator_id):
            with self.store.transaction():
                released = self.store.delete_reservations(task_id, after=completed_on)
                self.store.save_task(replace(task, completed_on=completed_on))
        logger.info("Task %s completed on %s, %d reservation(s) released",
                    task_id, completed_on, len(released))
        return released

    def delete_task(self, task_id: str) -> list[TimeReservation]:
        task = self.store.get_task(task_id)
        with self._locked(task.translator_id):
            with self.store.transaction():
                removed = self.store.delete_reservations(task_id)
                self.store.delete_task(task_id)
        logger.info("Task %s deleted, %d reservation(s) removed", task_id, len(removed))
        return removed

    # ------------------------------------------------------------------
    # Blockages
    # ------------------------------------------------------------------

    def add_blockage(self, blockage: Blockage) -> TimeReservation:
        """Record unavailable time. Existing task reservations are left as they are."""
        calendar = self.store.get_calendar(blockage.translator_id)
        reservation = blockage_reservation(calendar, blockage)
        with self._locked(blockage.translator_id):
            with self.store.transaction():
                self.store.delete_reservations(blockage.id)
                self.store.save_blockage(blockage)
                self.store.save_reservations([reservation])
        logger.info(
            "Blockage %s for %s on %s: %.2fh (%s)",
            blockage.id, blockage.translator_id, blockage.date, reservation.hours,
            blockage.reason or "no reason",
        )
        return reservation

    def remove_blockage(self, blockage_id: str, translator_id: str) -> None:
        with self._locked(translator_id):
            with self.store.transaction():
                self.store.delete_blockage(blockage_id)
                self.store.delete_reservations(blockage_id)
        logger.info("Blockage %s removed", blockage_id)

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    def list_conflicts(
        self,
        translator_id: str | None = None,
        division_id: str | None = None,
    ) -> list[Conflict]:
        """Conflicts of one translator, or of every translator in a division."""
        if (translator_id is None) == (division_id is None):
            raise ValueError("Pass exactly one of translator_id or division_id")
        if translator_id is not None:
            ids = [translator_id]
        else:
            ids = self.store.translator_ids(division_id)

        conflicts: list[Conflict] = []
        for tid in ids:
            with self._locked(tid):
                model = self.snapshot(tid)
                tasks = self.store.get_tasks(tid)
            conflicts.extend(self.detector.detect(model, tasks))
        return conflicts

    def suggest_resolutions(self, conflicts: Iterable[Conflict]) -> list[Suggestion]:
        """Local repair, reassignment or IMPOSSIBLE for each task in `conflicts`.

        Read-only: nothing is applied.
        """
        conflicts = list(conflicts)
        ids = {c.translator_id for c in conflicts}
        with self._locked(*ids):
            return self.advisor.suggest(conflicts)
