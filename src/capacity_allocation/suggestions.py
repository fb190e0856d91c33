"""Resolution suggestions for detected conflicts.

Advisory only: the advisor reads snapshots and never writes to the store.
For every task named by a conflict it proposes

    REPARATION_LOCALE  free slots of the same translator before the due date
    REATTRIBUTION      translators of the same division with enough free time
    IMPOSSIBLE         when neither of the above works

each with a 0-100 impact score (FAIBLE <= 30 < MODERE <= 60 < ELEVE).
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Iterable

from capacity_allocation.calendar import CalendarModel
from capacity_allocation.clock import BusinessClock, round_hours, time_to_hours
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.store import ReservationStore
from capacity_allocation.types import (
    Candidate,
    Conflict,
    ConflictType,
    FreeSlot,
    ImpactLevel,
    ImpactScore,
    Suggestion,
    SuggestionType,
    Task,
    UnknownTaskError,
)

logger = logging.getLogger(__name__)


def free_slots(model: CalendarModel, start: date, due: datetime) -> list[FreeSlot]:
    """Free time of each working day in [start, due date], cut at the due time."""
    slots: list[FreeSlot] = []
    for d in model.calendar.working_days(start, due.date()):
        until = time_to_hours(due.time()) if d == due.date() else None
        hours = round_hours(min(model.free_capacity(d), model.free_hours(d, until)))
        if hours > 0:
            slots.append(FreeSlot(d, hours, tuple(model.free_periods(d, until))))
    return slots


def impact_level(total: int) -> ImpactLevel:
    if total <= 30:
        return ImpactLevel.FAIBLE
    if total <= 60:
        return ImpactLevel.MODERE
    return ImpactLevel.ELEVE


def impact_score(
    hours: float,
    tasks_affected: int = 1,
    reassignment: bool = False,
    margin_hours: float = 0.0,
    slot_count: int = 1,
) -> ImpactScore:
    """Score the disruption of moving `hours`.

    Points: 2 per hour moved (max 20), 5 per extra task affected, 15 for a
    change of translator, 30/15/5 for a margin before the due date under
    8h/under 24h/above, and 5 per slot beyond the first. Capped at 100.
    """
    moved = min(20, math.floor(hours * 2 + 0.5))
    affected = max(0, tasks_affected - 1) * 5
    reassign = 15 if reassignment else 0
    if margin_hours < 8:
        risk = 30
    elif margin_hours < 24:
        risk = 15
    else:
        risk = 5
    fragmentation = max(0, slot_count - 1) * 5
    total = min(100, moved + affected + reassign + risk + fragmentation)
    level = impact_level(total)

    parts = []
    if moved > 0:
        parts.append(f"{hours:.1f}h moved")
    if reassignment:
        parts.append("reassigned to another translator")
    if margin_hours < 8:
        parts.append("very little margin before the due date")
    if slot_count > 2:
        parts.append(f"spread over {slot_count} slots")
    justification = f"Impact {level.value.lower()}"
    justification += f": {', '.join(parts)}." if parts else "."

    return ImpactScore(
        total=total,
        level=level,
        hours_moved=moved,
        tasks_affected=affected,
        reassignment=reassign,
        due_risk=risk,
        fragmentation=fragmentation,
        justification=justification,
    )


def conflict_dates(conflicts: Iterable[Conflict]) -> set[date]:
    """Dates touched by the conflicts; a weekly conflict covers its whole ISO week."""
    dates: set[date] = set()
    for c in conflicts:
        if c.type == ConflictType.CAPACITE_DEPASSEE:
            dates.update(c.date + timedelta(days=i) for i in range(7))
        else:
            dates.add(c.date)
    return dates


class ConflictAdvisor:
    """Builds suggestions for conflicts over the store's current data.

    Args:
        store: the same collaborator the engine writes to; only read here.
        config: engine constants (epsilon, candidate count).
        clock: business clock giving today.
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

    def suggest(self, conflicts: Iterable[Conflict]) -> list[Suggestion]:
        """Suggestions for every task named by `conflicts`, in conflict order.

        Owners that are not tasks (blockages, reservations without a stored
        task) get no suggestion.
        """
        by_task: dict[str, list[Conflict]] = {}
        for c in conflicts:
            for owner_id in c.owner_ids:
                if self._known_task(owner_id):
                    by_task.setdefault(owner_id, []).append(c)

        suggestions: list[Suggestion] = []
        for task_id, task_conflicts in by_task.items():
            suggestions.extend(self.suggest_for_task(self.store.get_task(task_id), task_conflicts))
        logger.info(
            "%d suggestion(s) for %d task(s) in conflict", len(suggestions), len(by_task)
        )
        return suggestions

    def suggest_for_task(self, task: Task, conflicts: Iterable[Conflict]) -> list[Suggestion]:
        """Local repair and reassignment when possible, otherwise IMPOSSIBLE."""
        conflicts = tuple(conflicts)
        dates = conflict_dates(conflicts)
        model = self._model(task.translator_id)
        hours = round_hours(sum(
            r.hours for r in model.reservations if r.owner_id == task.id and r.date in dates
        ))
        if hours <= 0:
            return []

        today = self.clock.today()
        due = self.clock.normalize_due(task.due)
        margin = max(0, (due.date() - today).days) * model.calendar.daily_capacity_hours

        found = []
        local = self._local_repair(task, model.excluding(task.id, dates), hours, today, due, margin)
        if local is not None:
            found.append(replace(local, conflicts=conflicts))
        reassign = self._reassignment(task, hours, today, due, margin)
        if reassign is not None:
            found.append(replace(reassign, conflicts=conflicts))
        if not found:
            found.append(self._impossible(task, hours, conflicts))
        logger.debug(
            "Task %s: %.2fh in conflict, %s",
            task.id, hours, ", ".join(s.type.value for s in found),
        )
        return found

    def candidates(
        self, task: Task, hours: float, today: date, due: datetime
    ) -> list[Candidate]:
        """Other translators of the task's divisions with `hours` free before the due date."""
        calendar = self.store.get_calendar(task.translator_id)
        ids = {
            tid for division in calendar.divisions
            for tid in self.store.translator_ids(division)
        }
        ids.discard(task.translator_id)

        found: list[Candidate] = []
        for tid in sorted(ids):
            slots = free_slots(self._model(tid), today, due)
            free = round_hours(sum(s.hours for s in slots))
            if free + self.config.epsilon >= hours:
                score = min(100.0, round(free / hours * 100, 2))
                found.append(Candidate(tid, free, score, tuple(slots)))
        found.sort(key=lambda c: (-c.score, -c.free_hours, c.translator_id))
        return found

    def _local_repair(
        self,
        task: Task,
        model: CalendarModel,
        hours: float,
        today: date,
        due: datetime,
        margin: float,
    ) -> Suggestion | None:
        slots = free_slots(model, today, due)
        free = sum(s.hours for s in slots)
        if not slots or free + self.config.epsilon < hours:
            return None
        return Suggestion(
            type=SuggestionType.REPARATION_LOCALE,
            task_id=task.id,
            translator_id=task.translator_id,
            hours=hours,
            impact=impact_score(hours, 1, False, margin, len(slots)),
            slots=tuple(slots),
            description=(
                f"Move {hours:.1f}h to {len(slots)} free slot(s) of {task.translator_id}"
            ),
        )

    def _reassignment(
        self, task: Task, hours: float, today: date, due: datetime, margin: float
    ) -> Suggestion | None:
        found = self.candidates(task, hours, today, due)
        if not found:
            return None
        best = found[0]
        return Suggestion(
            type=SuggestionType.REATTRIBUTION,
            task_id=task.id,
            translator_id=task.translator_id,
            hours=hours,
            impact=impact_score(hours, 1, True, margin, len(best.slots)),
            slots=best.slots,
            proposed_translator_id=best.translator_id,
            candidates=tuple(found[: self.config.max_reassignment_candidates]),
            description=(
                f"Reassign {hours:.1f}h to {best.translator_id} "
                f"({best.free_hours:.1f}h free)"
            ),
        )

    def _impossible(
        self, task: Task, hours: float, conflicts: tuple[Conflict, ...]
    ) -> Suggestion:
        impact = replace(
            impact_score(hours, 1, False, 0.0, 0),
            total=100,
            level=ImpactLevel.ELEVE,
            justification=f"IMPOSSIBLE: no solution found for {hours:.1f}h before the due date.",
        )
        return Suggestion(
            type=SuggestionType.IMPOSSIBLE,
            task_id=task.id,
            translator_id=task.translator_id,
            hours=hours,
            impact=impact,
            conflicts=conflicts,
            description=(
                f"IMPOSSIBLE: {hours:.1f}h in conflict and no free slot before the "
                f"due date. Manual action required."
            ),
        )

    def _model(self, translator_id: str) -> CalendarModel:
        return CalendarModel(
            self.store.get_calendar(translator_id),
            self.store.get_reservations(translator_id),
            self.store.get_blockages(translator_id),
        )

    def _known_task(self, owner_id: str) -> bool:
        try:
            self.store.get_task(owner_id)
        except UnknownTaskError:
            return False
        return True
