"""ConflictDetector: classifies violations over a translator's full reservation set.

Detection is advisory: it reads a snapshot, never mutates it, and returns the
same report for the same snapshot.

Categories:
- surallocation     day total (TASK + BLOCKAGE) above daily capacity
- chevauchement     two tasks (or two blockages) overlapping on the same date
- blocage           a task range overlapping a blockage range
- horsTravail       a task range outside working hours or inside lunch
- capaciteDepassee  ISO-week task hours above the weekly target
- apresEcheance     task work placed after its due date/time
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from itertools import combinations
from typing import Iterable

from capacity_allocation.calendar import CalendarModel
from capacity_allocation.clock import OTTAWA, BusinessClock, iso_week_start, time_to_hours
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.types import (
    Conflict,
    ConflictType,
    ReservationKind,
    Task,
    TimeReservation,
)

logger = logging.getLogger(__name__)

_TYPE_ORDER = {t: i for i, t in enumerate(ConflictType)}


def _overlapping_ranges(a: TimeReservation, b: TimeReservation) -> list[str]:
    return [
        f"{ra}/{rb}"
        for ra in a.ranges
        for rb in b.ranges
        if ra.overlaps(rb)
    ]


class ConflictDetector:
    """Runs every category over one CalendarModel snapshot."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: BusinessClock = OTTAWA,
    ) -> None:
        self.config = config
        self.clock = clock

    def detect(self, model: CalendarModel, tasks: Iterable[Task] = ()) -> list[Conflict]:
        """All conflicts of the snapshot, sorted by date then category.

        `tasks` supplies due dates for the apresEcheance check; reservations
        whose task is unknown are skipped by that check only.
        """
        by_date: dict[date, list[TimeReservation]] = defaultdict(list)
        for r in model.reservations:
            by_date[r.date].append(r)

        conflicts: list[Conflict] = []
        for d in sorted(by_date):
            day = sorted(by_date[d], key=lambda r: (r.owner_id, r.start or 0.0))
            conflicts.extend(self._surallocation(model, d, day))
            conflicts.extend(self._overlaps(model, d, day))
            conflicts.extend(self._outside_hours(model, d, day))
        conflicts.extend(self._weekly(model))
        conflicts.extend(self._after_due(model, tasks))

        conflicts.sort(key=lambda c: (c.date, _TYPE_ORDER[c.type], c.owner_ids))
        logger.info(
            "Detected %d conflict(s) for translator %s", len(conflicts), model.translator_id
        )
        return conflicts

    def _surallocation(
        self, model: CalendarModel, d: date, day: list[TimeReservation]
    ) -> list[Conflict]:
        used = sum(r.hours for r in day)
        capacity = model.calendar.daily_capacity_hours
        if used <= capacity + self.config.epsilon:
            return []
        return [Conflict(
            type=ConflictType.SURALLOCATION,
            translator_id=model.translator_id,
            date=d,
            detail=f"{used:.2f}h reserved, capacity {capacity:.2f}h",
            owner_ids=tuple(sorted({r.owner_id for r in day})),
        )]

    def _overlaps(
        self, model: CalendarModel, d: date, day: list[TimeReservation]
    ) -> list[Conflict]:
        found: list[Conflict] = []
        for a, b in combinations(day, 2):
            pairs = _overlapping_ranges(a, b)
            if not pairs:
                continue
            if a.kind == b.kind:
                kind = ConflictType.CHEVAUCHEMENT
                detail = f"{a.owner_id} and {b.owner_id} overlap ({', '.join(pairs)})"
            else:
                kind = ConflictType.BLOCAGE
                task, blockage = (a, b) if a.kind == ReservationKind.TASK else (b, a)
                detail = (
                    f"{task.owner_id} is scheduled during blockage "
                    f"{blockage.owner_id} ({', '.join(pairs)})"
                )
            found.append(Conflict(
                type=kind,
                translator_id=model.translator_id,
                date=d,
                detail=detail,
                owner_ids=tuple(sorted((a.owner_id, b.owner_id))),
            ))
        return found

    def _outside_hours(
        self, model: CalendarModel, d: date, day: list[TimeReservation]
    ) -> list[Conflict]:
        window = model.work_window(d)
        found: list[Conflict] = []
        for r in day:
            if r.kind != ReservationKind.TASK:
                continue
            bad = [rg for rg in r.ranges if not window.contains(rg) or window.in_lunch(rg)]
            if bad:
                found.append(Conflict(
                    type=ConflictType.HORS_TRAVAIL,
                    translator_id=model.translator_id,
                    date=d,
                    detail=f"{r.owner_id} outside working hours: "
                           + ", ".join(str(rg) for rg in bad),
                    owner_ids=(r.owner_id,),
                ))
        return found

    def _weekly(self, model: CalendarModel) -> list[Conflict]:
        hours_by_week: dict[date, float] = defaultdict(float)
        owners_by_week: dict[date, set[str]] = defaultdict(set)
        for r in model.reservations:
            if r.kind == ReservationKind.TASK:
                week = iso_week_start(r.date)
                hours_by_week[week] += r.hours
                owners_by_week[week].add(r.owner_id)

        found: list[Conflict] = []
        for week in sorted(hours_by_week):
            target = model.calendar.weekly_target(week, self.config.weekly_capacity_hours)
            total = hours_by_week[week]
            if total > target + self.config.epsilon:
                year, number, _ = week.isocalendar()
                found.append(Conflict(
                    type=ConflictType.CAPACITE_DEPASSEE,
                    translator_id=model.translator_id,
                    date=week,
                    detail=f"{year}-W{number:02d}: {total:.2f}h of tasks, target {target:.2f}h",
                    owner_ids=tuple(sorted(owners_by_week[week])),
                ))
        return found

    def _after_due(self, model: CalendarModel, tasks: Iterable[Task]) -> list[Conflict]:
        due_by_task = {t.id: self.clock.normalize_due(t.due) for t in tasks}
        found: list[Conflict] = []
        for r in model.reservations:
            if r.kind != ReservationKind.TASK or r.owner_id not in due_by_task:
                continue
            due = due_by_task[r.owner_id]
            late = False
            if r.date > due.date():
                late = True
            elif r.date == due.date():
                cutoff = time_to_hours(due.time())
                if r.ranges:
                    late = r.end > cutoff + self.config.epsilon
                else:
                    late = r.hours > model.hours_before(r.date, cutoff) + self.config.epsilon
            if late:
                found.append(Conflict(
                    type=ConflictType.APRES_ECHEANCE,
                    translator_id=model.translator_id,
                    date=r.date,
                    detail=f"{r.owner_id} has work after its due date {due.isoformat()}",
                    owner_ids=(r.owner_id,),
                ))
        return found
