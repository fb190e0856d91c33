"""Layer 2: IntradayTimeSlicer, places a day's hours in free time around lunch."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from capacity_allocation.calendar import CalendarModel, WorkWindow
from capacity_allocation.clock import round_hours
from capacity_allocation.types import (
    AllocationPlan,
    ReservationKind,
    TimeRange,
    TimeReservation,
)

_TINY = 1e-9


def slice_hours(
    cursor: float,
    duration: float,
    lunch_start: float | None = None,
    lunch_end: float | None = None,
) -> tuple[float, list[TimeRange]]:
    """Place `duration` hours from `cursor`. Returns (new_cursor, ranges).

    A cursor inside lunch jumps to lunch end. Work that reaches lunch start
    resumes at lunch end, so a duration straddling lunch yields exactly two
    ranges and no range ever touches the lunch window.
    """
    if duration <= _TINY:
        return cursor, []

    ranges: list[TimeRange] = []
    remaining = duration
    has_lunch = lunch_start is not None and lunch_end is not None

    if has_lunch and lunch_start <= cursor < lunch_end:
        cursor = lunch_end

    if has_lunch and cursor < lunch_start:
        available = lunch_start - cursor
        consumed = min(remaining, available)
        end = round_hours(cursor + consumed)
        ranges.append(TimeRange(round_hours(cursor), end))
        cursor = end
        remaining -= consumed
        if remaining > _TINY:
            cursor = lunch_end

    if remaining > _TINY:
        end = round_hours(cursor + remaining)
        ranges.append(TimeRange(round_hours(cursor), end))
        cursor = end

    return cursor, ranges


def place_hours(
    window: WorkWindow,
    busy: Iterable[TimeRange],
    hours: float,
) -> list[TimeRange]:
    """Fill the free gaps of the window, earliest first, with `hours`.

    Each gap is filled with slice_hours, so no range touches lunch. Hours that
    do not fit in the window run on from the latest busy end past `work_end`.
    """
    taken = list(busy)
    ranges: list[TimeRange] = []
    remaining = hours
    for gap in window.free_gaps(taken):
        if remaining <= _TINY:
            break
        take = min(remaining, gap.hours)
        _, placed = slice_hours(gap.start, take, window.lunch_start, window.lunch_end)
        ranges.extend(placed)
        remaining -= take

    if round_hours(remaining) > 0:
        start = max([window.end] + [r.end for r in taken + ranges])
        _, placed = slice_hours(start, remaining, window.lunch_start, window.lunch_end)
        ranges.extend(placed)
    return _merge_touching(ranges)


def _merge_touching(ranges: list[TimeRange]) -> list[TimeRange]:
    merged: list[TimeRange] = []
    for r in ranges:
        if merged and abs(merged[-1].end - r.start) <= _TINY:
            merged[-1] = TimeRange(merged[-1].start, r.end)
        else:
            merged.append(r)
    return merged


class IntradayTimeSlicer:
    """Places plans into the free time of each day, around existing reservations.

    Ranges placed by earlier calls count as busy for later ones, so several
    plans sliced in sequence never overlap each other.
    """

    def __init__(self, model: CalendarModel) -> None:
        self.model = model
        self._placed: dict[date, list[TimeRange]] = defaultdict(list)

    def busy(self, d: date) -> list[TimeRange]:
        """Ranges already taken on `d`: the snapshot's plus this slicer's."""
        return self.model.busy_ranges(d) + self._placed[d]

    def place(
        self,
        owner_id: str,
        plan: AllocationPlan,
        kind: ReservationKind = ReservationKind.TASK,
    ) -> list[TimeReservation]:
        """Slice every day of `plan` into a reservation for `owner_id`."""
        reservations: list[TimeReservation] = []
        for day in plan:
            ranges = place_hours(self.model.work_window(day.date), self.busy(day.date), day.hours)
            self._placed[day.date].extend(ranges)
            reservations.append(
                TimeReservation(
                    owner_id=owner_id,
                    translator_id=self.model.translator_id,
                    date=day.date,
                    hours=round_hours(day.hours),
                    kind=kind,
                    ranges=tuple(ranges),
                )
            )
        return reservations


def slice_plan(model: CalendarModel, owner_id: str, plan: AllocationPlan) -> list[TimeReservation]:
    """One-shot helper: slice a single plan against a snapshot."""
    return IntradayTimeSlicer(model).place(owner_id, plan)
