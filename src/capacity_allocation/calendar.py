"""Layer 1: WorkCalendar and CalendarModel, working windows and free capacity."""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Iterable, Iterator

from capacity_allocation.clock import parse_time_of_day, round_hours
from capacity_allocation.types import Blockage, ReservationKind, TimeRange, TimeReservation

WEEKEND = (5, 6)

_TINY = 1e-9

_SCHEDULE = re.compile(r"^\s*(\S+)\s*-\s*(\S+)\s*$")


def free_gaps(
    periods: Iterable[TimeRange],
    busy: Iterable[TimeRange],
    until: float | None = None,
) -> list[TimeRange]:
    """Parts of `periods` not covered by any `busy` range, cut at `until`.

    Half-open intervals: [start, end). Gaps come back in day order.
    """
    taken = sorted(busy)
    gaps: list[TimeRange] = []
    for p in periods:
        start = p.start
        end = p.end if until is None else min(p.end, until)
        for r in taken:
            if start >= end:
                break
            if r.end <= start or r.start >= end:
                continue
            if r.start - start > _TINY:
                gaps.append(TimeRange(start, r.start))
            start = max(start, r.end)
        if end - start > _TINY:
            gaps.append(TimeRange(start, end))
    return gaps


@dataclass(frozen=True)
class WorkWindow:
    """Working window of one day in decimal hours. Lunch is optional."""

    start: float
    end: float
    lunch_start: float | None = None
    lunch_end: float | None = None

    @property
    def has_lunch(self) -> bool:
        return self.lunch_start is not None and self.lunch_end is not None

    def contains(self, r: TimeRange) -> bool:
        return r.within(self.start, self.end)

    def in_lunch(self, r: TimeRange) -> bool:
        if not self.has_lunch:
            return False
        return r.overlaps(TimeRange(self.lunch_start, self.lunch_end))

    def periods(self) -> list[TimeRange]:
        """Working periods of the window, lunch removed."""
        if not self.has_lunch:
            return [TimeRange(self.start, self.end)]
        periods = []
        if self.lunch_start > self.start:
            periods.append(TimeRange(self.start, self.lunch_start))
        if self.end > self.lunch_end:
            periods.append(TimeRange(self.lunch_end, self.end))
        return periods

    def free_gaps(
        self, busy: Iterable[TimeRange], until: float | None = None
    ) -> list[TimeRange]:
        """Working periods minus `busy`, cut at `until`, in day order."""
        return free_gaps(self.periods(), busy, until)

    @property
    def net_hours(self) -> float:
        return sum(p.hours for p in self.periods())


class WorkCalendar:
    """A translator's weekly working pattern.

    Same window every working day. Non-working weekdays (default Sat/Sun)
    and holidays are excluded. All times are business local time.
    """

    def __init__(
        self,
        translator_id: str,
        work_start: str | time,
        work_end: str | time,
        lunch: tuple[str | time, str | time] | None = None,
        daily_capacity_hours: float | None = None,
        non_working_weekdays: Iterable[int] = WEEKEND,
        holidays: Iterable[date | str] = (),
        weekly_capacity_hours: float | None = None,
        divisions: Iterable[str] = (),
    ) -> None:
        self.translator_id = translator_id

        start = parse_time_of_day(work_start)
        end = parse_time_of_day(work_end)
        if end <= start:
            raise ValueError(
                f"{translator_id}: work_end must be after work_start "
                f"(got {work_start}-{work_end})"
            )
        lunch_start = lunch_end = None
        if lunch is not None:
            lunch_start = parse_time_of_day(lunch[0])
            lunch_end = parse_time_of_day(lunch[1])
            if not (start <= lunch_start < lunch_end <= end):
                raise ValueError(
                    f"{translator_id}: lunch {lunch[0]}-{lunch[1]} must lie "
                    f"inside the work window"
                )
        self.window = WorkWindow(start, end, lunch_start, lunch_end)

        if daily_capacity_hours is None:
            daily_capacity_hours = self.window.net_hours
        if daily_capacity_hours < 0:
            raise ValueError(f"{translator_id}: daily_capacity_hours must be >= 0")
        self.daily_capacity_hours = float(daily_capacity_hours)

        self.non_working_weekdays = frozenset(int(d) for d in non_working_weekdays)
        self.holidays = frozenset(
            date.fromisoformat(h) if isinstance(h, str) else h for h in holidays
        )
        self.weekly_capacity_hours = weekly_capacity_hours
        self.divisions = tuple(divisions)

    @classmethod
    def from_schedule(cls, translator_id: str, schedule: str, **kwargs) -> WorkCalendar:
        """Build from a schedule string such as '9h-17h' or '08:30-16:30'."""
        match = _SCHEDULE.match(schedule)
        if match is None:
            raise ValueError(f"Invalid schedule {schedule!r} (expected '9h-17h')")
        return cls(translator_id, match.group(1), match.group(2), **kwargs)

    def __repr__(self) -> str:
        return (
            f"WorkCalendar({self.translator_id!r}, {self.window.start}-{self.window.end}, "
            f"capacity={self.daily_capacity_hours})"
        )

    def is_working_day(self, d: date) -> bool:
        return d.weekday() not in self.non_working_weekdays and d not in self.holidays

    def work_window(self, d: date) -> WorkWindow:
        return self.window

    def periods_for_date(self, d: date) -> list[TimeRange]:
        """Working periods of a date, lunch removed. Empty on non-working days.

        Half-open intervals: [start, end).
        """
        if not self.is_working_day(d):
            return []
        return self.window.periods()

    def hours_before(self, d: date, cutoff: float) -> float:
        """Working hours between the start of the day and `cutoff`, lunch excluded."""
        total = 0.0
        for p in self.periods_for_date(d):
            if cutoff > p.start:
                total += min(p.end, cutoff) - p.start
        return total

    def working_days(self, start: date, end: date) -> Iterator[date]:
        """Yield working days in [start, end], both inclusive."""
        current = start
        while current <= end:
            if self.is_working_day(current):
                yield current
            current += timedelta(days=1)

    def weekly_target(self, week_start: date, default: float | None = None) -> float:
        """Weekly TASK-hour target for the ISO week starting at `week_start`."""
        if self.weekly_capacity_hours is not None:
            return float(self.weekly_capacity_hours)
        if default is not None:
            return float(default)
        week_end = week_start + timedelta(days=6)
        days = sum(1 for _ in self.working_days(week_start, week_end))
        return self.daily_capacity_hours * days


def blockage_reservation(calendar: WorkCalendar, blockage: Blockage) -> TimeReservation:
    """Turn a blockage into the reservation that consumes its capacity.

    Hours are the part of the blockage inside the work window, lunch excluded,
    rounded to the hundredth. A full-day blockage consumes the whole daily capacity.
    """
    periods = calendar.window.periods()
    if blockage.full_day:
        ranges = tuple(periods)
        hours = calendar.daily_capacity_hours
    else:
        if blockage.start is None or blockage.end is None or blockage.end <= blockage.start:
            raise ValueError(
                f"Blockage {blockage.id!r}: needs full_day or start < end"
            )
        clipped = []
        for p in periods:
            lo = max(p.start, blockage.start)
            hi = min(p.end, blockage.end)
            if hi > lo:
                clipped.append(TimeRange(lo, hi))
        ranges = tuple(clipped)
        hours = round(sum(r.hours for r in clipped), 2)
    return TimeReservation(
        owner_id=blockage.id,
        translator_id=blockage.translator_id,
        date=blockage.date,
        hours=hours,
        kind=ReservationKind.BLOCKAGE,
        ranges=ranges,
    )


class CalendarModel:
    """Read-only view over one translator's calendar and reservation snapshot.

    Blockages passed separately are counted once: a blockage whose id already
    owns a reservation in the snapshot is not added again.
    """

    def __init__(
        self,
        calendar: WorkCalendar,
        reservations: Iterable[TimeReservation] = (),
        blockages: Iterable[Blockage] = (),
    ) -> None:
        self.calendar = calendar
        own = [r for r in reservations if r.translator_id == calendar.translator_id]
        owners = {r.owner_id for r in own}
        for b in blockages:
            if b.translator_id == calendar.translator_id and b.id not in owners:
                own.append(blockage_reservation(calendar, b))
                owners.add(b.id)
        self._reservations = tuple(own)

        self._by_date: dict[date, list[TimeReservation]] = defaultdict(list)
        for r in self._reservations:
            self._by_date[r.date].append(r)

    @property
    def translator_id(self) -> str:
        return self.calendar.translator_id

    @property
    def reservations(self) -> tuple[TimeReservation, ...]:
        return self._reservations

    def reservations_on(self, d: date) -> list[TimeReservation]:
        return list(self._by_date.get(d, ()))

    def used_hours(self, d: date) -> float:
        return sum(r.hours for r in self._by_date.get(d, ()))

    def free_capacity(self, d: date) -> float:
        """Daily capacity minus TASK+BLOCKAGE hours on the date, never negative."""
        free = self.calendar.daily_capacity_hours - self.used_hours(d)
        return max(0.0, round_hours(free))

    def is_working_day(self, d: date) -> bool:
        return self.calendar.is_working_day(d)

    def work_window(self, d: date) -> WorkWindow:
        return self.calendar.work_window(d)

    def hours_before(self, d: date, cutoff: float) -> float:
        return self.calendar.hours_before(d, cutoff)

    def busy_ranges(self, d: date) -> list[TimeRange]:
        """Every reserved range on the date, tasks and blockages alike."""
        return sorted(rg for r in self._by_date.get(d, ()) for rg in r.ranges)

    def free_periods(self, d: date, until: float | None = None) -> list[TimeRange]:
        """Unreserved working time of the date, optionally cut at `until`.

        Empty on non-working days.
        """
        if not self.is_working_day(d):
            return []
        return self.work_window(d).free_gaps(self.busy_ranges(d), until)

    def free_hours(self, d: date, until: float | None = None) -> float:
        """Unreserved working hours of the date, up to `until` when given."""
        return round_hours(sum(p.hours for p in self.free_periods(d, until)))

    def excluding(self, owner_id: str, dates: Iterable[date] | None = None) -> CalendarModel:
        """The same snapshot without one owner's reservations (only on `dates`, if given)."""
        only = set(dates) if dates is not None else None
        return CalendarModel(
            self.calendar,
            [
                r for r in self._reservations
                if r.owner_id != owner_id or (only is not None and r.date not in only)
            ],
        )
