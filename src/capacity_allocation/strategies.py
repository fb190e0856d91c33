"""Layer 3: allocation strategies turning 'N hours due by D' into a day-level plan.

Four interchangeable policies share one interface:

    BackwardStrategy  (JAT)       as late as possible before the due date
    ForwardStrategy   (PEPS)      as early as possible from the start date
    UniformStrategy   (Équilibré) evenly over a date range
    ManualStrategy                caller-supplied days, validated elsewhere

Every strategy is a pure function of (CalendarModel snapshot, request, today).
Dates with no free capacity never appear in a plan.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from capacity_allocation.calendar import CalendarModel
from capacity_allocation.clock import round_hours, time_to_hours
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.types import (
    AllocationMode,
    AllocationPlan,
    AllocationRequest,
    DayAllocation,
    InfeasibleAllocationError,
    InvalidRangeError,
)

logger = logging.getLogger(__name__)

_TINY = 1e-9


class AllocationStrategy:
    """Base class. Subclasses implement allocate()."""

    mode: AllocationMode

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def allocate(
        self, model: CalendarModel, request: AllocationRequest, today: date
    ) -> AllocationPlan:
        """Return a chronological plan or raise InfeasibleAllocationError."""
        raise NotImplementedError

    def available(self, model: CalendarModel, request: AllocationRequest, d: date) -> float:
        """Hours this request may take on `d`.

        Free capacity, never more than the unreserved working time of the day.
        On the due date only the unreserved time before the due time counts,
        further capped for morning deliveries.
        """
        cutoff = time_to_hours(request.due.time()) if d == request.due_date else None
        free = min(model.free_capacity(d), model.free_hours(d, cutoff))
        if cutoff is not None and request.morning_delivery:
            free = min(free, self.config.morning_delivery_max_hours)
        return max(0.0, round_hours(free))

    def _check_request(self, request: AllocationRequest, today: date) -> None:
        if request.total_hours <= 0:
            raise InvalidRangeError(
                f"total_hours must be > 0 (got {request.total_hours})"
            )
        if request.due_date < today:
            raise InvalidRangeError(
                f"Due date {request.due_date.isoformat()} is in the past "
                f"(today: {today.isoformat()})",
                start=today,
                end=request.due_date,
            )

    def _infeasible(
        self,
        request: AllocationRequest,
        remaining: float,
        reason: str,
        at: date | None = None,
    ) -> InfeasibleAllocationError:
        return InfeasibleAllocationError(
            translator_id=request.translator_id,
            hours_remaining=round_hours(remaining),
            hours_requested=request.total_hours,
            reason=reason,
            date=at,
        )


class BackwardStrategy(AllocationStrategy):
    """JAT: fill from the due date backwards, down to today."""

    mode = AllocationMode.BACKWARD

    def allocate(
        self, model: CalendarModel, request: AllocationRequest, today: date
    ) -> AllocationPlan:
        self._check_request(request, today)

        lookback_floor = request.due_date - timedelta(days=self.config.max_lookback_days)
        floor = max(today, lookback_floor)
        logger.debug(
            "[JAT] %s: %.2fh due %s, walking back to %s",
            request.translator_id, request.total_hours, request.due.isoformat(), floor,
        )

        remaining = request.total_hours
        picked: list[DayAllocation] = []
        current = request.due_date
        while remaining > _TINY and current >= floor:
            if model.is_working_day(current):
                free = self.available(model, request, current)
                if free > 0:
                    take = min(remaining, free)
                    picked.append(DayAllocation(current, round_hours(take)))
                    remaining = round_hours(remaining - take)
                    logger.debug("[JAT]   %s: %.2fh (free %.2fh)", current, take, free)
            current -= timedelta(days=1)

        if remaining > self.config.epsilon:
            raise self._infeasible(
                request, remaining, "not enough capacity before the due date", floor
            )

        picked.reverse()
        return AllocationPlan(tuple(picked))


class ForwardStrategy(AllocationStrategy):
    """PEPS: fill from the start date (default today) forwards, up to the due date.

    Never returns a plan that overflows the due date.
    """

    mode = AllocationMode.FORWARD

    def allocate(
        self, model: CalendarModel, request: AllocationRequest, today: date
    ) -> AllocationPlan:
        self._check_request(request, today)
        start = request.start_date or today
        if start > request.due_date:
            raise InvalidRangeError(
                f"Start date {start.isoformat()} is after the due date "
                f"{request.due_date.isoformat()}",
                start=start,
                end=request.due_date,
            )
        logger.debug(
            "[PEPS] %s: %.2fh from %s to %s",
            request.translator_id, request.total_hours, start, request.due.isoformat(),
        )

        remaining = request.total_hours
        picked: list[DayAllocation] = []
        for current in model.calendar.working_days(start, request.due_date):
            if remaining <= _TINY:
                break
            free = self.available(model, request, current)
            if free <= 0:
                continue
            take = min(remaining, free)
            picked.append(DayAllocation(current, round_hours(take)))
            remaining = round_hours(remaining - take)
            logger.debug("[PEPS]   %s: %.2fh (free %.2fh)", current, take, free)

        if remaining > self.config.epsilon:
            raise self._infeasible(
                request, remaining, "due date passed before all hours were placed",
                request.due_date,
            )
        return AllocationPlan(tuple(picked))


class UniformStrategy(AllocationStrategy):
    """Équilibré: equal share per working day of [start_date, end_date].

    Days that cannot take the full share are filled to capacity and the
    shortfall is shared equally among days that still have room, pass after
    pass, so unconstrained days always end with the same load.
    """

    mode = AllocationMode.UNIFORM

    def allocate(
        self, model: CalendarModel, request: AllocationRequest, today: date
    ) -> AllocationPlan:
        self._check_request(request, today)
        start = request.start_date or today
        end = request.end_date or request.due_date
        if end < start:
            raise InvalidRangeError(
                f"End date {end.isoformat()} is before start date {start.isoformat()}",
                start=start,
                end=end,
            )
        if end > request.due_date:
            raise InvalidRangeError(
                f"End date {end.isoformat()} is after the due date "
                f"{request.due_date.isoformat()}",
                start=start,
                end=end,
            )

        days = list(model.calendar.working_days(start, end))
        if not days:
            raise self._infeasible(
                request, request.total_hours, "no working day in range", start
            )

        total = request.total_hours
        target = total / len(days)
        available = {d: self.available(model, request, d) for d in days}
        alloc = {d: min(target, available[d]) for d in days}
        logger.debug(
            "[EQ] %s: %.2fh over %d working days, target %.4fh/day",
            request.translator_id, total, len(days), target,
        )

        shortfall = total - sum(alloc.values())
        for _ in range(len(days)):
            if shortfall <= _TINY:
                break
            open_days = [d for d in days if available[d] - alloc[d] > _TINY]
            if not open_days:
                break
            share = shortfall / len(open_days)
            for d in open_days:
                alloc[d] += min(share, available[d] - alloc[d])
            shortfall = total - sum(alloc.values())
            logger.debug(
                "[EQ]   redistributed over %d days, shortfall now %.4fh",
                len(open_days), shortfall,
            )

        if shortfall > self.config.epsilon:
            raise self._infeasible(request, shortfall, "no spare capacity left in range", end)

        picked = [
            DayAllocation(d, round_hours(alloc[d])) for d in days if alloc[d] > _TINY
        ]
        return AllocationPlan(tuple(self._absorb_rounding(picked, total, available)))

    @staticmethod
    def _absorb_rounding(
        picked: list[DayAllocation], total: float, available: dict[date, float]
    ) -> list[DayAllocation]:
        """Push the rounding residue onto the last day that has room for it."""
        residue = round_hours(total - sum(d.hours for d in picked))
        if not residue:
            return picked
        for i in range(len(picked) - 1, -1, -1):
            day = picked[i]
            adjusted = round_hours(day.hours + residue)
            if 0 < adjusted <= available[day.date] + _TINY:
                picked[i] = DayAllocation(day.date, adjusted)
                break
        return picked


class ManualStrategy(AllocationStrategy):
    """Caller-supplied days. No computation; ScheduleValidator decides."""

    mode = AllocationMode.MANUAL

    def allocate(
        self, model: CalendarModel, request: AllocationRequest, today: date
    ) -> AllocationPlan:
        return AllocationPlan(tuple(sorted(request.manual, key=lambda d: d.date)))


STRATEGIES: dict[AllocationMode, type[AllocationStrategy]] = {
    AllocationMode.BACKWARD: BackwardStrategy,
    AllocationMode.FORWARD: ForwardStrategy,
    AllocationMode.UNIFORM: UniformStrategy,
    AllocationMode.MANUAL: ManualStrategy,
}


def strategy_for(mode: AllocationMode | str, config: EngineConfig = DEFAULT_CONFIG) -> AllocationStrategy:
    """Instantiate the strategy registered for `mode`."""
    return STRATEGIES[AllocationMode(mode)](config)
