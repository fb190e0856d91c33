"""ScheduleValidator: checks a plan against the pre-plan snapshot before it is accepted."""

from __future__ import annotations

from collections import Counter
from datetime import date

from capacity_allocation.calendar import CalendarModel
from capacity_allocation.clock import format_hours
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.types import AllocationPlan, ValidationError

CHECK_HOURS = "hours"
CHECK_DUPLICATE = "duplicate_date"
CHECK_WORKING_DAY = "working_day"
CHECK_CAPACITY = "capacity"
CHECK_TOTAL = "total"

_CAPACITY_TOLERANCE = 1e-6


class ScheduleValidator:
    """Never clamps or drops hours: a failing plan is rejected as a whole."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def check(
        self,
        plan: AllocationPlan,
        model: CalendarModel,
        total_hours: float,
        allow_non_working_days: bool = False,
    ) -> list[ValidationError]:
        """Run every check and return all failures (empty = valid).

        Order: entry sanity, working days, per-day capacity, total.
        """
        errors: list[ValidationError] = []

        non_positive = [d.date for d in plan if d.hours <= 0]
        if non_positive:
            errors.append(ValidationError(
                CHECK_HOURS, non_positive, "hours must be positive on every day",
            ))

        repeated = sorted(d for d, n in Counter(plan.dates).items() if n > 1)
        if repeated:
            errors.append(ValidationError(
                CHECK_DUPLICATE, repeated, "a date appears more than once",
            ))

        if not allow_non_working_days:
            off_days = [d for d in plan.dates if not model.is_working_day(d)]
            if off_days:
                errors.append(ValidationError(
                    CHECK_WORKING_DAY, off_days, "not a working day",
                ))

        over: list[date] = []
        details: list[str] = []
        for day in plan:
            free = model.free_capacity(day.date)
            if day.hours > free + _CAPACITY_TOLERANCE:
                over.append(day.date)
                details.append(
                    f"{day.date.isoformat()} needs {day.hours:.2f}h, "
                    f"{free:.2f}h free"
                )
        if over:
            errors.append(ValidationError(
                CHECK_CAPACITY, over, "daily capacity exceeded (" + "; ".join(details) + ")",
            ))

        planned = plan.total_hours
        if abs(planned - total_hours) > self.config.epsilon:
            errors.append(ValidationError(
                CHECK_TOTAL, [],
                f"plan sums to {format_hours(planned)} ({planned:.2f}h), "
                f"task needs {total_hours:.2f}h",
            ))

        return errors

    def validate(
        self,
        plan: AllocationPlan,
        model: CalendarModel,
        total_hours: float,
        allow_non_working_days: bool = False,
    ) -> None:
        """Raise the first failing check as a ValidationError."""
        errors = self.check(plan, model, total_hours, allow_non_working_days)
        if errors:
            raise errors[0]
