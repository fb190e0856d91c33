"""Tests for ScheduleValidator checks."""

from __future__ import annotations

import pytest

from conftest import day_date, make_model, task_reservation

from capacity_allocation.types import AllocationPlan, DayAllocation, ValidationError
from capacity_allocation.validator import (
    CHECK_CAPACITY,
    CHECK_DUPLICATE,
    CHECK_HOURS,
    CHECK_TOTAL,
    CHECK_WORKING_DAY,
    ScheduleValidator,
)


def _plan(*pairs):
    return AllocationPlan(tuple(DayAllocation(day_date(d), float(h)) for d, h in pairs))


@pytest.fixture
def validator():
    return ScheduleValidator()


class TestScheduleValidator:

    def test_valid_plan(self, validator, standard_model):
        plan = _plan(("mon", 7), ("tue", 3))
        assert validator.check(plan, standard_model, 10) == []
        validator.validate(plan, standard_model, 10)

    def test_total_within_epsilon(self, validator, standard_model):
        assert validator.check(_plan(("mon", 4.995)), standard_model, 5) == []

    def test_total_mismatch(self, validator, standard_model):
        [error] = validator.check(_plan(("mon", 4)), standard_model, 5)
        assert error.check == CHECK_TOTAL
        assert "4h" in error.detail
        assert error.dates == []

    def test_capacity_exceeded_names_dates(self, validator):
        model = make_model("standard", reservations=[task_reservation("A", "tue", [(9, 12)])])
        [error] = validator.check(_plan(("mon", 7), ("tue", 5)), model, 12)
        assert error.check == CHECK_CAPACITY
        assert error.dates == [day_date("tue")]
        assert "5.00h" in error.detail and "4.00h free" in error.detail

    def test_non_working_day(self, validator, standard_model):
        [error] = validator.check(_plan(("sat", 3)), standard_model, 3)
        assert error.check == CHECK_WORKING_DAY
        assert error.dates == [day_date("sat")]

    def test_non_working_day_allowed(self, validator, standard_model):
        plan = _plan(("sat", 3))
        assert validator.check(plan, standard_model, 3, allow_non_working_days=True) == []

    def test_holiday_rejected(self, validator):
        errors = validator.check(_plan(("wed", 3)), make_model("holiday"), 3)
        assert [e.check for e in errors] == [CHECK_WORKING_DAY]

    def test_non_positive_hours(self, validator, standard_model):
        errors = validator.check(_plan(("mon", 0), ("tue", 3)), standard_model, 3)
        assert errors[0].check == CHECK_HOURS
        assert errors[0].dates == [day_date("mon")]

    def test_duplicate_date(self, validator, standard_model):
        errors = validator.check(_plan(("mon", 2), ("mon", 2)), standard_model, 4)
        assert [e.check for e in errors] == [CHECK_DUPLICATE]

    def test_all_failures_reported_in_order(self, validator, standard_model):
        plan = _plan(("sat", 9))
        errors = validator.check(plan, standard_model, 3)
        assert [e.check for e in errors] == [CHECK_WORKING_DAY, CHECK_CAPACITY, CHECK_TOTAL]

    def test_validate_raises_first(self, validator, standard_model):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(_plan(("sun", 1)), standard_model, 1)
        assert exc_info.value.check == CHECK_WORKING_DAY
        assert "2025-01-12" in str(exc_info.value)

    def test_never_mutates_plan(self, validator, standard_model):
        plan = _plan(("mon", 9))
        validator.check(plan, standard_model, 9)
        assert plan.total_hours == 9.0
