"""Hypothesis property-based tests.

Properties that must hold for all valid inputs, verified by random generation.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from conftest import TODAY, day_date, make_clock, make_engine, make_model

from capacity_allocation.clock import hours_to_time
from capacity_allocation.config import DEFAULT_CONFIG
from capacity_allocation.slicer import slice_hours
from capacity_allocation.strategies import BackwardStrategy, ForwardStrategy, UniformStrategy
from capacity_allocation.types import (
    AllocationMode,
    AllocationRequest,
    Blockage,
    InfeasibleAllocationError,
    Task,
    TimeRange,
    TimeReservation,
)

EPS = DEFAULT_CONFIG.epsilon

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

# Quarter-hour totals between 0.25h and 40h
_totals = st.integers(min_value=1, max_value=160).map(lambda q: q / 4)

# Days of the reference fortnight that may already carry work
_days = st.sampled_from(["mon", "tue", "wed", "thu", "fri", "next_mon", "next_tue", "next_wed"])

# Existing load: {day name: hours already reserved}
_existing = st.dictionaries(_days, st.integers(min_value=0, max_value=9), max_size=6)


def _model(existing: dict[str, int]):
    return make_model("standard", reservations=[
        TimeReservation(f"X-{name}", "standard", day_date(name), float(hours))
        for name, hours in existing.items()
    ])


def _request(total, mode, **kwargs):
    return AllocationRequest(
        translator_id="standard",
        total_hours=total,
        due=make_clock().normalize_due(day_date("next_thu")),
        mode=mode,
        **kwargs,
    )


def _free_in(model, start, end) -> float:
    return sum(model.free_capacity(d) for d in model.calendar.working_days(start, end))


# ---------------------------------------------------------------------------
# Property: plans respect capacity, working days and totals
# ---------------------------------------------------------------------------
class TestPlanInvariants:

    @given(total=_totals, existing=_existing)
    @settings(max_examples=80)
    def test_backward_plan(self, total, existing):
        model = _model(existing)
        request = _request(total, AllocationMode.BACKWARD)
        last_day = request.due_date - timedelta(days=1)
        try:
            plan = BackwardStrategy().allocate(model, request, TODAY)
        except InfeasibleAllocationError:
            assert total > _free_in(model, TODAY, last_day) + EPS - 1e-9
            return
        self._check(model, plan, total, TODAY, last_day)

    @given(total=_totals, existing=_existing)
    @settings(max_examples=80)
    def test_forward_plan(self, total, existing):
        model = _model(existing)
        request = _request(total, AllocationMode.FORWARD)
        last_day = request.due_date - timedelta(days=1)
        try:
            plan = ForwardStrategy().allocate(model, request, TODAY)
        except InfeasibleAllocationError:
            assert total > _free_in(model, TODAY, last_day) + EPS - 1e-9
            return
        self._check(model, plan, total, TODAY, last_day)

    @staticmethod
    def _check(model, plan, total, first, last):
        assert abs(plan.total_hours - total) <= EPS
        assert plan.dates == sorted(set(plan.dates))
        for day in plan:
            assert first <= day.date <= last
            assert model.is_working_day(day.date)
            assert 0 < day.hours <= model.free_capacity(day.date) + 1e-9


# ---------------------------------------------------------------------------
# Property: uniform spreads evenly over unconstrained days
# ---------------------------------------------------------------------------
class TestUniformEquality:

    @given(total=_totals, existing=_existing)
    @settings(max_examples=80)
    def test_unconstrained_days_equal(self, total, existing):
        model = _model(existing)
        request = _request(
            total, AllocationMode.UNIFORM,
            start_date=day_date("mon"), end_date=day_date("next_wed"),
        )
        try:
            plan = UniformStrategy().allocate(model, request, TODAY)
        except InfeasibleAllocationError:
            assert total > _free_in(model, day_date("mon"), day_date("next_wed")) + EPS - 1e-9
            return

        assert abs(plan.total_hours - total) <= EPS
        unconstrained = [
            d.hours for d in plan if d.hours < model.free_capacity(d.date) - EPS
        ]
        if unconstrained:
            assert max(unconstrained) - min(unconstrained) < EPS


# ---------------------------------------------------------------------------
# Property: slicing preserves duration and avoids lunch
# ---------------------------------------------------------------------------
class TestSlicing:

    @given(
        cursor=st.integers(min_value=36, max_value=60).map(lambda q: q / 4),
        hours=st.integers(min_value=1, max_value=28).map(lambda q: q / 4),
    )
    @settings(max_examples=100)
    def test_slice_sum_and_lunch(self, cursor, hours):
        new_cursor, ranges = slice_hours(cursor, hours, 12.0, 13.0)
        assert abs(sum(r.hours for r in ranges) - hours) < 1e-6
        assert not any(r.overlaps(TimeRange(12.0, 13.0)) for r in ranges)
        assert all(a.end <= b.start for a, b in zip(ranges, ranges[1:]))
        assert new_cursor == ranges[-1].end


# ---------------------------------------------------------------------------
# Property: committed tasks never conflict with each other
# ---------------------------------------------------------------------------
class TestCommittedSchedules:

    @given(hours=st.lists(st.integers(min_value=1, max_value=12), min_size=1, max_size=5))
    @settings(max_examples=30, deadline=None)
    def test_no_conflicts_after_commits(self, hours):
        assume(sum(hours) <= 35)
        engine = make_engine("standard")
        for i, h in enumerate(hours):
            engine.commit_task(Task(f"P-{i}", "standard", float(h), day_date("next_mon")))
        assert engine.list_conflicts(translator_id="standard") == []
        for i, h in enumerate(hours):
            reserved = sum(r.hours for r in engine.store.reservations_for(f"P-{i}"))
            assert abs(reserved - h) <= EPS


# ---------------------------------------------------------------------------
# Property: commits around partial blockages stay inside the day and the due time
# ---------------------------------------------------------------------------

# One partial blockage per day: (start quarter, length in quarters), inside 9h-17h
_blockages = st.dictionaries(
    st.sampled_from(["mon", "tue", "wed", "thu", "fri", "next_mon", "next_tue"]),
    st.tuples(st.integers(min_value=36, max_value=66), st.integers(min_value=1, max_value=16)),
    max_size=5,
)

# (mode, hours, due day, due time in quarters between 9h and 17h)
_jobs = st.lists(
    st.tuples(
        st.sampled_from([AllocationMode.BACKWARD, AllocationMode.FORWARD, AllocationMode.UNIFORM]),
        st.integers(min_value=1, max_value=40).map(lambda q: q / 4),
        st.sampled_from(["wed", "thu", "fri", "next_mon", "next_tue", "next_wed"]),
        st.integers(min_value=36, max_value=68),
    ),
    min_size=1,
    max_size=4,
)


class TestCommitsAroundBlockages:

    @given(blockages=_blockages, jobs=_jobs)
    @settings(max_examples=60, deadline=None)
    def test_no_conflicts(self, blockages, jobs):
        engine = make_engine("standard")
        for name, (start_q, length_q) in blockages.items():
            end_q = min(start_q + length_q, 68)
            engine.add_blockage(Blockage(
                f"B-{name}", "standard", day_date(name), start=start_q / 4, end=end_q / 4,
            ))
        for i, (mode, hours, due_day, due_q) in enumerate(jobs):
            due = datetime.combine(day_date(due_day), hours_to_time(due_q / 4))
            try:
                engine.commit_task(Task(f"P-{i}", "standard", hours, due, mode=mode))
            except InfeasibleAllocationError:
                continue

        assert engine.list_conflicts(translator_id="standard") == []
