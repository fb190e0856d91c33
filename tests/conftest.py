"""Shared test fixtures and data loading for capacity-allocation.

All test data lives in data/fixtures/ as JSON files.  This module loads
that data and exposes helper functions + pytest fixtures for the tests.

Reference fortnight: Mon 2025-01-06 through Sun 2025-01-19.
Today: Mon 2025-01-06 08:00 business local time.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "data" / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------
def _load_json(path: Path):
    with open(path) as f:
        return json.load(f)


_reference = _load_json(FIXTURES_DIR / "reference.json")
_calendars = _load_json(FIXTURES_DIR / "calendars.json")


# ---------------------------------------------------------------------------
# Reference constants derived from reference.json
# ---------------------------------------------------------------------------
TIMEZONE = _reference["timezone"]
NOW = datetime.fromisoformat(_reference["today"])
TODAY = NOW.date()

# Day lookup:  DAYS["mon"] → date(2025, 1, 6)
DAYS: dict[str, date] = {
    d["name"]: date.fromisoformat(d["date"]) for d in _reference["days"]
}


# ---------------------------------------------------------------------------
# Convenience helpers (importable by test modules)
# ---------------------------------------------------------------------------
def day_date(day: str) -> date:
    """Date object for a named day."""
    return DAYS[day]


def plan_pairs(plan) -> list[tuple[date, float]]:
    """[(date, hours), ...] of a plan, for comparisons with fixture data."""
    return [(d.date, d.hours) for d in plan]


def expected_pairs(raw: list) -> list[tuple[date, float]]:
    """Convert [["2025-01-08", 7], ...] to [(date, 7.0), ...]."""
    return [(date.fromisoformat(d), float(h)) for d, h in raw]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_clock(now: datetime = NOW):
    """BusinessClock pinned to `now` (default: reference Monday 08:00)."""
    from capacity_allocation.clock import BusinessClock

    return BusinessClock(TIMEZONE, frozen_at=now)


def make_calendar(name: str, translator_id: str | None = None):
    """Build a WorkCalendar from calendars.json by name."""
    from capacity_allocation.loaders import calendar_from_dict

    return calendar_from_dict(translator_id or name, _calendars["translators"][name])


def make_model(name: str = "standard", reservations=(), blockages=(), translator_id=None):
    """CalendarModel over a named calendar and an optional snapshot."""
    from capacity_allocation.calendar import CalendarModel

    return CalendarModel(make_calendar(name, translator_id), reservations, blockages)


def make_store(*names: str):
    """InMemoryStore with one translator per named calendar (id = calendar name)."""
    from capacity_allocation.store import InMemoryStore

    return InMemoryStore(make_calendar(n) for n in (names or ("standard",)))


def make_engine(*names: str, now: datetime = NOW):
    from capacity_allocation.engine import SchedulingEngine

    return SchedulingEngine(make_store(*names), clock=make_clock(now))


def make_request(case: dict, mode: str):
    """AllocationRequest from a scenario entry."""
    from capacity_allocation.types import AllocationMode, AllocationRequest

    clock = make_clock()

    def _opt(field):
        value = case.get(field)
        return date.fromisoformat(value) if value is not None else None

    return AllocationRequest(
        translator_id=case["calendar"],
        total_hours=float(case["total_hours"]),
        due=clock.normalize_due(case["due"]),
        mode=AllocationMode(mode),
        start_date=_opt("start_date"),
        end_date=_opt("end_date"),
        morning_delivery=case.get("morning_delivery", False),
    )


def task_reservation(owner_id, day: str, ranges, translator_id="standard"):
    """TASK TimeReservation from [(start, end), ...] decimal-hour pairs."""
    from capacity_allocation.types import TimeRange, TimeReservation

    rs = tuple(TimeRange(float(a), float(b)) for a, b in ranges)
    return TimeReservation(
        owner_id=owner_id,
        translator_id=translator_id,
        date=day_date(day),
        hours=sum(r.hours for r in rs),
        ranges=rs,
    )


# ---------------------------------------------------------------------------
# Scenario loader
# ---------------------------------------------------------------------------
def load_scenarios(name: str):
    """Load a scenario file from data/fixtures/scenarios/{name}.json."""
    return _load_json(SCENARIOS_DIR / f"{name}.json")


def fixture_path(name: str) -> Path:
    return FIXTURES_DIR / name


# ---------------------------------------------------------------------------
# pytest fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock():
    return make_clock()


@pytest.fixture
def standard_calendar():
    return make_calendar("standard")


@pytest.fixture
def holiday_calendar():
    return make_calendar("holiday")


@pytest.fixture
def standard_model():
    """Empty snapshot over the standard 9-17 calendar."""
    return make_model("standard")


@pytest.fixture
def engine():
    """Engine over translators 'standard', 'late' and 'holiday'."""
    return make_engine("standard", "late", "holiday")
