#!/usr/bin/env python
"""Visual verification report for capacity-allocation.

Run:  python scripts/verify.py

Produces a formatted report showing:
  1. Reference data (today, named days)
  2. Calendar configurations (window, lunch, capacity, holidays)
  3. Strategy scenarios (backward, forward, uniform)  -- input/output tables
  4. Slicing scenarios  -- cursor, hours, ranges
  5. A committed week with a blockage  -- ASCII schedule + conflict report
"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths and data loading
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
FIXTURES = ROOT / "data" / "fixtures"
SCENARIOS = FIXTURES / "scenarios"

sys.path.insert(0, str(ROOT / "src"))

from capacity_allocation.calendar import CalendarModel
from capacity_allocation.clock import BusinessClock, format_hours
from capacity_allocation.debug import show_schedule
from capacity_allocation.engine import SchedulingEngine
from capacity_allocation.loaders import load_calendars_json
from capacity_allocation.slicer import slice_hours
from capacity_allocation.store import InMemoryStore
from capacity_allocation.strategies import strategy_for
from capacity_allocation.types import (
    AllocationError,
    AllocationMode,
    AllocationRequest,
    Blockage,
    Task,
)


def _load(path: Path):
    with open(path) as f:
        return json.load(f)


_ref = _load(FIXTURES / "reference.json")
_cals = load_calendars_json(FIXTURES / "calendars.json")

CLOCK = BusinessClock(_ref["timezone"], frozen_at=datetime.fromisoformat(_ref["today"]))
TODAY = CLOCK.today()
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
WIDTH = 90


def banner(title: str):
    print()
    print("=" * WIDTH)
    print(f"  {title}")
    print("=" * WIDTH)


def heading(title: str):
    print()
    print(f"  {title}")
    print(f"  {'-' * (len(title) + 2)}")


def table(headers: list[str], rows: list[list[str]], indent: int = 4):
    """Print a formatted table with auto-sized columns."""
    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    pad = " " * indent
    fmt = pad + "  ".join(f"{{:<{w}}}" for w in col_widths)
    sep = pad + "  ".join("-" * w for w in col_widths)

    print(fmt.format(*headers))
    print(sep)
    for row in rows:
        padded = row + [""] * (len(headers) - len(row))
        print(fmt.format(*padded))


def _fmt_date(d: date) -> str:
    return f"{DAY_NAMES[d.weekday()]} {d.strftime('%d %b')}"


def _fmt_plan(pairs) -> str:
    return ", ".join(f"{_fmt_date(d)}: {h:g}h" for d, h in pairs) or "-"


# ---------------------------------------------------------------------------
# Section 1: Reference Data
# ---------------------------------------------------------------------------
def section_reference():
    banner("REFERENCE DATA")
    print(f"\n    Timezone:  {_ref['timezone']}")
    print(f"    Today:     {CLOCK.now().strftime('%A %Y-%m-%d %H:%M')}")

    heading("Named Days")
    rows = [[d["name"], d["date"], DAY_NAMES[d["weekday"]]] for d in _ref["days"]]
    table(["Name", "Date", "Day"], rows)


# ---------------------------------------------------------------------------
# Section 2: Calendar Configurations
# ---------------------------------------------------------------------------
def section_calendars():
    banner("CALENDAR CONFIGURATIONS")
    rows = []
    for name, cal in _cals.items():
        w = cal.window
        lunch = f"{format_hours(w.lunch_start)}-{format_hours(w.lunch_end)}" if w.has_lunch else "none"
        off = ",".join(DAY_NAMES[d] for d in sorted(cal.non_working_weekdays))
        rows.append([
            name,
            f"{format_hours(w.start)}-{format_hours(w.end)}",
            lunch,
            f"{cal.daily_capacity_hours:g}h",
            off,
            ",".join(sorted(h.isoformat() for h in cal.holidays)) or "-",
            ",".join(cal.divisions) or "-",
        ])
    table(["Name", "Window", "Lunch", "Capacity", "Off", "Holidays", "Divisions"], rows)


# ---------------------------------------------------------------------------
# Section 3: Strategy scenarios
# ---------------------------------------------------------------------------
def _run_strategy(mode: str, case: dict):
    def _opt(field):
        return date.fromisoformat(case[field]) if case.get(field) else None

    request = AllocationRequest(
        translator_id=case["calendar"],
        total_hours=float(case["total_hours"]),
        due=CLOCK.normalize_due(case["due"]),
        mode=AllocationMode(mode),
        start_date=_opt("start_date"),
        end_date=_opt("end_date"),
        morning_delivery=case.get("morning_delivery", False),
    )
    model = CalendarModel(_cals[case["calendar"]])
    try:
        plan = strategy_for(mode).allocate(model, request, TODAY)
    except AllocationError as e:
        return f"ERROR: {type(e).__name__}"
    return _fmt_plan((d.date, d.hours) for d in plan)


def section_strategies():
    banner("ALLOCATION STRATEGIES")
    data = _load(SCENARIOS / "allocation.json")
    for key, mode in [
        ("backward", "BACKWARD"),
        ("backward_infeasible", "BACKWARD"),
        ("forward", "FORWARD"),
        ("forward_infeasible", "FORWARD"),
        ("uniform", "UNIFORM"),
    ]:
        heading(key.replace("_", " ").title())
        rows = []
        for case in data[key]:
            expected = (
                _fmt_plan((date.fromisoformat(d), h) for d, h in case["expected"])
                if "expected" in case
                else f"infeasible, {case['hours_remaining']}h left"
            )
            rows.append([
                case["id"], case["calendar"], f"{case['total_hours']}h", case["due"],
                expected, _run_strategy(mode, case),
            ])
        table(["Case", "Calendar", "Hours", "Due", "Expected", "Actual"], rows)


# ---------------------------------------------------------------------------
# Section 4: Slicing
# ---------------------------------------------------------------------------
def section_slicing():
    banner("INTRADAY SLICING")
    data = _load(SCENARIOS / "slicing.json")
    rows = []
    for case in data["cases"]:
        lunch = case["lunch"] or (None, None)
        cursor, ranges = slice_hours(case["cursor"], case["hours"], lunch[0], lunch[1])
        rows.append([
            case["id"],
            format_hours(case["cursor"]),
            f"{case['hours']:g}h",
            ", ".join(str(r) for r in ranges) or "-",
            format_hours(cursor),
        ])
    table(["Case", "Cursor", "Hours", "Ranges", "Cursor after"], rows)


# ---------------------------------------------------------------------------
# Section 5: A committed week
# ---------------------------------------------------------------------------
def section_week():
    banner("COMMITTED WEEK  (standard calendar)")
    store = InMemoryStore([_cals["standard"]])
    engine = SchedulingEngine(store, clock=CLOCK)
    days = {d["name"]: date.fromisoformat(d["date"]) for d in _ref["days"]}

    engine.commit_task(Task("TR-100", "standard", 10.0, days["fri"]))
    engine.commit_task(Task("TR-101", "standard", 6.0, days["fri"], mode=AllocationMode.FORWARD))
    engine.commit_task(Task("TR-102", "standard", 8.0, days["fri"], mode=AllocationMode.UNIFORM))
    engine.add_blockage(Blockage("BLK-1", "standard", days["thu"], start=14.0, end=16.0,
                                 reason="training"))

    print()
    show_schedule(engine.snapshot("standard"), days["mon"], days["next_mon"])

    heading("Conflicts")
    rows = [
        [_fmt_date(c.date), c.type.value, ",".join(c.owner_ids), c.detail]
        for c in engine.list_conflicts(translator_id="standard")
    ]
    table(["Date", "Type", "Owners", "Detail"], rows)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    banner("CAPACITY-ALLOCATION   --  VISUAL VERIFICATION REPORT")
    print(f"    Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print(f"    Fixture data: {FIXTURES.relative_to(ROOT)}/")

    section_reference()
    section_calendars()
    section_strategies()
    section_slicing()
    section_week()

    banner("END OF REPORT")
    print()


if __name__ == "__main__":
    main()
