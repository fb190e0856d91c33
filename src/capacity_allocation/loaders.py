"""Data loading utilities: engine config, calendars and full store snapshots from JSON."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from capacity_allocation.calendar import WorkCalendar, blockage_reservation
from capacity_allocation.clock import OTTAWA, parse_time_of_day
from capacity_allocation.config import DEFAULT_CONFIG, EngineConfig
from capacity_allocation.schema import (
    validate_blockage,
    validate_calendar,
    validate_config,
    validate_reservation,
    validate_task,
)
from capacity_allocation.store import InMemoryStore
from capacity_allocation.types import (
    AllocationMode,
    Blockage,
    ReservationKind,
    Task,
    TimeRange,
    TimeReservation,
)


def _read(path: Path):
    with open(path) as f:
        return json.load(f)


def _raise_if(errors: list[str], source: str) -> None:
    if errors:
        raise ValueError(
            f"Validation errors in {source}:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def load_config_json(path: str | Path) -> EngineConfig:
    """Load an EngineConfig from a JSON object; missing keys keep their defaults."""
    path = Path(path)
    data = _read(path)
    _raise_if(validate_config(data), path.name)
    return EngineConfig.from_dict(data)


def calendar_from_dict(
    translator_id: str, data: dict, config: EngineConfig = DEFAULT_CONFIG
) -> WorkCalendar:
    """Build a WorkCalendar. A missing 'lunch' key takes the config's default lunch;
    an explicit null means no lunch break.
    """
    _raise_if(validate_calendar(translator_id, data), f"calendar {translator_id}")
    lunch = data["lunch"] if "lunch" in data else config.default_lunch
    kwargs = dict(
        lunch=tuple(lunch) if lunch is not None else None,
        daily_capacity_hours=data.get("daily_capacity_hours"),
        non_working_weekdays=data.get("non_working_weekdays", (5, 6)),
        holidays=data.get("holidays", ()),
        weekly_capacity_hours=data.get("weekly_capacity_hours"),
        divisions=data.get("divisions", ()),
    )
    if "schedule" in data:
        return WorkCalendar.from_schedule(translator_id, data["schedule"], **kwargs)
    return WorkCalendar(translator_id, data["work_start"], data["work_end"], **kwargs)


def load_calendars_json(
    path: str | Path, config: EngineConfig = DEFAULT_CONFIG
) -> dict[str, WorkCalendar]:
    """Load translator calendars keyed by translator id.

    The JSON must have the format:
    {
        "translators": {
            "T-1": { "work_start": "09:00", "work_end": "17:00", ... },
            ...
        }
    }
    """
    data = _read(Path(path))
    return {
        tid: calendar_from_dict(tid, cal, config)
        for tid, cal in data["translators"].items()
    }


def task_from_dict(data: dict) -> Task:
    _raise_if(validate_task(data), f"task {data.get('id', '?')}")

    def _opt_date(field: str) -> date | None:
        value = data.get(field)
        return date.fromisoformat(value) if value is not None else None

    return Task(
        id=data["id"],
        translator_id=data["translator_id"],
        total_hours=float(data["total_hours"]),
        due=OTTAWA.normalize_due(data["due"]),
        mode=AllocationMode(data.get("mode", "BACKWARD")),
        start_date=_opt_date("start_date"),
        end_date=_opt_date("end_date"),
        morning_delivery=bool(data.get("morning_delivery", False)),
        completed_on=_opt_date("completed_on"),
    )


def blockage_from_dict(data: dict) -> Blockage:
    _raise_if(validate_blockage(data), f"blockage {data.get('id', '?')}")
    full_day = bool(data.get("full_day", False))
    return Blockage(
        id=data["id"],
        translator_id=data["translator_id"],
        date=date.fromisoformat(data["date"]),
        full_day=full_day,
        start=None if full_day else parse_time_of_day(data["start"]),
        end=None if full_day else parse_time_of_day(data["end"]),
        reason=data.get("reason", ""),
    )


def reservation_from_dict(data: dict) -> TimeReservation:
    _raise_if(validate_reservation(data), "reservation")
    return TimeReservation(
        owner_id=data["owner_id"],
        translator_id=data["translator_id"],
        date=date.fromisoformat(data["date"]),
        hours=float(data["hours"]),
        kind=ReservationKind(data.get("kind", "TASK")),
        ranges=tuple(
            TimeRange(parse_time_of_day(lo), parse_time_of_day(hi))
            for lo, hi in data.get("ranges", [])
        ),
    )


def load_store_json(path: str | Path, config: EngineConfig = DEFAULT_CONFIG) -> InMemoryStore:
    """Load a complete snapshot (translators, tasks, blockages, reservations)
    into an InMemoryStore. Blockages get their capacity reservation unless the
    file already lists one for them.
    """
    data = _read(Path(path))
    store = InMemoryStore(
        calendar_from_dict(tid, cal, config)
        for tid, cal in data.get("translators", {}).items()
    )

    reservations = [reservation_from_dict(r) for r in data.get("reservations", [])]
    owners = {r.owner_id for r in reservations}
    for raw in data.get("blockages", []):
        blockage = blockage_from_dict(raw)
        store.save_blockage(blockage)
        if blockage.id not in owners:
            calendar = store.get_calendar(blockage.translator_id)
            reservations.append(blockage_reservation(calendar, blockage))
    for raw in data.get("tasks", []):
        store.save_task(task_from_dict(raw))
    store.save_reservations(reservations)
    return store
