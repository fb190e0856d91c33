"""Input validation for calendars, tasks, blockages, reservations and engine config.

Every validator returns a list of error messages (empty = valid).
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from capacity_allocation.clock import parse_time_of_day
from capacity_allocation.types import AllocationMode, ReservationKind


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_time(errors: list[str], where: str, field: str, value) -> float | None:
    try:
        return parse_time_of_day(value)
    except (ValueError, TypeError, AttributeError) as e:
        errors.append(f"{where}: invalid {field} time {value!r} - {e}")
        return None


def _check_date(errors: list[str], where: str, field: str, value) -> None:
    try:
        date.fromisoformat(value)
    except (ValueError, TypeError):
        errors.append(f"{where}: invalid {field} date {value!r}")


def validate_calendar(translator_id: str, data: dict) -> list[str]:
    """Validate one translator's calendar definition.

    Checks:
    - work window given as work_start/work_end or as a 'schedule' string
    - lunch, when present, is a [start, end] pair
    - capacities are non-negative numbers
    - weekday numbers are 0-6, holidays are ISO dates
    """
    errors: list[str] = []
    where = f"Calendar {translator_id}"

    if "schedule" in data:
        if not isinstance(data["schedule"], str) or "-" not in data["schedule"]:
            errors.append(f"{where}: schedule must look like '9h-17h'")
    else:
        for field in ("work_start", "work_end"):
            if field not in data:
                errors.append(f"{where}: missing '{field}'")
        if "work_start" in data and "work_end" in data:
            start = _check_time(errors, where, "work_start", data["work_start"])
            end = _check_time(errors, where, "work_end", data["work_end"])
            if start is not None and end is not None and end <= start:
                errors.append(f"{where}: work_end must be after work_start")

    lunch = data.get("lunch")
    if lunch is not None:
        if not isinstance(lunch, list) or len(lunch) != 2:
            errors.append(f"{where}: lunch must be [start, end], got {lunch!r}")
        else:
            lo = _check_time(errors, where, "lunch start", lunch[0])
            hi = _check_time(errors, where, "lunch end", lunch[1])
            if lo is not None and hi is not None and hi <= lo:
                errors.append(f"{where}: lunch end must be after lunch start")

    for field in ("daily_capacity_hours", "weekly_capacity_hours"):
        value = data.get(field)
        if value is not None and (not _is_number(value) or value < 0):
            errors.append(f"{where}: {field} must be a number >= 0, got {value!r}")

    for weekday in data.get("non_working_weekdays", []):
        if not isinstance(weekday, int) or weekday < 0 or weekday > 6:
            errors.append(f"{where}: invalid weekday {weekday!r} (must be 0-6)")

    for holiday in data.get("holidays", []):
        _check_date(errors, where, "holiday", holiday)

    divisions = data.get("divisions", [])
    if not isinstance(divisions, list) or not all(isinstance(d, str) for d in divisions):
        errors.append(f"{where}: divisions must be a list of strings")

    return errors


def validate_task(data: dict) -> list[str]:
    errors: list[str] = []
    where = f"Task {data.get('id', '?')}"
    for field in ("id", "translator_id", "total_hours", "due"):
        if field not in data:
            errors.append(f"{where}: missing '{field}'")
    if errors:
        return errors

    if not _is_number(data["total_hours"]) or data["total_hours"] <= 0:
        errors.append(f"{where}: total_hours must be > 0")
    try:
        datetime.fromisoformat(data["due"])
    except (ValueError, TypeError):
        errors.append(f"{where}: invalid due {data['due']!r}")
    if data.get("mode", "BACKWARD") not in {m.value for m in AllocationMode}:
        errors.append(f"{where}: unknown mode {data.get('mode')!r}")
    for field in ("start_date", "end_date", "completed_on"):
        if data.get(field) is not None:
            _check_date(errors, where, field, data[field])
    return errors


def validate_blockage(data: dict) -> list[str]:
    errors: list[str] = []
    where = f"Blockage {data.get('id', '?')}"
    for field in ("id", "translator_id", "date"):
        if field not in data:
            errors.append(f"{where}: missing '{field}'")
    if "date" in data:
        _check_date(errors, where, "date", data["date"])

    if data.get("full_day", False):
        if not isinstance(data["full_day"], bool):
            errors.append(f"{where}: 'full_day' must be boolean")
    else:
        if "start" not in data or "end" not in data:
            errors.append(f"{where}: needs full_day or start/end")
        else:
            lo = _check_time(errors, where, "start", data["start"])
            hi = _check_time(errors, where, "end", data["end"])
            if lo is not None and hi is not None and hi <= lo:
                errors.append(f"{where}: end must be after start")
    return errors


def validate_reservation(data: dict) -> list[str]:
    errors: list[str] = []
    where = f"Reservation {data.get('owner_id', '?')}@{data.get('date', '?')}"
    for field in ("owner_id", "translator_id", "date", "hours"):
        if field not in data:
            errors.append(f"{where}: missing '{field}'")
    if errors:
        return errors

    _check_date(errors, where, "date", data["date"])
    if not _is_number(data["hours"]) or data["hours"] < 0:
        errors.append(f"{where}: hours must be a number >= 0")
    if data.get("kind", "TASK") not in {k.value for k in ReservationKind}:
        errors.append(f"{where}: unknown kind {data.get('kind')!r}")
    for i, pair in enumerate(data.get("ranges", [])):
        if not isinstance(pair, list) or len(pair) != 2:
            errors.append(f"{where}, range {i}: expected [start, end], got {pair!r}")
            continue
        lo = _check_time(errors, where, "range start", pair[0])
        hi = _check_time(errors, where, "range end", pair[1])
        if lo is not None and hi is not None and hi <= lo:
            errors.append(f"{where}, range {i}: end must be after start")
    return errors


def validate_config(data: dict) -> list[str]:
    """Validate engine configuration values."""
    errors: list[str] = []

    if "timezone" in data:
        try:
            ZoneInfo(data["timezone"])
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            errors.append(f"Unknown timezone {data['timezone']!r}")

    for field in ("epsilon", "morning_delivery_max_hours"):
        if field in data and (not _is_number(data[field]) or data[field] <= 0):
            errors.append(f"{field} must be a number > 0, got {data[field]!r}")

    for field in ("max_lookback_days", "max_reassignment_candidates"):
        if field in data:
            value = data[field]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(f"{field} must be a positive integer, got {value!r}")

    weekly = data.get("weekly_capacity_hours")
    if weekly is not None and (not _is_number(weekly) or weekly < 0):
        errors.append(f"weekly_capacity_hours must be a number >= 0, got {weekly!r}")

    lunch = data.get("default_lunch")
    if lunch is not None:
        if not isinstance(lunch, list) or len(lunch) != 2:
            errors.append(f"default_lunch must be [start, end], got {lunch!r}")
        else:
            _check_time(errors, "default_lunch", "start", lunch[0])
            _check_time(errors, "default_lunch", "end", lunch[1])

    return errors
