"""Boundary: BusinessClock and decimal-hour ↔ time-of-day conversion.

All engine arithmetic is done on naive dates and decimal hours in a single
business timezone. Aware datetimes are converted once, here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

BUSINESS_TIMEZONE = "America/Toronto"

# Rounding applied to every stored hour quantity
HOURS_PRECISION = 4

_HOUR_SUFFIX = re.compile(r"^(\d{1,2})h(\d{2})?$")
_COLON = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def round_hours(hours: float) -> float:
    return round(hours, HOURS_PRECISION)


def time_to_hours(t: time) -> float:
    """time(12, 30) -> 12.5"""
    return t.hour + t.minute / 60 + t.second / 3600


def hours_to_time(hours: float) -> time:
    """12.5 -> time(12, 30). Rounded to the minute; 24.0 maps to time(0, 0)."""
    minutes = int(round(hours * 60))
    if minutes >= 24 * 60:
        return time(0, 0)
    return time(minutes // 60, minutes % 60)


def parse_time_of_day(s: str | time) -> float:
    """Parse 'HH:MM', 'Xh' or 'XhMM' into decimal hours."""
    if isinstance(s, time):
        return time_to_hours(s)
    text = s.strip()
    match = _HOUR_SUFFIX.match(text) or _COLON.match(text)
    if match is None:
        raise ValueError(f"Invalid time of day: {s!r} (expected 'HH:MM' or '9h30')")
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    if hour > 24 or minute > 59 or (hour == 24 and minute):
        raise ValueError(f"Invalid time of day: {s!r}")
    return hour + minute / 60


def format_hours(hours: float) -> str:
    """12.5 -> '12h30', 9.0 -> '9h'."""
    whole = int(hours)
    minutes = int(round((hours - whole) * 60))
    if minutes == 60:
        whole, minutes = whole + 1, 0
    if minutes == 0:
        return f"{whole}h"
    return f"{whole}h{minutes:02d}"


@dataclass(frozen=True)
class BusinessClock:
    """Fixed-timezone clock. Immutable.

    `frozen_at` pins now()/today() to a local naive datetime, for previews
    that must be reproducible.
    """

    timezone: str = BUSINESS_TIMEZONE
    frozen_at: datetime | None = None

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def localize(self, dt: datetime) -> datetime:
        """Aware datetimes are converted to business local time; naive ones are kept."""
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(self.zone).replace(tzinfo=None)

    def now(self) -> datetime:
        if self.frozen_at is not None:
            return self.localize(self.frozen_at)
        return datetime.now(self.zone).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()

    def normalize_due(self, value: date | datetime | str) -> datetime:
        """Due date/datetime -> local naive datetime.

        A plain date means the start of that day: nothing can be worked
        on the due day itself.
        """
        if isinstance(value, str):
            text = value.strip()
            try:
                value = datetime.fromisoformat(text) if "T" in text else date.fromisoformat(text)
            except ValueError as e:
                raise ValueError(f"Invalid due date {value!r}: {e}") from None
        if isinstance(value, datetime):
            return self.localize(value)
        return datetime.combine(value, time(0, 0))

    def to_date(self, value: date | datetime | str) -> date:
        if isinstance(value, str):
            return self.normalize_due(value).date()
        if isinstance(value, datetime):
            return self.localize(value).date()
        return value


def iso_week_start(d: date) -> date:
    return d - timedelta(days=d.weekday())


OTTAWA = BusinessClock(BUSINESS_TIMEZONE)
