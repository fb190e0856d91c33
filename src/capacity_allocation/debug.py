"""ASCII visualisation for development-time verification.

This module is dev-only and not imported by production code.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from capacity_allocation.types import ReservationKind

if TYPE_CHECKING:
    from capacity_allocation.calendar import CalendarModel


def show_schedule(model: CalendarModel, start: date, end: date, echo: bool = True) -> str:
    """Render one row per day in [start, end).

    Legend: '.' = non-working, '-' = free working time, '~' = lunch,
    '#' = blockage, 'A'-'Z' = task reservations (one letter per task).
    Each char = 30 minutes. Returns the string; prints it when echo is set.
    """
    lines: list[str] = []
    day_names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    chars_per_day = 48
    hours_per_char = 0.5

    labels: dict[str, str] = {}
    label_chars = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    for r in sorted(model.reservations, key=lambda r: (r.date, r.start or 0.0)):
        if r.kind == ReservationKind.TASK and r.owner_id not in labels:
            labels[r.owner_id] = label_chars[len(labels) % len(label_chars)]

    header_hours = "".join(f"{h:02d}" if h % 3 == 0 else "  " for h in range(24))
    lines.append(f"{'':>10s}  {header_hours}  free")

    current = start
    while current < end:
        row = list("." * chars_per_day)
        window = model.work_window(current)
        if model.is_working_day(current):
            for p in window.periods():
                for i in range(int(p.start / hours_per_char), int(p.end / hours_per_char)):
                    row[i] = "-"
            if window.has_lunch:
                for i in range(int(window.lunch_start / hours_per_char),
                               int(window.lunch_end / hours_per_char)):
                    row[i] = "~"

        for r in model.reservations_on(current):
            mark = "#" if r.kind == ReservationKind.BLOCKAGE else labels[r.owner_id]
            for rg in r.ranges:
                lo = int(rg.start / hours_per_char)
                hi = int(round(rg.end / hours_per_char))
                for i in range(max(0, lo), min(chars_per_day, hi)):
                    row[i] = mark

        label = f"{day_names[current.weekday()]} {current.strftime('%d %b')}"
        free = model.free_capacity(current) if model.is_working_day(current) else 0.0
        lines.append(f"{label:>10s}  {''.join(row)}  {free:5.2f}h")
        current += timedelta(days=1)

    if labels:
        legend = ", ".join(f"{v}={k}" for k, v in labels.items())
        lines.append(f"\nLegend: . = non-working, - = free, ~ = lunch, # = blockage, {legend}")

    result = "\n".join(lines)
    if echo:
        print(result)
    return result
