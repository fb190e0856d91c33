"""Engine configuration constants."""

from __future__ import annotations

from dataclasses import dataclass, fields

from capacity_allocation.clock import BUSINESS_TIMEZONE


@dataclass(frozen=True)
class EngineConfig:
    """Constants shared by strategies, validator and detector. Immutable.

    weekly_capacity_hours=None means the weekly target is derived from the
    calendar (daily capacity x working days of the ISO week).
    """

    timezone: str = BUSINESS_TIMEZONE
    epsilon: float = 0.01
    max_lookback_days: int = 90
    morning_delivery_max_hours: float = 2.0
    weekly_capacity_hours: float | None = None
    default_lunch: tuple[str, str] | None = ("12:00", "13:00")
    max_reassignment_candidates: int = 3

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        """Build from a plain dict; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if kwargs.get("default_lunch") is not None:
            kwargs["default_lunch"] = tuple(kwargs["default_lunch"])
        return cls(**kwargs)


DEFAULT_CONFIG = EngineConfig()
