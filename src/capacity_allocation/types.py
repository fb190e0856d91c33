"""Shared types: reservations, plans, requests, conflicts and the error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from capacity_allocation.clock import format_hours


class AllocationMode(str, Enum):
    """How a task's hours are spread over the calendar."""

    BACKWARD = "BACKWARD"  # JAT, juste-à-temps
    FORWARD = "FORWARD"  # PEPS, premier entré premier sorti
    UNIFORM = "UNIFORM"  # Équilibré
    MANUAL = "MANUAL"


class ReservationKind(str, Enum):
    TASK = "TASK"
    BLOCKAGE = "BLOCKAGE"


class ConflictType(str, Enum):
    """Categories reported by the conflict detector."""

    SURALLOCATION = "surallocation"
    CHEVAUCHEMENT = "chevauchement"
    BLOCAGE = "blocage"
    HORS_TRAVAIL = "horsTravail"
    CAPACITE_DEPASSEE = "capaciteDepassee"
    APRES_ECHEANCE = "apresEcheance"


@dataclass(frozen=True, order=True)
class TimeRange:
    """Half-open range [start, end) in decimal hours of the day."""

    start: float
    end: float

    @property
    def hours(self) -> float:
        return self.end - self.start

    def overlaps(self, other: TimeRange) -> bool:
        return self.start < other.end and other.start < self.end

    def within(self, start: float, end: float) -> bool:
        return start <= self.start and self.end <= end

    def __str__(self) -> str:
        return f"{format_hours(self.start)}-{format_hours(self.end)}"


@dataclass(frozen=True)
class DayAllocation:
    """Hours assigned to one date, not yet placed within the day."""

    date: date
    hours: float


@dataclass(frozen=True)
class AllocationPlan:
    """Day-ordered output of an allocation strategy.

    Invariants:
        - days are sorted by date, each date at most once
        - every entry has hours > 0
    """

    days: tuple[DayAllocation, ...] = ()

    @property
    def total_hours(self) -> float:
        return sum(d.hours for d in self.days)

    @property
    def dates(self) -> list[date]:
        return [d.date for d in self.days]

    def __iter__(self):
        return iter(self.days)

    def __len__(self) -> int:
        return len(self.days)

    @classmethod
    def from_pairs(cls, pairs) -> AllocationPlan:
        """Build a plan from (date, hours) pairs, sorted by date."""
        days = [DayAllocation(d, float(h)) for d, h in pairs]
        days.sort(key=lambda d: d.date)
        return cls(tuple(days))


@dataclass(frozen=True)
class TimeReservation:
    """Atomic unit persisted by the store.

    Invariants:
        - TASK: sum of range hours == hours when ranges are present
        - BLOCKAGE: hours may differ from the ranges (full-day uses daily capacity)
        - ranges are sorted and non-overlapping
    """

    owner_id: str
    translator_id: str
    date: date
    hours: float
    kind: ReservationKind = ReservationKind.TASK
    ranges: tuple[TimeRange, ...] = ()

    @property
    def start(self) -> float | None:
        return self.ranges[0].start if self.ranges else None

    @property
    def end(self) -> float | None:
        return self.ranges[-1].end if self.ranges else None


@dataclass(frozen=True)
class Blockage:
    """Translator-declared unavailable time (leave, meeting, training)."""

    id: str
    translator_id: str
    date: date
    full_day: bool = False
    start: float | None = None
    end: float | None = None
    reason: str = ""


@dataclass(frozen=True)
class Task:
    """A quantity of work hours with a due date, owned by one translator."""

    id: str
    translator_id: str
    total_hours: float
    due: date | datetime
    mode: AllocationMode = AllocationMode.BACKWARD
    start_date: date | None = None
    end_date: date | None = None
    morning_delivery: bool = False
    completed_on: date | None = None


@dataclass(frozen=True)
class AllocationRequest:
    """Immutable input to an allocation strategy."""

    translator_id: str
    total_hours: float
    due: datetime
    mode: AllocationMode
    start_date: date | None = None
    end_date: date | None = None
    manual: tuple[DayAllocation, ...] = ()
    morning_delivery: bool = False

    @property
    def due_date(self) -> date:
        return self.due.date()


@dataclass(frozen=True)
class CommitResult:
    """Reservations written for a task and whether the plan was left incomplete."""

    task_id: str
    reservations: tuple[TimeReservation, ...]
    inconsistent: bool = False

    @property
    def total_hours(self) -> float:
        return sum(r.hours for r in self.reservations)


@dataclass(frozen=True)
class Conflict:
    """A detected violation, surfaced for human resolution."""

    type: ConflictType
    translator_id: str
    date: date
    detail: str
    owner_ids: tuple[str, ...] = field(default=())


class SuggestionType(str, Enum):
    REPARATION_LOCALE = "REPARATION_LOCALE"  # same translator, other slots
    REATTRIBUTION = "REATTRIBUTION"  # another translator of the division
    IMPOSSIBLE = "IMPOSSIBLE"


class ImpactLevel(str, Enum):
    FAIBLE = "FAIBLE"
    MODERE = "MODERE"
    ELEVE = "ELEVE"


@dataclass(frozen=True)
class FreeSlot:
    """Unreserved working time of one date."""

    date: date
    hours: float
    ranges: tuple[TimeRange, ...] = ()


@dataclass(frozen=True)
class ImpactScore:
    """0-100 disruption score of a suggestion and the points behind it."""

    total: int
    level: ImpactLevel
    hours_moved: int = 0
    tasks_affected: int = 0
    reassignment: int = 0
    due_risk: int = 0
    fragmentation: int = 0
    justification: str = ""


@dataclass(frozen=True)
class Candidate:
    """A translator able to take over a task's conflicting hours."""

    translator_id: str
    free_hours: float
    score: float
    slots: tuple[FreeSlot, ...] = ()


@dataclass(frozen=True)
class Suggestion:
    """Advisory way out of a task's conflicts. Never applied by the engine."""

    type: SuggestionType
    task_id: str
    translator_id: str
    hours: float
    impact: ImpactScore
    conflicts: tuple[Conflict, ...] = ()
    slots: tuple[FreeSlot, ...] = ()
    proposed_translator_id: str | None = None
    candidates: tuple[Candidate, ...] = ()
    description: str = ""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AllocationError(Exception):
    """Base class for errors that abort an allocation or a commit."""


class InfeasibleAllocationError(AllocationError):
    """Raised when the hours do not fit in the free capacity of the bounds."""

    def __init__(
        self,
        translator_id: str,
        hours_remaining: float,
        hours_requested: float,
        reason: str,
        date: date | None = None,
    ) -> None:
        self.translator_id = translator_id
        self.hours_remaining = hours_remaining
        self.hours_requested = hours_requested
        self.reason = reason
        self.date = date
        where = f" at {date.isoformat()}" if date is not None else ""
        super().__init__(
            f"Infeasible: translator {translator_id!r} cannot absorb "
            f"{hours_requested:.2f}h, {hours_remaining:.2f}h left unallocated"
            f"{where} (reason: {reason})"
        )


class InvalidRangeError(AllocationError):
    """Raised for inverted or past date bounds, before any allocation."""

    def __init__(
        self,
        detail: str,
        start: date | None = None,
        end: date | None = None,
    ) -> None:
        self.detail = detail
        self.start = start
        self.end = end
        super().__init__(detail)


class ValidationError(AllocationError):
    """A plan failed a validator check. Names the check and the offending dates."""

    def __init__(self, check: str, dates: list[date], detail: str) -> None:
        self.check = check
        self.dates = list(dates)
        self.detail = detail
        listed = ", ".join(d.isoformat() for d in self.dates)
        suffix = f" [{listed}]" if listed else ""
        super().__init__(f"{check}: {detail}{suffix}")


class UnknownTranslatorError(KeyError):
    """The store has no calendar for this translator."""


class UnknownTaskError(KeyError):
    """The store has no task with this id."""
