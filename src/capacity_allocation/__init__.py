"""capacity-allocation: capacity-aware time allocation and conflict detection for translators."""

from capacity_allocation.calendar import CalendarModel, WorkCalendar, WorkWindow
from capacity_allocation.clock import OTTAWA, BusinessClock
from capacity_allocation.config import EngineConfig
from capacity_allocation.conflicts import ConflictDetector
from capacity_allocation.engine import SchedulingEngine
from capacity_allocation.slicer import IntradayTimeSlicer, slice_hours
from capacity_allocation.store import InMemoryStore, ReservationStore
from capacity_allocation.strategies import (
    AllocationStrategy,
    BackwardStrategy,
    ForwardStrategy,
    ManualStrategy,
    UniformStrategy,
    strategy_for,
)
from capacity_allocation.suggestions import ConflictAdvisor
from capacity_allocation.types import (
    AllocationError,
    AllocationMode,
    AllocationPlan,
    AllocationRequest,
    Blockage,
    Candidate,
    CommitResult,
    Conflict,
    ConflictType,
    DayAllocation,
    FreeSlot,
    ImpactLevel,
    ImpactScore,
    InfeasibleAllocationError,
    InvalidRangeError,
    ReservationKind,
    Suggestion,
    SuggestionType,
    Task,
    TimeRange,
    TimeReservation,
    ValidationError,
)
from capacity_allocation.validator import ScheduleValidator

__all__ = [
    "AllocationError",
    "AllocationMode",
    "AllocationPlan",
    "AllocationRequest",
    "AllocationStrategy",
    "BackwardStrategy",
    "Blockage",
    "BusinessClock",
    "CalendarModel",
    "Candidate",
    "CommitResult",
    "Conflict",
    "ConflictAdvisor",
    "ConflictDetector",
    "ConflictType",
    "DayAllocation",
    "EngineConfig",
    "ForwardStrategy",
    "FreeSlot",
    "ImpactLevel",
    "ImpactScore",
    "InMemoryStore",
    "InfeasibleAllocationError",
    "IntradayTimeSlicer",
    "InvalidRangeError",
    "ManualStrategy",
    "OTTAWA",
    "ReservationKind",
    "ReservationStore",
    "ScheduleValidator",
    "SchedulingEngine",
    "Suggestion",
    "SuggestionType",
    "Task",
    "TimeRange",
    "TimeReservation",
    "UniformStrategy",
    "ValidationError",
    "WorkCalendar",
    "WorkWindow",
    "slice_hours",
    "strategy_for",
]
