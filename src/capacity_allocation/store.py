"""Collaborator store: the ReservationStore protocol and an in-memory implementation.

The engine only reads snapshots and writes through this interface. A store
must serialize reservation-set mutations per translator (translator_lock) and
apply each group of writes atomically (transaction).
"""

from __future__ import annotations

import logging
import pickle
import threading
from contextlib import contextmanager
from datetime import date
from typing import ContextManager, Iterable, Iterator, Protocol

from capacity_allocation.calendar import WorkCalendar
from capacity_allocation.types import (
    Blockage,
    Task,
    TimeReservation,
    UnknownTaskError,
    UnknownTranslatorError,
)

logger = logging.getLogger(__name__)


def _in_range(d: date, start: date | None, end: date | None) -> bool:
    return (start is None or d >= start) and (end is None or d <= end)


class ReservationStore(Protocol):
    """What the engine needs from persistence."""

    def get_calendar(self, translator_id: str) -> WorkCalendar: ...

    def get_reservations(
        self, translator_id: str, start: date | None = None, end: date | None = None
    ) -> list[TimeReservation]: ...

    def get_blockages(
        self, translator_id: str, start: date | None = None, end: date | None = None
    ) -> list[Blockage]: ...

    def reservations_for(self, owner_id: str) -> list[TimeReservation]: ...

    def save_reservations(self, reservations: Iterable[TimeReservation]) -> None: ...

    def delete_reservations(
        self, owner_id: str, after: date | None = None
    ) -> list[TimeReservation]: ...

    def get_task(self, task_id: str) -> Task: ...

    def get_tasks(self, translator_id: str) -> list[Task]: ...

    def save_task(self, task: Task) -> None: ...

    def delete_task(self, task_id: str) -> None: ...

    def save_blockage(self, blockage: Blockage) -> None: ...

    def delete_blockage(self, blockage_id: str) -> Blockage: ...

    def translator_ids(self, division_id: str | None = None) -> list[str]: ...

    def translator_lock(self, translator_id: str) -> ContextManager: ...

    def transaction(self) -> ContextManager: ...


class InMemoryStore:
    """Dict-backed ReservationStore.

    Each translator has its own re-entrant lock. transaction() takes a
    checkpoint and restores it if the block raises.
    """

    def __init__(self, calendars: Iterable[WorkCalendar] = ()) -> None:
        self._calendars: dict[str, WorkCalendar] = {}
        self._reservations: list[TimeReservation] = []
        self._blockages: dict[str, Blockage] = {}
        self._tasks: dict[str, Task] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._write_guard = threading.RLock()
        for cal in calendars:
            self.add_calendar(cal)

    # ------------------------------------------------------------------
    # Calendars
    # ------------------------------------------------------------------

    def add_calendar(self, calendar: WorkCalendar) -> None:
        self._calendars[calendar.translator_id] = calendar

    def get_calendar(self, translator_id: str) -> WorkCalendar:
        try:
            return self._calendars[translator_id]
        except KeyError:
            raise UnknownTranslatorError(translator_id) from None

    def translator_ids(self, division_id: str | None = None) -> list[str]:
        return sorted(
            tid for tid, cal in self._calendars.items()
            if division_id is None or division_id in cal.divisions
        )

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def get_reservations(
        self, translator_id: str, start: date | None = None, end: date | None = None
    ) -> list[TimeReservation]:
        return [
            r for r in self._reservations
            if r.translator_id == translator_id and _in_range(r.date, start, end)
        ]

    def reservations_for(self, owner_id: str) -> list[TimeReservation]:
        return [r for r in self._reservations if r.owner_id == owner_id]

    def save_reservations(self, reservations: Iterable[TimeReservation]) -> None:
        reservations = list(reservations)
        with self._write_guard:
            for r in reservations:
                if r.translator_id not in self._calendars:
                    raise UnknownTranslatorError(r.translator_id)
            self._reservations.extend(reservations)

    def delete_reservations(self, owner_id: str, after: date | None = None) -> list[TimeReservation]:
        """Remove an owner's reservations (only those dated after `after`, if given)."""
        with self._write_guard:
            removed, kept = [], []
            for r in self._reservations:
                if r.owner_id == owner_id and (after is None or r.date > after):
                    removed.append(r)
                else:
                    kept.append(r)
            self._reservations = kept
        return removed

    # ------------------------------------------------------------------
    # Tasks and blockages
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise UnknownTaskError(task_id) from None

    def get_tasks(self, translator_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.translator_id == translator_id]

    def save_task(self, task: Task) -> None:
        with self._write_guard:
            self._tasks[task.id] = task

    def delete_task(self, task_id: str) -> None:
        with self._write_guard:
            if self._tasks.pop(task_id, None) is None:
                raise UnknownTaskError(task_id)

    def get_blockages(
        self, translator_id: str, start: date | None = None, end: date | None = None
    ) -> list[Blockage]:
        return [
            b for b in self._blockages.values()
            if b.translator_id == translator_id and _in_range(b.date, start, end)
        ]

    def save_blockage(self, blockage: Blockage) -> None:
        with self._write_guard:
            self._blockages[blockage.id] = blockage

    def delete_blockage(self, blockage_id: str) -> Blockage:
        with self._write_guard:
            try:
                return self._blockages.pop(blockage_id)
            except KeyError:
                raise KeyError(f"Unknown blockage {blockage_id!r}") from None

    # ------------------------------------------------------------------
    # Concurrency and atomicity
    # ------------------------------------------------------------------

    def translator_lock(self, translator_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(translator_id)
            if lock is None:
                lock = self._locks[translator_id] = threading.RLock()
            return lock

    def checkpoint(self) -> bytes:
        """Immutable snapshot of reservations, tasks and blockages."""
        with self._write_guard:
            return pickle.dumps(
                (list(self._reservations), dict(self._tasks), dict(self._blockages))
            )

    def restore(self, snap: bytes) -> None:
        """Restore to snapshot. Mutates in place."""
        with self._write_guard:
            self._reservations, self._tasks, self._blockages = pickle.loads(snap)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._write_guard:
            snap = self.checkpoint()
            try:
                yield
            except BaseException:
                logger.warning("Store write failed, restoring checkpoint")
                self.restore(snap)
                raise
