"""Tests for ConflictDetector categories."""

from __future__ import annotations

from datetime import datetime

import pytest

from conftest import day_date, make_clock, make_model, task_reservation

from capacity_allocation.config import EngineConfig
from capacity_allocation.conflicts import ConflictDetector
from capacity_allocation.types import Blockage, ConflictType, Task, TimeRange, TimeReservation


@pytest.fixture
def detector():
    return ConflictDetector(clock=make_clock())


def _types(conflicts):
    return [c.type for c in conflicts]


class TestConflictDetector:

    def test_clean_schedule(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "mon", [(9, 12)]),
            task_reservation("B", "mon", [(13, 17)]),
        ])
        assert detector.detect(model) == []

    def test_overlap_reported_once(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "tue", [(9, 12)]),
            task_reservation("B", "tue", [(11, 12), (13, 14)]),
        ])
        [conflict] = detector.detect(model)
        assert conflict.type == ConflictType.CHEVAUCHEMENT
        assert conflict.owner_ids == ("A", "B")
        assert conflict.date == day_date("tue")
        assert "11h-12h" in conflict.detail

    def test_touching_ranges_do_not_overlap(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "tue", [(9, 11)]),
            task_reservation("B", "tue", [(11, 12)]),
        ])
        assert detector.detect(model) == []

    def test_surallocation(self, detector):
        model = make_model("standard", reservations=[
            TimeReservation("A", "standard", day_date("wed"), 5.0),
            TimeReservation("B", "standard", day_date("wed"), 3.0),
        ])
        [conflict] = detector.detect(model)
        assert conflict.type == ConflictType.SURALLOCATION
        assert conflict.owner_ids == ("A", "B")
        assert "8.00h reserved" in conflict.detail

    def test_task_during_blockage(self, detector):
        model = make_model(
            "standard",
            reservations=[task_reservation("A", "thu", [(9, 11)])],
            blockages=[Blockage("B-1", "standard", day_date("thu"), start=10.0, end=11.0)],
        )
        [conflict] = detector.detect(model)
        assert conflict.type == ConflictType.BLOCAGE
        assert conflict.owner_ids == ("A", "B-1")
        assert "during blockage B-1" in conflict.detail

    def test_two_blockages_overlap(self, detector):
        model = make_model("standard", blockages=[
            Blockage("B-1", "standard", day_date("thu"), start=9.0, end=11.0),
            Blockage("B-2", "standard", day_date("thu"), start=10.0, end=12.0),
        ])
        assert _types(detector.detect(model)) == [ConflictType.CHEVAUCHEMENT]

    def test_outside_working_hours(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "mon", [(16, 18)]),
        ])
        [conflict] = detector.detect(model)
        assert conflict.type == ConflictType.HORS_TRAVAIL
        assert "16h-18h" in conflict.detail

    def test_inside_lunch(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "mon", [(11.5, 12.5)]),
        ])
        assert _types(detector.detect(model)) == [ConflictType.HORS_TRAVAIL]

    def test_weekly_target_exceeded(self):
        detector = ConflictDetector(EngineConfig(weekly_capacity_hours=10), make_clock())
        model = make_model("standard", reservations=[
            task_reservation("A", "mon", [(9, 12), (13, 17)]),
            task_reservation("B", "wed", [(9, 12), (13, 15)]),
            task_reservation("C", "next_mon", [(9, 12)]),
        ])
        [conflict] = detector.detect(model)
        assert conflict.type == ConflictType.CAPACITE_DEPASSEE
        assert conflict.date == day_date("mon")
        assert conflict.owner_ids == ("A", "B")
        assert conflict.detail.startswith("2025-W02")

    def test_weekly_target_ignores_blockages(self):
        model = make_model(
            "part_time",
            reservations=[
                task_reservation("A", "mon", [(9, 12), (13, 17)], translator_id="part_time"),
                task_reservation("B", "tue", [(9, 12), (13, 17)], translator_id="part_time"),
            ],
            blockages=[Blockage("B-1", "part_time", day_date("wed"), full_day=True)],
        )
        assert ConflictDetector(clock=make_clock()).detect(model) == []

    def test_work_after_due(self, detector):
        model = make_model("standard", reservations=[
            task_reservation("A", "thu", [(9, 12)]),
            task_reservation("A", "fri", [(9, 11)]),
        ])
        task = Task("A", "standard", 5.0, datetime(2025, 1, 10, 10, 0))
        [conflict] = detector.detect(model, [task])
        assert conflict.type == ConflictType.APRES_ECHEANCE
        assert conflict.date == day_date("fri")

    def test_results_sorted_and_deterministic(self, detector):
        reservations = [
            task_reservation("C", "wed", [(16, 18)]),
            task_reservation("A", "mon", [(9, 12)]),
            task_reservation("B", "mon", [(10, 11)]),
        ]
        model = make_model("standard", reservations=reservations)
        first = detector.detect(model)
        assert [c.date for c in first] == [day_date("mon"), day_date("wed")]
        assert first == detector.detect(make_model("standard", reservations=reversed(reservations)))

    def test_detect_does_not_mutate(self, detector):
        reservations = [task_reservation("A", "mon", [(9, 12)]), task_reservation("B", "mon", [(9, 10)])]
        model = make_model("standard", reservations=reservations)
        before = model.reservations
        detector.detect(model)
        assert model.reservations == before
        assert model.reservations[0].ranges == (TimeRange(9.0, 12.0),)
