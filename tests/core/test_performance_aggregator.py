from __future__ import annotations

from datetime import date, time

import pytest

from crewlifecycle.core import KeyedLocks, PerformanceAggregator, PerformanceStats
from crewlifecycle.errors import DuplicateMetricError
from crewlifecycle.schemas import Shift, StaffMember
from crewlifecycle.store import ALL_COLLECTIONS, PERFORMANCE_METRICS, InMemoryBackend, ResilientStore


def build_aggregator() -> tuple[PerformanceAggregator, InMemoryBackend]:
    backend = InMemoryBackend(provisioned=ALL_COLLECTIONS)
    return PerformanceAggregator(store=ResilientStore(backend), locks=KeyedLocks()), backend


def build_staff(staff_id: str) -> StaffMember:
    return StaffMember(id=staff_id, name=staff_id.title())


def build_shift(status: str) -> Shift:
    return Shift(
        staff_ref="staff-a",
        date=date(2024, 7, 20),
        start=time(9, 0),
        end=time(17, 0),
        status=status,
    )


def test_rollup_without_records_is_zeroed():
    aggregator, _ = build_aggregator()

    assert aggregator.rollup(["staff-a"]) == PerformanceStats()
    assert aggregator.rollup() == PerformanceStats(
        record_count=0,
        staff_count=0,
        avg_rating=0.0,
        avg_attendance_rate=0.0,
        total_incidents=0,
        total_commendations=0,
        training_completion_rate=0,
        certification_validity_rate=0,
    )


def test_rollup_averages_and_rates():
    aggregator, _ = build_aggregator()
    alex, blair = build_staff("staff-a"), build_staff("staff-b")
    aggregator.record_metric(alex, date(2024, 1, 1), 95.5, 4.2, 0, 3, training_completed=True, certifications_valid=True)
    aggregator.record_metric(alex, date(2024, 2, 1), 90.0, 4.0, 1, 0, training_completed=True)
    aggregator.record_metric(blair, date(2024, 1, 1), 80.0, 3.5, 2, 1)

    stats = aggregator.rollup()

    assert stats.record_count == 3
    assert stats.staff_count == 2
    assert stats.avg_rating == 3.9
    assert stats.avg_attendance_rate == 88.5
    assert stats.total_incidents == 3
    assert stats.total_commendations == 4
    assert stats.training_completion_rate == 67
    assert stats.certification_validity_rate == 33


def test_rollup_filters_staff_and_period():
    aggregator, _ = build_aggregator()
    alex, blair = build_staff("staff-a"), build_staff("staff-b")
    aggregator.record_metric(alex, date(2024, 1, 1), 100.0, 5.0)
    aggregator.record_metric(alex, date(2024, 3, 1), 50.0, 2.0)
    aggregator.record_metric(blair, date(2024, 1, 1), 70.0, 3.0)

    stats = aggregator.rollup(["staff-a"], date_from=date(2024, 2, 1))

    assert stats.record_count == 1
    assert stats.avg_rating == 2.0

    bounded = aggregator.rollup(date_to=date(2024, 1, 31))
    assert bounded.record_count == 2
    assert bounded.staff_count == 2


def test_duplicate_period_is_rejected_and_original_kept():
    aggregator, backend = build_aggregator()
    staff = build_staff("staff-a")
    aggregator.record_metric(staff, date(2024, 1, 1), 95.0, 4.5)

    with pytest.raises(DuplicateMetricError):
        aggregator.record_metric(staff, date(2024, 1, 1), 10.0, 1.0)

    records = backend.list(PERFORMANCE_METRICS)
    assert len(records) == 1
    assert records[0]["rating"] == 4.5


def test_shift_stats_reports_confirmed_coverage():
    shifts = [build_shift("confirmed"), build_shift("confirmed"), build_shift("scheduled"), build_shift("cancelled")]

    stats = PerformanceAggregator.shift_stats(shifts)

    assert stats.total == 4
    assert stats.by_status == {"scheduled": 1, "confirmed": 2, "completed": 0, "cancelled": 1}
    assert stats.staff_coverage == 50


def test_shift_stats_for_no_shifts():
    stats = PerformanceAggregator.shift_stats([])

    assert stats.total == 0
    assert stats.staff_coverage == 0
