"""Append-only performance metrics and their rollups."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

import structlog

from ..errors import DuplicateMetricError
from ..schemas import SYSTEM_ACTOR, ActorContext, PerformanceMetric, Shift, StaffMember, new_id
from ..store import PERFORMANCE_METRICS, ResilientStore
from .locks import KeyedLocks


@dataclass
class PerformanceStats:
    record_count: int = 0
    staff_count: int = 0
    avg_rating: float = 0.0
    avg_attendance_rate: float = 0.0
    total_incidents: int = 0
    total_commendations: int = 0
    training_completion_rate: int = 0
    certification_validity_rate: int = 0


@dataclass
class ShiftStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    staff_coverage: int = 0


def _round(value: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _percent(part: int, whole: int) -> int:
    if not whole:
        return 0
    return int((Decimal(part * 100) / Decimal(whole)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class PerformanceAggregator:
    """Records per-period metrics and summarises them.

    Recording is serialized per staff member so the one-record-per-period rule
    holds under concurrent writers. Rollups read without locking.
    """

    def __init__(self, *, store: ResilientStore, locks: KeyedLocks) -> None:
        self._store = store
        self._locks = locks
        self._logger = structlog.get_logger(__name__)

    def record_metric(
        self,
        staff: StaffMember,
        period: date,
        attendance_rate: float,
        rating: float,
        incidents: int = 0,
        commendations: int = 0,
        *,
        event_ref: str | None = None,
        training_completed: bool = False,
        certifications_valid: bool = False,
        notes: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> PerformanceMetric:
        metric = PerformanceMetric(
            id=new_id("metric"),
            staff_ref=staff.id,
            period=period,
            event_ref=event_ref,
            attendance_rate=attendance_rate,
            rating=rating,
            incident_count=incidents,
            commendation_count=commendations,
            training_completed=training_completed,
            certifications_valid=certifications_valid,
            notes=notes,
            reviewed_by=actor.actor_id,
        )
        with self._locks.hold(f"staff:{staff.id}"):
            for existing in self._store.fetch_all(PERFORMANCE_METRICS, PerformanceMetric):
                if existing.staff_ref == staff.id and existing.period == period:
                    raise DuplicateMetricError(staff.id, period.isoformat())
            stored = self._store.insert(PERFORMANCE_METRICS, metric)

        self._logger.info(
            "performance.metric_recorded",
            metric_id=stored.id,
            staff_member_id=staff.id,
            period=period.isoformat(),
        )
        return stored

    def metrics(
        self,
        staff_ids: Iterable[str] = (),
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[PerformanceMetric]:
        wanted = set(staff_ids)
        selected = []
        for metric in self._store.fetch_all(PERFORMANCE_METRICS, PerformanceMetric):
            if wanted and metric.staff_ref not in wanted:
                continue
            if date_from is not None and metric.period < date_from:
                continue
            if date_to is not None and metric.period > date_to:
                continue
            selected.append(metric)
        return sorted(selected, key=lambda metric: (metric.staff_ref, metric.period))

    def rollup(
        self,
        staff_ids: Iterable[str] = (),
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> PerformanceStats:
        return summarize_metrics(self.metrics(staff_ids, date_from, date_to))

    @staticmethod
    def shift_stats(shifts: Sequence[Shift]) -> ShiftStats:
        counts = Counter(shift.status for shift in shifts)
        total = len(shifts)
        by_status = {status: counts.get(status, 0) for status in ("scheduled", "confirmed", "completed", "cancelled")}
        return ShiftStats(
            total=total,
            by_status=by_status,
            staff_coverage=_percent(by_status["confirmed"], total),
        )


def summarize_metrics(metrics: Sequence[PerformanceMetric]) -> PerformanceStats:
    """Collapse metric records into averages, totals and rates."""
    if not metrics:
        return PerformanceStats()
    count = len(metrics)
    return PerformanceStats(
        record_count=count,
        staff_count=len({metric.staff_ref for metric in metrics}),
        avg_rating=_round(sum(metric.rating for metric in metrics) / count),
        avg_attendance_rate=_round(sum(metric.attendance_rate for metric in metrics) / count),
        total_incidents=sum(metric.incident_count for metric in metrics),
        total_commendations=sum(metric.commendation_count for metric in metrics),
        training_completion_rate=_percent(sum(1 for metric in metrics if metric.training_completed), count),
        certification_validity_rate=_percent(sum(1 for metric in metrics if metric.certifications_valid), count),
    )
