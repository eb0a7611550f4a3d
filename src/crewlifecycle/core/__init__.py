"""Core lifecycle engines."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .locks import KeyedLocks
from .performance import PerformanceAggregator, PerformanceStats, ShiftStats, summarize_metrics
from .scheduling import SchedulingEngine, windows_overlap
from .screening import ScreeningConfig, ScreeningEngine, calculate_age, normalize_field_name
from .workflow import WorkflowEngine, staff_id_for, topological_order

__all__ = [
    "KeyedLocks",
    "PerformanceAggregator",
    "PerformanceStats",
    "ShiftStats",
    "summarize_metrics",
    "SchedulingEngine",
    "windows_overlap",
    "ScreeningConfig",
    "ScreeningEngine",
    "calculate_age",
    "normalize_field_name",
    "WorkflowEngine",
    "staff_id_for",
    "topological_order",
]
