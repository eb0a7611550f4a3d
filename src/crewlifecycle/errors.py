"""Error taxonomy for the lifecycle engine.

Every state-transition error is recoverable: callers fix their input and
retry. ``StoreUnavailableError`` is the only one that is fatal to the current
request.
"""

from __future__ import annotations

from typing import Iterable


class LifecycleError(Exception):
    """Base class for all engine errors."""


class ValidationError(LifecycleError):
    """Raised when input is malformed before it reaches an engine."""

    def __init__(self, message: str, *, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class NotFoundError(LifecycleError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, kind: str, ref: str):
        super().__init__(f"{kind} not found: {ref!r}")
        self.kind = kind
        self.ref = ref


class DependencyUnmetError(LifecycleError):
    """Raised when a step is completed before its prerequisites."""

    def __init__(self, step_id: str, missing: Iterable[str]):
        self.step_id = step_id
        self.missing = sorted(missing)
        super().__init__(
            f"Step {step_id!r} depends on incomplete steps: {', '.join(self.missing)}"
        )


class IncompleteWorkflowError(LifecycleError):
    """Raised when approving a candidate with required steps outstanding."""

    def __init__(self, candidate_id: str, remaining: Iterable[str]):
        self.candidate_id = candidate_id
        self.remaining = sorted(remaining)
        super().__init__(
            f"Candidate {candidate_id!r} has incomplete required steps: {', '.join(self.remaining)}"
        )


class InvalidWorkflowError(LifecycleError):
    """Raised when a workflow template is structurally invalid."""

    def __init__(self, reason: str, steps: Iterable[str]):
        self.reason = reason
        self.steps = sorted(steps)
        super().__init__(f"Invalid workflow ({reason}): {', '.join(self.steps)}")


class ZoneCapacityExceededError(LifecycleError):
    """Raised when a zone already holds its required staff count."""

    def __init__(self, zone_id: str, required_staff_count: int):
        super().__init__(
            f"Zone {zone_id!r} is fully staffed ({required_staff_count} assigned)"
        )
        self.zone_id = zone_id
        self.required_staff_count = required_staff_count


class ShiftConflictError(LifecycleError):
    """Raised when a shift overlaps another shift of the same staff member."""

    def __init__(self, staff_id: str, conflicts: Iterable[str]):
        self.staff_id = staff_id
        self.conflicts = list(conflicts)
        super().__init__(
            f"Staff member {staff_id!r} already holds overlapping shifts: {', '.join(self.conflicts)}"
        )


class InvalidTransitionError(LifecycleError):
    """Raised when an entity cannot move from its current state to the target."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"{entity} cannot transition from {current!r} to {target!r}")
        self.entity = entity
        self.current = current
        self.target = target


class PostingFilledError(LifecycleError):
    """Raised when accepting an application for a posting with no open positions."""

    def __init__(self, posting_id: str, positions: int):
        super().__init__(f"Posting {posting_id!r} has filled all {positions} positions")
        self.posting_id = posting_id
        self.positions = positions


class DuplicateMetricError(LifecycleError):
    """Raised when a metric already exists for the staff member and period."""

    def __init__(self, staff_id: str, period: str):
        super().__init__(f"Metric already recorded for {staff_id!r} in period {period}")
        self.staff_id = staff_id
        self.period = period


class StoreUnavailableError(LifecycleError):
    """Raised when the backing store fails at the infrastructure level."""

    def __init__(self, collection: str, detail: str = ""):
        message = f"Store unavailable for collection {collection!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.collection = collection


__all__ = [
    "LifecycleError",
    "ValidationError",
    "NotFoundError",
    "DependencyUnmetError",
    "IncompleteWorkflowError",
    "InvalidWorkflowError",
    "ZoneCapacityExceededError",
    "ShiftConflictError",
    "InvalidTransitionError",
    "PostingFilledError",
    "DuplicateMetricError",
    "StoreUnavailableError",
]
