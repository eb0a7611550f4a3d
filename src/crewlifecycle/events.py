"""Domain events emitted by the engine for external dispatchers."""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import structlog

from .schemas import utc_now


@dataclass(frozen=True, slots=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=utc_now, kw_only=True)
    actor_id: str | None = field(default=None, kw_only=True)


@dataclass(frozen=True, slots=True)
class ApplicationScreened(DomainEvent):
    application_id: str
    posting_id: str
    passed: bool
    score: float


@dataclass(frozen=True, slots=True)
class CandidateApproved(DomainEvent):
    candidate_id: str
    staff_member_id: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class CandidateRejected(DomainEvent):
    candidate_id: str
    reason: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class ShiftAssigned(DomainEvent):
    shift_id: str
    staff_member_id: str
    zone_id: str | None = None


@dataclass(frozen=True, slots=True)
class ShiftCancelled(DomainEvent):
    shift_id: str
    staff_member_id: str
    zone_id: str | None = None


Handler = Callable[[Any], None]


class EventBus:
    """In-process publish/subscribe with fire-and-forget delivery.

    A failing handler is logged and skipped; it never fails the publishing
    operation or starves the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = [
                handler
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for handler in registered
            ]
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:  # noqa: BLE001
                self._logger.warning(
                    "events.handler_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(exc),
                )


__all__ = [
    "DomainEvent",
    "ApplicationScreened",
    "CandidateApproved",
    "CandidateRejected",
    "ShiftAssigned",
    "ShiftCancelled",
    "EventBus",
]
