from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import utc_now


class PerformanceMetric(BaseModel):
    """Per-period measurement for a staff member. Append-only."""

    id: str = ""
    staff_ref: str
    period: date
    event_ref: str | None = None
    attendance_rate: float = Field(ge=0, le=100)
    rating: float = Field(ge=0, le=5)
    incident_count: int = Field(default=0, ge=0)
    commendation_count: int = Field(default=0, ge=0)
    training_completed: bool = False
    certifications_valid: bool = False
    notes: str | None = None
    reviewed_by: str | None = None
    recorded_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")
