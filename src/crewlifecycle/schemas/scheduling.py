"""Zone and shift schemas."""

from __future__ import annotations

import datetime as dt
from typing import Literal

import pendulum
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import utc_now

ZoneType = Literal["security", "bartending", "crowd_control", "vip", "general", "backstage"]
ShiftStatus = Literal["scheduled", "confirmed", "completed", "cancelled"]

SHIFT_TRANSITIONS: dict[str, set[str]] = {
    "scheduled": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class Zone(BaseModel):
    """A bounded coverage area at an event."""

    id: str = ""
    venue_ref: str | None = None
    event_ref: str
    name: str = Field(min_length=1)
    description: str = ""
    zone_type: ZoneType = "general"
    capacity: int | None = Field(default=None, ge=0)
    required_staff_count: int = Field(ge=1)
    assigned_count: int = Field(default=0, ge=0)
    created_at: dt.datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_assigned(self) -> "Zone":
        if self.assigned_count > self.required_staff_count:
            raise ValueError("assigned_count cannot exceed required_staff_count")
        return self

    @property
    def is_full(self) -> bool:
        return self.assigned_count >= self.required_staff_count


class Shift(BaseModel):
    """A time-bounded assignment of one staff member, optionally to a zone."""

    id: str = ""
    staff_ref: str
    zone_ref: str | None = None
    event_ref: str | None = None
    venue_ref: str | None = None
    date: dt.date
    start: dt.time
    end: dt.time
    break_minutes: int = Field(default=0, ge=0)
    role: str | None = None
    status: ShiftStatus = "scheduled"
    counted_in_zone: bool = False
    notes: str | None = None
    created_by: str | None = None
    created_at: dt.datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")

    def window(self) -> tuple[pendulum.DateTime, pendulum.DateTime]:
        """Absolute start and end; an end at or before the start rolls to the next day."""
        return shift_window(self.date, self.start, self.end)

    @property
    def duration_minutes(self) -> int:
        starts_at, ends_at = self.window()
        return int(ends_at.diff(starts_at).in_minutes())


def shift_window(
    day: dt.date,
    start: dt.time,
    end: dt.time,
) -> tuple[pendulum.DateTime, pendulum.DateTime]:
    starts_at = pendulum.datetime(
        day.year, day.month, day.day, start.hour, start.minute, start.second, start.microsecond, tz="UTC"
    )
    ends_at = pendulum.datetime(
        day.year, day.month, day.day, end.hour, end.minute, end.second, end.microsecond, tz="UTC"
    )
    if ends_at <= starts_at:
        ends_at = ends_at.add(days=1)
    return starts_at, ends_at
