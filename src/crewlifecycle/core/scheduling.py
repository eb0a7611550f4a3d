"""Shift and zone scheduling with per-staff overlap and per-zone capacity guards."""

from __future__ import annotations

import datetime as dt

import structlog

from ..errors import (
    InvalidTransitionError,
    NotFoundError,
    ShiftConflictError,
    ValidationError,
    ZoneCapacityExceededError,
)
from ..events import EventBus, ShiftAssigned, ShiftCancelled
from ..schemas import SYSTEM_ACTOR, ActorContext, Shift, StaffMember, Zone, new_id
from ..schemas.scheduling import SHIFT_TRANSITIONS, ShiftStatus, ZoneType, shift_window
from ..store import SHIFTS, STAFF_MEMBERS, ZONES, ResilientStore
from .locks import KeyedLocks


def windows_overlap(
    start: dt.datetime,
    end: dt.datetime,
    other_start: dt.datetime,
    other_end: dt.datetime,
) -> bool:
    """Half-open interval test: touching shifts do not overlap."""
    return start < other_end and end > other_start


class SchedulingEngine:
    """Allocates staff into shifts and zones without conflicts.

    Every check-and-commit runs while holding the staff member's lock and, for
    zoned shifts, the zone's lock, so two concurrent bookings cannot both pass
    the overlap or capacity check.
    """

    def __init__(
        self,
        *,
        store: ResilientStore,
        locks: KeyedLocks,
        events: EventBus | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._events = events or EventBus()
        self._logger = structlog.get_logger(__name__)

    def create_zone(
        self,
        event_ref: str,
        capacity: int | None,
        required_staff_count: int,
        *,
        name: str,
        zone_type: ZoneType = "general",
        description: str = "",
        venue_ref: str | None = None,
    ) -> Zone:
        zone = Zone(
            id=new_id("zone"),
            event_ref=event_ref,
            venue_ref=venue_ref,
            name=name,
            description=description,
            zone_type=zone_type,
            capacity=capacity,
            required_staff_count=required_staff_count,
        )
        stored = self._store.insert(ZONES, zone)
        self._logger.info(
            "zone.created",
            zone_id=stored.id,
            event_ref=event_ref,
            required_staff_count=required_staff_count,
        )
        return stored

    def get_zone(self, zone_id: str) -> Zone:
        zone = self._store.get(ZONES, zone_id, Zone)
        if zone is None:
            raise NotFoundError("Zone", zone_id)
        return zone

    def get_shift(self, shift_id: str) -> Shift:
        shift = self._store.get(SHIFTS, shift_id, Shift)
        if shift is None:
            raise NotFoundError("Shift", shift_id)
        return shift

    def shifts_for_staff(self, staff_id: str, *, include_cancelled: bool = False) -> list[Shift]:
        shifts = [
            shift
            for shift in self._store.fetch_all(SHIFTS, Shift)
            if shift.staff_ref == staff_id and (include_cancelled or shift.status != "cancelled")
        ]
        return sorted(shifts, key=lambda shift: shift.window()[0])

    def assign_shift(
        self,
        staff: StaffMember,
        date: dt.date,
        start: dt.time,
        end: dt.time,
        zone: Zone | None = None,
        *,
        break_minutes: int = 0,
        role: str | None = None,
        event_ref: str | None = None,
        notes: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Shift:
        if start == end:
            raise ValidationError("Shift start and end must differ")
        starts_at, ends_at = shift_window(date, start, end)
        if ends_at.diff(starts_at).in_minutes() < 1:
            raise ValidationError("Shift must last at least one minute")
        if break_minutes < 0 or break_minutes >= ends_at.diff(starts_at).in_minutes():
            raise ValidationError("Break must be shorter than the shift")

        zone_key = f"zone:{zone.id}" if zone is not None else ""
        with self._locks.hold(f"staff:{staff.id}", zone_key):
            current_staff = self._store.get(STAFF_MEMBERS, staff.id, StaffMember) or staff
            if current_staff.status != "active":
                raise ValidationError(
                    f"Staff member {staff.id!r} is {current_staff.status} and cannot take shifts"
                )

            conflicts = [
                other.id
                for other in self.shifts_for_staff(staff.id)
                if windows_overlap(starts_at, ends_at, *other.window())
            ]
            if conflicts:
                raise ShiftConflictError(staff.id, conflicts)

            current_zone: Zone | None = None
            if zone is not None:
                current_zone = self._store.get(ZONES, zone.id, Zone) or zone
                if current_zone.is_full:
                    raise ZoneCapacityExceededError(current_zone.id, current_zone.required_staff_count)

            shift = Shift(
                id=new_id("shift"),
                staff_ref=staff.id,
                zone_ref=current_zone.id if current_zone else None,
                event_ref=event_ref or (current_zone.event_ref if current_zone else None),
                venue_ref=current_staff.venue_ref,
                date=date,
                start=start,
                end=end,
                break_minutes=break_minutes,
                role=role or current_staff.role or None,
                counted_in_zone=current_zone is not None,
                notes=notes,
                created_by=actor.actor_id,
            )
            stored = self._store.insert(SHIFTS, shift)
            if current_zone is not None:
                self._store.update(
                    ZONES,
                    current_zone.model_copy(update={"assigned_count": current_zone.assigned_count + 1}),
                )

        self._logger.info(
            "shift.assigned",
            shift_id=stored.id,
            staff_member_id=staff.id,
            zone_id=stored.zone_ref,
            starts_at=starts_at.to_iso8601_string(),
            ends_at=ends_at.to_iso8601_string(),
        )
        self._events.publish(
            ShiftAssigned(
                shift_id=stored.id,
                staff_member_id=staff.id,
                zone_id=stored.zone_ref,
                actor_id=actor.actor_id,
            )
        )
        return stored

    def confirm_shift(self, shift: Shift, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        return self._set_status(shift, "confirmed", actor=actor)

    def complete_shift(self, shift: Shift, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        return self._set_status(shift, "completed", actor=actor)

    def cancel_shift(self, shift: Shift, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        zone_key = f"zone:{shift.zone_ref}" if shift.zone_ref else ""
        with self._locks.hold(f"staff:{shift.staff_ref}", zone_key):
            current = self._store.get(SHIFTS, shift.id, Shift) or shift
            if current.status == "cancelled":
                return current
            if "cancelled" not in SHIFT_TRANSITIONS[current.status]:
                raise InvalidTransitionError("Shift", current.status, "cancelled")

            cancelled = self._store.update(
                SHIFTS,
                current.model_copy(update={"status": "cancelled", "counted_in_zone": False}),
            )
            if current.counted_in_zone and current.zone_ref:
                zone = self._store.get(ZONES, current.zone_ref, Zone)
                if zone is not None and zone.assigned_count > 0:
                    self._store.update(
                        ZONES,
                        zone.model_copy(update={"assigned_count": zone.assigned_count - 1}),
                    )

        self._logger.info("shift.cancelled", shift_id=cancelled.id, staff_member_id=cancelled.staff_ref)
        self._events.publish(
            ShiftCancelled(
                shift_id=cancelled.id,
                staff_member_id=cancelled.staff_ref,
                zone_id=cancelled.zone_ref,
                actor_id=actor.actor_id,
            )
        )
        return cancelled

    def zone_coverage(self, zone: Zone) -> float:
        """Percentage of the zone's required staff currently assigned."""
        current = self._store.get(ZONES, zone.id, Zone) or zone
        return round(current.assigned_count / current.required_staff_count * 100, 1)

    def _set_status(self, shift: Shift, target: ShiftStatus, *, actor: ActorContext) -> Shift:
        with self._locks.hold(f"staff:{shift.staff_ref}"):
            current = self._store.get(SHIFTS, shift.id, Shift) or shift
            if current.status == target:
                return current
            if target not in SHIFT_TRANSITIONS[current.status]:
                raise InvalidTransitionError("Shift", current.status, target)
            stored = self._store.update(SHIFTS, current.model_copy(update={"status": target}))
        self._logger.info("shift.status_changed", shift_id=stored.id, status=target, actor_id=actor.actor_id)
        return stored
