from __future__ import annotations

import threading
from datetime import date, time

import pytest

from crewlifecycle.core import KeyedLocks, SchedulingEngine
from crewlifecycle.errors import (
    InvalidTransitionError,
    LifecycleError,
    ShiftConflictError,
    ValidationError,
    ZoneCapacityExceededError,
)
from crewlifecycle.events import EventBus, ShiftAssigned, ShiftCancelled
from crewlifecycle.schemas import StaffMember
from crewlifecycle.store import ALL_COLLECTIONS, STAFF_MEMBERS, InMemoryBackend, ResilientStore

EVENT_DAY = date(2024, 7, 20)


def build_engine() -> tuple[SchedulingEngine, ResilientStore, EventBus]:
    store = ResilientStore(InMemoryBackend(provisioned=ALL_COLLECTIONS))
    events = EventBus()
    return SchedulingEngine(store=store, locks=KeyedLocks(), events=events), store, events


def add_staff(store: ResilientStore, staff_id: str, status: str = "active") -> StaffMember:
    return store.insert(
        STAFF_MEMBERS,
        StaffMember(id=staff_id, name=staff_id.title(), role="Security Guard", status=status),
    )


def test_overlapping_shift_for_same_staff_is_rejected():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")
    first = engine.assign_shift(staff, EVENT_DAY, time(9, 0), time(17, 0))

    with pytest.raises(ShiftConflictError) as exc:
        engine.assign_shift(staff, EVENT_DAY, time(16, 0), time(20, 0))
    assert exc.value.conflicts == [first.id]


def test_touching_shifts_do_not_conflict():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")
    engine.assign_shift(staff, EVENT_DAY, time(9, 0), time(17, 0))
    engine.assign_shift(staff, EVENT_DAY, time(17, 0), time(20, 0))

    assert len(engine.shifts_for_staff(staff.id)) == 2


def test_overnight_shift_spans_midnight():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")
    overnight = engine.assign_shift(staff, EVENT_DAY, time(22, 0), time(2, 0))

    assert overnight.duration_minutes == 240
    with pytest.raises(ShiftConflictError):
        engine.assign_shift(staff, date(2024, 7, 21), time(1, 0), time(3, 0))


def test_concurrent_overlapping_assignments_allow_exactly_one():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")
    barrier = threading.Barrier(2)
    outcomes: list[object] = []
    outcome_lock = threading.Lock()

    def book(start: time, end: time) -> None:
        barrier.wait()
        try:
            result: object = engine.assign_shift(staff, EVENT_DAY, start, end)
        except LifecycleError as exc:
            result = exc
        with outcome_lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=book, args=(time(9, 0), time(17, 0))),
        threading.Thread(target=book, args=(time(12, 0), time(20, 0))),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    failures = [item for item in outcomes if isinstance(item, Exception)]
    assert len(outcomes) == 2
    assert len(failures) == 1
    assert isinstance(failures[0], ShiftConflictError)
    assert len(engine.shifts_for_staff(staff.id)) == 1


def test_shift_window_keeps_seconds():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")

    shift = engine.assign_shift(staff, EVENT_DAY, time(9, 0, 0), time(9, 30, 30))

    assert shift.duration_minutes == 30
    later = engine.assign_shift(staff, EVENT_DAY, time(20, 0), time(22, 0))
    assert later.status == "scheduled"
    with pytest.raises(ShiftConflictError):
        engine.assign_shift(staff, EVENT_DAY, time(9, 30), time(10, 0))


def test_staff_racing_for_last_zone_slot_allow_exactly_one():
    engine, store, _ = build_engine()
    zone = engine.create_zone("event-001", 200, 2, name="VIP Lounge", zone_type="vip")
    engine.assign_shift(add_staff(store, "staff-a"), EVENT_DAY, time(18, 0), time(23, 0), zone)
    contenders = [add_staff(store, "staff-b"), add_staff(store, "staff-c")]
    barrier = threading.Barrier(len(contenders))
    outcomes: list[object] = []
    outcome_lock = threading.Lock()

    def book(staff: StaffMember) -> None:
        barrier.wait()
        try:
            result: object = engine.assign_shift(staff, EVENT_DAY, time(18, 0), time(23, 0), zone)
        except LifecycleError as exc:
            result = exc
        with outcome_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=book, args=(staff,)) for staff in contenders]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    failures = [item for item in outcomes if isinstance(item, Exception)]
    assert len(outcomes) == 2
    assert len(failures) == 1
    assert isinstance(failures[0], ZoneCapacityExceededError)
    assert engine.get_zone(zone.id).assigned_count == zone.required_staff_count


def test_zone_rejects_assignment_beyond_required_staff():
    engine, store, _ = build_engine()
    zone = engine.create_zone("event-001", 500, 2, name="Main Entrance", zone_type="security")
    for staff_id in ("staff-a", "staff-b"):
        engine.assign_shift(add_staff(store, staff_id), EVENT_DAY, time(18, 0), time(23, 0), zone)

    with pytest.raises(ZoneCapacityExceededError) as exc:
        engine.assign_shift(add_staff(store, "staff-c"), EVENT_DAY, time(18, 0), time(23, 0), zone)
    assert exc.value.required_staff_count == 2
    assert engine.get_zone(zone.id).assigned_count == 2
    assert engine.zone_coverage(zone) == 100.0


def test_cancel_frees_zone_slot_and_is_idempotent():
    engine, store, events = build_engine()
    cancelled_events: list[ShiftCancelled] = []
    events.subscribe(ShiftCancelled, cancelled_events.append)
    zone = engine.create_zone("event-001", None, 1, name="VIP Lounge", zone_type="vip")
    shift = engine.assign_shift(add_staff(store, "staff-a"), EVENT_DAY, time(18, 0), time(23, 0), zone)

    cancelled = engine.cancel_shift(shift)
    engine.cancel_shift(cancelled)

    assert cancelled.status == "cancelled"
    assert engine.get_zone(zone.id).assigned_count == 0
    assert len(cancelled_events) == 1
    replacement = engine.assign_shift(add_staff(store, "staff-b"), EVENT_DAY, time(18, 0), time(23, 0), zone)
    assert replacement.counted_in_zone is True


def test_cancelled_shift_no_longer_blocks_staff():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")
    shift = engine.assign_shift(staff, EVENT_DAY, time(9, 0), time(17, 0))
    engine.cancel_shift(shift)

    engine.assign_shift(staff, EVENT_DAY, time(10, 0), time(14, 0))

    assert len(engine.shifts_for_staff(staff.id, include_cancelled=True)) == 2


def test_shift_status_lifecycle():
    engine, store, _ = build_engine()
    shift = engine.assign_shift(add_staff(store, "staff-a"), EVENT_DAY, time(9, 0), time(17, 0))

    confirmed = engine.confirm_shift(shift)
    completed = engine.complete_shift(confirmed)

    assert completed.status == "completed"
    with pytest.raises(InvalidTransitionError):
        engine.cancel_shift(completed)


def test_completing_unconfirmed_shift_is_rejected():
    engine, store, _ = build_engine()
    shift = engine.assign_shift(add_staff(store, "staff-a"), EVENT_DAY, time(9, 0), time(17, 0))

    with pytest.raises(InvalidTransitionError):
        engine.complete_shift(shift)


@pytest.mark.parametrize(
    ("start", "end", "break_minutes"),
    [
        (time(9, 0), time(9, 0), 0),
        (time(9, 0), time(10, 0), 60),
        (time(9, 0, 0), time(9, 0, 30), 0),
    ],
)
def test_invalid_shift_windows_are_rejected(start: time, end: time, break_minutes: int):
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a")

    with pytest.raises(ValidationError):
        engine.assign_shift(staff, EVENT_DAY, start, end, break_minutes=break_minutes)


def test_inactive_staff_cannot_take_shifts():
    engine, store, _ = build_engine()
    staff = add_staff(store, "staff-a", status="on_leave")

    with pytest.raises(ValidationError):
        engine.assign_shift(staff, EVENT_DAY, time(9, 0), time(17, 0))


def test_assignment_publishes_event():
    engine, store, events = build_engine()
    assigned: list[ShiftAssigned] = []
    events.subscribe(ShiftAssigned, assigned.append)

    shift = engine.assign_shift(add_staff(store, "staff-a"), EVENT_DAY, time(9, 0), time(17, 0), role="Usher")

    assert [event.shift_id for event in assigned] == [shift.id]
    assert shift.role == "Usher"
