from __future__ import annotations

from datetime import date, time

import pydantic
import pytest

from crewlifecycle.schemas import OnboardingCandidate, Shift, WorkflowTemplate, Zone, compute_progress


def build_template() -> WorkflowTemplate:
    return WorkflowTemplate(
        id="template-001",
        name="Bar Staff Onboarding",
        steps=[
            {"id": "documents"},
            {"id": "rsa_training", "depends_on": ["documents"]},
            {"id": "uniform", "required": False},
        ],
    )


def test_progress_counts_required_steps_only():
    template = build_template()

    assert compute_progress(template, set()) == 0
    assert compute_progress(template, {"uniform"}) == 0
    assert compute_progress(template, {"documents"}) == 50
    assert compute_progress(template, {"documents", "rsa_training"}) == 100


def test_progress_without_required_steps_is_complete():
    template = WorkflowTemplate(name="Volunteer", steps=[{"id": "welcome", "required": False}])
    assert compute_progress(template, set()) == 100


def test_stored_progress_is_ignored_on_load():
    payload = {
        "id": "candidate-001",
        "application_ref": "application-001",
        "workflow_ref": "template-001",
        "workflow": build_template().model_dump(mode="json"),
        "completed_steps": ["documents"],
        "stage": "onboarding",
        "progress": 99,
    }

    candidate = OnboardingCandidate.model_validate(payload)

    assert candidate.progress == 50
    assert candidate.remaining_required_steps == {"rsa_training"}
    assert candidate.model_dump()["progress"] == 50


def test_zone_assigned_count_cannot_exceed_requirement():
    with pytest.raises(pydantic.ValidationError):
        Zone(event_ref="event-001", name="Gate B", required_staff_count=2, assigned_count=3)


def test_shift_window_rolls_overnight():
    shift = Shift(staff_ref="staff-a", date=date(2024, 12, 31), start=time(20, 0), end=time(4, 0))

    starts_at, ends_at = shift.window()

    assert starts_at.to_date_string() == "2024-12-31"
    assert ends_at.to_date_string() == "2025-01-01"
    assert shift.duration_minutes == 480
