from __future__ import annotations

import threading
from typing import Any

import pytest

from crewlifecycle.core import KeyedLocks, WorkflowEngine, staff_id_for, topological_order
from crewlifecycle.errors import (
    DependencyUnmetError,
    IncompleteWorkflowError,
    InvalidTransitionError,
    InvalidWorkflowError,
    NotFoundError,
)
from crewlifecycle.events import CandidateApproved, CandidateRejected, EventBus
from crewlifecycle.schemas import Applicant, Application, OnboardingStep, WorkflowTemplate
from crewlifecycle.store import ALL_COLLECTIONS, STAFF_MEMBERS, InMemoryBackend, ResilientStore


def build_engine() -> tuple[WorkflowEngine, EventBus, InMemoryBackend]:
    backend = InMemoryBackend(provisioned=ALL_COLLECTIONS)
    events = EventBus()
    engine = WorkflowEngine(store=ResilientStore(backend), locks=KeyedLocks(), events=events)
    return engine, events, backend


def build_template(steps: list[dict[str, Any]] | None = None, **kwargs: Any) -> WorkflowTemplate:
    defaults: dict[str, Any] = {
        "name": "Security Staff Onboarding",
        "position": "Security Guard",
        "steps": steps
        or [
            {"id": "documents", "type": "document", "order": 0},
            {"id": "training", "type": "training", "depends_on": ["documents"], "order": 1},
            {"id": "approval", "type": "approval", "depends_on": ["training"], "order": 2},
        ],
    }
    defaults.update(kwargs)
    return WorkflowTemplate(**defaults)


def build_application(application_id: str = "application-001") -> Application:
    return Application(
        id=application_id,
        posting_ref="posting-001",
        applicant=Applicant(name="Jordan Lee", email="jordan@example.com"),
    )


def test_topological_order_follows_dependencies():
    template = build_template(
        [
            {"id": "c", "depends_on": ["b"]},
            {"id": "a"},
            {"id": "b", "depends_on": ["a"]},
        ]
    )
    assert topological_order(template.steps) == ["a", "b", "c"]


def test_cycle_is_rejected_with_offending_steps():
    steps = [
        OnboardingStep(id="a", depends_on={"c"}),
        OnboardingStep(id="b", depends_on={"a"}),
        OnboardingStep(id="c", depends_on={"b"}),
        OnboardingStep(id="d"),
    ]
    with pytest.raises(InvalidWorkflowError) as exc:
        topological_order(steps)
    assert exc.value.steps == ["a", "b", "c"]


def test_unknown_dependency_is_rejected():
    engine, _, _ = build_engine()
    template = build_template([{"id": "a", "depends_on": ["missing"]}])
    with pytest.raises(InvalidWorkflowError) as exc:
        engine.register_template(template)
    assert exc.value.reason == "unknown dependencies"


def test_steps_must_complete_in_dependency_order():
    engine, _, _ = build_engine()
    template = engine.register_template(
        build_template(
            [
                {"id": "A"},
                {"id": "B", "depends_on": ["A"]},
                {"id": "C", "depends_on": ["B"]},
            ]
        )
    )
    candidate = engine.instantiate(template, build_application())

    with pytest.raises(DependencyUnmetError) as exc:
        engine.complete_step(candidate, "C")
    assert exc.value.missing == ["B"]

    for step_id in ("A", "B", "C"):
        candidate = engine.complete_step(candidate, step_id)
    assert candidate.completed_steps == {"A", "B", "C"}


def test_document_training_approval_flow_approves_once():
    engine, events, backend = build_engine()
    approved: list[CandidateApproved] = []
    events.subscribe(CandidateApproved, approved.append)
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())

    with pytest.raises(DependencyUnmetError):
        engine.complete_step(candidate, "training")

    progress = [candidate.progress]
    for step_id in ("documents", "training", "approval"):
        candidate = engine.complete_step(candidate, step_id)
        progress.append(candidate.progress)

    assert progress == [0, 33, 67, 100]
    assert engine.is_complete(candidate) is True
    assert engine.get_candidate(candidate.id).stage == "pending_approval"

    first = engine.approve(candidate)
    second = engine.approve(candidate)

    assert first.id == second.id == staff_id_for(candidate.id)
    assert len(backend.list(STAFF_MEMBERS)) == 1
    assert len(approved) == 1
    stored = engine.get_candidate(candidate.id)
    assert stored.stage == "approved"
    assert stored.staff_member_ref == first.id
    assert [change.to_stage for change in stored.stage_history] == [
        "applied",
        "screening",
        "onboarding",
        "pending_approval",
        "approved",
    ]


def test_approve_requires_all_required_steps():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())
    candidate = engine.complete_step(candidate, "documents")

    with pytest.raises(IncompleteWorkflowError) as exc:
        engine.approve(candidate)
    assert exc.value.remaining == ["approval", "training"]


def test_optional_steps_do_not_block_completion():
    engine, _, _ = build_engine()
    template = engine.register_template(
        build_template(
            [
                {"id": "documents"},
                {"id": "uniform_fitting", "required": False},
            ]
        )
    )
    candidate = engine.instantiate(template, build_application())
    candidate = engine.complete_step(candidate, "documents")

    assert candidate.progress == 100
    assert candidate.stage == "pending_approval"
    assert engine.is_complete(candidate)


def test_concurrent_step_completions_are_both_kept():
    engine, _, _ = build_engine()
    template = engine.register_template(
        build_template(
            [
                {"id": "documents"},
                {"id": "uniform_fitting"},
                {"id": "approval", "type": "approval", "depends_on": ["documents", "uniform_fitting"]},
            ]
        )
    )
    candidate = engine.instantiate(template, build_application())
    barrier = threading.Barrier(2)

    def complete(step_id: str) -> None:
        barrier.wait()
        engine.complete_step(candidate, step_id)

    threads = [threading.Thread(target=complete, args=(step_id,)) for step_id in ("documents", "uniform_fitting")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = engine.get_candidate(candidate.id)
    assert stored.completed_steps == {"documents", "uniform_fitting"}
    assert stored.stage == "onboarding"


def test_completing_a_step_twice_is_a_no_op():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())

    first = engine.complete_step(candidate, "documents")
    second = engine.complete_step(candidate, "documents")

    assert first.completed_steps == second.completed_steps == {"documents"}


def test_unknown_step_raises_not_found():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())

    with pytest.raises(NotFoundError):
        engine.complete_step(candidate, "orientation")


def test_rejected_candidate_cannot_progress_or_be_approved():
    engine, events, _ = build_engine()
    rejected: list[CandidateRejected] = []
    events.subscribe(CandidateRejected, rejected.append)
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())

    candidate = engine.reject(candidate, "Failed background check")
    engine.reject(candidate, "Failed background check")

    assert candidate.stage == "rejected"
    assert candidate.rejection_reason == "Failed background check"
    assert len(rejected) == 1
    with pytest.raises(InvalidTransitionError):
        engine.complete_step(candidate, "documents")
    with pytest.raises(InvalidTransitionError):
        engine.approve(candidate)


def test_instantiate_is_idempotent_per_application():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template())
    application = build_application()

    first = engine.instantiate(template, application)
    second = engine.instantiate(template, application)

    assert first.id == second.id


def test_revising_a_template_leaves_in_flight_candidates_alone():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template())
    candidate = engine.instantiate(template, build_application())

    revision = engine.revise_template(
        template,
        steps=[OnboardingStep(id="documents"), OnboardingStep(id="briefing", depends_on={"documents"})],
    )

    assert revision.id != template.id
    assert revision.version == 2
    assert revision.supersedes == template.id
    assert engine.get_template(template.id).version == 1
    reloaded = engine.get_candidate(candidate.id)
    assert [step.id for step in reloaded.workflow.steps] == ["documents", "training", "approval"]


def test_staff_status_transitions():
    engine, _, _ = build_engine()
    template = engine.register_template(build_template([{"id": "documents"}]))
    candidate = engine.complete_step(engine.instantiate(template, build_application()), "documents")
    staff = engine.approve(candidate)

    on_leave = engine.set_staff_status(staff, "on_leave")
    assert on_leave.status == "on_leave"
    terminated = engine.set_staff_status(on_leave, "terminated")
    assert terminated.status == "terminated"
    with pytest.raises(InvalidTransitionError):
        engine.set_staff_status(terminated, "active")
