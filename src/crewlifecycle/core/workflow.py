"""Onboarding workflow engine: template validation, step gating, approval."""

from __future__ import annotations

from collections import deque
from typing import Iterable

import structlog

from ..errors import (
    DependencyUnmetError,
    IncompleteWorkflowError,
    InvalidTransitionError,
    InvalidWorkflowError,
    NotFoundError,
)
from ..events import CandidateApproved, CandidateRejected, EventBus
from ..schemas import (
    SYSTEM_ACTOR,
    ActorContext,
    Application,
    OnboardingCandidate,
    OnboardingStep,
    StaffMember,
    StageChange,
    WorkflowTemplate,
    compute_progress,
    new_id,
    utc_now,
)
from ..schemas.workflow import STAFF_TRANSITIONS, STAGE_TRANSITIONS, CandidateStage, StaffStatus
from ..store import CANDIDATES, STAFF_MEMBERS, WORKFLOW_TEMPLATES, ResilientStore
from .locks import KeyedLocks


def topological_order(steps: Iterable[OnboardingStep]) -> list[str]:
    """Return step ids in dependency order.

    Raises ``InvalidWorkflowError`` for duplicate ids, unknown dependencies or
    cycles. Ties are broken by ``order`` then id so the result is stable.
    """
    step_list = list(steps)
    by_id: dict[str, OnboardingStep] = {}
    duplicates: set[str] = set()
    for step in step_list:
        if step.id in by_id:
            duplicates.add(step.id)
        by_id[step.id] = step
    if duplicates:
        raise InvalidWorkflowError("duplicate step ids", duplicates)

    unknown = {dep for step in step_list for dep in step.depends_on if dep not in by_id}
    if unknown:
        raise InvalidWorkflowError("unknown dependencies", unknown)

    self_dependent = {step.id for step in step_list if step.id in step.depends_on}
    if self_dependent:
        raise InvalidWorkflowError("cyclic dependencies", self_dependent)

    indegree = {step_id: len(step.depends_on) for step_id, step in by_id.items()}
    dependents: dict[str, list[str]] = {step_id: [] for step_id in by_id}
    for step in step_list:
        for dep in step.depends_on:
            dependents[dep].append(step.id)

    def sort_key(step_id: str) -> tuple[int, str]:
        return by_id[step_id].order, step_id

    ready = deque(sorted((sid for sid, degree in indegree.items() if degree == 0), key=sort_key))
    ordered: list[str] = []
    while ready:
        current = ready.popleft()
        ordered.append(current)
        released = []
        for dependent in dependents[current]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                released.append(dependent)
        ready.extend(sorted(released, key=sort_key))

    if len(ordered) != len(by_id):
        raise InvalidWorkflowError("cyclic dependencies", set(by_id) - set(ordered))
    return ordered


class WorkflowEngine:
    """Owns the step-dependency graph and gates candidate advancement."""

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

    # Templates -----------------------------------------------------------

    def validate_template(self, template: WorkflowTemplate) -> list[str]:
        return topological_order(template.steps)

    def register_template(
        self,
        template: WorkflowTemplate,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> WorkflowTemplate:
        self.validate_template(template)
        prepared = template.model_copy(
            update={
                "id": template.id or new_id("template"),
                "created_by": template.created_by or actor.actor_id,
            }
        )
        stored = self._store.insert(WORKFLOW_TEMPLATES, prepared)
        self._logger.info(
            "workflow.template_registered",
            template_id=stored.id,
            version=stored.version,
            step_count=len(stored.steps),
        )
        return stored

    def revise_template(
        self,
        template: WorkflowTemplate,
        *,
        steps: list[OnboardingStep] | None = None,
        name: str | None = None,
        estimated_days: int | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> WorkflowTemplate:
        """Publish a new version of ``template``; the original is left untouched."""
        revision = WorkflowTemplate(
            name=name or template.name,
            department=template.department,
            position=template.position,
            steps=[step.model_copy(deep=True) for step in (steps or template.steps)],
            estimated_days=estimated_days or template.estimated_days,
            version=template.version + 1,
            supersedes=template.id,
        )
        return self.register_template(revision, actor=actor)

    def get_template(self, template_id: str) -> WorkflowTemplate:
        template = self._store.get(WORKFLOW_TEMPLATES, template_id, WorkflowTemplate)
        if template is None:
            raise NotFoundError("WorkflowTemplate", template_id)
        return template

    # Candidates ----------------------------------------------------------

    def get_candidate(self, candidate_id: str) -> OnboardingCandidate:
        candidate = self._store.get(CANDIDATES, candidate_id, OnboardingCandidate)
        if candidate is None:
            raise NotFoundError("OnboardingCandidate", candidate_id)
        return candidate

    def find_candidate_for_application(self, application_id: str) -> OnboardingCandidate | None:
        for candidate in self._store.fetch_all(CANDIDATES, OnboardingCandidate):
            if candidate.application_ref == application_id:
                return candidate
        return None

    def instantiate(
        self,
        template: WorkflowTemplate,
        application: Application,
        *,
        position: str = "",
        department: str = "General",
        employment_type: str = "contractor",
        venue_ref: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> OnboardingCandidate:
        with self._locks.hold(f"application:{application.id}"):
            existing = self.find_candidate_for_application(application.id)
            if existing is not None:
                return existing

            now = utc_now()
            history = [
                StageChange(from_stage=None, to_stage="applied", at=application.submitted_at, actor=actor.actor_id),
                StageChange(from_stage="applied", to_stage="screening", at=now, actor=actor.actor_id),
                StageChange(from_stage="screening", to_stage="onboarding", at=now, actor=actor.actor_id),
            ]
            candidate = OnboardingCandidate(
                id=new_id("candidate"),
                application_ref=application.id,
                workflow_ref=template.id,
                workflow=template.model_copy(deep=True),
                stage="onboarding",
                stage_history=history,
                name=application.applicant.name,
                email=application.applicant.email,
                position=position or template.position,
                department=department,
                employment_type=employment_type,  # type: ignore[arg-type]
                venue_ref=venue_ref,
            )
            stored = self._store.insert(CANDIDATES, candidate)
        self._logger.info(
            "workflow.candidate_instantiated",
            candidate_id=stored.id,
            application_id=application.id,
            template_id=template.id,
        )
        return stored

    def progress(self, candidate: OnboardingCandidate) -> int:
        return compute_progress(candidate.workflow, candidate.completed_steps)

    def complete_step(
        self,
        candidate: OnboardingCandidate,
        step_id: str,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> OnboardingCandidate:
        with self._locks.hold(f"candidate:{candidate.id}"):
            current = self._reload(candidate)
            step = current.workflow.step(step_id)
            if step is None:
                raise NotFoundError("OnboardingStep", step_id)
            if current.is_terminal:
                raise InvalidTransitionError("OnboardingCandidate", current.stage, "step_completed")
            if step_id in current.completed_steps:
                return current

            missing = step.depends_on - current.completed_steps
            if missing:
                raise DependencyUnmetError(step_id, missing)

            updated = current.model_copy(
                update={
                    "completed_steps": current.completed_steps | {step_id},
                    "updated_at": utc_now(),
                }
            )
            if not updated.remaining_required_steps and updated.stage == "onboarding":
                updated = self._transition(updated, "pending_approval", actor=actor)
            stored = self._store.update(CANDIDATES, updated)

        self._logger.info(
            "workflow.step_completed",
            candidate_id=stored.id,
            step_id=step_id,
            progress=stored.progress,
            stage=stored.stage,
        )
        return stored

    def is_complete(
        self,
        candidate: OnboardingCandidate,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> bool:
        if candidate.remaining_required_steps:
            return False
        if candidate.stage == "onboarding":
            with self._locks.hold(f"candidate:{candidate.id}"):
                current = self._reload(candidate)
                if current.stage == "onboarding":
                    self._store.update(CANDIDATES, self._transition(current, "pending_approval", actor=actor))
        return True

    def approve(
        self,
        candidate: OnboardingCandidate,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> StaffMember:
        """Activate the candidate as a staff member, at most once.

        The staff id is derived from the candidate id and the staff record is
        written before the candidate is marked approved, so a repeated call or
        a retry after a failed candidate write returns the same staff member.
        """
        with self._locks.hold(f"candidate:{candidate.id}"):
            current = self._reload(candidate)
            staff_id = staff_id_for(current.id)

            if current.stage == "approved":
                staff_ref = current.staff_member_ref or staff_id
                existing = self._store.get(STAFF_MEMBERS, staff_ref, StaffMember)
                if existing is None:
                    raise NotFoundError("StaffMember", staff_ref)
                return existing
            if current.stage == "rejected":
                raise InvalidTransitionError("OnboardingCandidate", current.stage, "approved")
            if current.remaining_required_steps:
                raise IncompleteWorkflowError(current.id, current.remaining_required_steps)

            staff = self._store.get(STAFF_MEMBERS, staff_id, StaffMember)
            if staff is None:
                staff = self._store.insert(
                    STAFF_MEMBERS,
                    StaffMember(
                        id=staff_id,
                        candidate_ref=current.id,
                        venue_ref=current.venue_ref,
                        name=current.name,
                        email=current.email,
                        role=current.position,
                        department=current.department,
                        employment_type=current.employment_type,
                        approved_by=actor.actor_id,
                    ),
                )

            if current.stage == "onboarding":
                current = self._transition(current, "pending_approval", actor=actor)
            approved = self._transition(current, "approved", actor=actor).model_copy(
                update={"staff_member_ref": staff.id}
            )
            self._store.update(CANDIDATES, approved)

        self._logger.info("workflow.candidate_approved", candidate_id=approved.id, staff_member_id=staff.id)
        self._events.publish(
            CandidateApproved(
                candidate_id=approved.id,
                staff_member_id=staff.id,
                email=approved.email,
                actor_id=actor.actor_id,
            )
        )
        return staff

    def reject(
        self,
        candidate: OnboardingCandidate,
        reason: str,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> OnboardingCandidate:
        with self._locks.hold(f"candidate:{candidate.id}"):
            current = self._reload(candidate)
            if current.stage == "rejected":
                return current
            rejected = self._transition(current, "rejected", actor=actor, reason=reason).model_copy(
                update={"rejection_reason": reason}
            )
            stored = self._store.update(CANDIDATES, rejected)

        self._logger.info("workflow.candidate_rejected", candidate_id=stored.id)
        self._events.publish(
            CandidateRejected(
                candidate_id=stored.id,
                reason=reason,
                email=stored.email,
                actor_id=actor.actor_id,
            )
        )
        return stored

    # Staff ---------------------------------------------------------------

    def get_staff(self, staff_id: str) -> StaffMember:
        staff = self._store.get(STAFF_MEMBERS, staff_id, StaffMember)
        if staff is None:
            raise NotFoundError("StaffMember", staff_id)
        return staff

    def set_staff_status(
        self,
        staff: StaffMember,
        status: StaffStatus,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> StaffMember:
        with self._locks.hold(f"staff:{staff.id}"):
            current = self.get_staff(staff.id)
            if current.status == status:
                return current
            if status not in STAFF_TRANSITIONS[current.status]:
                raise InvalidTransitionError("StaffMember", current.status, status)
            stored = self._store.update(
                STAFF_MEMBERS,
                current.model_copy(update={"status": status, "updated_at": utc_now()}),
            )
        self._logger.info(
            "staff.status_changed",
            staff_member_id=stored.id,
            status=status,
            actor_id=actor.actor_id,
        )
        return stored

    # Internals -----------------------------------------------------------

    def _reload(self, candidate: OnboardingCandidate) -> OnboardingCandidate:
        stored = self._store.get(CANDIDATES, candidate.id, OnboardingCandidate)
        return stored if stored is not None else candidate

    @staticmethod
    def _transition(
        candidate: OnboardingCandidate,
        target: CandidateStage,
        *,
        actor: ActorContext,
        reason: str | None = None,
    ) -> OnboardingCandidate:
        if target not in STAGE_TRANSITIONS[candidate.stage]:
            raise InvalidTransitionError("OnboardingCandidate", candidate.stage, target)
        change = StageChange(
            from_stage=candidate.stage,
            to_stage=target,
            actor=actor.actor_id,
            reason=reason,
        )
        return candidate.model_copy(
            update={
                "stage": target,
                "stage_history": [*candidate.stage_history, change],
                "updated_at": utc_now(),
            }
        )


def staff_id_for(candidate_id: str) -> str:
    return f"staff-{candidate_id}"
