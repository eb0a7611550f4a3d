"""Onboarding workflow, candidate and staff member schemas."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .common import utc_now
from .posting import EmploymentType

StepType = Literal["document", "training", "meeting", "setup", "review", "task", "approval"]
CandidateStage = Literal["applied", "screening", "onboarding", "pending_approval", "approved", "rejected"]
StaffStatus = Literal["active", "on_leave", "terminated"]

TERMINAL_STAGES: frozenset[str] = frozenset({"approved", "rejected"})

STAGE_TRANSITIONS: dict[str, set[str]] = {
    "applied": {"screening", "rejected"},
    "screening": {"onboarding", "rejected"},
    "onboarding": {"pending_approval", "rejected"},
    "pending_approval": {"approved", "rejected"},
    "approved": set(),
    "rejected": set(),
}

STAFF_TRANSITIONS: dict[str, set[str]] = {
    "active": {"on_leave", "terminated"},
    "on_leave": {"active", "terminated"},
    "terminated": set(),
}


class OnboardingStep(BaseModel):
    """A unit of required work inside a workflow template."""

    id: str = Field(min_length=1)
    title: str = ""
    description: str = ""
    type: StepType = "task"
    required: bool = True
    depends_on: set[str] = Field(default_factory=set)
    order: int = 0
    estimated_hours: float = Field(default=0.0, ge=0)

    model_config = ConfigDict(extra="forbid")


class WorkflowTemplate(BaseModel):
    """Reusable, dependency-linked set of onboarding steps."""

    id: str = ""
    name: str = Field(min_length=1)
    department: str = "General"
    position: str = ""
    steps: list[OnboardingStep] = Field(min_length=1)
    estimated_days: int = Field(default=1, ge=1)
    version: int = Field(default=1, ge=1)
    supersedes: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")

    def step(self, step_id: str) -> OnboardingStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    @property
    def required_step_ids(self) -> set[str]:
        return {step.id for step in self.steps if step.required}


def compute_progress(template: WorkflowTemplate, completed_steps: set[str]) -> int:
    """Percentage of required steps completed, rounded half up."""
    required = template.required_step_ids
    if not required:
        return 100
    done = len(required & completed_steps)
    return int(math.floor(100 * done / len(required) + 0.5))


class StageChange(BaseModel):
    from_stage: CandidateStage | None = None
    to_stage: CandidateStage
    at: datetime = Field(default_factory=utc_now)
    actor: str | None = None
    reason: str | None = None

    model_config = ConfigDict(extra="forbid")


class OnboardingCandidate(BaseModel):
    """A person progressing through an onboarding workflow.

    ``workflow`` is a copy of the template taken at instantiation, so later
    template revisions never alter an in-flight candidate. ``progress`` is
    derived from ``completed_steps`` and any stored value is ignored on load.
    """

    id: str = ""
    application_ref: str
    workflow_ref: str
    workflow: WorkflowTemplate
    completed_steps: set[str] = Field(default_factory=set)
    stage: CandidateStage = "applied"
    stage_history: list[StageChange] = Field(default_factory=list)
    staff_member_ref: str | None = None
    rejection_reason: str | None = None
    name: str = ""
    email: str | None = None
    position: str = ""
    department: str = "General"
    employment_type: EmploymentType = "contractor"
    venue_ref: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="ignore")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress(self) -> int:
        return compute_progress(self.workflow, self.completed_steps)

    @property
    def remaining_required_steps(self) -> set[str]:
        return self.workflow.required_step_ids - self.completed_steps

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES


class StaffMember(BaseModel):
    """An activated worker. Never deleted, only status-transitioned."""

    id: str = ""
    candidate_ref: str | None = None
    venue_ref: str | None = None
    name: str = ""
    email: str | None = None
    role: str = ""
    department: str = "General"
    employment_type: EmploymentType = "contractor"
    status: StaffStatus = "active"
    hired_at: datetime = Field(default_factory=utc_now)
    approved_by: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")
