"""Pydantic schema definitions for lifecycle entities."""

from __future__ import annotations

from .common import SYSTEM_ACTOR, ActorContext, new_id, utc_now
from .performance import PerformanceMetric
from .posting import (
    Applicant,
    Application,
    BooleanResponse,
    ChoiceResponse,
    FormField,
    JobPosting,
    MultiChoiceResponse,
    NumberResponse,
    ScreeningIssue,
    ScreeningResult,
    TextResponse,
    build_responses,
)
from .scheduling import Shift, Zone
from .workflow import (
    OnboardingCandidate,
    OnboardingStep,
    StaffMember,
    StageChange,
    WorkflowTemplate,
    compute_progress,
)

__all__ = [
    "ActorContext",
    "SYSTEM_ACTOR",
    "new_id",
    "utc_now",
    "Applicant",
    "Application",
    "BooleanResponse",
    "ChoiceResponse",
    "FormField",
    "JobPosting",
    "MultiChoiceResponse",
    "NumberResponse",
    "ScreeningIssue",
    "ScreeningResult",
    "TextResponse",
    "build_responses",
    "OnboardingCandidate",
    "OnboardingStep",
    "StaffMember",
    "StageChange",
    "WorkflowTemplate",
    "compute_progress",
    "PerformanceMetric",
    "Shift",
    "Zone",
]
