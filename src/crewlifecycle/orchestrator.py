"""Id-based facade over the lifecycle engines.

The orchestrator resolves references, converts schema failures into
``ValidationError``, records audit entries and delegates the actual state
changes to the screening, workflow, scheduling and performance engines.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, TypeVar

import pendulum
import pydantic
import structlog
from pydantic import BaseModel, TypeAdapter

from .batch import AuditLogger
from .core import (
    KeyedLocks,
    PerformanceAggregator,
    PerformanceStats,
    SchedulingEngine,
    ScreeningEngine,
    ShiftStats,
    WorkflowEngine,
    summarize_metrics,
)
from .errors import InvalidTransitionError, NotFoundError, PostingFilledError, ValidationError
from .events import ApplicationScreened, EventBus
from .schemas import (
    SYSTEM_ACTOR,
    ActorContext,
    Applicant,
    Application,
    JobPosting,
    OnboardingCandidate,
    OnboardingStep,
    PerformanceMetric,
    ScreeningResult,
    Shift,
    StaffMember,
    WorkflowTemplate,
    build_responses,
    new_id,
    utc_now,
)
from .schemas.posting import APPLICATION_TRANSITIONS, POSTING_TRANSITIONS, ApplicationStatus, PostingStatus
from .schemas.scheduling import ZoneType
from .schemas.workflow import StaffStatus
from .store import (
    APPLICATIONS,
    CANDIDATES,
    JOB_POSTINGS,
    PERFORMANCE_METRICS,
    SHIFTS,
    STAFF_MEMBERS,
    ResilientStore,
)

M = TypeVar("M", bound=BaseModel)

RECENT_HIRE_DAYS = 30

_DATE_ADAPTER: TypeAdapter[dt.date] = TypeAdapter(dt.date)
_TIME_ADAPTER: TypeAdapter[dt.time] = TypeAdapter(dt.time)


@dataclass
class OnboardingStats:
    total: int = 0
    by_stage: dict[str, int] = field(default_factory=dict)
    average_progress: float = 0.0


@dataclass
class PostingStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    total_applications: int = 0
    pending_reviews: int = 0


@dataclass
class StaffStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    recent_hires: int = 0


@dataclass
class DashboardStats:
    onboarding: OnboardingStats
    postings: PostingStats
    staff: StaffStats
    shifts: ShiftStats
    performance: PerformanceStats
    generated_at: dt.datetime = field(default_factory=utc_now)


def _validate(model: type[M], data: Any) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__}", errors=_readable(exc)) from exc


def _readable(exc: pydantic.ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
        for error in exc.errors()
    ]


def _parse(adapter: TypeAdapter[Any], value: Any, label: str) -> Any:
    try:
        return adapter.validate_python(value)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {label}", errors=[f"{label}: {value!r}"]) from exc


def _count(values: Iterable[str], keys: Iterable[str]) -> dict[str, int]:
    counts = {key: 0 for key in keys}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


class LifecycleOrchestrator:
    """Single entry point for the UI and CRUD layers."""

    def __init__(
        self,
        *,
        store: ResilientStore,
        locks: KeyedLocks,
        screening: ScreeningEngine,
        workflows: WorkflowEngine,
        scheduling: SchedulingEngine,
        performance: PerformanceAggregator,
        events: EventBus | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._screening = screening
        self._workflows = workflows
        self._scheduling = scheduling
        self._performance = performance
        self._events = events or EventBus()
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    @property
    def events(self) -> EventBus:
        return self._events

    # Postings and applications --------------------------------------------

    def create_job_posting(self, data: Mapping[str, Any] | JobPosting, *, actor: ActorContext = SYSTEM_ACTOR) -> str:
        posting = _validate(JobPosting, data)
        posting = posting.model_copy(
            update={"id": posting.id or new_id("posting"), "created_by": posting.created_by or actor.actor_id}
        )
        stored = self._store.insert(JOB_POSTINGS, posting)
        self._logger.info("posting.created", posting_id=stored.id, status=stored.status)
        self._record("posting.created", actor, posting_id=stored.id)
        return stored.id

    def get_posting(self, posting_id: str) -> JobPosting:
        posting = self._store.get(JOB_POSTINGS, posting_id, JobPosting)
        if posting is None:
            raise NotFoundError("JobPosting", posting_id)
        return posting

    def update_posting_status(
        self,
        posting_id: str,
        status: PostingStatus,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> JobPosting:
        with self._locks.hold(f"posting:{posting_id}"):
            posting = self.get_posting(posting_id)
            if posting.status == status:
                return posting
            if status not in POSTING_TRANSITIONS.get(posting.status, set()):
                raise InvalidTransitionError("JobPosting", posting.status, status)
            stored = self._store.update(JOB_POSTINGS, posting.model_copy(update={"status": status}))
        self._logger.info("posting.status_changed", posting_id=posting_id, status=status)
        self._record("posting.status_changed", actor, posting_id=posting_id, status=status)
        return stored

    def submit_application(
        self,
        posting_id: str,
        responses: Mapping[str, Any],
        *,
        applicant: Mapping[str, Any] | Applicant,
        resume_url: str | None = None,
        cover_letter: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> str:
        posting = self.get_posting(posting_id)
        if posting.status != "published":
            raise ValidationError(f"Posting {posting_id!r} is {posting.status} and not accepting applications")
        application = Application(
            id=new_id("application"),
            posting_ref=posting.id,
            applicant=_validate(Applicant, applicant),
            responses=build_responses(dict(responses), posting),
            resume_url=resume_url,
            cover_letter=cover_letter,
        )
        stored = self._store.insert(APPLICATIONS, application)
        self._logger.info(
            "application.submitted",
            application_id=stored.id,
            posting_id=posting.id,
            response_count=len(stored.responses),
        )
        self._record("application.submitted", actor, application_id=stored.id, posting_id=posting.id)
        return stored.id

    def get_application(self, application_id: str) -> Application:
        application = self._store.get(APPLICATIONS, application_id, Application)
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    def run_screening(
        self,
        application_ids: Iterable[str],
        *,
        as_of: dt.date | str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> list[ScreeningResult]:
        results: list[ScreeningResult] = []
        postings: dict[str, JobPosting] = {}
        for application_id in application_ids:
            application = self.get_application(application_id)
            posting = postings.get(application.posting_ref)
            if posting is None:
                posting = self.get_posting(application.posting_ref)
                postings[posting.id] = posting

            result = self._screening.screen(application, posting, as_of=as_of, screened_by=actor.actor_id)
            with self._locks.hold(f"application:{application.id}"):
                application = self.get_application(application.id)
                update: dict[str, Any] = {"screening_result": result}
                if application.status in {"pending", "reviewed"}:
                    update["status"] = "screened"
                self._store.update(APPLICATIONS, application.model_copy(update=update))
            results.append(result)

            self._record(
                "application.screened",
                actor,
                application_id=application.id,
                passed=result.passed,
                score=result.score,
                issue_codes=result.issue_codes(),
            )
            self._events.publish(
                ApplicationScreened(
                    application_id=application.id,
                    posting_id=posting.id,
                    passed=result.passed,
                    score=result.score,
                    actor_id=actor.actor_id,
                )
            )
        return results

    def review_application(
        self,
        application_id: str,
        *,
        feedback: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Application:
        return self._set_application_status(application_id, "reviewed", feedback=feedback, actor=actor)

    def accept_application(self, application_id: str, *, actor: ActorContext = SYSTEM_ACTOR) -> Application:
        application = self.get_application(application_id)
        with self._locks.hold(f"posting:{application.posting_ref}", f"application:{application_id}"):
            application = self.get_application(application_id)
            if application.status == "accepted":
                return application
            posting = self.get_posting(application.posting_ref)
            if posting.open_positions == 0:
                raise PostingFilledError(posting.id, posting.positions)
            if posting.status != "published":
                raise ValidationError(f"Posting {posting.id!r} is {posting.status} and not accepting hires")
            accepted = self._set_application_status(application_id, "accepted", actor=actor)

            update: dict[str, Any] = {"accepted_count": posting.accepted_count + 1}
            if posting.accepted_count + 1 >= posting.positions:
                update["status"] = "closed"
            self._store.update(JOB_POSTINGS, posting.model_copy(update=update))
        if update.get("status") == "closed":
            self._logger.info("posting.filled", posting_id=posting.id, positions=posting.positions)
        return accepted

    def reject_application(
        self,
        application_id: str,
        *,
        feedback: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Application:
        return self._set_application_status(application_id, "rejected", feedback=feedback, actor=actor)

    # Workflows and candidates ---------------------------------------------

    def register_template(
        self,
        data: Mapping[str, Any] | WorkflowTemplate,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> str:
        template = self._workflows.register_template(_validate(WorkflowTemplate, data), actor=actor)
        self._record("template.registered", actor, template_id=template.id, version=template.version)
        return template.id

    def revise_template(
        self,
        template_id: str,
        *,
        steps: list[Mapping[str, Any] | OnboardingStep] | None = None,
        name: str | None = None,
        estimated_days: int | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> str:
        template = self._workflows.get_template(template_id)
        parsed = [_validate(OnboardingStep, step) for step in steps] if steps is not None else None
        revision = self._workflows.revise_template(
            template,
            steps=parsed,
            name=name,
            estimated_days=estimated_days,
            actor=actor,
        )
        self._record("template.revised", actor, template_id=revision.id, supersedes=template_id)
        return revision.id

    def instantiate_workflow(
        self,
        template_id: str,
        application_id: str,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> str:
        application = self.get_application(application_id)
        if application.status != "accepted":
            raise InvalidTransitionError("Application", application.status, "onboarding")
        template = self._workflows.get_template(template_id)
        posting = self._store.get(JOB_POSTINGS, application.posting_ref, JobPosting)
        candidate = self._workflows.instantiate(
            template,
            application,
            position=(posting.position or posting.title) if posting else "",
            department=posting.department if posting else template.department,
            employment_type=posting.employment_type if posting else "contractor",
            venue_ref=posting.venue_ref if posting else None,
            actor=actor,
        )
        self._record("candidate.instantiated", actor, candidate_id=candidate.id, application_id=application_id)
        return candidate.id

    def complete_step(
        self,
        candidate_id: str,
        step_id: str,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> OnboardingCandidate:
        candidate = self._workflows.complete_step(self._workflows.get_candidate(candidate_id), step_id, actor=actor)
        self._record("candidate.step_completed", actor, candidate_id=candidate_id, step_id=step_id)
        return candidate

    def approve_candidate(self, candidate_id: str, *, actor: ActorContext = SYSTEM_ACTOR) -> str:
        staff = self._workflows.approve(self._workflows.get_candidate(candidate_id), actor=actor)
        self._record("candidate.approved", actor, candidate_id=candidate_id, staff_member_id=staff.id)
        return staff.id

    def reject_candidate(
        self,
        candidate_id: str,
        reason: str,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> OnboardingCandidate:
        candidate = self._workflows.reject(self._workflows.get_candidate(candidate_id), reason, actor=actor)
        self._record("candidate.rejected", actor, candidate_id=candidate_id)
        return candidate

    def set_staff_status(
        self,
        staff_id: str,
        status: StaffStatus,
        *,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> StaffMember:
        staff = self._workflows.set_staff_status(self._workflows.get_staff(staff_id), status, actor=actor)
        self._record("staff.status_changed", actor, staff_member_id=staff_id, status=status)
        return staff

    # Scheduling -----------------------------------------------------------

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
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> str:
        try:
            zone = self._scheduling.create_zone(
                event_ref,
                capacity,
                required_staff_count,
                name=name,
                zone_type=zone_type,
                description=description,
                venue_ref=venue_ref,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid Zone", errors=_readable(exc)) from exc
        self._record("zone.created", actor, zone_id=zone.id)
        return zone.id

    def assign_shift(
        self,
        staff_id: str,
        date: dt.date | str,
        start: dt.time | str,
        end: dt.time | str,
        zone_id: str | None = None,
        *,
        break_minutes: int = 0,
        role: str | None = None,
        event_ref: str | None = None,
        notes: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> Shift:
        staff = self._workflows.get_staff(staff_id)
        zone = self._scheduling.get_zone(zone_id) if zone_id else None
        shift = self._scheduling.assign_shift(
            staff,
            _parse(_DATE_ADAPTER, date, "date"),
            _parse(_TIME_ADAPTER, start, "start"),
            _parse(_TIME_ADAPTER, end, "end"),
            zone,
            break_minutes=break_minutes,
            role=role,
            event_ref=event_ref,
            notes=notes,
            actor=actor,
        )
        self._record("shift.assigned", actor, shift_id=shift.id, staff_member_id=staff_id, zone_id=zone_id)
        return shift

    def confirm_shift(self, shift_id: str, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        shift = self._scheduling.confirm_shift(self._scheduling.get_shift(shift_id), actor=actor)
        self._record("shift.confirmed", actor, shift_id=shift_id)
        return shift

    def complete_shift(self, shift_id: str, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        shift = self._scheduling.complete_shift(self._scheduling.get_shift(shift_id), actor=actor)
        self._record("shift.completed", actor, shift_id=shift_id)
        return shift

    def cancel_shift(self, shift_id: str, *, actor: ActorContext = SYSTEM_ACTOR) -> Shift:
        shift = self._scheduling.cancel_shift(self._scheduling.get_shift(shift_id), actor=actor)
        self._record("shift.cancelled", actor, shift_id=shift_id)
        return shift

    # Performance ----------------------------------------------------------

    def record_metric(
        self,
        staff_id: str,
        period: dt.date | str,
        attendance_rate: float,
        rating: float,
        incidents: int = 0,
        commendations: int = 0,
        *,
        event_ref: str | None = None,
        training_completed: bool = False,
        certifications_valid: bool = False,
        notes: str | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ) -> PerformanceMetric:
        staff = self._workflows.get_staff(staff_id)
        try:
            metric = self._performance.record_metric(
                staff,
                _parse(_DATE_ADAPTER, period, "period"),
                attendance_rate,
                rating,
                incidents,
                commendations,
                event_ref=event_ref,
                training_completed=training_completed,
                certifications_valid=certifications_valid,
                notes=notes,
                actor=actor,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("Invalid PerformanceMetric", errors=_readable(exc)) from exc
        self._record("metric.recorded", actor, metric_id=metric.id, staff_member_id=staff_id)
        return metric

    def rollup(
        self,
        staff_ids: Iterable[str] = (),
        date_from: dt.date | str | None = None,
        date_to: dt.date | str | None = None,
    ) -> PerformanceStats:
        return self._performance.rollup(
            staff_ids,
            _parse(_DATE_ADAPTER, date_from, "date_from") if date_from is not None else None,
            _parse(_DATE_ADAPTER, date_to, "date_to") if date_to is not None else None,
        )

    # Dashboard ------------------------------------------------------------

    def dashboard_stats(self, venue_ref: str | None = None) -> DashboardStats:
        def in_venue(item: Any) -> bool:
            return venue_ref is None or getattr(item, "venue_ref", None) == venue_ref

        postings = [posting for posting in self._store.fetch_all(JOB_POSTINGS, JobPosting) if in_venue(posting)]
        posting_ids = {posting.id for posting in postings}
        applications = [
            application
            for application in self._store.fetch_all(APPLICATIONS, Application)
            if venue_ref is None or application.posting_ref in posting_ids
        ]
        candidates = [
            candidate for candidate in self._store.fetch_all(CANDIDATES, OnboardingCandidate) if in_venue(candidate)
        ]
        staff = [member for member in self._store.fetch_all(STAFF_MEMBERS, StaffMember) if in_venue(member)]
        staff_ids = {member.id for member in staff}
        shifts = [shift for shift in self._store.fetch_all(SHIFTS, Shift) if in_venue(shift)]
        metrics = [
            metric
            for metric in self._store.fetch_all(PERFORMANCE_METRICS, PerformanceMetric)
            if venue_ref is None or metric.staff_ref in staff_ids
        ]

        hire_cutoff = pendulum.now("UTC").subtract(days=RECENT_HIRE_DAYS)
        progress_values = [candidate.progress for candidate in candidates]
        return DashboardStats(
            onboarding=OnboardingStats(
                total=len(candidates),
                by_stage=_count(
                    (candidate.stage for candidate in candidates),
                    ("applied", "screening", "onboarding", "pending_approval", "approved", "rejected"),
                ),
                average_progress=round(sum(progress_values) / len(progress_values), 1) if progress_values else 0.0,
            ),
            postings=PostingStats(
                total=len(postings),
                by_status=_count((posting.status for posting in postings), ("draft", "published", "paused", "closed")),
                total_applications=len(applications),
                pending_reviews=sum(1 for application in applications if application.status == "pending"),
            ),
            staff=StaffStats(
                total=len(staff),
                by_status=_count((member.status for member in staff), ("active", "on_leave", "terminated")),
                recent_hires=sum(1 for member in staff if member.hired_at >= hire_cutoff),
            ),
            shifts=self._performance.shift_stats(shifts),
            performance=summarize_metrics(metrics),
        )

    # Internals ------------------------------------------------------------

    def _set_application_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        *,
        feedback: str | None = None,
        actor: ActorContext,
    ) -> Application:
        with self._locks.hold(f"application:{application_id}"):
            application = self.get_application(application_id)
            if application.status != status and status not in APPLICATION_TRANSITIONS[application.status]:
                raise InvalidTransitionError("Application", application.status, status)
            update: dict[str, Any] = {
                "status": status,
                "reviewed_by": actor.actor_id,
                "reviewed_at": utc_now(),
            }
            if feedback is not None:
                update["feedback"] = feedback
            stored = self._store.update(APPLICATIONS, application.model_copy(update=update))
        self._logger.info("application.status_changed", application_id=application_id, status=status)
        self._record(f"application.{status}", actor, application_id=application_id)
        return stored

    def _record(self, action: str, actor: ActorContext, **fields: Any) -> None:
        if self._audit is None:
            return
        self._audit.append({"action": action, "actor_id": actor.actor_id, "at": utc_now(), **fields})
