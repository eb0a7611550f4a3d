"""Job posting, application and screening result schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .common import utc_now

RoleType = Literal["security", "bartender", "street_team", "production", "management", "other"]
EmploymentType = Literal["full_time", "part_time", "contractor", "volunteer"]
ExperienceLevel = Literal["entry", "mid", "senior", "executive"]
PostingStatus = Literal["draft", "published", "paused", "closed"]
ApplicationStatus = Literal["pending", "reviewed", "screened", "accepted", "rejected"]
FieldType = Literal["text", "number", "boolean", "choice", "multi_choice"]
IssueCode = Literal[
    "missing_resume",
    "missing_cover_letter",
    "missing_certification",
    "invalid_birth_date",
    "age_below_minimum",
    "insufficient_experience",
    "red_flag",
]

POSTING_TRANSITIONS: dict[str, set[str]] = {
    "draft": {"published", "closed"},
    "published": {"paused", "closed"},
    "paused": {"published", "closed"},
    "closed": set(),
}

APPLICATION_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"reviewed", "screened", "accepted", "rejected"},
    "reviewed": {"screened", "accepted", "rejected"},
    "screened": {"reviewed", "screened", "accepted", "rejected"},
    "accepted": set(),
    "rejected": set(),
}


class TextResponse(BaseModel):
    kind: Literal["text"] = "text"
    value: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_filled(self) -> bool:
        return bool(self.value.strip())


class NumberResponse(BaseModel):
    kind: Literal["number"] = "number"
    value: float

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_filled(self) -> bool:
        return True


class BooleanResponse(BaseModel):
    kind: Literal["boolean"] = "boolean"
    value: bool

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_filled(self) -> bool:
        return self.value


class ChoiceResponse(BaseModel):
    kind: Literal["choice"] = "choice"
    value: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_filled(self) -> bool:
        return bool(self.value)


class MultiChoiceResponse(BaseModel):
    kind: Literal["multi_choice"] = "multi_choice"
    values: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_filled(self) -> bool:
        return bool(self.values)


ResponseValue = Annotated[
    Union[TextResponse, NumberResponse, BooleanResponse, ChoiceResponse, MultiChoiceResponse],
    Field(discriminator="kind"),
]

_RESPONSE_ADAPTER: TypeAdapter[Any] = TypeAdapter(ResponseValue)


class FormField(BaseModel):
    """A posting-declared application field."""

    name: str
    label: str = ""
    type: FieldType = "text"
    required: bool = False
    options: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class JobPosting(BaseModel):
    """An open role for a venue or event."""

    id: str = ""
    venue_ref: str | None = None
    event_ref: str | None = None
    title: str = Field(min_length=1)
    description: str = ""
    role_type: RoleType = "other"
    department: str = "General"
    position: str = ""
    employment_type: EmploymentType = "part_time"
    experience_level: ExperienceLevel = "entry"
    required_certifications: list[str] = Field(default_factory=list)
    min_age: int | None = Field(default=None, ge=18)
    min_experience_years: float | None = Field(default=None, ge=0)
    positions: int = Field(default=1, ge=1, le=100)
    accepted_count: int = Field(default=0, ge=0)
    form_fields: list[FormField] = Field(default_factory=list)
    status: PostingStatus = "published"
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")

    def field(self, name: str) -> FormField | None:
        for form_field in self.form_fields:
            if form_field.name == name:
                return form_field
        return None

    def required_fields(self) -> list[str]:
        return [form_field.name for form_field in self.form_fields if form_field.required]

    @property
    def open_positions(self) -> int:
        return max(self.positions - self.accepted_count, 0)


class Applicant(BaseModel):
    """Identity of the person applying."""

    name: str
    email: str | None = None
    phone: str | None = None
    user_ref: str | None = None

    model_config = ConfigDict(extra="forbid")


class ScreeningIssue(BaseModel):
    """Categorical screening finding. Never carries applicant free text."""

    code: IssueCode
    subject: str | None = None
    message: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class ScreeningResult(BaseModel):
    """Outcome of one automated screening run."""

    passed: bool
    score: float = Field(ge=0, le=100)
    issues: list[ScreeningIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    screened_at: datetime = Field(default_factory=utc_now)
    screened_by: str | None = None

    model_config = ConfigDict(extra="forbid")

    def issue_codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


class Application(BaseModel):
    """A candidate's response to a job posting."""

    id: str = ""
    posting_ref: str
    applicant: Applicant
    responses: dict[str, ResponseValue] = Field(default_factory=dict)
    resume_url: str | None = None
    cover_letter: str | None = None
    status: ApplicationStatus = "pending"
    screening_result: ScreeningResult | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    feedback: str | None = None
    submitted_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="forbid")


def build_responses(raw: dict[str, Any], posting: JobPosting) -> dict[str, Any]:
    """Coerce raw submitted values into typed responses for ``posting``.

    Declared fields are checked against their type and options; undeclared
    fields have their kind inferred from the value. Missing required fields are
    left for screening to score.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Responses must be a mapping of field name to value")

    responses: dict[str, Any] = {}
    errors: list[str] = []
    for name, value in raw.items():
        if value is None:
            continue
        try:
            responses[name] = _coerce_response(posting.field(name), name, value)
        except (ValueError, TypeError) as exc:
            errors.append(f"{name}: {exc}")
    if errors:
        raise ValidationError("Invalid application responses", errors=errors)
    return responses


def _coerce_response(form_field: FormField | None, name: str, value: Any) -> Any:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, dict):
        try:
            response = _RESPONSE_ADAPTER.validate_python(value)
        except PydanticValidationError as exc:
            raise ValueError(f"malformed response ({exc.error_count()} errors)") from exc
        if form_field is not None and response.kind != form_field.type:
            raise ValueError(f"expected {form_field.type}, got {response.kind}")
        _check_options(form_field, response)
        return response

    kind = form_field.type if form_field is not None else _infer_kind(value)
    if kind == "text":
        if not isinstance(value, str):
            raise TypeError("expected text")
        response = TextResponse(value=value)
    elif kind == "number":
        response = NumberResponse(value=_to_number(value))
    elif kind == "boolean":
        response = BooleanResponse(value=_to_bool(value))
    elif kind == "choice":
        if not isinstance(value, str):
            raise TypeError("expected a single choice")
        response = ChoiceResponse(value=value)
    else:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
            raise TypeError("expected a list of choices")
        response = MultiChoiceResponse(values=list(value))
    _check_options(form_field, response)
    return response


def _infer_kind(value: Any) -> FieldType:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "multi_choice"
    return "text"


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    raise TypeError("expected a number")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "yes", "y", "1"}:
            return True
        if normalized in {"false", "no", "n", "0"}:
            return False
    raise TypeError("expected a boolean")


def _check_options(form_field: FormField | None, response: Any) -> None:
    if form_field is None or not form_field.options:
        return
    chosen = response.values if response.kind == "multi_choice" else [getattr(response, "value", None)]
    unknown = [item for item in chosen if item not in form_field.options]
    if response.kind in {"choice", "multi_choice"} and unknown:
        raise ValueError(f"unknown option(s): {', '.join(map(str, unknown))}")
