from __future__ import annotations

import pytest

from crewlifecycle.errors import ValidationError
from crewlifecycle.schemas import (
    Application,
    BooleanResponse,
    ChoiceResponse,
    FormField,
    JobPosting,
    MultiChoiceResponse,
    NumberResponse,
    TextResponse,
    build_responses,
)


def build_posting() -> JobPosting:
    return JobPosting(
        id="posting-001",
        title="Bartender",
        role_type="bartender",
        form_fields=[
            FormField(name="experience_years", type="number", required=True),
            FormField(name="rsa_certified", type="boolean"),
            FormField(name="preferred_bar", type="choice", options=["Main Bar", "VIP Bar"]),
            FormField(name="shifts", type="multi_choice", options=["Friday", "Saturday", "Sunday"]),
        ],
    )


def test_declared_fields_are_coerced_to_their_type():
    responses = build_responses(
        {
            "experience_years": "3",
            "rsa_certified": "yes",
            "preferred_bar": "VIP Bar",
            "shifts": ["Friday", "Sunday"],
        },
        build_posting(),
    )

    assert responses["experience_years"] == NumberResponse(value=3.0)
    assert responses["rsa_certified"] == BooleanResponse(value=True)
    assert responses["preferred_bar"] == ChoiceResponse(value="VIP Bar")
    assert responses["shifts"] == MultiChoiceResponse(values=["Friday", "Sunday"])


def test_undeclared_fields_are_inferred():
    responses = build_responses(
        {"availability": "Weekends", "age": 24, "has_car": False, "languages": ["English"], "skipped": None},
        build_posting(),
    )

    assert responses["availability"] == TextResponse(value="Weekends")
    assert responses["age"].kind == "number"
    assert responses["has_car"].kind == "boolean"
    assert responses["languages"].kind == "multi_choice"
    assert "skipped" not in responses


def test_invalid_values_are_collected():
    with pytest.raises(ValidationError) as exc:
        build_responses(
            {"experience_years": "plenty", "preferred_bar": "Rooftop", "shifts": ["Monday"]},
            build_posting(),
        )

    messages = " ".join(exc.value.errors)
    assert "experience_years" in messages
    assert "preferred_bar" in messages
    assert "shifts" in messages
    assert len(exc.value.errors) == 3


def test_tagged_response_must_match_declared_type():
    with pytest.raises(ValidationError):
        build_responses({"rsa_certified": {"kind": "text", "value": "maybe"}}, build_posting())


def test_missing_required_fields_are_not_rejected():
    assert build_responses({}, build_posting()) == {}


def test_application_round_trips_tagged_union():
    posting = build_posting()
    application = Application(
        id="application-001",
        posting_ref=posting.id,
        applicant={"name": "Casey"},
        responses=build_responses({"experience_years": 2, "shifts": "Friday"}, posting),
    )

    restored = Application.model_validate(application.model_dump(mode="json"))

    assert restored.responses["experience_years"] == NumberResponse(value=2.0)
    assert restored.responses["shifts"] == MultiChoiceResponse(values=["Friday"])


def test_posting_open_positions():
    posting = JobPosting(title="Usher", positions=3, accepted_count=2)
    assert posting.open_positions == 1
    assert posting.status == "published"
