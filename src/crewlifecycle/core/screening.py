"""Deterministic auto-screening of applications against posting requirements."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

import pendulum
import structlog

from ..schemas import Application, JobPosting, ScreeningIssue, ScreeningResult

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass
class ScreeningConfig:
    """Scoring constants and field names used by the screening engine."""

    issue_penalty: float = 10.0
    completeness_bonus: float = 20.0
    default_completeness_fields: tuple[str, ...] = ("cover_letter", "experience_years", "availability")
    red_flag_terms: tuple[str, ...] = ("criminal", "arrest", "conviction", "drug", "alcohol", "violence")
    senior_min_experience_years: float = 5.0
    birth_date_field: str = "date_of_birth"
    experience_field: str = "experience_years"
    certifications_field: str = "certifications"
    cover_letter_field: str = "cover_letter"

    def __post_init__(self) -> None:
        self.default_completeness_fields = tuple(self.default_completeness_fields)
        self.red_flag_terms = tuple(term.lower() for term in self.red_flag_terms)


def normalize_field_name(label: str) -> str:
    """``"First Aid/CPR"`` -> ``"first_aid_cpr"``."""
    return _NON_ALNUM.sub("_", label.lower()).strip("_")


def calculate_age(birth_date: date, as_of: date) -> int:
    """Whole years elapsed, one less when the birthday is still ahead in ``as_of``'s year."""
    age = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


class ScreeningEngine:
    """Scores an application against its posting and flags issues.

    ``screen`` has no side effects beyond one log line and never raises for
    malformed application content: a missing or unreadable answer is itself an
    issue.
    """

    def __init__(
        self,
        *,
        config: ScreeningConfig | None = None,
        today_provider: Callable[[], date] | None = None,
    ) -> None:
        self._config = config or ScreeningConfig()
        self._today_provider = today_provider or (lambda: pendulum.today("UTC").date())
        self._red_flag_patterns = [
            (term, re.compile(rf"\b{re.escape(term)}", re.IGNORECASE))
            for term in self._config.red_flag_terms
        ]
        self._logger = structlog.get_logger(__name__)

    @property
    def config(self) -> ScreeningConfig:
        return self._config

    def screen(
        self,
        application: Application,
        posting: JobPosting,
        *,
        as_of: date | str | None = None,
        screened_by: str | None = None,
    ) -> ScreeningResult:
        reference_day = self._resolve_as_of(as_of)
        issues: list[ScreeningIssue] = []
        recommendations: list[str] = []

        self._check_artifacts(application, issues, recommendations)
        self._check_certifications(application, posting, issues, recommendations)
        self._check_age(application, posting, reference_day, issues, recommendations)
        self._check_experience(application, posting, issues, recommendations)
        self._check_red_flags(application, issues)

        completeness = self._completeness_ratio(application, posting)
        score = self._score(len(issues), completeness)

        result = ScreeningResult(
            passed=not issues,
            score=score,
            issues=issues,
            recommendations=recommendations,
            screened_by=screened_by,
        )
        self._logger.info(
            "screening.result",
            application_id=application.id,
            posting_id=posting.id,
            passed=result.passed,
            score=score,
            issue_codes=result.issue_codes(),
        )
        return result

    def _check_artifacts(
        self,
        application: Application,
        issues: list[ScreeningIssue],
        recommendations: list[str],
    ) -> None:
        if not (application.resume_url or "").strip():
            issues.append(ScreeningIssue(code="missing_resume", message="Missing resume"))
            recommendations.append("Request resume from applicant")
        if not self._cover_letter_text(application).strip():
            issues.append(ScreeningIssue(code="missing_cover_letter", message="Missing cover letter"))
            recommendations.append("Request cover letter from applicant")

    def _check_certifications(
        self,
        application: Application,
        posting: JobPosting,
        issues: list[ScreeningIssue],
        recommendations: list[str],
    ) -> None:
        if not posting.required_certifications:
            return
        listed = {normalize_field_name(item) for item in self._listed_certifications(application)}
        missing: list[str] = []
        for certification in posting.required_certifications:
            key = normalize_field_name(certification)
            response = application.responses.get(key)
            held = (response is not None and response.is_filled()) or key in listed
            if not held:
                missing.append(certification)
                issues.append(
                    ScreeningIssue(
                        code="missing_certification",
                        subject=certification,
                        message=f"Missing certification: {certification}",
                    )
                )
        if missing:
            recommendations.append(f"Request missing certifications: {', '.join(missing)}")

    def _check_age(
        self,
        application: Application,
        posting: JobPosting,
        reference_day: date,
        issues: list[ScreeningIssue],
        recommendations: list[str],
    ) -> None:
        if posting.min_age is None:
            return
        response = application.responses.get(self._config.birth_date_field)
        raw = getattr(response, "value", None) if response is not None else None
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return
        birth_date = self._parse_date(raw)
        if birth_date is None:
            issues.append(ScreeningIssue(code="invalid_birth_date", message="Date of birth could not be read"))
            recommendations.append("Verify applicant date of birth")
            return
        age = calculate_age(birth_date, reference_day)
        if age < posting.min_age:
            issues.append(
                ScreeningIssue(
                    code="age_below_minimum",
                    subject=str(posting.min_age),
                    message=f"Age requirement not met ({age} < {posting.min_age})",
                )
            )
            recommendations.append("Reject due to age requirement")

    def _check_experience(
        self,
        application: Application,
        posting: JobPosting,
        issues: list[ScreeningIssue],
        recommendations: list[str],
    ) -> None:
        years = self._experience_years(application)
        if years is None:
            return
        if posting.experience_level == "senior" and years < self._config.senior_min_experience_years:
            issues.append(
                ScreeningIssue(
                    code="insufficient_experience",
                    subject="senior",
                    message="Insufficient experience for senior position",
                )
            )
            recommendations.append("Consider for mid-level position instead")
            return
        if posting.min_experience_years is not None and years < posting.min_experience_years:
            issues.append(
                ScreeningIssue(
                    code="insufficient_experience",
                    subject=f"{posting.min_experience_years:g}",
                    message=f"Experience below minimum of {posting.min_experience_years:g} years",
                )
            )
            recommendations.append("Review experience against posting minimum")

    def _check_red_flags(self, application: Application, issues: list[ScreeningIssue]) -> None:
        corpus = "\n".join(self._free_text(application))
        if not corpus:
            return
        for term, pattern in self._red_flag_patterns:
            if pattern.search(corpus):
                issues.append(
                    ScreeningIssue(
                        code="red_flag",
                        subject=term,
                        message=f"Concerning keyword found: {term}",
                    )
                )

    def _completeness_ratio(self, application: Application, posting: JobPosting) -> float:
        fields = posting.required_fields() or list(self._config.default_completeness_fields)
        if not fields:
            return 0.0
        completed = 0
        for name in fields:
            if name == self._config.cover_letter_field and self._cover_letter_text(application).strip():
                completed += 1
                continue
            response = application.responses.get(name)
            if response is not None and response.is_filled():
                completed += 1
        return completed / len(fields)

    def _score(self, issue_count: int, completeness: float) -> float:
        score = 100.0 - self._config.issue_penalty * issue_count
        score += self._config.completeness_bonus * completeness
        return round(min(max(score, 0.0), 100.0), 2)

    def _cover_letter_text(self, application: Application) -> str:
        if application.cover_letter:
            return application.cover_letter
        response = application.responses.get(self._config.cover_letter_field)
        if response is not None and response.kind == "text":
            return response.value
        return ""

    def _listed_certifications(self, application: Application) -> list[str]:
        response = application.responses.get(self._config.certifications_field)
        if response is None:
            return []
        if response.kind == "multi_choice":
            return list(response.values)
        if response.kind in {"text", "choice"}:
            return [part for part in re.split(r"[,;\n]", response.value) if part.strip()]
        return []

    def _experience_years(self, application: Application) -> float | None:
        response = application.responses.get(self._config.experience_field)
        if response is None:
            return None
        value: Any = getattr(response, "value", None)
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return float(str(value).strip())
        except ValueError:
            return None

    def _free_text(self, application: Application) -> list[str]:
        texts = [response.value for response in application.responses.values() if response.kind == "text"]
        if application.cover_letter:
            texts.append(application.cover_letter)
        return texts

    @staticmethod
    def _parse_date(value: Any) -> date | None:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            parsed = pendulum.parse(str(value).strip(), strict=False)
        except (ValueError, OverflowError, TypeError, pendulum.parsing.exceptions.ParserError):
            return None
        if isinstance(parsed, datetime):
            return parsed.date()
        if isinstance(parsed, date):
            return parsed
        return None

    def _resolve_as_of(self, as_of: date | str | None) -> date:
        if as_of is None:
            return self._today_provider()
        if isinstance(as_of, str):
            parsed = self._parse_date(as_of)
            return parsed or self._today_provider()
        if isinstance(as_of, datetime):
            return as_of.date()
        return as_of
