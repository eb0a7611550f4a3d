"""File-driven batch screening: posting JSON in, application JSONL in, report out."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pendulum
import structlog

from . import __version__
from .core import ScreeningEngine
from .errors import ValidationError
from .schemas import Applicant, Application, JobPosting, build_responses, new_id


class ApplicationLoadError(ValueError):
    """Raised when application loading encounters invalid records."""

    def __init__(self, errors: list[str], partial: list[Application]):
        super().__init__("Application loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Application loading failed: {self.errors}"


class PostingLoader:
    """Load a job posting document."""

    def load(self, path: Path) -> JobPosting:
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid posting JSON: {exc}") from exc
        posting = JobPosting.model_validate(data)
        if not posting.id:
            posting = posting.model_copy(update={"id": new_id("posting")})
        return posting


class ApplicationLoader:
    """Load applications for one posting from JSON lines.

    Each line holds ``applicant``, ``responses`` and optionally ``id``,
    ``resume_url`` and ``cover_letter``. Responses are coerced against the
    posting's form fields.
    """

    def load(self, path: Path, posting: JobPosting) -> list[Application]:
        applications: list[Application] = []
        errors: list[str] = []
        with path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                raw = line.strip()
                if not raw:
                    continue
                try:
                    record = json.loads(raw)
                except json.JSONDecodeError as exc:
                    errors.append(f"line {idx}: invalid JSON ({exc})")
                    continue
                if not isinstance(record, dict):
                    errors.append(f"line {idx}: expected an object")
                    continue
                if "applicant" not in record:
                    errors.append(f"line {idx}: missing applicant field")
                    continue
                try:
                    application = Application(
                        id=record.get("id") or new_id("application"),
                        posting_ref=posting.id,
                        applicant=Applicant.model_validate(record["applicant"]),
                        responses=build_responses(record.get("responses") or {}, posting),
                        resume_url=record.get("resume_url"),
                        cover_letter=record.get("cover_letter"),
                    )
                except ValidationError as exc:
                    errors.append(f"line {idx}: {'; '.join(exc.errors)}")
                    continue
                except Exception as exc:  # noqa: BLE001
                    errors.append(f"line {idx}: {exc}")
                    continue
                applications.append(application)
        if errors:
            raise ApplicationLoadError(errors, applications)
        return applications


class OutputWriter:
    """Persist screening outcomes."""

    def write(self, path: Path, payload: dict | list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )


class ScreeningBatch:
    """Screens every application in a file against one posting."""

    def __init__(
        self,
        *,
        engine: ScreeningEngine,
        posting_loader: PostingLoader | None = None,
        application_loader: ApplicationLoader | None = None,
        writer: OutputWriter | None = None,
    ) -> None:
        self._engine = engine
        self._postings = posting_loader or PostingLoader()
        self._applications = application_loader or ApplicationLoader()
        self._writer = writer or OutputWriter()
        self._logger = structlog.get_logger(__name__)

    def run(
        self,
        *,
        posting_path: Path,
        applications_path: Path,
        output_path: Path,
        as_of: str | None = None,
        audit_logger: "AuditLogger | None" = None,
    ) -> list[dict]:
        posting = self._postings.load(posting_path)
        load_errors: list[str] = []
        try:
            applications = self._applications.load(applications_path, posting)
        except ApplicationLoadError as exc:
            applications = exc.partial
            load_errors.extend(exc.errors)
            self._logger.warning("applications.partial_load", errors=exc.errors)

        results: list[dict] = []
        for application in applications:
            result = self._engine.screen(application, posting, as_of=as_of, screened_by="batch")
            entry = {
                "application_id": application.id,
                "applicant": application.applicant.name,
                **result.model_dump(mode="json"),
            }
            results.append(entry)

            if audit_logger:
                audit_logger.append(
                    {
                        "action": "application.screened",
                        "application_id": application.id,
                        "posting_id": posting.id,
                        "passed": result.passed,
                        "score": result.score,
                        "issue_codes": result.issue_codes(),
                        "at": result.screened_at,
                    }
                )

        metadata = {
            "posting_id": posting.id,
            "application_count": len(applications),
            "passed_count": sum(1 for entry in results if entry["passed"]),
            "errors": load_errors,
            "timestamp": pendulum.now().to_iso8601_string(),
            "app_version": __version__,
        }
        self._writer.write(output_path, {"metadata": metadata, "results": results})
        return results


def _json_default(value: Any) -> Any:
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=_json_default))
            handle.write("\n")
