from __future__ import annotations

import json
from pathlib import Path

from crewlifecycle.batch import AuditLogger
from crewlifecycle.container import create_container


def test_batch_writes_audit_log_without_applicant_text(tmp_path: Path) -> None:
    posting_path = tmp_path / "posting.json"
    applications_path = tmp_path / "applications.jsonl"
    output_path = tmp_path / "results.json"
    audit_path = tmp_path / "audit.jsonl"

    posting_path.write_text(json.dumps({"id": "posting-vip", "title": "VIP Host", "min_age": 18}), encoding="utf-8")
    applications_path.write_text(
        json.dumps(
            {
                "id": "application-flagged",
                "applicant": {"name": "Quinn"},
                "responses": {"history": "One alcohol related incident in 2019"},
                "resume_url": "resume.pdf",
                "cover_letter": "Hospitality is my passion.",
            }
        ),
        encoding="utf-8",
    )

    container = create_container()
    batch = container.batch()

    results = batch.run(
        posting_path=posting_path,
        applications_path=applications_path,
        output_path=output_path,
        as_of="2024-06-01",
        audit_logger=AuditLogger(audit_path),
    )

    assert results[0]["passed"] is False
    assert [issue["subject"] for issue in results[0]["issues"]] == ["alcohol"]

    audit_entry = json.loads(audit_path.read_text(encoding="utf-8").strip())
    assert audit_entry["issue_codes"] == ["red_flag"]
    assert audit_entry["posting_id"] == "posting-vip"
    assert "incident in 2019" not in audit_path.read_text(encoding="utf-8")

    rendered = json.loads(output_path.read_text(encoding="utf-8"))
    assert rendered["metadata"]["app_version"]
    assert rendered["results"][0]["screened_by"] == "batch"
