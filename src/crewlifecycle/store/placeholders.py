"""Deterministic placeholder datasets served while a collection is unprovisioned.

Every record uses a fixed ``placeholder-`` id and fixed dates so that demo and
test runs against a partially migrated store always see the same data. None of
these records is ever written to a backend.
"""

from __future__ import annotations

import copy
from typing import Any

_CREATED_AT = "2024-01-01T00:00:00+00:00"

_TEMPLATE = {
    "id": "placeholder-template-1",
    "name": "Security Staff Onboarding",
    "department": "Security",
    "position": "Security Guard",
    "steps": [
        {"id": "documents", "title": "Submit ID and licence", "type": "document", "required": True, "depends_on": [], "order": 0},
        {"id": "training", "title": "Venue safety training", "type": "training", "required": True, "depends_on": ["documents"], "order": 1},
        {"id": "approval", "title": "Supervisor approval", "type": "approval", "required": True, "depends_on": ["training"], "order": 2},
    ],
    "estimated_days": 3,
    "version": 1,
    "created_at": _CREATED_AT,
}

PLACEHOLDER_DATA: dict[str, list[dict[str, Any]]] = {
    "job_postings": [
        {
            "id": "placeholder-posting-1",
            "venue_ref": "placeholder-venue-1",
            "title": "Sample Security Guard",
            "description": "Looking for experienced security personnel for event management",
            "role_type": "security",
            "department": "Security",
            "position": "Security Guard",
            "employment_type": "part_time",
            "experience_level": "mid",
            "required_certifications": ["Security License", "First Aid/CPR"],
            "min_age": 21,
            "positions": 3,
            "form_fields": [
                {"name": "cover_letter", "label": "Cover Letter", "type": "text", "required": True},
            ],
            "status": "published",
            "created_at": _CREATED_AT,
        }
    ],
    "applications": [
        {
            "id": "placeholder-application-1",
            "posting_ref": "placeholder-posting-1",
            "applicant": {"name": "John Doe", "email": "john.doe@example.com"},
            "responses": {"cover_letter": {"kind": "text", "value": "I am interested in this position..."}},
            "status": "pending",
            "submitted_at": _CREATED_AT,
        }
    ],
    "workflow_templates": [_TEMPLATE],
    "candidates": [
        {
            "id": "placeholder-candidate-1",
            "application_ref": "placeholder-application-1",
            "workflow_ref": "placeholder-template-1",
            "workflow": _TEMPLATE,
            "completed_steps": ["documents"],
            "stage": "onboarding",
            "name": "Jane Smith",
            "email": "jane.smith@example.com",
            "position": "Security Guard",
            "department": "Security",
            "employment_type": "part_time",
            "created_at": _CREATED_AT,
            "updated_at": _CREATED_AT,
        }
    ],
    "staff_members": [
        {
            "id": "placeholder-staff-1",
            "venue_ref": "placeholder-venue-1",
            "name": "Mike Johnson",
            "email": "mike.johnson@example.com",
            "role": "Senior Event Coordinator",
            "department": "Operations",
            "employment_type": "full_time",
            "status": "active",
            "hired_at": _CREATED_AT,
            "updated_at": _CREATED_AT,
        }
    ],
    "zones": [
        {
            "id": "placeholder-zone-1",
            "venue_ref": "placeholder-venue-1",
            "event_ref": "placeholder-event-1",
            "name": "Main Entrance",
            "description": "Primary security checkpoint and crowd control",
            "zone_type": "security",
            "capacity": 500,
            "required_staff_count": 3,
            "assigned_count": 2,
            "created_at": _CREATED_AT,
        }
    ],
    "shifts": [
        {
            "id": "placeholder-shift-1",
            "staff_ref": "placeholder-staff-1",
            "zone_ref": "placeholder-zone-1",
            "event_ref": "placeholder-event-1",
            "venue_ref": "placeholder-venue-1",
            "date": "2024-01-01",
            "start": "09:00:00",
            "end": "17:00:00",
            "break_minutes": 60,
            "role": "Security Guard",
            "status": "scheduled",
            "counted_in_zone": True,
            "notes": "Regular security shift",
            "created_at": _CREATED_AT,
        }
    ],
    "performance_metrics": [
        {
            "id": "placeholder-metric-1",
            "staff_ref": "placeholder-staff-1",
            "period": "2024-01-01",
            "event_ref": "placeholder-event-1",
            "attendance_rate": 95.5,
            "rating": 4.2,
            "incident_count": 0,
            "commendation_count": 3,
            "training_completed": True,
            "certifications_valid": True,
            "notes": "Excellent performance this month",
            "recorded_at": _CREATED_AT,
        }
    ],
}


def placeholder_records(collection: str) -> list[dict[str, Any]]:
    """Return a fresh copy of the placeholder dataset for ``collection``."""
    return copy.deepcopy(PLACEHOLDER_DATA.get(collection, []))
