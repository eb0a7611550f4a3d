"""Persistence adapters for the lifecycle engine."""

from __future__ import annotations

from .backends import (
    CollectionMissingError,
    CorruptCollectionError,
    InMemoryBackend,
    JsonDirectoryBackend,
    StoreBackend,
)
from .resilient import ProvisioningRegistry, ResilientStore

JOB_POSTINGS = "job_postings"
APPLICATIONS = "applications"
WORKFLOW_TEMPLATES = "workflow_templates"
CANDIDATES = "candidates"
STAFF_MEMBERS = "staff_members"
ZONES = "zones"
SHIFTS = "shifts"
PERFORMANCE_METRICS = "performance_metrics"

ALL_COLLECTIONS = (
    JOB_POSTINGS,
    APPLICATIONS,
    WORKFLOW_TEMPLATES,
    CANDIDATES,
    STAFF_MEMBERS,
    ZONES,
    SHIFTS,
    PERFORMANCE_METRICS,
)

__all__ = [
    "StoreBackend",
    "CollectionMissingError",
    "CorruptCollectionError",
    "InMemoryBackend",
    "JsonDirectoryBackend",
    "ProvisioningRegistry",
    "ResilientStore",
    "ALL_COLLECTIONS",
    "JOB_POSTINGS",
    "APPLICATIONS",
    "WORKFLOW_TEMPLATES",
    "CANDIDATES",
    "STAFF_MEMBERS",
    "ZONES",
    "SHIFTS",
    "PERFORMANCE_METRICS",
]
