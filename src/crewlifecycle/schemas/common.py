"""Shared schema helpers: identifiers, timestamps and the acting identity."""

from __future__ import annotations

import uuid
from datetime import datetime

import pendulum
from pydantic import BaseModel, ConfigDict


def new_id(prefix: str) -> str:
    """Return a fresh identifier such as ``shift-1f3a9c0e4b2d``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    return pendulum.now("UTC")


class ActorContext(BaseModel):
    """Identity performing an action, recorded in audit fields."""

    actor_id: str
    display_name: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


SYSTEM_ACTOR = ActorContext(actor_id="system", display_name="System")
