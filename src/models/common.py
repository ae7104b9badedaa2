"""Shared types, enums, and base models used across Digger domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class DiggerCommand(StrEnum):
    """Supported command phrases, in the order comments are scanned."""

    PLAN = "digger plan"
    APPLY = "digger apply"
    UNLOCK = "digger unlock"
    LOCK = "digger lock"


# Fixed vocabulary for comment-triggered commands
SUPPORTED_COMMANDS: tuple[DiggerCommand, ...] = (
    DiggerCommand.PLAN,
    DiggerCommand.APPLY,
    DiggerCommand.UNLOCK,
    DiggerCommand.LOCK,
)


class LifecycleStage(StrEnum):
    """Merge request lifecycle stages the event router understands."""

    OPENED = "OPENED"
    UPDATED = "UPDATED"
    CLOSED = "CLOSED"
    COMMENTED = "COMMENTED"


class RunStatus(StrEnum):
    """Terminal status of one orchestrator pass."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class CommandOutcomeStatus(StrEnum):
    """What happened to a single command string within a run."""

    EXECUTED = "EXECUTED"
    DENIED = "DENIED"
    LOCK_FAILED = "LOCK_FAILED"
    NOT_HELD = "NOT_HELD"
    ERROR = "ERROR"


# --- Base model ---


class DiggerBase(BaseModel):
    """Base model with common configuration for all Digger Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "ser_json_timedelta": "iso8601",
        "protected_namespaces": (),
    }
