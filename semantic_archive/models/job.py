"""Ingestion job models.

A job is one unit of ingestion work bound to a single source file.  Jobs
live only inside the job queue (:mod:`semantic_archive.pipeline.job_queue`);
the queue hands out frozen :class:`JobSnapshot` copies so callers never
hold a reference to the queue's mutable bookkeeping.

Lifecycle::

    WAITING --> ACTIVE --> COMPLETED
                  |
                  +--> DELAYED --> WAITING   (failed, attempts left)
                  |
                  +--> FAILED                (attempts exhausted)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobState(str, Enum):  # noqa: UP042
    """Where a job is in its lifecycle."""

    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class IngestionStage(str, Enum):  # noqa: UP042
    """Pipeline stage a job attempt is currently in."""

    QUEUED = "queued"
    EXTRACT = "extract"
    CLASSIFY = "classify"
    VALIDATE = "validate"
    EMBED = "embed"
    GENERATE_COMMANDS = "generate_commands"
    EXECUTE = "execute"
    ARCHIVE = "archive"
    DONE = "done"


class IngestionResult(BaseModel):
    """Outcome of one successful pipeline run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    file_path: str
    entity_count: int = Field(default=0, ge=0)
    command_count: int = Field(default=0, ge=0)
    relationships_inserted: int = Field(default=0, ge=0)
    archived: bool = False


class JobSnapshot(BaseModel):
    """Immutable view of a job's bookkeeping at one point in time."""

    model_config = ConfigDict(frozen=True)

    id: str
    file_path: str
    state: JobState
    attempts: int = Field(ge=0)
    max_attempts: int = Field(ge=1)
    backoff_base: float = Field(ge=0.0)
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    # Backoff delays (seconds) applied before each retry, in order.
    delays: list[float] = Field(default_factory=list)
    result: IngestionResult | None = None
    error: str | None = None
    error_kind: str | None = None
    content_error: bool = False
    created_at: datetime
    finished_at: datetime | None = None
