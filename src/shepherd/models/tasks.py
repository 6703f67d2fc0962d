"""Task and rate-limit models.

Tasks and the rate-limit state are frozen Pydantic models. They are persisted
by the task store as JSON, and every change produces a new record.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "TaskStatus",
    "FailureRecord",
    "Task",
    "RateLimitState",
]


class TaskStatus(str, Enum):
    """Lifecycle status of a task.

    Attributes:
        PENDING: Waiting to be dispatched.
        IN_PROGRESS: Dispatched to a session and being worked on.
        PAUSED: Interrupted by a rate limit; will be resumed.
        COMPLETED: Finished. Terminal.
        FAILED: Failed; can be retried back to pending.
        CANCELLED: Removed from processing. Terminal.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class FailureRecord(BaseModel):
    """One entry of a task's failure history.

    Attributes:
        timestamp: When the failure was recorded.
        reason: Why the task failed.
        retry_count_at_failure: The task's retry count at that moment.
    """

    timestamp: datetime = Field(description="When the failure was recorded")
    reason: str = Field(description="Failure reason")
    retry_count_at_failure: int = Field(ge=0, description="Retry count at failure")

    model_config = ConfigDict(frozen=True)


class Task(BaseModel):
    """A unit of work dispatched to the sessions.

    ``error_history`` is append-only: the engine only ever builds a new tuple
    that extends the previous one.
    """

    id: str = Field(min_length=1, description="Task identifier")
    title: str = Field(min_length=1, description="Short task title")
    description: str = Field(default="", description="Full task description")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    assigned_to: str | None = Field(
        default=None, description="Session the task was dispatched to"
    )
    project_name: str | None = Field(
        default=None, description="Workspace directory name for artifacts"
    )
    paused_reason: str | None = None
    failure_reason: str | None = None
    error_history: tuple[FailureRecord, ...] = Field(default=())
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime
    last_attempt_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = ConfigDict(frozen=True)


class RateLimitState(BaseModel):
    """Process-wide rate-limit state.

    Attributes:
        is_limited: True while dispatch is halted.
        paused_at: When the limit was detected.
        next_retry_at: Earliest time dispatch may continue.
        retry_count: Rate-limit detections so far.
        last_error_message: Text excerpt that triggered the limit.
    """

    is_limited: bool = False
    paused_at: datetime | None = None
    next_retry_at: datetime | None = None
    retry_count: int = Field(default=0, ge=0)
    last_error_message: str | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_retry_time_when_limited(self) -> Self:
        if self.is_limited and self.next_retry_at is None:
            raise ValueError("next_retry_at is required while is_limited is set")
        return self

    def is_resolved(self, now: datetime) -> bool:
        """Whether the limit has expired at ``now``."""
        if not self.is_limited:
            return True
        assert self.next_retry_at is not None
        return now >= self.next_retry_at
