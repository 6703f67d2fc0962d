"""Data models shared across the monitoring and task subsystems."""

from __future__ import annotations

from shepherd.models.activity import (
    ActivityCategory,
    ActivityPattern,
    ActivityResult,
    Matcher,
)
from shepherd.models.monitoring import (
    ErrorState,
    MonitoringStats,
    SessionCheckResult,
    SessionHealth,
    SessionMonitoringState,
    SessionStatus,
    SessionTarget,
    StatusUpdate,
)
from shepherd.models.tasks import FailureRecord, RateLimitState, Task, TaskStatus

__all__ = [
    # Activity
    "ActivityCategory",
    "ActivityPattern",
    "ActivityResult",
    "Matcher",
    # Monitoring
    "SessionTarget",
    "SessionStatus",
    "SessionHealth",
    "StatusUpdate",
    "ErrorState",
    "SessionMonitoringState",
    "SessionCheckResult",
    "MonitoringStats",
    # Tasks
    "TaskStatus",
    "FailureRecord",
    "Task",
    "RateLimitState",
]
