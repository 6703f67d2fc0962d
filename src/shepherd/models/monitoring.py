"""Monitoring state models.

Session targets, broadcast status values, per-session monitoring state and
process-wide monitoring statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from shepherd.models.activity import ActivityResult

__all__ = [
    "SessionTarget",
    "SessionStatus",
    "SessionHealth",
    "StatusUpdate",
    "ErrorState",
    "SessionMonitoringState",
    "SessionCheckResult",
    "MonitoringStats",
]


@dataclass(frozen=True, slots=True)
class SessionTarget:
    """Identifier and addressing info for one monitored session.

    Attributes:
        session_id: Stable name used in logs, tasks and broadcasts.
        target: Multiplexer address, e.g. ``"multiagent:0.1"``.
        role: Optional free-form role label ("president", "worker").
    """

    session_id: str
    target: str
    role: str | None = None


class SessionStatus(str, Enum):
    """Status label broadcast for a session."""

    IDLE = "idle"
    WORKING = "working"
    OFFLINE = "offline"
    ERROR = "error"


class SessionHealth(str, Enum):
    """Monitoring health derived from a session's failure streak.

    Attributes:
        UNKNOWN: Never observed successfully.
        ACTIVE: Last capture succeeded.
        DEGRADED: Failing, but fewer than ``max_retries`` times in a row.
        OFFLINE: At least ``max_retries`` consecutive failures.
    """

    UNKNOWN = "unknown"
    ACTIVE = "active"
    DEGRADED = "degraded"
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """Status value delivered to subscribers.

    Attributes:
        session_id: Session the status belongs to.
        status: Status label.
        description: Human-readable activity description.
        timestamp: When the status was computed (UTC).
        file_name: File being worked on, if detected.
        command: Command being executed, if detected.
        terminal_output: Recent captured text for display.
    """

    session_id: str
    status: SessionStatus
    description: str | None
    timestamp: datetime
    file_name: str | None = None
    command: str | None = None
    terminal_output: str = ""

    def differs_from(self, other: StatusUpdate | None) -> bool:
        """Whether this update is materially different from ``other``.

        Timestamps and terminal output are ignored.
        """
        if other is None:
            return True
        return (
            self.status != other.status
            or self.description != other.description
            or self.file_name != other.file_name
            or self.command != other.command
        )


@dataclass(slots=True)
class ErrorState:
    """Error bookkeeping for one session."""

    has_error: bool = False
    message: str | None = None
    timestamp: datetime | None = None
    recovery_attempts: int = 0


@dataclass(slots=True)
class SessionMonitoringState:
    """Mutable monitoring state for one session.

    Owned by the scheduler. Callers outside it only ever see copies made with
    :meth:`snapshot`.
    """

    last_check_time: datetime | None = None
    consecutive_failures: int = 0
    is_active: bool = False
    last_known_status: StatusUpdate | None = None
    error_state: ErrorState = field(default_factory=ErrorState)
    fallback_mode: bool = False
    last_successful_check: datetime | None = None

    def health(self, max_retries: int) -> SessionHealth:
        if self.consecutive_failures >= max_retries:
            return SessionHealth.OFFLINE
        if self.consecutive_failures > 0:
            return SessionHealth.DEGRADED
        if self.last_successful_check is None:
            return SessionHealth.UNKNOWN
        return SessionHealth.ACTIVE

    def snapshot(self) -> SessionMonitoringState:
        return replace(self, error_state=replace(self.error_state))


@dataclass(frozen=True, slots=True)
class SessionCheckResult:
    """Outcome of capturing and classifying one session in one tick.

    Attributes:
        session_id: Session that was checked.
        captured: False when the capture failed after retries.
        output: Truncated captured text ("" on failure).
        activity: Classification of new output, if any.
        is_idle: Idle verdict from markers, empty output or elapsed time.
        timestamp: When the check finished (UTC).
        error: Capture error message when ``captured`` is False.
    """

    session_id: str
    captured: bool
    output: str
    activity: ActivityResult | None
    is_idle: bool
    timestamp: datetime
    error: str | None = None

    @property
    def has_new_activity(self) -> bool:
        return self.activity is not None


@dataclass(frozen=True, slots=True)
class MonitoringStats:
    """Process-wide monitoring counters.

    Attributes:
        total_checks: Ticks started.
        successful_checks: Ticks where at least one session captured.
        failed_checks: Ticks where capture failed everywhere or the tick raised.
        average_check_duration_ms: Rolling average tick duration.
        active_sessions: Sessions currently marked active.
        error_states: Sessions currently holding an error state.
        recovered_errors: Sessions that came back after failing.
        capture_failures: Individual session captures that failed.
        fallback_activations: Ticks that fell back to synthesised statuses.
        last_check_at: When the most recent tick finished.
        uptime_seconds: Seconds since the scheduler was created.
    """

    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    average_check_duration_ms: float = 0.0
    active_sessions: int = 0
    error_states: int = 0
    recovered_errors: int = 0
    capture_failures: int = 0
    fallback_activations: int = 0
    last_check_at: datetime | None = None
    uptime_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        """Fraction of ticks that succeeded (0.0 to 1.0)."""
        if self.total_checks == 0:
            return 0.0
        return self.successful_checks / self.total_checks
