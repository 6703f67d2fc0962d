"""Formatting helpers for CLI messages.

Helpers return rich markup strings; callers print them through the shared
console (or ``click.echo`` for plain text such as JSON and errors).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from shepherd.models import RateLimitState, SessionStatus, StatusUpdate
from shepherd.tasks import TaskEvent

__all__ = [
    "format_error",
    "format_json",
    "format_rate_limit",
    "format_status_update",
    "format_success",
    "format_task_counts",
    "format_task_event",
]

SESSION_STATUS_STYLES: dict[SessionStatus, str] = {
    SessionStatus.WORKING: "green",
    SessionStatus.IDLE: "dim",
    SessionStatus.ERROR: "bold red",
    SessionStatus.OFFLINE: "yellow",
}


def format_error(
    message: str, details: list[str] | None = None, suggestion: str | None = None
) -> str:
    """Format an error with indented detail lines and an optional hint.

    Example:
        >>> print(format_error("Task not found: abc", suggestion="Run tasks list"))
        Error: Task not found: abc
        Suggestion: Run tasks list
    """
    parts = [f"Error: {message}", *(f"  {line}" for line in details or ())]
    if suggestion:
        parts.append(f"Suggestion: {suggestion}")
    return "\n".join(parts)


def format_success(message: str) -> str:
    return f"Success: {message}"


def format_json(data: Any) -> str:
    """Indented JSON. Datetimes and paths are rendered with ``str``."""
    return json.dumps(data, indent=2, default=str)


def format_status_update(session_id: str, update: StatusUpdate) -> str:
    """One line per broadcast session status change."""
    style = SESSION_STATUS_STYLES.get(update.status, "")
    details = update.description or ""
    if update.file_name:
        details += f" [dim]({update.file_name})[/dim]"
    return (
        f"{update.timestamp:%H:%M:%S} [bold]{session_id}[/bold] "
        f"[{style}]{update.status.value}[/{style}] {details}"
    )


def format_task_event(event: TaskEvent) -> str:
    if event.task is not None:
        subject = f"task {event.task.id} ({event.task.title})"
    elif event.rate_limit is not None and event.rate_limit.next_retry_at:
        subject = f"until {event.rate_limit.next_retry_at:%Y-%m-%d %H:%M %Z}"
    else:
        subject = ""
    suffix = f": {event.message}" if event.message else ""
    return f"[cyan]{event.kind.value}[/cyan] {subject}{suffix}"


def format_rate_limit(state: RateLimitState) -> str:
    if not state.is_limited:
        return "[green]Not rate limited[/green]"
    return (
        f"[yellow]Rate limited[/yellow] until {state.next_retry_at} "
        f"({state.last_error_message})"
    )


def format_task_counts(counts: Mapping[str, int]) -> str:
    """Sorted ``status: count`` lines, or "No tasks." when empty."""
    if not counts:
        return "No tasks."
    return "\n".join(f"  {name}: {count}" for name, count in sorted(counts.items()))
