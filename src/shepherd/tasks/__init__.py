"""Task lifecycle: storage, dispatch, rate limits and completion."""

from __future__ import annotations

from shepherd.tasks.completion import CompletionDetector, MarkerFileCheck
from shepherd.tasks.dispatch import (
    TaskDispatcher,
    build_assignment_message,
    build_resume_message,
    collect_artifacts,
    project_name_for,
    project_slug,
)
from shepherd.tasks.engine import TaskEngine, TaskEvent, TaskEventKind, TaskListener
from shepherd.tasks.observation import appended_text, strip_echo
from shepherd.tasks.ratelimit import RateLimitDetector
from shepherd.tasks.store import InMemoryTaskStore, JsonFileTaskStore, TaskStore

__all__ = [
    "CompletionDetector",
    "InMemoryTaskStore",
    "JsonFileTaskStore",
    "MarkerFileCheck",
    "RateLimitDetector",
    "TaskDispatcher",
    "TaskEngine",
    "TaskEvent",
    "TaskEventKind",
    "TaskListener",
    "TaskStore",
    "appended_text",
    "build_assignment_message",
    "build_resume_message",
    "collect_artifacts",
    "project_name_for",
    "project_slug",
    "strip_echo",
]
