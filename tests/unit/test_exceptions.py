"""Unit tests for the exception hierarchy."""

from __future__ import annotations

from pathlib import Path

import pytest

from shepherd.exceptions import (
    AggregateCaptureFailure,
    CaptureError,
    CaptureTimeoutError,
    ClassificationError,
    ConfigError,
    PersistenceError,
    SessionInputError,
    SessionNotFoundError,
    ShepherdError,
    TaskError,
    TaskNotFoundError,
    TaskTransitionError,
)


@pytest.mark.parametrize(
    "error",
    [
        CaptureError("capture failed"),
        CaptureTimeoutError("slow", timeout_seconds=5.0),
        SessionNotFoundError("gone"),
        AggregateCaptureFailure("all failed", {}),
        SessionInputError("rejected"),
        ClassificationError("bad text"),
        ConfigError("bad config"),
        PersistenceError("disk full"),
        TaskNotFoundError("task-1"),
        TaskTransitionError("task-1", "pending", "completed"),
    ],
)
def test_every_error_is_a_shepherd_error(error: ShepherdError) -> None:
    assert isinstance(error, ShepherdError)
    assert str(error) == error.message


class TestCaptureErrors:
    """Tests for session capture errors."""

    def test_session_id(self) -> None:
        error = CaptureError("cannot reach worker1", session_id="worker1")

        assert error.session_id == "worker1"

    def test_timeout_and_not_found_are_capture_errors(self) -> None:
        timeout = CaptureTimeoutError("slow", session_id="w1", timeout_seconds=5.0)

        assert isinstance(timeout, CaptureError)
        assert timeout.timeout_seconds == 5.0
        assert isinstance(SessionNotFoundError("gone"), CaptureError)

    def test_aggregate_keeps_copy_of_failures(self) -> None:
        failures = {"worker1": CaptureError("down", session_id="worker1")}

        error = AggregateCaptureFailure("All 1 sessions failed", failures)
        failures.clear()

        assert list(error.failures) == ["worker1"]
        assert not isinstance(error, CaptureError)


class TestTaskErrors:
    """Tests for task lifecycle errors."""

    def test_not_found(self) -> None:
        error = TaskNotFoundError("abc123")

        assert isinstance(error, TaskError)
        assert error.task_id == "abc123"
        assert error.message == "Task not found: abc123"

    def test_transition(self) -> None:
        error = TaskTransitionError("abc123", "completed", "in_progress")

        assert error.current == "completed"
        assert error.target == "in_progress"
        assert error.message == "Cannot move task abc123 from completed to in_progress"


class TestOtherErrors:
    """Tests for config and persistence errors."""

    def test_config_error_fields(self) -> None:
        error = ConfigError("Invalid", field="monitoring.max_retries", value=0)

        assert error.field == "monitoring.max_retries"
        assert error.value == 0
        assert error.details == ["Field: monitoring.max_retries", "Value: 0"]

    def test_config_error_without_field_has_no_details(self) -> None:
        assert ConfigError("Empty file").details == []

    def test_persistence_error_path(self) -> None:
        error = PersistenceError("Cannot write", path=Path("tasks.json"))

        assert error.path == Path("tasks.json")
