from __future__ import annotations

from shepherd.exceptions.base import ShepherdError


class TaskError(ShepherdError):
    """Base exception for task lifecycle failures.

    Attributes:
        message: Human-readable error message.
        task_id: Task the failure relates to.
    """

    def __init__(self, message: str, task_id: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message)


class TaskNotFoundError(TaskError):
    """No task with the given id exists in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", task_id=task_id)


class TaskTransitionError(TaskError):
    """A requested status change is not allowed from the task's current status.

    Attributes:
        current: Status the task is in.
        target: Status that was requested.
    """

    def __init__(self, task_id: str, current: str, target: str) -> None:
        """Initialize the TaskTransitionError.

        Args:
            task_id: Task that was asked to change.
            current: Status the task is in.
            target: Status that was requested.
        """
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move task {task_id} from {current} to {target}",
            task_id=task_id,
        )
