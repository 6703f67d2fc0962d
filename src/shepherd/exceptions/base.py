from __future__ import annotations


class ShepherdError(Exception):
    """Base exception class for all Shepherd-specific errors.

    Catching ``ShepherdError`` at the CLI boundary handles every domain failure
    while letting programming errors propagate.

    Attributes:
        message: Human-readable error message describing what went wrong.

    Example:
        ```python
        try:
            await engine.retry_task(task_id)
        except ShepherdError as e:
            err_console.print(f"Error: {e.message}")
        ```
    """

    def __init__(self, message: str) -> None:
        """Initialize the ShepherdError.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)
