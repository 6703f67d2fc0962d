from __future__ import annotations

from pathlib import Path

from shepherd.exceptions.base import ShepherdError


class PersistenceError(ShepherdError):
    """Reading from or writing to the task store failed.

    Attributes:
        message: Human-readable error message.
        path: Backing file of the store, when there is one.
    """

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        """Initialize the PersistenceError.

        Args:
            message: Human-readable error message.
            path: Backing file of the store.
        """
        self.path = path
        super().__init__(message)
