from __future__ import annotations

from shepherd.exceptions.base import ShepherdError


class ClassificationError(ShepherdError):
    """Activity classification of captured text failed.

    Attributes:
        message: Human-readable error message.
        session_id: Session whose output was being classified, if known.
    """

    def __init__(self, message: str, session_id: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(message)
