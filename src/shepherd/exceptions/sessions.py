from __future__ import annotations

from collections.abc import Mapping

from shepherd.exceptions.base import ShepherdError


class CaptureError(ShepherdError):
    """Capturing a session's visible output failed.

    Attributes:
        message: Human-readable error message.
        session_id: Session whose capture failed, if known.
    """

    def __init__(self, message: str, session_id: str | None = None) -> None:
        """Initialize the CaptureError.

        Args:
            message: Human-readable error message.
            session_id: Session whose capture failed.
        """
        self.session_id = session_id
        super().__init__(message)


class CaptureTimeoutError(CaptureError):
    """Capture did not finish within its timeout.

    Attributes:
        timeout_seconds: The timeout that was exceeded.
    """

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, session_id=session_id)


class SessionNotFoundError(CaptureError):
    """The addressed session or pane does not exist."""


class AggregateCaptureFailure(ShepherdError):
    """Every monitored session failed to capture in the same tick.

    This usually means the multiplexer itself is unavailable rather than any
    single session being broken.

    Attributes:
        failures: Mapping of session id to the capture error it raised.
    """

    def __init__(self, message: str, failures: Mapping[str, CaptureError]) -> None:
        """Initialize the AggregateCaptureFailure.

        Args:
            message: Human-readable error message.
            failures: Per-session capture errors.
        """
        self.failures = dict(failures)
        super().__init__(message)


class SessionInputError(ShepherdError):
    """Delivering input to a session failed.

    Attributes:
        message: Human-readable error message.
        session_id: Session the input was meant for.
    """

    def __init__(self, message: str, session_id: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(message)
