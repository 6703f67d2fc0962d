"""Session driver protocol.

The monitoring and task subsystems depend only on this two-operation
capability: read a session's visible text and type into it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from shepherd.models import SessionTarget

__all__ = ["SessionDriver"]


@runtime_checkable
class SessionDriver(Protocol):
    """Read from and write to interactive sessions.

    Implementations raise :class:`~shepherd.exceptions.CaptureError` (or a
    subclass) when a capture fails and
    :class:`~shepherd.exceptions.SessionInputError` when input cannot be
    delivered. Timeouts are imposed by the caller.
    """

    async def capture(self, target: SessionTarget) -> str:
        """Return the currently visible text of ``target``."""
        ...

    async def send_input(
        self, target: SessionTarget, text: str, *, submit: bool = True
    ) -> None:
        """Type ``text`` literally into ``target``, pressing Enter if ``submit``."""
        ...
