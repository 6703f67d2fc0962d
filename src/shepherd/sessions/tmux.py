"""tmux-backed session driver."""

from __future__ import annotations

from shepherd.exceptions import (
    CaptureError,
    CaptureTimeoutError,
    SessionInputError,
    SessionNotFoundError,
)
from shepherd.logging import get_logger
from shepherd.models import SessionTarget
from shepherd.runners import CommandResult, CommandRunner

__all__ = ["TmuxSessionDriver"]

logger = get_logger(__name__)

#: stderr fragments tmux prints when the target does not exist
_MISSING_TARGET_MARKERS = (
    "can't find",
    "no server running",
    "session not found",
    "no such session",
)


class TmuxSessionDriver:
    """Capture panes and send keys through the ``tmux`` binary.

    Example:
        ```python
        driver = TmuxSessionDriver()
        text = await driver.capture(SessionTarget("worker1", "multiagent:0.1"))
        await driver.send_input(SessionTarget("president", "president"), "/clear")
        ```
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        tmux_binary: str = "tmux",
        scrollback_lines: int | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Initialize the driver.

        Args:
            runner: Command runner used to invoke tmux.
            tmux_binary: tmux executable name or path.
            scrollback_lines: History lines to include above the visible pane.
            timeout: Per-command timeout in seconds.
        """
        self._runner = runner or CommandRunner(timeout=timeout)
        self._tmux = tmux_binary
        self._scrollback_lines = scrollback_lines
        self._timeout = timeout

    async def capture(self, target: SessionTarget) -> str:
        """Return the pane text of ``target``.

        Raises:
            SessionNotFoundError: If tmux reports that the target does not exist.
            CaptureError: For any other tmux failure.
        """
        command = [self._tmux, "capture-pane", "-p", "-t", target.target]
        if self._scrollback_lines:
            command.extend(["-S", f"-{self._scrollback_lines}"])

        result = await self._runner.run(command, timeout=self._timeout)
        if not result.success:
            raise self._capture_error(target, result)
        return result.stdout

    async def send_input(
        self, target: SessionTarget, text: str, *, submit: bool = True
    ) -> None:
        """Type ``text`` into ``target`` without key-name interpretation.

        Raises:
            SessionInputError: If tmux rejects either keystroke command.
        """
        if text:
            await self._send_keys(target, ["-l", text])
        if submit:
            await self._send_keys(target, ["Enter"])
        logger.debug(
            "session_input_sent",
            session_id=target.session_id,
            chars=len(text),
            submit=submit,
        )

    async def _send_keys(self, target: SessionTarget, keys: list[str]) -> None:
        command = [self._tmux, "send-keys", "-t", target.target, *keys]
        result = await self._runner.run(command, timeout=self._timeout)
        if not result.success:
            raise SessionInputError(
                f"tmux send-keys to {target.target} failed: {result.failure_detail}",
                session_id=target.session_id,
            )

    def _capture_error(
        self, target: SessionTarget, result: CommandResult
    ) -> CaptureError:
        if result.timed_out:
            return CaptureTimeoutError(
                f"tmux capture of {target.target} timed out",
                session_id=target.session_id,
                timeout_seconds=self._timeout,
            )
        detail = result.failure_detail
        if result.returncode == 127:
            return CaptureError(
                f"tmux is not available: {detail}", session_id=target.session_id
            )
        lowered = detail.lower()
        if any(marker in lowered for marker in _MISSING_TARGET_MARKERS):
            return SessionNotFoundError(
                f"tmux target {target.target} not found: {detail}",
                session_id=target.session_id,
            )
        return CaptureError(
            f"tmux capture of {target.target} failed: {detail}",
            session_id=target.session_id,
        )
