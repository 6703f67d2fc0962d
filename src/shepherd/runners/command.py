"""Async subprocess execution.

:class:`CommandRunner` runs an external command (no shell) with a timeout and
returns a :class:`~shepherd.runners.models.CommandResult`. The tmux session
driver is built on it.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from typing import TYPE_CHECKING

from shepherd.logging import get_logger
from shepherd.runners.models import CommandResult

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ["CommandRunner"]

logger = get_logger(__name__)

#: Seconds between SIGTERM and SIGKILL when a command times out
TERMINATION_GRACE_PERIOD: float = 2.0


class CommandRunner:
    """Spawn short-lived commands such as ``tmux capture-pane``.

    Example:
        >>> runner = CommandRunner(timeout=5.0, env={"TMUX_TMPDIR": "/run/tmux"})
        >>> result = await runner.run(["tmux", "list-sessions"])
        >>> result.stdout if result.success else result.failure_detail
    """

    def __init__(
        self,
        timeout: float | None = 30.0,
        env: dict[str, str] | None = None,
    ) -> None:
        """Set defaults applied to every :meth:`run` call.

        Args:
            timeout: Seconds each command may run, or None to wait forever.
            env: Variables layered over the inherited environment.
        """
        self._default_timeout = timeout
        self._env_overrides = dict(env or {})

    @property
    def timeout(self) -> float | None:
        return self._default_timeout

    async def run(
        self,
        command: Sequence[str],
        *,
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> CommandResult:
        """Run ``command`` once and collect its output.

        A missing executable is reported as returncode 127 rather than raised,
        and a timeout as ``timed_out=True`` with returncode -1.

        Args:
            command: Command and arguments (no shell expansion).
            timeout: Override the default timeout. 0 or negative disables it.
            input_text: Text written to the command's stdin.

        Returns:
            The collected result. Never raises for command failures.
        """
        effective_timeout = self._default_timeout if timeout is None else timeout
        if effective_timeout is not None and effective_timeout <= 0:
            effective_timeout = None

        env = {**os.environ, **self._env_overrides}

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE if input_text is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError:
            return CommandResult(
                returncode=127,
                stdout="",
                stderr=f"Command not found: {command[0]}",
                duration_ms=self._elapsed_ms(start),
            )
        except PermissionError:
            return CommandResult(
                returncode=126,
                stdout="",
                stderr=f"Permission denied: {command[0]}",
                duration_ms=self._elapsed_ms(start),
            )

        stdin_bytes = input_text.encode("utf-8") if input_text is not None else None
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(stdin_bytes), timeout=effective_timeout
            )
        except TimeoutError:
            await self._terminate(process)
            logger.warning(
                "command_timed_out",
                command=command[0],
                timeout_seconds=effective_timeout,
            )
            return CommandResult(
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {effective_timeout}s",
                duration_ms=self._elapsed_ms(start),
                timed_out=True,
            )

        return CommandResult(
            returncode=process.returncode or 0,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            duration_ms=self._elapsed_ms(start),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL after the grace period."""
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATION_GRACE_PERIOD)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
