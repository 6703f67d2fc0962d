"""Result type returned by :class:`~shepherd.runners.command.CommandRunner`."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["CommandResult"]


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one tmux (or other) command invocation.

    Attributes:
        returncode: Process exit status. 127 means the binary is missing and
            -1 means the command was killed on timeout.
        stdout: Decoded standard output (pane text for ``capture-pane``).
        stderr: Decoded standard error.
        duration_ms: Wall time from spawn to exit.
        timed_out: Set when the runner gave up waiting.
    """

    returncode: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return not self.timed_out and self.returncode == 0

    @property
    def failure_detail(self) -> str:
        """Trimmed stderr, or the exit status when stderr is empty."""
        return self.stderr.strip() or f"exit code {self.returncode}"
