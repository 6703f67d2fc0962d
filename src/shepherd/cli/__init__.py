"""Command-line interface for Shepherd.

Context, exit codes, consoles and output helpers shared by the commands.
"""

from __future__ import annotations

from shepherd.cli.context import CLIContext, ExitCode, async_command, get_cli_context

__all__ = [
    "CLIContext",
    "ExitCode",
    "async_command",
    "get_cli_context",
]
