"""Shared Rich Console instances for Shepherd CLI output.

Rich switches to plain text automatically when output is piped.
"""

from __future__ import annotations

from rich.console import Console

__all__ = ["console", "err_console"]

console = Console()
err_console = Console(stderr=True)
