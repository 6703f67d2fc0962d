"""Async subprocess execution."""

from __future__ import annotations

from shepherd.runners.command import CommandRunner
from shepherd.runners.models import CommandResult

__all__ = ["CommandRunner", "CommandResult"]
