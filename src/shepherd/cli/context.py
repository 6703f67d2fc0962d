"""Shared state for Click commands and the sync-to-async bridge."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, TypeVar

import click

from shepherd.config import ShepherdConfig

__all__ = [
    "ExitCode",
    "CLIContext",
    "async_command",
    "get_cli_context",
]

_CONFIG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class ExitCode(IntEnum):
    """Process exit status of ``shepherd`` commands.

    INTERRUPTED is 128 + SIGINT, as shells report Ctrl-C.
    """

    SUCCESS = 0
    FAILURE = 1
    INTERRUPTED = 130


@dataclass(frozen=True, slots=True)
class CLIContext:
    """What the root group resolved before any subcommand runs.

    Attributes:
        config: Merged settings (defaults, user file, project file, env).
        config_path: File passed with ``--config``, if any.
        verbosity: Number of ``-v`` flags.
        quiet: ``-q`` was given.
    """

    config: ShepherdConfig
    config_path: Path | None = None
    verbosity: int = 0
    quiet: bool = False

    @property
    def log_level(self) -> int:
        """Root log level: ``-q`` wins over ``-v``, which wins over config."""
        if self.quiet:
            return logging.ERROR
        if self.verbosity:
            return logging.INFO if self.verbosity == 1 else logging.DEBUG
        return _CONFIG_LEVELS.get(self.config.verbosity, logging.WARNING)


def get_cli_context(ctx: click.Context) -> CLIContext:
    """Return the :class:`CLIContext` stored by the root group."""
    return ctx.find_root().obj["cli_ctx"]


F = TypeVar("F", bound=Callable[..., Any])


def async_command(f: F) -> F:
    """Run a coroutine function to completion on a fresh event loop.

    Example:
        >>> @async_command
        ... async def _status(config: ShepherdConfig) -> None:
        ...     await JsonFileTaskStore(config.store.path).list_tasks()
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return wrapper  # type: ignore[return-value]
