from __future__ import annotations

import contextlib
from collections.abc import Generator

import click

from shepherd.cli.context import ExitCode
from shepherd.cli.output import format_error
from shepherd.exceptions import ConfigError, ShepherdError, TaskError
from shepherd.logging import get_logger

__all__ = ["cli_error_handler"]


@contextlib.contextmanager
def cli_error_handler() -> Generator[None, None, None]:
    """Map errors raised by command bodies to messages and exit codes.

    - KeyboardInterrupt: exit with code 130
    - TaskError: task id and message, exit 1
    - ConfigError: field and value details, exit 1
    - ShepherdError: message, exit 1
    - anything else: logged with traceback, exit 1
    """
    logger = get_logger(__name__)

    try:
        yield
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user.", err=True)
        raise SystemExit(ExitCode.INTERRUPTED) from None
    except TaskError as e:
        suggestion = (
            "Run 'shepherd tasks list' to see task ids"
            if e.task_id and "not found" in e.message
            else None
        )
        click.echo(format_error(e.message, suggestion=suggestion), err=True)
        raise SystemExit(ExitCode.FAILURE) from e
    except ConfigError as e:
        click.echo(format_error(e.message, details=e.details), err=True)
        raise SystemExit(ExitCode.FAILURE) from e
    except ShepherdError as e:
        click.echo(format_error(e.message), err=True)
        raise SystemExit(ExitCode.FAILURE) from e
    except Exception as e:
        logger.exception("command_failed")
        click.echo(f"Error: {e!s}", err=True)
        raise SystemExit(ExitCode.FAILURE) from e
