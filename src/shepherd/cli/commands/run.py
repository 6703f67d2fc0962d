"""``shepherd run`` command."""

from __future__ import annotations

import asyncio

import click

from shepherd.cli.common import cli_error_handler
from shepherd.cli.console import console, err_console
from shepherd.cli.context import async_command, get_cli_context
from shepherd.cli.output import format_status_update, format_task_event
from shepherd.config import ShepherdConfig
from shepherd.models import StatusUpdate
from shepherd.supervisor import Supervisor
from shepherd.tasks import TaskEvent


def _print_status(session_id: str, update: StatusUpdate) -> None:
    console.print(format_status_update(session_id, update))


def _print_task_event(event: TaskEvent) -> None:
    console.print(format_task_event(event))


@click.command()
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single monitoring tick and queue pass, then exit.",
)
@click.pass_context
def run(ctx: click.Context, once: bool) -> None:
    """Monitor sessions and dispatch queued tasks until interrupted.

    Examples:
        shepherd run
        shepherd run --once
    """
    config = get_cli_context(ctx).config
    with cli_error_handler():
        _run(config, once)


@async_command
async def _run(config: ShepherdConfig, once: bool) -> None:
    supervisor = Supervisor.from_config(config)
    supervisor.scheduler.subscribe(_print_status)
    supervisor.engine.subscribe(_print_task_event)

    if once:
        await supervisor.run_once()
        stats = supervisor.stats()
        console.print(
            f"Checked {len(supervisor.scheduler.targets)} session(s) "
            f"in {stats.average_check_duration_ms:.0f} ms"
        )
        return

    await supervisor.start()
    err_console.print(
        f"Monitoring {len(supervisor.scheduler.targets)} session(s). "
        "Press Ctrl-C to stop."
    )
    try:
        await asyncio.Event().wait()
    finally:
        await supervisor.stop()
