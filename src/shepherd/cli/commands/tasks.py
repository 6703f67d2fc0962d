"""``shepherd tasks`` command group."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import click
from rich.table import Table

from shepherd.cli.common import cli_error_handler
from shepherd.cli.console import console
from shepherd.cli.context import async_command, get_cli_context
from shepherd.cli.output import format_success
from shepherd.models import Task, TaskStatus
from shepherd.supervisor import Supervisor
from shepherd.tasks import TaskEngine

_STATUS_STYLES: dict[TaskStatus, str] = {
    TaskStatus.PENDING: "cyan",
    TaskStatus.IN_PROGRESS: "green",
    TaskStatus.PAUSED: "yellow",
    TaskStatus.COMPLETED: "dim",
    TaskStatus.FAILED: "bold red",
    TaskStatus.CANCELLED: "dim",
}

_STATUS_CHOICE = click.Choice([s.value for s in TaskStatus])


def _engine(ctx: click.Context) -> TaskEngine:
    return Supervisor.from_config(get_cli_context(ctx).config).engine


def _build_table(tasks: list[Task]) -> Table:
    table = Table(title="Tasks", show_lines=False)
    for header in ("ID", "Title", "Status", "Assigned", "Retries", "Updated"):
        table.add_column(header)
    for task in tasks:
        style = _STATUS_STYLES.get(task.status, "")
        table.add_row(
            task.id,
            task.title,
            f"[{style}]{task.status.value}[/{style}]",
            task.assigned_to or "-",
            str(task.retry_count),
            f"{task.updated_at:%Y-%m-%d %H:%M}",
        )
    return table


@click.group(invoke_without_command=True)
@click.pass_context
def tasks(ctx: click.Context) -> None:
    """Submit and manage tasks."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@tasks.command("list")
@click.option("-s", "--status", "status", type=_STATUS_CHOICE, default=None)
@click.pass_context
def list_tasks(ctx: click.Context, status: str | None) -> None:
    """List tasks, oldest first."""
    with cli_error_handler():
        found = _call(_engine(ctx).list_tasks, TaskStatus(status) if status else None)
    if not found:
        console.print("No tasks.")
        return
    console.print(_build_table(found))


@tasks.command()
@click.argument("title")
@click.option("-d", "--description", default="", help="Full task description.")
@click.option("-p", "--project", default=None, help="Workspace directory name.")
@click.pass_context
def submit(
    ctx: click.Context, title: str, description: str, project: str | None
) -> None:
    """Queue a new task.

    Examples:
        shepherd tasks submit "Build a TODO app" -d "Single page, local storage"
    """
    with cli_error_handler():
        task = _call(_engine(ctx).submit, title, description, project)
        console.print(format_success(f"Submitted task {task.id}"))


@tasks.command()
@click.argument("task_id")
@click.pass_context
def retry(ctx: click.Context, task_id: str) -> None:
    """Return a failed task to the queue."""
    with cli_error_handler():
        task = _call(_engine(ctx).retry_task, task_id)
        console.print(
            format_success(f"Task {task.id} queued again (retry {task.retry_count})")
        )


@tasks.command()
@click.argument("task_id")
@click.option("-r", "--reason", default=None, help="Why the task is cancelled.")
@click.pass_context
def cancel(ctx: click.Context, task_id: str, reason: str | None) -> None:
    """Cancel a task."""
    with cli_error_handler():
        task = _call(_engine(ctx).cancel_task, task_id, reason)
        console.print(format_success(f"Task {task.id} cancelled"))


@tasks.command()
@click.argument("task_id")
@click.option("-r", "--reason", required=True, help="Why the task failed.")
@click.pass_context
def fail(ctx: click.Context, task_id: str, reason: str) -> None:
    """Mark a task failed."""
    with cli_error_handler():
        task = _call(_engine(ctx).fail_task, task_id, reason)
        console.print(
            format_success(
                f"Task {task.id} failed ({len(task.error_history)} failure(s) recorded)"
            )
        )


@tasks.command()
@click.argument("task_id")
@click.argument("status", type=_STATUS_CHOICE)
@click.option("-r", "--reason", default=None, help="Why the status is overridden.")
@click.pass_context
def override(
    ctx: click.Context, task_id: str, status: str, reason: str | None
) -> None:
    """Force a task into STATUS, bypassing transition rules."""
    with cli_error_handler():
        task = _call(_engine(ctx).override_status, task_id, TaskStatus(status), reason)
        console.print(format_success(f"Task {task.id} set to {task.status.value}"))


@async_command
async def _call(operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    return await operation(*args)
