"""``shepherd status`` command."""

from __future__ import annotations

import click

from shepherd.cli.common import cli_error_handler
from shepherd.cli.console import console
from shepherd.cli.context import async_command, get_cli_context
from shepherd.cli.output import format_json, format_rate_limit, format_task_counts
from shepherd.config import ShepherdConfig
from shepherd.tasks import JsonFileTaskStore


@click.command()
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format.",
)
@click.pass_context
def status(ctx: click.Context, fmt: str) -> None:
    """Show the rate-limit state and task counts.

    Examples:
        shepherd status
        shepherd status --format json
    """
    config = get_cli_context(ctx).config
    with cli_error_handler():
        _status(config, fmt)


@async_command
async def _status(config: ShepherdConfig, fmt: str) -> None:
    store = JsonFileTaskStore(config.store.path)
    rate_limit = await store.get_rate_limit_state()
    counts: dict[str, int] = {}
    for task in await store.list_tasks():
        counts[task.status.value] = counts.get(task.status.value, 0) + 1

    if fmt == "json":
        click.echo(
            format_json(
                {
                    "store": str(config.store.path),
                    "rate_limit": rate_limit.model_dump(mode="json"),
                    "tasks": counts,
                }
            )
        )
        return

    console.print(format_rate_limit(rate_limit))
    console.print(format_task_counts(counts))
