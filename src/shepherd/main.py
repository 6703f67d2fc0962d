"""``shepherd`` console script."""

from __future__ import annotations

from pathlib import Path

import click
from dotenv import load_dotenv

# SHEPHERD_* values from .env must be visible to load_config
load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

from shepherd import __version__  # noqa: E402
from shepherd.cli.commands.run import run  # noqa: E402
from shepherd.cli.commands.status import status  # noqa: E402
from shepherd.cli.commands.tasks import tasks  # noqa: E402
from shepherd.cli.common import cli_error_handler  # noqa: E402
from shepherd.cli.context import CLIContext  # noqa: E402
from shepherd.config import load_config  # noqa: E402
from shepherd.logging import configure_logging  # noqa: E402


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="shepherd")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Project config file to use instead of ./shepherd.yaml.",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Log more (-v INFO, -vv DEBUG).",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Log errors only. Overrides -v.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Path | None,
    verbose: int,
    quiet: bool,
) -> None:
    """Shepherd - monitor agent sessions and drive their task queue."""
    with cli_error_handler():
        config = load_config(config_file)

    cli_ctx = CLIContext(
        config=config,
        config_path=config_file,
        verbosity=verbose,
        quiet=quiet,
    )
    ctx.ensure_object(dict)["cli_ctx"] = cli_ctx
    configure_logging(level=cli_ctx.log_level)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


for command in (run, status, tasks):
    cli.add_command(command)

if __name__ == "__main__":
    cli()
