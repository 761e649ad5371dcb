"""Main CLI entry point for procward.

Defines the CLI group and registers all subcommands.

Commands:
    kill      - Send a signal to a server or cluster
    start     - Start a server (foreground, daemonized or cluster)
    status    - Show recorded instances and liveness

Subcommand help:
    procward COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from procward import __version__

from .commands.kill import kill
from .commands.start import start
from .commands.status import status


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Examples:
  procward start 4000 --app myproject.asgi:app          Serve in the foreground
  procward start 4000 --app myproject.asgi:app --daemonize --user www
  procward start 4000 --cluster 4 --daemonize           Master + 4 workers on 4000-4003
  procward kill 4000                                    Send INT to one instance
  procward kill all                                     Stop a cluster (via its master)
  procward kill all KILL                                Signal every recorded instance

PID files:
  <log-dir>/server.<port>.pid, server.main.pid for a cluster master
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """procward: process lifecycle supervisor for long-running servers."""
    if version:
        click.echo(f"procward {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(kill)
cli.add_command(start)
cli.add_command(status)


def main() -> None:
    """CLI entry point."""
    cli()
