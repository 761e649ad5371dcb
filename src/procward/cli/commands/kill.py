"""Kill command for procward CLI.

Sends a signal to a server instance or to a whole cluster.
"""

from __future__ import annotations

__all__ = ["kill"]

import sys
from pathlib import Path

import click

from procward.constants import DEFAULT_KILL_SIGNAL
from procward.exceptions import SupervisorFatalError
from procward.supervisor import ServerSupervisor

from ..options import config_option, exit_with_fatal, load_cli_config
from ..styling import style_success, style_warning


@click.command()
@click.argument("target")
@click.argument("sig", metavar="[SIGNAL]", default=DEFAULT_KILL_SIGNAL)
@config_option
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the PID files",
)
@click.option("--pid-file", default=None, help="PID file template containing %s")
def kill(
    target: str,
    sig: str,
    config_path: Path | None,
    log_dir: Path | None,
    pid_file: str | None,
) -> None:
    """Send SIGNAL (default INT) to the server on TARGET.

    TARGET is a port, or one of main/master/all for a cluster. INT to a
    cluster goes to the master only, which stops its workers; any other
    signal goes to every recorded instance.

    Exits non-zero only if no target could be reached.
    """
    try:
        config = load_cli_config(config_path, {"log_dir": log_dir, "pid_file": pid_file})
    except SupervisorFatalError as e:
        exit_with_fatal(e)

    results = ServerSupervisor(config).kill(target, sig)

    if not results:
        click.echo(style_warning(f"No PID files found for {target}"))
        sys.exit(0)

    # Failures were already reported on stderr by the supervisor log
    for result in results:
        if result.ok:
            click.echo(style_success(result.message))

    sys.exit(0 if any(result.ok for result in results) else 1)
