"""Start command for procward CLI.

Starts a server in the foreground, daemonized, or as a cluster.
"""

from __future__ import annotations

__all__ = ["start"]

from pathlib import Path

import click

from procward.constants import MASTER_INSTANCE_ID
from procward.exceptions import SupervisorFatalError
from procward.supervisor import ServerSupervisor

from ..options import config_option, exit_with_fatal, load_cli_config
from ..styling import style_label, style_success


@click.command()
@click.argument("port", type=click.IntRange(1, 65535))
@click.option("--cluster", "-n", type=click.IntRange(min=1), default=None, help="Run N instances on PORT, PORT+1, ...")
@click.option("--daemonize/--foreground", default=None, help="Detach from the terminal (default: config value)")
@config_option
@click.option("--pid-file", default=None, help="PID file template containing %s, e.g. /var/run/app.%s.pid")
@click.option("--user", "-u", default=None, help="User to run as after binding the port")
@click.option("--group", "-g", default=None, help="Group to run as (default: same as --user)")
@click.option(
    "--root",
    "root_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Working directory of the daemon",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for PID files and the supervisor log",
)
@click.option("--app", "-a", default=None, help="ASGI application, e.g. myproject.asgi:app")
@click.option("--bootstrap", default=None, help="Callable run before serving, e.g. myproject.boot:run")
@click.option("--interactive", "-i", is_flag=True, help="Open a Python console on Ctrl+C")
@click.option("--verbose", "-V", is_flag=True, help="Print progress and debug output")
def start(
    port: int,
    cluster: int | None,
    daemonize: bool | None,
    config_path: Path | None,
    pid_file: str | None,
    user: str | None,
    group: str | None,
    root_dir: Path | None,
    log_dir: Path | None,
    app: str | None,
    bootstrap: str | None,
    interactive: bool,
    verbose: bool,
) -> None:
    """Start a server on PORT.

    In the foreground the command blocks until the server stops.
    With --daemonize it returns once the server is detached.
    """
    try:
        config = load_cli_config(
            config_path,
            {
                "port": port,
                "cluster": cluster,
                "daemonize": daemonize,
                "pid_file": pid_file,
                "user": user,
                "group": group,
                "root_dir": root_dir,
                "log_dir": log_dir,
                "app": app,
                "bootstrap": bootstrap,
                "interactive": interactive or None,
                "verbose": verbose or None,
            },
        )
        supervisor = ServerSupervisor(config)

        if not config.daemonize:
            click.echo(style_label("Starting server in foreground"))
            click.echo(f"  Port: {_port_range(config.port, config.cluster)}")
            click.echo(f"  PID file: {supervisor.pid_file(_instance_id(config.port, config.cluster))}")
            click.echo()
            click.echo("Send TERM (or Ctrl+C) to stop")

        supervisor.start(config.port, config.cluster)
    except SupervisorFatalError as e:
        exit_with_fatal(e)

    # Only the launching process gets here in daemonized mode
    if config.daemonize:
        instance_id = _instance_id(config.port, config.cluster)
        click.echo(style_success(f"Server daemonized on port {_port_range(config.port, config.cluster)}"))
        click.echo(f"  PID file: {supervisor.pid_file(instance_id)}")
        click.echo()
        click.echo(f"To stop: procward kill {'all' if config.cluster else config.port}")


def _instance_id(port: int, cluster: int | None) -> int | str:
    return MASTER_INSTANCE_ID if cluster else port


def _port_range(port: int, cluster: int | None) -> str:
    if cluster and cluster > 1:
        return f"{port}-{port + cluster - 1}"
    return str(port)
