"""Status command for procward CLI.

Lists recorded PID files and whether their processes are alive.
"""

from __future__ import annotations

__all__ = ["status"]

import json
import sys
from pathlib import Path
from typing import Any

import click

from procward.exceptions import (
    PidFileCorruptError,
    PidFileNotFoundError,
    ProcessAccessDenied,
    SupervisorFatalError,
)
from procward.supervisor import ServerSupervisor

from ..options import config_option, exit_with_fatal, load_cli_config
from ..styling import style_dim, style_label, style_success, style_warning


@click.command()
@config_option
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the PID files",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(config_path: Path | None, log_dir: Path | None, as_json: bool) -> None:
    """Show recorded instances and their liveness."""
    try:
        config = load_cli_config(config_path, {"log_dir": log_dir})
    except SupervisorFatalError as e:
        exit_with_fatal(e)

    supervisor = ServerSupervisor(config)
    instances = [_describe(supervisor, path) for path in supervisor.pid_files()]

    if as_json:
        click.echo(json.dumps({"instances": instances}, indent=2))
        sys.exit(0)

    click.echo(style_label("PID files") + f" {len(instances)}")
    if not instances:
        click.echo(style_dim(f"  No PID files in {config.log_dir}"))
        return

    for info in instances:
        line = f"  {info['instance_id']} (pid: {info['pid']}) {info['pid_file']}"
        if info["state"] == "running":
            click.echo(style_success(line.strip()))
        else:
            click.echo(style_warning(f"{line.strip()} [{info['state']}]"))


def _describe(supervisor: ServerSupervisor, path: Path) -> dict[str, Any]:
    instance_id = supervisor.store.instance_id_for(path)
    try:
        pid: int | None = supervisor.store.read_path(path)
    except (PidFileNotFoundError, PidFileCorruptError):
        pid = None

    if pid is None:
        state = "unreadable"
    else:
        try:
            state = "running" if supervisor.probe.pid_alive(pid, path) else "stale"
        except ProcessAccessDenied:
            state = "access denied"
    return {
        "instance_id": instance_id,
        "pid": pid,
        "pid_file": str(path),
        "state": state,
    }
