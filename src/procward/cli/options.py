"""Shared option handling for procward commands.

Every command resolves its configuration the same way: JSON config file
first, then the command line options that were actually given.
"""

from __future__ import annotations

__all__ = [
    "config_option",
    "exit_with_fatal",
    "load_cli_config",
]

import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from procward.config import ServerConfig, load_server_config
from procward.exceptions import SupervisorFatalError
from procward.supervisor.log_config import configure_supervisor_logging, log_fatal

from .styling import style_error

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON config file (CLI options take precedence)",
)


def load_cli_config(config_path: Path | None, overrides: dict[str, Any]) -> ServerConfig:
    """Load the config file, apply CLI overrides and set up logging.

    Args:
        config_path: Optional JSON config file.
        overrides: Option values; None means "not given".

    Returns:
        The effective configuration.

    Raises:
        ConfigurationError: If the file or the merged values are invalid.
    """
    config = load_server_config(config_path).merged(overrides)
    configure_supervisor_logging(config)
    return config


def exit_with_fatal(error: SupervisorFatalError) -> NoReturn:
    """Log a fatal error, print it and exit with its exit code."""
    log_fatal(error, console=False)
    click.echo(style_error(str(error)), err=True)
    sys.exit(error.exit_code)
