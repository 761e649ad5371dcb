"""Server configuration for procward.

Defines the typed configuration the supervisor consumes. Config is read
from a JSON file and may be overridden by CLI options.

Example usage:
    # Load from config file (defaults if the file does not exist)
    config = load_server_config(Path("procward.json"))

    # Apply CLI overrides (re-validated)
    config = config.merged({"daemonize": True, "port": 4000})
"""

from __future__ import annotations

__all__ = [
    "ServerConfig",
    "load_server_config",
]

import json
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from procward.constants import (
    APP_NAME,
    DEFAULT_HOST,
    DEFAULT_LOG_DIR,
    DEFAULT_PORT,
    PID_FILE_PLACEHOLDER,
)
from procward.exceptions import ConfigurationError

_logger = logging.getLogger(f"{APP_NAME}.config")


class ServerConfig(BaseModel):
    """Supervisor configuration.

    Attributes:
        port: Port of the (first) server instance.
        host: Interface the adapter binds to.
        daemonize: Detach from the terminal and run in the background.
        cluster: Number of instances on sequential ports (None = single).
        pid_file: PID file path template with a "%s" placeholder for the
            instance id. None uses <log_dir>/server.<id>.pid.
        user: User to switch to after binding.
        group: Group to switch to after binding (defaults to user).
        root_dir: Working directory of the detached server.
        log_dir: Directory for PID files and supervisor logs.
        log_level: Threshold for the persistent log file.
        verbose: Print progress and log at debug level on the console.
        fork_for_class_load: Shut down through the worker reaper.
        interactive: Install the interactive console on SIGINT.
        app: Import string of the ASGI app served by the default adapter.
        adapter: Import string of a custom adapter factory.
        bootstrap: Import string of a bootstrap callable run before serving.
    """

    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Port of the first server instance",
    )
    host: str = Field(
        default=DEFAULT_HOST,
        min_length=1,
        description="Interface the adapter binds to",
    )
    daemonize: bool = Field(
        default=False,
        description="Run detached from the controlling terminal",
    )
    cluster: int | None = Field(
        default=None,
        ge=1,
        description="Number of instances bound to port, port+1, ...",
    )
    pid_file: str | None = Field(
        default=None,
        min_length=1,
        description="PID file path template, e.g. /var/run/app.%s.pid",
    )
    user: str | None = Field(default=None, min_length=1)
    group: str | None = Field(default=None, min_length=1)
    root_dir: Path = Field(
        default_factory=Path.cwd,
        description="Working directory of the detached server",
    )
    log_dir: Path = Field(
        default=Path(DEFAULT_LOG_DIR),
        description="Directory for PID files and supervisor logs",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING"] = Field(
        default="WARNING",
        description="Threshold for the persistent log file",
    )
    verbose: bool = False
    fork_for_class_load: bool = False
    interactive: bool = False
    app: str | None = Field(
        default=None,
        description="ASGI app import string, e.g. 'myproject.asgi:app'",
    )
    adapter: str | None = Field(
        default=None,
        description="Adapter factory import string",
    )
    bootstrap: str | None = Field(
        default=None,
        description="Bootstrap callable import string",
    )

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("pid_file")
    @classmethod
    def _pid_file_has_placeholder(cls, value: str | None) -> str | None:
        if value is not None and PID_FILE_PLACEHOLDER not in value:
            raise ValueError(f"pid_file template must contain '{PID_FILE_PLACEHOLDER}'")
        return value

    @field_validator("root_dir", "log_dir")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return Path(value).expanduser()

    def merged(self, overrides: dict[str, Any]) -> ServerConfig:
        """Return a copy with overrides applied and re-validated.

        None values are ignored so unset CLI options keep file values.

        Raises:
            ConfigurationError: If the merged values fail validation.
        """
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return ServerConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid option: {e}") from e

    def with_port(self, port: int) -> ServerConfig:
        """Return a copy with the port fixed (used by detached instances)."""
        return self.model_copy(update={"port": port})

    def to_options(self) -> dict[str, Any]:
        """Plain dict handed to the adapter's start call."""
        return self.model_dump(mode="json")


def load_server_config(config_path: Path | None) -> ServerConfig:
    """Load server configuration from a JSON file.

    A missing path (or None) yields the default configuration.

    Args:
        config_path: Path to the JSON config file.

    Returns:
        ServerConfig: Loaded or default configuration.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid JSON,
            or fails validation.
    """
    if config_path is None or not config_path.exists():
        if config_path is not None:
            _logger.debug(
                {
                    "event": "config_not_found",
                    "message": f"No config at {config_path}, using defaults",
                    "details": {"config_path": str(config_path)},
                }
            )
        return ServerConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        # Covers all file I/O errors including PermissionError (subclass of OSError)
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config in {config_path} must be a JSON object")

    try:
        return ServerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {config_path}: {e}") from e
