"""Supervisor logging configuration.

Owns the supervisor logger configuration (handlers, formatters).
Other supervisor modules log through log_event(); the logger is a
singleton by name:
    _logger = logging.getLogger(f"{APP_NAME}.supervisor")
"""

from __future__ import annotations

__all__ = [
    "configure_supervisor_logging",
    "get_supervisor_log_path",
    "log_event",
    "log_fatal",
]

import logging
from pathlib import Path

from procward.config import ServerConfig
from procward.constants import APP_NAME
from procward.exceptions import SupervisorFatalError
from procward.models import SupervisorEvent
from procward.utils.logging.formatters import ConsoleFormatter, ISO8601Formatter

# Get module logger - initially with stderr only
# File handler added via configure_supervisor_logging() after config is loaded
_logger = logging.getLogger(f"{APP_NAME}.supervisor")
_logger.setLevel(logging.DEBUG)
_logger.propagate = False

# Track which log file is attached
_configured_log_path: Path | None = None


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(ConsoleFormatter())
    # Records the caller already printed itself carry console=False
    handler.addFilter(lambda record: getattr(record, "console", True))
    return handler


# Initialize with stderr-only until config is loaded
if not _logger.handlers:
    _logger.addHandler(_stderr_handler(logging.INFO))


def get_supervisor_log_path(config: ServerConfig) -> Path:
    """Get full path to the supervisor system log.

    Args:
        config: Server configuration.

    Returns:
        Path: <log_dir>/supervisor.jsonl
    """
    return config.log_dir / "supervisor.jsonl"


def configure_supervisor_logging(config: ServerConfig) -> None:
    """Configure supervisor logging with file handler.

    Sets up:
    - stderr handler: INFO+ (DEBUG+ when verbose)
    - file handler: config.log_level and above, JSONL

    Calling again with the same log path is a no-op.

    Args:
        config: Server configuration with log directory and level.
    """
    global _configured_log_path

    log_path = get_supervisor_log_path(config)
    if _configured_log_path == log_path:
        return

    # Close and clear any existing handlers to avoid resource leaks
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()

    _logger.addHandler(_stderr_handler(logging.DEBUG if config.verbose else logging.INFO))

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as e:
        # stderr will still work
        log_event(
            logging.WARNING,
            SupervisorEvent(
                event="file_logging_failed",
                message=f"Failed to configure file logging at {log_path}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return

    file_handler.setLevel(getattr(logging, config.log_level))
    file_handler.setFormatter(ISO8601Formatter())
    _logger.addHandler(file_handler)
    _configured_log_path = log_path


def log_event(level: int, event: SupervisorEvent, *, console: bool = True) -> None:
    """Log a SupervisorEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
        console: False keeps the entry out of stderr (file log only).
    """
    _logger.log(level, event.model_dump(exclude_none=True, mode="json"), extra={"console": console})


def log_fatal(error: SupervisorFatalError, *, console: bool = True) -> None:
    """Log a fatal supervisor error at CRITICAL level.

    Args:
        error: The fatal error about to terminate the process.
        console: False when the caller prints its own diagnostic.
    """
    log_event(
        logging.CRITICAL,
        SupervisorEvent(
            event=error.failure_type,
            message=str(error),
            error_type=type(error).__name__,
            details={"exit_code": error.exit_code},
        ),
        console=console,
    )
