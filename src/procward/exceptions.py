"""Custom exceptions for procward.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into two categories:

PID File Errors (callers decide):
    - PidFileNotFoundError: No PID file recorded for an instance
    - PidFileCorruptError: PID file content is not a process id

Fatal Failures (supervisor must abort):
    - SupervisorFatalError: Base for configuration/environment failures
    - AlreadyRunningError: Instance is already running
    - PidFilePermissionError: PID file or its directory cannot be written
    - IdentityNotFoundError: Configured user or group does not exist
    - PrivilegeChangeError: Switching user/group was refused by the OS
    - UnsupportedPlatformError: Platform cannot fork or detach
    - ProcessAccessDenied: Liveness of a recorded process cannot be determined
    - RootDirectoryError: Server root directory is not accessible
    - PortUnavailableError: Listening port is already bound
    - ConfigurationError: Configuration is invalid

Recoverable kill-path failures are not exceptions; they are classified by
procward.supervisor.errors.ErrorKind and reported as KillResult values.

Usage:
    from procward.exceptions import AlreadyRunningError, SupervisorFatalError
"""

from __future__ import annotations

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "IdentityNotFoundError",
    "PidFileCorruptError",
    "PidFileNotFoundError",
    "PidFilePermissionError",
    "PortUnavailableError",
    "PrivilegeChangeError",
    "ProcessAccessDenied",
    "RootDirectoryError",
    "SupervisorFatalError",
    "UnsupportedPlatformError",
]

from pathlib import Path


# =============================================================================
# PID File Errors
# =============================================================================


class PidFileNotFoundError(FileNotFoundError):
    """No PID file exists for the instance.

    Subclasses FileNotFoundError so OS-level classification treats it as a
    missing file.

    Attributes:
        path: The PID file path that was looked up.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(f"No PID file at {path}")
        self.path = path


class PidFileCorruptError(ValueError):
    """PID file exists but does not contain a process id.

    Attributes:
        path: The PID file path.
        content: The raw (stripped) file content.
    """

    def __init__(self, path: Path, content: str) -> None:
        super().__init__(f"PID file {path} does not contain a process id: {content!r}")
        self.path = path
        self.content = content


# =============================================================================
# Fatal Failures (supervisor must abort)
# =============================================================================


class SupervisorFatalError(Exception):
    """Base exception for failures that make continued operation meaningless.

    These represent configuration or environment errors. They are never
    retried: the CLI logs them and exits with exit_code.

    Attributes:
        exit_code: Process exit code.
        failure_type: Category string for logging.
    """

    exit_code: int = 1
    failure_type: str = "fatal"


class AlreadyRunningError(SupervisorFatalError):
    """An instance is already running on the requested port.

    Attributes:
        instance_id: The port or instance token.
        pid: Process id recorded in the PID file.
        pid_file: Path of the PID file naming the live process.
    """

    exit_code = 2
    failure_type = "already_running"

    def __init__(self, instance_id: int | str, pid: int, pid_file: Path) -> None:
        super().__init__(
            f"Server is already running on port {instance_id}.\n"
            f"   pid file: {pid_file}, process id is {pid}."
        )
        self.instance_id = instance_id
        self.pid = pid
        self.pid_file = pid_file


class PidFilePermissionError(SupervisorFatalError):
    """PID file or its parent directory cannot be created or written.

    Attributes:
        path: The path that was denied.
    """

    exit_code = 3
    failure_type = "pid_file_permission"

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message)
        self.path = path


class IdentityNotFoundError(SupervisorFatalError):
    """Configured user or group is missing from the system identity database.

    Attributes:
        kind: "user" or "group".
        name: The name that failed to resolve.
    """

    exit_code = 4
    failure_type = "identity_not_found"

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"You tried to use {kind} {name}, but no such {kind} was found")
        self.kind = kind
        self.name = name


class PrivilegeChangeError(SupervisorFatalError):
    """The OS refused to switch the process user/group."""

    exit_code = 5
    failure_type = "privilege_change"


class UnsupportedPlatformError(SupervisorFatalError):
    """The platform lacks fork/session semantics needed for daemonizing."""

    exit_code = 6
    failure_type = "unsupported_platform"


class ProcessAccessDenied(SupervisorFatalError):
    """A recorded process exists but belongs to another identity.

    Liveness cannot be determined, so the supervisor must not proceed.

    Attributes:
        pid_file: Path of the PID file that was probed.
    """

    exit_code = 7
    failure_type = "process_access_denied"

    def __init__(self, message: str, pid_file: Path) -> None:
        super().__init__(message)
        self.pid_file = pid_file


class RootDirectoryError(SupervisorFatalError):
    """Configured server root cannot be entered by the detached process."""

    exit_code = 8
    failure_type = "root_directory"


class ConfigurationError(SupervisorFatalError):
    """Configuration is invalid or incomplete.

    Raised when:
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    - A required collaborator (adapter, app) cannot be resolved
    """

    exit_code = 9
    failure_type = "configuration"


class PortUnavailableError(SupervisorFatalError):
    """The adapter could not bind its listening port.

    Attributes:
        port: The port that was requested.
    """

    exit_code = 10
    failure_type = "port_unavailable"

    def __init__(self, message: str, port: int) -> None:
        super().__init__(message)
        self.port = port
