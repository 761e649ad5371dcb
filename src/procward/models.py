"""Pydantic models for the supervisor.

This module contains two categories of models:

Value Models (FrozenModel-based):
- FrozenModel: Base class for immutable models
- PidRecord: A PID file path and the pid it stores
- Identity: Resolved uid/gid target for privilege dropping
- KillResult: Outcome of one kill attempt

Logging Models:
- SupervisorEvent: System log entries for the supervisor
"""

from __future__ import annotations

__all__ = [
    # Value Models
    "FrozenModel",
    "Identity",
    "KillOutcome",
    "KillResult",
    "PidRecord",
    # Logging Models
    "SupervisorEvent",
]

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Value Models
# =============================================================================


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models.

    All value models in this module inherit from this class to ensure
    immutability after creation.
    """

    model_config = ConfigDict(frozen=True)


class PidRecord(FrozenModel):
    """A PID file and the process id it currently stores.

    Attributes:
        path: Location of the PID file.
        pid: Process id read from the file.
    """

    path: Path
    pid: int


class Identity(FrozenModel):
    """Resolved target identity for a privilege drop.

    Attributes:
        user: User name the uid was resolved from.
        group: Group name the gid was resolved from.
        uid: Target user id.
        gid: Target group id.
    """

    user: str
    group: str
    uid: int
    gid: int


class KillOutcome(str, Enum):
    """Result category of a single kill attempt."""

    SIGNALED = "signaled"
    INVALID_SIGNAL = "invalid_signal"
    PERMISSION_DENIED = "permission_denied"
    NO_SUCH_PROCESS = "no_such_process"
    PID_FILE_MISSING = "pid_file_missing"
    FAILED = "failed"


class KillResult(FrozenModel):
    """Outcome of signaling one instance.

    Attributes:
        target: Instance id the caller asked for.
        pid_file: PID file that was read.
        pid: Process id from the file (None if it could not be read).
        signal: Signal name that was sent.
        outcome: What happened.
        message: Human-readable detail.
    """

    target: str
    pid_file: Path
    pid: int | None = None
    signal: str
    outcome: KillOutcome
    message: str = ""

    @property
    def ok(self) -> bool:
        """True if the target is gone or was signaled.

        A vanished process counts as success: the goal was reached.
        """
        return self.outcome in (
            KillOutcome.SIGNALED,
            KillOutcome.NO_SUCH_PROCESS,
            KillOutcome.PID_FILE_MISSING,
        )


# =============================================================================
# Logging Models
# =============================================================================


class SupervisorEvent(BaseModel):
    """System log entry for the supervisor.

    Serialized with exclude_none so each entry only carries relevant fields.
    """

    event: str = Field(
        ...,
        description="Machine-friendly event name, e.g. 'pid_stored', 'daemonizing'",
    )
    message: Optional[str] = Field(
        None,
        description="Human-readable description of the event",
    )

    # --- instance context ---
    instance_id: Optional[str] = Field(
        None,
        description="Port or instance token, e.g. '4000' or 'main'",
    )
    pid: Optional[int] = Field(
        None,
        description="Process id involved in the event",
    )
    pid_file: Optional[str] = Field(
        None,
        description="PID file path involved in the event",
    )
    signal: Optional[str] = Field(
        None,
        description="Signal name, e.g. 'INT', 'TERM'",
    )

    # --- error details ---
    error_type: Optional[str] = Field(
        None,
        description="Exception class name, e.g. 'PermissionError'",
    )
    error_message: Optional[str] = Field(
        None,
        description="Short error text from exception",
    )

    # --- additional structured details ---
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional context as key-value pairs",
    )

    model_config = ConfigDict(extra="allow")
