"""Liveness probe for processes recorded in PID files.

Uses signal 0, which checks existence and permission without
delivering anything to the target.
"""

from __future__ import annotations

__all__ = ["ProcessProbe"]

import logging
import os
from pathlib import Path

from procward.exceptions import PidFileCorruptError, PidFileNotFoundError, ProcessAccessDenied
from procward.models import SupervisorEvent

from .errors import ErrorKind, classify_error
from .log_config import log_event
from .pidfile import PidFileStore


class ProcessProbe:
    """Determines whether the process behind a PID file is alive."""

    def __init__(self, store: PidFileStore) -> None:
        self.store = store

    def is_alive(self, instance_id: int | str) -> bool:
        """Check if the instance's recorded process exists.

        A missing or unreadable PID file and a vanished process all mean
        "not alive"; stale files are expected after crashes.

        Raises:
            ProcessAccessDenied: If the process exists but cannot be
                signaled by this user.
        """
        path = self.store.path(instance_id)
        try:
            pid = self.store.read(instance_id)
        except PidFileNotFoundError:
            return False
        except PidFileCorruptError as e:
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="pid_file_corrupt",
                    message=str(e),
                    instance_id=str(instance_id),
                    pid_file=str(path),
                ),
            )
            return False
        return self.pid_alive(pid, path)

    def pid_alive(self, pid: int, pid_file: Path) -> bool:
        """Probe a pid with signal 0.

        Args:
            pid: Process id to probe.
            pid_file: PID file the pid came from (for error messages).

        Raises:
            ProcessAccessDenied: If permission to signal pid is denied.
        """
        try:
            os.kill(pid, 0)
        except OSError as e:
            kind = classify_error(e)
            if kind is ErrorKind.NO_SUCH_PROCESS or kind is ErrorKind.NOT_FOUND:
                return False
            if kind is ErrorKind.PERMISSION_DENIED:
                raise ProcessAccessDenied(
                    f"You don't have access to the process in the PID file at {pid_file}: {e}",
                    pid_file,
                ) from e
            raise
        return True
