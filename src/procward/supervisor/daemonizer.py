"""Detach a server instance from the controlling terminal.

ForkDaemonizer uses the double-fork pattern: the first child becomes a
session leader and forks again, so the daemon can never reacquire a
controlling terminal. Platforms without fork/setsid get
UnsupportedDaemonizer, which refuses instead of running in the
foreground.
"""

from __future__ import annotations

__all__ = [
    "Daemonizer",
    "ForkDaemonizer",
    "UnsupportedDaemonizer",
    "get_daemonizer",
]

import atexit
import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from procward.exceptions import RootDirectoryError, SupervisorFatalError, UnsupportedPlatformError
from procward.models import SupervisorEvent

from .log_config import log_event, log_fatal


@runtime_checkable
class Daemonizer(Protocol):
    """Protocol for detaching an instance.

    daemonize() returns in the invoking process once the daemon is
    launched. In the daemon it calls run() and never returns.
    """

    def daemonize(
        self,
        instance_id: int | str,
        run: Callable[[], object],
        on_exit: Callable[[], object],
    ) -> None: ...


class ForkDaemonizer:
    """Double-fork daemonizer for POSIX systems.

    Attributes:
        root_dir: Working directory of the daemon.
        log_target: File receiving stdout/stderr (None = /dev/null).
    """

    def __init__(self, root_dir: Path, log_target: Path | None = None) -> None:
        self.root_dir = Path(root_dir)
        self.log_target = log_target

    def daemonize(
        self,
        instance_id: int | str,
        run: Callable[[], object],
        on_exit: Callable[[], object],
    ) -> None:
        """Launch run() in a detached process.

        Args:
            instance_id: Instance being detached (for logging).
            run: Startup path executed inside the daemon.
            on_exit: Finalizer registered with atexit inside the daemon.

        Raises:
            RootDirectoryError: In the daemon, if root_dir is not accessible.
        """
        # Flush so buffered output is not written twice by the children
        sys.stdout.flush()
        sys.stderr.flush()

        pid = os.fork()
        if pid > 0:
            # Intermediate child exits right after its own fork
            os.waitpid(pid, 0)
            return

        os.setsid()
        if os.fork() > 0:
            os._exit(0)

        status = 0
        try:
            self._detach()
            # Streams point away from the terminal from here on
            log_event(
                logging.INFO,
                SupervisorEvent(
                    event="daemon_started",
                    message=f"Daemon for {instance_id} running in {os.getpid()}",
                    instance_id=str(instance_id),
                    pid=os.getpid(),
                ),
            )
            atexit.register(on_exit)
            run()
        except SupervisorFatalError as e:
            log_fatal(e)
            status = e.exit_code
        sys.exit(status)

    def _detach(self) -> None:
        os.umask(0)
        self._redirect_streams()
        try:
            os.chdir(self.root_dir)
        except OSError as e:
            raise RootDirectoryError(
                f"You specified {self.root_dir} as the server root, but you did not have access to it: {e}"
            ) from e

    def _redirect_streams(self) -> None:
        with open(os.devnull, "r") as devnull:
            os.dup2(devnull.fileno(), sys.stdin.fileno())

        target = str(self.log_target) if self.log_target is not None else os.devnull
        with open(target, "a") as out:
            os.dup2(out.fileno(), sys.stdout.fileno())
            os.dup2(out.fileno(), sys.stderr.fileno())


class UnsupportedDaemonizer:
    """Daemonizer for platforms without fork/session support."""

    def daemonize(
        self,
        instance_id: int | str,
        run: Callable[[], object],
        on_exit: Callable[[], object],
    ) -> None:
        """Always fails.

        Raises:
            UnsupportedPlatformError: Always.
        """
        raise UnsupportedPlatformError("Daemonized mode is not supported on your platform")


def get_daemonizer(root_dir: Path, log_target: Path | None = None) -> Daemonizer:
    """Pick the daemonizer for the running platform."""
    if hasattr(os, "fork") and hasattr(os, "setsid"):
        return ForkDaemonizer(root_dir, log_target)
    return UnsupportedDaemonizer()
