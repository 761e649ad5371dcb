"""Process lifecycle supervision.

The supervisor:
- Records each running instance in a PID file (server.<port>.pid)
- Detaches instances from the terminal when daemonizing
- Routes OS signals to shutdown (TERM) and the optional console (INT)
- Drops privileges once the listening port is bound
- Delivers signals to recorded instances (kill)

Lifecycle:
- Started via `procward start PORT` (optionally --cluster N, --daemonize)
- Stopped via `procward kill PORT` or `procward kill all`
"""

from __future__ import annotations

from .adapters import UvicornAdapter, load_object
from .cluster import ClusterMaster, WorkerPool
from .daemonizer import get_daemonizer
from .errors import ErrorKind, InvalidSignalError, classify_error
from .log_config import configure_supervisor_logging, log_event, log_fatal
from .pidfile import PidFileStore
from .privileges import PrivilegeDropper
from .probe import ProcessProbe
from .server import ServerSupervisor
from .signals import get_signal_dispatcher, resolve_signal

__all__ = [
    "ClusterMaster",
    "ErrorKind",
    "InvalidSignalError",
    "PidFileStore",
    "PrivilegeDropper",
    "ProcessProbe",
    "ServerSupervisor",
    "UvicornAdapter",
    "WorkerPool",
    "classify_error",
    "configure_supervisor_logging",
    "get_daemonizer",
    "get_signal_dispatcher",
    "load_object",
    "log_event",
    "log_fatal",
    "resolve_signal",
]
