"""Cluster mode: a master process with one forked worker per port.

The master records itself under the "main" instance id and forks one
worker per port (base_port, base_port + 1, ...). Each worker records its
own PID file and boots a server. SIGINT or SIGTERM to the master reaps
every worker and removes all their PID files before the master exits,
which is why `procward kill all INT` only needs to signal the master.
"""

from __future__ import annotations

__all__ = [
    "ClusterMaster",
    "WorkerPool",
]

import logging
import os
import signal
import sys
import time
from collections.abc import Callable
from typing import NoReturn

from procward.constants import MASTER_INSTANCE_ID, WORKER_STOP_TIMEOUT_SECONDS
from procward.exceptions import SupervisorFatalError
from procward.models import SupervisorEvent

from .log_config import log_event, log_fatal
from .pidfile import PidFileStore
from .signals import SignalDispatcher

# Interval between non-blocking waitpid polls while stopping (seconds)
REAP_POLL_INTERVAL_SECONDS = 0.1


class WorkerPool:
    """Tracks forked workers and reaps them on shutdown.

    Implements the WorkerReaper protocol.

    Attributes:
        master_id: Instance id of the master that owns the pool. Its PID
            file is removed on reaping; None for a pool without a master.
    """

    def __init__(
        self,
        store: PidFileStore,
        stop_timeout: float = WORKER_STOP_TIMEOUT_SECONDS,
        master_id: str | None = None,
    ) -> None:
        self.store = store
        self.stop_timeout = stop_timeout
        self.master_id = master_id
        self.workers: dict[int, int | str] = {}

    def add(self, pid: int, instance_id: int | str) -> None:
        self.workers[pid] = instance_id

    def discard(self, pid: int) -> int | str | None:
        return self.workers.pop(pid, None)

    def reap_workers(self, status: int = 0) -> NoReturn:
        """Terminate all workers, remove their PID files, exit with status.

        The master PID file goes too when the pool belongs to a master.

        Workers get SIGTERM and stop_timeout seconds to exit; stragglers
        get SIGKILL.
        """
        instances = list(self.workers.values())
        log_event(
            logging.INFO,
            SupervisorEvent(
                event="reaping_workers",
                message=f"Stopping {len(instances)} worker(s)",
                details={"workers": [str(i) for i in instances], "status": status},
            ),
        )

        self._signal_all(signal.SIGTERM)
        self._wait_all(self.stop_timeout)

        if self.workers:
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="workers_killed",
                    message=f"{len(self.workers)} worker(s) did not stop in {self.stop_timeout}s, sending KILL",
                    details={"pids": list(self.workers)},
                ),
            )
            self._signal_all(signal.SIGKILL)
            self._wait_all(self.stop_timeout)

        for instance_id in instances:
            self.store.remove(instance_id)
        if self.master_id is not None:
            self.store.remove(self.master_id)
        sys.exit(status)

    def _signal_all(self, sig: signal.Signals) -> None:
        for pid in list(self.workers):
            try:
                os.kill(pid, sig)
            except ProcessLookupError:
                self.workers.pop(pid, None)

    def _wait_all(self, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while self.workers:
            for pid in list(self.workers):
                try:
                    done, _ = os.waitpid(pid, os.WNOHANG)
                except ChildProcessError:
                    done = pid
                if done:
                    self.workers.pop(pid, None)
            if not self.workers or time.monotonic() >= deadline:
                return
            time.sleep(REAP_POLL_INTERVAL_SECONDS)


class ClusterMaster:
    """Master process of a cluster.

    Attributes:
        store: PID file store shared with workers.
        pool: Workers forked by this master.
    """

    def __init__(
        self,
        store: PidFileStore,
        dispatcher: SignalDispatcher,
        start_worker: Callable[[int], object],
        pool: WorkerPool | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.pool = pool or WorkerPool(store)
        self.pool.master_id = MASTER_INSTANCE_ID
        self._start_worker = start_worker

    def run(self, base_port: int, count: int) -> NoReturn:
        """Fork count workers on sequential ports and supervise them."""
        self.store.store(MASTER_INSTANCE_ID)
        self.dispatcher.trap("TERM", self.pool.reap_workers)
        self.dispatcher.trap("INT", self.pool.reap_workers)

        log_event(
            logging.INFO,
            SupervisorEvent(
                event="cluster_starting",
                message=f"Starting {count} worker(s) on ports {base_port}-{base_port + count - 1}",
                instance_id=MASTER_INSTANCE_ID,
                pid=os.getpid(),
            ),
        )
        try:
            for offset in range(count):
                self.spawn(base_port + offset)
            self.wait()
        finally:
            self.store.remove(MASTER_INSTANCE_ID)
        sys.exit(0)

    def spawn(self, port: int) -> int:
        """Fork one worker bound to port.

        Returns:
            Worker pid (in the master; the worker never returns).
        """
        sys.stdout.flush()
        sys.stderr.flush()

        pid = os.fork()
        if pid == 0:
            self._run_worker(port)

        self.pool.add(pid, port)
        log_event(
            logging.INFO,
            SupervisorEvent(
                event="worker_started",
                message=f"Worker for port {port} started as {pid}",
                instance_id=str(port),
                pid=pid,
            ),
        )
        return pid

    def wait(self) -> None:
        """Block until every worker has exited, logging unexpected exits."""
        while self.pool.workers:
            try:
                pid, wait_status = os.wait()
            except ChildProcessError:
                break
            instance_id = self.pool.discard(pid)
            if instance_id is None:
                continue
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="worker_exited",
                    message=f"Worker for port {instance_id} exited",
                    instance_id=str(instance_id),
                    pid=pid,
                    details={"exit_code": os.waitstatus_to_exitcode(wait_status)},
                ),
            )
            self.store.remove(instance_id)

    def _run_worker(self, port: int) -> NoReturn:
        # The worker must never unwind into the master's frames
        self.dispatcher.reset()
        self.pool.workers.clear()
        status = 1
        try:
            self._start_worker(port)
            status = 0
        except SystemExit as e:
            status = e.code if isinstance(e.code, int) else 0
        except SupervisorFatalError as e:
            log_fatal(e)
            status = e.exit_code
        except Exception as e:
            log_event(
                logging.CRITICAL,
                SupervisorEvent(
                    event="worker_crashed",
                    message=f"Worker for port {port} crashed: {e}",
                    instance_id=str(port),
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
        finally:
            self.store.remove(port)
            sys.stdout.flush()
            sys.stderr.flush()
            os._exit(status)
