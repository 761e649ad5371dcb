"""Server supervisor: start, bootup, shutdown and kill.

Orchestrates the PID file store, liveness probe, daemonizer, signal
dispatcher and privilege drop around an adapter that does the actual
serving.

Startup flow:
    start(port)
      -> daemonize? (refuse if alive, remove stale PID file, detach)
      -> bootup(): trap TERM, store PID, bootstrap, adapter.start()
         with the privilege drop called right after the port is bound

Kill flow (independent of start):
    kill(target, sig)
      -> PID file(s) for target -> kill_pid() per file -> KillResult
"""

from __future__ import annotations

__all__ = ["ServerSupervisor"]

import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

from procward.config import ServerConfig
from procward.constants import (
    CLUSTER_INSTANCE_IDS,
    DEFAULT_KILL_SIGNAL,
    GRACEFUL_SIGNAL,
    MASTER_INSTANCE_ID,
)
from procward.exceptions import AlreadyRunningError, PidFileCorruptError, PidFileNotFoundError
from procward.models import KillOutcome, KillResult, SupervisorEvent

from .adapters import Adapter, BootLoader, WorkerReaper, build_adapter, build_bootloader
from .cluster import ClusterMaster, WorkerPool
from .daemonizer import Daemonizer, get_daemonizer
from .errors import ErrorKind, InvalidSignalError, classify_error
from .log_config import log_event
from .pidfile import PidFileStore
from .privileges import PrivilegeDropper
from .privileges import change_privilege as change_process_privilege
from .probe import ProcessProbe
from .signals import SignalDispatcher, get_signal_dispatcher, resolve_signal, signal_name


class ServerSupervisor:
    """Lifecycle manager for one server instance or a cluster master.

    Collaborators default to the real implementations and can be injected
    for testing. The adapter, bootstrap and daemonizer are created lazily
    so that kill and status never import or bind anything.

    Attributes:
        config: Active configuration (port fixed once start() runs).
        store: PID file store.
        probe: Liveness probe.
        dispatcher: Process-wide signal dispatcher.
        worker_reaper: Called by shutdown() when fork_for_class_load is set.
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        adapter: Adapter | None = None,
        bootloader: BootLoader | None = None,
        worker_reaper: WorkerReaper | None = None,
        daemonizer: Daemonizer | None = None,
        dispatcher: SignalDispatcher | None = None,
        store: PidFileStore | None = None,
        probe: ProcessProbe | None = None,
        dropper: PrivilegeDropper | None = None,
    ) -> None:
        self.config = config
        self.store = store or PidFileStore.from_config(config)
        self.probe = probe or ProcessProbe(self.store)
        self.dispatcher = dispatcher or get_signal_dispatcher()
        self.dropper = dropper or PrivilegeDropper()
        self.worker_reaper: WorkerReaper = worker_reaper or WorkerPool(self.store)
        self._adapter = adapter
        self._bootloader = bootloader
        self._daemonizer = daemonizer

    # =========================================================================
    # Lazy collaborators
    # =========================================================================

    @property
    def adapter(self) -> Adapter:
        if self._adapter is None:
            self._adapter = build_adapter(self.config)
        return self._adapter

    @property
    def bootloader(self) -> BootLoader:
        if self._bootloader is None:
            self._bootloader = build_bootloader(self.config)
        return self._bootloader

    @property
    def daemonizer(self) -> Daemonizer:
        if self._daemonizer is None:
            self._daemonizer = get_daemonizer(self.config.root_dir)
        return self._daemonizer

    # =========================================================================
    # Startup
    # =========================================================================

    def start(self, port: int | None = None, cluster: int | None = None) -> None:
        """Start a server in foreground, daemonized or cluster mode.

        Args:
            port: Port of the (first) instance. Defaults to config.port.
            cluster: Number of instances on port, port+1, ... Defaults to
                config.cluster; None runs a single instance.

        Raises:
            AlreadyRunningError: If daemonizing and the instance is alive.
            ProcessAccessDenied: If liveness cannot be determined.
            UnsupportedPlatformError: If daemonizing is not possible here.
        """
        port = port if port is not None else self.config.port
        cluster = cluster if cluster is not None else self.config.cluster
        self.config = self.config.with_port(port)

        if cluster:
            self._start_cluster(port, cluster)
            return

        if self.config.daemonize:
            self._detach(port, run=self.bootup)
        else:
            self.bootup()

    def bootup(self) -> None:
        """Boot the framework and serve on config.port until shutdown.

        The PID file is removed when serving ends, however it ends.
        """
        port = self.config.port
        self.dispatcher.trap("TERM", self.shutdown)
        if self.config.interactive and not self.config.daemonize:
            self.dispatcher.enable_console({"supervisor": self, "config": self.config})

        self.store_pid(port)
        try:
            self._verbose("Running bootloaders...")
            self.bootloader.run()
            self._verbose("Starting adapter...")
            self.adapter.start(self.config.to_options(), after_bind=self.change_privilege)
        finally:
            self.remove_pid(port)

    def shutdown(self, status: int = 0) -> NoReturn:
        """Exit the process, reaping workers first if configured."""
        log_event(
            logging.INFO,
            SupervisorEvent(
                event="shutdown",
                message=f"Shutting down with status {status}",
                instance_id=str(self.config.port),
                pid=os.getpid(),
            ),
        )
        if self.config.fork_for_class_load:
            # reap_workers exits; this is the only path when configured
            self.worker_reaper.reap_workers(status)
        sys.exit(status)

    def _detach(self, instance_id: int | str, run: Callable[[], object]) -> None:
        if self.alive(instance_id):
            path = self.pid_file(instance_id)
            try:
                pid = self.store.read_path(path)
            except (PidFileNotFoundError, PidFileCorruptError):
                # Exited between the probe and the read
                pid = None
            if pid is not None:
                raise AlreadyRunningError(instance_id, pid, path)

        self.remove_pid_file(instance_id)
        self._verbose("Daemonizing...")
        self.daemonizer.daemonize(
            instance_id,
            run=run,
            on_exit=lambda: self.remove_pid_file(instance_id),
        )

    def _start_cluster(self, port: int, count: int) -> None:
        if self.config.daemonize:
            self._detach(MASTER_INSTANCE_ID, run=lambda: self._run_master(port, count))
        else:
            self._run_master(port, count)

    def _run_master(self, port: int, count: int) -> NoReturn:
        pool = self.worker_reaper if isinstance(self.worker_reaper, WorkerPool) else None
        master = ClusterMaster(self.store, self.dispatcher, start_worker=self._boot_worker, pool=pool)
        self.worker_reaper = master.pool
        master.run(port, count)

    def _boot_worker(self, port: int) -> None:
        worker_config = self.config.model_copy(
            update={
                "port": port,
                "cluster": None,
                "daemonize": False,
                "interactive": False,
                "fork_for_class_load": False,
            }
        )
        worker = ServerSupervisor(
            worker_config,
            adapter=self._adapter,
            bootloader=self._bootloader,
            dispatcher=self.dispatcher,
            store=self.store,
            probe=self.probe,
            dropper=self.dropper,
        )
        worker.bootup()

    # =========================================================================
    # Kill
    # =========================================================================

    def kill(self, target: int | str, sig: int | str = DEFAULT_KILL_SIGNAL) -> list[KillResult]:
        """Send a signal to an instance or to the whole cluster.

        Args:
            target: A port, or "main"/"master"/"all" for the cluster. With
                INT only the master is signaled (it reaps its workers);
                any other signal goes to every recorded PID file.
            sig: Signal name or number.

        Returns:
            One KillResult per PID file attempted. Never raises for
            recoverable failures.
        """
        label = self._signal_label(sig)
        target_id = str(target)

        if target_id not in CLUSTER_INSTANCE_IDS:
            return [self.kill_pid(sig, self.pid_file(target_id), target=target_id)]

        if label == GRACEFUL_SIGNAL:
            files = [self.pid_file(MASTER_INSTANCE_ID)]
        else:
            # The cluster size is unknown here, so a template is expanded in full
            files = self.store.list_all(self.config.port, every=True)
        return [self.kill_pid(sig, path, target=self.store.instance_id_for(path)) for path in files]

    def kill_pid(self, sig: int | str, pid_file: Path, target: str | None = None) -> KillResult:
        """Signal the process recorded in pid_file.

        The PID file is removed after a successful signal and when the
        process no longer exists.

        Args:
            sig: Signal name or number.
            pid_file: PID file naming the process.
            target: Instance id reported in the result.

        Returns:
            KillResult describing what happened.
        """
        target = target if target is not None else self.store.instance_id_for(pid_file)
        label = self._signal_label(sig)
        pid: int | None = None

        try:
            signum = resolve_signal(sig)
            pid = self.store.read_path(pid_file)
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="killing",
                    message=f"Killing pid {pid} with {label}",
                    instance_id=target,
                    pid=pid,
                    pid_file=str(pid_file),
                    signal=label,
                ),
            )
            os.kill(pid, signum)
        except Exception as e:
            return self._kill_failed(e, target, pid_file, pid, label)

        self._unlink(pid_file)
        return KillResult(
            target=target,
            pid_file=pid_file,
            pid=pid,
            signal=label,
            outcome=KillOutcome.SIGNALED,
            message=f"Sent {label} to pid {pid}",
        )

    def _kill_failed(
        self,
        error: Exception,
        target: str,
        pid_file: Path,
        pid: int | None,
        label: str,
    ) -> KillResult:
        kind = classify_error(error)
        if kind is ErrorKind.INVALID_SIGNAL:
            outcome = KillOutcome.INVALID_SIGNAL
            message = f"Failed to kill PID {pid} with {label}: '{label}' is an invalid or unsupported signal number."
        elif kind is ErrorKind.PERMISSION_DENIED:
            outcome = KillOutcome.PERMISSION_DENIED
            message = f"Failed to kill PID {pid} with {label}: Insufficient permissions."
        elif kind is ErrorKind.NO_SUCH_PROCESS:
            self._unlink(pid_file)
            outcome = KillOutcome.NO_SUCH_PROCESS
            message = f"Failed to kill PID {pid} with {label}: Process is deceased or zombie."
        elif kind is ErrorKind.NOT_FOUND:
            outcome = KillOutcome.PID_FILE_MISSING
            message = (
                f"Could not find a PID file at {pid_file}. "
                "Probably process is no longer running but pid file wasn't cleaned up."
            )
        else:
            outcome = KillOutcome.FAILED
            message = f"Failed to kill PID {pid!r} with {label!r}: {error}"

        log_event(
            logging.CRITICAL,
            SupervisorEvent(
                event="kill_failed",
                message=message,
                instance_id=target,
                pid=pid,
                pid_file=str(pid_file),
                signal=label,
                error_type=type(error).__name__,
                error_message=str(error),
                details={"outcome": outcome.value},
            ),
        )
        return KillResult(
            target=target,
            pid_file=pid_file,
            pid=pid,
            signal=label,
            outcome=outcome,
            message=message,
        )

    @staticmethod
    def _signal_label(sig: int | str) -> str:
        try:
            return signal_name(sig)
        except InvalidSignalError:
            return str(sig)

    # =========================================================================
    # PID helpers
    # =========================================================================

    def alive(self, port: int | str) -> bool:
        """True if the process recorded for port exists."""
        return self.probe.is_alive(port)

    def pid_file(self, port: int | str) -> Path:
        return self.store.path(port)

    def pid_files(self) -> list[Path]:
        return self.store.list_all(self.config.port)

    def store_pid(self, port: int | str) -> None:
        self.store.store(port)

    def remove_pid(self, port: int | str) -> None:
        """Delete the PID file for port without announcing it."""
        self._unlink(self.pid_file(port))

    def remove_pid_file(self, port: int | str) -> None:
        """Delete the PID file for port, announcing it when one exists."""
        path = self.pid_file(port)
        if not path.exists():
            return
        log_event(
            logging.INFO,
            SupervisorEvent(
                event="pid_file_removing",
                message=f"Removing pid file {path} (port is {port})...",
                instance_id=str(port),
                pid_file=str(path),
            ),
        )
        self._unlink(path)

    def change_privilege(self) -> bool:
        """Drop to the configured user/group."""
        return change_process_privilege(self.config, self.dropper)

    def _unlink(self, path: Path) -> None:
        try:
            self.store.remove_path(path)
        except OSError as e:
            # Typical after a privilege drop: the file belongs to root
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="pid_file_remove_failed",
                    message=f"Could not remove pid file {path}: {e}",
                    pid_file=str(path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )

    def _verbose(self, message: str) -> None:
        log_event(logging.DEBUG, SupervisorEvent(event="progress", message=message, pid=os.getpid()))
