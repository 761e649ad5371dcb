"""PID file storage for supervised instances.

Maps an instance id (a port, or the "main" token of a cluster master) to
a file path and reads, writes and deletes the file. Content is the
decimal process id, nothing else.
"""

from __future__ import annotations

__all__ = ["PidFileStore"]

import glob
import logging
import os
from pathlib import Path

from procward.config import ServerConfig
from procward.constants import DEFAULT_PID_FILENAME, PID_FILE_GLOB, PID_FILE_PLACEHOLDER
from procward.exceptions import PidFileCorruptError, PidFileNotFoundError, PidFilePermissionError
from procward.models import PidRecord, SupervisorEvent

from .log_config import log_event


class PidFileStore:
    """Reads and writes one PID file per instance.

    Attributes:
        template: Path template with a "%s" placeholder, or None.
        log_dir: Directory for default PID files.
        cluster: Cluster size (changes how list_all expands a template).
    """

    def __init__(
        self,
        log_dir: Path,
        template: str | None = None,
        cluster: int | None = None,
        verbose: bool = False,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.template = template
        self.cluster = cluster
        self.verbose = verbose

    @classmethod
    def from_config(cls, config: ServerConfig) -> PidFileStore:
        """Build a store from server configuration."""
        return cls(
            log_dir=config.log_dir,
            template=config.pid_file,
            cluster=config.cluster,
            verbose=config.verbose,
        )

    def path(self, instance_id: int | str) -> Path:
        """Location of the PID file for an instance. Pure, no I/O."""
        if self.template is not None:
            return Path(self.template.replace(PID_FILE_PLACEHOLDER, str(instance_id)))
        return self.log_dir / DEFAULT_PID_FILENAME.replace(PID_FILE_PLACEHOLDER, str(instance_id))

    def write(self, instance_id: int | str, pid: int) -> PidRecord:
        """Write pid for an instance, overwriting any existing file.

        Raises:
            PidFilePermissionError: If the directory or file cannot be written.
        """
        path = self.path(instance_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PidFilePermissionError(
                f"You tried to store PID files in {path.parent}, but you did not have access: {e}",
                path.parent,
            ) from e

        try:
            path.write_text(str(pid))
        except PermissionError as e:
            raise PidFilePermissionError(
                f"You tried to access {path}, but you did not have permission: {e}",
                path,
            ) from e
        return PidRecord(path=path, pid=pid)

    def store(self, instance_id: int | str) -> PidRecord:
        """Record the current process as the owner of an instance."""
        path = self.path(instance_id)
        if self.verbose:
            log_event(
                logging.DEBUG,
                SupervisorEvent(
                    event="pid_storing",
                    message=f"Storing pid file to {path}...",
                    instance_id=str(instance_id),
                    pid_file=str(path),
                ),
            )
        return self.write(instance_id, os.getpid())

    def read(self, instance_id: int | str) -> int:
        """Read the pid recorded for an instance.

        Raises:
            PidFileNotFoundError: If no PID file exists.
            PidFileCorruptError: If the content is not a positive integer.
        """
        return self.read_path(self.path(instance_id))

    def read_path(self, path: Path) -> int:
        """Read the pid stored in a PID file path.

        Raises:
            PidFileNotFoundError: If the file does not exist.
            PidFileCorruptError: If the content is not a positive integer.
        """
        try:
            content = path.read_text().strip()
        except FileNotFoundError as e:
            raise PidFileNotFoundError(path) from e

        try:
            pid = int(content)
        except ValueError as e:
            raise PidFileCorruptError(path, content) from e
        # pid 0 and negatives address process groups in kill(2)
        if pid <= 0:
            raise PidFileCorruptError(path, content)
        return pid

    def remove(self, instance_id: int | str) -> bool:
        """Delete an instance's PID file.

        Returns:
            True if a file was removed, False if none existed.
        """
        return self.remove_path(self.path(instance_id))

    def remove_path(self, path: Path) -> bool:
        """Delete a PID file by path; absent files are not an error."""
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_all(self, instance_id: int | str | None = None, *, every: bool = False) -> list[Path]:
        """List PID files known to this configuration.

        Args:
            instance_id: Instance whose path is returned when a template is
                configured without a cluster.
            every: Expand a template to all matching files even without a
                configured cluster.

        Returns:
            Sorted PID file paths. With a template and a cluster (or every),
            every file matching the template; with a template only, the
            single path for instance_id; otherwise every server.*.pid in the
            log directory.
        """
        if self.template is not None:
            if self.cluster or every:
                pattern = self.template.replace(PID_FILE_PLACEHOLDER, "*")
                return sorted(Path(p) for p in glob.glob(pattern))
            if instance_id is None:
                return []
            return [self.path(instance_id)]
        return sorted(self.log_dir.glob(PID_FILE_GLOB))

    def instance_id_for(self, path: Path) -> str:
        """Recover the instance id encoded in a PID file path.

        Falls back to the file name when the path does not match the
        configured layout.
        """
        pattern = self.template if self.template is not None else str(self.log_dir / DEFAULT_PID_FILENAME)
        prefix, _, suffix = pattern.partition(PID_FILE_PLACEHOLDER)
        text = str(path)
        if text.startswith(prefix) and text.endswith(suffix) and len(text) > len(prefix) + len(suffix):
            return text[len(prefix) : len(text) - len(suffix)]
        return path.name
