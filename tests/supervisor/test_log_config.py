"""Tests for supervisor logging configuration."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from procward.config import ServerConfig
from procward.exceptions import AlreadyRunningError
from procward.models import SupervisorEvent
from procward.supervisor.log_config import (
    configure_supervisor_logging,
    get_supervisor_log_path,
    log_event,
    log_fatal,
)


def _read_entries(path: Path) -> list[dict]:
    for handler in logging.getLogger("procward.supervisor").handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestConfigureSupervisorLogging:
    """Tests for configure_supervisor_logging()."""

    def test_log_path(self, config: ServerConfig, log_dir: Path) -> None:
        assert get_supervisor_log_path(config) == log_dir / "supervisor.jsonl"

    def test_file_entries_are_jsonl(self, config: ServerConfig) -> None:
        """Events at or above log_level are written as JSON lines."""
        # Arrange
        configure_supervisor_logging(config)

        # Act
        log_event(logging.WARNING, SupervisorEvent(event="pid_file_corrupt", message="bad", instance_id="4000"))
        log_event(logging.INFO, SupervisorEvent(event="below_threshold"))

        # Assert
        entries = _read_entries(get_supervisor_log_path(config))
        assert len(entries) == 1
        assert entries[0]["event"] == "pid_file_corrupt"
        assert entries[0]["level"] == "WARNING"
        assert entries[0]["instance_id"] == "4000"
        assert entries[0]["time"].endswith("Z")
        assert "pid" not in entries[0]

    def test_log_level_lowers_threshold(self, config: ServerConfig) -> None:
        config = config.model_copy(update={"log_level": "DEBUG"})
        configure_supervisor_logging(config)
        log_event(logging.DEBUG, SupervisorEvent(event="progress"))
        assert _read_entries(get_supervisor_log_path(config))[0]["event"] == "progress"

    def test_fatal_entry_has_exit_code(self, config: ServerConfig) -> None:
        # Arrange
        configure_supervisor_logging(config)
        error = AlreadyRunningError(4000, 4242, Path("/tmp/server.4000.pid"))

        # Act
        log_fatal(error)

        # Assert
        entry = _read_entries(get_supervisor_log_path(config))[0]
        assert entry["level"] == "CRITICAL"
        assert entry["event"] == "already_running"
        assert entry["details"] == {"exit_code": 2}

    def test_console_false_stays_out_of_stderr(
        self, config: ServerConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """console=False entries reach the file only."""
        # Arrange
        configure_supervisor_logging(config)

        # Act
        log_event(logging.WARNING, SupervisorEvent(event="quiet", message="file only"), console=False)
        log_event(logging.WARNING, SupervisorEvent(event="loud", message="both"))

        # Assert
        err = capsys.readouterr().err
        assert "file only" not in err
        assert "WARNING: both" in err
        assert [e["event"] for e in _read_entries(get_supervisor_log_path(config))] == ["quiet", "loud"]

    def test_unwritable_log_dir_keeps_stderr(self, tmp_path: Path) -> None:
        """A log dir that cannot be created does not raise."""
        # Arrange
        blocker = tmp_path / "file"
        blocker.write_text("")
        config = ServerConfig(root_dir=tmp_path, log_dir=blocker / "log")

        # Act
        configure_supervisor_logging(config)

        # Assert
        handlers = logging.getLogger("procward.supervisor").handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)
