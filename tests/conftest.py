"""Shared fixtures for procward tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from procward.config import ServerConfig
from procward.supervisor import log_config
from procward.supervisor.pidfile import PidFileStore
from procward.supervisor.signals import SignalDispatcher


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """Directory for PID files and supervisor logs."""
    return tmp_path / "log"


@pytest.fixture
def config(tmp_path: Path, log_dir: Path) -> ServerConfig:
    """Minimal configuration rooted in a temporary directory."""
    return ServerConfig(port=4000, log_dir=log_dir, root_dir=tmp_path, app="myproject.asgi:app")


@pytest.fixture
def store(log_dir: Path) -> PidFileStore:
    """PID file store writing to the temporary log directory."""
    return PidFileStore(log_dir)


@pytest.fixture
def dispatcher() -> Iterator[SignalDispatcher]:
    """Fresh dispatcher; original OS handlers are restored afterwards."""
    dispatcher = SignalDispatcher()
    yield dispatcher
    dispatcher.reset()


@pytest.fixture(autouse=True)
def reset_supervisor_logging() -> Iterator[None]:
    """Detach handlers bound to per-test files and streams."""
    yield
    logger = logging.getLogger("procward.supervisor")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.addHandler(log_config._stderr_handler(logging.INFO))
    log_config._configured_log_path = None
