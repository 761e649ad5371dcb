"""Tests for adapters, bootstrap and import-string loading."""

from __future__ import annotations

import errno
import os.path
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from procward.config import ServerConfig
from procward.exceptions import ConfigurationError, PortUnavailableError
from procward.supervisor.adapters import (
    Adapter,
    CallableBootLoader,
    NullBootLoader,
    UvicornAdapter,
    build_adapter,
    build_bootloader,
    load_object,
)


class TestLoadObject:
    """Tests for load_object()."""

    def test_resolves_module_attribute(self) -> None:
        assert load_object("os.path:join") is os.path.join

    def test_resolves_dotted_attribute(self) -> None:
        assert load_object("os:path.join") is os.path.join

    @pytest.mark.parametrize("value", ["os.path", ":join", "os.path:", ""])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(ConfigurationError):
            load_object(value)

    def test_missing_module(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_object("procward_missing_module:app")
        assert "Cannot import module" in str(exc_info.value)

    def test_missing_attribute(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_object("os.path:not_there")
        assert "has no attribute" in str(exc_info.value)


class TestBuildAdapter:
    """Tests for build_adapter()."""

    def test_app_uses_uvicorn(self, tmp_path: Path) -> None:
        adapter = build_adapter(ServerConfig(root_dir=tmp_path, app="myproject.asgi:app"))
        assert isinstance(adapter, UvicornAdapter)
        assert adapter.app == "myproject.asgi:app"

    def test_nothing_configured(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            build_adapter(ServerConfig(root_dir=tmp_path))
        assert "--app" in str(exc_info.value)

    def test_custom_factory_gets_config(self, tmp_path: Path) -> None:
        """A custom adapter factory is called with the config."""
        # Arrange
        config = ServerConfig(root_dir=tmp_path, adapter="myproject.adapters:make")
        custom = MagicMock(spec=["start"])
        factory = MagicMock(return_value=custom)

        # Act
        with patch("procward.supervisor.adapters.load_object", return_value=factory):
            adapter = build_adapter(config)

        # Assert
        factory.assert_called_once_with(config)
        assert adapter is custom
        assert isinstance(adapter, Adapter)

    def test_custom_factory_must_return_adapter(self, tmp_path: Path) -> None:
        config = ServerConfig(root_dir=tmp_path, adapter="myproject.adapters:make")
        with patch("procward.supervisor.adapters.load_object", return_value=lambda config: object()):
            with pytest.raises(ConfigurationError):
                build_adapter(config)


class TestBuildBootLoader:
    """Tests for build_bootloader()."""

    def test_default_is_noop(self, tmp_path: Path) -> None:
        bootloader = build_bootloader(ServerConfig(root_dir=tmp_path))
        assert isinstance(bootloader, NullBootLoader)
        bootloader.run()

    def test_callable_is_run(self, tmp_path: Path) -> None:
        # Arrange
        func = MagicMock()
        config = ServerConfig(root_dir=tmp_path, bootstrap="myproject.boot:run")

        # Act
        with patch("procward.supervisor.adapters.load_object", return_value=func):
            bootloader = build_bootloader(config)
        bootloader.run()

        # Assert
        assert isinstance(bootloader, CallableBootLoader)
        func.assert_called_once_with()

    def test_not_callable(self, tmp_path: Path) -> None:
        config = ServerConfig(root_dir=tmp_path, bootstrap="myproject.boot:VALUE")
        with patch("procward.supervisor.adapters.load_object", return_value=42):
            with pytest.raises(ConfigurationError):
                build_bootloader(config)


class TestUvicornAdapter:
    """Tests for UvicornAdapter."""

    def test_privileges_dropped_after_bind_before_serving(self) -> None:
        """after_bind runs once the socket is bound, before uvicorn is set up."""
        # Arrange
        order: list[str] = []
        sock = MagicMock()
        sock.fileno.return_value = 7
        adapter = UvicornAdapter("myproject.asgi:app")

        def fake_bind(host: str, port: int) -> MagicMock:
            order.append("bind")
            return sock

        # Act
        with (
            patch.object(adapter, "_bind", side_effect=fake_bind),
            patch("procward.supervisor.adapters.uvicorn") as mock_uvicorn,
            patch("procward.supervisor.adapters.asyncio.run") as mock_run,
        ):
            mock_uvicorn.Config.side_effect = lambda *a, **kw: order.append("config")
            adapter.start({"host": "127.0.0.1", "port": 4000}, after_bind=lambda: order.append("drop"))

        # Assert
        assert order == ["bind", "drop", "config"]
        mock_uvicorn.Config.assert_called_once_with("myproject.asgi:app", fd=7, log_config=None)
        mock_run.assert_called_once()
        sock.close.assert_called_once_with()

    def test_socket_closed_when_drop_fails(self) -> None:
        sock = MagicMock()
        adapter = UvicornAdapter("myproject.asgi:app")
        with patch.object(adapter, "_bind", return_value=sock):
            with pytest.raises(RuntimeError):
                adapter.start({"port": 4000}, after_bind=MagicMock(side_effect=RuntimeError("drop failed")))
        sock.close.assert_called_once_with()

    def test_bind_real_ephemeral_port(self) -> None:
        """_bind returns a listening, non-blocking socket."""
        sock = UvicornAdapter("app")._bind("127.0.0.1", 0)
        try:
            assert sock.getsockname()[1] > 0
            assert sock.getblocking() is False
        finally:
            sock.close()

    @pytest.mark.parametrize("code", [errno.EADDRINUSE, errno.EACCES])
    def test_bind_failure_is_fatal(self, code: int) -> None:
        """Busy or privileged ports raise PortUnavailableError."""
        # Arrange
        mock_sock = MagicMock()
        mock_sock.bind.side_effect = OSError(code, os.strerror(code))

        # Act
        with patch("procward.supervisor.adapters.socket.socket", return_value=mock_sock):
            with pytest.raises(PortUnavailableError) as exc_info:
                UvicornAdapter("app")._bind("127.0.0.1", 80)

        # Assert
        assert exc_info.value.port == 80
        mock_sock.close.assert_called_once_with()

    def test_other_bind_errors_propagate(self) -> None:
        mock_sock = MagicMock()
        mock_sock.bind.side_effect = OSError(errno.EADDRNOTAVAIL, "Cannot assign requested address")
        with patch("procward.supervisor.adapters.socket.socket", return_value=mock_sock):
            with pytest.raises(OSError):
                UvicornAdapter("app")._bind("10.255.255.1", 4000)
