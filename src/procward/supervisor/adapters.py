"""Collaborators invoked by the supervisor.

The supervisor never serves requests itself. It calls:
- a BootLoader to initialize the application,
- an Adapter that binds, drops privileges via after_bind, and serves,
- a WorkerReaper on shutdown when workers were forked.

UvicornAdapter is the built-in adapter for ASGI applications.
Custom collaborators are named by import strings ("package.module:attr").
"""

from __future__ import annotations

__all__ = [
    "Adapter",
    "BootLoader",
    "CallableBootLoader",
    "NullBootLoader",
    "UvicornAdapter",
    "WorkerReaper",
    "build_adapter",
    "build_bootloader",
    "load_object",
]

import asyncio
import errno
import importlib
import logging
import socket
from collections.abc import Callable
from typing import Any, NoReturn, Protocol, runtime_checkable

import uvicorn

from procward.config import ServerConfig
from procward.exceptions import ConfigurationError, PortUnavailableError
from procward.models import SupervisorEvent

from .log_config import log_event

# Listen backlog (number of pending connections)
HTTP_LISTEN_BACKLOG = 2048


@runtime_checkable
class BootLoader(Protocol):
    """Performs framework initialization before serving."""

    def run(self) -> None: ...


@runtime_checkable
class Adapter(Protocol):
    """Begins serving and blocks for the life of the server.

    after_bind is called once the listening socket is bound, before any
    request is served. The supervisor passes its privilege drop here.
    """

    def start(
        self,
        options: dict[str, Any],
        after_bind: Callable[[], object] | None = None,
    ) -> None: ...


@runtime_checkable
class WorkerReaper(Protocol):
    """Terminates forked workers, then exits the process with status."""

    def reap_workers(self, status: int = 0) -> NoReturn: ...


class NullBootLoader:
    """Bootstrap that does nothing."""

    def run(self) -> None:
        return None


class CallableBootLoader:
    """Bootstrap backed by a plain callable."""

    def __init__(self, func: Callable[[], object]) -> None:
        self._func = func

    def run(self) -> None:
        self._func()


class UvicornAdapter:
    """Serve an ASGI app with uvicorn on a socket bound by the adapter.

    The socket is bound here (not by uvicorn) so after_bind runs between
    bind and serve. uvicorn's own signal handlers are not installed; the
    supervisor's TERM trap stays in charge of shutdown.
    """

    def __init__(self, app: str | Any) -> None:
        self.app = app

    def start(
        self,
        options: dict[str, Any],
        after_bind: Callable[[], object] | None = None,
    ) -> None:
        host = options.get("host", "127.0.0.1")
        port = int(options["port"])

        sock = self._bind(host, port)
        try:
            if after_bind is not None:
                after_bind()

            config = uvicorn.Config(
                self.app,
                fd=sock.fileno(),
                log_config=None,
            )
            server = uvicorn.Server(config)
            log_event(
                logging.INFO,
                SupervisorEvent(
                    event="adapter_serving",
                    message=f"Serving {self.app} on {host}:{port}",
                    instance_id=str(port),
                ),
            )
            asyncio.run(server._serve())
        finally:
            try:
                sock.close()
            except OSError:
                pass  # Non-critical cleanup

    def _bind(self, host: str, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise PortUnavailableError(f"Port {port} is already in use on {host}.", port) from e
            if e.errno == errno.EACCES:
                raise PortUnavailableError(
                    f"Permission denied binding {host}:{port}. Ports below 1024 need root.",
                    port,
                ) from e
            raise
        sock.listen(HTTP_LISTEN_BACKLOG)
        sock.setblocking(False)
        return sock


def load_object(import_string: str) -> Any:
    """Resolve "package.module:attr.sub" to the named object.

    Raises:
        ConfigurationError: If the string is malformed or cannot be imported.
    """
    module_name, sep, attr_path = import_string.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigurationError(f"Import string must look like 'module:attribute', got {import_string!r}")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module {module_name!r}: {e}") from e

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise ConfigurationError(f"Module {module_name!r} has no attribute {attr_path!r}") from e
    return obj


def build_adapter(config: ServerConfig) -> Adapter:
    """Create the adapter named by the configuration.

    A custom adapter factory is called with the config. Otherwise the app
    is served by UvicornAdapter (uvicorn resolves the import string).

    Raises:
        ConfigurationError: If neither adapter nor app is configured.
    """
    if config.adapter is not None:
        factory = load_object(config.adapter)
        adapter = factory(config)
        if not isinstance(adapter, Adapter):
            raise ConfigurationError(f"{config.adapter} did not return an adapter with a start() method")
        return adapter
    if config.app is not None:
        return UvicornAdapter(config.app)
    raise ConfigurationError("No application configured. Pass --app module:app or set 'app' in the config file.")


def build_bootloader(config: ServerConfig) -> BootLoader:
    """Create the bootstrap named by the configuration (no-op if none)."""
    if config.bootstrap is None:
        return NullBootLoader()
    func = load_object(config.bootstrap)
    if not callable(func):
        raise ConfigurationError(f"Bootstrap {config.bootstrap} is not callable")
    return CallableBootLoader(func)
