"""Process-wide signal handling.

SignalDispatcher keeps the last handler registered per signal and
installs a single OS-level handler that routes to it. Re-registering a
signal replaces the previous handler; nothing is stacked.

InterruptConsole is an optional capability for interactive foreground
runs: the first SIGINT opens a Python console bound to the running
supervisor, a second SIGINT quits.
"""

from __future__ import annotations

__all__ = [
    "InterruptConsole",
    "InvalidSignalError",
    "SignalDispatcher",
    "get_signal_dispatcher",
    "resolve_signal",
    "signal_name",
]

import code
import logging
import signal
import sys
import time
from collections.abc import Callable
from types import FrameType
from typing import Any

import click

from procward.constants import INTERRUPT_GRACE_SECONDS
from procward.models import SupervisorEvent

from .errors import InvalidSignalError
from .log_config import log_event

SignalHandler = Callable[[], object]


def resolve_signal(sig: int | str | signal.Signals) -> signal.Signals:
    """Resolve a signal number or name to signal.Signals.

    Accepts 15, "15", "TERM", "SIGTERM" and "term".

    Raises:
        InvalidSignalError: If the signal is unknown on this platform.
    """
    if isinstance(sig, signal.Signals):
        return sig
    if isinstance(sig, str):
        name = sig.strip().upper()
        if name.isdigit():
            return resolve_signal(int(name))
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            return signal.Signals[name]
        except KeyError as e:
            raise InvalidSignalError(sig) from e
    try:
        return signal.Signals(sig)
    except ValueError as e:
        raise InvalidSignalError(sig) from e


def signal_name(sig: int | str | signal.Signals) -> str:
    """Short signal name without the SIG prefix, e.g. "INT"."""
    return resolve_signal(sig).name.removeprefix("SIG")


class SignalDispatcher:
    """Registry of process-wide signal handlers.

    OS signal handlers are process-global, so one dispatcher is shared
    per process (see get_signal_dispatcher()). Handlers take no arguments
    and run in the main thread between bytecodes; they must only do
    safe things (set a flag, shut down, remove a file).
    """

    def __init__(self) -> None:
        self._handlers: dict[signal.Signals, SignalHandler] = {}
        self._original_handlers: dict[signal.Signals, Any] = {}
        self.console: InterruptConsole | None = None

    def trap(self, sig: int | str | signal.Signals, handler: SignalHandler) -> None:
        """Install handler for sig, replacing any previous one.

        Raises:
            InvalidSignalError: If sig is unknown.
        """
        signum = resolve_signal(sig)
        if signum not in self._original_handlers:
            self._original_handlers[signum] = signal.getsignal(signum)
        self._handlers[signum] = handler
        signal.signal(signum, self._dispatch)

    def handler_for(self, sig: int | str | signal.Signals) -> SignalHandler | None:
        """The handler currently registered for sig, if any."""
        return self._handlers.get(resolve_signal(sig))

    def reset(self) -> None:
        """Restore the handlers that were installed before trapping."""
        for signum, original in self._original_handlers.items():
            signal.signal(signum, original)
        self._handlers.clear()
        self._original_handlers.clear()
        self.console = None

    def enable_console(self, namespace: dict[str, Any]) -> InterruptConsole:
        """Install the interactive interrupt console on SIGINT.

        Args:
            namespace: Variables visible inside the console.
        """
        self.console = InterruptConsole(self, namespace)
        self.console.install()
        return self.console

    def _dispatch(self, signum: int, frame: FrameType | None) -> None:
        sig = signal.Signals(signum)
        handler = self._handlers.get(sig)
        if handler is None:
            return
        log_event(
            logging.DEBUG,
            SupervisorEvent(
                event="signal_received",
                message=f"Received {sig.name}",
                signal=sig.name.removeprefix("SIG"),
            ),
        )
        handler()


class InterruptConsole:
    """Two-stage SIGINT trap that opens an interactive console.

    First interrupt: arm, announce "Interrupt a second time to quit",
    wait the grace window, then open (or resume) the console. Any
    interrupt while armed quits the process. Leaving the console (EOF or
    exit()) disarms and re-installs the trap.
    """

    def __init__(
        self,
        dispatcher: SignalDispatcher,
        namespace: dict[str, Any],
        *,
        grace_seconds: float = INTERRUPT_GRACE_SECONDS,
        console_factory: Callable[..., code.InteractiveConsole] = code.InteractiveConsole,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._namespace = namespace
        self._grace_seconds = grace_seconds
        self._console_factory = console_factory
        self._sleep = sleep
        self._console: code.InteractiveConsole | None = None
        self._quitting = False
        self.interrupted = False

    def install(self) -> None:
        """Register the first-stage trap on SIGINT."""
        self._dispatcher.trap("INT", self.on_interrupt)

    def on_interrupt(self) -> None:
        """Handle SIGINT according to the armed state."""
        if self.interrupted:
            click.echo("Exiting")
            self._quitting = True
            sys.exit(0)

        self.interrupted = True
        click.echo("Interrupt a second time to quit")
        self._sleep(self._grace_seconds)

        if self._console is None:
            self._console = self._console_factory(locals=self._namespace)

        try:
            self._console.interact(banner="procward console (Ctrl-D to resume serving)", exitmsg="")
        except SystemExit:
            # exit() inside the console ends the session, not the server
            if self._quitting:
                raise

        click.echo("Exiting console mode, back in server mode")
        self.interrupted = False
        self.install()


# Module-level singleton: OS signal handlers are process-global
_dispatcher: SignalDispatcher | None = None


def get_signal_dispatcher() -> SignalDispatcher:
    """Get the process-wide SignalDispatcher, creating it on first use."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = SignalDispatcher()
    return _dispatcher
