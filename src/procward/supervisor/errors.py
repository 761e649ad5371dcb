"""Uniform classification of process and file errors.

The kill and probe paths match on ErrorKind rather than on a list of
exception types, so every call site handles the same five cases.
"""

from __future__ import annotations

__all__ = [
    "ErrorKind",
    "InvalidSignalError",
    "classify_error",
]

import errno
from enum import Enum


class InvalidSignalError(ValueError):
    """Signal name or number is not known on this platform."""

    def __init__(self, sig: object) -> None:
        super().__init__(f"'{sig}' is an invalid or unsupported signal")
        self.sig = sig


class ErrorKind(Enum):
    """Categories of failure when touching PID files or processes."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NO_SUCH_PROCESS = "no_such_process"
    INVALID_SIGNAL = "invalid_signal"
    OTHER = "other"


_ERRNO_KINDS: dict[int, ErrorKind] = {
    errno.ESRCH: ErrorKind.NO_SUCH_PROCESS,
    errno.ENOENT: ErrorKind.NOT_FOUND,
    errno.EPERM: ErrorKind.PERMISSION_DENIED,
    errno.EACCES: ErrorKind.PERMISSION_DENIED,
    errno.EINVAL: ErrorKind.INVALID_SIGNAL,
}


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to its ErrorKind.

    Args:
        exc: Exception raised by os.kill, a PID file read, or signal lookup.

    Returns:
        The matching ErrorKind, OTHER if none applies.
    """
    if isinstance(exc, InvalidSignalError):
        return ErrorKind.INVALID_SIGNAL
    # Subclasses first: ProcessLookupError and PermissionError carry errno,
    # but may be raised without one (e.g. by mocks).
    if isinstance(exc, ProcessLookupError):
        return ErrorKind.NO_SUCH_PROCESS
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(exc, OSError) and exc.errno is not None:
        return _ERRNO_KINDS.get(exc.errno, ErrorKind.OTHER)
    return ErrorKind.OTHER
