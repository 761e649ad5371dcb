"""Tests for error classification."""

from __future__ import annotations

import errno
from pathlib import Path

import pytest

from procward.exceptions import PidFileNotFoundError
from procward.supervisor.errors import ErrorKind, InvalidSignalError, classify_error


class TestClassifyError:
    """Tests for classify_error()."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (ProcessLookupError(), ErrorKind.NO_SUCH_PROCESS),
            (OSError(errno.ESRCH, "No such process"), ErrorKind.NO_SUCH_PROCESS),
            (FileNotFoundError(), ErrorKind.NOT_FOUND),
            (PidFileNotFoundError(Path("/tmp/server.4000.pid")), ErrorKind.NOT_FOUND),
            (PermissionError(), ErrorKind.PERMISSION_DENIED),
            (OSError(errno.EPERM, "Operation not permitted"), ErrorKind.PERMISSION_DENIED),
            (OSError(errno.EACCES, "Permission denied"), ErrorKind.PERMISSION_DENIED),
            (OSError(errno.EINVAL, "Invalid argument"), ErrorKind.INVALID_SIGNAL),
            (InvalidSignalError("BOGUS"), ErrorKind.INVALID_SIGNAL),
            (OSError(errno.EIO, "I/O error"), ErrorKind.OTHER),
            (OSError("no errno"), ErrorKind.OTHER),
            (ValueError("corrupt"), ErrorKind.OTHER),
        ],
    )
    def test_mapping(self, error: BaseException, expected: ErrorKind) -> None:
        assert classify_error(error) is expected

    def test_invalid_signal_is_value_error(self) -> None:
        """InvalidSignalError keeps the offending value."""
        error = InvalidSignalError("BOGUS")
        assert isinstance(error, ValueError)
        assert error.sig == "BOGUS"
