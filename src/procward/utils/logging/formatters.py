"""Log formatters for supervisor output.

Provides ISO 8601 timestamp formatting for JSONL logs and a human-readable
formatter for the console.
"""

from __future__ import annotations

__all__ = ["ConsoleFormatter", "ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ISO8601Formatter(logging.Formatter):
    """Custom formatter with ISO 8601 timestamps (UTC) for JSONL output.

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL with ISO 8601 timestamp.

        Args:
            record: The log record to format

        Returns:
            str: JSON-formatted log entry with timestamp
        """
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        # Handle dict messages (structured logging)
        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname, **log_data}
        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        # Use getMessage() to substitute %s placeholders with args
        return f"{record.levelname}: {record.getMessage()}"
