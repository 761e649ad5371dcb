"""Logging utilities and helpers.

This package provides logging infrastructure for procward:
- formatters: ISO 8601 JSONL and human-readable console formatters

Import directly from submodules to avoid circular imports:
    from procward.utils.logging.formatters import ISO8601Formatter
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
