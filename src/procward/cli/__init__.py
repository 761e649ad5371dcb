"""Command-line interface for procward.

Provides commands for starting servers, signaling them and inspecting
their PID files.
"""

from .main import cli, main

__all__ = ["cli", "main"]
