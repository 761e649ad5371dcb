"""CLI output styling utilities.

Consistent styling helpers for CLI output:
- Cyan bold for labels
- Green for success messages (with checkmark)
- Red for error messages (with cross)
- Yellow for warnings
- Dim for neutral/empty state messages
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_label",
    "style_success",
    "style_warning",
]

import click


def style_label(label: str) -> str:
    """Style a label for list/summary headers.

    Args:
        label: The label text (without colon).

    Returns:
        Styled string with cyan bold and colon suffix.

    Example:
        >>> click.echo(style_label("PID files") + f" {count}")
        PID files: 3
    """
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success message with checkmark.

    Example:
        >>> click.echo(style_success("Sent INT to pid 4242"))
        ✓ Sent INT to pid 4242
    """
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Example:
        >>> click.echo(style_error("Server is already running"), err=True)
        ✗ Server is already running
    """
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)


def style_warning(message: str) -> str:
    """Style a warning message with yellow color.

    Example:
        >>> click.echo(style_warning("No PID files found"))
        Warning: No PID files found
    """
    return click.style(f"Warning: {message}", fg="yellow", bold=True)
