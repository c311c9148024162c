"""CLI output styling utilities.

- Green for success messages (with checkmark)
- Red for error messages (with cross)
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_success",
]

import click


def style_success(message: str) -> str:
    """Style a success message with checkmark.

    Example:
        >>> click.echo(style_success("Service is running..."))
        ✓ Service is running...
    """
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Example:
        >>> click.echo(style_error("Pterodactyl environment not detected"), err=True)
        ✗ Pterodactyl environment not detected
    """
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    return click.style(message, dim=True)
