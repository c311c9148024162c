"""Decode command for xray-bootstrap CLI."""

from __future__ import annotations

__all__ = ["decode"]

import sys
from pathlib import Path

import click

from xray_bootstrap.constants import SUBSCRIPTION_FILENAME
from xray_bootstrap.subscription import decode_subscription

from ..styling import style_error


@click.command()
@click.argument("line", required=False)
@click.option(
    "--file",
    "-f",
    "file_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Read the line from a file (default: ./{SUBSCRIPTION_FILENAME})",
)
def decode(line: str | None, file_path: Path | None) -> None:
    """Decode a Base64 subscription line to its vless:// URI.

    Reads LINE if given, otherwise the saved subscription file.
    """
    if line is None:
        path = file_path or Path(SUBSCRIPTION_FILENAME)
        try:
            line = path.read_text(encoding="utf-8")
        except OSError as e:
            click.echo(style_error(f"Cannot read {path}: {e}"), err=True)
            sys.exit(1)

    try:
        click.echo(decode_subscription(line))
    except ValueError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
