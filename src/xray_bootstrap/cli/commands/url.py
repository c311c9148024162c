"""URL command for xray-bootstrap CLI.

Shows which release asset `run` would download, without downloading it.
"""

from __future__ import annotations

__all__ = ["url"]

import sys

import click

from xray_bootstrap.exceptions import UnsupportedArchitectureError
from xray_bootstrap.provisioning import resolve_download_url

from ..styling import style_error


@click.command()
@click.option("--arch", default=None, help="Architecture to resolve (default: this machine)")
def url(arch: str | None) -> None:
    """Show the Xray download URL for an architecture.

    Examples:
        xray-bootstrap url
        xray-bootstrap url --arch aarch64
    """
    try:
        click.echo(resolve_download_url(arch))
    except UnsupportedArchitectureError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(e.exit_code)
