"""Cleanup command for xray-bootstrap CLI.

Removes files a previous run left behind (e.g. after SIGKILL on a panel
with a persistent volume). `run` already cleans up on normal shutdown.
"""

from __future__ import annotations

__all__ = ["cleanup"]

import sys
from pathlib import Path

import click

from xray_bootstrap.constants import ENGINE_BINARY_RELPATH
from xray_bootstrap.utils.file_helpers import generated_files, remove_file

from ..styling import style_dim, style_error, style_success


@click.command()
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Bootstrap working directory",
)
@click.option("--binary", "include_binary", is_flag=True, help="Also remove the installed engine binary")
def cleanup(work_dir: Path, include_binary: bool) -> None:
    """Remove leftover generated files."""
    targets = generated_files(work_dir)
    if include_binary:
        targets.append(work_dir / ENGINE_BINARY_RELPATH)

    existing = [path for path in targets if path.exists()]
    if not existing:
        click.echo(style_dim("Nothing to clean up."))
        return

    failed = [path for path in existing if not remove_file(path)]
    for path in existing:
        if path not in failed:
            click.echo(style_success(f"Removed {path}"))
    for path in failed:
        click.echo(style_error(f"Could not remove {path}"), err=True)
    if failed:
        sys.exit(1)
