"""Run command for xray-bootstrap CLI.

Bootstraps the engine and supervises it until SIGINT/SIGTERM.
This is the panel's startup command.
"""

from __future__ import annotations

__all__ = ["run"]

import asyncio
import logging
import sys
from pathlib import Path

import click

from xray_bootstrap import __version__
from xray_bootstrap.config import default_log_file, load_settings
from xray_bootstrap.exceptions import BootstrapError
from xray_bootstrap.log_config import configure_logging, log_event
from xray_bootstrap.models import BootstrapEvent
from xray_bootstrap.orchestrator import run_bootstrap

from ..styling import style_error


@click.command()
@click.option("--domain", default=None, help="CDN-fronted domain [env: DOMAIN]")
@click.option("--uuid", "uuid_", default=None, help="Fixed client id [env: UUID]")
@click.option("--path", "ws_path", default=None, help="Fixed WebSocket path [env: WSPATH]")
@click.option("--port", type=int, default=None, help="Listen port override [env: PORT]")
@click.option("--name", default=None, help="Node name prefix [env: NAME]")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for generated files [env: XRAY_BOOTSTRAP_WORK_DIR] (default: cwd)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level [env: XRAY_BOOTSTRAP_LOG_LEVEL]",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write JSONL logs here [env: XRAY_BOOTSTRAP_LOG_FILE]",
)
@click.option("--persist-log", is_flag=True, help="Write JSONL logs to the platform log directory")
def run(
    domain: str | None,
    uuid_: str | None,
    ws_path: str | None,
    port: int | None,
    name: str | None,
    work_dir: Path | None,
    log_level: str | None,
    log_file: Path | None,
    persist_log: bool,
) -> None:
    """Bootstrap and supervise the Xray engine.

    Detects the panel environment, downloads Xray for this CPU, writes
    config.json, prints the Base64 subscription link and runs the engine
    until stopped. Generated files are removed on exit.

    Examples:
        xray-bootstrap run
        xray-bootstrap run --domain node.example.org --uuid <uuid>
    """
    try:
        settings = load_settings(
            domain=domain,
            uuid=uuid_,
            ws_path=ws_path,
            port=port,
            name=name,
            work_dir=work_dir,
            log_level=log_level,
            log_file=log_file or (default_log_file() if persist_log else None),
        )
    except BootstrapError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(e.exit_code)

    configure_logging(settings.log_level, settings.log_file)
    click.echo(f"xray-bootstrap v{__version__}", err=True)

    try:
        exit_code = asyncio.run(run_bootstrap(settings))
    except BootstrapError as e:
        log_event(
            logging.ERROR,
            BootstrapEvent(
                event="bootstrap_failed",
                message=str(e),
                error_type=type(e).__name__,
                error_message=str(e),
                details={"failure_type": e.failure_type, "exit_code": e.exit_code},
            ),
        )
        click.echo(style_error(str(e)), err=True)
        sys.exit(e.exit_code)
    except OSError as e:
        click.echo(style_error(f"Cannot write generated files: {e}"), err=True)
        sys.exit(1)

    sys.exit(exit_code)
