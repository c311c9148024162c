"""Main CLI entry point for xray-bootstrap.

Defines the CLI group and registers all subcommands.

Commands:
    cleanup  - Remove leftover generated files from a work directory
    decode   - Decode a Base64 subscription line to its vless:// URI
    run      - Bootstrap and supervise the Xray engine
    url      - Show the engine download URL for this architecture

Subcommand help:
    xray-bootstrap COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from xray_bootstrap import __version__

from .commands.cleanup import cleanup
from .commands.decode import decode
from .commands.run import run
from .commands.url import url


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Panel Startup Command:
  xray-bootstrap run

Required (injected by the panel):
  SERVER_IP, SERVER_PORT

Optional overrides (environment or run options):
  DOMAIN   --domain   CDN-fronted domain (default: example.com)
  UUID     --uuid     Fixed client id (default: random per run)
  WSPATH   --path     Fixed WebSocket path (default: derived from UUID)
  PORT     --port     Listen port (default: SERVER_PORT)
  NAME     --name     Node name prefix (default: Panel)
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """xray-bootstrap: Xray VLESS node bootstrap for panel containers."""
    if version:
        click.echo(f"xray-bootstrap {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(cleanup)
cli.add_command(decode)
cli.add_command(run)
cli.add_command(url)


def main() -> None:
    """CLI entry point."""
    cli()
