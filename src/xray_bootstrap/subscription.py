"""Subscription link building and display.

The link points clients at the CDN (TLS on 443) rather than at the panel
port; the CDN forwards the WebSocket upgrade to the engine. Clients import
the Base64 form, which is also written to SUBSCRIPTION_FILENAME.
"""

from __future__ import annotations

__all__ = [
    "build_vless_uri",
    "decode_subscription",
    "encode_subscription",
    "show_subscription",
    "write_subscription",
]

import base64
from pathlib import Path
from urllib.parse import quote

import click

from xray_bootstrap.constants import SUBSCRIPTION_TLS_PORT
from xray_bootstrap.models import Identity
from xray_bootstrap.utils.file_helpers import write_text_file

# Characters JavaScript's encodeURIComponent leaves alone (besides alphanumerics and "-_.")
_URI_COMPONENT_SAFE = "!~*'()"


def _component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_vless_uri(identity: Identity, *, domain: str, node_name: str) -> str:
    """Build the vless:// share URI.

    Args:
        identity: Client id and WebSocket path.
        domain: CDN-fronted domain (address, Host header and SNI).
        node_name: Display name placed in the fragment.

    Returns:
        vless://<id>@<domain>:443?...#<node_name>
    """
    query = "&".join(
        [
            "encryption=none",
            "security=tls",
            "type=ws",
            f"host={_component(domain)}",
            f"path={_component(identity.access_path)}",
            f"sni={_component(domain)}",
        ]
    )
    return f"vless://{identity.id}@{domain}:{SUBSCRIPTION_TLS_PORT}?{query}#{_component(node_name)}"


def encode_subscription(uri: str) -> str:
    """Base64-encode a share URI (standard alphabet, padded)."""
    return base64.b64encode(uri.encode("utf-8")).decode("ascii")


def decode_subscription(line: str) -> str:
    """Decode a Base64 subscription line back to its URI.

    Raises:
        ValueError: If the line is not valid Base64 text.
    """
    try:
        return base64.b64decode(line.strip(), validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Not a Base64 subscription line: {e}") from e


def write_subscription(path: Path, encoded: str) -> None:
    """Persist the encoded line (single line, no trailing newline).

    Raises:
        OSError: If the file cannot be written.
    """
    write_text_file(path, encoded)


def show_subscription(encoded: str) -> None:
    """Print the running banner and the encoded subscription line to stdout."""
    rule = "=" * 50
    click.echo()
    click.echo(rule)
    click.echo(click.style("✓ Service is running...", fg="green"))
    click.echo(rule)
    click.echo()
    click.echo(click.style("--- Base64 subscription link ---", fg="cyan", bold=True))
    click.echo(encoded)
