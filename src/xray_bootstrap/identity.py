"""Client identity and ISP label resolution.

Identity:
    The VLESS client id is either supplied or generated once per run. The
    WebSocket path is either supplied or derived from the id, so a fixed
    UUID always yields the same path and old subscription links keep working
    across restarts.

ISP label:
    A display-only "<region>-<organization>" string for the node name.
    Lookup sources are a plain tagged tuple; parse_isp_payload() dispatches
    on the tag. Attempt n uses source (n-1) % len(sources), with a fixed
    backoff between attempts, so one rate-limited source does not sink the
    lookup. Exhaustion returns ISP_UNKNOWN_LABEL, never an exception.
"""

from __future__ import annotations

__all__ = [
    "ISP_SOURCES",
    "IspSource",
    "derive_access_path",
    "parse_isp_payload",
    "resolve_identity",
    "resolve_isp",
]

import asyncio
import hashlib
import json
import logging
import uuid
from typing import Literal, NamedTuple
from urllib.parse import urlsplit

import httpx

from xray_bootstrap.constants import (
    ACCESS_PATH_HASH_LENGTH,
    BROWSER_USER_AGENT,
    ISP_LOOKUP_BACKOFF_SECONDS,
    ISP_LOOKUP_MAX_ATTEMPTS,
    ISP_LOOKUP_TIMEOUT_SECONDS,
    ISP_UNKNOWN_LABEL,
)
from xray_bootstrap.log_config import log_event
from xray_bootstrap.models import BootstrapEvent, Identity

IspPayloadKind = Literal["geoip_json", "trace_kv"]


class IspSource(NamedTuple):
    """One ISP lookup endpoint and the shape of its response body."""

    name: str
    url: str
    kind: IspPayloadKind


ISP_SOURCES: tuple[IspSource, ...] = (
    IspSource("ip.sb", "https://api.ip.sb/geoip", "geoip_json"),
    IspSource("cloudflare", "https://www.cloudflare.com/cdn-cgi/trace", "trace_kv"),
)


# =============================================================================
# Identity
# =============================================================================


def derive_access_path(identity_id: str) -> str:
    """Derive the WebSocket path from a client id.

    Args:
        identity_id: Client id (UUID string).

    Returns:
        "/" followed by the first 8 hex chars of md5(identity_id).
    """
    digest = hashlib.md5(identity_id.encode("utf-8"), usedforsecurity=False).hexdigest()
    return "/" + digest[:ACCESS_PATH_HASH_LENGTH]


def resolve_identity(supplied_id: str | None = None, supplied_path: str | None = None) -> Identity:
    """Build the identity for this run.

    Args:
        supplied_id: Fixed client id, or None to generate a random UUIDv4.
        supplied_path: Fixed access path ("/" is prepended if missing),
            or None to derive one from the id.

    Returns:
        Identity with id and access_path.
    """
    identity_id = supplied_id or str(uuid.uuid4())
    if supplied_path:
        access_path = supplied_path if supplied_path.startswith("/") else "/" + supplied_path
    else:
        access_path = derive_access_path(identity_id)
    return Identity(id=identity_id, access_path=access_path)


# =============================================================================
# ISP label
# =============================================================================


def _parse_geoip_json(body: str) -> str:
    info = json.loads(body)
    return f"{info['country_code']}-{info['organization']}"


def _parse_trace_kv(body: str) -> str:
    fields: dict[str, str] = {}
    for line in body.splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() and value.strip():
            fields[key.strip()] = value.strip()
    return f"{fields.get('loc', 'UN')}-{fields.get('as_organization', 'CF')}"


def parse_isp_payload(source: IspSource, body: str) -> str:
    """Turn a lookup response body into an ISP label.

    Args:
        source: The source the body came from (selects the parser).
        body: Response text.

    Returns:
        "<region>-<organization>" with spaces replaced by underscores.

    Raises:
        ValueError: If the body does not match the source's format
            (json.JSONDecodeError is a ValueError).
        KeyError: If a JSON payload lacks country_code or organization.
    """
    if source.kind == "geoip_json":
        label = _parse_geoip_json(body)
    elif source.kind == "trace_kv":
        label = _parse_trace_kv(body)
    else:
        raise ValueError(f"Unknown ISP payload kind: {source.kind!r}")
    return label.replace(" ", "_")


async def _fetch_isp(client: httpx.AsyncClient, source: IspSource) -> str:
    response = await client.get(
        source.url,
        headers={"User-Agent": BROWSER_USER_AGENT},
        timeout=ISP_LOOKUP_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return parse_isp_payload(source, response.text)


async def resolve_isp(
    max_attempts: int = ISP_LOOKUP_MAX_ATTEMPTS,
    *,
    client: httpx.AsyncClient | None = None,
    sources: tuple[IspSource, ...] = ISP_SOURCES,
    backoff_seconds: float = ISP_LOOKUP_BACKOFF_SECONDS,
) -> str:
    """Look up the ISP label, rotating through sources.

    Args:
        max_attempts: Total attempts across all sources.
        client: Optional shared httpx client (a private one is created and
            closed otherwise).
        sources: Ordered lookup sources; at least one.
        backoff_seconds: Fixed delay between failed attempts.

    Returns:
        The parsed label, or ISP_UNKNOWN_LABEL when every attempt failed.
    """
    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await resolve_isp(
                max_attempts,
                client=own_client,
                sources=sources,
                backoff_seconds=backoff_seconds,
            )

    for attempt in range(1, max_attempts + 1):
        source = sources[(attempt - 1) % len(sources)]
        log_event(
            logging.INFO,
            BootstrapEvent(
                event="isp_lookup_attempt",
                message=f"[ISP] Querying {urlsplit(source.url).hostname} (attempt {attempt}/{max_attempts})",
                component="identity",
                details={"source": source.name, "attempt": attempt},
            ),
        )
        try:
            return await _fetch_isp(client, source)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            log_event(
                logging.WARNING,
                BootstrapEvent(
                    event="isp_lookup_failed",
                    message=f"[ISP] Attempt {attempt} failed: {type(e).__name__}: {e}",
                    component="identity",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"source": source.name, "attempt": attempt},
                ),
            )
            if attempt < max_attempts:
                await asyncio.sleep(backoff_seconds)

    return ISP_UNKNOWN_LABEL
