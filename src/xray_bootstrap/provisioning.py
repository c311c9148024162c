"""Engine binary provisioning.

Downloads the Xray release archive for this CPU, extracts the single
`xray` entry and installs it as an executable.

Steps (each may fail):
1. Pick the release asset for platform.machine()
2. Stream the archive to disk, following redirects (bounded)
3. Open the zip and locate the engine entry; other entries are never read
4. Stream the entry into <target>.part, chmod, rename onto <target>
5. Delete the archive

The binary is written under a temporary name and renamed only once it is
complete and executable, so a file at the target path is never a
half-written binary. Any failure (or cancellation) removes the partial
file, the archive and the target. A later run always downloads again.
"""

from __future__ import annotations

__all__ = [
    "download_archive",
    "extract_engine",
    "provision",
    "resolve_download_url",
]

import asyncio
import logging
import os
import platform
import zipfile
import zlib
from pathlib import Path

import httpx

from xray_bootstrap.constants import (
    BROWSER_USER_AGENT,
    DOWNLOAD_MAX_REDIRECTS,
    DOWNLOAD_TIMEOUT_SECONDS,
    EXTRACT_CHUNK_SIZE,
    XRAY_ASSET_BY_MACHINE,
    XRAY_ENTRY_NAME,
    XRAY_RELEASE_BASE_URL,
)
from xray_bootstrap.exceptions import ProvisioningError, UnsupportedArchitectureError
from xray_bootstrap.log_config import log_event
from xray_bootstrap.models import BootstrapEvent
from xray_bootstrap.utils.file_helpers import make_executable, remove_file


def resolve_download_url(machine: str | None = None) -> str:
    """Map a CPU architecture to its release asset URL.

    Args:
        machine: platform.machine()-style name (default: this host).

    Returns:
        Download URL of the matching Xray-linux-*.zip asset.

    Raises:
        UnsupportedArchitectureError: If no asset exists for the architecture.
    """
    machine = machine if machine is not None else platform.machine()
    suffix = XRAY_ASSET_BY_MACHINE.get(machine.lower())
    if suffix is None:
        raise UnsupportedArchitectureError(machine)
    return f"{XRAY_RELEASE_BASE_URL}/Xray-linux-{suffix}.zip"


async def download_archive(client: httpx.AsyncClient, url: str, dest: Path) -> int:
    """Stream a URL to a file.

    Redirects are followed by the client (see provision() for the cap).

    Args:
        client: httpx client configured with follow_redirects.
        url: Archive URL.
        dest: Destination file (overwritten).

    Returns:
        Number of bytes written.

    Raises:
        httpx.HTTPError: On transport errors, non-2xx responses, or too
            many redirects.
        OSError: If the file cannot be written.
    """
    written = 0
    async with client.stream("GET", url, headers={"User-Agent": BROWSER_USER_AGENT}) as response:
        response.raise_for_status()
        with dest.open("wb") as f:
            async for chunk in response.aiter_bytes():
                f.write(chunk)
                written += len(chunk)
    return written


async def extract_engine(archive_path: Path, target_path: Path) -> None:
    """Install the engine entry of an archive at target_path.

    Only the central directory and the matching entry are read. The entry is
    copied in EXTRACT_CHUNK_SIZE pieces, yielding to the event loop between
    pieces so a shutdown signal is noticed mid-extraction.

    Args:
        archive_path: Downloaded zip file.
        target_path: Final location of the executable.

    Raises:
        ProvisioningError: If the archive has no engine entry, or the entry
            is corrupt, truncated or uses an unsupported compression method.
        zipfile.BadZipFile: If the archive is corrupt.
        OSError: If writing or chmod fails.
    """
    partial_path = target_path.with_name(target_path.name + ".part")
    target_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path) as archive:
            info = next(
                (entry for entry in archive.infolist() if entry.filename == XRAY_ENTRY_NAME),
                None,
            )
            if info is None:
                raise ProvisioningError(f"Archive {archive_path.name} has no '{XRAY_ENTRY_NAME}' entry")

            try:
                with archive.open(info) as src, partial_path.open("wb") as dst:
                    while chunk := src.read(EXTRACT_CHUNK_SIZE):
                        dst.write(chunk)
                        await asyncio.sleep(0)
            except (zlib.error, EOFError, NotImplementedError) as e:
                # Corrupt, truncated or unsupported-compression entry
                raise ProvisioningError(f"Cannot extract '{XRAY_ENTRY_NAME}': {e}") from e

        make_executable(partial_path)
        os.replace(partial_path, target_path)
    except BaseException:
        remove_file(partial_path)
        raise


def _discard(*paths: Path) -> None:
    for path in paths:
        remove_file(path)


async def provision(
    target_path: Path,
    *,
    archive_path: Path,
    url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Download, extract and install the engine binary.

    Args:
        target_path: Where the executable ends up.
        archive_path: Temporary location of the downloaded zip.
        url: Archive URL (default: resolved from this host's architecture).
        client: Optional httpx client; a redirect-following client with
            DOWNLOAD_MAX_REDIRECTS is created otherwise.

    Returns:
        True if the binary is installed and executable, False on any failure.

    Raises:
        asyncio.CancelledError: Propagated after partial files are removed.
    """
    if target_path.exists():
        # Informational only: a leftover binary may be partial or outdated
        log_event(
            logging.INFO,
            BootstrapEvent(
                event="stale_binary_found",
                message=f"Replacing existing engine binary at {target_path}",
                component="provisioning",
            ),
        )
    _discard(target_path)

    if client is None:
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=DOWNLOAD_MAX_REDIRECTS,
            timeout=DOWNLOAD_TIMEOUT_SECONDS,
        ) as own_client:
            return await provision(target_path, archive_path=archive_path, url=url, client=own_client)

    try:
        download_url = url or resolve_download_url()
        log_event(
            logging.INFO,
            BootstrapEvent(
                event="download_started",
                message="Downloading Xray...",
                component="provisioning",
                details={"url": download_url},
            ),
        )
        size = await download_archive(client, download_url, archive_path)
        await extract_engine(archive_path, target_path)
    except asyncio.CancelledError:
        _discard(archive_path, target_path)
        raise
    except (ProvisioningError, httpx.HTTPError, zipfile.BadZipFile, OSError) as e:
        _discard(archive_path, target_path)
        log_event(
            logging.ERROR,
            BootstrapEvent(
                event="provisioning_failed",
                message=f"Download/extraction failed: {e}",
                component="provisioning",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return False

    remove_file(archive_path)
    log_event(
        logging.INFO,
        BootstrapEvent(
            event="engine_installed",
            message=f"Xray installed at {target_path}",
            component="provisioning",
            details={"archive_bytes": size},
        ),
    )
    return True
