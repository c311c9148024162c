"""File helpers for generated artifacts.

Everything the bootstrap writes (archive, engine binary, config,
subscription file) goes through these helpers so removal and permission
handling behave the same everywhere.
"""

from __future__ import annotations

__all__ = [
    "generated_files",
    "make_executable",
    "remove_file",
    "write_text_file",
]

import logging
import sys
from pathlib import Path

from xray_bootstrap.constants import (
    APP_NAME,
    ARCHIVE_FILENAME,
    ENGINE_BINARY_RELPATH,
    ENGINE_CONFIG_FILENAME,
    EXECUTABLE_MODE,
    SUBSCRIPTION_FILENAME,
)

_logger = logging.getLogger(APP_NAME)


def generated_files(work_dir: Path) -> list[Path]:
    """Files removed on shutdown.

    The engine binary is not listed: it is replaced on every run anyway.
    The partial binary from an interrupted extraction is.

    Args:
        work_dir: Bootstrap working directory.

    Returns:
        Paths of the archive, partial binary, engine config and subscription file.
    """
    binary = work_dir / ENGINE_BINARY_RELPATH
    return [
        work_dir / ARCHIVE_FILENAME,
        binary.with_name(binary.name + ".part"),
        work_dir / ENGINE_CONFIG_FILENAME,
        work_dir / SUBSCRIPTION_FILENAME,
    ]


def remove_file(path: Path) -> bool:
    """Remove a file, treating a missing file as success.

    Other OS errors are logged and swallowed: every removal is independent
    and one failure must not stop the rest of a cleanup pass.

    Args:
        path: File to remove.

    Returns:
        True if the file is gone afterwards, False if removal failed.
    """
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        _logger.warning("Could not remove %s: %s", path, e)
        return False


def make_executable(path: Path) -> None:
    """Set rwxr-xr-x on the engine binary.

    Does nothing on Windows.

    Raises:
        OSError: If chmod fails. Unlike log directories, a binary that
            cannot be made executable is a provisioning failure.
    """
    if sys.platform == "win32":
        return
    path.chmod(EXECUTABLE_MODE)


def write_text_file(path: Path, content: str) -> None:
    """Write a generated text file, creating its parent directory.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
