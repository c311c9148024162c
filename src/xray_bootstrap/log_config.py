"""Bootstrap logging configuration.

Owns the package logger configuration (handlers, formatters).
Other modules get their own logger reference via:
    _logger = logging.getLogger(APP_NAME)

Python loggers are singletons by name, so all modules share the same
logger instance. This module owns the configuration; others just call
log_event(). Engine stderr is relayed through the ENGINE_LOGGER_NAME child
logger so operators can tell it apart from bootstrap progress.
"""

from __future__ import annotations

__all__ = [
    "ENGINE_LOGGER_NAME",
    "configure_logging",
    "log_event",
]

import logging
from pathlib import Path

from xray_bootstrap.constants import APP_NAME
from xray_bootstrap.models import BootstrapEvent
from xray_bootstrap.utils.logging.iso_formatter import ISO8601Formatter

ENGINE_LOGGER_NAME = f"{APP_NAME}.engine"

# Package logger - stderr only until configure_logging() is called
_logger = logging.getLogger(APP_NAME)
_logger.setLevel(logging.INFO)
_logger.propagate = False


class _ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
        else:
            msg = record.getMessage()
        if record.name == ENGINE_LOGGER_NAME:
            return f"[Xray] {msg}"
        return f"{record.levelname}: {msg}"


if not _logger.handlers:
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(_stderr_handler)


def configure_logging(level: int | str = logging.INFO, log_file: Path | None = None) -> None:
    """Configure package logging.

    Sets up:
    - stderr handler at the requested level (operator visibility)
    - optional JSONL file handler (same level) when log_file is given

    Calling again replaces the handlers, so CLI invocations in one process
    (tests) do not stack duplicates.

    Args:
        level: Logging level name or number.
        log_file: Optional JSONL log destination.
    """
    _logger.setLevel(level)

    # Close and clear any existing handlers to avoid resource leaks
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()

    stderr_handler = logging.StreamHandler()
    stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(stderr_handler)

    if log_file is None:
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            BootstrapEvent(
                event="file_logging_failed",
                message=f"Failed to open log file {log_file}, continuing with stderr only",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return

    file_handler.setFormatter(ISO8601Formatter())
    _logger.addHandler(file_handler)


def log_event(level: int, event: BootstrapEvent) -> None:
    """Log a BootstrapEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    _logger.log(level, event.model_dump(exclude_none=True))
