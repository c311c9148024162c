"""JSONL formatter with ISO 8601 timestamps for the optional bootstrap log file."""

from __future__ import annotations

__all__ = ["ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ISO8601Formatter(logging.Formatter):
    """Render log records as one JSON object per line.

    Format: {"time": "2025-12-04T10:48:37.123Z", "level": "INFO", ...}

    Dict messages (BootstrapEvent dumps) are merged into the entry as-is.
    Plain messages end up under "message". Engine stderr lines logged via
    the "xray-bootstrap.engine" child logger keep their logger name so they
    can be filtered apart from bootstrap events.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname, "logger": record.name, **log_data}
        return json.dumps(log_entry, default=str)
