"""Logging utilities.

- iso_formatter: ISO 8601 timestamp formatting for JSONL log files

Import directly from submodules:
    from xray_bootstrap.utils.logging.iso_formatter import ISO8601Formatter
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
