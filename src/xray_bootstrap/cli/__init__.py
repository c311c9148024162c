"""Command-line interface for xray-bootstrap.

Provides commands for running the bootstrap, inspecting the engine download
URL, decoding subscription lines and removing leftover files.
"""

from .main import cli, main

__all__ = ["cli", "main"]
