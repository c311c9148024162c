"""Shared fixtures for xray-bootstrap tests."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from xray_bootstrap.constants import APP_NAME
from xray_bootstrap.log_config import configure_logging


@pytest.fixture(autouse=True)
def _fresh_logging() -> None:
    """Rebind the console handler to this test's captured stderr."""
    configure_logging("INFO")


@pytest.fixture
def host_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Panel host contract with no operator overrides."""
    env = {"SERVER_IP": "1.2.3.4", "SERVER_PORT": "25565"}
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    for name in ("DOMAIN", "UUID", "WSPATH", "PORT", "NAME"):
        monkeypatch.delenv(name, raising=False)
    return env


@pytest.fixture
def no_host_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment without the panel host contract."""
    monkeypatch.delenv("SERVER_IP", raising=False)
    monkeypatch.delenv("SERVER_PORT", raising=False)


@pytest.fixture
def make_zip() -> Callable[[dict[str, bytes]], bytes]:
    """Build an in-memory zip archive from {entry_name: content}."""

    def _make(entries: dict[str, bytes]) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, content in entries.items():
                archive.writestr(name, content)
        return buf.getvalue()

    return _make


@pytest.fixture
def write_engine(tmp_path: Path) -> Callable[[str, Path | None], Path]:
    """Write an executable shell script standing in for the Xray binary."""

    def _write(body: str, path: Path | None = None) -> Path:
        script = path or tmp_path / "fake-xray"
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(0o755)
        return script

    return _write


@pytest.fixture
def captured_logs(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """Route the package logger (propagate=False) into caplog."""
    package_logger = logging.getLogger(APP_NAME)
    package_logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        package_logger.removeHandler(caplog.handler)
