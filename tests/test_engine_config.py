"""Tests for engine config generation.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from xray_bootstrap.engine_config import build_engine_config, generate
from xray_bootstrap.models import HostContext, Identity

IDENTITY = Identity(id="de305d54-75b4-431b-adb2-eb6b9e546014", access_path="/a1b2c3d4")
HOST = HostContext(external_ip="1.2.3.4", assigned_port=25565)


@pytest.fixture
def written(tmp_path: Path) -> dict:
    """Config generated to disk and parsed back."""
    config_path = tmp_path / "config.json"
    generate(IDENTITY, HOST, domain="node.example.org", config_path=config_path)
    return json.loads(config_path.read_text())


class TestGenerate:
    """Tests for the written config.json document."""

    def test_single_vless_inbound(self, written: dict) -> None:
        assert len(written["inbounds"]) == 1
        inbound = written["inbounds"][0]

        assert inbound["protocol"] == "vless"
        assert inbound["listen"] == "0.0.0.0"
        assert inbound["port"] == 25565

    def test_client_id_and_decryption(self, written: dict) -> None:
        settings = written["inbounds"][0]["settings"]

        assert settings["clients"] == [{"id": IDENTITY.id, "level": 0}]
        assert settings["decryption"] == "none"

    def test_websocket_transport(self, written: dict) -> None:
        stream = written["inbounds"][0]["streamSettings"]

        assert stream["network"] == "ws"
        assert stream["security"] == "none"
        assert stream["wsSettings"] == {"path": "/a1b2c3d4", "headers": {"Host": "node.example.org"}}

    def test_freedom_outbound(self, written: dict) -> None:
        assert written["outbounds"] == [{"protocol": "freedom", "settings": {}}]

    def test_error_only_logging(self, written: dict) -> None:
        assert written["log"] == {"loglevel": "error"}

    def test_level_zero_policy(self, written: dict) -> None:
        assert written["policy"] == {"levels": {"0": {"bufferSize": 64, "connIdle": 120}}}

    def test_no_snake_case_keys_leak(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.json"
        generate(IDENTITY, HOST, domain="example.com", config_path=config_path)

        text = config_path.read_text()

        assert "stream_settings" not in text
        assert "ws_settings" not in text
        assert "buffer_size" not in text

    def test_overwrites_previous_config(self, tmp_path: Path) -> None:
        # Arrange
        config_path = tmp_path / "config.json"
        config_path.write_text("{stale")

        # Act
        generate(IDENTITY, HOST, domain="example.com", config_path=config_path)

        # Assert
        assert json.loads(config_path.read_text())["inbounds"][0]["port"] == 25565

    def test_creates_missing_parent(self, tmp_path: Path) -> None:
        config_path = tmp_path / "nested" / "config.json"

        generate(IDENTITY, HOST, domain="example.com", config_path=config_path)

        assert config_path.exists()


class TestBuildEngineConfig:
    """Tests for build_engine_config()."""

    def test_port_follows_host_context(self) -> None:
        host = HOST.model_copy(update={"assigned_port": 8443})

        config = build_engine_config(IDENTITY, host, domain="example.com")

        assert config.inbounds[0].port == 8443

    def test_returned_model_matches_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.json"

        config = generate(IDENTITY, HOST, domain="example.com", config_path=config_path)

        assert json.loads(config.to_json()) == json.loads(config_path.read_text())
