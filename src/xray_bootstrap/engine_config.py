"""Xray runtime configuration.

The generated config.json is the only contract between the bootstrap and
the engine binary, so field names here follow Xray's schema exactly
(camelCase via aliases). The document is rebuilt from scratch every run.

Layout:
    log        errors only
    inbounds   one VLESS listener on 0.0.0.0:<port>, WebSocket transport
               keyed on the access path and the domain's Host header
    outbounds  one unrestricted "freedom" egress
    policy     level 0 with small buffers and a short idle timeout
"""

from __future__ import annotations

__all__ = [
    "EngineConfig",
    "build_engine_config",
    "generate",
]

import json
from pathlib import Path
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from xray_bootstrap.constants import ENGINE_BUFFER_SIZE_KB, ENGINE_CONN_IDLE_SECONDS
from xray_bootstrap.models import HostContext, Identity
from xray_bootstrap.utils.file_helpers import write_text_file


class _XrayModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LogSettings(_XrayModel):
    loglevel: Literal["debug", "info", "warning", "error", "none"] = "error"


class VlessClient(_XrayModel):
    id: str
    level: int = 0


class VlessSettings(_XrayModel):
    clients: List[VlessClient]
    decryption: Literal["none"] = "none"


class WsSettings(_XrayModel):
    path: str
    headers: Dict[str, str]


class StreamSettings(_XrayModel):
    network: Literal["ws"] = "ws"
    # TLS terminates at the CDN
    security: Literal["none"] = "none"
    ws_settings: WsSettings = Field(alias="wsSettings")


class Inbound(_XrayModel):
    port: int = Field(gt=0, le=65535)
    listen: str = "0.0.0.0"
    protocol: Literal["vless"] = "vless"
    settings: VlessSettings
    stream_settings: StreamSettings = Field(alias="streamSettings")


class Outbound(_XrayModel):
    protocol: Literal["freedom"] = "freedom"
    settings: Dict[str, Any] = Field(default_factory=dict)


class LevelPolicy(_XrayModel):
    buffer_size: int = Field(alias="bufferSize")
    conn_idle: int = Field(alias="connIdle")


class Policy(_XrayModel):
    levels: Dict[str, LevelPolicy]


class EngineConfig(_XrayModel):
    """Complete Xray config document."""

    log: LogSettings = Field(default_factory=LogSettings)
    inbounds: List[Inbound]
    outbounds: List[Outbound] = Field(default_factory=lambda: [Outbound()])
    policy: Policy

    def to_json(self) -> str:
        """Serialize with Xray field names, 2-space indented."""
        return json.dumps(self.model_dump(by_alias=True), indent=2)


def build_engine_config(identity: Identity, host: HostContext, *, domain: str) -> EngineConfig:
    """Build the config document for one identity and listen port.

    Args:
        identity: Client id and WebSocket path.
        host: Host context; assigned_port is the listen port.
        domain: Expected Host header.

    Returns:
        EngineConfig ready to serialize.
    """
    inbound = Inbound(
        port=host.assigned_port,
        settings=VlessSettings(clients=[VlessClient(id=identity.id)]),
        stream_settings=StreamSettings(
            ws_settings=WsSettings(path=identity.access_path, headers={"Host": domain}),
        ),
    )
    return EngineConfig(
        inbounds=[inbound],
        policy=Policy(
            levels={"0": LevelPolicy(buffer_size=ENGINE_BUFFER_SIZE_KB, conn_idle=ENGINE_CONN_IDLE_SECONDS)}
        ),
    )


def generate(identity: Identity, host: HostContext, *, domain: str, config_path: Path) -> EngineConfig:
    """Write the engine config file.

    Args:
        identity: Client id and WebSocket path.
        host: Host context; assigned_port is the listen port.
        domain: Expected Host header.
        config_path: Destination (overwritten).

    Returns:
        The written config.

    Raises:
        OSError: If the file cannot be written.
    """
    config = build_engine_config(identity, host, domain=domain)
    write_text_file(config_path, config.to_json())
    return config
