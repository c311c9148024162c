"""Pydantic models shared across the bootstrap pipeline.

Data Models (FrozenModel-based, immutable once created):
- HostContext: Network parameters injected by the panel
- Identity: Client credential and WebSocket access path

Logging Models:
- BootstrapEvent: Structured log entries for the bootstrap pipeline
"""

from __future__ import annotations

__all__ = [
    "BootstrapEvent",
    "FrozenModel",
    "HostContext",
    "Identity",
]

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models."""

    model_config = ConfigDict(frozen=True)


class HostContext(FrozenModel):
    """Host-assigned network parameters.

    Attributes:
        external_ip: Public IP of the container (SERVER_IP).
        assigned_port: Port the panel forwards to this container (SERVER_PORT).
    """

    external_ip: str = Field(min_length=1)
    assigned_port: int = Field(gt=0, le=65535)


class Identity(FrozenModel):
    """Client credential and access path for the engine listener.

    Attributes:
        id: VLESS client id (UUID string).
        access_path: WebSocket upgrade path, always starts with "/".
    """

    id: str = Field(min_length=1)
    access_path: str = Field(pattern=r"^/")


class BootstrapEvent(BaseModel):
    """One bootstrap log entry.

    Note: 'time' is None when created, populated by ISO8601Formatter when a
    file handler is configured. Console output only shows 'message'.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: str = Field(description="Machine-friendly event name, e.g. 'engine_started'")
    message: str = Field(description="Human-readable log message")

    # --- context ---
    component: Optional[str] = Field(
        None,
        description="Pipeline stage, e.g. 'environment', 'provisioning', 'supervisor'",
    )

    # --- error details ---
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    # --- additional structured details ---
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")
