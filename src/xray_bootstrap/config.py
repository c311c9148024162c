"""Deployment settings for xray-bootstrap.

Panel eggs only let operators set environment variables, so every override
is read from the environment. The CLI can override each of them again.
Empty strings count as "not set" (panel variables are never truly unset).

Environment variables:
    DOMAIN     Public domain fronting the node (CDN, orange cloud on)
    UUID       Fixed client id; generated per run when empty
    WSPATH     Fixed WebSocket path; derived from UUID when empty
    PORT       Listen port; defaults to the panel-assigned SERVER_PORT
    NAME       Node name prefix shown in clients
    XRAY_BOOTSTRAP_WORK_DIR   Where generated files live (default: cwd)
    XRAY_BOOTSTRAP_LOG_LEVEL  DEBUG/INFO/WARNING/ERROR (default: INFO)
    XRAY_BOOTSTRAP_LOG_FILE   Optional JSONL log file

Example usage:
    settings = load_settings(os.environ)
    settings = settings.model_copy(update={"domain": "node.example.org"})
"""

from __future__ import annotations

__all__ = [
    "BootstrapSettings",
    "default_log_file",
    "load_settings",
]

import os
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from platformdirs import user_log_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from xray_bootstrap.constants import APP_NAME, DEFAULT_DOMAIN, DEFAULT_NODE_NAME
from xray_bootstrap.exceptions import ConfigurationError

# Environment variable -> settings field
_ENV_FIELDS: dict[str, str] = {
    "DOMAIN": "domain",
    "UUID": "uuid",
    "WSPATH": "ws_path",
    "PORT": "port",
    "NAME": "name",
    "XRAY_BOOTSTRAP_WORK_DIR": "work_dir",
    "XRAY_BOOTSTRAP_LOG_LEVEL": "log_level",
    "XRAY_BOOTSTRAP_LOG_FILE": "log_file",
}


def default_log_file() -> Path:
    """Platform log location used by `run --persist-log`.

    Returns:
        <user_log_dir>/xray-bootstrap/bootstrap.jsonl
    """
    return Path(user_log_dir(APP_NAME)) / "bootstrap.jsonl"


class BootstrapSettings(BaseModel):
    """Operator overrides for one bootstrap run.

    Attributes:
        domain: Domain used in the Host header and subscription link.
        uuid: Fixed client id, or None to generate one.
        ws_path: Fixed access path, or None to derive it from the id.
        port: Listen port override, or None to use SERVER_PORT.
        name: Node name prefix for the subscription fragment.
        work_dir: Directory holding every generated file.
        log_level: Logging level name.
        log_file: Optional JSONL log file.
    """

    model_config = ConfigDict(frozen=True)

    domain: str = Field(default=DEFAULT_DOMAIN, min_length=1)
    uuid: str | None = None
    ws_path: str | None = None
    port: int | None = Field(default=None, gt=0, le=65535)
    name: str = Field(default=DEFAULT_NODE_NAME, min_length=1)
    work_dir: Path = Field(default_factory=Path.cwd)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path | None = None

    @field_validator("uuid")
    @classmethod
    def _validate_uuid(cls, value: str | None) -> str | None:
        if value is None:
            return None
        # Kept verbatim: the access path is md5 of this exact string
        try:
            uuid.UUID(value)
        except ValueError as e:
            raise ValueError(f"not a valid UUID: {value!r}") from e
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


def load_settings(environ: Mapping[str, str] | None = None, **overrides: object) -> BootstrapSettings:
    """Build settings from environment variables plus explicit overrides.

    Overrides with value None are ignored so click options that were not
    given fall back to the environment.

    Args:
        environ: Environment mapping (default: os.environ).
        **overrides: Field values taking precedence over the environment.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    env = os.environ if environ is None else environ

    data: dict[str, object] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        value = env.get(env_name, "").strip()
        if value:
            data[field_name] = value
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return BootstrapSettings.model_validate(data)
    except ValidationError as e:
        field_to_env = {v: k for k, v in _ENV_FIELDS.items()}
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            env_hint = f" ({field_to_env[loc]})" if loc in field_to_env else ""
            errors.append(f"  - {loc}{env_hint}: {error['msg']}")
        raise ConfigurationError("Invalid bootstrap settings:\n" + "\n".join(errors)) from e
