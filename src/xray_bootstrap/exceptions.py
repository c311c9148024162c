"""Custom exceptions for xray-bootstrap.

Exceptions are organized by how the orchestrator reacts to them:

Fatal (bootstrap halts, process exits non-zero):
    - HostContractError: Panel did not inject SERVER_IP / SERVER_PORT
    - ProvisioningError: Engine binary could not be downloaded or installed
    - ConfigurationError: Override settings are malformed

Degraded failures (ISP label lookup) are never raised past
identity.resolve_isp(); they fall back to a sentinel label.

Usage:
    from xray_bootstrap.exceptions import HostContractError, ProvisioningError
"""

from __future__ import annotations

__all__ = [
    "BootstrapError",
    "ConfigurationError",
    "HostContractError",
    "ProvisioningError",
    "UnsupportedArchitectureError",
]


class BootstrapError(Exception):
    """Base exception for failures that stop the bootstrap.

    Subclasses define specific failure types with distinct exit codes:
    - HostContractError (exit 1): Hosting environment contract missing
    - ProvisioningError (exit 2): Engine binary unavailable
    - ConfigurationError (exit 3): Invalid override settings

    Attributes:
        exit_code: Process exit code.
        failure_type: Category string for logging.
    """

    exit_code: int = 1
    failure_type: str = "unknown"


class HostContractError(BootstrapError):
    """Required host-provided values are absent or malformed.

    Raised when:
    - SERVER_IP is not set or empty
    - SERVER_PORT is not set, empty, or not a valid TCP port

    A missing hosting contract cannot self-heal, so there is no retry.
    """

    exit_code = 1
    failure_type = "host_contract_missing"


class ProvisioningError(BootstrapError):
    """Engine binary could not be downloaded, extracted or installed.

    The engine is never started after this error; no half-configured
    service is left running.
    """

    exit_code = 2
    failure_type = "provisioning_failure"


class UnsupportedArchitectureError(ProvisioningError):
    """Host CPU architecture has no matching engine release asset."""

    failure_type = "unsupported_architecture"

    def __init__(self, machine: str) -> None:
        self.machine = machine
        super().__init__(f"Unsupported CPU architecture: {machine!r}")


class ConfigurationError(BootstrapError):
    """Override settings (UUID, PORT, ...) are invalid.

    Exit code 3 indicates configuration failure.
    """

    exit_code = 3
    failure_type = "configuration_failure"
