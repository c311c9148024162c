"""Host contract detection.

The panel injects SERVER_IP and SERVER_PORT into every server container.
Without them there is no port to bind and nothing to advertise, so the
probe fails fast instead of guessing.
"""

from __future__ import annotations

__all__ = ["probe"]

import logging
import os
from collections.abc import Mapping

from xray_bootstrap.constants import HOST_IP_ENV, HOST_PORT_ENV
from xray_bootstrap.exceptions import HostContractError
from xray_bootstrap.log_config import log_event
from xray_bootstrap.models import BootstrapEvent, HostContext


def probe(environ: Mapping[str, str] | None = None) -> HostContext:
    """Read the host-assigned network parameters.

    Args:
        environ: Environment mapping (default: os.environ).

    Returns:
        HostContext with the external IP and assigned port.

    Raises:
        HostContractError: If either value is missing, or the port is not
            a valid TCP port number.
    """
    env = os.environ if environ is None else environ
    server_ip = env.get(HOST_IP_ENV, "").strip()
    server_port = env.get(HOST_PORT_ENV, "").strip()

    if not server_ip or not server_port:
        missing = [name for name, value in ((HOST_IP_ENV, server_ip), (HOST_PORT_ENV, server_port)) if not value]
        raise HostContractError(
            f"Pterodactyl environment not detected: {', '.join(missing)} not set"
        )

    try:
        port = int(server_port)
    except ValueError as e:
        raise HostContractError(f"{HOST_PORT_ENV} is not a number: {server_port!r}") from e
    if not 0 < port <= 65535:
        raise HostContractError(f"{HOST_PORT_ENV} out of range: {port}")

    host = HostContext(external_ip=server_ip, assigned_port=port)
    log_event(
        logging.INFO,
        BootstrapEvent(
            event="host_detected",
            message=f"Pterodactyl environment detected (port: {port})",
            component="environment",
            details={"external_ip": server_ip, "assigned_port": port},
        ),
    )
    return host
