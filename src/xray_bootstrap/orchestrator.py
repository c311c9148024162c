"""Bootstrap orchestrator (run_bootstrap entry point).

Sequence (strictly sequential, one event loop):
    probe environment       fatal on failure (HostContractError)
    resolve identity        always succeeds
    resolve ISP label       best effort, 3 attempts
    provision engine        fatal on failure (ProvisioningError)
    generate config
    show + save subscription link
    start engine and wait

The ShutdownHook is installed before any I/O starts. SIGINT/SIGTERM cancel
the pipeline wherever it is suspended (mid-download, mid-extraction,
waiting on the engine) and the same cleanup routine always runs once
afterwards: terminate the engine, delete generated files.
"""

from __future__ import annotations

__all__ = [
    "Bootstrapper",
    "PreparedRun",
    "ShutdownHook",
    "run_bootstrap",
]

import asyncio
import logging
import signal
from dataclasses import dataclass
from pathlib import Path

from xray_bootstrap.config import BootstrapSettings
from xray_bootstrap.constants import (
    ARCHIVE_FILENAME,
    ENGINE_BINARY_RELPATH,
    ENGINE_CONFIG_FILENAME,
    ISP_LOOKUP_MAX_ATTEMPTS,
    SUBSCRIPTION_FILENAME,
)
from xray_bootstrap.engine_config import generate
from xray_bootstrap.environment import probe
from xray_bootstrap.exceptions import ProvisioningError
from xray_bootstrap.identity import resolve_identity, resolve_isp
from xray_bootstrap.log_config import log_event
from xray_bootstrap.models import BootstrapEvent, HostContext, Identity
from xray_bootstrap.provisioning import provision
from xray_bootstrap.subscription import (
    build_vless_uri,
    encode_subscription,
    show_subscription,
    write_subscription,
)
from xray_bootstrap.supervisor import ProcessSupervisor
from xray_bootstrap.utils.file_helpers import generated_files

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass(frozen=True)
class PreparedRun:
    """Everything produced before the engine starts."""

    host: HostContext
    identity: Identity
    isp_label: str
    binary_path: Path
    config_path: Path
    subscription: str


class ShutdownHook:
    """Process-wide shutdown hook.

    Registered once per run; turns SIGINT/SIGTERM into an event and owns the
    single cleanup routine (supervisor.stop()).
    """

    def __init__(self, supervisor: ProcessSupervisor) -> None:
        self._supervisor = supervisor
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cleaned_up = False
        self.received_signal: int | None = None

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Register signal handlers on the loop.

        Raises:
            RuntimeError: If already installed.
        """
        if self._loop is not None:
            raise RuntimeError("Shutdown hook already installed")
        self._loop = loop
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.request_shutdown, sig)

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in _SHUTDOWN_SIGNALS:
            self._loop.remove_signal_handler(sig)
        self._loop = None

    def request_shutdown(self, signum: int | None = None) -> None:
        if self._event.is_set():
            return
        self.received_signal = signum
        log_event(
            logging.INFO,
            BootstrapEvent(
                event="shutdown_signal_received",
                message="Stopping service...",
                details={"signal": signum} if signum is not None else None,
            ),
        )
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    async def cleanup(self) -> None:
        """Stop the engine and remove generated files, once."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        await self._supervisor.stop()


class Bootstrapper:
    """Runs the bootstrap pipeline for one set of settings.

    Args:
        settings: Operator overrides and work directory.
        supervisor: Optional pre-built supervisor (default: one that removes
            the standard generated files of settings.work_dir).
    """

    def __init__(self, settings: BootstrapSettings, supervisor: ProcessSupervisor | None = None) -> None:
        self.settings = settings
        work_dir = settings.work_dir
        self.archive_path = work_dir / ARCHIVE_FILENAME
        self.binary_path = work_dir / ENGINE_BINARY_RELPATH
        self.config_path = work_dir / ENGINE_CONFIG_FILENAME
        self.subscription_path = work_dir / SUBSCRIPTION_FILENAME
        self.supervisor = supervisor or ProcessSupervisor(generated_files(work_dir))
        self.shutdown = ShutdownHook(self.supervisor)

    async def prepare(self) -> PreparedRun:
        """Run every stage up to (not including) starting the engine.

        Raises:
            HostContractError: If SERVER_IP / SERVER_PORT are missing.
            ProvisioningError: If the engine binary could not be installed.
            OSError: If generated files cannot be written.
        """
        settings = self.settings

        host = probe()
        if settings.port is not None:
            host = host.model_copy(update={"assigned_port": settings.port})

        identity = resolve_identity(settings.uuid, settings.ws_path)
        isp_label = await resolve_isp(ISP_LOOKUP_MAX_ATTEMPTS)

        settings.work_dir.mkdir(parents=True, exist_ok=True)
        if not await provision(self.binary_path, archive_path=self.archive_path):
            raise ProvisioningError("Engine binary could not be provisioned; not starting")

        generate(identity, host, domain=settings.domain, config_path=self.config_path)

        uri = build_vless_uri(identity, domain=settings.domain, node_name=f"{settings.name}-{isp_label}")
        encoded = encode_subscription(uri)
        show_subscription(encoded)
        write_subscription(self.subscription_path, encoded)

        return PreparedRun(
            host=host,
            identity=identity,
            isp_label=isp_label,
            binary_path=self.binary_path,
            config_path=self.config_path,
            subscription=encoded,
        )

    async def _pipeline(self) -> None:
        prepared = await self.prepare()
        await self.supervisor.start(prepared.binary_path, prepared.config_path)
        await self.supervisor.wait()

    async def run(self) -> int:
        """Run the pipeline until the engine exits or a signal arrives.

        Returns:
            0 (graceful shutdown or engine exit).

        Raises:
            BootstrapError: Fatal pipeline failures, after cleanup.
        """
        self.shutdown.install(asyncio.get_running_loop())
        pipeline = asyncio.create_task(self._pipeline())
        stop_requested = asyncio.create_task(self.shutdown.wait())
        try:
            await asyncio.wait({pipeline, stop_requested}, return_when=asyncio.FIRST_COMPLETED)
            if not pipeline.done():
                pipeline.cancel()
                try:
                    await pipeline
                except asyncio.CancelledError:
                    pass  # Abandoned on shutdown request
            else:
                pipeline.result()
        finally:
            stop_requested.cancel()
            await self.shutdown.cleanup()
            self.shutdown.uninstall()
        return 0


async def run_bootstrap(settings: BootstrapSettings) -> int:
    """Bootstrap, supervise and clean up.

    Args:
        settings: Operator overrides and work directory.

    Returns:
        Process exit code (0).
    """
    return await Bootstrapper(settings).run()
