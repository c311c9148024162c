"""Engine process supervision.

ProcessSupervisor exclusively owns the engine subprocess:
- start(): spawn `<binary> run -config <config>` with stdout discarded and
  stderr relayed line by line to the "xray-bootstrap.engine" logger
- wait(): block until the engine exits on its own
- stop(): SIGTERM (SIGKILL after a grace period), then remove generated files

State machine:
    NOT_STARTED -> RUNNING -> STOPPING -> STOPPED
    NOT_STARTED -> STOPPING -> STOPPED   (shutdown before the engine started)

stop() runs its sequence once; later calls return immediately. A crashed
engine is reported, never restarted.
"""

from __future__ import annotations

__all__ = [
    "ProcessSupervisor",
    "SupervisorState",
]

import asyncio
import logging
import os
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from xray_bootstrap.constants import ENGINE_ENV_OVERRIDES, ENGINE_STOP_TIMEOUT_SECONDS
from xray_bootstrap.log_config import ENGINE_LOGGER_NAME, log_event
from xray_bootstrap.models import BootstrapEvent
from xray_bootstrap.utils.file_helpers import remove_file

_engine_logger = logging.getLogger(ENGINE_LOGGER_NAME)


class SupervisorState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ProcessSupervisor:
    """Owns the engine subprocess and the files generated for it.

    Args:
        artifacts: Files to delete when stopping (missing files are fine).
        stop_timeout: Seconds between SIGTERM and SIGKILL.
    """

    def __init__(
        self,
        artifacts: Iterable[Path] = (),
        *,
        stop_timeout: float = ENGINE_STOP_TIMEOUT_SECONDS,
    ) -> None:
        self._artifacts = list(artifacts)
        self._stop_timeout = stop_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._relay_task: asyncio.Task[None] | None = None
        self._state = SupervisorState.NOT_STARTED

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self, executable: Path, config_path: Path) -> asyncio.subprocess.Process:
        """Spawn the engine.

        Args:
            executable: Installed engine binary.
            config_path: Generated config.json.

        Returns:
            The spawned process.

        Raises:
            RuntimeError: If the supervisor already started or stopped.
            OSError: If the binary cannot be executed.
        """
        if self._state is not SupervisorState.NOT_STARTED:
            raise RuntimeError(f"Cannot start engine in state {self._state.value}")

        env = {**os.environ, **ENGINE_ENV_OVERRIDES}
        self._process = await asyncio.create_subprocess_exec(
            str(executable),
            "run",
            "-config",
            str(config_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        self._state = SupervisorState.RUNNING
        self._relay_task = asyncio.create_task(self._relay_stderr(self._process))

        log_event(
            logging.INFO,
            BootstrapEvent(
                event="engine_started",
                message=f"Xray started (pid: {self._process.pid})",
                component="supervisor",
                details={"pid": self._process.pid, "config": str(config_path)},
            ),
        )
        return self._process

    async def _relay_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        async for raw_line in process.stderr:
            line = raw_line.decode("utf-8", errors="replace").rstrip()
            if line:
                _engine_logger.info(line)

    async def wait(self) -> int:
        """Wait for the engine to exit on its own.

        Returns:
            The engine's return code.

        Raises:
            RuntimeError: If the engine was never started.
        """
        if self._process is None:
            raise RuntimeError("Engine not started")

        returncode = await self._process.wait()
        if self._relay_task is not None:
            # stop() may cancel the relay; asyncio.wait does not re-raise that
            await asyncio.wait({self._relay_task})
        if self._state is SupervisorState.RUNNING:
            log_event(
                logging.WARNING,
                BootstrapEvent(
                    event="engine_exited",
                    message=f"Xray exited with code {returncode}",
                    component="supervisor",
                    details={"returncode": returncode},
                ),
            )
        return returncode

    async def stop(self) -> None:
        """Terminate the engine and delete generated files.

        Safe to call in any state, any number of times.
        """
        if self._state in (SupervisorState.STOPPING, SupervisorState.STOPPED):
            return
        self._state = SupervisorState.STOPPING

        try:
            await self._terminate()
        finally:
            self._remove_artifacts()
            self._state = SupervisorState.STOPPED

    async def _terminate(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return

        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            log_event(
                logging.WARNING,
                BootstrapEvent(
                    event="engine_kill",
                    message=f"Xray did not exit within {self._stop_timeout:.0f}s, sending SIGKILL",
                    component="supervisor",
                ),
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass  # Exited between timeout and kill
            await process.wait()

        if self._relay_task is not None and not self._relay_task.done():
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass

        log_event(
            logging.INFO,
            BootstrapEvent(
                event="engine_stopped",
                message=f"Xray stopped (code: {process.returncode})",
                component="supervisor",
                details={"returncode": process.returncode},
            ),
        )

    def _remove_artifacts(self) -> None:
        for path in self._artifacts:
            remove_file(path)
