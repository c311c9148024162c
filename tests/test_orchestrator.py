"""Tests for the bootstrap orchestrator and shutdown hook.

Network stages are patched: resolve_isp returns a fixed label and
provision writes a shell script in place of the Xray binary.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from xray_bootstrap.config import BootstrapSettings
from xray_bootstrap.exceptions import HostContractError, ProvisioningError
from xray_bootstrap.identity import derive_access_path
from xray_bootstrap.orchestrator import Bootstrapper, ShutdownHook, run_bootstrap
from xray_bootstrap.subscription import decode_subscription
from xray_bootstrap.supervisor import ProcessSupervisor, SupervisorState

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals and shell engines")

FIXED_UUID = "de305d54-75b4-431b-adb2-eb6b9e546014"

# Keeps a copy of the config so tests can inspect it after cleanup
COPY_CONFIG = 'cp "$3" "$(dirname "$3")/config-seen.json"'


def _fake_provision(script_body: str):
    """provision() replacement installing a shell script as the engine."""

    async def _provision(target_path: Path, *, archive_path: Path, **kwargs) -> bool:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_text("#!/bin/sh\n" + script_body + "\n")
        target_path.chmod(0o755)
        return True

    return _provision


@pytest.fixture
def settings(tmp_path: Path) -> BootstrapSettings:
    return BootstrapSettings(domain="node.example.org", uuid=FIXED_UUID, name="Test", work_dir=tmp_path)


@pytest.fixture
def patched_network():
    """Patch ISP lookup; yields a setter for the provision() replacement."""
    with patch("xray_bootstrap.orchestrator.resolve_isp", AsyncMock(return_value="US-Example")):
        with patch("xray_bootstrap.orchestrator.provision") as provision_mock:
            provision_mock.side_effect = _fake_provision("exit 0")
            yield provision_mock


async def _wait_for_state(supervisor: ProcessSupervisor, state: SupervisorState) -> None:
    async def _poll() -> None:
        while supervisor.state is not state:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=5)


# ============================================================================
# prepare()
# ============================================================================


class TestPrepare:
    """Tests for Bootstrapper.prepare()."""

    async def test_writes_config_and_subscription(self, host_env, settings, patched_network) -> None:
        # Arrange
        bootstrapper = Bootstrapper(settings)

        # Act
        prepared = await bootstrapper.prepare()

        # Assert
        config = json.loads(prepared.config_path.read_text())
        inbound = config["inbounds"][0]
        assert inbound["port"] == 25565
        assert inbound["settings"]["clients"][0]["id"] == FIXED_UUID
        assert inbound["streamSettings"]["wsSettings"]["path"] == derive_access_path(FIXED_UUID)
        assert inbound["streamSettings"]["wsSettings"]["headers"] == {"Host": "node.example.org"}

        saved = (settings.work_dir / "vless_xray_links.txt").read_text()
        assert saved == prepared.subscription
        uri = decode_subscription(saved)
        assert uri.startswith(f"vless://{FIXED_UUID}@node.example.org:443?")
        assert uri.endswith("#Test-US-Example")

    async def test_prints_subscription(self, host_env, settings, patched_network, capsys) -> None:
        prepared = await Bootstrapper(settings).prepare()

        out = capsys.readouterr().out
        assert "Service is running..." in out
        assert prepared.subscription in out

    async def test_port_override(self, host_env, tmp_path: Path, patched_network) -> None:
        settings = BootstrapSettings(port=8080, work_dir=tmp_path)

        prepared = await Bootstrapper(settings).prepare()

        assert prepared.host.assigned_port == 8080
        assert json.loads(prepared.config_path.read_text())["inbounds"][0]["port"] == 8080

    async def test_custom_path_override(self, host_env, tmp_path: Path, patched_network) -> None:
        settings = BootstrapSettings(uuid=FIXED_UUID, ws_path="/live", work_dir=tmp_path)

        prepared = await Bootstrapper(settings).prepare()

        assert prepared.identity.access_path == "/live"
        assert "path=%2Flive" in decode_subscription(prepared.subscription)

    async def test_generated_identity_when_unset(self, host_env, tmp_path: Path, patched_network) -> None:
        prepared = await Bootstrapper(BootstrapSettings(work_dir=tmp_path)).prepare()

        assert prepared.identity.access_path == derive_access_path(prepared.identity.id)

    async def test_missing_host_contract_stops_early(self, no_host_env, settings, patched_network) -> None:
        with pytest.raises(HostContractError):
            await Bootstrapper(settings).prepare()

        patched_network.assert_not_called()
        assert not (settings.work_dir / "config.json").exists()

    async def test_provisioning_failure_stops_before_config(
        self, host_env, settings, patched_network
    ) -> None:
        # Arrange
        patched_network.side_effect = None
        patched_network.return_value = False

        # Act / Assert
        with pytest.raises(ProvisioningError) as exc_info:
            await Bootstrapper(settings).prepare()

        assert exc_info.value.exit_code == 2
        assert not (settings.work_dir / "config.json").exists()
        assert not (settings.work_dir / "vless_xray_links.txt").exists()

    async def test_creates_work_dir(self, host_env, tmp_path: Path, patched_network) -> None:
        work_dir = tmp_path / "fresh" / "dir"

        prepared = await Bootstrapper(BootstrapSettings(work_dir=work_dir)).prepare()

        assert prepared.config_path.parent == work_dir
        assert prepared.config_path.exists()


# ============================================================================
# run()
# ============================================================================


class TestRun:
    """Tests for Bootstrapper.run() end to end."""

    async def test_engine_exit_cleans_up(self, host_env, settings, patched_network) -> None:
        # Arrange
        patched_network.side_effect = _fake_provision(COPY_CONFIG)
        work_dir = settings.work_dir

        # Act
        exit_code = await run_bootstrap(settings)

        # Assert: the engine saw the generated config, then files were removed
        assert exit_code == 0
        seen = json.loads((work_dir / "config-seen.json").read_text())
        assert seen["inbounds"][0]["port"] == 25565
        assert not (work_dir / "config.json").exists()
        assert not (work_dir / "vless_xray_links.txt").exists()
        assert not (work_dir / "xray.zip").exists()

    async def test_provisioning_failure_raises_after_cleanup(
        self, host_env, settings, patched_network
    ) -> None:
        # Arrange
        patched_network.side_effect = None
        patched_network.return_value = False
        bootstrapper = Bootstrapper(settings)

        # Act
        with pytest.raises(ProvisioningError):
            await bootstrapper.run()

        # Assert
        assert bootstrapper.supervisor.state is SupervisorState.STOPPED
        assert bootstrapper.supervisor.pid is None

    async def test_host_contract_failure_raises(self, no_host_env, settings, patched_network) -> None:
        with pytest.raises(HostContractError):
            await run_bootstrap(settings)

    async def test_shutdown_request_stops_running_engine(self, host_env, settings, patched_network) -> None:
        # Arrange
        patched_network.side_effect = _fake_provision("exec sleep 30")
        bootstrapper = Bootstrapper(settings)
        run_task = asyncio.create_task(bootstrapper.run())
        await _wait_for_state(bootstrapper.supervisor, SupervisorState.RUNNING)
        assert (settings.work_dir / "config.json").exists()

        # Act
        bootstrapper.shutdown.request_shutdown()
        exit_code = await asyncio.wait_for(run_task, timeout=10)

        # Assert
        assert exit_code == 0
        assert bootstrapper.supervisor.state is SupervisorState.STOPPED
        assert not (settings.work_dir / "config.json").exists()
        assert not (settings.work_dir / "vless_xray_links.txt").exists()

    async def test_sigterm_stops_running_engine(self, host_env, settings, patched_network) -> None:
        # Arrange
        patched_network.side_effect = _fake_provision("exec sleep 30")
        bootstrapper = Bootstrapper(settings)
        run_task = asyncio.create_task(bootstrapper.run())
        await _wait_for_state(bootstrapper.supervisor, SupervisorState.RUNNING)

        # Act
        os.kill(os.getpid(), signal.SIGTERM)
        exit_code = await asyncio.wait_for(run_task, timeout=10)

        # Assert
        assert exit_code == 0
        assert bootstrapper.shutdown.received_signal == signal.SIGTERM
        assert not (settings.work_dir / "config.json").exists()

    async def test_shutdown_during_provisioning_cancels_it(self, host_env, settings, patched_network) -> None:
        # Arrange: provisioning hangs until cancelled
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def _hanging_provision(target_path: Path, *, archive_path: Path, **kwargs) -> bool:
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return True

        patched_network.side_effect = _hanging_provision
        bootstrapper = Bootstrapper(settings)
        run_task = asyncio.create_task(bootstrapper.run())
        await asyncio.wait_for(started.wait(), timeout=5)

        # Act
        bootstrapper.shutdown.request_shutdown(signal.SIGINT)
        exit_code = await asyncio.wait_for(run_task, timeout=10)

        # Assert
        assert exit_code == 0
        assert cancelled.is_set()
        assert bootstrapper.supervisor.pid is None
        assert bootstrapper.supervisor.state is SupervisorState.STOPPED
        assert not (settings.work_dir / "config.json").exists()

    async def test_signal_handlers_removed_after_run(self, host_env, settings, patched_network) -> None:
        await run_bootstrap(settings)

        assert signal.getsignal(signal.SIGTERM) == signal.SIG_DFL


# ============================================================================
# ShutdownHook
# ============================================================================


class TestShutdownHook:
    """Tests for ShutdownHook."""

    async def test_request_sets_flag_and_signal(self) -> None:
        hook = ShutdownHook(ProcessSupervisor())

        hook.request_shutdown(signal.SIGTERM)

        assert hook.requested
        assert hook.received_signal == signal.SIGTERM
        await asyncio.wait_for(hook.wait(), timeout=1)

    async def test_second_request_is_ignored(self) -> None:
        hook = ShutdownHook(ProcessSupervisor())

        hook.request_shutdown(signal.SIGINT)
        hook.request_shutdown(signal.SIGTERM)

        assert hook.received_signal == signal.SIGINT

    async def test_cleanup_runs_once(self) -> None:
        # Arrange
        supervisor = MagicMock(spec=ProcessSupervisor)
        supervisor.stop = AsyncMock()
        hook = ShutdownHook(supervisor)

        # Act
        await hook.cleanup()
        await hook.cleanup()

        # Assert
        supervisor.stop.assert_awaited_once()

    async def test_install_twice_raises(self) -> None:
        hook = ShutdownHook(ProcessSupervisor())
        loop = asyncio.get_running_loop()
        hook.install(loop)

        try:
            with pytest.raises(RuntimeError, match="already installed"):
                hook.install(loop)
        finally:
            hook.uninstall()

    async def test_uninstall_without_install_is_noop(self) -> None:
        ShutdownHook(ProcessSupervisor()).uninstall()
