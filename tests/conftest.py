"""
Pytest configuration and shared fixtures for tunnel-keeper tests.

Provides a fake host tunnel subsystem and a fake provisioner so the
supervisor state machine runs without touching wg, ping, git or the network.
"""

import logging
from pathlib import Path
from typing import Optional

import pytest

from tunnel_keeper.config import Config
from tunnel_keeper.provision import Provisioner, ProvisionResult, ToolRunError
from tunnel_keeper.tunnel import InterfaceNotFoundError, TunnelHost


NOW = 1_700_000_000

TOOL_CONFIG = """[Interface]
PrivateKey = aGVsbG8td29ybGQtcHJpdmF0ZS1rZXktMTIzNDU2Nzg=
Address = 10.20.30.40/32, fd00::1/128
DNS = 10.0.0.243, 10.0.0.242

[Peer]
PublicKey = cGVlci1wdWJsaWMta2V5LWFiY2RlZmdoaWprbG1ub3A=
AllowedIPs = 0.0.0.0/0, ::/0
Endpoint = 212.102.37.10:1337
"""


# ===========================================================================
# Fakes
# ===========================================================================

class FakeHost(TunnelHost):
    """Scripted host tunnel subsystem.

    `states` is a list consumed one entry per poll:
    - "healthy": fresh handshake, probe succeeds
    - "stale": handshake older than the staleness threshold
    - "unreachable": fresh handshake, probe fails
    - "missing": interface does not exist
    """

    def __init__(self, states: Optional[list[str]] = None, now: float = NOW):
        self.states = list(states or [])
        self.now = now
        self.current = "healthy"
        self.probes: list[tuple[str, str]] = []
        self.synced: list[tuple[str, Path]] = []

    def latest_handshake(self, interface: str) -> Optional[int]:
        if self.states:
            self.current = self.states.pop(0)
        if self.current == "missing":
            raise InterfaceNotFoundError(f"Interface {interface} does not exist")
        if self.current == "stale":
            return int(self.now) - 600
        return int(self.now) - 10

    def probe(self, interface: str, target: str) -> bool:
        self.probes.append((interface, target))
        return self.current == "healthy"

    def sync_config(self, interface: str, config_path: Path) -> None:
        self.synced.append((interface, Path(config_path)))


class FakeProvisioner(Provisioner):
    """Provisioner returning canned results and counting calls."""

    def __init__(self, ok: bool = True, on_run=None):
        self.ok = ok
        self.on_run = on_run
        self.calls = 0

    def run(self) -> ProvisionResult:
        self.calls += 1
        if self.on_run:
            self.on_run()
        if self.ok:
            return ProvisionResult(ok=True, display_name="FAKE")
        return ProvisionResult(ok=False, error=ToolRunError("canned failure"))


# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture
def applied_config(tmp_path: Path) -> Path:
    """Path of the config the supervisor reloads from (not created)."""
    return tmp_path / "wireguard" / "wg_test.conf"


@pytest.fixture
def config(tmp_path: Path, applied_config: Path) -> Config:
    """Config pointing every path into the test's temp directory."""
    return Config.model_validate({
        "tunnel": {
            "interface": "wg_test",
            "applied_config_path": str(applied_config),
            "probe_target": "9.9.9.9",
        },
        "supervisor": {
            "poll_interval": 60,
            "handshake_staleness": 120,
            "max_down_time": 300,
        },
        "credential_tool": {
            "install_dir": str(tmp_path / "pia-wg"),
            "output_path": str(tmp_path / "pia-config" / "pia.conf"),
            "wait_attempts": 3,
            "wait_delay": 0,
        },
        "profile": {
            "destinations": [str(tmp_path / "profiles1"), str(tmp_path / "profiles2")],
        },
    })


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging so they don't outlive a test."""
    yield
    logger = logging.getLogger("tunnel_keeper")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
