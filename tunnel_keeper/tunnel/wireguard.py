"""WireGuard host tunnel subsystem backed by the `wg` and `ping` tools."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Optional

from tunnel_keeper.log import get_logger
from tunnel_keeper.tunnel.base import InterfaceNotFoundError, TunnelCommandError, TunnelHost

logger = get_logger(__name__)

# Keys understood by wg-quick but rejected by `wg setconf`/`wg syncconf`
QUICK_ONLY_KEYS = {
    "address", "dns", "mtu", "table",
    "preup", "postup", "predown", "postdown", "saveconfig",
}

WG_TIMEOUT = 15


def command_available(cmd: str) -> bool:
    """Check if a command is available in PATH."""
    return shutil.which(cmd) is not None


def strip_quick_keys(text: str) -> str:
    """Remove wg-quick-only lines from a WireGuard config, like `wg-quick strip`."""
    lines = []
    for line in text.splitlines():
        key = line.split("=", 1)[0].strip().lower() if "=" in line else ""
        if key in QUICK_ONLY_KEYS:
            continue
        lines.append(line)
    return "\n".join(lines) + "\n"


def parse_latest_handshakes(output: str) -> Optional[int]:
    """Parse `wg show <iface> latest-handshakes` output.

    Each line is `<peer public key>\\t<epoch>`; an epoch of 0 means the peer
    never completed a handshake.

    Returns:
        Newest handshake epoch across peers, or None
    """
    newest = 0
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            newest = max(newest, int(parts[-1]))
        except ValueError:
            continue
    return newest or None


class WireGuardHost(TunnelHost):
    """Tunnel subsystem for a host running kernel or userspace WireGuard.

    Usage:
        host = WireGuardHost(use_sudo=True)
        host.latest_handshake("wg0")        # 1718000000 or None
        host.probe("wg0", "9.9.9.9")        # True / False
        host.sync_config("wg0", Path("/etc/wireguard/wg0.conf"))
    """

    def __init__(
        self,
        use_sudo: bool = False,
        probe_count: int = 3,
        probe_timeout: int = 2,
        strip_quick: bool = True,
    ):
        self.use_sudo = use_sudo
        self.probe_count = probe_count
        self.probe_timeout = probe_timeout
        self.strip_quick = strip_quick

    def _cmd(self, *args: str) -> list[str]:
        return ["sudo", *args] if self.use_sudo else list(args)

    def _wg(self, *args: str, input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = self._cmd("wg", *args)
        try:
            return subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=WG_TIMEOUT,
            )
        except OSError as e:
            raise TunnelCommandError(f"Cannot run {cmd[0]}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise TunnelCommandError(f"Timed out after {WG_TIMEOUT}s: {' '.join(cmd)}") from e

    def latest_handshake(self, interface: str) -> Optional[int]:
        """Read the newest peer handshake on `interface`."""
        result = self._wg("show", interface, "latest-handshakes")
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if "No such device" in stderr or "Unable to access interface" in stderr:
                raise InterfaceNotFoundError(
                    f"Interface {interface} does not exist: {stderr}",
                    returncode=result.returncode,
                    stderr=stderr,
                )
            raise TunnelCommandError(
                f"wg show {interface} failed: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return parse_latest_handshakes(result.stdout)

    def probe(self, interface: str, target: str) -> bool:
        """Ping `target` through `interface` with a bounded number of echoes."""
        cmd = self._cmd(
            "ping",
            "-c", str(self.probe_count),
            "-W", str(self.probe_timeout),
            "-I", interface,
            target,
        )
        # Upper bound on ping's own runtime plus slack
        timeout = self.probe_count * (self.probe_timeout + 1) + 5
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"[PROBE] Probe of {target} via {interface} failed to run: {e}")
            return False
        return result.returncode == 0

    def sync_config(self, interface: str, config_path: Path) -> None:
        """Apply `config_path` to the running interface with `wg syncconf`."""
        text = Path(config_path).read_text()
        if self.strip_quick:
            text = strip_quick_keys(text)

        result = self._wg("syncconf", interface, "/dev/stdin", input_text=text)
        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise TunnelCommandError(
                f"wg syncconf {interface} failed: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )
        logger.info(f"[RELOAD] Synced {interface} from {config_path}")
