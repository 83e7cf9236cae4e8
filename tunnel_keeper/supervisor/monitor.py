"""Tunnel supervisor control loop."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from tunnel_keeper.config.schema import Config
from tunnel_keeper.log import get_logger
from tunnel_keeper.provision.profile import ProvisionResult
from tunnel_keeper.provision.provisioner import Provisioner
from tunnel_keeper.supervisor.health import TunnelHealth, accumulate, classify_health
from tunnel_keeper.tunnel.base import TunnelCommandError, TunnelHost

logger = get_logger(__name__)


@dataclass
class RecoveryResult:
    """Outcome of one recovery attempt."""
    provisioned: bool
    reloaded: bool
    provision_result: Optional[ProvisionResult] = None


@dataclass
class CycleResult:
    """Outcome of one poll cycle."""
    health: TunnelHealth
    down_time: int
    recovered: bool = False
    recovery: Optional[RecoveryResult] = None


class TunnelSupervisor:
    """Never-ending liveness/connectivity monitor for one tunnel interface.

    Each cycle:
    - Classifies the tunnel as HEALTHY, STALE or UNREACHABLE
    - Adds the poll interval to the down-time accumulator, or resets it
    - Once the accumulator reaches max_down_time, regenerates credentials,
      syncs the live interface from the applied config, and resets to zero
      whatever the outcome

    Usage:
        supervisor = TunnelSupervisor(config, WireGuardHost(), ToolProvisioner(config))
        supervisor.run(stop_event)
    """

    def __init__(
        self,
        config: Config,
        host: TunnelHost,
        provisioner: Provisioner,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize tunnel supervisor.

        Args:
            config: tunnel-keeper configuration
            host: Host tunnel subsystem
            provisioner: Recovery provisioner
            clock: Source of the current epoch time
        """
        self.tunnel = config.tunnel
        self.settings = config.supervisor
        self.host = host
        self.provisioner = provisioner
        self._clock = clock

    def recover(self) -> RecoveryResult:
        """Regenerate credentials and reload the live interface in place."""
        interface = self.tunnel.interface
        logger.warning(
            f"[RECOVER] {interface} down for {self.settings.max_down_time}s, regenerating credentials"
        )

        result = self.provisioner.run()
        if result.ok:
            logger.info("[RECOVER] Provisioning succeeded")
        else:
            logger.error(f"[RECOVER] Provisioning failed: {result.error}")

        config_path = self.tunnel.resolved_config_path()
        if not config_path.is_file():
            logger.error(f"[RECOVER] Config file not found: {config_path}, skipping reload")
            return RecoveryResult(provisioned=result.ok, reloaded=False, provision_result=result)

        try:
            self.host.sync_config(interface, config_path)
        except (TunnelCommandError, OSError) as e:
            logger.error(f"[RECOVER] Reload of {interface} failed: {e}")
            return RecoveryResult(provisioned=result.ok, reloaded=False, provision_result=result)

        return RecoveryResult(provisioned=result.ok, reloaded=True, provision_result=result)

    def check_once(self, down_time: int) -> CycleResult:
        """Run one poll: classify, accumulate, recover on threshold breach.

        A classification that raises counts as STALE.

        Args:
            down_time: Accumulated down time before this poll

        Returns:
            CycleResult whose down_time is the accumulator after this poll
        """
        try:
            health = classify_health(
                self.host,
                self.tunnel.interface,
                self.tunnel.probe_target,
                self.settings.handshake_staleness,
                self._clock(),
            )
        except Exception as e:
            logger.exception(f"[PROBE] Health check of {self.tunnel.interface} crashed: {e}")
            health = TunnelHealth.STALE
        return self.advance(down_time, health)

    def advance(self, down_time: int, health: TunnelHealth) -> CycleResult:
        """Accumulate one poll's classification and recover on threshold breach."""
        down_time = accumulate(down_time, health, self.settings.poll_interval)
        if health is not TunnelHealth.HEALTHY:
            logger.info(f"[SUPERVISE] Down for {down_time}s of {self.settings.max_down_time}s")

        if down_time < self.settings.max_down_time:
            return CycleResult(health=health, down_time=down_time)

        try:
            recovery = self.recover()
        except Exception as e:
            logger.exception(f"[RECOVER] Recovery attempt crashed: {e}")
            recovery = RecoveryResult(provisioned=False, reloaded=False)
        # Reset even after a failed attempt so a rate-limited provider is not hammered
        return CycleResult(health=health, down_time=0, recovered=True, recovery=recovery)

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_cycles: Optional[int] = None,
    ):
        """Poll until `stop_event` is set (or `max_cycles` polls have run).

        No error inside a cycle ends the loop.
        """
        stop_event = stop_event or threading.Event()
        interval = self.settings.poll_interval
        logger.info(
            f"[SUPERVISE] Monitoring {self.tunnel.interface} every {interval}s "
            f"(stale after {self.settings.handshake_staleness}s, "
            f"recover after {self.settings.max_down_time}s)"
        )

        down_time = 0
        cycles = 0
        while not stop_event.is_set():
            try:
                down_time = self.check_once(down_time).down_time
            except Exception as e:
                logger.exception(f"[SUPERVISE] Cycle failed: {e}")
                # A crashed poll still counts as down time
                down_time = self.advance(down_time, TunnelHealth.STALE).down_time

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if stop_event.wait(interval):
                break

        logger.info("[SUPERVISE] Stopped")
