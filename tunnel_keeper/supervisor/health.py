"""Tunnel health classification and down-time accounting."""

from __future__ import annotations

from enum import Enum

from tunnel_keeper.log import get_logger
from tunnel_keeper.tunnel.base import InterfaceNotFoundError, TunnelCommandError, TunnelHost

logger = get_logger(__name__)


class TunnelHealth(Enum):
    """Result of one health poll."""
    HEALTHY = "healthy"
    STALE = "stale"              # no recent handshake
    UNREACHABLE = "unreachable"  # handshake recent, probe failed


def classify_health(
    host: TunnelHost,
    interface: str,
    probe_target: str,
    staleness: int,
    now: float,
) -> TunnelHealth:
    """Classify the tunnel from handshake recency, then data-plane reachability.

    The connectivity probe only runs when the handshake is fresh.
    """
    try:
        handshake = host.latest_handshake(interface)
    except InterfaceNotFoundError as e:
        logger.error(f"[PROBE] Interface {interface} not found, check configuration: {e}")
        return TunnelHealth.STALE
    except TunnelCommandError as e:
        logger.error(f"[PROBE] Cannot read handshake for {interface}: {e}")
        return TunnelHealth.STALE

    if handshake is None:
        logger.warning(f"[PROBE] No handshake recorded on {interface}")
        return TunnelHealth.STALE

    age = now - handshake
    if age > staleness:
        logger.warning(f"[PROBE] No recent handshake on {interface} (last {int(age)}s ago)")
        return TunnelHealth.STALE

    logger.debug(f"[PROBE] Handshake on {interface} is active ({int(age)}s ago)")

    if host.probe(interface, probe_target):
        logger.info(f"[PROBE] {interface} is healthy")
        return TunnelHealth.HEALTHY

    logger.warning(f"[PROBE] {interface} handshake is recent but {probe_target} is unreachable")
    return TunnelHealth.UNREACHABLE


def accumulate(down_time: int, health: TunnelHealth, poll_interval: int) -> int:
    """Advance the down-time accumulator by one poll."""
    if health is TunnelHealth.HEALTHY:
        return 0
    return down_time + poll_interval
