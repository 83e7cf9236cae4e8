"""Tunnel health supervision and recovery."""

from tunnel_keeper.supervisor.health import TunnelHealth, classify_health, accumulate
from tunnel_keeper.supervisor.monitor import TunnelSupervisor, CycleResult, RecoveryResult

__all__ = [
    "TunnelHealth",
    "classify_health",
    "accumulate",
    "TunnelSupervisor",
    "CycleResult",
    "RecoveryResult",
]
