"""
Tunnel Keeper - keep a WireGuard VPN tunnel alive on an always-on gateway.

This package provides:
- Profile provisioning from the pia-wg credential tool
- Gateway profile artifacts (config copy, connection and settings descriptors)
- A supervisor that watches handshakes and connectivity and reloads the tunnel
"""

from tunnel_keeper.config import load_config, Config
from tunnel_keeper.provision import ToolProvisioner, CommandProvisioner
from tunnel_keeper.supervisor import TunnelSupervisor
from tunnel_keeper.tunnel import WireGuardHost

__version__ = "0.1.0"

__all__ = [
    "load_config",
    "Config",
    "ToolProvisioner",
    "CommandProvisioner",
    "TunnelSupervisor",
    "WireGuardHost",
    "__version__",
]
