"""Host tunnel subsystem."""

from tunnel_keeper.tunnel.base import TunnelHost, TunnelCommandError, InterfaceNotFoundError
from tunnel_keeper.tunnel.wireguard import WireGuardHost, strip_quick_keys, parse_latest_handshakes

__all__ = [
    "TunnelHost",
    "TunnelCommandError",
    "InterfaceNotFoundError",
    "WireGuardHost",
    "strip_quick_keys",
    "parse_latest_handshakes",
]
