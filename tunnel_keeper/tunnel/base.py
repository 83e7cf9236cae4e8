"""Abstract host tunnel subsystem interface."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class TunnelCommandError(RuntimeError):
    """A host tunnel command failed."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class InterfaceNotFoundError(TunnelCommandError):
    """The tunnel interface does not exist on this host."""


class TunnelHost(ABC):
    """Abstract interface to the host's tunnel subsystem.

    Implementations can support different tunnel backends:
    - WireGuard via the `wg` tool
    - Fakes for testing the supervisor without touching the host
    """

    @abstractmethod
    def latest_handshake(self, interface: str) -> Optional[int]:
        """Get the most recent successful key exchange on an interface.

        Args:
            interface: Tunnel interface name

        Returns:
            Epoch seconds of the newest handshake, or None if there was none

        Raises:
            InterfaceNotFoundError: If the interface does not exist
            TunnelCommandError: If the status could not be read
        """
        pass

    @abstractmethod
    def probe(self, interface: str, target: str) -> bool:
        """Check that packets flow through the interface.

        Args:
            interface: Tunnel interface name
            target: Address to send echo probes to

        Returns:
            True if the target answered
        """
        pass

    @abstractmethod
    def sync_config(self, interface: str, config_path: Path) -> None:
        """Reconfigure the running interface in place from a config file.

        Args:
            interface: Tunnel interface name
            config_path: Config file to apply

        Raises:
            TunnelCommandError: If the host refused the configuration
        """
        pass
