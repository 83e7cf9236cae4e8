"""Pydantic configuration schemas for tunnel-keeper."""

from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class TunnelConfig(BaseModel):
    """Identity of the supervised WireGuard interface.

    Fixed at process start; the supervisor never mutates it.
    """
    model_config = ConfigDict(frozen=True)

    interface: str = Field(default="vpn_PIA", description="WireGuard interface name")
    applied_config_path: Optional[str] = Field(
        default=None,
        description="Config file the live interface is synced from (default /etc/wireguard/<interface>.conf)",
    )
    probe_target: str = Field(default="9.9.9.9", description="Address pinged through the tunnel")
    probe_count: int = Field(default=3, gt=0, description="Echo requests per connectivity probe")
    probe_timeout: int = Field(default=2, gt=0, description="Per-echo timeout in seconds")
    use_sudo: bool = Field(default=False, description="Prefix wg/ping commands with sudo")
    strip_quick_keys: bool = Field(
        default=True,
        description="Drop wg-quick-only keys (Address, DNS, ...) before wg syncconf",
    )

    def resolved_config_path(self) -> Path:
        """Path the live interface should be reloaded from."""
        if self.applied_config_path:
            return Path(self.applied_config_path).expanduser()
        return Path("/etc/wireguard") / f"{self.interface}.conf"


class SupervisorConfig(BaseModel):
    """Control loop timing and recovery settings."""
    poll_interval: int = Field(default=60, gt=0, description="Seconds between health polls")
    handshake_staleness: int = Field(
        default=120, gt=0, description="Handshake age in seconds after which the tunnel is stale"
    )
    max_down_time: int = Field(
        default=300, gt=0, description="Accumulated down time in seconds that triggers recovery"
    )
    provisioner_command: list[str] = Field(
        default_factory=list,
        description="External provisioner argv (empty = run the built-in provisioner)",
    )
    provisioner_timeout: int = Field(default=600, gt=0, description="Provisioner timeout in seconds")


class CredentialToolConfig(BaseModel):
    """External credential-exchange tool (pia-wg)."""
    repo_url: str = Field(default="https://github.com/triffid/pia-wg", description="Git repository URL")
    install_dir: str = Field(default="~/pia-wg", description="Working copy location")
    script: str = Field(default="pia-wg.sh", description="Script to run inside the working copy")
    args: list[str] = Field(
        default_factory=lambda: ["-r", "-c"],
        description="Flags requesting force-regenerate and create-new",
    )
    output_path: str = Field(
        default="~/.config/pia-wg/pia.conf", description="Config file the tool writes"
    )
    timeout: int = Field(default=300, gt=0, description="Tool run timeout in seconds")
    wait_attempts: int = Field(default=10, gt=0, description="Polls for the output file")
    wait_delay: float = Field(default=1.0, ge=0, description="Seconds between output file polls")
    region_pattern: str = Field(
        default=r"(?i)\b(?:region|location)\b\s*[:=]\s*['\"]?([A-Za-z0-9_-]+)",
        description="Regex whose first group is the region token in the tool output",
    )


class ProfileConfig(BaseModel):
    """Gateway profile artifacts."""
    display_name: Optional[str] = Field(
        default=None, description="Fixed display name (None = derive from the tool's region)"
    )
    default_name: str = Field(default="PIA_VPN", description="Fallback display name")
    max_name_length: int = Field(default=10, gt=0, description="Display name length limit")
    destinations: list[str] = Field(
        default_factory=lambda: [
            "/home/pi/.firewalla/run/wg_profile/",
            "/media/home-rw/overlay/pi/.firewalla/run/wg_profile/",
        ],
        description="Profile directories every artifact is written to",
    )
    keepalive: int = Field(default=20, ge=0, description="Peer persistent keepalive in seconds")


class LoggingConfig(BaseModel):
    """Logging output."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Log level")
    file: Optional[str] = Field(default=None, description="Optional log file path")


class Config(BaseModel):
    """Root configuration for tunnel-keeper."""
    version: str = Field(default="1.0", description="Config schema version")
    tunnel: TunnelConfig = Field(default_factory=TunnelConfig, description="Tunnel identity")
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig, description="Supervisor settings")
    credential_tool: CredentialToolConfig = Field(
        default_factory=CredentialToolConfig, description="Credential tool settings"
    )
    profile: ProfileConfig = Field(default_factory=ProfileConfig, description="Profile artifact settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")

    def with_interface(self, interface: str) -> "Config":
        """Return a copy supervising a different interface."""
        tunnel = self.tunnel.model_copy(update={"interface": interface})
        return self.model_copy(update={"tunnel": tunnel})
