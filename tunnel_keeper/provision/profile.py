"""Provisioned profile model and the text transforms around it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from tunnel_keeper.log import get_logger
from tunnel_keeper.provision.errors import MissingFieldError

logger = get_logger(__name__)

# Fields read from the tool's config, in the order they are validated
REQUIRED_FIELDS = ("PrivateKey", "Address", "DNS", "PublicKey", "AllowedIPs", "Endpoint")
LIST_FIELDS = {"Address", "DNS", "AllowedIPs"}

SUBTYPE = "wireguard"


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def read_fields(text: str) -> dict[str, str]:
    """Collect `Key = Value` pairs from a WireGuard config.

    Values keep any `=` padding (base64 keys end with it). The first
    occurrence of a key wins; section headers and comments are skipped.
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", ";", "[")) or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key not in values:
            values[key] = value.strip()
    return values


@dataclass(frozen=True)
class ProvisionedProfile:
    """Connection parameters extracted from the credential tool's config."""
    private_key: str
    address: str
    dns: list[str]
    public_key: str
    allowed_ips: list[str]
    endpoint: str
    keepalive: int = 20

    def connection_descriptor(self) -> dict[str, Any]:
        """Structured connection descriptor (`<name>.json`)."""
        return {
            "privateKey": self.private_key,
            "addresses": [self.address],
            "dns": list(self.dns),
            "peers": [
                {
                    "persistentKeepalive": self.keepalive,
                    "publicKey": self.public_key,
                    "allowedIPs": list(self.allowed_ips),
                    "endpoint": self.endpoint,
                }
            ],
        }

    @staticmethod
    def settings_descriptor(display_name: str, created: float) -> dict[str, Any]:
        """Structured settings descriptor (`<name>.settings`)."""
        return {
            "serverSubnets": [],
            "overrideDefaultRoute": True,
            "routeDNS": True,
            "strictVPN": True,
            "createdDate": created,
            "displayName": display_name,
            "subtype": SUBTYPE,
        }


def parse_tool_config(text: str, keepalive: int = 20, source: str = "") -> ProvisionedProfile:
    """Extract a ProvisionedProfile from the tool's config file contents.

    Args:
        text: Contents of the tool's WireGuard config
        keepalive: Persistent keepalive to put on the peer entry
        source: Path of the file, for error messages

    Raises:
        MissingFieldError: If any required field is absent or empty
    """
    values = read_fields(text)
    for name in REQUIRED_FIELDS:
        value = values.get(name, "")
        if name in LIST_FIELDS:
            value = ",".join(_split_list(value))
        if not value:
            raise MissingFieldError(name, source)

    return ProvisionedProfile(
        private_key=values["PrivateKey"],
        address=_split_list(values["Address"])[0],
        dns=_split_list(values["DNS"]),
        public_key=values["PublicKey"],
        allowed_ips=_split_list(values["AllowedIPs"]),
        endpoint=values["Endpoint"],
        keepalive=keepalive,
    )


def find_region(output: str, pattern: str) -> Optional[str]:
    """Return the first region/location token the tool reported, if any."""
    if not output:
        return None
    m = re.search(pattern, output)
    return m.group(1) if m else None


def derive_display_name(
    configured: Optional[str],
    region: Optional[str],
    default: str = "PIA_VPN",
    limit: int = 10,
) -> str:
    """Pick the profile display name.

    A configured name wins over a discovered region token. The chosen name is
    reduced to `[A-Za-z0-9_]` and cut to `limit` characters. With neither
    available the default is used and a warning is logged.
    """
    for candidate in (configured, region):
        if not candidate:
            continue
        name = re.sub(r"[^A-Za-z0-9_]", "_", candidate.strip())[:limit]
        if name.strip("_"):
            return name

    logger.warning(f"[PROVISION] No display name or region found, using default '{default}'")
    return default[:limit]


@dataclass
class ProvisionResult:
    """Outcome of a provisioner run."""
    ok: bool
    profile: Optional[ProvisionedProfile] = None
    display_name: Optional[str] = None
    error: Optional[Exception] = None
    written: list = field(default_factory=list)
