"""Profile provisioning from the external credential tool."""

from tunnel_keeper.provision.errors import (
    ProvisionError,
    ToolSyncError,
    ToolRunError,
    ConfigTimeoutError,
    MissingFieldError,
    ProfileWriteError,
)
from tunnel_keeper.provision.profile import (
    ProvisionedProfile,
    ProvisionResult,
    parse_tool_config,
    derive_display_name,
    find_region,
)
from tunnel_keeper.provision.credential_tool import CredentialTool
from tunnel_keeper.provision.writer import ProfileWriter
from tunnel_keeper.provision.provisioner import (
    Provisioner,
    ToolProvisioner,
    CommandProvisioner,
    build_provisioner,
)

__all__ = [
    "ProvisionError",
    "ToolSyncError",
    "ToolRunError",
    "ConfigTimeoutError",
    "MissingFieldError",
    "ProfileWriteError",
    "ProvisionedProfile",
    "ProvisionResult",
    "parse_tool_config",
    "derive_display_name",
    "find_region",
    "CredentialTool",
    "ProfileWriter",
    "Provisioner",
    "ToolProvisioner",
    "CommandProvisioner",
    "build_provisioner",
]
