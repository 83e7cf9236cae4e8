"""Configuration system for tunnel-keeper."""

from tunnel_keeper.config.schema import (
    Config,
    TunnelConfig,
    SupervisorConfig,
    CredentialToolConfig,
    ProfileConfig,
    LoggingConfig,
)
from tunnel_keeper.config.loader import load_config, load_config_or_default

__all__ = [
    "Config",
    "TunnelConfig",
    "SupervisorConfig",
    "CredentialToolConfig",
    "ProfileConfig",
    "LoggingConfig",
    "load_config",
    "load_config_or_default",
]
