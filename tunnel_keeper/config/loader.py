"""Reading tunnel-keeper settings from YAML."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml

from tunnel_keeper.config.schema import Config

CONFIG_ENV_VAR = "TUNNEL_KEEPER_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the settings file: explicit path, then $TUNNEL_KEEPER_CONFIG, then ./config.yaml."""
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)
    return Path(path).expanduser()


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Parse and validate the tunnel-keeper settings file.

    An empty file yields the built-in defaults. Sections that are left out
    (tunnel, supervisor, credential_tool, profile, logging) keep theirs.

    Raises:
        FileNotFoundError: The resolved settings file is missing
        ValueError: The file's top level is not a mapping
        yaml.YAMLError: The file is not valid YAML
        pydantic.ValidationError: A value is out of range or of the wrong type
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping, got {type(data).__name__}")

    return Config.model_validate(data)


def load_config_or_default(path: Optional[Union[str, Path]] = None) -> Config:
    """Like load_config, but a missing file means "run on defaults"."""
    try:
        return load_config(path)
    except FileNotFoundError:
        return Config()
