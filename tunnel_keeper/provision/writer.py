"""Publishing provisioned profiles to the gateway's profile directories."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Union

from tunnel_keeper.log import get_logger
from tunnel_keeper.provision.errors import ProfileWriteError
from tunnel_keeper.provision.profile import ProvisionedProfile

logger = get_logger(__name__)

ARTIFACT_SUFFIXES = (".conf", ".json", ".settings", ".endpoint_routes")


def write_atomic(path: Path, content: str, mode: int = 0o644):
    """Replace `path` with `content` via a temporary sibling and rename.

    An existing file keeps its permission bits; new files get `mode`.
    """
    if path.exists():
        mode = path.stat().st_mode & 0o7777
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class ProfileWriter:
    """Write the profile artifacts to every destination directory.

    For a display name `NAME` each destination receives:
    - NAME.conf            verbatim copy of the tool's config
    - NAME.json            connection descriptor
    - NAME.settings        settings descriptor
    - NAME.endpoint_routes empty file expected by the gateway
    """

    def __init__(self, destinations: list[Union[str, Path]]):
        self.destinations = [Path(d).expanduser() for d in destinations]

    def write(
        self,
        profile: ProvisionedProfile,
        display_name: str,
        source_text: str,
        created: float,
    ) -> list[Path]:
        """Write all artifacts, overwriting previous ones.

        Args:
            profile: Parsed connection parameters
            display_name: Profile name, used for file names and the settings
            source_text: Verbatim contents of the tool's config file
            created: Creation timestamp (epoch seconds with fraction)

        Returns:
            Paths written, in destination order

        Raises:
            ProfileWriteError: If a directory or file could not be written
        """
        connection = json.dumps(profile.connection_descriptor(), indent=2) + "\n"
        settings = json.dumps(profile.settings_descriptor(display_name, created), indent=2) + "\n"
        contents = {
            ".conf": source_text,
            ".json": connection,
            ".settings": settings,
            ".endpoint_routes": "",
        }

        written = []
        for dest in self.destinations:
            try:
                dest.mkdir(parents=True, exist_ok=True)
                for suffix in ARTIFACT_SUFFIXES:
                    path = dest / f"{display_name}{suffix}"
                    write_atomic(path, contents[suffix])
                    written.append(path)
            except OSError as e:
                raise ProfileWriteError(f"Failed to write profile to {dest}: {e}") from e
            logger.info(f"[PROVISION] Wrote profile '{display_name}' to {dest}")

        return written
