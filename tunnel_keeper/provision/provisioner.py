"""Provisioner capability: produce a fresh profile on demand."""

from __future__ import annotations

import shlex
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from tunnel_keeper.config.schema import Config
from tunnel_keeper.log import get_logger
from tunnel_keeper.provision.credential_tool import CredentialTool
from tunnel_keeper.provision.errors import ProvisionError, ToolRunError
from tunnel_keeper.provision.profile import (
    ProvisionResult,
    derive_display_name,
    find_region,
    parse_tool_config,
)
from tunnel_keeper.provision.writer import ProfileWriter

logger = get_logger(__name__)


class Provisioner(ABC):
    """Abstract interface for regenerating tunnel credentials.

    The supervisor only depends on this interface, so tests can hand it a
    fake that returns canned results without touching any external process.
    """

    @abstractmethod
    def run(self) -> ProvisionResult:
        """Provision a fresh profile.

        Returns:
            ProvisionResult with ok=False and the error on failure; never
            raises ProvisionError
        """
        pass


class ToolProvisioner(Provisioner):
    """Built-in provisioner driving the credential tool directly.

    Steps: sync the tool's working copy, run it, wait for its config, parse
    the required fields, name the profile, then write every artifact. Nothing
    is written unless parsing succeeded.
    """

    def __init__(
        self,
        config: Config,
        tool: Optional[CredentialTool] = None,
        writer: Optional[ProfileWriter] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize tool provisioner.

        Args:
            config: tunnel-keeper configuration
            tool: Credential tool (built from config if None)
            writer: Profile writer (built from config if None)
            clock: Source of the settings creation timestamp
        """
        self.config = config
        self.tool = tool or CredentialTool(config.credential_tool)
        self.writer = writer or ProfileWriter(config.profile.destinations)
        self._clock = clock

    def provision(self) -> ProvisionResult:
        """Run every step, raising ProvisionError on the first failure."""
        profile_config = self.config.profile

        self.tool.sync()
        output = self.tool.generate()
        config_path = self.tool.wait_for_config()

        try:
            source_text = config_path.read_text()
        except OSError as e:
            raise ToolRunError(f"Cannot read {config_path}: {e}") from e
        profile = parse_tool_config(
            source_text,
            keepalive=profile_config.keepalive,
            source=str(config_path),
        )

        region = None
        if not profile_config.display_name:
            region = find_region(output, self.config.credential_tool.region_pattern)
        display_name = derive_display_name(
            profile_config.display_name,
            region,
            default=profile_config.default_name,
            limit=profile_config.max_name_length,
        )

        written = self.writer.write(profile, display_name, source_text, created=self._clock())
        logger.info(f"[PROVISION] Profile '{display_name}' ready ({len(written)} files)")
        return ProvisionResult(ok=True, profile=profile, display_name=display_name, written=written)

    def run(self) -> ProvisionResult:
        try:
            return self.provision()
        except ProvisionError as e:
            logger.error(f"[PROVISION] {e.step} failed: {e}")
            return ProvisionResult(ok=False, error=e)


class CommandProvisioner(Provisioner):
    """Provisioner that shells out to an external command.

    Usage:
        provisioner = CommandProvisioner(["tunnel-keeper", "provision"], timeout=600)
        result = provisioner.run()
    """

    def __init__(self, command: list[str], timeout: int = 600):
        if not command:
            raise ValueError("Provisioner command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    def run(self) -> ProvisionResult:
        pretty = " ".join(shlex.quote(c) for c in self.command)
        logger.info(f"[PROVISION] Running {pretty}")
        try:
            result = subprocess.run(self.command, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            error = ToolRunError(f"{pretty} timed out after {self.timeout}s")
        except OSError as e:
            error = ToolRunError(f"{pretty} could not start: {e}")
        else:
            if result.returncode == 0:
                return ProvisionResult(ok=True)
            error = ToolRunError(f"{pretty} exited with {result.returncode}")

        logger.error(f"[PROVISION] {error}")
        return ProvisionResult(ok=False, error=error)


def build_provisioner(config: Config) -> Provisioner:
    """Select the provisioner the supervisor should use for recovery."""
    if config.supervisor.provisioner_command:
        return CommandProvisioner(
            config.supervisor.provisioner_command,
            timeout=config.supervisor.provisioner_timeout,
        )
    return ToolProvisioner(config)
