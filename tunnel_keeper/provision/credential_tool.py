"""Working copy and invocation of the external credential-exchange tool."""

from __future__ import annotations

import os
import shlex
import stat
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from tunnel_keeper.config.schema import CredentialToolConfig
from tunnel_keeper.log import get_logger
from tunnel_keeper.provision.errors import ConfigTimeoutError, ToolRunError, ToolSyncError

logger = get_logger(__name__)

GIT_TIMEOUT = 120


def run_git(args: list[str], cwd: Optional[Path] = None) -> str:
    """Run a git command and return stdout.

    Raises:
        ToolSyncError: If git is missing, fails, or hangs
    """
    cmd = ["git", *args]
    logger.debug(f"[GIT] {' '.join(shlex.quote(c) for c in cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise ToolSyncError("git is not installed") from e
    except subprocess.TimeoutExpired as e:
        raise ToolSyncError(f"git {args[0]} timed out after {GIT_TIMEOUT}s") from e

    if result.returncode != 0:
        raise ToolSyncError(f"git {args[0]} failed: {result.stderr.strip()}")
    return result.stdout


class CredentialTool:
    """The pia-wg working copy: fetched, run, and waited on.

    The working copy is read-only infrastructure: every sync discards local
    changes and moves to the upstream head.
    """

    def __init__(self, config: CredentialToolConfig, sleep: Callable[[float], None] = time.sleep):
        """Initialize credential tool.

        Args:
            config: Credential tool configuration
            sleep: Delay function used between output file polls
        """
        self.config = config
        self.install_dir = Path(config.install_dir).expanduser()
        self.output_path = Path(config.output_path).expanduser()
        self._sleep = sleep

    @property
    def script_path(self) -> Path:
        return self.install_dir / self.config.script

    def sync(self) -> None:
        """Clone the tool if absent, otherwise hard-reset it to upstream."""
        if (self.install_dir / ".git").is_dir():
            logger.info(f"[GIT] Updating {self.install_dir}")
            run_git(["fetch", "--prune", "origin"], cwd=self.install_dir)
            run_git(["reset", "--hard", "@{upstream}"], cwd=self.install_dir)
            run_git(["clean", "-fd"], cwd=self.install_dir)
        else:
            if self.install_dir.exists() and any(self.install_dir.iterdir()):
                raise ToolSyncError(f"{self.install_dir} exists and is not a git working copy")
            logger.info(f"[GIT] Cloning {self.config.repo_url} into {self.install_dir}")
            try:
                self.install_dir.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ToolSyncError(f"Cannot create {self.install_dir.parent}: {e}") from e
            run_git(["clone", self.config.repo_url, str(self.install_dir)])

    def generate(self) -> str:
        """Run the tool to regenerate credentials and create a new connection.

        Returns:
            Combined stdout/stderr of the tool

        Raises:
            ToolRunError: If the script is missing, fails, or times out
        """
        script = self.script_path
        if not script.is_file():
            raise ToolRunError(f"Credential tool script not found: {script}")

        # A leftover config from the previous run must not satisfy wait_for_config
        try:
            mode = script.stat().st_mode
            os.chmod(script, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.unlink(missing_ok=True)
        except OSError as e:
            raise ToolRunError(f"Cannot prepare credential tool run: {e}") from e

        cmd = [str(script), *self.config.args]
        logger.info(f"[PROVISION] Running {' '.join(shlex.quote(c) for c in cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.install_dir),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.config.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolRunError(f"Credential tool timed out after {self.config.timeout}s") from e
        except OSError as e:
            raise ToolRunError(f"Credential tool could not start: {e}") from e

        if result.returncode != 0:
            tail = (result.stdout or "").strip().splitlines()[-5:]
            raise ToolRunError(
                f"Credential tool exited with {result.returncode}: " + " | ".join(tail)
            )
        return result.stdout or ""

    def wait_for_config(
        self,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> Path:
        """Wait for the tool's config file with a capped number of polls.

        Raises:
            ConfigTimeoutError: If the file never appears
        """
        attempts = attempts if attempts is not None else self.config.wait_attempts
        delay = delay if delay is not None else self.config.wait_delay

        for attempt in range(1, attempts + 1):
            if self.output_path.is_file():
                return self.output_path
            if attempt < attempts:
                logger.debug(f"[PROVISION] Waiting for {self.output_path} ({attempt}/{attempts})")
                self._sleep(delay)

        raise ConfigTimeoutError(
            f"Config not found at {self.output_path} after {attempts} attempt(s)"
        )
