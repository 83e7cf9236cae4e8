"""Provisioning failures, each mapped to a distinct process exit code."""


class ProvisionError(Exception):
    """Base class for provisioning failures."""
    exit_code = 1
    step = "provision"


class ToolSyncError(ProvisionError):
    """The credential tool's working copy could not be cloned or updated."""
    exit_code = 2
    step = "tool sync"


class ToolRunError(ProvisionError):
    """The credential tool exited non-zero or timed out."""
    exit_code = 3
    step = "tool run"


class ConfigTimeoutError(ProvisionError):
    """The credential tool never produced its config file."""
    exit_code = 4
    step = "config wait"


class MissingFieldError(ProvisionError):
    """A required field is absent from the tool's config file."""
    exit_code = 5
    step = "config parse"

    def __init__(self, field: str, path: str = ""):
        where = f" in {path}" if path else ""
        super().__init__(f"{field} is missing{where}")
        self.field = field


class ProfileWriteError(ProvisionError):
    """A profile artifact could not be written."""
    exit_code = 6
    step = "profile write"
