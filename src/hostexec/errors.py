"""Exceptions raised by host execution and transfer."""


class HostExecError(Exception):
    """Base class for hostexec errors."""


class MissingPathError(HostExecError, IOError):
    """A local path handed to a transfer does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No such file or directory - {path}")


class CommandFailure(HostExecError):
    """A command or transfer did not finish the way the caller required."""


class RebootFailure(CommandFailure):
    """A host did not come back after a reboot."""


class RebootWarning(HostExecError):
    """A reboot finished with a non-fatal anomaly."""
