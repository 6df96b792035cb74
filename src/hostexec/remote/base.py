"""Base connection interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from hostexec.models import Result
from hostexec.output import OutputCallback


class Connection(ABC):
    """Abstract transport used by a host to run commands and copy files.

    The identity attributes (``ip``, ``vmhostname``, ``hostname``) are kept
    in step with the owning host, which rewrites them when it is renamed.
    """

    def __init__(
        self,
        hostname: str,
        ip: Optional[str] = None,
        vmhostname: Optional[str] = None,
    ):
        self.hostname = hostname
        self.ip = ip
        self.vmhostname = vmhostname

    @abstractmethod
    def connect(self) -> bool:
        """Establish the connection.

        Returns:
            True if connection successful.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if currently connected."""
        pass

    @abstractmethod
    def execute(
        self,
        command: str,
        options: Optional[dict[str, Any]] = None,
        output_callback: Optional[OutputCallback] = None,
    ) -> Result:
        """Execute a command line.

        Args:
            command: Rendered command line.
            options: Transport options (``pty``, ``stdin``).
            output_callback: Called with each chunk of output.

        Returns:
            Result with output and exit code (None if the channel broke).
        """
        pass

    @abstractmethod
    def scp_to(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Copy a local file or directory to the host."""
        pass

    @abstractmethod
    def scp_from(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Copy a file or directory from the host to the local machine."""
        pass

    def wait_for_connection_failure(
        self,
        options: Optional[dict[str, Any]] = None,
        output_callback: Optional[OutputCallback] = None,
    ) -> bool:
        """Wait for the channel to break after a disruptive command.

        Returns:
            True if the expected failure was observed.
        """
        return False

    def update_identity(
        self,
        hostname: Optional[str],
        ip: Optional[str] = None,
        vmhostname: Optional[str] = None,
    ) -> None:
        """Refresh identity attributes from the owning host.

        Unset values on the host leave the current attribute alone.
        """
        if ip and self.ip != ip:
            self.ip = ip
        if vmhostname and self.vmhostname != vmhostname:
            self.vmhostname = vmhostname
        if hostname and self.hostname != hostname:
            self.hostname = hostname
