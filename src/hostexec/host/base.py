"""The Host: identity, configuration, connection management and operations."""

import logging
import socket
from pathlib import Path
from typing import Any, Optional

from hostexec import transfer, waiter
from hostexec.config import LOCAL_HOST_NAME
from hostexec.errors import CommandFailure, MissingPathError
from hostexec.executor import CommandExecutor
from hostexec.host.platforms import Platform, PlatformVariant
from hostexec.models import Command, HostConfig, Result
from hostexec.output import HostOutput
from hostexec.remote.base import Connection
from hostexec.remote.local import LocalConnection
from hostexec.remote.ssh import SSHConnection

logger = logging.getLogger(__name__)

IDENTITY_KEYS = ("ip", "vmhostname")


class Host:
    """A machine under test, reachable over SSH or locally.

    Configuration lookups (``host[key]``) see host-specific values first and
    fall back to the global options. The connection is built on first use,
    cached, and kept in step with the host's identity.
    """

    def __init__(
        self,
        name: str,
        host_hash: dict[str, Any],
        options: dict[str, Any],
        variant: PlatformVariant,
        output: Optional[HostOutput] = None,
    ):
        """Initialize the host.

        Args:
            name: Declared host name.
            host_hash: Host-specific settings (copied).
            options: Global options (copied).
            variant: Platform variant providing defaults and hooks.
            output: Where streamed command output is written.
        """
        self.name = str(name)
        self.variant = variant
        self.output = output or HostOutput()

        declared = dict(host_hash)
        declared.setdefault("packaging_platform", declared.get("platform"))
        self.config = HostConfig({**variant.defaults, **declared}, options)
        self._connection: Optional[Connection] = None
        self.executor = CommandExecutor(self)

        variant.init_hook(self)

    # configuration view

    @property
    def host_hash(self) -> dict[str, Any]:
        return self.config.host_hash

    @property
    def options(self) -> dict[str, Any]:
        return self.config.options

    def __getitem__(self, key: str) -> Any:
        return self.config[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.config[key] = value
        if key in IDENTITY_KEYS:
            self.sync_connection_identity()

    def __contains__(self, key: str) -> bool:
        return key in self.config

    def delete(self, key: str) -> Any:
        return self.config.delete(key)

    # identity

    @property
    def hostname(self) -> str:
        """The public name, which a provisioner may have overridden."""
        return self.host_hash.get("vmhostname") or self.name

    @property
    def reachable_name(self) -> str:
        """The preferred address: the IP if known, else the hostname."""
        return self["ip"] or self.hostname

    @property
    def log_prefix(self) -> str:
        if self.host_hash.get("vmhostname"):
            return f"{self} ({self.name})"
        return str(self)

    @property
    def platform(self) -> Optional[str]:
        return self["platform"]

    @property
    def is_cygwin(self) -> bool:
        return self.variant.platform == Platform.WINDOWS

    @property
    def is_powershell(self) -> bool:
        return self.variant.platform == Platform.PSWINDOWS

    def rename(self, name: str) -> None:
        self.name = str(name)
        self.sync_connection_identity()

    def __str__(self) -> str:
        return self.hostname

    def __repr__(self) -> str:
        return f"<Host {self.name} platform={self.platform!r}>"

    # connection management

    def connection(self) -> Connection:
        """Return the connection, building it on first use.

        A LocalConnection is used only for the host named ``localhost`` with
        hypervisor ``none``; everything else goes over SSH.
        """
        if self._connection is None:
            if self["hypervisor"] == "none" and self.name == LOCAL_HOST_NAME:
                connection: Connection = LocalConnection(
                    hostname=self.name, ssh_env_file=self["ssh_env_file"]
                )
            else:
                connection = SSHConnection(
                    {"ip": self["ip"], "vmhostname": self["vmhostname"], "hostname": self.name},
                    user=self["user"],
                    ssh_opts=self["ssh"],
                    connection_preference=self["ssh_connection_preference"],
                )
            connection.connect()
            self._connection = connection

        self.sync_connection_identity()
        return self._connection

    def sync_connection_identity(self) -> None:
        """Copy the host's current identity onto the cached connection."""
        if self._connection is not None:
            self._connection.update_identity(
                hostname=self.name, ip=self["ip"], vmhostname=self["vmhostname"]
            )

    def close(self) -> None:
        """Close and drop the connection; the next use rebuilds it."""
        if self._connection is not None:
            logger.debug("Closing connection to %s", self.log_prefix)
            self._connection.close()
            self.sync_connection_identity()
        self._connection = None

    # operations

    def exec(self, command: Any, **options: Any) -> Result:
        """Run a command on the host. See CommandExecutor.execute."""
        return self.executor.execute(command, **options)

    def execute(self, command: str, **options: Any) -> str:
        """Run a command and return its stripped stdout."""
        return self.exec(Command(command), **options).stdout.strip()

    def do_scp_to(self, source: str, target_path: str, **options: Any) -> Result:
        return transfer.scp_to(self, source, target_path, **options)

    def do_scp_from(self, source: str, target: str, **options: Any) -> Result:
        return transfer.scp_from(self, source, target, **options)

    def do_rsync_to(self, from_path: str, to_path: str, **options: Any) -> transfer.RsyncResult:
        return transfer.rsync_to(self, from_path, to_path, **options)

    def port_open(self, port: int) -> bool:
        return waiter.port_open(self, port)

    def wait_for_port(self, port: int, attempts: int = 15) -> bool:
        return waiter.wait_for_port(self, port, attempts)

    def up(self) -> bool:
        """Check whether the host's reachable name resolves."""
        try:
            socket.getaddrinfo(self.reachable_name, None)
        except socket.gaierror:
            return False
        return True

    def environment_string(self, env: dict[str, str]) -> str:
        return self.variant.environment_string(env)

    def file_exist(self, path: str) -> bool:
        result = self.exec(Command(self.variant.file_exist_command(path)), accept_all_exit_codes=True)
        return result.exit_code == 0

    def mkdir_p(self, path: str) -> bool:
        """Create a directory and its parents on the host."""
        result = self.exec(Command(self.variant.mkdir_p_command(path)), acceptable_exit_codes=[0, 1])
        return result.exit_code == 0

    def fips_mode(self) -> bool:
        """Check whether the host kernel runs in FIPS mode."""
        if not self.file_exist("/proc/sys/crypto/fips_enabled"):
            return False
        try:
            return self.execute("cat /proc/sys/crypto/fips_enabled") == "1"
        except CommandFailure:
            return False

    def run_script(self, local_path: str, **options: Any) -> Result:
        """Copy a local script to the host's temp directory and run it.

        Args:
            local_path: Path of the script on the local machine.
            **options: Passed to ``exec`` (e.g. ``accept_all_exit_codes``).

        Raises:
            MissingPathError: If the script does not exist locally.
            CommandFailure: If the script fails.
        """
        if not Path(local_path).is_file():
            raise MissingPathError(local_path)

        tmpdir = self["tmpdir"] or "/tmp"
        self.do_scp_to(local_path, tmpdir, **options)
        remote_path = transfer.remote_join(tmpdir, Path(local_path).name)
        if not self.is_powershell:
            self.exec(Command(f"chmod +x {remote_path}"), **options)
        return self.exec(Command(remote_path), **options)
