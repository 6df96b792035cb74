"""SSH connection for Unix and Windows (via OpenSSH or cygwin sshd) hosts."""

import logging
import os
import posixpath
import stat
import time
from pathlib import Path
from typing import Any, Optional

import paramiko

from hostexec.config import DEFAULT_CONNECTION_PREFERENCE
from hostexec.errors import CommandFailure
from hostexec.models import Result
from hostexec.output import OutputCallback
from hostexec.remote.base import Connection
from hostexec.waiter import repeat_fibonacci_style_for

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32768
POLL_INTERVAL = 0.05
PROBE_TIMEOUT = 10


class SSHConnection(Connection):
    """Runs commands and copies files on a host over SSH.

    The address to connect to is chosen from ``ip``, ``vmhostname`` and
    ``hostname`` in the order given by the connection preference; the first
    one that accepts a connection wins.
    """

    RETRYABLE_EXCEPTIONS = (paramiko.SSHException, EOFError, OSError)

    def __init__(
        self,
        name_hash: dict[str, Optional[str]],
        user: Optional[str] = None,
        ssh_opts: Optional[dict[str, Any]] = None,
        connection_preference: Optional[list[str]] = None,
    ):
        """Initialize the SSH connection.

        Args:
            name_hash: Identity with ``hostname`` and optional ``ip`` and
                ``vmhostname``.
            user: SSH username.
            ssh_opts: SSH settings (``port``, ``keys``, ``password``,
                ``timeout``, ``connection_tries``, ``verify_host_key``).
            connection_preference: Order in which identity fields are tried.
        """
        super().__init__(
            hostname=name_hash["hostname"],
            ip=name_hash.get("ip"),
            vmhostname=name_hash.get("vmhostname"),
        )
        self.user = user
        self.ssh_opts = dict(ssh_opts or {})
        self.connection_preference = list(connection_preference or DEFAULT_CONNECTION_PREFERENCE)
        self._client: Optional[paramiko.SSHClient] = None

    def candidate_addresses(self) -> list[str]:
        """Addresses to try, in preference order, without duplicates."""
        addresses = []
        for attr in self.connection_preference:
            value = getattr(self, attr, None)
            if value and value not in addresses:
                addresses.append(value)
        return addresses

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "port": int(self.ssh_opts.get("port", 22)),
            "timeout": self.ssh_opts.get("timeout", 30),
        }
        if self.user:
            kwargs["username"] = self.user

        keys = self.ssh_opts.get("keys")
        if keys:
            if isinstance(keys, str):
                keys = [keys]
            kwargs["key_filename"] = [str(Path(k).expanduser()) for k in keys]
        if self.ssh_opts.get("password"):
            kwargs["password"] = self.ssh_opts["password"]
        return kwargs

    def connect(self) -> bool:
        """Establish the SSH connection, retrying with fibonacci backoff.

        Raises:
            ConnectionError: If no address accepted a connection.
        """
        kwargs = self._connect_kwargs()
        tries = int(self.ssh_opts.get("connection_tries", 3))
        errors: list[str] = []

        def attempt() -> bool:
            for address in self.candidate_addresses():
                client = paramiko.SSHClient()
                if self.ssh_opts.get("verify_host_key"):
                    client.load_system_host_keys()
                    client.set_missing_host_key_policy(paramiko.RejectPolicy())
                else:
                    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
                try:
                    client.connect(hostname=address, **kwargs)
                except self.RETRYABLE_EXCEPTIONS as e:
                    logger.debug("Attempt to connect to %s failed: %s", address, e)
                    errors.append(f"{address}: {e}")
                    client.close()
                    continue
                logger.debug("Connected to %s (%s)", self.hostname, address)
                self._client = client
                return True
            return False

        if repeat_fibonacci_style_for(tries, attempt):
            return True
        detail = errors[-1] if errors else "no address to connect to"
        raise ConnectionError(f"Failed to connect to {self.hostname}: {detail}")

    def close(self) -> None:
        """Close SSH connection."""
        if self._client:
            try:
                self._client.close()
            except self.RETRYABLE_EXCEPTIONS as e:
                logger.debug("Error closing connection to %s: %s", self.hostname, e)
            self._client = None

    def is_connected(self) -> bool:
        """Check if SSH connection is active."""
        if not self._client:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def _transport(self) -> paramiko.Transport:
        if not self.is_connected():
            self.connect()
        return self._client.get_transport()

    def execute(
        self,
        command: str,
        options: Optional[dict[str, Any]] = None,
        output_callback: Optional[OutputCallback] = None,
    ) -> Result:
        """Execute a command on the remote host.

        Output is streamed to ``output_callback`` as it arrives. If the
        channel breaks the connection is closed and the result is returned
        without an exit code.

        Args:
            command: Command line to execute.
            options: ``pty`` requests a terminal, ``stdin`` is sent to the command.
            output_callback: Called with each chunk of output.

        Returns:
            Result with output and exit code.
        """
        options = options or {}
        result = Result(host=self.hostname, cmd=command)

        try:
            channel = self._transport().open_session()
            if options.get("pty"):
                channel.get_pty()
            channel.exec_command(command)
            if options.get("stdin"):
                channel.sendall(options["stdin"].encode())
            channel.shutdown_write()
            self._drain(channel, result, output_callback)
            status = channel.recv_exit_status()
            channel.close()
            # paramiko reports -1 when the channel closed without a status
            result.exit_code = None if status == -1 else status
        except self.RETRYABLE_EXCEPTIONS as e:
            logger.debug("%s on %s running %s: %s", type(e).__name__, self.hostname, command, e)
            self.close()

        result.finalize()
        return result

    def _drain(
        self,
        channel: paramiko.Channel,
        result: Result,
        output_callback: Optional[OutputCallback],
    ) -> None:
        while True:
            received = False
            if channel.recv_ready():
                data = channel.recv(CHUNK_SIZE).decode("utf-8", errors="replace")
                result.add_stdout(data)
                if output_callback:
                    output_callback(data)
                received = True
            if channel.recv_stderr_ready():
                data = channel.recv_stderr(CHUNK_SIZE).decode("utf-8", errors="replace")
                result.add_stderr(data)
                if output_callback:
                    output_callback(data)
                received = True
            if received:
                continue
            if channel.exit_status_ready():
                return
            time.sleep(POLL_INTERVAL)

    def wait_for_connection_failure(
        self,
        options: Optional[dict[str, Any]] = None,
        output_callback: Optional[OutputCallback] = None,
    ) -> bool:
        """Poll the host until the channel breaks.

        Used after commands that should take the connection down (reboots).
        Tries ten times with growing waits in between.

        Returns:
            True once a probe fails, False if the connection stayed up.
        """
        command = "echo echo"  # runs on every platform, windows included
        last_wait, wait = 2, 3
        for attempt in range(1, 11):
            logger.info(
                "Waiting for connection failure on %s (attempt %d, try again in %d second(s))",
                self.hostname, attempt, wait,
            )
            try:
                self._probe(command)
            except self.RETRYABLE_EXCEPTIONS as e:
                logger.debug(
                    "Connection on %s failed as expected (%s - %s)",
                    self.hostname, type(e).__name__, e,
                )
                self.close()
                return True

            if output_callback:
                output_callback(f"sleep {wait} second(s): ")
            for _ in range(wait):
                time.sleep(1)
                if output_callback:
                    output_callback(".")
            if output_callback:
                output_callback("\n")
            last_wait, wait = wait, last_wait + wait
        return False

    def _probe(self, command: str) -> None:
        transport = self._client.get_transport() if self._client else None
        if transport is None or not transport.is_active():
            raise paramiko.SSHException(f"connection to {self.hostname} is not active")
        channel = transport.open_session(timeout=PROBE_TIMEOUT)
        channel.exec_command(command)
        deadline = time.monotonic() + PROBE_TIMEOUT
        while not channel.exit_status_ready() and time.monotonic() < deadline:
            time.sleep(POLL_INTERVAL)
        channel.close()
        if not transport.is_active():
            raise paramiko.SSHException(f"connection to {self.hostname} dropped")

    def scp_to(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Upload a file or directory (recursively) over SFTP.

        Raises:
            CommandFailure: If the upload broke; the connection is closed.
        """
        result = Result(host=self.hostname, cmd=[source, target])
        result.add_stdout("\n")
        try:
            sftp = self._transport().open_sftp_client()
            try:
                self._put(sftp, Path(source), target, result)
            finally:
                sftp.close()
        except self.RETRYABLE_EXCEPTIONS as e:
            logger.warning("%s error in scp'ing. Forcing the connection to close.", type(e).__name__)
            self.close()
            raise CommandFailure(f"Failed to copy {source} to {self.hostname}:{target}: {e}") from e

        result.add_stdout(f"  SCP'ed file {source} to {self.hostname}:{target}")
        result.exit_code = 0
        result.finalize()
        return result

    def scp_from(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Download a file or directory (recursively) over SFTP.

        Raises:
            CommandFailure: If the download broke; the connection is closed.
        """
        result = Result(host=self.hostname, cmd=[source, target])
        result.add_stdout("\n")
        try:
            sftp = self._transport().open_sftp_client()
            try:
                self._get(sftp, source, Path(target), result)
            finally:
                sftp.close()
        except self.RETRYABLE_EXCEPTIONS as e:
            logger.warning("%s error in scp'ing. Forcing the connection to close.", type(e).__name__)
            self.close()
            raise CommandFailure(f"Failed to copy {self.hostname}:{source} to {target}: {e}") from e

        result.add_stdout(f"  SCP'ed file {self.hostname}:{source} to {target}")
        result.exit_code = 0
        result.finalize()
        return result

    def _put(self, sftp: paramiko.SFTPClient, source: Path, target: str, result: Result) -> None:
        if _remote_is_dir(sftp, target):
            target = posixpath.join(target, source.name)

        if source.is_dir():
            if not _remote_is_dir(sftp, target):
                sftp.mkdir(target)
            for child in sorted(source.iterdir()):
                self._put(sftp, child, target, result)
            return

        attrs = sftp.put(str(source), target)
        result.add_stdout(f"\tcopying {source}: {attrs.st_size}\n")

    def _get(self, sftp: paramiko.SFTPClient, source: str, target: Path, result: Result) -> None:
        if target.is_dir():
            target = target / posixpath.basename(source.rstrip("/"))

        if stat.S_ISDIR(sftp.stat(source).st_mode):
            os.makedirs(target, exist_ok=True)
            for entry in sftp.listdir_attr(source):
                self._get(sftp, posixpath.join(source, entry.filename), target, result)
            return

        sftp.get(source, str(target))
        result.add_stdout(f"\tcopying {source}: {target.stat().st_size}\n")


def _remote_is_dir(sftp: paramiko.SFTPClient, path: str) -> bool:
    try:
        return stat.S_ISDIR(sftp.stat(path).st_mode)
    except IOError:
        return False
