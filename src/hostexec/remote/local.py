"""Local connection for hosts that are the machine running the harness."""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Optional

from hostexec.models import Result
from hostexec.output import OutputCallback
from hostexec.remote.base import Connection

logger = logging.getLogger(__name__)


def read_env_file(path: Optional[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines from an environment file.

    A missing or unreadable file yields no variables.
    """
    if not path:
        return {}
    env_file = Path(path).expanduser()
    if not env_file.is_file() or not os.access(env_file, os.R_OK):
        return {}

    envs = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        envs[key.strip()] = value.strip()
    return envs


class LocalConnection(Connection):
    """Runs commands on the local machine."""

    def __init__(self, hostname: str = "localhost", ssh_env_file: Optional[str] = None):
        """Initialize the local connection.

        Args:
            hostname: Name reported in results.
            ssh_env_file: Optional ``KEY=VALUE`` file with extra environment.
        """
        super().__init__(hostname)
        self.ssh_env_file = ssh_env_file
        self._connected = False

    def connect(self) -> bool:
        """Local connection is always available."""
        self._connected = True
        return True

    def close(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def execute(
        self,
        command: str,
        options: Optional[dict[str, Any]] = None,
        output_callback: Optional[OutputCallback] = None,
    ) -> Result:
        """Execute a command line locally through the shell.

        Args:
            command: Command line to execute.
            options: ``stdin`` is fed to the process when given.
            output_callback: Called with stdout and stderr once the command ends.

        Returns:
            Result with exit code and output.
        """
        options = options or {}
        result = Result(host=self.hostname, cmd=command)

        env = os.environ.copy()
        env.update(read_env_file(self.ssh_env_file))

        try:
            proc = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                env=env,
                input=options.get("stdin"),
            )
        except (OSError, subprocess.SubprocessError) as e:
            result.add_stderr(repr(e))
            result.exit_code = 1
            logger.info(result.stderr)
        else:
            result.add_stdout(proc.stdout)
            result.add_stderr(proc.stderr)
            result.exit_code = proc.returncode
            if output_callback:
                for chunk in (proc.stdout, proc.stderr):
                    if chunk:
                        output_callback(chunk)

        result.finalize()
        return result

    def scp_to(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Copy a file or directory on the local filesystem."""
        _copy_path(source, target)
        logger.info("Using cp to transfer %s to %s", source, target)
        result = Result(host=self.hostname, cmd=[source, target], exit_code=0)
        result.add_stdout(f"  CP'ed file {source} to {target}")
        return result

    def scp_from(self, source: str, target: str, options: Optional[dict[str, Any]] = None) -> Result:
        """Copy a file or directory on the local filesystem."""
        return self.scp_to(source, target, options)


def _copy_path(source: str, target: str) -> None:
    """Copy like ``cp -r``: into ``target`` when it is an existing directory."""
    src = Path(source)
    dest = Path(target)
    if dest.is_dir():
        dest = dest / src.name
    if src.is_dir():
        shutil.copytree(src, dest, dirs_exist_ok=True)
    else:
        shutil.copy2(src, dest)
