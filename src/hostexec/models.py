"""Core data models: results, commands and the host configuration view."""

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

if TYPE_CHECKING:
    from hostexec.host.base import Host


@dataclass
class Result:
    """Result of running a command (or a copy) against a host.

    An ``exit_code`` of None means no exit status came back over the
    channel, which is not the same thing as a failing exit code.
    """

    host: str
    cmd: Any
    stdout: str = ""
    stderr: str = ""
    output: str = ""
    exit_code: Optional[int] = None
    duration: Optional[float] = None

    def add_stdout(self, data: str) -> None:
        """Append a chunk of standard output."""
        self.stdout += data
        self.output += data

    def add_stderr(self, data: str) -> None:
        """Append a chunk of standard error."""
        self.stderr += data
        self.output += data

    def finalize(self) -> None:
        """Normalize line endings once the command is done."""
        self.stdout = self.stdout.replace("\r\n", "\n")
        self.stderr = self.stderr.replace("\r\n", "\n")
        self.output = self.output.replace("\r\n", "\n")

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def exit_code_in(self, codes: Iterable[Optional[int]]) -> bool:
        """Check the exit code against a set of acceptable codes.

        Args:
            codes: Acceptable exit codes. None may be a member.

        Returns:
            True if the exit code is one of ``codes``.
        """
        return self.exit_code in list(codes)

    def formatted_output(self, limit: int = 10) -> str:
        """Return the last ``limit`` lines of combined output, tab indented."""
        text = self.output.rstrip("\n")
        if not text:
            return ""
        lines = text.split("\n")[-limit:]
        return "\n".join("\t" + line for line in lines)

    def log(self, logger: logging.Logger) -> None:
        if self.exit_code:
            logger.debug("Exited: %s", self.exit_code)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "host": self.host,
            "cmd": self.cmd,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration": self.duration,
        }


class NullResult(Result):
    """Placeholder for an operation skipped in dry-run mode."""

    def __init__(self, host: str, cmd: Any):
        super().__init__(host=host, cmd=cmd, exit_code=0)


@dataclass
class Command:
    """A command line rendered for a specific host.

    The environment is rendered with the host platform's syntax, so the
    same Command can target unix and windows hosts.
    """

    command: str
    args: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    prepend_cmds: Optional[str] = None
    append_cmds: Optional[str] = None

    def options_string(self) -> str:
        parts = []
        for key, value in self.options.items():
            if value is True:
                parts.append(f"--{key}")
            elif value is not None and value is not False:
                parts.append(f"--{key}={value}")
        return " ".join(parts)

    def args_string(self) -> str:
        return " ".join(str(arg) for arg in self.args)

    def cmd_line(self, host: "Host") -> str:
        """Render the full command line for ``host``."""
        pieces = [
            host.environment_string(self.environment),
            self.prepend_cmds or "",
            self.command,
            self.options_string(),
            self.args_string(),
            self.append_cmds or "",
        ]
        return " ".join(piece for piece in pieces if piece)

    def __str__(self) -> str:
        return self.command


def as_command(command: Union[str, Command, Any]) -> Any:
    """Wrap a plain string in a Command; pass anything else through."""
    if isinstance(command, str):
        return Command(command)
    return command


class HostConfig:
    """Merged view over host-specific values and global options.

    Lookup precedence: a key present in the host mapping with a value other
    than None wins; otherwise the global option is used. Writes and deletes
    only touch the host mapping. Both mappings are deep-copied so callers
    cannot change them behind the host's back.
    """

    def __init__(self, host_hash: dict[str, Any], options: dict[str, Any]):
        self.host_hash = copy.deepcopy(dict(host_hash))
        self.options = copy.deepcopy(dict(options))

    def __getitem__(self, key: str) -> Any:
        value = self.host_hash.get(key)
        if value is not None:
            return value
        return self.options.get(key)

    def get(self, key: str, default: Any = None) -> Any:
        value = self[key]
        return default if value is None else value

    def __setitem__(self, key: str, value: Any) -> None:
        self.host_hash[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.host_hash or key in self.options

    def delete(self, key: str) -> Any:
        return self.host_hash.pop(key, None)
