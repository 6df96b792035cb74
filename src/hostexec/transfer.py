"""File transfer to and from hosts: structured scp and an rsync wrapper."""

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

from hostexec.errors import CommandFailure, MissingPathError
from hostexec.models import NullResult, Result

if TYPE_CHECKING:
    from hostexec.host.base import Host

logger = logging.getLogger(__name__)

RSYNC_EXIT_CODES = {
    1: "Syntax or usage error",
    2: "Protocol incompatibility",
    3: "Errors selecting input/output files, dirs",
    4: "Requested action not supported",
    5: "Error starting client-server protocol",
    6: "Daemon unable to append to log-file",
    10: "Error in socket I/O",
    11: "Error in file I/O",
    12: "Error in rsync protocol data stream",
    13: "Errors with program diagnostics",
    14: "Error in IPC code",
    20: "Received SIGUSR1 or SIGINT",
    21: "Some error returned by waitpid()",
    22: "Error allocating core memory buffers",
    23: "Partial transfer due to error",
    24: "Partial transfer due to vanished source files",
    25: "The --max-delete limit stopped deletions",
    30: "Timeout in data send/receive",
    35: "Timeout waiting for daemon connection",
}


def _segments(path: str) -> list[str]:
    return [part for part in re.split(r"[\\/]+", str(path)) if part and part != "."]


def ignore_matcher(ignore: Iterable[str]) -> Callable[[Union[str, PurePath]], bool]:
    """Build a predicate that tells whether a path is ignored.

    A path is ignored when the segments of an ignore entry appear as a
    contiguous run of the path's segments. ``"build"`` matches
    ``"a/build/x"`` but not ``"a/rebuild/x"``; ``"a/b"`` matches ``"x/a/b/c"``.

    Args:
        ignore: Ignore entries, each one or more path segments.

    Returns:
        Predicate taking a path.
    """
    entries = [_segments(entry) for entry in ignore]
    entries = [entry for entry in entries if entry]

    def matches(path: Union[str, PurePath]) -> bool:
        parts = _segments(str(path))
        for entry in entries:
            size = len(entry)
            for start in range(len(parts) - size + 1):
                if parts[start:start + size] == entry:
                    return True
        return False

    return matches


def _ignore_list(options: dict[str, Any]) -> list[str]:
    ignore = options.get("ignore") or []
    if isinstance(ignore, str):
        return [ignore]
    return list(ignore)


def _require_local_path(path: str) -> Path:
    local = Path(path)
    if not local.is_file() and not local.is_dir():
        raise MissingPathError(path)
    return local


def remote_join(base: str, *parts: str) -> str:
    sep = "\\" if "\\" in base else "/"
    joined = base.rstrip("\\/")
    if not joined and not parts:
        return base
    for part in parts:
        if part:
            joined = f"{joined}{sep}{part}"
    return joined


def collect_files(source: Path, is_ignored: Callable[[PurePath], bool]) -> list[PurePath]:
    """List files under ``source`` that are not ignored.

    Matching is done on the path relative to ``source``, so the segments
    leading up to ``source`` never cause a file to be ignored.

    Returns:
        Sorted relative paths of the surviving files.
    """
    files = []
    for path in source.rglob("*"):
        relative = path.relative_to(source)
        if is_ignored(relative) or not path.is_file():
            continue
        files.append(relative)
    return sorted(files)


def scp_to(host: "Host", source: str, target_path: str, **options: Any) -> Result:
    """Copy a local file or directory to the host.

    A directory is copied together with the directory itself, so
    ``scp_to(host, "src/app", "/opt")`` creates ``/opt/app`` on the host.
    For a directory, ignore entries are matched against paths inside it,
    never against the path leading up to it. A single file is matched on
    its whole path.

    Args:
        host: Target host.
        source: Local file or directory.
        target_path: Destination on the host (passed through the
            platform's scp path hook).
        **options:
            ignore: Paths (one or more segments) that must not be copied.
            dry_run: Log and return a NullResult.

    Returns:
        The result of the last copy, or a "No files to copy" result with
        exit code 1 when everything was ignored.

    Raises:
        MissingPathError: If ``source`` does not exist.
    """
    target = host.variant.scp_path(host, target_path)

    if options.get("dry_run") or host.options.get("dry_run"):
        scp_cmd = f"scp {source} {host.name}:{target}"
        logger.debug("dry run: localhost $ %s not executed", scp_cmd)
        return NullResult(host.name, scp_cmd)

    ignore = _ignore_list(options)
    logger.info("localhost $ scp %s %s:%s ignore=%s", source, host.name, target, ignore)

    local = _require_local_path(source)
    is_ignored = ignore_matcher(ignore)

    if local.is_file() or not ignore:
        if ignore and is_ignored(source):
            logger.debug("After rejecting ignored files/dirs, there is no file to copy")
            return _nothing_to_copy(host, source, target)
        result = host.connection().scp_to(source, target, options)
        logger.debug(result.stdout)
    else:
        files = collect_files(local, is_ignored)
        logger.debug(
            "After rejecting ignored files/dirs, going to scp [%s]",
            ", ".join(str(f) for f in files),
        )
        if not files:
            return _nothing_to_copy(host, source, target)

        required_dirs = sorted({f.parent for f in files})
        for directory in required_dirs:
            host.mkdir_p(remote_join(target, local.name, *directory.parts))

        result = None
        for relative in files:
            file_target = remote_join(target, local.name, *relative.parent.parts)
            result = host.connection().scp_to(str(local / relative), file_target, options)
            logger.debug(result.stdout)

    host.variant.scp_post_operations(host, target, target_path)
    return result


def _nothing_to_copy(host: "Host", source: str, target: str) -> Result:
    result = Result(host=host.name, cmd=[source, target], exit_code=1)
    result.add_stdout("No files to copy")
    return result


def scp_from(host: "Host", source: str, target: str, **options: Any) -> Result:
    """Copy a file or directory from the host to the local machine."""
    if options.get("dry_run") or host.options.get("dry_run"):
        scp_cmd = f"scp {host.name}:{source} {target}"
        logger.debug("dry run: localhost $ %s not executed", scp_cmd)
        return NullResult(host.name, scp_cmd)

    logger.debug("localhost $ scp %s:%s %s", host.name, source, target)
    result = host.connection().scp_from(source, target, options)
    logger.debug(result.stdout)
    return result


@dataclass
class RsyncResult:
    """Outcome of an rsync run."""

    exitcode: int
    command: list[str] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exitcode == 0

    @property
    def error(self) -> str:
        message = RSYNC_EXIT_CODES.get(self.exitcode, f"Unknown error ({self.exitcode})")
        if self.stderr.strip():
            message = f"{message}: {self.stderr.strip()}"
        return message


def rsync_ssh_args(host: "Host") -> list[str]:
    """Derive the ssh arguments rsync should use for the host.

    Precedence: an SSH config file named in the host's ssh options, then a
    hypervisor-provided config (``vagrant_ssh_config``), then the first
    existing private key from the ssh ``keys``. Port and host key checking
    options are always added.
    """
    ssh_opts = host["ssh"] or {}
    args: list[str] = []

    config_file = _existing_file(ssh_opts.get("config"))
    if config_file is None:
        config_file = _existing_file(host["vagrant_ssh_config"])

    if config_file:
        args.extend(["-F", config_file])
    else:
        keys = ssh_opts.get("keys") or []
        if isinstance(keys, str):
            keys = [keys]
        auth_methods = ssh_opts.get("auth_methods")
        if auth_methods is None or "publickey" in auth_methods:
            key = next((k for k in map(_existing_file, keys) if k), None)
            if key:
                args.extend(["-i", key])

    if ssh_opts.get("port"):
        args.extend(["-p", str(ssh_opts["port"])])

    # never prompt for unknown host keys
    args.extend(["-o", "StrictHostKeyChecking=no"])
    return args


def _existing_file(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    expanded = Path(path).expanduser()
    return str(expanded) if expanded.exists() else None


def rsync_to(host: "Host", from_path: str, to_path: str, **options: Any) -> RsyncResult:
    """Rsync a local file or directory to the host.

    The contents of a source directory are copied into ``to_path``.

    Args:
        host: Target host.
        from_path: Local file or directory.
        to_path: Destination on the host.
        **options:
            ignore: Paths excluded from the transfer.

    Returns:
        The successful RsyncResult.

    Raises:
        MissingPathError: If ``from_path`` does not exist.
        CommandFailure: If rsync fails, with rsync's error.
    """
    local = _require_local_path(from_path)

    rsync_args = ["-az"]
    user = host["user"] or "root"
    destination = f"{user}@{host.reachable_name}"

    rsync_args.extend(["-e", shlex.join(["ssh", *rsync_ssh_args(host)])])

    ignore = _ignore_list(options)
    for value in ignore:
        rsync_args.extend(["--exclude", value])

    if local.is_dir() and not from_path.endswith(("/", "\\")):
        from_path += "/"

    logger.info("rsync: localhost:%s to %s:%s ignore=%s", from_path, destination, to_path, ignore)
    result = run_rsync(from_path, f"{destination}:{to_path}", rsync_args)
    logger.debug("rsync returned %r", result)

    if result.success:
        return result
    raise CommandFailure(result.error)


def run_rsync(source: str, destination: str, args: list[str]) -> RsyncResult:
    """Run the rsync binary.

    Raises:
        CommandFailure: If rsync is not installed.
    """
    cmd = ["rsync", *args, source, destination]
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise CommandFailure(f"rsync is not installed: {e}") from e
    return RsyncResult(exitcode=proc.returncode, command=cmd, stdout=proc.stdout, stderr=proc.stderr)
