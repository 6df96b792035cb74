"""Global options and hosts file loading."""

import copy
from pathlib import Path
from typing import Any, Optional

import yaml

LOCAL_HOST_NAME = "localhost"

DEFAULT_CONNECTION_PREFERENCE = ["ip", "vmhostname", "hostname"]

DEFAULT_OPTIONS: dict[str, Any] = {
    "dry_run": False,
    "trace_limit": 10,
    "color_host_output": False,
    "hypervisor": None,
    "ssh": {},
    "ssh_connection_preference": DEFAULT_CONNECTION_PREFERENCE,
    "ssh_env_file": "~/.ssh/environment",
}


def default_options(overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build a global options mapping.

    Args:
        overrides: Values that replace the defaults.

    Returns:
        A fresh options dictionary.
    """
    options = copy.deepcopy(DEFAULT_OPTIONS)
    if overrides:
        options.update(overrides)
    return options


def load_hosts_file(path: Path) -> tuple[dict[str, dict[str, Any]], dict[str, Any]]:
    """Load host definitions from a YAML hosts file.

    The file has a ``HOSTS`` mapping of host name to host settings and an
    optional ``CONFIG`` mapping of global options::

        HOSTS:
          web01:
            platform: el-9-x86_64
            ip: 10.0.0.5
        CONFIG:
          trace_limit: 20

    Args:
        path: Path to the hosts file.

    Returns:
        A tuple of (hosts, options).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file has no HOSTS mapping.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    hosts = data.get("HOSTS")
    if not isinstance(hosts, dict) or not hosts:
        raise ValueError(f"Hosts file '{path}' does not define any HOSTS")

    options = default_options(data.get("CONFIG") or {})
    return {str(name): dict(values or {}) for name, values in hosts.items()}, options
