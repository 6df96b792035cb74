"""Connections used by hosts to run commands and copy files."""

from hostexec.remote.base import Connection
from hostexec.remote.local import LocalConnection
from hostexec.remote.ssh import SSHConnection

__all__ = [
    "Connection",
    "LocalConnection",
    "SSHConnection",
]
