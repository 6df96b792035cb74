"""hostexec - run commands on and copy files to hosts under test."""

__version__ = "0.1.0"

from hostexec.errors import (  # noqa: E402
    CommandFailure,
    HostExecError,
    MissingPathError,
    RebootFailure,
    RebootWarning,
)
from hostexec.host import Host, HostFactory, create_host  # noqa: E402
from hostexec.models import Command, NullResult, Result  # noqa: E402

__all__ = [
    "__version__",
    "Command",
    "CommandFailure",
    "Host",
    "HostExecError",
    "HostFactory",
    "MissingPathError",
    "NullResult",
    "RebootFailure",
    "RebootWarning",
    "Result",
    "create_host",
]
