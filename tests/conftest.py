"""Shared fixtures."""

import io
import logging
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from hostexec.config import default_options
from hostexec.host import HostFactory
from hostexec.models import Result
from hostexec.output import HostOutput
from hostexec.remote.base import Connection


@pytest.fixture
def output():
    """Host output writing to an in-memory console."""
    return HostOutput(Console(file=io.StringIO(), force_terminal=False))


@pytest.fixture
def options():
    """Fresh global options."""
    return default_options()


@pytest.fixture
def unix_host(options, output):
    """A unix host reached over SSH (the connection is never opened)."""
    return HostFactory.create(
        "web01",
        {"platform": "el-9-x86_64", "ip": "10.0.0.5"},
        options,
        output=output,
    )


@pytest.fixture
def local_host(output):
    """The local machine, run through LocalConnection."""
    return HostFactory.create(
        "localhost",
        {"platform": "ubuntu-22.04-amd64", "hypervisor": "none"},
        default_options(),
        output=output,
    )


@pytest.fixture
def make_result():
    """Factory for results with given exit code and output."""

    def _make(exit_code=0, stdout="", stderr=""):
        result = Result(host="web01", cmd="cmd", exit_code=exit_code)
        result.add_stdout(stdout)
        result.add_stderr(stderr)
        return result

    return _make


@pytest.fixture
def mock_connection(unix_host, make_result):
    """A mocked connection cached on ``unix_host``."""
    connection = MagicMock(spec=Connection)
    connection.execute.return_value = make_result(0, "ok\n")
    connection.wait_for_connection_failure.return_value = True
    unix_host._connection = connection
    return connection


@pytest.fixture(autouse=True)
def reset_hostexec_logger():
    """Undo configure_logging so caplog sees hostexec records."""
    yield
    logger = logging.getLogger("hostexec")
    logger.handlers[:] = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
