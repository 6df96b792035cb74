"""Tests for the CLI."""

import json
import sys

import pytest
from click.testing import CliRunner

from hostexec import __version__
from hostexec.cli import cli

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a posix shell")

HOSTS_YAML = """\
HOSTS:
  localhost:
    platform: ubuntu-22.04-amd64
    hypervisor: none
  web01:
    platform: el-9-x86_64
    ip: 10.0.0.5
    user: deploy
CONFIG:
  trace_limit: 5
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def hosts_file(tmp_path):
    """A hosts file with the local machine and one remote host."""
    path = tmp_path / "hosts.yaml"
    path.write_text(HOSTS_YAML)
    return str(path)


class TestCli:
    """Tests for CLI commands."""

    def test_version(self, runner):
        """Test --version."""
        result = runner.invoke(cli, ["--version"], obj={})
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_without_hosts_file(self, runner, tmp_path):
        """Test that subcommand help doesn't need a hosts file."""
        result = runner.invoke(cli, ["--hosts", str(tmp_path / "missing.yaml"), "exec", "--help"], obj={})
        assert result.exit_code == 0
        assert "--accept-all-exit-codes" in result.output

    def test_hosts_table(self, runner, hosts_file):
        """Test listing hosts."""
        result = runner.invoke(cli, ["--hosts", hosts_file, "hosts"], obj={})

        assert result.exit_code == 0
        assert "localhost" in result.output
        assert "web01" in result.output

    def test_hosts_json(self, runner, hosts_file):
        """Test listing hosts as JSON."""
        result = runner.invoke(cli, ["--json", "--hosts", hosts_file, "hosts"], obj={})

        assert result.exit_code == 0
        data = {entry["name"]: entry for entry in json.loads(result.output)}
        assert data["web01"]["reachable_name"] == "10.0.0.5"
        assert data["web01"]["user"] == "deploy"
        assert data["localhost"]["variant"] == "unix"

    def test_missing_hosts_file(self, runner, tmp_path):
        """Test that a missing hosts file is an error."""
        result = runner.invoke(cli, ["--hosts", str(tmp_path / "missing.yaml"), "hosts"], obj={})
        assert result.exit_code == 1

    def test_unknown_host(self, runner, hosts_file):
        """Test running against a host that isn't declared."""
        result = runner.invoke(cli, ["--hosts", hosts_file, "exec", "db01", "uptime"], obj={})
        assert result.exit_code == 1

    @posix_only
    def test_exec_local(self, runner, hosts_file):
        """Test running a command on the local host."""
        result = runner.invoke(cli, ["--hosts", hosts_file, "exec", "localhost", "echo", "hello"], obj={})

        assert result.exit_code == 0
        assert "hello" in result.output
        assert "exit code 0" in result.output

    @posix_only
    def test_exec_failure(self, runner, hosts_file):
        """Test that an unacceptable exit code exits 1."""
        result = runner.invoke(cli, ["--hosts", hosts_file, "exec", "localhost", "exit", "3"], obj={})
        assert result.exit_code == 1

    @posix_only
    def test_exec_acceptable_exit_code(self, runner, hosts_file):
        """Test accepting a specific exit code."""
        result = runner.invoke(
            cli,
            ["--hosts", hosts_file, "exec", "-a", "3", "localhost", "exit", "3"],
            obj={},
        )
        assert result.exit_code == 0
        assert "exit code 3" in result.output

    def test_dry_run(self, runner, hosts_file):
        """Test that --dry-run never contacts the host."""
        result = runner.invoke(
            cli, ["--dry-run", "--hosts", hosts_file, "exec", "web01", "reboot"], obj={}
        )

        assert result.exit_code == 0
        assert "web01" in result.output
        assert "exit code 0" in result.output

    @posix_only
    def test_scp_local(self, runner, hosts_file, tmp_path):
        """Test copying a file to the local host."""
        source = tmp_path / "app.conf"
        source.write_text("setting = 1\n")
        target = tmp_path / "dest"
        target.mkdir()

        result = runner.invoke(
            cli, ["--hosts", hosts_file, "scp", "localhost", str(source), str(target)], obj={}
        )

        assert result.exit_code == 0
        assert (target / "app.conf").read_text() == "setting = 1\n"

    def test_scp_missing_source(self, runner, hosts_file, tmp_path):
        """Test that a missing source exits 1."""
        result = runner.invoke(
            cli,
            ["--hosts", hosts_file, "scp", "web01", str(tmp_path / "nope"), "/opt"],
            obj={},
        )
        assert result.exit_code == 1
