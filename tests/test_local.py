"""Tests for LocalConnection."""

import sys

import pytest

from hostexec.remote.local import LocalConnection, read_env_file

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses a posix shell")


class TestLocalConnection:
    """Tests for running commands locally."""

    def test_execute(self):
        """Test a successful command."""
        connection = LocalConnection()
        result = connection.execute("echo hello")

        assert result.exit_code == 0
        assert result.stdout == "hello\n"
        assert result.host == "localhost"

    def test_exit_code_and_stderr(self):
        """Test a failing command."""
        result = LocalConnection().execute("echo oops >&2; exit 3")

        assert result.exit_code == 3
        assert result.stderr == "oops\n"

    def test_stdin(self):
        """Test that stdin is fed to the command."""
        result = LocalConnection().execute("cat", {"stdin": "piped"})
        assert result.stdout == "piped"

    def test_output_callback(self):
        """Test that output is passed to the callback."""
        chunks = []
        LocalConnection().execute("echo out; echo err >&2", output_callback=chunks.append)
        assert chunks == ["out\n", "err\n"]

    def test_env_file(self, tmp_path):
        """Test that variables from the env file are exported."""
        env_file = tmp_path / "environment"
        env_file.write_text("# comment\nHOSTEXEC_TEST=from-file\n\nbroken line\n")

        result = LocalConnection(ssh_env_file=str(env_file)).execute("echo $HOSTEXEC_TEST")

        assert result.stdout == "from-file\n"

    def test_connect_and_close(self):
        """Test the connected flag."""
        connection = LocalConnection()
        assert not connection.is_connected()
        assert connection.connect()
        assert connection.is_connected()
        connection.close()
        assert not connection.is_connected()

    def test_copy_directory(self, tmp_path):
        """Test copying a directory into an existing one."""
        src = tmp_path / "src"
        (src / "nested").mkdir(parents=True)
        (src / "nested" / "file.txt").write_text("data")
        dest = tmp_path / "dest"
        dest.mkdir()

        result = LocalConnection().scp_to(str(src), str(dest))

        assert result.exit_code == 0
        assert "CP'ed file" in result.stdout
        assert (dest / "src" / "nested" / "file.txt").read_text() == "data"


class TestReadEnvFile:
    """Tests for read_env_file."""

    def test_missing_file(self, tmp_path):
        """Test that a missing file yields nothing."""
        assert read_env_file(str(tmp_path / "nope")) == {}
        assert read_env_file(None) == {}

    def test_values_keep_equals(self, tmp_path):
        """Test that only the first '=' splits."""
        env_file = tmp_path / "env"
        env_file.write_text("OPTS=a=b\n")
        assert read_env_file(str(env_file)) == {"OPTS": "a=b"}
