"""Tests for retries and port probing."""

import socket
from unittest.mock import MagicMock, patch

import pytest

from hostexec.waiter import port_open, repeat_fibonacci_style_for, wait_for_port


@pytest.fixture
def no_sleep():
    with patch("hostexec.waiter.time.sleep") as sleep:
        yield sleep


class TestFibonacciRetry:
    """Tests for repeat_fibonacci_style_for."""

    def test_waits_follow_fibonacci(self, no_sleep):
        """Test the waits between failing attempts."""
        func = MagicMock(return_value=False)

        assert not repeat_fibonacci_style_for(6, func)

        assert func.call_count == 6
        assert [c[0][0] for c in no_sleep.call_args_list] == [1, 1, 2, 3, 5]

    def test_stops_on_success(self, no_sleep):
        """Test that the first success ends the retries."""
        func = MagicMock(side_effect=[False, False, True, False])

        assert repeat_fibonacci_style_for(10, func)

        assert func.call_count == 3
        assert no_sleep.call_count == 2

    def test_immediate_success_never_sleeps(self, no_sleep):
        """Test that a first-try success doesn't wait."""
        assert repeat_fibonacci_style_for(3, lambda: True)
        no_sleep.assert_not_called()

    def test_zero_attempts(self, no_sleep):
        """Test that no attempts means failure."""
        func = MagicMock(return_value=True)
        assert not repeat_fibonacci_style_for(0, func)
        func.assert_not_called()


class TestPortOpen:
    """Tests for port_open against real sockets."""

    def test_listening_port(self):
        """Test that a listening socket is open."""
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        host = MagicMock(reachable_name="127.0.0.1")
        try:
            assert port_open(host, server.getsockname()[1], timeout=5)
        finally:
            server.close()

    def test_closed_port(self):
        """Test that a refused connection is closed."""
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
        probe.close()

        host = MagicMock(reachable_name="127.0.0.1")
        assert not port_open(host, port, timeout=5)

    def test_timeout_is_closed(self):
        """Test that a timed out connect counts as closed."""
        host = MagicMock(reachable_name="10.255.255.1")
        with patch("hostexec.waiter.socket.create_connection", side_effect=socket.timeout()):
            assert not port_open(host, 22)

    def test_other_errors_propagate(self):
        """Test that unexpected socket errors are raised."""
        host = MagicMock(reachable_name="nowhere.invalid")
        with patch("hostexec.waiter.socket.create_connection", side_effect=socket.gaierror("no name")):
            with pytest.raises(OSError):
                port_open(host, 22)


class TestWaitForPort:
    """Tests for wait_for_port."""

    def test_gives_up_after_attempts(self, unix_host, no_sleep):
        """Test that a port that never opens is probed exactly 15 times."""
        with patch("hostexec.waiter.port_open", return_value=False) as probe:
            assert not unix_host.wait_for_port(22)

        assert probe.call_count == 15
        assert no_sleep.call_count == 14

    def test_stops_when_open(self, unix_host, no_sleep):
        """Test that waiting ends at the first open probe."""
        with patch("hostexec.waiter.port_open", side_effect=[False, False, True]) as probe:
            assert wait_for_port(unix_host, 5985)

        assert probe.call_count == 3
        probe.assert_called_with(unix_host, 5985)
