"""Bounded retries and TCP port probing."""

import errno
import logging
import socket
import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from hostexec.host.base import Host

logger = logging.getLogger(__name__)

# Ceiling for a single connect attempt, in seconds.
SELECT_TIMEOUT = 30

_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH, errno.ETIMEDOUT}


def repeat_fibonacci_style_for(attempts: int, func: Callable[[], bool]) -> bool:
    """Call ``func`` until it returns truthy or ``attempts`` run out.

    Waits 1, 1, 2, 3, 5, ... seconds between attempts. There is no wait
    after the final attempt.

    Args:
        attempts: Maximum number of calls.
        func: Zero-argument callable returning success.

    Returns:
        True as soon as ``func`` succeeds, False when attempts are exhausted.
    """
    last_wait, wait = 0, 1
    for attempt in range(1, attempts + 1):
        if func():
            return True
        if attempt < attempts:
            time.sleep(wait)
            last_wait, wait = wait, last_wait + wait
    return False


def port_open(host: "Host", port: int, timeout: float = SELECT_TIMEOUT) -> bool:
    """Check whether a TCP port on the host accepts connections.

    Args:
        host: Host to probe (its reachable name is used).
        port: TCP port.
        timeout: Ceiling for this single attempt.

    Returns:
        True if a connection was established. Refused, timed out and
        unreachable all count as closed.
    """
    try:
        sock = socket.create_connection((host.reachable_name, port), timeout=timeout)
    except (ConnectionRefusedError, socket.timeout):
        return False
    except OSError as e:
        if e.errno in _UNREACHABLE_ERRNOS:
            return False
        raise
    sock.close()
    return True


def wait_for_port(host: "Host", port: int, attempts: int = 15) -> bool:
    """Wait for a port on the host to open.

    Useful after a reboot, before resuming commands against the host.

    Args:
        host: Host to probe.
        port: TCP port.
        attempts: Maximum number of probes.

    Returns:
        True once the port is open, False on timeout.
    """
    logger.debug("  Waiting for port %s ... ", port)
    start = time.monotonic()
    done = repeat_fibonacci_style_for(attempts, lambda: port_open(host, port))
    if done:
        logger.debug("connected in %0.2f seconds", time.monotonic() - start)
    else:
        logger.debug("timeout")
    return done
