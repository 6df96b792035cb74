"""Command execution against a host."""

import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from hostexec.errors import CommandFailure
from hostexec.models import NullResult, Result, as_command

if TYPE_CHECKING:
    from hostexec.host.base import Host

logger = logging.getLogger(__name__)

DEFAULT_ACCEPTABLE_EXIT_CODES = [0, None]


class CommandExecutor:
    """Runs commands on one host and enforces the exit code policy."""

    def __init__(self, host: "Host"):
        """Initialize the executor.

        Args:
            host: The host commands run against.
        """
        self.host = host

    def execute(self, command: Any, **options: Any) -> Result:
        """Execute a command on the host.

        Args:
            command: A Command (anything with ``cmd_line(host)``) or a string.
            **options:
                dry_run: Log the command line and return a NullResult.
                silent: Don't stream output and skip exit code checks.
                accept_all_exit_codes: Any exit code is a success.
                acceptable_exit_codes: Exit codes that count as success
                    (default ``[0, None]``).
                expect_connection_failure: The command should break the channel.
                reset_connection: Close the connection right after the
                    command and return the raw result.
                trace_limit: Lines of output quoted in failure messages.
                pty, stdin: Passed to the connection.

        Returns:
            The command's Result.

        Raises:
            CommandFailure: If the result breaks the exit code policy.
        """
        host = self.host
        command = as_command(command)
        cmdline = command.cmd_line(host)

        # a call-level dry_run wins; otherwise fall back to the global option
        options["dry_run"] = options.get("dry_run") or host.options.get("dry_run")

        if options["dry_run"]:
            logger.debug("dry run: command %s not executed", cmdline)
            return NullResult(str(host), cmdline)

        silent = options.get("silent", False)
        if silent:
            output_callback = None
        else:
            logger.debug("\n%s %s$ %s", host.log_prefix, datetime.now().strftime("%H:%M:%S"), cmdline)
            output_callback = host.output.callback(color=bool(host.options.get("color_host_output")))

        connection = host.connection()
        start = time.perf_counter()
        result = connection.execute(cmdline, options, output_callback)
        result.duration = time.perf_counter() - start

        if not silent:
            logger.debug("\n%s executed in %0.2f seconds", host.log_prefix, result.duration)

        if options.get("reset_connection"):
            # the command is expected to take the channel down; don't wait on it
            host.close()
            return result

        if not silent:
            self._check_result(result, cmdline, options, output_callback)
        return result

    def _check_result(self, result: Result, cmdline: str, options: dict[str, Any], output_callback) -> None:
        host = self.host
        trace_limit = options.get("trace_limit") or host.options.get("trace_limit") or 10
        result.log(logger)

        expect_failure = options.get("expect_connection_failure", False)
        if not expect_failure and result.exit_code is None:
            raise CommandFailure(
                self._failure_message("connection failure running", cmdline, result, trace_limit)
            )

        if expect_failure and result.exit_code is not None:
            if not host.connection().wait_for_connection_failure(options, output_callback):
                raise CommandFailure(
                    self._failure_message(
                        "should have resulted in a connection failure running",
                        cmdline, result, trace_limit,
                    )
                )

        acceptable = options.get("acceptable_exit_codes")
        if isinstance(acceptable, int):
            acceptable = [acceptable]
        if options.get("accept_all_exit_codes") and acceptable is not None and len(acceptable) > 0:
            logger.warning(
                "accept_all_exit_codes & acceptable_exit_codes set. acceptable_exit_codes "
                "overrides, but they shouldn't both be set at once"
            )
            options["accept_all_exit_codes"] = False

        if acceptable is None:
            acceptable = DEFAULT_ACCEPTABLE_EXIT_CODES

        if not options.get("accept_all_exit_codes") and not result.exit_code_in(acceptable):
            raise CommandFailure(
                self._failure_message(f"exited with {result.exit_code} running", cmdline, result, trace_limit)
            )

    def _failure_message(self, what: str, cmdline: str, result: Result, trace_limit: int) -> str:
        return (
            f"Host '{self.host}' {what}:\n {cmdline}\n"
            f"Last {trace_limit} lines of output were:\n{result.formatted_output(trace_limit)}"
        )
