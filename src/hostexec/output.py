"""Console output for streamed host output and logging setup."""

import logging
from typing import Callable, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

OutputCallback = Callable[[str], None]


class HostOutput:
    """Writes command output from hosts as it arrives."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def host_output(self, data: str) -> None:
        """Write raw host output, escape sequences stripped."""
        self.console.print(Text.from_ansi(data).plain, end="", markup=False)

    def color_host_output(self, data: str) -> None:
        """Write host output keeping its ANSI colors."""
        self.console.print(Text.from_ansi(data), end="")

    def callback(self, color: bool = False) -> OutputCallback:
        return self.color_host_output if color else self.host_output


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Route hostexec logging through a rich handler.

    Args:
        verbose: Log at DEBUG instead of INFO.
        console: Console to log to (defaults to stderr).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    logger = logging.getLogger("hostexec")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
