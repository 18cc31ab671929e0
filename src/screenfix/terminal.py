"""The real (host) terminal the composed stream is written to.

``HostTerminal`` puts stdin into raw mode so keystrokes reach the wrapped
process unmodified, reports the terminal size, watches SIGWINCH and writes
composed output straight to the stdout file descriptor.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable

from screenfix.errors import GeometryUnavailable

logger = logging.getLogger(__name__)

# surrogateescape keeps undecodable bytes round-trippable on the way back out.
ENCODING_ERRORS = "surrogateescape"


def write_all(fd: int, data: bytes) -> None:
    """Write *data* to *fd*, retrying short writes."""
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class HostTerminal:
    """Concrete terminal backed by the process's stdin/stdout descriptors."""

    def __init__(
        self,
        stdin_fd: int | None = None,
        stdout_fd: int | None = None,
    ) -> None:
        self._stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self._loop: asyncio.AbstractEventLoop | None = None
        self._input_handler: Callable[[str], None] | None = None
        self._original_termios: list | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(ENCODING_ERRORS)
        self._reading = False
        self._watching_resize = False

    # -- geometry -----------------------------------------------------------

    @property
    def is_interactive(self) -> bool:
        return os.isatty(self._stdout_fd)

    def size(self) -> tuple[int, int]:
        """Return ``(columns, rows)``.

        Raises :class:`GeometryUnavailable` when stdout is not a terminal.
        """
        if not self.is_interactive:
            raise GeometryUnavailable("stdout is not a terminal")
        try:
            size = os.get_terminal_size(self._stdout_fd)
        except OSError as exc:
            raise GeometryUnavailable(str(exc)) from exc
        if size.columns <= 0 or size.lines <= 0:
            raise GeometryUnavailable("terminal reported zero size")
        return size.columns, size.lines

    # -- start / stop -------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Enable raw mode and begin delivering input and resize events."""
        self._loop = loop if loop is not None else asyncio.get_event_loop()
        self._input_handler = on_input

        if os.isatty(self._stdin_fd):
            self._original_termios = termios.tcgetattr(self._stdin_fd)
            tty.setraw(self._stdin_fd)

        self._loop.add_reader(self._stdin_fd, self._on_stdin_readable)
        self._reading = True

        try:
            self._loop.add_signal_handler(signal.SIGWINCH, on_resize)
            self._watching_resize = True
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("SIGWINCH not available; resize tracking disabled")

    def stop(self) -> None:
        """Restore terminal state and remove all handlers."""
        if self._loop is not None:
            if self._reading:
                self._loop.remove_reader(self._stdin_fd)
                self._reading = False
            if self._watching_resize:
                self._loop.remove_signal_handler(signal.SIGWINCH)
                self._watching_resize = False

        if self._original_termios is not None:
            termios.tcsetattr(
                self._stdin_fd, termios.TCSADRAIN, self._original_termios
            )
            self._original_termios = None

        self._input_handler = None

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write *data* to stdout unbuffered.  OSError propagates to the caller."""
        write_all(self._stdout_fd, data.encode("utf-8", ENCODING_ERRORS))

    # -- input --------------------------------------------------------------

    def _on_stdin_readable(self) -> None:
        try:
            raw = os.read(self._stdin_fd, 4096)
        except OSError:
            return
        if not raw:
            # EOF on stdin: stop polling it, the session keeps running.
            if self._loop is not None and self._reading:
                self._loop.remove_reader(self._stdin_fd)
                self._reading = False
            return

        data = self._decoder.decode(raw)
        if data and self._input_handler is not None:
            self._input_handler(data)
