"""The wrapped program, running on its own pseudo-terminal."""

from __future__ import annotations

import asyncio
import codecs
import fcntl
import logging
import os
import pty
import struct
import termios
from typing import Callable, Mapping, Sequence

from screenfix.terminal import ENCODING_ERRORS, write_all

logger = logging.getLogger(__name__)

_READ_SIZE = 65536


class PtyProcess:
    """A child process attached to the slave side of a pty.

    Output is read from the master side on the event loop and delivered as
    decoded text; resizing the master sends the child SIGWINCH.
    """

    def __init__(self, pid: int, fd: int) -> None:
        self.pid = pid
        self.fd = fd
        self.exit_code: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(ENCODING_ERRORS)
        self._on_data: Callable[[str], None] | None = None
        self._on_exit: Callable[[int], None] | None = None

    @classmethod
    def spawn(
        cls,
        argv: Sequence[str],
        columns: int,
        rows: int,
        env: Mapping[str, str] | None = None,
    ) -> PtyProcess:
        if not argv:
            raise ValueError("argv must name a program")
        pid, fd = pty.fork()
        if pid == 0:
            try:
                os.execvpe(argv[0], list(argv), dict(os.environ if env is None else env))
            except OSError as exc:
                os.write(2, f"screenfix: {argv[0]}: {exc.strerror}\r\n".encode())
            os._exit(127)

        proc = cls(pid, fd)
        proc.resize(columns, rows)
        logger.debug("Spawned %s as pid %d (%dx%d)", argv[0], pid, columns, rows)
        return proc

    def start(
        self,
        on_data: Callable[[str], None],
        on_exit: Callable[[int], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._loop = loop if loop is not None else asyncio.get_event_loop()
        self._on_data = on_data
        self._on_exit = on_exit
        self._loop.add_reader(self.fd, self._on_readable)

    def _on_readable(self) -> None:
        try:
            raw = os.read(self.fd, _READ_SIZE)
        except OSError:
            # Linux reports EIO once the slave side has closed.
            raw = b""
        if not raw:
            self._finish()
            return
        data = self._decoder.decode(raw)
        if data and self._on_data is not None:
            self._on_data(data)

    def _finish(self) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self.fd)
        tail = self._decoder.decode(b"", final=True)
        if tail and self._on_data is not None:
            self._on_data(tail)
        code = self.wait()
        try:
            os.close(self.fd)
        except OSError:
            pass
        if self._on_exit is not None:
            self._on_exit(code)

    def write(self, data: str) -> None:
        try:
            write_all(self.fd, data.encode("utf-8", ENCODING_ERRORS))
        except OSError as exc:
            logger.debug("Input to child dropped: %s", exc)

    def resize(self, columns: int, rows: int) -> None:
        try:
            fcntl.ioctl(
                self.fd,
                termios.TIOCSWINSZ,
                struct.pack("HHHH", rows, columns, 0, 0),
            )
        except OSError as exc:
            logger.debug("Child resize failed: %s", exc)

    def kill(self, signum: int) -> None:
        try:
            os.kill(self.pid, signum)
        except ProcessLookupError:
            pass

    def wait(self) -> int:
        if self.exit_code is None:
            _, status = os.waitpid(self.pid, 0)
            self.exit_code = os.waitstatus_to_exitcode(status)
        return self.exit_code
