"""Run a program under a compositor session until it exits."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import time
from typing import Callable, Mapping, Sequence

from screenfix.compositor import Geometry
from screenfix.config import CompositorSettings, FeatureSnapshot, configure_logging
from screenfix.context import SessionContext
from screenfix.detect import dark_mode_hint, detect_capabilities
from screenfix.pty_process import PtyProcess
from screenfix.scheduler import LoopScheduler
from screenfix.session import Session
from screenfix.terminal import HostTerminal

logger = logging.getLogger(__name__)

_TERMINATING_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


def status_line(command: str) -> Callable[[], str]:
    """Overlay provider showing the wrapped command and a clock."""

    def render() -> str:
        clock = time.strftime("%H:%M")
        return (
            f"\x1b[38;5;45m{command}\x1b[0m"
            f"\x1b[38;5;251m  screenfix  {clock}  \x1b[0m"
            "\x1b[38;5;251m[\x1b[38;5;226mCtrl+Shift+H\x1b[38;5;251m]\x1b[0m"
        )

    return render


async def run(
    argv: Sequence[str],
    env: Mapping[str, str] | None = None,
    settings: CompositorSettings | None = None,
    terminal: HostTerminal | None = None,
) -> int:
    """Wrap *argv* in a pty, composite its output and return its exit code.

    *terminal* defaults to the process's own stdin/stdout.
    """
    env = dict(os.environ if env is None else env)
    configure_logging(env)
    capabilities = detect_capabilities(env)
    features = FeatureSnapshot.from_env(env, capabilities)
    logger.debug("Terminal %s, features %s", capabilities, features)

    loop = asyncio.get_running_loop()
    if terminal is None:
        terminal = HostTerminal()
    ctx = SessionContext(
        scheduler=LoopScheduler(loop),
        output=terminal,
        features=features,
        capabilities=capabilities,
        settings=settings or CompositorSettings(),
    )

    child_env = dict(env)
    if features.dark_mode:
        child_env.update(dark_mode_hint(capabilities).env)

    child: PtyProcess | None = None

    def forward_input(data: str) -> None:
        if child is not None:
            child.write(data)

    def resize_child(geometry: Geometry) -> None:
        if child is not None:
            child.resize(geometry.columns, geometry.content_rows)

    session = Session(
        ctx,
        forward_input=forward_input,
        read_size=terminal.size,
        resize_child=resize_child,
        overlay_text=status_line(os.path.basename(argv[0])),
        on_hotkey=lambda: session.redraw_overlay(),
    )
    session.start()

    columns, rows = session.child_size()
    child = PtyProcess.spawn(argv, columns, rows, child_env)
    exited: asyncio.Future[int] = loop.create_future()

    def on_exit(code: int) -> None:
        session.close(code)
        if not exited.done():
            exited.set_result(code)

    def on_signal(signum: int) -> None:
        logger.debug("Received signal %d, shutting down", signum)
        session.close()
        if child is not None:
            child.kill(signum)

    child.start(session.feed_output, on_exit, loop)
    terminal.start(session.handle_input, session.notify_resize, loop)
    for signum in _TERMINATING_SIGNALS:
        loop.add_signal_handler(signum, on_signal, signum)

    try:
        return await exited
    finally:
        for signum in _TERMINATING_SIGNALS:
            loop.remove_signal_handler(signum)
        terminal.stop()


def main() -> None:
    argv = sys.argv[1:] or [os.environ.get("SHELL", "/bin/sh")]
    code = asyncio.run(run(argv))
    # Negative codes mean the child died from a signal.
    sys.exit(128 - code if code < 0 else code)


if __name__ == "__main__":
    main()
