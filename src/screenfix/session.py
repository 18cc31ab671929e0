"""A compositor session: the glue between a wrapped process and the terminal.

Data flow::

    wrapped output -> FlushScheduler (sanitize, region rewrite, clears) -> terminal
    resize signal  -> ResizeDebouncer -> Compositor geometry/region -> overlay
    keyboard input -> hotkey filter -> wrapped process

All state lives on the :class:`SessionContext` and the components built
here, so several sessions can run side by side.
"""

from __future__ import annotations

import logging
from typing import Callable

from screenfix.compositor import Compositor, Geometry, OverlayText, display_width
from screenfix.context import SessionContext
from screenfix.detect import dark_mode_hint
from screenfix.errors import GeometryUnavailable, StreamUnwritable
from screenfix.flush import FlushScheduler
from screenfix.resize import ResizeDebouncer
from screenfix.scrollback import ScrollbackMaintainer

logger = logging.getLogger(__name__)

# Ctrl+Shift+H in the kitty keyboard protocol (upper and lower case forms).
HOTKEY_SEQUENCES = ("\x1b[72;6u", "\x1b[104;6u")

DEFAULT_SIZE = (80, 24)

_BANNER_WIDTH = 68


def exit_banner(columns: int, name: str, exit_code: int | None = None) -> str:
    """Centered goodbye lines written after the screen is handed back."""
    divider = "\x1b[2m" + "─" * min(columns, _BANNER_WIDTH) + "\x1b[0m"
    lines = ["", divider, "", f"\x1b[1;32m{name} session ended\x1b[0m"]
    if exit_code is not None:
        lines.append(f"\x1b[33mexit code {exit_code}\x1b[0m")
    lines += ["", divider, ""]

    def pad(line: str) -> str:
        return " " * max(0, (columns - display_width(line)) // 2) + line

    return "\r\n".join(pad(line) for line in lines) + "\r\n"


class Session:
    """Owns every component for one wrapped process."""

    def __init__(
        self,
        ctx: SessionContext,
        *,
        forward_input: Callable[[str], None],
        read_size: Callable[[], tuple[int, int]],
        resize_child: Callable[[Geometry], None] | None = None,
        overlay_text: Callable[[], OverlayText] | None = None,
        on_hotkey: Callable[[], None] | None = None,
        name: str = "screenfix",
    ) -> None:
        self.ctx = ctx
        self.name = name
        self._forward_input = forward_input
        self._read_size = read_size
        self._resize_child = resize_child
        self._on_hotkey = on_hotkey

        self.compositor = Compositor(ctx, overlay_text)
        self.scrollback = ScrollbackMaintainer(ctx, self._request_scrollback_clear)
        self.flush = FlushScheduler(
            ctx,
            self.compositor,
            self.scrollback,
            on_flushed=self.compositor.schedule_redraw,
        )
        self.compositor.render_in_progress = lambda: self.flush.pending
        self.resize = ResizeDebouncer(
            ctx, self.compositor, read_size, on_geometry=self._apply_child_size
        )

        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def child_size(self) -> tuple[int, int]:
        """Columns and rows the wrapped process should render into."""
        geometry = self.compositor.geometry
        if geometry is None:
            return DEFAULT_SIZE
        return geometry.columns, geometry.content_rows

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        ctx = self.ctx
        logger.debug(
            "Session start: terminal=%s features=%s",
            ctx.capabilities.family,
            ctx.features,
        )
        if not ctx.capabilities.supported:
            logger.warning(
                "TERM is not a known VT100-family terminal, escape handling may misrender"
            )

        try:
            if ctx.features.dark_mode:
                ctx.write(dark_mode_hint(ctx.capabilities).sequences)

            try:
                columns, rows = self._read_size()
            except GeometryUnavailable:
                logger.info("No terminal geometry, overlay and scroll region disabled")
                self.compositor.disable()
            else:
                geometry = self.compositor.set_geometry(columns, rows)
                self.compositor.set_region()
                self._apply_child_size(geometry)
                self.compositor.draw_overlay()
                self.compositor.start_keepalive()
        except StreamUnwritable:
            logger.debug("Output closed during session start")

        self.scrollback.start()

    def close(self, exit_code: int | None = None) -> None:
        """Tear the session down; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.resize.cancel()
        self.scrollback.stop()
        self.compositor.cancel_timers()
        self.flush.flush_now()
        self.compositor.teardown()

        geometry = self.compositor.geometry
        columns = geometry.columns if geometry is not None else DEFAULT_SIZE[0]
        try:
            self.ctx.write(exit_banner(columns, self.name, exit_code))
        except StreamUnwritable:
            logger.debug("Output closed before exit banner")
        logger.debug("Session closed (exit code %s)", exit_code)

    # -- event handlers -----------------------------------------------------

    def feed_output(self, data: str) -> None:
        if not self._closed:
            self.flush.feed(data)

    def handle_input(self, data: str) -> None:
        """Forward keyboard input, consuming the reserved hotkey."""
        if self._closed:
            return
        for sequence in HOTKEY_SEQUENCES:
            hits = data.count(sequence)
            if not hits:
                continue
            data = data.replace(sequence, "")
            for _ in range(hits):
                if self._on_hotkey is not None:
                    self._on_hotkey()
        if not data:
            return
        self.ctx.mark_typing()
        self._forward_input(data)

    def notify_resize(self) -> None:
        if not self._closed:
            self.resize.notify()

    def redraw_overlay(self) -> None:
        """Redraw now, or after the pending flush if output is mid-render."""
        if self.flush.pending:
            self.compositor.schedule_redraw()
        else:
            self.compositor.draw_overlay()

    # -- internals ----------------------------------------------------------

    def _request_scrollback_clear(self) -> None:
        self.flush.request_scrollback_clear()

    def _apply_child_size(self, geometry: Geometry) -> None:
        if self._resize_child is not None:
            self._resize_child(geometry)
