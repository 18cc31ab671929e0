"""Scroll-region partitioning and the bottom-of-screen overlay.

The screen is split into a content region (rows ``1..content_rows``) that
the wrapped process scrolls inside, and footer rows below it that hold the
overlay.  The wrapped process does not know about the reservation, so any
scroll-region reset it emits is rewritten to the constrained region.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence, Union

import grapheme
import wcwidth

from screenfix.context import SessionContext
from screenfix.csi import Token, csi, map_csi, strip_escapes
from screenfix.errors import StreamUnwritable
from screenfix.scheduler import Timer

logger = logging.getLogger(__name__)

SAVE_CURSOR = "\x1b7"
RESTORE_CURSOR = "\x1b8"
RESET_REGION = "\x1b[r"
CLEAR_SCREEN = "\x1b[2J"
CLEAR_SCROLLBACK = "\x1b[3J"
CURSOR_HOME = "\x1b[H"
SGR_RESET = "\x1b[0m"

OverlayText = Union[str, Sequence[str]]


@dataclass(frozen=True)
class Geometry:
    columns: int
    rows: int
    footer_rows: int = 0

    @property
    def content_rows(self) -> int:
        return max(1, self.rows - self.footer_rows)

    @classmethod
    def compute(cls, columns: int, rows: int, reserved_rows: int) -> Geometry:
        """Build a geometry whose content and footer rows fit in *rows*."""
        rows = max(1, rows)
        footer = max(0, min(reserved_rows, rows - 1))
        return cls(columns=max(1, columns), rows=rows, footer_rows=footer)


@dataclass
class OverlayState:
    visible: bool = False
    last_draw_at: float | None = None
    cached_lines: tuple[str, ...] = field(default_factory=tuple)


def display_width(text: str) -> int:
    """Terminal cell width of the printable part of *text*."""
    plain = strip_escapes(text)
    width = wcwidth.wcswidth(plain)
    return width if width >= 0 else len(plain)


def truncate_to_width(text: str, columns: int) -> str:
    """Cut the printable part of *text* to at most *columns* cells."""
    plain = strip_escapes(text)
    out: list[str] = []
    used = 0
    for cluster in grapheme.graphemes(plain):
        width = max(0, wcwidth.wcswidth(cluster))
        if used + width > columns:
            break
        out.append(cluster)
        used += width
    return "".join(out)


def center_line(text: str, columns: int) -> str:
    """Pad *text* with spaces on both sides so it covers exactly *columns* cells.

    Overwriting the whole row avoids an erase-line sequence and the flash
    that comes with it.
    """
    width = display_width(text)
    if width > columns:
        text = truncate_to_width(text, columns)
        width = display_width(text)
    elif text != strip_escapes(text):
        text += SGR_RESET
    left = (columns - width) // 2
    right = columns - left - width
    return " " * left + text + " " * right


class Compositor:
    """Owns the session geometry, the scroll region and the overlay rows."""

    def __init__(
        self,
        ctx: SessionContext,
        overlay_text: Callable[[], OverlayText] | None = None,
    ) -> None:
        self._ctx = ctx
        self._overlay_text = overlay_text
        self._enabled = ctx.features.overlay_active
        self.geometry: Geometry | None = None
        self.overlay = OverlayState()
        self._redraw_timer: Timer | None = None
        self._keepalive_timer: Timer | None = None
        self._region_applied = False
        self._torn_down = False

        # Set by the session; True while wrapped output is waiting to flush.
        self.render_in_progress: Callable[[], bool] = lambda: False

    # -- geometry -----------------------------------------------------------

    @property
    def active(self) -> bool:
        return (
            self._enabled
            and not self._torn_down
            and self.geometry is not None
            and self.geometry.footer_rows > 0
        )

    def disable(self) -> None:
        """Turn off region partitioning and the overlay for this session."""
        self._enabled = False
        self.overlay.visible = False

    def set_geometry(self, columns: int, rows: int) -> Geometry:
        reserved = self._ctx.features.overlay_reserved_rows if self._enabled else 0
        self.geometry = Geometry.compute(columns, rows, reserved)
        logger.debug("Geometry %s", self.geometry)
        return self.geometry

    # -- scroll region ------------------------------------------------------

    def set_region(self) -> bool:
        """Constrain scrolling to the content rows without moving the cursor."""
        if not self.active:
            return False
        assert self.geometry is not None
        self._ctx.write(
            SAVE_CURSOR
            + csi(f"1;{self.geometry.content_rows}", "r")
            + RESTORE_CURSOR
        )
        self._region_applied = True
        return True

    def _rewrite_region(self, token: Token) -> str | None:
        if token.final != "r" or token.intermediates or token.private:
            return None
        assert self.geometry is not None
        fields = token.params.split(";") if token.params else []
        if len(fields) > 2 or not all(f == "" or f.isdigit() for f in fields):
            return None
        top = int(fields[0]) if fields and fields[0] else 1
        bottom = int(fields[1]) if len(fields) > 1 and fields[1] else 0
        if bottom == 0:
            bottom = self.geometry.rows
        content = self.geometry.content_rows
        if bottom <= content:
            return None
        return csi(f"{min(max(top, 1), content)};{content}", "r")

    def rewrite(self, data: str) -> str:
        """Replace scroll-region resets in wrapped output with the constrained region."""
        if not self.active:
            return data
        return map_csi(data, self._rewrite_region)

    # -- overlay ------------------------------------------------------------

    def _provide_lines(self) -> list[str] | None:
        if self._overlay_text is None:
            return list(self.overlay.cached_lines)
        try:
            text = self._overlay_text()
        except Exception:
            logger.exception("Overlay provider failed")
            return None
        return [text] if isinstance(text, str) else list(text)

    def draw_overlay(self, text: OverlayText | None = None) -> bool:
        """Paint the footer rows, restoring the cursor afterwards."""
        if not self.active:
            self.overlay.visible = False
            return False
        assert self.geometry is not None
        if text is None:
            lines = self._provide_lines()
            if lines is None:
                return False
        else:
            lines = [text] if isinstance(text, str) else list(text)

        footer = self.geometry.footer_rows
        lines = lines[-footer:]
        lines = [""] * (footer - len(lines)) + lines
        first_row = self.geometry.rows - footer + 1

        parts = [SAVE_CURSOR]
        for offset, line in enumerate(lines):
            parts.append(csi(f"{first_row + offset};1", "H"))
            parts.append(center_line(line, self.geometry.columns))
        parts.append(RESTORE_CURSOR)

        try:
            self._ctx.write("".join(parts))
        except StreamUnwritable:
            return False
        self.overlay = OverlayState(
            visible=True,
            last_draw_at=self._ctx.scheduler.now(),
            cached_lines=tuple(lines),
        )
        return True

    def schedule_redraw(self, delay: float | None = None) -> None:
        """Redraw once output has been quiet for *delay* seconds."""
        if not self.active:
            return
        if delay is None:
            delay = self._ctx.settings.overlay_settle_delay
        scheduler = self._ctx.scheduler
        scheduler.cancel(self._redraw_timer)
        self._redraw_timer = scheduler.schedule_after(delay, self._on_redraw)

    def _on_redraw(self) -> None:
        self._redraw_timer = None
        self.draw_overlay()

    def start_keepalive(self) -> None:
        if not self.active or self._ctx.settings.overlay_keepalive <= 0:
            return
        self._ctx.scheduler.cancel(self._keepalive_timer)
        self._keepalive_timer = self._ctx.scheduler.schedule_after(
            self._ctx.settings.overlay_keepalive, self._on_keepalive
        )

    def _on_keepalive(self) -> None:
        self._keepalive_timer = None
        # Mid-render the post-flush redraw will cover it.
        if not self.render_in_progress():
            self.draw_overlay()
        self.start_keepalive()

    def cancel_timers(self) -> None:
        self._ctx.scheduler.cancel(self._redraw_timer)
        self._ctx.scheduler.cancel(self._keepalive_timer)
        self._redraw_timer = None
        self._keepalive_timer = None

    # -- teardown -----------------------------------------------------------

    def teardown(self) -> None:
        """Give the whole screen back: full-height region, clean screen, home."""
        if self._torn_down:
            return
        self._torn_down = True
        self.cancel_timers()
        self.overlay.visible = False
        if not self._region_applied:
            return
        try:
            self._ctx.write(
                RESET_REGION + CLEAR_SCREEN + CLEAR_SCROLLBACK + CURSOR_HOME
            )
        except StreamUnwritable:
            logger.debug("Output closed before region reset")

