"""Output buffering and debounced flushing.

Wrapped TUIs paint a frame as a burst of small writes.  Writing each one
through immediately shows half-drawn frames, so output accumulates in an
:class:`OutputFrame` until it has been idle for ``flush_delay`` and is then
processed and written in one piece::

    IDLE --first byte--> ACCUMULATING --idle timer--> FLUSHING --> IDLE

Every new chunk restarts the idle timer.  Shortly after a full repaint the
longer ``coalesce_delay`` applies, so several repaint passes in one update
tick collapse into one write.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from screenfix.compositor import (
    CLEAR_SCREEN,
    CLEAR_SCROLLBACK,
    CURSOR_HOME,
    RESTORE_CURSOR,
    SAVE_CURSOR,
    Compositor,
)
from screenfix.context import SessionContext
from screenfix.csi import Token, map_csi, split_pending, tokenize
from screenfix.errors import StreamUnwritable
from screenfix.scheduler import Timer
from screenfix.scrollback import ScrollbackMaintainer
from screenfix.sgr import sanitize_stream

logger = logging.getLogger(__name__)

STARTUP_CLEAR = CLEAR_SCREEN + CLEAR_SCROLLBACK + CURSOR_HOME


class FlushState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


@dataclass
class OutputFrame:
    raw: str = ""
    first_byte_at: float | None = None

    @property
    def pending(self) -> bool:
        return bool(self.raw)

    def append(self, data: str, now: float) -> None:
        if not self.raw:
            self.first_byte_at = now
        self.raw += data


def _is_erase_display(token: Token) -> bool:
    return (
        token.final == "J"
        and token.params == "2"
        and not token.intermediates
    )


def has_full_repaint(data: str) -> bool:
    """True if *data* erases the display or homes the cursor."""
    tokens, _ = tokenize(data)
    for token in tokens:
        if token.kind != "csi" or token.intermediates or token.private:
            continue
        if token.final == "J" and token.params in ("2", "3"):
            return True
        if token.final == "H" and token.params in ("", "1", "1;1"):
            return True
    return False


def looks_like_echo(chunk: str) -> bool:
    """Heuristic for the terminal echoing a single keystroke."""
    if len(chunk) == 1 and " " <= chunk <= "~":
        return True
    if len(chunk) <= 4 and ("\b" in chunk or "\x7f" in chunk):
        return True
    if (
        len(chunk) <= 6
        and chunk.startswith("\x1b[")
        and "J" not in chunk
        and "H" not in chunk
    ):
        return True
    return chunk in ("\n", "\r", "\r\n")


class FlushScheduler:
    """Accumulates wrapped-process output and writes it once it settles."""

    def __init__(
        self,
        ctx: SessionContext,
        compositor: Compositor | None = None,
        scrollback: ScrollbackMaintainer | None = None,
        on_flushed: Callable[[], None] | None = None,
    ) -> None:
        self._ctx = ctx
        self._compositor = compositor
        self._scrollback = scrollback
        self.on_flushed = on_flushed

        self.frame = OutputFrame()
        self.state = FlushState.IDLE
        self.flush_count = 0
        self._timer: Timer | None = None
        self._last_full_repaint_at: float | None = None
        self._first_flush_done = False
        self._clear_requested = False
        self._closed = False

    @property
    def pending(self) -> bool:
        return self.frame.pending

    @property
    def closed(self) -> bool:
        return self._closed

    # -- input --------------------------------------------------------------

    def feed(self, data: str) -> None:
        """Queue a chunk of wrapped-process output."""
        if self._closed or self._ctx.output_closed or not data:
            return
        now = self._ctx.scheduler.now()

        # Keystroke echoes skip the idle wait, but never overtake buffered output.
        if not self.frame.pending and self._ctx.is_typing() and looks_like_echo(data):
            self.frame.append(data, now)
            self._flush(final=True)
            return

        self.frame.append(data, now)
        self.state = FlushState.ACCUMULATING
        self._arm()

    def current_delay(self) -> float:
        settings = self._ctx.settings
        last = self._last_full_repaint_at
        if last is not None and self._ctx.scheduler.now() - last < settings.full_repaint_window:
            return settings.coalesce_delay
        return settings.flush_delay

    def _arm(self) -> None:
        scheduler = self._ctx.scheduler
        scheduler.cancel(self._timer)
        self._timer = scheduler.schedule_after(self.current_delay(), self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._flush()

    def request_scrollback_clear(self) -> None:
        """Clear scrollback through the single writer.

        With output buffered the clear rides along with the next flush;
        otherwise it is written immediately around a cursor save/restore.
        """
        if self._closed:
            return
        if self.frame.pending:
            self._clear_requested = True
            return
        try:
            self._ctx.write(SAVE_CURSOR + CLEAR_SCROLLBACK + RESTORE_CURSOR)
        except StreamUnwritable:
            self._drop()

    # -- flushing -----------------------------------------------------------

    def render(self, text: str, full_repaint: bool) -> str:
        """Apply sanitizing, region rewriting and clear injection to a frame."""
        out = text
        if self._ctx.features.color_stripping_enabled:
            out = sanitize_stream(out)
        if self._compositor is not None:
            out = self._compositor.rewrite(out)

        already_cleared = False
        if self._ctx.platform_clears:
            augmented = map_csi(
                out,
                lambda t: t.raw + CLEAR_SCROLLBACK if _is_erase_display(t) else None,
            )
            already_cleared = augmented != out
            out = augmented

        wants_clear = self._clear_requested
        self._clear_requested = False
        if self._scrollback is not None and self._scrollback.on_frame(text, full_repaint):
            wants_clear = True

        prefix = ""
        if not self._first_flush_done and self._ctx.platform_clears:
            # The wrapped program's multi-pass startup render otherwise
            # leaves stacked ghost copies of its first frame.
            prefix = STARTUP_CLEAR
        elif wants_clear and not already_cleared:
            prefix = CLEAR_SCROLLBACK
        self._first_flush_done = True
        return prefix + out

    def _flush(self, final: bool = False, notify: bool = True) -> None:
        scheduler = self._ctx.scheduler
        scheduler.cancel(self._timer)
        self._timer = None
        if not self.frame.pending:
            self.state = FlushState.IDLE
            return

        self.state = FlushState.FLUSHING
        text = self.frame.raw
        complete, carry = (text, "") if final else split_pending(text)
        if not complete:
            # Only an unterminated sequence is left after a full idle window.
            complete, carry = text, ""

        now = scheduler.now()
        self.frame = OutputFrame()
        if carry:
            self.frame.append(carry, now)

        full_repaint = has_full_repaint(complete)
        output = self.render(complete, full_repaint)
        try:
            self._ctx.write(output)
        except StreamUnwritable:
            logger.debug("Output unwritable, dropping %d buffered chars", len(text))
            self._drop()
            return

        self.flush_count += 1
        if full_repaint:
            self._last_full_repaint_at = now
        logger.debug("Flushed %d chars (full repaint: %s)", len(output), full_repaint)

        if carry:
            self.state = FlushState.ACCUMULATING
            self._arm()
        else:
            self.state = FlushState.IDLE

        if notify and self.on_flushed is not None:
            self.on_flushed()

    def flush_now(self) -> None:
        """Write everything still buffered and stop accepting output."""
        if self._closed:
            return
        self._flush(final=True, notify=False)
        self._closed = True

    def _drop(self) -> None:
        self._ctx.scheduler.cancel(self._timer)
        self._timer = None
        self.frame = OutputFrame()
        self.state = FlushState.IDLE
        self._closed = True
