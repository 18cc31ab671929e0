"""Typing-aware scrollback maintenance.

Long-running inline TUIs pile up thousands of stale lines in the terminal's
scrollback, and every repaint gets slower.  Clears are requested from three
triggers: a full-repaint counter, a periodic timer, and user-visible
"cleared" markers in the output.  None of them fires while the user is
typing; all of them are written through the flush scheduler.
"""

from __future__ import annotations

import logging
from typing import Callable

from screenfix.context import SessionContext
from screenfix.scheduler import Timer

logger = logging.getLogger(__name__)


class ScrollbackMaintainer:
    def __init__(
        self,
        ctx: SessionContext,
        request_clear: Callable[[], None],
    ) -> None:
        self._ctx = ctx
        self._request_clear = request_clear
        self.render_count = 0
        self._interval_timer: Timer | None = None
        self._deferred_timer: Timer | None = None

    @property
    def enabled(self) -> bool:
        return self._ctx.features.scrollback_clear and self._ctx.platform_clears

    # -- render-count and marker triggers ----------------------------------

    def on_frame(self, text: str, full_repaint: bool) -> bool:
        """Return True if this flushed frame should carry a scrollback clear."""
        if not self.enabled:
            return False
        settings = self._ctx.settings
        if any(marker in text for marker in settings.clear_markers):
            logger.debug("Clear marker seen, clearing scrollback")
            self.render_count = 0
            return True

        if not full_repaint:
            return False
        self.render_count += 1
        threshold = settings.clear_after_renders
        if threshold <= 0 or self.render_count < threshold:
            return False
        if self._ctx.is_typing():
            logger.debug("Skipping render-count clear, typing active")
            return False
        logger.debug("Clearing scrollback after %d renders", self.render_count)
        self.render_count = 0
        return True

    # -- periodic trigger ---------------------------------------------------

    def start(self) -> None:
        interval = self._ctx.settings.scrollback_clear_interval
        if not self.enabled or interval <= 0:
            return
        self._interval_timer = self._ctx.scheduler.schedule_after(
            interval, self._on_interval
        )

    def _on_interval(self) -> None:
        self._interval_timer = None
        self.clear_when_idle()
        self.start()

    def clear_when_idle(self) -> None:
        """Clear now, or once the current typing burst has cooled down."""
        if self._ctx.is_typing():
            if self._deferred_timer is None:
                logger.debug("Deferring scrollback clear, typing active")
                self._deferred_timer = self._ctx.scheduler.schedule_after(
                    self._ctx.settings.typing_cooldown, self._on_deferred
                )
            return
        self._request_clear()

    def _on_deferred(self) -> None:
        self._deferred_timer = None
        self.clear_when_idle()

    def stop(self) -> None:
        self._ctx.scheduler.cancel(self._interval_timer)
        self._ctx.scheduler.cancel(self._deferred_timer)
        self._interval_timer = None
        self._deferred_timer = None
