"""Resize debouncing.

Dragging a window edge (or a tmux/screen re-attach) produces a burst of
SIGWINCH notifications.  Each one restarts a short timer; only when the
burst goes quiet is the geometry recomputed, the scroll region reapplied
and the overlay redrawn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from screenfix.compositor import Compositor, Geometry
from screenfix.context import SessionContext
from screenfix.errors import GeometryUnavailable, StreamUnwritable
from screenfix.scheduler import Timer

logger = logging.getLogger(__name__)


@dataclass
class ResizeDebounceState:
    pending: Timer | None = None
    last_fired_at: float | None = None


class ResizeDebouncer:
    def __init__(
        self,
        ctx: SessionContext,
        compositor: Compositor,
        read_size: Callable[[], tuple[int, int]],
        on_geometry: Callable[[Geometry], None] | None = None,
    ) -> None:
        self._ctx = ctx
        self._compositor = compositor
        self._read_size = read_size
        self._on_geometry = on_geometry
        self.state = ResizeDebounceState()
        self.fire_count = 0

    def notify(self) -> None:
        """Record one resize notification."""
        scheduler = self._ctx.scheduler
        scheduler.cancel(self.state.pending)
        self.state.pending = scheduler.schedule_after(
            self._ctx.settings.resize_delay, self._fire
        )

    def _fire(self) -> None:
        self.state.pending = None
        self.state.last_fired_at = self._ctx.scheduler.now()
        self.fire_count += 1

        try:
            columns, rows = self._read_size()
        except GeometryUnavailable:
            logger.debug("Terminal size unavailable after resize")
            self._compositor.disable()
            return

        geometry = self._compositor.set_geometry(columns, rows)
        logger.debug("Resize settled at %dx%d", columns, rows)
        try:
            self._compositor.set_region()
        except StreamUnwritable:
            logger.debug("Output closed, scroll region not reapplied")
            return
        if self._on_geometry is not None:
            self._on_geometry(geometry)

        if self._ctx.features.remote_session:
            # Give the remote terminal's state a moment to settle.
            self._compositor.schedule_redraw(self._ctx.settings.remote_redraw_delay)
        else:
            self._compositor.draw_overlay()

    def cancel(self) -> None:
        self._ctx.scheduler.cancel(self.state.pending)
        self.state.pending = None
