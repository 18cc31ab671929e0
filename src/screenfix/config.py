"""Feature snapshot, timing settings and logging setup.

Configuration files and the interactive setup wizard live outside this
package; a session only sees the small snapshot built here from the
environment and the detected terminal capabilities.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from screenfix.detect import TerminalCapabilities

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DEFAULT_CLEAR_MARKERS = ("Conversation cleared", "Chat cleared")


@dataclass(frozen=True)
class FeatureSnapshot:
    """Per-session feature switches."""

    color_stripping_enabled: bool = True
    overlay_enabled: bool = True
    overlay_reserved_rows: int = 1
    remote_session: bool = False
    remote_overlay: bool = False
    dark_mode: bool = False
    scrollback_clear: bool = True

    @property
    def overlay_active(self) -> bool:
        """Overlay and scroll region are off over remote transports unless forced."""
        return self.overlay_enabled and (not self.remote_session or self.remote_overlay)

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        capabilities: TerminalCapabilities | None = None,
    ) -> FeatureSnapshot:
        env = os.environ if env is None else env

        rows_value = env.get("SCREENFIX_FOOTER_ROWS", "1")
        try:
            reserved_rows = max(1, int(rows_value))
        except ValueError:
            logger.warning("Ignoring invalid SCREENFIX_FOOTER_ROWS=%r", rows_value)
            reserved_rows = 1

        strip = env.get("SCREENFIX_STRIP_COLORS") != "0"
        remote = False
        macos = False
        if capabilities is not None:
            strip = strip and capabilities.has_known_rendering_bugs
            remote = capabilities.is_remote_session
            macos = capabilities.is_macos

        return cls(
            color_stripping_enabled=strip,
            overlay_enabled=env.get("SCREENFIX_NO_FOOTER") != "1",
            overlay_reserved_rows=reserved_rows,
            remote_session=remote,
            remote_overlay=env.get("SCREENFIX_REMOTE_FOOTER") == "1",
            dark_mode=env.get("SCREENFIX_DARK_MODE") == "1",
            scrollback_clear=(
                env.get("SCREENFIX_NO_SCROLLBACK_CLEAR") != "1" and not macos
            ),
        )


@dataclass(frozen=True)
class CompositorSettings:
    """Timing constants, in seconds unless noted."""

    flush_delay: float = 0.016
    coalesce_delay: float = 0.080
    full_repaint_window: float = 0.200
    overlay_settle_delay: float = 0.032
    overlay_keepalive: float = 2.0
    resize_delay: float = 0.050
    remote_redraw_delay: float = 0.050
    typing_cooldown: float = 0.5
    scrollback_clear_interval: float = 60.0
    clear_after_renders: int = 500  # frames
    clear_markers: tuple[str, ...] = DEFAULT_CLEAR_MARKERS


def configure_logging(env: Mapping[str, str] | None = None) -> None:
    """Route ``screenfix`` log records to a debug file when enabled.

    The terminal belongs to the wrapped process, so records are never sent
    to stdout or stderr.
    """
    env = os.environ if env is None else env
    package_logger = logging.getLogger("screenfix")
    if env.get("SCREENFIX_DEBUG") != "1":
        return

    log_path = Path(
        env.get("SCREENFIX_DEBUG_LOG")
        or Path.home() / ".screenfix" / "debug.log"
    )
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
