"""Session-scoped state shared by every compositor component."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from screenfix.config import CompositorSettings, FeatureSnapshot
from screenfix.detect import TerminalCapabilities, detect_capabilities
from screenfix.errors import StreamUnwritable
from screenfix.scheduler import Scheduler

logger = logging.getLogger(__name__)


class Output(Protocol):
    """Anything the composed stream can be written to."""

    def write(self, data: str) -> None: ...


@dataclass
class SessionContext:
    """Owned by the caller and passed by reference to each component.

    Holds the single writer to the real terminal, so content flushes and
    overlay draws are serialized through one place.
    """

    scheduler: Scheduler
    output: Output
    features: FeatureSnapshot = field(default_factory=FeatureSnapshot)
    capabilities: TerminalCapabilities = field(
        default_factory=lambda: detect_capabilities({}, "linux")
    )
    settings: CompositorSettings = field(default_factory=CompositorSettings)
    last_typing_at: float | None = None
    output_closed: bool = False

    def write(self, data: str) -> None:
        """Write to the real terminal.

        Raises :class:`StreamUnwritable` the first time the stream fails;
        later writes are dropped silently.
        """
        if self.output_closed or not data:
            return
        try:
            self.output.write(data)
        except OSError as exc:
            self.output_closed = True
            logger.debug("Output stream closed: %s", exc)
            raise StreamUnwritable(str(exc)) from exc

    def mark_typing(self) -> None:
        self.last_typing_at = self.scheduler.now()

    def is_typing(self) -> bool:
        if self.last_typing_at is None:
            return False
        elapsed = self.scheduler.now() - self.last_typing_at
        return elapsed < self.settings.typing_cooldown

    @property
    def platform_clears(self) -> bool:
        """Whether scrollback/ghost-frame clears are injected on this platform."""
        return not self.capabilities.is_macos
