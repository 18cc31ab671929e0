from __future__ import annotations

from typing import Callable

import pytest

from screenfix.config import CompositorSettings, FeatureSnapshot
from screenfix.context import SessionContext
from screenfix.detect import detect_capabilities

from .virtual_clock import VirtualClock
from .virtual_terminal import VirtualTerminal

MakeContext = Callable[..., SessionContext]


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def terminal() -> VirtualTerminal:
    return VirtualTerminal(rows=24, columns=80)


@pytest.fixture
def make_ctx(clock: VirtualClock, terminal: VirtualTerminal) -> MakeContext:
    """Build a SessionContext over the virtual clock and terminal."""

    def _make(
        *,
        platform: str = "linux",
        settings: CompositorSettings | None = None,
        **features: object,
    ) -> SessionContext:
        return SessionContext(
            scheduler=clock,
            output=terminal,
            features=FeatureSnapshot(**features),  # type: ignore[arg-type]
            capabilities=detect_capabilities({"TERM": "xterm-256color"}, platform),
            settings=settings or CompositorSettings(),
        )

    return _make
