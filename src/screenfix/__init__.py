"""screenfix: terminal output compositor for wrapped interactive programs."""

import logging

from screenfix.compositor import Compositor, Geometry, OverlayState
from screenfix.config import CompositorSettings, FeatureSnapshot, configure_logging
from screenfix.context import SessionContext
from screenfix.csi import Token, tokenize
from screenfix.detect import TerminalCapabilities, dark_mode_hint, detect_capabilities
from screenfix.errors import GeometryUnavailable, ScreenfixError, StreamUnwritable
from screenfix.flush import FlushScheduler, FlushState, OutputFrame
from screenfix.resize import ResizeDebouncer, ResizeDebounceState
from screenfix.scheduler import LoopScheduler, Scheduler
from screenfix.scrollback import ScrollbackMaintainer
from screenfix.session import Session
from screenfix.sgr import sanitize_sgr, sanitize_stream

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Compositor",
    "CompositorSettings",
    "FeatureSnapshot",
    "FlushScheduler",
    "FlushState",
    "Geometry",
    "GeometryUnavailable",
    "LoopScheduler",
    "OutputFrame",
    "OverlayState",
    "ResizeDebounceState",
    "ResizeDebouncer",
    "Scheduler",
    "ScreenfixError",
    "ScrollbackMaintainer",
    "Session",
    "SessionContext",
    "StreamUnwritable",
    "TerminalCapabilities",
    "Token",
    "configure_logging",
    "dark_mode_hint",
    "detect_capabilities",
    "sanitize_sgr",
    "sanitize_stream",
    "tokenize",
]
