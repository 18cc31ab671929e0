"""Exception types raised at the compositor's I/O boundaries."""

from __future__ import annotations


class ScreenfixError(Exception):
    """Base class for screenfix errors."""


class GeometryUnavailable(ScreenfixError):
    """The host output is not an interactive terminal with a known size."""


class StreamUnwritable(ScreenfixError):
    """The host output stream was closed or failed while writing."""
