"""Terminal capability detection from environment signals.

Everything here is a pure function of an environment snapshot and a
platform string, so the answers cannot change in the middle of a session.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Mapping

SUPPORTED_TERMINALS = (
    "xterm",
    "xterm-256color",
    "xterm-color",
    "screen",
    "screen-256color",
    "tmux",
    "tmux-256color",
    "linux",
    "vt100",
    "vt220",
    "rxvt",
    "rxvt-unicode",
    "rxvt-unicode-256color",
    "gnome",
    "gnome-256color",
    "konsole",
    "konsole-256color",
)

_REMOTE_VARS = ("SSH_CLIENT", "SSH_TTY", "SSH_CONNECTION")

_MAC_PROGRAMS = {
    "Apple_Terminal": "apple-terminal",
    "iTerm.app": "iterm2",
    "WezTerm": "wezterm",
    "Alacritty": "alacritty",
    "kitty": "kitty",
}

_VTE_FAMILIES = frozenset({"ptyxis", "gtk4-vte", "gnome-terminal"})

_DARK_BACKGROUND = "\x1b]11;#1a1a1a\x07"
_LIGHT_FOREGROUND = "\x1b]10;#e0e0e0\x07"
_LIGHT_CURSOR = "\x1b]12;#e0e0e0\x07"


@dataclass(frozen=True)
class TerminalCapabilities:
    family: str
    has_known_rendering_bugs: bool
    is_remote_session: bool
    supported: bool
    platform: str

    @property
    def is_macos(self) -> bool:
        return self.platform == "darwin"


@dataclass(frozen=True)
class DarkModeHint:
    env: dict[str, str] = field(default_factory=dict)
    sequences: str = ""


def is_remote_session(env: Mapping[str, str]) -> bool:
    return any(env.get(name) for name in _REMOTE_VARS)


def is_supported_terminal(term: str) -> bool:
    return any(term == t or term.startswith(t + "-") for t in SUPPORTED_TERMINALS)


def terminal_family(env: Mapping[str, str], platform: str) -> str:
    term = env.get("TERM", "")
    term_program = env.get("TERM_PROGRAM", "")
    vte_version = env.get("VTE_VERSION", "")

    if platform == "darwin":
        if term_program in _MAC_PROGRAMS:
            return _MAC_PROGRAMS[term_program]
        if "xterm" in term or "256color" in term:
            return "mac-xterm"
        return "mac-unknown"

    if "ptyxis" in term_program.lower() or "Ptyxis" in env.get(
        "GNOME_TERMINAL_SERVICE", ""
    ):
        return "ptyxis"

    # XFCE Terminal is VTE-based but well behaved; check before the VTE rules.
    if (
        term_program in ("xfce4-terminal", "Xfce Terminal")
        or env.get("XFCE_TERMINAL_VERSION")
        or env.get("WINDOWPATH")
        or "xfce" in env.get("XDG_CURRENT_DESKTOP", "").lower()
    ):
        return "xfce-terminal"

    if env.get("GDK_BACKEND") == "wayland" and vte_version:
        return "gtk4-vte"

    # VTE_VERSION is MAJOR * 100 + MINOR; 0.70 and later is GTK4.
    if vte_version.isdigit() and int(vte_version) >= 7000:
        return "gtk4-vte"

    if term_program == "GNOME Terminal" or vte_version:
        return "gnome-terminal"

    if "xterm" in term or "256color" in term:
        return "xterm"

    return "unknown"


def detect_capabilities(
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> TerminalCapabilities:
    """Classify the hosting terminal from an environment snapshot."""
    env = os.environ if env is None else env
    platform = sys.platform if platform is None else platform

    family = terminal_family(env, platform)
    return TerminalCapabilities(
        family=family,
        # Terminal.app renders every attribute correctly; everything else
        # is assumed to share the VTE background/inverse glitch.
        has_known_rendering_bugs=family != "apple-terminal",
        is_remote_session=is_remote_session(env),
        supported=is_supported_terminal(env.get("TERM", "")),
        platform=platform,
    )


def dark_mode_hint(caps: TerminalCapabilities) -> DarkModeHint:
    """Return the environment and OSC colour hints that select a dark theme.

    On macOS only ``COLORFGBG`` is set: changing the palette there makes
    the wrapped program re-detect its theme and repaint in a loop.
    """
    env = {"COLORFGBG": "15;0"}
    if caps.is_macos:
        return DarkModeHint(env=env)
    sequences = _DARK_BACKGROUND + _LIGHT_FOREGROUND
    if caps.family in _VTE_FAMILIES:
        sequences += _LIGHT_CURSOR
    return DarkModeHint(env=env, sequences=sequences)
