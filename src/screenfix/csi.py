"""Tokenizer for terminal output streams.

Splits output into plain-text runs and escape sequences following the
ECMA-48 grammar: CSI sequences (``ESC [`` parameters, intermediates, final
byte), string sequences (OSC, DCS, APC, PM, SOS) terminated by BEL or ST,
and short ``ESC <intermediates> <final>`` sequences.  Malformed sequences
are emitted as text so that nothing is ever lost or reordered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

ESC = "\x1b"
BEL = "\x07"
ST = "\x1b\\"

# Incomplete sequences longer than this are treated as text instead of
# being held back waiting for a terminator that is never coming.
MAX_PENDING_SEQUENCE = 512

TokenKind = Literal["text", "csi", "escape"]

_STRING_INTRODUCERS = "]P_^X"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    raw: str
    params: str = ""
    intermediates: str = ""
    final: str = ""

    @property
    def private(self) -> bool:
        """True for private-mode CSI sequences (``ESC [ ? ...`` and friends)."""
        return bool(self.params) and self.params[0] in "<=>?"

    @property
    def is_sgr(self) -> bool:
        return (
            self.kind == "csi"
            and self.final == "m"
            and not self.intermediates
            and not self.private
        )


def csi(params: str, final: str) -> str:
    """Build a ``CSI <params> <final>`` sequence."""
    return f"{ESC}[{params}{final}"


def _scan_csi(data: str, start: int) -> tuple[int, Token] | None:
    n = len(data)
    i = start + 2
    while i < n and "\x30" <= data[i] <= "\x3f":
        i += 1
    params_end = i
    while i < n and "\x20" <= data[i] <= "\x2f":
        i += 1
    if i >= n:
        return None
    final = data[i]
    if not ("\x40" <= final <= "\x7e"):
        # A control character interrupted the sequence.
        return i, Token("text", data[start:i])
    return i + 1, Token(
        "csi",
        data[start : i + 1],
        params=data[start + 2 : params_end],
        intermediates=data[params_end:i],
        final=final,
    )


def _scan_string(data: str, start: int) -> tuple[int, Token] | None:
    """Scan an OSC/DCS/APC/PM/SOS string up to its BEL or ST terminator.

    Any ESC other than the one starting ST aborts the string, and the
    introducer is emitted as text so scanning resumes at that ESC.
    """
    n = len(data)
    esc = data.find(ESC, start + 2)
    if data[start + 1] == "]":
        bel = data.find(BEL, start + 2, n if esc == -1 else esc)
        if bel != -1:
            return bel + 1, Token("escape", data[start : bel + 1])
    if esc == -1 or esc + 1 >= n:
        return None
    if data[esc + 1] == "\\":
        return esc + 2, Token("escape", data[start : esc + 2])
    return start + 1, Token("text", ESC)


def _scan_escape(data: str, start: int) -> tuple[int, Token] | None:
    """Scan one escape sequence at *start*.

    Returns ``(end, token)`` or ``None`` when the data ends mid-sequence.
    """
    n = len(data)
    if start + 1 >= n:
        return None
    introducer = data[start + 1]
    if introducer == "[":
        return _scan_csi(data, start)
    if introducer in _STRING_INTRODUCERS:
        return _scan_string(data, start)

    i = start + 1
    while i < n and "\x20" <= data[i] <= "\x2f":
        i += 1
    if i >= n:
        return None
    if "\x30" <= data[i] <= "\x7e":
        return i + 1, Token("escape", data[start : i + 1])
    return start + 1, Token("text", ESC)


def tokenize(data: str) -> tuple[list[Token], str]:
    """Split *data* into tokens.

    Returns ``(tokens, remainder)`` where *remainder* is a trailing escape
    sequence that is not yet complete and should be retried once more data
    arrives.  Concatenating every token's ``raw`` with the remainder always
    reproduces *data* exactly.
    """
    tokens: list[Token] = []
    text_start = 0
    pos = 0
    n = len(data)

    while pos < n:
        esc = data.find(ESC, pos)
        if esc == -1:
            break
        scanned = _scan_escape(data, esc)
        if scanned is None:
            if n - esc > MAX_PENDING_SEQUENCE:
                break
            if esc > text_start:
                tokens.append(Token("text", data[text_start:esc]))
            return tokens, data[esc:]
        end, token = scanned
        if token.kind == "text":
            # Malformed: fold into the surrounding text run.
            pos = end
            continue
        if esc > text_start:
            tokens.append(Token("text", data[text_start:esc]))
        tokens.append(token)
        pos = text_start = end

    if text_start < n:
        tokens.append(Token("text", data[text_start:]))
    return tokens, ""


def split_pending(data: str) -> tuple[str, str]:
    """Split *data* into its complete prefix and an incomplete trailing sequence."""
    _, remainder = tokenize(data)
    if not remainder:
        return data, ""
    return data[: len(data) - len(remainder)], remainder


def map_csi(data: str, fn: Callable[[Token], str | None]) -> str:
    """Rewrite every CSI token in *data* through *fn*.

    *fn* returns the replacement text, or ``None`` to keep the token as-is.
    Text, non-CSI escapes and any incomplete remainder pass through untouched.
    """
    tokens, remainder = tokenize(data)
    parts: list[str] = []
    for token in tokens:
        if token.kind == "csi":
            replacement = fn(token)
            parts.append(token.raw if replacement is None else replacement)
        else:
            parts.append(token.raw)
    parts.append(remainder)
    return "".join(parts)


def find_csi(data: str, predicate: Callable[[Token], bool]) -> bool:
    """Return True if any complete CSI token in *data* satisfies *predicate*."""
    tokens, _ = tokenize(data)
    return any(t.kind == "csi" and predicate(t) for t in tokens)


def strip_escapes(data: str) -> str:
    """Return only the printable text of *data*."""
    tokens, _ = tokenize(data)
    return "".join(t.raw for t in tokens if t.kind == "text")
