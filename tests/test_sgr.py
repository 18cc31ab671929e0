"""Tests for screenfix.sgr."""

from __future__ import annotations

import itertools

import pytest

from screenfix.sgr import sanitize_params, sanitize_sgr, sanitize_stream

FORBIDDEN = {2, 5, 6, 7, 8, 27, 28, 49} | set(range(40, 48)) | set(range(100, 108))


def _codes(token: str) -> list[int]:
    """Return the attribute codes in a sanitized token, skipping colour payloads."""
    if not token:
        return []
    fields = [f for f in token[2:-1].split(";") if f]
    codes: list[int] = []
    i = 0
    while i < len(fields):
        head = int(fields[i].split(":", 1)[0])
        codes.append(head)
        if head == 38 and ":" not in fields[i]:
            i += 2 + (1 if fields[i + 1] == "5" else 3)
            continue
        i += 1
    return codes


class TestSanitizeSgr:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("\x1b[1;38;5;196;48;5;236m", "\x1b[1;38;5;196m"),
            ("\x1b[0m", "\x1b[0m"),
            ("\x1b[7m", ""),
            ("\x1b[m", "\x1b[0m"),
            ("\x1b[;m", "\x1b[0m"),
            ("\x1b[31;;1m", "\x1b[31;0;1m"),
            ("\x1b[41;;1m", "\x1b[0;1m"),
            ("\x1b[1;m", "\x1b[1;0m"),
            ("\x1b[0;44m", "\x1b[0m"),
            ("\x1b[2;7;8;27;28m", ""),
            ("\x1b[31;41m", "\x1b[31m"),
            ("\x1b[92;101m", "\x1b[92m"),
            ("\x1b[38;2;10;20;30;41m", "\x1b[38;2;10;20;30m"),
            ("\x1b[48;2;1;2;3;1m", "\x1b[1m"),
            ("\x1b[58;5;9;4m", "\x1b[4m"),
            ("\x1b[3;23;9;29;22;24;39m", "\x1b[3;23;9;29;22;24;39m"),
            ("\x1b[53m", ""),
            ("\x1b[4:3m", "\x1b[4:3m"),
            ("\x1b[48:5:236m", ""),
        ],
    )
    def test_filters_attributes(self, token: str, expected: str) -> None:
        assert sanitize_sgr(token) == expected

    def test_truncated_foreground_group_passes_through(self) -> None:
        assert sanitize_sgr("\x1b[38;5m") == "\x1b[38;5m"
        assert sanitize_sgr("\x1b[1;38;2;1;2m") == "\x1b[1;38;2;1;2m"

    def test_truncated_background_group_is_dropped(self) -> None:
        assert sanitize_sgr("\x1b[1;48;5m") == "\x1b[1m"

    def test_private_marker_is_untouched(self) -> None:
        assert sanitize_sgr("\x1b[>4;2m") == "\x1b[>4;2m"

    def test_non_sgr_is_untouched(self) -> None:
        assert sanitize_sgr("\x1b[2J") == "\x1b[2J"

    def test_params_helper(self) -> None:
        assert sanitize_params("") == "0"
        assert sanitize_params("7") == ""
        assert sanitize_params("38;5") is None


class TestInvariants:
    CODES = ["0", "1", "2", "7", "8", "27", "31", "41", "49", "97", "105",
             "38;5;196", "48;5;236", "38;2;1;2;3", "48;2;4;5;6", "58;5;1"]

    def _tokens(self):
        for n in (1, 2, 3):
            for combo in itertools.permutations(self.CODES, n):
                yield "\x1b[" + ";".join(combo) + "m"

    def test_no_background_or_hidden_attributes_survive(self) -> None:
        for token in self._tokens():
            assert not FORBIDDEN & set(_codes(sanitize_sgr(token))), token

    def test_idempotent(self) -> None:
        for token in self._tokens():
            once = sanitize_sgr(token)
            assert sanitize_sgr(once) == once, token


class TestSanitizeStream:
    def test_rewrites_embedded_tokens(self) -> None:
        assert sanitize_stream("a\x1b[41mb\x1b[1;31mc") == "ab\x1b[1;31mc"

    def test_other_sequences_untouched(self) -> None:
        data = "\x1b[2J\x1b[H\x1b]0;t\x07\x1b[?1049h"
        assert sanitize_stream(data) == data

    def test_incomplete_tail_untouched(self) -> None:
        assert sanitize_stream("x\x1b[4") == "x\x1b[4"

    def test_stray_string_introducer_does_not_shield_later_tokens(self) -> None:
        assert sanitize_stream("\x1b]junk \x1b[41mred\x1b[0m") == "\x1b]junk red\x1b[0m"

    def test_long_stray_dcs_does_not_shield_later_tokens(self) -> None:
        data = "\x1bP" + "x" * 600 + "\x1b[48;5;236mbg\x1b[7minv"
        assert sanitize_stream(data) == "\x1bP" + "x" * 600 + "bginv"
