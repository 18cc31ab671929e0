"""Tests for screenfix.resize -- resize debouncing."""

from __future__ import annotations

from screenfix.compositor import Compositor, Geometry
from screenfix.resize import ResizeDebouncer

from .virtual_clock import VirtualClock
from .virtual_terminal import VirtualTerminal


class Provider:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        return "status"


def _build(ctx, terminal: VirtualTerminal):
    provider = Provider()
    compositor = Compositor(ctx, overlay_text=provider)
    compositor.set_geometry(terminal.columns, terminal.rows)
    geometries: list[Geometry] = []
    debouncer = ResizeDebouncer(ctx, compositor, terminal.size, geometries.append)
    return debouncer, compositor, provider, geometries


class TestResizeDebouncer:
    def test_burst_fires_once(
        self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal
    ) -> None:
        debouncer, compositor, provider, geometries = _build(make_ctx(), terminal)
        terminal.resize(rows=30, columns=100)

        for _ in range(5):
            debouncer.notify()
            clock.advance(0.010)
        assert debouncer.fire_count == 0

        clock.advance(0.050)
        assert debouncer.fire_count == 1
        assert provider.calls == 1
        assert geometries == [Geometry(columns=100, rows=30, footer_rows=1)]
        assert compositor.geometry.content_rows == 29
        assert terminal.writes[0] == "\x1b7\x1b[1;29r\x1b8"
        assert terminal.write_count == 2

    def test_separate_bursts_fire_separately(
        self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal
    ) -> None:
        debouncer, _, _, geometries = _build(make_ctx(), terminal)
        debouncer.notify()
        clock.advance(0.1)
        terminal.resize(rows=10)
        debouncer.notify()
        clock.advance(0.1)
        assert debouncer.fire_count == 2
        assert [g.rows for g in geometries] == [24, 10]

    def test_remote_session_delays_redraw(
        self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal
    ) -> None:
        ctx = make_ctx(remote_session=True, remote_overlay=True)
        debouncer, _, provider, _ = _build(ctx, terminal)
        debouncer.notify()
        clock.advance(0.050)
        assert debouncer.fire_count == 1
        assert provider.calls == 0

        clock.advance(0.050)
        assert provider.calls == 1

    def test_unavailable_geometry_disables_overlay(
        self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal
    ) -> None:
        debouncer, compositor, provider, geometries = _build(make_ctx(), terminal)
        terminal.interactive = False
        debouncer.notify()
        clock.advance(0.050)
        assert not compositor.active
        assert geometries == []
        assert provider.calls == 0
        assert terminal.write_count == 0

    def test_closed_output_is_tolerated(
        self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal
    ) -> None:
        debouncer, _, provider, geometries = _build(make_ctx(), terminal)
        terminal.closed = True
        debouncer.notify()
        clock.advance(0.050)
        assert debouncer.fire_count == 1
        assert geometries == []
        assert provider.calls == 0

    def test_cancel(self, make_ctx, clock: VirtualClock, terminal: VirtualTerminal) -> None:
        debouncer, _, _, _ = _build(make_ctx(), terminal)
        debouncer.notify()
        debouncer.cancel()
        clock.advance(1.0)
        assert debouncer.fire_count == 0
        assert debouncer.state.last_fired_at is None
