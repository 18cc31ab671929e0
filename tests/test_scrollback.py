"""Tests for screenfix.scrollback -- typing-aware scrollback clears."""

from __future__ import annotations

from screenfix.config import CompositorSettings
from screenfix.scrollback import ScrollbackMaintainer

from .virtual_clock import VirtualClock


class ClearRecorder:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


class TestFrameTriggers:
    def test_marker_requests_clear(self, make_ctx) -> None:
        maintainer = ScrollbackMaintainer(make_ctx(), ClearRecorder())
        assert maintainer.on_frame("Conversation cleared", False)
        assert maintainer.on_frame("> Chat cleared\r\n", False)
        assert not maintainer.on_frame("hello", False)

    def test_render_count_threshold(self, make_ctx) -> None:
        ctx = make_ctx(settings=CompositorSettings(clear_after_renders=3))
        maintainer = ScrollbackMaintainer(ctx, ClearRecorder())
        assert not maintainer.on_frame("a", True)
        assert not maintainer.on_frame("b", True)
        assert maintainer.on_frame("c", True)
        assert maintainer.render_count == 0

    def test_only_full_repaints_are_counted(self, make_ctx) -> None:
        ctx = make_ctx(settings=CompositorSettings(clear_after_renders=2))
        maintainer = ScrollbackMaintainer(ctx, ClearRecorder())
        for _ in range(5):
            assert not maintainer.on_frame("line\r\n", False)
        assert maintainer.render_count == 0
        assert not maintainer.on_frame("a", True)
        assert not maintainer.on_frame("b", False)
        assert maintainer.on_frame("c", True)

    def test_threshold_skipped_while_typing(self, make_ctx) -> None:
        ctx = make_ctx(settings=CompositorSettings(clear_after_renders=1))
        maintainer = ScrollbackMaintainer(ctx, ClearRecorder())
        ctx.mark_typing()
        assert not maintainer.on_frame("a", True)

    def test_disabled_on_macos(self, make_ctx) -> None:
        maintainer = ScrollbackMaintainer(make_ctx(platform="darwin"), ClearRecorder())
        assert not maintainer.enabled
        assert not maintainer.on_frame("Conversation cleared", True)

    def test_disabled_by_feature(self, make_ctx) -> None:
        maintainer = ScrollbackMaintainer(make_ctx(scrollback_clear=False), ClearRecorder())
        assert not maintainer.on_frame("Chat cleared", True)


class TestPeriodicClear:
    def test_interval_requests_clear(self, make_ctx, clock: VirtualClock) -> None:
        recorder = ClearRecorder()
        ctx = make_ctx(settings=CompositorSettings(scrollback_clear_interval=1.0))
        maintainer = ScrollbackMaintainer(ctx, recorder)
        maintainer.start()
        clock.advance(1.0)
        assert recorder.count == 1
        clock.advance(1.0)
        assert recorder.count == 2

    def test_typing_defers_clear_until_cooldown(
        self, make_ctx, clock: VirtualClock
    ) -> None:
        recorder = ClearRecorder()
        ctx = make_ctx(settings=CompositorSettings(scrollback_clear_interval=1.0))
        maintainer = ScrollbackMaintainer(ctx, recorder)
        maintainer.start()
        clock.advance(0.9)
        ctx.mark_typing()
        clock.advance(0.2)
        assert recorder.count == 0

        clock.advance(0.5)
        assert recorder.count == 1

    def test_stop_cancels_timers(self, make_ctx, clock: VirtualClock) -> None:
        recorder = ClearRecorder()
        ctx = make_ctx(settings=CompositorSettings(scrollback_clear_interval=1.0))
        maintainer = ScrollbackMaintainer(ctx, recorder)
        maintainer.start()
        maintainer.stop()
        assert clock.pending == 0
        clock.advance(5.0)
        assert recorder.count == 0

    def test_no_timer_on_macos(self, make_ctx, clock: VirtualClock) -> None:
        maintainer = ScrollbackMaintainer(make_ctx(platform="darwin"), ClearRecorder())
        maintainer.start()
        assert clock.pending == 0
