"""Tests for sysdash.render."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from sysdash.collector import MetricsSnapshot
from sysdash.layout import LayoutEngine, MissingSizeHint, Panel, Rect, Viewport
from sysdash.render import (
    CancelToken,
    CollectorFailure,
    LoopState,
    PaintFailure,
    RenderLoop,
    panel_bodies,
    size_hints,
)


def _snapshot() -> MetricsSnapshot:
    return MetricsSnapshot(
        cpu_lines=[f"Core {i}: {i * 10:.2f}%" for i in range(8)],
        memory_line="Memory: 512 MB / 8192 MB",
        disk_lines=["/dev/sda1: 1000 MB / 2000 MB", "/dev/sdb1: 10 MB / 20 MB"],
        disk_process_lines=[
            "postgres: Read 4096 bytes, Wrote 8192 bytes",
            "python3: Read 1024 bytes, Wrote 0 bytes",
            "sshd: Read 12 bytes, Wrote 1 bytes",
        ],
        network_lines=["eth0: Received 120 bytes, Transmitted 80 bytes"],
    )


class FakeCollector:
    def __init__(self, snapshot: MetricsSnapshot | None = None) -> None:
        self.snapshot = snapshot or _snapshot()
        self.calls = 0

    def collect(self) -> MetricsSnapshot:
        self.calls += 1
        return self.snapshot


class FakeSurface:
    def __init__(self, sizes: list[Viewport]) -> None:
        self.sizes = sizes
        self.painted: list[tuple[Rect, str, str]] = []
        self.flushes = 0

    def size(self) -> Viewport:
        if len(self.sizes) > 1:
            return self.sizes.pop(0)
        return self.sizes[0]

    def paint(self, region: Rect, title: str, body: str) -> None:
        self.painted.append((region, title, body))

    def flush(self) -> None:
        self.flushes += 1


class FakeInput:
    """Reports a quit after ``quit_after`` polls."""

    def __init__(self, quit_after: int) -> None:
        self.quit_after = quit_after
        self.polls: list[float] = []

    def poll_cancel(self, timeout: float) -> bool:
        self.polls.append(timeout)
        return len(self.polls) >= self.quit_after


def _loop(
    surface: FakeSurface | None = None,
    collector: FakeCollector | None = None,
    quit_after: int = 1,
    token: CancelToken | None = None,
) -> RenderLoop:
    return RenderLoop(
        LayoutEngine.adaptive(),
        collector or FakeCollector(),
        surface or FakeSurface([Viewport(100, 40)]),
        FakeInput(quit_after),
        token=token,
        interval=0.25,
    )


# ── Panel content ──────────────────────────────────────────────────────────


class TestPanelBodies:
    def test_cpu_grouped_five_per_row(self) -> None:
        bodies = panel_bodies(_snapshot())
        rows = bodies[Panel.CPU_USAGE].split("\n")
        assert len(rows) == 2
        assert rows[0] == " ".join(f"Core {i}: {i * 10:.2f}%" for i in range(5))
        assert rows[1].startswith("Core 5:")

    def test_custom_group_size(self) -> None:
        bodies = panel_bodies(_snapshot(), group_size=3)
        assert len(bodies[Panel.CPU_USAGE].split("\n")) == 3

    def test_memory_is_single_line(self) -> None:
        assert panel_bodies(_snapshot())[Panel.MEMORY_USAGE] == "Memory: 512 MB / 8192 MB"

    def test_lists_joined_by_newline(self) -> None:
        bodies = panel_bodies(_snapshot())
        assert bodies[Panel.DISK_PROCESSES].count("\n") == 2
        assert bodies[Panel.NETWORK_ACTIVITY] == (
            "eth0: Received 120 bytes, Transmitted 80 bytes"
        )

    def test_empty_snapshot(self) -> None:
        bodies = panel_bodies(MetricsSnapshot())
        assert set(bodies) == set(Panel)
        assert all(body == "" for body in bodies.values())


def test_size_hints() -> None:
    assert size_hints(_snapshot()) == {
        Panel.CPU_USAGE: 8,
        Panel.MEMORY_USAGE: 1,
        Panel.DISK_USAGE: 2,
        Panel.DISK_PROCESSES: 3,
        Panel.NETWORK_ACTIVITY: 1,
    }


# ── CancelToken ────────────────────────────────────────────────────────────


def test_cancel_token_is_one_way() -> None:
    token = CancelToken()
    assert token.cancelled is False
    token.cancel()
    token.cancel()
    assert token.cancelled is True


# ── RenderLoop.tick ────────────────────────────────────────────────────────


class TestTick:
    def test_end_to_end_landscape(self) -> None:
        surface = FakeSurface([Viewport(100, 40)])
        regions = _loop(surface).tick()

        assert regions is not None
        assert regions[Panel.CPU_USAGE].height == 4
        assert regions[Panel.MEMORY_USAGE].height == 3
        assert regions[Panel.NETWORK_ACTIVITY].height == 5
        assert regions[Panel.DISK_PROCESSES] == Rect(60, 0, 40, 40)

        assert len(surface.painted) == 5
        assert surface.flushes == 1
        titles = {title for _, title, _ in surface.painted}
        assert titles == {p.title for p in Panel}
        painted = {title: (rect, body) for rect, title, body in surface.painted}
        assert painted["Memory Usage"] == (
            Rect(0, 4, 60, 3),
            "Memory: 512 MB / 8192 MB",
        )

    def test_tick_recomputes_for_new_viewport(self) -> None:
        surface = FakeSurface([Viewport(80, 24), Viewport(24, 80)])
        loop = _loop(surface)
        first = loop.tick()
        second = loop.tick()
        assert first is not None and second is not None
        assert first[Panel.NETWORK_ACTIVITY].height == 5
        assert second[Panel.DISK_PROCESSES].y == 17
        assert loop.ticks == 2

    def test_degenerate_viewport_skips_frame(self) -> None:
        surface = FakeSurface([Viewport(0, 24)])
        loop = _loop(surface)
        assert loop.tick() is None
        assert surface.painted == []
        assert surface.flushes == 0
        assert loop.ticks == 0

    def test_collector_error_wrapped(self) -> None:
        collector = MagicMock()
        collector.collect.side_effect = OSError("boom")
        loop = _loop(collector=collector)
        with pytest.raises(CollectorFailure) as exc:
            loop.tick()
        assert isinstance(exc.value.__cause__, OSError)

    def test_size_error_wrapped(self) -> None:
        surface = MagicMock()
        surface.size.side_effect = RuntimeError("terminal detached")
        with pytest.raises(PaintFailure):
            _loop(surface).tick()

    def test_paint_error_wrapped(self) -> None:
        surface = MagicMock()
        surface.size.return_value = Viewport(80, 24)
        surface.paint.side_effect = RuntimeError("write failed")
        with pytest.raises(PaintFailure):
            _loop(surface).tick()

    def test_missing_size_hint_is_fatal(self) -> None:
        engine = MagicMock()
        engine.resolve.side_effect = MissingSizeHint(Panel.CPU_USAGE)
        loop = RenderLoop(
            engine, FakeCollector(), FakeSurface([Viewport(80, 24)]), FakeInput(1)
        )
        with pytest.raises(MissingSizeHint):
            loop.tick()


# ── RenderLoop.run ─────────────────────────────────────────────────────────


class TestRun:
    def test_runs_until_quit_key(self) -> None:
        loop = _loop(quit_after=3)
        assert loop.state is LoopState.RUNNING
        loop.run()
        assert loop.ticks == 3
        assert loop.state is LoopState.STOPPED
        assert loop.token.cancelled
        assert loop.input_source.polls == [0.25, 0.25, 0.25]  # type: ignore[attr-defined]

    def test_pre_cancelled_token_renders_nothing(self) -> None:
        token = CancelToken()
        token.cancel()
        loop = _loop(token=token)
        assert loop.state is LoopState.DRAINING
        loop.run()
        assert loop.ticks == 0
        assert loop.state is LoopState.STOPPED

    def test_signal_during_tick_finishes_tick_then_stops(self) -> None:
        token = CancelToken()
        states: list[LoopState] = []

        class InterruptingCollector(FakeCollector):
            def collect(self) -> MetricsSnapshot:
                token.cancel()
                states.append(loop.state)
                return super().collect()

        surface = FakeSurface([Viewport(80, 24)])
        loop = _loop(surface, InterruptingCollector(), quit_after=99, token=token)
        loop.run()

        assert states == [LoopState.DRAINING]
        assert len(surface.painted) == 5
        assert loop.input_source.polls == []  # type: ignore[attr-defined]
        assert loop.state is LoopState.STOPPED

    def test_failure_stops_loop_and_propagates(self) -> None:
        collector = MagicMock()
        collector.collect.side_effect = RuntimeError("gone")
        loop = _loop(collector=collector, quit_after=99)
        with pytest.raises(CollectorFailure):
            loop.run()
        assert loop.state is LoopState.STOPPED
