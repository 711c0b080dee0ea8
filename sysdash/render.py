"""The tick loop: collect → layout → paint → poll.

The loop talks to three collaborators through small protocols so it can be
driven by curses in production and by plain fakes in tests.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from typing import Protocol

from sysdash.collector import MetricsSnapshot
from sysdash.layout import (
    DEFAULT_GROUP_SIZE,
    DegenerateViewport,
    LayoutEngine,
    Panel,
    Rect,
    Viewport,
)

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


# ── Errors ─────────────────────────────────────────────────────────────────


class RenderError(Exception):
    """A collaborator of the render loop failed."""


class CollectorFailure(RenderError):
    pass


class PaintFailure(RenderError):
    pass


# ── Collaborators ──────────────────────────────────────────────────────────


class Collector(Protocol):
    def collect(self) -> MetricsSnapshot: ...


class Surface(Protocol):
    def size(self) -> Viewport: ...

    def paint(self, region: Rect, title: str, body: str) -> None: ...

    def flush(self) -> None: ...


class InputSource(Protocol):
    def poll_cancel(self, timeout: float) -> bool: ...


# ── Cancellation ───────────────────────────────────────────────────────────


class CancelToken:
    """One-way stop flag shared by the signal handler and the loop.

    Only ever goes from unset to set, so a plain attribute write from a signal
    handler is enough.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class LoopState(enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"  # cancel seen, current tick still finishing
    STOPPED = "stopped"


# ── Panel content ──────────────────────────────────────────────────────────


def _group(lines: Sequence[str], size: int) -> list[str]:
    return [" ".join(lines[i : i + size]) for i in range(0, len(lines), size)]


def panel_bodies(
    snapshot: MetricsSnapshot, group_size: int = DEFAULT_GROUP_SIZE
) -> dict[Panel, str]:
    """Body text per panel. CPU cores are packed ``group_size`` to a row."""
    return {
        Panel.CPU_USAGE: "\n".join(_group(snapshot.cpu_lines, group_size)),
        Panel.MEMORY_USAGE: snapshot.memory_line,
        Panel.DISK_USAGE: "\n".join(snapshot.disk_lines),
        Panel.DISK_PROCESSES: "\n".join(snapshot.disk_process_lines),
        Panel.NETWORK_ACTIVITY: "\n".join(snapshot.network_lines),
    }


def size_hints(snapshot: MetricsSnapshot) -> dict[Panel, int]:
    """Item count per panel; memory always counts as one line."""
    return {
        Panel.CPU_USAGE: len(snapshot.cpu_lines),
        Panel.MEMORY_USAGE: 1,
        Panel.DISK_USAGE: len(snapshot.disk_lines),
        Panel.DISK_PROCESSES: len(snapshot.disk_process_lines),
        Panel.NETWORK_ACTIVITY: len(snapshot.network_lines),
    }


# ── Loop ───────────────────────────────────────────────────────────────────


class RenderLoop:
    """Drives ticks until the cancel token is set or a quit key arrives."""

    def __init__(
        self,
        engine: LayoutEngine,
        collector: Collector,
        surface: Surface,
        input_source: InputSource,
        token: CancelToken | None = None,
        interval: float = DEFAULT_INTERVAL,
        group_size: int = DEFAULT_GROUP_SIZE,
    ) -> None:
        self.engine = engine
        self.collector = collector
        self.surface = surface
        self.input_source = input_source
        self.token = token if token is not None else CancelToken()
        self.interval = interval
        self.group_size = group_size
        self.ticks = 0
        self._stopped = False

    @property
    def state(self) -> LoopState:
        if self._stopped:
            return LoopState.STOPPED
        if self.token.cancelled:
            return LoopState.DRAINING
        return LoopState.RUNNING

    def tick(self) -> dict[Panel, Rect] | None:
        """Render one frame. Returns the region assignment that was painted.

        Returns None when the viewport is degenerate; the frame is skipped and
        the next tick tries again.
        """
        try:
            viewport = self.surface.size()
        except Exception as e:
            raise PaintFailure(f"could not read terminal size: {e}") from e

        try:
            snapshot = self.collector.collect()
        except Exception as e:
            raise CollectorFailure(f"metrics collection failed: {e}") from e

        try:
            regions = self.engine.resolve(viewport, size_hints(snapshot))
        except DegenerateViewport as e:
            log.warning("skipping frame: %s", e)
            return None

        bodies = panel_bodies(snapshot, self.group_size)
        try:
            for panel, region in regions.items():
                self.surface.paint(region, panel.title, bodies[panel])
            self.surface.flush()
        except Exception as e:
            raise PaintFailure(f"drawing failed: {e}") from e

        self.ticks += 1
        return regions

    def run(self) -> None:
        """Tick until cancelled. Any collaborator failure ends the loop."""
        try:
            while not self.token.cancelled:
                self.tick()
                if self.token.cancelled:
                    break
                if self.input_source.poll_cancel(self.interval):
                    self.token.cancel()
        finally:
            self._stopped = True
        log.info("render loop stopped after %d tick(s)", self.ticks)
