"""Host metrics collection for the dashboard panels.

Every call to :meth:`SystemCollector.collect` returns a fresh
:class:`MetricsSnapshot` of pre-formatted text lines. psutil errors for a
single process, mount or interface drop that line rather than failing the
whole snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import psutil

log = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class MetricsSnapshot:
    """Text content for the five panels, produced once per tick."""

    cpu_lines: list[str] = field(default_factory=lambda: list[str]())
    memory_line: str = ""
    disk_lines: list[str] = field(default_factory=lambda: list[str]())
    disk_process_lines: list[str] = field(default_factory=lambda: list[str]())
    network_lines: list[str] = field(default_factory=lambda: list[str]())


# ── Per-panel readers ──────────────────────────────────────────────────────


def _cpu_lines() -> list[str]:
    per_core = psutil.cpu_percent(interval=None, percpu=True)
    return [f"Core {i}: {pct:.2f}%" for i, pct in enumerate(per_core)]


def _memory_line() -> str:
    ram = psutil.virtual_memory()
    return f"Memory: {ram.used // MB} MB / {ram.total // MB} MB"


def _disk_lines() -> list[str]:
    lines: list[str] = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError:
            log.debug("skipping unreadable mount %s", part.mountpoint)
            continue
        lines.append(f"{part.device}: {usage.free // MB} MB / {usage.total // MB} MB")
    return lines


def _disk_process_lines() -> list[str]:
    """Processes that have read or written anything, busiest first."""
    if not hasattr(psutil.Process, "io_counters"):  # macOS
        return []
    rows: list[tuple[int, str]] = []
    for proc in psutil.process_iter(["name", "io_counters"]):
        # process_iter fills denied or vanished attributes with None
        name = proc.info.get("name") or "?"
        io = proc.info.get("io_counters")
        if io is None:
            continue
        if io.read_bytes > 0 or io.write_bytes > 0:
            rows.append(
                (
                    io.read_bytes + io.write_bytes,
                    f"{name}: Read {io.read_bytes} bytes, "
                    f"Wrote {io.write_bytes} bytes",
                )
            )
    rows.sort(key=lambda r: r[0], reverse=True)
    return [line for _, line in rows]


# ── Collector ──────────────────────────────────────────────────────────────


class SystemCollector:
    """psutil-backed snapshot source.

    Keeps the previous per-interface network counters so network lines show
    traffic since the last collect. Not reentrant: one owner, one call at a
    time.
    """

    def __init__(self) -> None:
        self._prev_net: dict[str, tuple[int, int]] | None = None
        # Prime psutil's per-core deltas so the first snapshot isn't all zeros
        psutil.cpu_percent(interval=None, percpu=True)

    def _network_lines(self) -> list[str]:
        counters = psutil.net_io_counters(pernic=True)
        current = {nic: (c.bytes_recv, c.bytes_sent) for nic, c in counters.items()}
        prev = self._prev_net if self._prev_net is not None else current
        self._prev_net = current

        lines: list[str] = []
        for nic in sorted(current):
            recv, sent = current[nic]
            prev_recv, prev_sent = prev.get(nic, (recv, sent))
            lines.append(
                f"{nic}: Received {max(0, recv - prev_recv)} bytes, "
                f"Transmitted {max(0, sent - prev_sent)} bytes"
            )
        return lines

    def collect(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            cpu_lines=_cpu_lines(),
            memory_line=_memory_line(),
            disk_lines=_disk_lines(),
            disk_process_lines=_disk_process_lines(),
            network_lines=self._network_lines(),
        )
