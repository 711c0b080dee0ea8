"""Interactive terminal dashboard: the curses front end for sysdash.

Paints the CPU, memory, disk, disk-process and network panels into the
regions chosen by the layout engine. The adaptive layout moves the process
and network lists around when the terminal turns from landscape to portrait.

Usage:
    uv run sysdash
    uv run sysdash --layout fixed --interval 2 --config path/to/config.toml
"""

from __future__ import annotations

import argparse
import curses
import logging
import math
import signal
import sys
from pathlib import Path
from typing import Any

from sysdash.collector import SystemCollector
from sysdash.config import LAYOUT_MODES, dump_default_config, load_config
from sysdash.layout import LayoutEngine, LayoutMode, Rect, Viewport
from sysdash.render import CancelToken, RenderLoop

log = logging.getLogger(__name__)

# Curses colour-pair IDs
C_NORMAL = 1
C_TITLE = 2

QUIT_KEYS = (ord("q"), ord("Q"), 3)  # 3 = Ctrl+C when it arrives as a key instead of SIGINT


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, -1, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


class CursesSurface:
    """Rendering surface and key source backed by one curses window."""

    def __init__(self, stdscr: curses.window) -> None:
        self.stdscr = stdscr
        self._dirty = True

    def size(self) -> Viewport:
        max_y, max_x = self.stdscr.getmaxyx()
        if self._dirty:
            self.stdscr.erase()
            self._dirty = False
        return Viewport(max_x, max_y)

    def paint(self, region: Rect, title: str, body: str) -> None:
        """Draw ``body`` inside a titled box; text past the box edge is cut off."""
        if region.width < 2 or region.height < 2:
            return
        max_y, max_x = self.stdscr.getmaxyx()
        h = min(region.height, max_y - region.y)
        w = min(region.width, max_x - region.x)
        if h < 2 or w < 2:
            return

        try:
            box = self.stdscr.derwin(h, w, region.y, region.x)
        except curses.error:
            return
        box.box()
        if title and len(title) + 2 <= w - 2:
            _safe(box, 0, 1, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD)

        inner_w = w - 2
        for row, line in enumerate(body.splitlines()[: h - 2], start=1):
            _safe(box, row, 1, line[:inner_w], curses.color_pair(C_NORMAL))

    def flush(self) -> None:
        self.stdscr.refresh()
        self._dirty = True

    def poll_cancel(self, timeout: float) -> bool:
        self.stdscr.timeout(max(0, int(timeout * 1000)))
        key = self.stdscr.getch()
        if key == curses.KEY_RESIZE:
            self.stdscr.clear()
            return False
        return key in QUIT_KEYS


# ── Main loop ──────────────────────────────────────────────────────────────


def _dashboard_loop(
    stdscr: curses.window, config: dict[str, Any], token: CancelToken
) -> None:
    _init_colors()
    try:
        curses.curs_set(0)
    except curses.error:
        pass

    engine = LayoutEngine.for_mode(
        LayoutMode(config["layout"]), config["cpu_group_size"]
    )
    surface = CursesSurface(stdscr)
    loop = RenderLoop(
        engine,
        SystemCollector(),
        surface,
        surface,
        token=token,
        interval=float(config["interval"]),
        group_size=config["cpu_group_size"],
    )
    loop.run()


def _setup_logging(log_config: dict[str, Any]) -> None:
    level = getattr(logging, str(log_config.get("level", "WARNING")).upper())
    path = log_config.get("file") or ""
    if path:
        logging.basicConfig(
            filename=path,
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        # curses owns the terminal; keep the last-resort handler off stderr
        logging.basicConfig(level=level, handlers=[logging.NullHandler()])


# ── CLI entry point ────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Terminal system dashboard with an orientation-aware layout.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: 1.0)",
    )
    parser.add_argument(
        "--layout",
        choices=LAYOUT_MODES,
        default=None,
        help="Panel layout (default: adaptive)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write log records to this file",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    args = parser.parse_args(argv)

    if args.dump_config:
        print(dump_default_config(), end="")
        return 0

    config = load_config(args.config)
    if args.interval is not None:
        if not math.isfinite(args.interval) or args.interval <= 0:
            parser.error("--interval must be a positive number of seconds")
        config["interval"] = args.interval
    if args.layout is not None:
        config["layout"] = args.layout
    log_config = dict(config["logging"])
    if args.log_file is not None:
        log_config["file"] = str(args.log_file)
    _setup_logging(log_config)

    token = CancelToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        curses.wrapper(_dashboard_loop, config, token)
    except Exception as e:
        log.exception("dashboard failed")
        print(f"sysdash: error: {e}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)
    return 0


if __name__ == "__main__":
    sys.exit(main())
