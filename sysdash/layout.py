"""Adaptive layout engine for the sysdash panels.

Turns a viewport size plus per-panel size hints into one rectangle per panel.
Layouts are declared as data: a tree of splits whose slots carry a size
constraint and either a panel or a nested split. The engine picks the tree for
the viewport's orientation once per call and solves it top-down.

    engine = LayoutEngine.for_mode(LayoutMode.ADAPTIVE)
    regions = engine.resolve(Viewport(100, 40), {Panel.CPU_USAGE: 8})
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial

log = logging.getLogger(__name__)

DEFAULT_GROUP_SIZE = 5
BORDER_ROWS = 2  # top + bottom box edge


# ── Errors ─────────────────────────────────────────────────────────────────


class LayoutError(Exception):
    """Base class for layout resolution failures."""


class DegenerateViewport(LayoutError):
    """The viewport has a zero width or height."""

    def __init__(self, viewport: Viewport) -> None:
        super().__init__(
            f"viewport {viewport.width}x{viewport.height} has a zero dimension"
        )
        self.viewport = viewport


class MissingSizeHint(LayoutError):
    """A content-driven slot's panel was not given a size hint."""

    def __init__(self, panel: Panel) -> None:
        super().__init__(f"no size hint for content-driven panel {panel.name}")
        self.panel = panel


# ── Geometry ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int


@dataclass(frozen=True)
class Rect:
    """A region of the screen, origin at the top-left corner."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def of(cls, viewport: Viewport) -> Rect:
        return cls(0, 0, viewport.width, viewport.height)


class Panel(enum.Enum):
    """The dashboard panels. Values double as the panel titles."""

    CPU_USAGE = "CPU Usage"
    MEMORY_USAGE = "Memory Usage"
    DISK_USAGE = "Disk Usage"
    DISK_PROCESSES = "Disk Processes"
    NETWORK_ACTIVITY = "Network Activity"

    @property
    def title(self) -> str:
        return self.value


class Orientation(enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class Direction(enum.Enum):
    HORIZONTAL = "horizontal"  # children laid out left to right
    VERTICAL = "vertical"  # children laid out top to bottom


class LayoutMode(enum.Enum):
    FIXED = "fixed"
    ADAPTIVE = "adaptive"


def orientation_of(viewport: Viewport) -> Orientation:
    """Portrait when the viewport is taller than it is wide, else landscape."""
    if viewport.width < viewport.height:
        return Orientation.PORTRAIT
    return Orientation.LANDSCAPE


# ── Constraints ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Fixed:
    length: int

    def __post_init__(self) -> None:
        if self.length < 0:
            raise ValueError(f"Fixed length must be >= 0, got {self.length}")


@dataclass(frozen=True)
class Min:
    length: int

    def __post_init__(self) -> None:
        if self.length < 0:
            raise ValueError(f"Min length must be >= 0, got {self.length}")


@dataclass(frozen=True)
class Percentage:
    percent: int

    def __post_init__(self) -> None:
        if not 0 <= self.percent <= 100:
            raise ValueError(f"Percentage must be within 0-100, got {self.percent}")


@dataclass(frozen=True)
class ContentDriven:
    """Length computed from the occupant panel's size hint."""

    size_fn: Callable[[int], int]


Constraint = Fixed | Min | Percentage | ContentDriven


def _grouped_rows(group_size: int, count: int) -> int:
    return math.ceil(count / group_size) + BORDER_ROWS


def cpu_rows(group_size: int = DEFAULT_GROUP_SIZE) -> Callable[[int], int]:
    """Height of the CPU panel for ``count`` cores packed ``group_size`` per row."""
    if group_size < 1:
        raise ValueError(f"group_size must be >= 1, got {group_size}")
    return partial(_grouped_rows, group_size)


# ── Layout trees ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Slot:
    constraint: Constraint
    content: Panel | Split


@dataclass(frozen=True)
class Split:
    direction: Direction
    slots: tuple[Slot, ...]

    def panels(self) -> list[Panel]:
        """Every panel placed somewhere under this split, in slot order."""
        found: list[Panel] = []
        for slot in self.slots:
            if isinstance(slot.content, Split):
                found.extend(slot.content.panels())
            else:
                found.append(slot.content)
        return found


def _fixed_tree(group_size: int) -> Split:
    disk_area = Split(
        Direction.HORIZONTAL,
        (
            Slot(Percentage(40), Panel.DISK_USAGE),
            Slot(Percentage(60), Panel.DISK_PROCESSES),
        ),
    )
    return Split(
        Direction.VERTICAL,
        (
            Slot(ContentDriven(cpu_rows(group_size)), Panel.CPU_USAGE),
            Slot(Fixed(3), Panel.MEMORY_USAGE),
            Slot(Min(10), disk_area),
            Slot(Fixed(3), Panel.NETWORK_ACTIVITY),
        ),
    )


@dataclass(frozen=True)
class _AdaptiveShape:
    """Per-orientation knobs of the adaptive layout."""

    outer: Direction
    disk: Constraint
    small_slot: Panel
    side_slot: Panel


_ADAPTIVE_SHAPES: dict[Orientation, _AdaptiveShape] = {
    Orientation.PORTRAIT: _AdaptiveShape(
        outer=Direction.VERTICAL,
        disk=Fixed(10),
        small_slot=Panel.DISK_PROCESSES,
        side_slot=Panel.NETWORK_ACTIVITY,
    ),
    Orientation.LANDSCAPE: _AdaptiveShape(
        outer=Direction.HORIZONTAL,
        disk=Min(10),
        small_slot=Panel.NETWORK_ACTIVITY,
        side_slot=Panel.DISK_PROCESSES,
    ),
}


def _adaptive_tree(shape: _AdaptiveShape, group_size: int) -> Split:
    main = Split(
        Direction.VERTICAL,
        (
            Slot(ContentDriven(cpu_rows(group_size)), Panel.CPU_USAGE),
            Slot(Fixed(3), Panel.MEMORY_USAGE),
            Slot(shape.disk, Panel.DISK_USAGE),
            Slot(Fixed(5), shape.small_slot),
        ),
    )
    return Split(
        shape.outer,
        (
            Slot(Min(70), main),
            Slot(Percentage(40), shape.side_slot),
        ),
    )


# ── Solver ─────────────────────────────────────────────────────────────────


def solve_lengths(
    total: int,
    constraints: list[Constraint],
    hints: list[int | None] | None = None,
) -> list[int]:
    """Resolve slot lengths along one axis so they sum to exactly ``total``.

    Fixed and content-driven slots are served first, then percentages
    (taken from the original ``total``), then minimums. Each grant is capped
    by what is left, so on overflow later and lower-priority slots shrink to
    zero instead of going negative. Leftover cells go to the ``Min`` slots,
    or to the last slot when there is none.

    Args:
        total: Length of the parent along the split axis.
        constraints: One constraint per slot.
        hints: Size hint per slot; only read for ``ContentDriven`` slots.

    Raises:
        ValueError: If a ``ContentDriven`` slot has no hint.
    """
    if hints is None:
        hints = [None] * len(constraints)
    sizes = [0] * len(constraints)
    remaining = max(total, 0)

    def grant(index: int, wanted: int) -> None:
        nonlocal remaining
        given = max(0, min(wanted, remaining))
        sizes[index] = given
        remaining -= given

    for i, c in enumerate(constraints):
        if isinstance(c, Fixed):
            grant(i, c.length)
        elif isinstance(c, ContentDriven):
            hint = hints[i]
            if hint is None:
                raise ValueError(f"content-driven slot {i} has no size hint")
            grant(i, c.size_fn(hint))

    for i, c in enumerate(constraints):
        if isinstance(c, Percentage):
            grant(i, total * c.percent // 100)

    flexible = [i for i, c in enumerate(constraints) if isinstance(c, Min)]
    for i in flexible:
        grant(i, constraints[i].length)  # type: ignore[union-attr]

    if remaining and constraints:
        if not flexible:
            flexible = [len(constraints) - 1]
        share, odd = divmod(remaining, len(flexible))
        for n, i in enumerate(flexible):
            sizes[i] += share + (1 if n < odd else 0)

    return sizes


def split(
    area: Rect,
    direction: Direction,
    constraints: list[Constraint],
    hints: list[int | None] | None = None,
) -> list[Rect]:
    """Cut ``area`` into contiguous rectangles along ``direction``."""
    total = area.width if direction is Direction.HORIZONTAL else area.height
    lengths = solve_lengths(total, constraints, hints)

    rects: list[Rect] = []
    offset = 0
    for length in lengths:
        if direction is Direction.HORIZONTAL:
            rects.append(Rect(area.x + offset, area.y, length, area.height))
        else:
            rects.append(Rect(area.x, area.y + offset, area.width, length))
        offset += length
    return rects


# ── Engine ─────────────────────────────────────────────────────────────────


class LayoutEngine:
    """Maps panels to screen regions for a given viewport.

    Holds one layout tree per orientation. Fixed mode uses the same tree for
    both; adaptive mode swaps the outer split direction and which panel sits
    in the small slot of the main column.
    """

    def __init__(self, trees: Mapping[Orientation, Split]) -> None:
        missing = set(Orientation) - set(trees)
        if missing:
            names = ", ".join(sorted(o.value for o in missing))
            raise ValueError(f"no layout tree for orientation(s): {names}")
        self._trees = dict(trees)

    @classmethod
    def fixed(cls, group_size: int = DEFAULT_GROUP_SIZE) -> LayoutEngine:
        tree = _fixed_tree(group_size)
        return cls({orientation: tree for orientation in Orientation})

    @classmethod
    def adaptive(cls, group_size: int = DEFAULT_GROUP_SIZE) -> LayoutEngine:
        return cls(
            {
                orientation: _adaptive_tree(shape, group_size)
                for orientation, shape in _ADAPTIVE_SHAPES.items()
            }
        )

    @classmethod
    def for_mode(
        cls, mode: LayoutMode, group_size: int = DEFAULT_GROUP_SIZE
    ) -> LayoutEngine:
        if mode is LayoutMode.FIXED:
            return cls.fixed(group_size)
        return cls.adaptive(group_size)

    def tree_for(self, viewport: Viewport) -> Split:
        return self._trees[orientation_of(viewport)]

    def resolve(
        self, viewport: Viewport, size_hints: Mapping[Panel, int]
    ) -> dict[Panel, Rect]:
        """Assign a region to every panel of the tree for ``viewport``.

        Raises:
            DegenerateViewport: If the viewport has a zero dimension.
            MissingSizeHint: If a content-driven panel has no entry in
                ``size_hints``.
        """
        if viewport.width <= 0 or viewport.height <= 0:
            raise DegenerateViewport(viewport)

        tree = self.tree_for(viewport)
        regions: dict[Panel, Rect] = {}
        self._place(tree, Rect.of(viewport), size_hints, regions)
        log.debug(
            "resolved %dx%d (%s): %s",
            viewport.width,
            viewport.height,
            orientation_of(viewport).value,
            regions,
        )
        return regions

    def _place(
        self,
        node: Split,
        area: Rect,
        size_hints: Mapping[Panel, int],
        out: dict[Panel, Rect],
    ) -> None:
        hints: list[int | None] = []
        for slot in node.slots:
            if isinstance(slot.constraint, ContentDriven):
                if not isinstance(slot.content, Panel):
                    raise TypeError("content-driven slots must hold a panel")
                if slot.content not in size_hints:
                    raise MissingSizeHint(slot.content)
                hints.append(size_hints[slot.content])
            else:
                hints.append(None)

        rects = split(area, node.direction, [s.constraint for s in node.slots], hints)
        for slot, rect in zip(node.slots, rects):
            if isinstance(slot.content, Split):
                self._place(slot.content, rect, size_hints, out)
            else:
                out[slot.content] = rect
