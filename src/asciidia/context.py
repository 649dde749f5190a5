from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from .connection import Corner, Segment, plan_connection
from .spline import get_control_points
from .styles import CELL_SIZE, FONT_FAMILY, OPACITY, STROKE_WIDTH, format_color
from .theme import DEFAULTS
from .types import Arrow, CellPoint, CornerType, DebugMode, MarkerKind, Point

logger = logging.getLogger(__name__)

# ============================================================================
# Drawing context -- cell coordinate space plus the drawing primitives.
#
# All coordinates passed to the primitives are grid cells. A cell maps to
# pixels via  pixel = cell * cell_size (+ the context's translation, which
# the backend applies as a transform). The geometry of every primitive lives
# here; backends only implement the low-level _emit_* hooks that format
# pixel-space shapes into their own representation.
# ============================================================================

MARKER_KINDS = ("x", "o", "+")


@dataclass(slots=True)
class ChildContext:
    """A nested context and the parent's translation when it was created."""

    tx: int
    ty: int
    context: DrawingContext


@dataclass(slots=True)
class DebugOverlay:
    """Pixel geometry of the debug grid, relative to the context origin."""

    lines: list[tuple[float, float, float, float]]
    width: float
    height: float
    label: str
    label_x: float
    label_y: float


class DrawingContext(ABC):
    def __init__(self) -> None:
        self.xs = CELL_SIZE["width"]
        self.ys = CELL_SIZE["height"]
        self.xf = self.xs / 2
        self.yf = self.ys / 2

        # translation of the origin, in cells
        self.tx = 0
        self.ty = 0

        # measured extent of own primitives, in cells
        self.w = 0
        self.h = 0

        self.debug = DebugMode.OFF
        self.children: list[ChildContext] = []

        self.bg = DEFAULTS["bg"]
        self.stroke: dict = {
            "color": DEFAULTS["fg"],
            "width": STROKE_WIDTH,
            "opacity": OPACITY["stroke"],
        }
        self.fill: dict = {"color": "transparent", "opacity": OPACITY["fill"]}
        self.font: dict = {"family": FONT_FAMILY, "size": None}

    # ========================================================================
    # Coordinate space
    # ========================================================================

    def set_cell_size(self, width: float, height: float) -> None:
        """Set the pixel size of one cell and the derived half-cell offsets."""
        self.xs = float(width)
        self.ys = float(height)
        self.xf = self.xs / 2
        self.yf = self.ys / 2

    def get_cell_size(self) -> tuple[float, float]:
        return (self.xs, self.ys)

    def add_context(self) -> DrawingContext:
        """Create a nested context anchored at the current translation.

        The child inherits cell size and style settings. Debug mode is
        inherited only when it was enabled with propagation.
        """
        child = self._create_child()
        child.set_cell_size(self.xs, self.ys)
        child.bg = self.bg
        child.stroke = dict(self.stroke)
        child.fill = dict(self.fill)
        child.font = dict(self.font)

        propagate = self.debug is DebugMode.PROPAGATE
        child.enable_debug(propagate, propagate)

        self.children.append(ChildContext(tx=self.tx, ty=self.ty, context=child))
        return child

    def translate(self, dx: int, dy: int) -> None:
        """Move the origin by (dx, dy) cells.

        Translation is relative to the current origin and clamped so the
        origin never becomes negative. Space for one cell at the new origin
        is reserved.
        """
        tx = max(0, self.tx + dx)
        ty = max(0, self.ty + dy)
        moved_x, moved_y = tx - self.tx, ty - self.ty
        self.tx, self.ty = tx, ty

        self.set_size(0, 0)

        if moved_x != 0 or moved_y != 0:
            self._emit_translate(moved_x * self.xs, moved_y * self.ys)

    def set_size(self, x: float, y: float) -> None:
        """Declare content up to cell (x, y) relative to the current origin."""
        self.w = max(self.w, self.tx + math.ceil(x) + 1)
        self.h = max(self.h, self.ty + math.ceil(y) + 1)

    def get_size(self, in_cells: bool = False) -> tuple[float, float]:
        """Return the extent covering own primitives and all nested contexts.

        Recomputed on every call, children may still be growing. In pixels the
        final stroke-width margin is excluded.
        """
        w, h = self.w, self.h

        for child in self.children:
            cw, ch = child.context.get_size(True)
            w = max(w, child.tx + cw)
            h = max(h, child.ty + ch)

        if in_cells:
            return (w, h)

        return (max(0.0, w * self.xs - 1), max(0.0, h * self.ys - 1))

    def enable_debug(self, enable: bool, propagate: bool = False) -> None:
        """Toggle the grid overlay; with propagate, later children get it too."""
        if not enable:
            self.debug = DebugMode.OFF
        elif propagate:
            self.debug = DebugMode.PROPAGATE
        else:
            self.debug = DebugMode.ON

    # ========================================================================
    # Style settings
    # ========================================================================

    def set_stroke(
        self,
        color: str | tuple[int, int, int] | None = None,
        width: float | None = None,
        opacity: float | None = None,
        antialias: bool | None = None,
    ) -> None:
        changes: dict = {}
        if antialias is not None:
            changes["antialias"] = antialias
        if width is not None:
            changes["width"] = width
        if color is not None:
            changes["color"] = format_color(color)
        if opacity is not None:
            changes["opacity"] = opacity

        if changes:
            self.stroke.update(changes)
            self._apply_stroke(changes)

    def set_fill(
        self,
        color: str | tuple[int, int, int] | None = None,
        opacity: float | None = None,
    ) -> None:
        changes: dict = {}
        if color is not None:
            changes["color"] = format_color(color)
        if opacity is not None:
            changes["opacity"] = opacity

        if changes:
            self.fill.update(changes)
            self._apply_fill(changes)

    def set_font(self, family: str | None = None, size: float | None = None) -> None:
        changes: dict = {}
        if family is not None:
            changes["family"] = family
        if size is not None:
            changes["size"] = size

        if changes:
            self.font.update(changes)
            self._apply_font(changes)

    # ========================================================================
    # Drawing primitives
    # ========================================================================

    def draw_rectangle(
        self, x1: int, y1: int, x2: int, y2: int, round: bool = False
    ) -> None:
        """Rectangle through the centers of two opposite corner cells."""
        self.set_size(max(x1, x2), max(y1, y2))

        self._emit_rect(
            min(x1, x2) * self.xs + self.xf,
            min(y1, y2) * self.ys + self.yf,
            abs(x2 - x1) * self.xs,
            abs(y2 - y1) * self.ys,
            (self.xf, self.yf) if round else None,
        )

    def draw_spline(self, points: Sequence[Point | tuple[float, float]]) -> None:
        """Smooth curve through the given cells, one cubic bezier per pair."""
        pts = [p if isinstance(p, Point) else Point(x=p[0], y=p[1]) for p in points]

        if len(pts) < 2:
            return

        if len(pts) == 2:
            # 2 points is just a straight line
            self.draw_line(pts[0].x, pts[0].y, pts[1].x, pts[1].y)
            return

        self.set_size(max(p.x for p in pts), max(p.y for p in pts))

        first, second = get_control_points(pts)

        for i in range(len(pts) - 1):
            self._emit_bezier(
                self._center(pts[i]),
                self._center(first[i]),
                self._center(second[i]),
                self._center(pts[i + 1]),
            )

    def draw_path(self, d: str) -> None:
        """Raw path data in pixel space; does not change the measured size."""
        self._emit_path(d)

    def draw_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        arrow: Arrow = Arrow.NONE,
    ) -> None:
        """Line between two cell centers, with optional arrow heads."""
        self.set_size(max(x1, x2), max(y1, y2))

        self._emit_line(
            x1 * self.xs + self.xf,
            y1 * self.ys + self.yf,
            x2 * self.xs + self.xf,
            y2 * self.ys + self.yf,
        )

        if arrow:
            angle = math.degrees(math.atan2(y2 - y1, x2 - x1))

            if arrow & Arrow.START:
                self._arrow_head(x1, y1, angle - 90)
            if arrow & Arrow.END:
                self._arrow_head(x2, y2, angle + 90)

    def draw_hline(self, x1: int, y: int, x2: int, arrow: Arrow = Arrow.NONE) -> None:
        """Horizontal line spanning whole cells, edge to edge."""
        lo, hi = min(x1, x2), max(x1, x2)
        self.set_size(hi, y)

        self._emit_line(
            lo * self.xs,
            y * self.ys + self.yf,
            hi * self.xs + self.xs,
            y * self.ys + self.yf,
        )

        if arrow & Arrow.START:
            self._arrow_head(lo + 0.5, y, -90)
        if arrow & Arrow.END:
            self._arrow_head(hi - 0.5, y, 90)

    def draw_vline(self, x: int, y1: int, y2: int, arrow: Arrow = Arrow.NONE) -> None:
        """Vertical line spanning whole cells, edge to edge."""
        lo, hi = min(y1, y2), max(y1, y2)
        self.set_size(x, hi)

        self._emit_line(
            x * self.xs + self.xf,
            lo * self.ys,
            x * self.xs + self.xf,
            hi * self.ys + self.ys,
        )

        if arrow & Arrow.START:
            self._arrow_head(x, lo, 0)
        if arrow & Arrow.END:
            self._arrow_head(x, hi, 180)

    def draw_line_crossing(self, x: int, y: int) -> None:
        """A horizontal line with a half-circle hop for the vertical one."""
        self.set_size(x, y)

        cx = x * self.xs + self.xf
        cy = y * self.ys + self.yf

        self._emit_line(x * self.xs, cy, x * self.xs + self.xs, cy)
        self._emit_arc(cx, cy, self.xf, self.yf, -90, 90)

    def draw_marker(
        self,
        x: int,
        y: int,
        kind: MarkerKind,
        up: bool,
        right: bool,
        down: bool,
        left: bool,
    ) -> None:
        """Cell-centered marker with stub connectors toward flagged neighbors."""
        if kind not in MARKER_KINDS:
            logger.debug("Ignoring unknown marker kind %r at %d,%d", kind, x, y)
            return

        self.set_size(x, y)

        cx = x * self.xs + self.xf
        cy = y * self.ys + self.yf

        # connectors
        if left or right:
            self._emit_line(
                x * self.xs + (0 if left else self.xf),
                cy,
                cx + (self.xf if right else 0),
                cy,
            )
        if up or down:
            self._emit_line(
                cx,
                y * self.ys + (0 if up else self.yf),
                cx,
                cy + (self.yf if down else 0),
            )

        hxf = self.xf / 2
        hyf = self.yf / 2

        if kind == "x":
            self._emit_line(
                x * self.xs + hxf,
                y * self.ys + hyf,
                x * self.xs + self.xs - hxf,
                y * self.ys + self.ys - hyf,
            )
            self._emit_line(
                x * self.xs + self.xs - hxf,
                y * self.ys + hyf,
                x * self.xs + hxf,
                y * self.ys + self.ys - hyf,
            )
        elif kind == "o":
            self._emit_ellipse(cx, cy, hxf, hyf, fill=self.bg)

    def draw_text(self, x: int, y: int, text: str) -> None:
        """Text anchored at the cell's baseline."""
        self.set_size(x + len(text), y)

        self._emit_text(x * self.xs, (y + 1) * self.ys - self.yf / 2, text)

    def draw_label(self, x: int, y: int, text: str, round: bool = False) -> None:
        """Text framed by a rectangle: len(text) + 1 cells wide, 2 tall."""
        self.draw_rectangle(x, y, x + len(text) + 1, y + 2, round)
        self.draw_text(x + 1, y + 1, text)

    def draw_corner(self, x: int, y: int, type: CornerType, round: bool = False) -> None:
        """Corner joining a horizontal and a vertical line.

        tl connects right and down, tr left and down, bl up and right,
        br up and left. Rounded corners are a quarter of the ellipse centered
        on the matching cell corner.
        """
        rotation = {
            "br": (0.0, 0.0, 0, 90),
            "bl": (self.xs, 0.0, 90, 180),
            "tl": (self.xs, self.ys, 180, 270),
            "tr": (0.0, self.ys, 270, 360),
        }

        if type not in rotation:
            logger.debug("Ignoring unknown corner type %r at %d,%d", type, x, y)
            return

        ox, oy, start, end = rotation[type]

        self.set_size(x, y)

        if round:
            self._emit_arc(x * self.xs + ox, y * self.ys + oy, self.xf, self.yf, start, end)
        else:
            self.draw_marker(
                x, y, "+",
                type in ("br", "bl"),
                type in ("bl", "tl"),
                type in ("tl", "tr"),
                type in ("tr", "br"),
            )

    def draw_arrow_head(self, x: float, y: float, angle: float) -> None:
        """Filled triangle at the cell center, rotated by angle degrees.

        An angle of 0 points up; 90 right, 180 down, -90 left.
        """
        self.set_size(x, y)
        self._arrow_head(x, y, angle)

    def draw_connection(
        self,
        points: Sequence[CellPoint | None],
        arrow: Arrow = Arrow.NONE,
        round: bool = False,
    ) -> None:
        """Draw an explicit point list as axis-aligned lines and corners."""
        plan = plan_connection(points, arrow, round)

        for step in plan.steps:
            if isinstance(step, Segment):
                self.draw_line(step.x1, step.y1, step.x2, step.y2)
            elif isinstance(step, Corner):
                self.draw_corner(step.x, step.y, step.type, round)

        for head in plan.arrows:
            self.draw_arrow_head(head.x, head.y, head.angle)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _center(self, p: Point) -> Point:
        """Pixel position of a cell's center."""
        return Point(x=p.x * self.xs + self.xf, y=p.y * self.ys + self.yf)

    def _arrow_head(self, x: float, y: float, angle: float) -> None:
        rad = math.radians(angle)
        cos, sin = math.cos(rad), math.sin(rad)
        cx = x * self.xs + self.xf
        cy = y * self.ys + self.yf

        def rotate(px: float, py: float) -> Point:
            return Point(x=cx + px * cos - py * sin, y=cy + py * cos + px * sin)

        self._emit_polygon(
            [rotate(-self.xf, 0), rotate(0, -self.yf), rotate(self.xf, 0)],
            fill=self.stroke["color"],
        )

    def _debug_overlay(self) -> DebugOverlay:
        """Grid lines per cell, measured extent and a "w,h" label."""
        cw, ch = self.get_size(True)
        width = cw * self.xs
        height = ch * self.ys

        lines: list[tuple[float, float, float, float]] = []
        for x in range(cw):
            lines.append((x * self.xs, 0.0, x * self.xs, height))
        for y in range(ch):
            lines.append((0.0, y * self.ys, width, y * self.ys))

        return DebugOverlay(
            lines=lines,
            width=width,
            height=height,
            label=f"{cw},{ch}",
            label_x=0.0,
            label_y=self.ys - self.yf / 2,
        )

    # ========================================================================
    # Backend hooks
    # ========================================================================

    @abstractmethod
    def _create_child(self) -> DrawingContext: ...

    @abstractmethod
    def _emit_translate(self, px: float, py: float) -> None: ...

    @abstractmethod
    def _emit_line(self, x1: float, y1: float, x2: float, y2: float) -> None: ...

    @abstractmethod
    def _emit_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        radius: tuple[float, float] | None,
    ) -> None: ...

    @abstractmethod
    def _emit_ellipse(
        self, cx: float, cy: float, rx: float, ry: float, fill: str
    ) -> None: ...

    @abstractmethod
    def _emit_arc(
        self, cx: float, cy: float, rx: float, ry: float, start: float, end: float
    ) -> None:
        """Unfilled elliptic arc, clockwise from start to end (degrees)."""

    @abstractmethod
    def _emit_polygon(self, points: list[Point], fill: str) -> None: ...

    @abstractmethod
    def _emit_bezier(self, p0: Point, c1: Point, c2: Point, p1: Point) -> None: ...

    @abstractmethod
    def _emit_path(self, d: str) -> None: ...

    @abstractmethod
    def _emit_text(self, x: float, y: float, text: str) -> None: ...

    def _apply_stroke(self, changes: dict) -> None:
        pass

    def _apply_fill(self, changes: dict) -> None:
        pass

    def _apply_font(self, changes: dict) -> None:
        pass
