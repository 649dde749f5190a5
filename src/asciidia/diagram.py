from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from .backends import create_backend
from .context import DrawingContext
from .types import Arrow, Axis, CornerType, DiagramOptions, MarkerKind

logger = logging.getLogger(__name__)

# ============================================================================
# ASCII diagram scanner
#
# Reads a character grid cell by cell (row-major) and turns it into drawing
# primitives:
#
#   -  |        horizontal / vertical line
#   <  >  ^  V  arrow heads at line ends
#   x  o  +     cross, circle and plain junction markers
#   /  \        rounded corners
#   C           vertical line hopping over a horizontal one
#
# Anything else that is not blank is text. Corners, markers and crossings
# are recorded as marks; adjacent line glyphs are merged into line entities
# and adjacent text characters into text runs.
# ============================================================================


class GlyphClass(Enum):
    BLANK = "blank"
    LINE_H = "line_h"
    LINE_V = "line_v"
    ARROW_LEFT = "arrow_left"
    ARROW_RIGHT = "arrow_right"
    ARROW_UP = "arrow_up"
    ARROW_DOWN = "arrow_down"
    CROSS = "cross"
    CIRCLE = "circle"
    PLUS = "plus"
    CORNER_TL_BR = "corner_tl_br"
    CORNER_TR_BL = "corner_tr_bl"
    CROSS_ALL = "cross_all"
    TEXT = "text"


GLYPHS: dict[str, GlyphClass] = {
    "-": GlyphClass.LINE_H,
    "|": GlyphClass.LINE_V,
    "<": GlyphClass.ARROW_LEFT,
    ">": GlyphClass.ARROW_RIGHT,
    "^": GlyphClass.ARROW_UP,
    "V": GlyphClass.ARROW_DOWN,
    "x": GlyphClass.CROSS,
    "o": GlyphClass.CIRCLE,
    "+": GlyphClass.PLUS,
    "/": GlyphClass.CORNER_TL_BR,
    "\\": GlyphClass.CORNER_TR_BL,
    "C": GlyphClass.CROSS_ALL,
}

MARKER_GLYPHS = {
    GlyphClass.CROSS: "x",
    GlyphClass.CIRCLE: "o",
    GlyphClass.PLUS: "+",
}

_H_GLYPHS = (GlyphClass.LINE_H, GlyphClass.ARROW_LEFT, GlyphClass.ARROW_RIGHT)


def classify(ch: str) -> GlyphClass:
    if not ch.strip():
        return GlyphClass.BLANK
    return GLYPHS.get(ch, GlyphClass.TEXT)


# ============================================================================
# Scan results
# ============================================================================


@dataclass(slots=True)
class LineEntity:
    """A maximal run of line glyphs on one row (H) or column (V)."""

    axis: Axis
    x1: int
    y1: int
    x2: int
    y2: int
    arrow: Arrow = Arrow.NONE


@dataclass(slots=True)
class TextRun:
    x: int
    y: int
    text: str


@dataclass(slots=True)
class Mark:
    """A primitive drawn in place of a single cell."""

    kind: Literal["corner", "marker", "crossing"]
    x: int
    y: int
    corner: CornerType | None = None
    marker: MarkerKind | None = None
    # up, right, down, left
    connectors: tuple[bool, bool, bool, bool] = (False, False, False, False)


@dataclass(slots=True)
class GridScan:
    marks: list[Mark] = field(default_factory=list)
    texts: list[TextRun] = field(default_factory=list)
    lines: list[LineEntity] = field(default_factory=list)
    # (axis, row for H / column for V) -> index of the last line entity there
    open_lines: dict[tuple[Axis, int], int] = field(default_factory=dict)
    # row -> index of the last text run on that row
    open_texts: dict[int, int] = field(default_factory=dict)


class Grid:
    """Ragged character grid; out-of-range lookups are empty."""

    def __init__(self, text: str) -> None:
        self.rows = text.splitlines()

    def at(self, x: int, y: int) -> str:
        if y < 0 or y >= len(self.rows) or x < 0 or x >= len(self.rows[y]):
            return ""
        return self.rows[y][x]

    def neighbors(self, x: int, y: int) -> tuple[str, str, str, str]:
        """Characters above, right, below and left of a cell."""
        return (
            self.at(x, y - 1),
            self.at(x + 1, y),
            self.at(x, y + 1),
            self.at(x - 1, y),
        )

    def cells(self):
        for y, row in enumerate(self.rows):
            for x, ch in enumerate(row):
                yield x, y, ch


# ============================================================================
# Merging
# ============================================================================


def merge_line(scan: GridScan, x: int, y: int, glyph: GlyphClass, prev: str) -> None:
    """Extend the open line entity of the row / column or start a new one.

    prev is the character before this cell along the line's axis (left for
    horizontal lines, above for vertical ones).
    """
    if glyph in _H_GLYPHS:
        axis: Axis = "H"
        key = ("H", y)
        pos = x
        opening, closing = GlyphClass.ARROW_LEFT, GlyphClass.ARROW_RIGHT
        after_arrow = prev == ">"
    else:
        axis = "V"
        key = ("V", x)
        pos = y
        opening, closing = GlyphClass.ARROW_UP, GlyphClass.ARROW_DOWN
        after_arrow = prev == "V"

    idx = scan.open_lines.get(key)

    if idx is not None and glyph is not opening and not after_arrow:
        line = scan.lines[idx]
        end = line.x2 if axis == "H" else line.y2

        if end == pos - 1:
            if axis == "H":
                line.x2 = pos
            else:
                line.y2 = pos
            if glyph is closing:
                line.arrow |= Arrow.END
            return

    scan.lines.append(LineEntity(
        axis=axis,
        x1=x, y1=y, x2=x, y2=y,
        arrow=Arrow.START if glyph is opening else Arrow.NONE,
    ))
    scan.open_lines[key] = len(scan.lines) - 1


def merge_text(scan: GridScan, x: int, y: int, ch: str) -> None:
    idx = scan.open_texts.get(y)

    if idx is not None:
        run = scan.texts[idx]
        if run.x + len(run.text) == x:
            run.text += ch
            return

    scan.texts.append(TextRun(x=x, y=y, text=ch))
    scan.open_texts[y] = len(scan.texts) - 1


# ============================================================================
# Scanning
# ============================================================================


def scan_diagram(text: str) -> GridScan:
    """Classify every cell of an ASCII diagram, first matching rule wins."""
    grid = Grid(text)
    scan = GridScan()

    for x, y, ch in grid.cells():
        glyph = classify(ch)
        if glyph is GlyphClass.BLANK:
            continue

        up, right, down, left = grid.neighbors(x, y)

        if glyph is GlyphClass.CORNER_TL_BR and (
            (up == "|" and left == "-") or (right == "-" and down == "|")
        ):
            if up == "|" and left == "-":
                scan.marks.append(Mark(kind="corner", x=x, y=y, corner="br"))
            if right == "-" and down == "|":
                scan.marks.append(Mark(kind="corner", x=x, y=y, corner="tl"))

        elif glyph is GlyphClass.CORNER_TR_BL and (
            (up == "|" and right == "-") or (down == "|" and left == "-")
        ):
            if up == "|" and right == "-":
                scan.marks.append(Mark(kind="corner", x=x, y=y, corner="bl"))
            if down == "|" and left == "-":
                scan.marks.append(Mark(kind="corner", x=x, y=y, corner="tr"))

        elif glyph in MARKER_GLYPHS and (
            up == "|" or right == "-" or down == "|" or left == "-"
        ):
            scan.marks.append(Mark(
                kind="marker",
                x=x, y=y,
                marker=MARKER_GLYPHS[glyph],
                connectors=(up == "|", right == "-", down == "|", left == "-"),
            ))

        elif glyph is GlyphClass.CROSS_ALL and (
            up == "|" and right == "-" and down == "|" and left == "-"
        ):
            scan.marks.append(Mark(kind="crossing", x=x, y=y))

        elif (
            glyph is GlyphClass.LINE_H
            or (glyph is GlyphClass.ARROW_LEFT and right == "-")
            or (glyph is GlyphClass.ARROW_RIGHT and left == "-")
        ):
            merge_line(scan, x, y, glyph, left)

        elif (
            glyph is GlyphClass.LINE_V
            or (glyph is GlyphClass.ARROW_UP and down == "|")
            or (glyph is GlyphClass.ARROW_DOWN and up == "|")
        ):
            merge_line(scan, x, y, glyph, up)

        else:
            merge_text(scan, x, y, ch)

    logger.debug(
        "Scanned %d rows: %d marks, %d text runs, %d lines",
        len(grid.rows), len(scan.marks), len(scan.texts), len(scan.lines),
    )

    return scan


# ============================================================================
# Replay
# ============================================================================


def draw_scan(ctx: DrawingContext, scan: GridScan) -> None:
    """Replay a scan: marks first, then text runs, then line entities."""
    for mark in scan.marks:
        if mark.kind == "corner":
            ctx.draw_corner(mark.x, mark.y, mark.corner, True)
        elif mark.kind == "marker":
            ctx.draw_marker(mark.x, mark.y, mark.marker, *mark.connectors)
        elif mark.kind == "crossing":
            ctx.draw_line_crossing(mark.x, mark.y)

    for run in scan.texts:
        ctx.draw_text(run.x, run.y, run.text)

    for line in scan.lines:
        if line.axis == "H":
            ctx.draw_hline(line.x1, line.y1, line.x2, line.arrow)
        else:
            ctx.draw_vline(line.x1, line.y1, line.y2, line.arrow)


def draw_diagram(ctx: DrawingContext, text: str) -> None:
    draw_scan(ctx, scan_diagram(text))


def render_diagram(text: str, options: DiagramOptions | dict | None = None):
    """Render an ASCII diagram to a document in the configured format.

    svg returns the SVG text, every other format the list of MVG commands.
    """
    options = DiagramOptions.from_value(options)
    backend = create_backend(options)

    draw_diagram(backend.get_context(), text)

    return backend.get_document()
