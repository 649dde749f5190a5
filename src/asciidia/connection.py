from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from .types import Arrow, CellPoint, CornerType

# ============================================================================
# Connection paths -- explicit point lists drawn as axis-aligned lines with
# (optionally rounded) corners.
#
# Used by callers that position things themselves instead of scanning a
# character grid, e.g. the flow layout engine connecting boxes.
# ============================================================================


@dataclass(slots=True)
class Segment:
    """Straight line between two cell centers (fractional when shortened)."""

    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(slots=True)
class Corner:
    x: int
    y: int
    type: CornerType


@dataclass(slots=True)
class ArrowHead:
    x: float
    y: float
    angle: float


@dataclass(slots=True)
class ConnectionPlan:
    """Primitive calls needed to draw one connection, in drawing order."""

    steps: list[Segment | Corner] = field(default_factory=list)
    arrows: list[ArrowHead] = field(default_factory=list)


# Corner orientation by (axis order, incoming sign, outgoing sign).
# "xy": moved along x into the corner, leaves along y; "yx" the reverse.
_CORNERS: dict[tuple[str, int, int], CornerType] = {
    ("xy", 1, 1): "tr",
    ("xy", 1, -1): "br",
    ("xy", -1, 1): "tl",
    ("xy", -1, -1): "bl",
    ("yx", 1, 1): "bl",
    ("yx", 1, -1): "br",
    ("yx", -1, 1): "tl",
    ("yx", -1, -1): "tr",
}


# ============================================================================
# Normalization
# ============================================================================


def normalize_connection(points: Sequence[CellPoint | None]) -> list[tuple[int, int]]:
    """Clean up a raw point list so every segment is axis-aligned.

    - points that are ``None`` or miss a coordinate are dropped
    - a point equal to its predecessor is dropped
    - a diagonal jump gets an intermediate point ``(prev_x, new_y)``
    """
    result: list[tuple[int, int]] = []

    for point in points:
        if point is None or len(point) != 2:
            continue
        x, y = point
        if x is None or y is None:
            continue
        x, y = int(x), int(y)

        if result:
            px, py = result[-1]
            if (px, py) == (x, y):
                continue
            if px != x and py != y:
                result.append((px, y))

        result.append((x, y))

    return result


# ============================================================================
# Planning
# ============================================================================


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _step(a: tuple[int, int], b: tuple[int, int]) -> tuple[str, int, int]:
    """Axis and unit direction of the move from a to b."""
    dx = _sign(b[0] - a[0])
    dy = _sign(b[1] - a[1])
    return ("x" if dx != 0 else "y"), dx, dy


def plan_connection(
    points: Sequence[CellPoint | None],
    arrow: Arrow = Arrow.NONE,
    round: bool = False,
) -> ConnectionPlan:
    """Turn a raw point list into line, corner and arrow head steps.

    Collinear points continue the current line. At every perpendicular
    direction change the incoming line is closed (half a cell short of the
    corner when rounding) and a corner is placed on the turning point.
    Arrow heads only go on the true first and last point.
    """
    pts = normalize_connection(points)
    plan = ConnectionPlan()

    if len(pts) < 2:
        return plan

    inset = 0.5 if round else 0.0

    # axis of the segment entering the current point, then the one leaving it
    recent: deque[str] = deque([_step(pts[0], pts[1])[0]], maxlen=2)

    run_x, run_y = float(pts[0][0]), float(pts[0][1])

    for i in range(1, len(pts) - 1):
        cur = pts[i]
        axis, dx, dy = _step(pts[i - 1], cur)
        out_axis, out_dx, out_dy = _step(cur, pts[i + 1])
        recent.append(out_axis)

        order = "".join(recent)

        if order in ("xx", "yy"):
            if (out_dx, out_dy) == (dx, dy):
                # collinear, keep extending the current run
                continue
            # direction reversal on the same axis: close the run, no corner
            _add_segment(plan, run_x, run_y, float(cur[0]), float(cur[1]))
            run_x, run_y = float(cur[0]), float(cur[1])
            continue

        sign_in = dx if axis == "x" else dy
        sign_out = out_dx if out_axis == "x" else out_dy

        _add_segment(
            plan,
            run_x, run_y,
            cur[0] - dx * inset, cur[1] - dy * inset,
        )
        plan.steps.append(Corner(x=cur[0], y=cur[1], type=_CORNERS[(order, sign_in, sign_out)]))

        run_x = cur[0] + out_dx * inset
        run_y = cur[1] + out_dy * inset

    _add_segment(plan, run_x, run_y, float(pts[-1][0]), float(pts[-1][1]))

    if arrow & Arrow.START:
        angle = _angle(pts[0], pts[1])
        plan.arrows.append(ArrowHead(x=pts[0][0], y=pts[0][1], angle=angle - 90))
    if arrow & Arrow.END:
        angle = _angle(pts[-2], pts[-1])
        plan.arrows.append(ArrowHead(x=pts[-1][0], y=pts[-1][1], angle=angle + 90))

    return plan


def _add_segment(plan: ConnectionPlan, x1: float, y1: float, x2: float, y2: float) -> None:
    # rounded corners one cell apart leave nothing to draw in between
    if (x1, y1) == (x2, y2):
        return
    plan.steps.append(Segment(x1=x1, y1=y1, x2=x2, y2=y2))


def _angle(a: tuple[int, int], b: tuple[int, int]) -> float:
    return math.degrees(math.atan2(b[1] - a[1], b[0] - a[0]))
