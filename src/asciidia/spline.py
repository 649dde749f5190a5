from __future__ import annotations

from collections.abc import Sequence

from .types import Point

# ============================================================================
# Bezier control points for a smooth curve through a set of points
#
# Each consecutive pair of points becomes one cubic bezier segment. The two
# control points per segment are chosen so that first derivatives match at
# every interior point, which reduces to a tridiagonal linear system per
# coordinate channel. The system is solved in O(n) by forward elimination
# and back substitution -- no iteration, no convergence criteria.
#
# After O. V. Polikarpotchkin and P. Lee, "Draw a Smooth Curve through a Set
# of 2D Points with Bezier Primitives" (codeproject.com, 2009).
# ============================================================================


def _solve_first_control_points(rhs: list[float]) -> list[float]:
    """Solve the tridiagonal system for one channel of the first control points.

    Diagonal is 2 for the first row, 4 for interior rows and 3.5 for the
    last row; both off-diagonals are 1.
    """
    n = len(rhs)
    solution = [0.0] * n
    tmp = [0.0] * n

    b = 2.0
    solution[0] = rhs[0] / b

    # Forward elimination
    for i in range(1, n):
        tmp[i] = 1 / b
        b = (4.0 if i < n - 1 else 3.5) - tmp[i]
        solution[i] = (rhs[i] - solution[i - 1]) / b

    # Back substitution
    for i in range(1, n):
        solution[n - i - 1] -= tmp[n - i] * solution[n - i]

    return solution


def get_control_points(points: Sequence[Point]) -> tuple[list[Point], list[Point]]:
    """Return the first and second bezier control points for each segment.

    For ``n`` input points both returned lists have ``n - 1`` entries:
    segment ``i`` runs from ``points[i]`` via ``first[i]`` and ``second[i]``
    to ``points[i + 1]``.

    No validation is done: callers must pass at least two points.
    """
    n = len(points)

    if n == 2:
        # Straight line: control points at the thirds of the segment
        p0, p1 = points
        c1 = Point(x=(2 * p0.x + p1.x) / 3, y=(2 * p0.y + p1.y) / 3)
        c2 = Point(x=2 * c1.x - p0.x, y=2 * c1.y - p0.y)
        return [c1], [c2]

    # Right-hand side vectors
    rhs_x = [points[0].x + 2 * points[1].x]
    rhs_y = [points[0].y + 2 * points[1].y]

    for i in range(1, n - 2):
        rhs_x.append(4 * points[i].x + 2 * points[i + 1].x)
        rhs_y.append(4 * points[i].y + 2 * points[i + 1].y)

    rhs_x.append((8 * points[n - 2].x + points[n - 1].x) / 2)
    rhs_y.append((8 * points[n - 2].y + points[n - 1].y) / 2)

    xs = _solve_first_control_points(rhs_x)
    ys = _solve_first_control_points(rhs_y)

    first: list[Point] = []
    second: list[Point] = []

    for i in range(n - 1):
        first.append(Point(x=xs[i], y=ys[i]))

        if i < n - 2:
            second.append(Point(
                x=2 * points[i + 1].x - xs[i + 1],
                y=2 * points[i + 1].y - ys[i + 1],
            ))
        else:
            second.append(Point(
                x=(points[n - 1].x + xs[n - 2]) / 2,
                y=(points[n - 1].y + ys[n - 2]) / 2,
            ))

    return first, second
