from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Literal

# ============================================================================
# Geometry
# ============================================================================


@dataclass(slots=True)
class Point:
    x: float
    y: float


# Cell coordinate as accepted by draw_connection -- either coordinate may be
# missing, such points are dropped during normalization.
CellPoint = tuple[int | None, int | None]


# ============================================================================
# Drawing vocabulary
# ============================================================================


class Arrow(IntFlag):
    """Arrow heads of a line. START and END combine to BOTH."""

    NONE = 0
    START = 1
    END = 2
    BOTH = START | END


# tl = top-left (connects right + down), tr = top-right (left + down),
# bl = bottom-left (up + right), br = bottom-right (up + left)
CornerType = Literal["tl", "tr", "bl", "br"]

# x = cross, o = circle, + = plain junction
MarkerKind = Literal["x", "o", "+"]

Axis = Literal["H", "V"]


class DebugMode(Enum):
    OFF = 0
    ON = 1
    PROPAGATE = 2


# ============================================================================
# Render options -- user-facing configuration
# ============================================================================


@dataclass(slots=True)
class DiagramOptions:
    # Output format: "svg", "mvg" or any raster format understood by convert
    format: str = "svg"
    cell_width: float | None = None
    cell_height: float | None = None
    # Post-render scale, "WxH" with either side optional
    scale_to: str | None = None
    debug: bool = False
    round_corners: bool = False
    theme: str | None = None
    bg: str | None = None
    fg: str | None = None

    @classmethod
    def from_value(cls, value: DiagramOptions | dict | None) -> DiagramOptions:
        """Normalize ``None``, a plain dict or an instance into options."""
        if value is None:
            return cls()
        if isinstance(value, dict):
            return cls(**value)
        return value
