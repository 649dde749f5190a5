from __future__ import annotations

# ============================================================================
# Cell metrics -- the size of one character cell on the canvas, in pixels.
# ============================================================================

CELL_SIZE = {
    "width": 10.0,
    "height": 15.0,
}

# Monospace font used for every text primitive
FONT_FAMILY = "Courier"

STROKE_WIDTH = 1

# Opacities applied when a context does not override them
OPACITY = {
    "fill": 1.0,
    "stroke": 1.0,
}

# ============================================================================
# Option patterns shared by the backends and the command line
# ============================================================================

# Post-render scaling: "WxH", either side may be omitted (but not both)
SCALE_PATTERN = r"^(\d*x\d+|\d+x\d*)$"

# Cell size: "N" (square cells) or "WxH"
CELL_PATTERN = r"^\d+(x\d+)?$"

# ============================================================================
# Number formatting
# ============================================================================


def format_mvg_number(value: float) -> str:
    """Format a pixel value the way MVG commands print numbers (``%f``)."""
    return f"{value:f}"


def format_svg_number(value: float) -> str:
    """Format a pixel value for an SVG attribute (shortest exact form)."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def format_color(color: str | tuple[int, int, int]) -> str:
    """Accept a CSS color string or an (r, g, b) tuple."""
    if isinstance(color, tuple):
        r, g, b = color
        return f"rgb({int(r)},{int(g)},{int(b)})"
    return color
