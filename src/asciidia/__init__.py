"""asciidia -- Render ASCII diagrams to SVG, MVG and bitmap images."""

from __future__ import annotations

from .types import Arrow, DebugMode, DiagramOptions, Point
from .theme import DEFAULTS, THEMES, DiagramColors, resolve_colors
from .context import DrawingContext
from .connection import normalize_connection, plan_connection
from .spline import get_control_points
from .backends import (
    Backend,
    ImageMagickBackend,
    MvgBackend,
    RasterizerError,
    SvgBackend,
    create_backend,
    get_backend,
)
from .diagram import GridScan, draw_scan, render_diagram, scan_diagram
from .tree import directory_tree, render_tree, scan_tree
from .flow import layout_flow, parse_flow, render_flow

__all__ = [
    "render",
    "render_diagram",
    "render_tree",
    "render_flow",
    "scan_diagram",
    "scan_tree",
    "draw_scan",
    "directory_tree",
    "parse_flow",
    "layout_flow",
    "get_backend",
    "create_backend",
    "get_control_points",
    "normalize_connection",
    "plan_connection",
    "THEMES",
    "DEFAULTS",
    "Arrow",
    "Backend",
    "DebugMode",
    "DiagramColors",
    "DiagramOptions",
    "DrawingContext",
    "GridScan",
    "ImageMagickBackend",
    "MvgBackend",
    "Point",
    "RasterizerError",
    "SvgBackend",
    "resolve_colors",
]

_RENDERERS = {
    "diagram": render_diagram,
    "tree": render_tree,
    "flow": render_flow,
}


def render(
    text: str,
    type: str = "diagram",
    options: DiagramOptions | dict | None = None,
):
    """Render diagram text of the given type.

    Returns the SVG text for the svg format, the MVG command list otherwise.
    """
    if type not in _RENDERERS:
        raise ValueError(
            f'Unknown diagram type "{type}" (available: {", ".join(_RENDERERS)})'
        )
    return _RENDERERS[type](text, options)
