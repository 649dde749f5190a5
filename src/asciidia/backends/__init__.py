from __future__ import annotations

import logging

from ..styles import CELL_SIZE
from ..theme import DiagramColors, resolve_colors
from ..types import DiagramOptions
from .base import Backend
from .imagemagick import ImageMagickBackend, MvgBackend, MvgContext, RasterizerError
from .svg import SvgBackend, SvgContext

logger = logging.getLogger(__name__)

__all__ = [
    "Backend",
    "ImageMagickBackend",
    "MvgBackend",
    "MvgContext",
    "RasterizerError",
    "SvgBackend",
    "SvgContext",
    "create_backend",
    "get_backend",
]


def get_backend(fmt: str = "svg", colors: DiagramColors | None = None) -> Backend:
    """Pick the backend for an output format.

    svg and mvg are written directly, every other format is rasterized by
    ImageMagick.
    """
    if fmt == "svg":
        backend: Backend = SvgBackend(colors)
    elif fmt == "mvg":
        backend = MvgBackend(colors)
    else:
        backend = ImageMagickBackend(colors, fmt)

    logger.debug("Using %s for format %r", type(backend).__name__, fmt)
    return backend


def create_backend(options: DiagramOptions) -> Backend:
    """Build a backend configured from render options."""
    colors = resolve_colors(options.theme, options.bg, options.fg)
    backend = get_backend(options.format, colors)

    width = options.cell_width or CELL_SIZE["width"]
    if options.cell_height:
        height = options.cell_height
    elif options.cell_width:
        height = options.cell_width
    else:
        height = CELL_SIZE["height"]
    backend.set_cell_size(width, height)

    if options.scale_to:
        backend.set_scale_to(options.scale_to)

    backend.enable_debug(options.debug)

    return backend
