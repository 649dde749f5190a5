from __future__ import annotations

import logging
import math
import re
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..context import DrawingContext
from ..styles import CELL_SIZE, SCALE_PATTERN
from ..theme import DiagramColors, resolve_colors

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Owns the root drawing context of one rendering and serializes it.

    The root context is created lazily on first use and picks up the cell
    size, debug flag and colors configured on the backend at that time.
    """

    format = ""

    def __init__(self, colors: DiagramColors | None = None) -> None:
        self.colors = colors or resolve_colors()
        self.context: DrawingContext | None = None
        self.cell_size = (CELL_SIZE["width"], CELL_SIZE["height"])
        self.scale_to: str | None = None
        self.debug = False

    def get_context(self) -> DrawingContext:
        if self.context is None:
            context = self._create_context()
            context.set_cell_size(*self.cell_size)
            context.enable_debug(self.debug, True)
            context.bg = self.colors.bg
            context.stroke["color"] = self.colors.fg
            context.fill["color"] = self.colors.fill
            self.context = context

        return self.context

    def get_size(self) -> tuple[int, int]:
        """Pixel size of the canvas needed for everything drawn so far."""
        w, h = self.get_context().get_size()
        return (int(math.ceil(w)), int(math.ceil(h)))

    def set_cell_size(self, width: float, height: float) -> None:
        self.cell_size = (float(width), float(height))
        if self.context is not None:
            self.context.set_cell_size(width, height)

    def set_scale_to(self, spec: str) -> None:
        """Scale the rendered image, "WxH" with either side optional."""
        if not re.match(SCALE_PATTERN, spec):
            raise ValueError(f'Invalid scale "{spec}", expected WxH, Wx or xH')
        self.scale_to = spec

    def enable_debug(self, enable: bool) -> None:
        self.debug = enable
        if self.context is not None:
            self.context.enable_debug(enable, True)

    def test_env(self) -> tuple[bool, str]:
        """Check that the tools needed by save_file are available."""
        return (True, "")

    @abstractmethod
    def _create_context(self) -> DrawingContext: ...

    @abstractmethod
    def get_document(self) -> Any:
        """Serialized drawing, in the representation save_file expects."""

    @abstractmethod
    def save_file(self, name: str, document: Any, fmt: str | None = None) -> None:
        """Write the document to a file, "-" for stdout."""

    def _write_text(self, name: str, text: str) -> None:
        if name == "-":
            sys.stdout.write(text)
            sys.stdout.flush()
        else:
            Path(name).write_text(text, encoding="utf-8")

        logger.debug("Wrote %d characters to %s", len(text), name)
