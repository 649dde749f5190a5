from __future__ import annotations

import logging
import shutil
import subprocess

from ..context import DrawingContext
from ..styles import FONT_FAMILY, format_mvg_number as n
from ..types import DebugMode, Point
from .base import Backend

logger = logging.getLogger(__name__)

# ============================================================================
# MVG -- ImageMagick's vector graphics command language. Each context keeps
# a flat list of commands; nested contexts sit in that list in place and are
# expanded when the commands are collected.
# ============================================================================


class RasterizerError(RuntimeError):
    """The external rasterizer exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = "") -> None:
        message = f"convert exited with status {returncode}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def _quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


class MvgContext(DrawingContext):
    def __init__(self) -> None:
        super().__init__()
        self.commands: list[str | MvgContext] = []

    def get_commands(self) -> list[str]:
        """Flatten this context and its children into MVG commands."""
        mvg = [
            "push graphic-context",
            f"font {FONT_FAMILY}",
            f"font-size {n(self.ys)}",
        ]

        for cmd in self.commands:
            if isinstance(cmd, MvgContext):
                mvg.extend(cmd.get_commands())
            else:
                mvg.append(cmd)

        if self.debug is not DebugMode.OFF:
            overlay = self._debug_overlay()

            mvg.append(f"translate {n(-self.tx * self.xs)},{n(-self.ty * self.ys)}")
            mvg.append("push graphic-context")
            mvg.append("fill transparent")

            for x1, y1, x2, y2 in overlay.lines:
                mvg.append(f"line {n(x1)},{n(y1)} {n(x2)},{n(y2)}")

            mvg.append(f"rectangle 0,0 {n(overlay.width)},{n(overlay.height)}")
            mvg.append(
                f"text {n(overlay.label_x)},{n(overlay.label_y)} {_quote(overlay.label)}"
            )
            mvg.append("pop graphic-context")

        mvg.append("pop graphic-context")

        return mvg

    def add_command(self, command: str) -> None:
        """Append a raw MVG command."""
        self.commands.append(command)

    def clear_commands(self) -> None:
        self.commands = []

    # ========================================================================
    # Backend hooks
    # ========================================================================

    def _create_child(self) -> MvgContext:
        child = MvgContext()
        self.commands.append(child)
        return child

    def _isolated(self, *commands: str) -> None:
        self.commands.append("push graphic-context")
        self.commands.extend(commands)
        self.commands.append("pop graphic-context")

    def _emit_translate(self, px: float, py: float) -> None:
        self.commands.append(f"translate {n(px)},{n(py)}")

    def _emit_line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self.commands.append(f"line {n(x1)},{n(y1)} {n(x2)},{n(y2)}")

    def _emit_rect(self, x, y, width, height, radius) -> None:
        if radius is None:
            self.commands.append(
                f"rectangle {n(x)},{n(y)} {n(x + width)},{n(y + height)}"
            )
        else:
            rx, ry = radius
            self.commands.append(
                f"roundrectangle {n(x)},{n(y)} {n(x + width)},{n(y + height)} "
                f"{n(rx)},{n(ry)}"
            )

    def _emit_ellipse(self, cx, cy, rx, ry, fill) -> None:
        self._isolated(f"fill {fill} ellipse {n(cx)},{n(cy)} {n(rx)},{n(ry)} 0,360")

    def _emit_arc(self, cx, cy, rx, ry, start, end) -> None:
        self._isolated(
            f"fill transparent ellipse {n(cx)},{n(cy)} {n(rx)},{n(ry)} "
            f"{n(start)},{n(end)}"
        )

    def _emit_polygon(self, points: list[Point], fill: str) -> None:
        first, *rest = points
        self._isolated(
            f"fill {fill} path 'M {n(first.x)},{n(first.y)} L "
            + " ".join(f"{n(p.x)},{n(p.y)}" for p in rest)
            + " Z'"
        )

    def _emit_bezier(self, p0: Point, c1: Point, c2: Point, p1: Point) -> None:
        self.commands.append(
            f"path 'M {n(p0.x)},{n(p0.y)} C {n(c1.x)},{n(c1.y)} "
            f"{n(c2.x)},{n(c2.y)} {n(p1.x)},{n(p1.y)}'"
        )

    def _emit_path(self, d: str) -> None:
        self.commands.append(f"path {_quote(d)}")

    def _emit_text(self, x: float, y: float, text: str) -> None:
        self.commands.append(f"text {n(x)},{n(y)} {_quote(text)}")

    def _apply_stroke(self, changes: dict) -> None:
        parts = []
        if "antialias" in changes:
            parts.append(f"stroke-antialias {int(changes['antialias'])}")
        if "width" in changes:
            parts.append(f"stroke-width {n(changes['width'])}")
        if "color" in changes:
            parts.append(f"stroke {changes['color']}")
        if "opacity" in changes:
            parts.append(f"stroke-opacity {n(changes['opacity'])}")
        self.commands.append(" ".join(parts))

    def _apply_fill(self, changes: dict) -> None:
        parts = []
        if "color" in changes:
            parts.append(f"fill {changes['color']}")
        if "opacity" in changes:
            parts.append(f"fill-opacity {n(changes['opacity'])}")
        self.commands.append(" ".join(parts))

    def _apply_font(self, changes: dict) -> None:
        parts = []
        if "family" in changes:
            parts.append(f"font {changes['family']}")
        if "size" in changes:
            parts.append(f"font-size {n(changes['size'])}")
        self.commands.append(" ".join(parts))


# ============================================================================
# Backends
# ============================================================================


class ImageMagickBackend(Backend):
    """Raster output (png, gif, jpg, ...) by piping MVG through convert."""

    format = "png"

    def __init__(self, colors=None, fmt: str | None = None) -> None:
        super().__init__(colors)
        if fmt:
            self.format = fmt

    def _create_context(self) -> MvgContext:
        return MvgContext()

    def get_document(self) -> list[str]:
        """MVG commands, opening with the theme's stroke and fill colors."""
        first, *rest = self.get_context().get_commands()
        return [first, f"stroke {self.colors.fg}", f"fill {self.colors.fill}", *rest]

    def test_env(self) -> tuple[bool, str]:
        if shutil.which("convert") is None:
            logger.warning("ImageMagick convert not found in PATH")
            return (False, 'imagemagick "convert" is not found in path')
        return (True, "")

    def build_command(self, name: str, document: list[str], fmt: str | None = None) -> list[str]:
        w, h = self.get_size()

        cmd = [
            "convert",
            "-size", f"{w}x{h}",
            f"xc:{self.colors.bg}",
            "-stroke", self.colors.fg,
            "-fill", "none",
            "-draw", " ".join(document),
        ]
        if self.scale_to:
            cmd += ["-scale", self.scale_to]
        cmd.append(f"{fmt or self.format}:{name}")

        return cmd

    def save_file(self, name: str, document: list[str], fmt: str | None = None) -> None:
        """Rasterize the commands; blocks until convert exits.

        Raises RasterizerError when convert reports a failure.
        """
        cmd = self.build_command(name, document, fmt)
        logger.debug("Running %s", " ".join(cmd[:4] + ["..."] + cmd[-1:]))

        # stdout is left alone, "-" writes the image there
        result = subprocess.run(cmd, stderr=subprocess.PIPE, text=True)

        if result.returncode != 0:
            raise RasterizerError(result.returncode, (result.stderr or "").strip())


class MvgBackend(ImageMagickBackend):
    """Writes the MVG commands themselves, no external tool needed."""

    format = "mvg"

    def test_env(self) -> tuple[bool, str]:
        return (True, "")

    def save_file(self, name: str, document: list[str], fmt: str | None = None) -> None:
        self._write_text(name, "\n".join(document))
