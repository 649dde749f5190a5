from __future__ import annotations

import math
import xml.etree.ElementTree as ET

from ..context import DrawingContext
from ..styles import format_svg_number as n
from ..types import DebugMode, Point
from .base import Backend

SVG_NS = "http://www.w3.org/2000/svg"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# ============================================================================
# SVG -- every context owns a <g>; translating nests a new <g transform>
# that receives all further drawing of that context.
# ============================================================================


class SvgContext(DrawingContext):
    def __init__(self, parent: ET.Element) -> None:
        super().__init__()
        self.group = ET.SubElement(parent, "g")
        self.node = self.group
        self._debug_node: ET.Element | None = None

    def render_debug(self) -> None:
        """(Re)build the debug overlay of this context and all children."""
        if self._debug_node is not None:
            self.group.remove(self._debug_node)
            self._debug_node = None

        if self.debug is not DebugMode.OFF:
            overlay = self._debug_overlay()
            g = ET.SubElement(self.group, "g", {"class": "debug"})

            for x1, y1, x2, y2 in overlay.lines:
                ET.SubElement(g, "line", {
                    "x1": n(x1), "y1": n(y1), "x2": n(x2), "y2": n(y2),
                    "style": self._style(),
                })

            ET.SubElement(g, "rect", {
                "x": "0", "y": "0",
                "width": n(overlay.width), "height": n(overlay.height),
                "style": self._style(fill="transparent"),
            })
            self._text_element(g, overlay.label_x, overlay.label_y, overlay.label)

            self._debug_node = g

        for child in self.children:
            child.context.render_debug()

    def _style(self, fill: str | None = None) -> str:
        return (
            f"fill: {fill or self.fill['color']}; "
            f"fill-opacity: {n(self.fill['opacity'])}; "
            f"stroke: {self.stroke['color']}; "
            f"stroke-opacity: {n(self.stroke['opacity'])}; "
            f"stroke-width: {n(self.stroke['width'])};"
        )

    def _text_element(self, parent: ET.Element, x: float, y: float, text: str) -> None:
        el = ET.SubElement(parent, "text", {
            "x": n(x),
            "y": n(y),
            "font-size": n(self.font["size"] or self.ys),
            "font-family": self.font["family"],
            "fill": self.stroke["color"],
        })
        el.text = text

    # ========================================================================
    # Backend hooks
    # ========================================================================

    def _create_child(self) -> SvgContext:
        return SvgContext(self.node)

    def _emit_translate(self, px: float, py: float) -> None:
        self.node = ET.SubElement(self.node, "g", {
            "transform": f"translate({n(px)} {n(py)})",
        })

    def _emit_line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        ET.SubElement(self.node, "line", {
            "x1": n(x1), "y1": n(y1), "x2": n(x2), "y2": n(y2),
            "style": self._style(),
        })

    def _emit_rect(self, x, y, width, height, radius) -> None:
        attrs = {
            "x": n(x), "y": n(y),
            "width": n(width), "height": n(height),
            "style": self._style(),
        }
        if radius is not None:
            attrs["rx"], attrs["ry"] = n(radius[0]), n(radius[1])
        ET.SubElement(self.node, "rect", attrs)

    def _emit_ellipse(self, cx, cy, rx, ry, fill) -> None:
        ET.SubElement(self.node, "ellipse", {
            "cx": n(cx), "cy": n(cy), "rx": n(rx), "ry": n(ry),
            "style": self._style(fill=fill),
        })

    def _emit_arc(self, cx, cy, rx, ry, start, end) -> None:
        a1, a2 = math.radians(start), math.radians(end)
        sx, sy = cx + rx * math.cos(a1), cy + ry * math.sin(a1)
        ex, ey = cx + rx * math.cos(a2), cy + ry * math.sin(a2)
        large = 1 if end - start > 180 else 0

        ET.SubElement(self.node, "path", {
            "d": f"M {n(sx)},{n(sy)} A {n(rx)} {n(ry)} 0 {large} 1 {n(ex)},{n(ey)}",
            "style": self._style(fill="transparent"),
        })

    def _emit_polygon(self, points: list[Point], fill: str) -> None:
        first, *rest = points
        g = ET.SubElement(self.node, "g")
        ET.SubElement(g, "path", {
            "d": f"M {n(first.x)},{n(first.y)} L "
            + " ".join(f"{n(p.x)},{n(p.y)}" for p in rest)
            + " Z",
            "style": self._style(fill=fill),
        })

    def _emit_bezier(self, p0: Point, c1: Point, c2: Point, p1: Point) -> None:
        ET.SubElement(self.node, "path", {
            "d": (
                f"M {n(p0.x)},{n(p0.y)} C {n(c1.x)},{n(c1.y)} "
                f"{n(c2.x)},{n(c2.y)} {n(p1.x)},{n(p1.y)}"
            ),
            "style": self._style(),
        })

    def _emit_path(self, d: str) -> None:
        ET.SubElement(self.node, "path", {"d": d, "style": self._style()})

    def _emit_text(self, x: float, y: float, text: str) -> None:
        self._text_element(self.node, x, y, text)


class SvgBackend(Backend):
    format = "svg"

    def __init__(self, colors=None) -> None:
        super().__init__(colors)
        self.root: ET.Element | None = None

    def _create_context(self) -> SvgContext:
        self.root = ET.Element("svg", {"xmlns": SVG_NS, "version": "1.1"})
        return SvgContext(self.root)

    def get_document(self) -> str:
        """Serialize the drawing as a standalone SVG document."""
        context = self.get_context()
        context.render_debug()

        w, h = self.get_size()
        self.root.set("viewBox", f"0 0 {w} {h}")
        self.root.set("width", str(w))
        self.root.set("height", str(h))

        # crisp edges: 1px strokes on even cell sizes fall between pixels
        xs, ys = context.get_cell_size()
        tx = 0.5 if xs.is_integer() and int(xs) % 2 == 0 else 0
        ty = 0.5 if ys.is_integer() and int(ys) % 2 == 0 else 0

        if tx or ty:
            context.group.set("transform", f"translate({n(tx)} {n(ty)})")
        else:
            context.group.attrib.pop("transform", None)

        return XML_DECLARATION + ET.tostring(self.root, encoding="unicode")

    def save_file(self, name: str, document: str, fmt: str | None = None) -> None:
        self._write_text(name, document)
