from __future__ import annotations

import logging
from pathlib import Path

from .backends import create_backend
from .context import DrawingContext
from .diagram import Grid, GridScan, Mark, classify, draw_scan, merge_line, merge_text
from .types import DiagramOptions

logger = logging.getLogger(__name__)

# ============================================================================
# Tree diagrams -- directory-listing style trees:
#
#   project
#   +-docs
#   | +-api
#   +-src
#
# Junctions are "+" markers, "-" and "|" are lines, everything else is text.
# ============================================================================


def directory_tree(path: str | Path) -> str:
    """Build the ASCII tree of the sub-directories below path.

    Hidden directories are skipped, siblings are sorted by name.
    """
    root = Path(path)
    out = [root.resolve().name if root.name in ("", ".", "..") else root.name]
    _walk_directory(root, "", out)

    logger.debug("Built tree of %d directories below %s", len(out) - 1, root)

    return "\n".join(out)


def _walk_directory(path: Path, prefix: str, out: list[str]) -> None:
    dirs = sorted(
        (p for p in path.iterdir() if p.is_dir() and not p.name.startswith(".")),
        key=lambda p: p.name,
    )

    for i, sub in enumerate(dirs):
        last = i == len(dirs) - 1
        out.append(f"{prefix}+-{sub.name}")
        _walk_directory(sub, prefix + ("  " if last else "| "), out)


def scan_tree(text: str) -> GridScan:
    grid = Grid(text)
    scan = GridScan()

    for x, y, ch in grid.cells():
        if not ch.strip():
            continue

        up, right, down, left = grid.neighbors(x, y)

        if ch == "+" and right == "-":
            scan.marks.append(Mark(
                kind="marker",
                x=x, y=y,
                marker="+",
                connectors=(True, True, down in ("+", "|"), False),
            ))
        elif ch == "-" and (left in ("+", "-") or right in ("-", ">")):
            merge_line(scan, x, y, classify(ch), left)
        elif ch == ">" and left == "-":
            merge_line(scan, x, y, classify(ch), left)
        elif ch == "|" and (up in ("+", "|") or down in ("+", "|")):
            merge_line(scan, x, y, classify(ch), up)
        else:
            merge_text(scan, x, y, ch)

    return scan


def draw_tree(ctx: DrawingContext, text: str) -> None:
    draw_scan(ctx, scan_tree(text))


def render_tree(source: str | Path, options: DiagramOptions | dict | None = None):
    """Render a tree diagram; source is tree text or a directory path."""
    options = DiagramOptions.from_value(options)
    backend = create_backend(options)

    if isinstance(source, Path) or (
        "\n" not in source and source.strip() and Path(source).is_dir()
    ):
        source = directory_tree(source)

    draw_tree(backend.get_context(), source)

    return backend.get_document()
