from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

from .backends import create_backend
from .diagram import draw_diagram
from .flow import draw_flow
from .styles import CELL_PATTERN, SCALE_PATTERN
from .theme import THEMES
from .tree import directory_tree, draw_tree
from .types import DiagramOptions

logger = logging.getLogger(__name__)

DIAGRAM_TYPES = ("diagram", "tree", "flow")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def parse_cell_size(spec: str) -> tuple[int, int]:
    """Parse "WxH" or "N" (square cells)."""
    if not re.match(CELL_PATTERN, spec):
        raise ValueError("wrong cell-size parameter")
    if "x" in spec:
        w, h = spec.split("x")
        return (int(w), int(h))
    return (int(spec), int(spec))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asciidia",
        description="Render ASCII diagrams as vector or bitmap images.",
    )
    parser.add_argument(
        "-t", "--type", choices=DIAGRAM_TYPES, default="diagram",
        help="diagram type (default: diagram)",
    )
    parser.add_argument(
        "-i", "--input", required=True,
        help="input file, '-' for stdin; a directory is drawn as tree",
    )
    parser.add_argument("-o", "--output", required=True, help="output file, '-' for stdout")
    parser.add_argument(
        "-f", "--format",
        help="output format: svg, mvg or any ImageMagick format "
        "(default: output file extension, else png)",
    )
    parser.add_argument("-c", "--cell", help="cell size in pixels, WxH or N")
    parser.add_argument("-s", "--scale", help="scale bitmap output to WxH, Wx or xH")
    parser.add_argument("-d", "--debug", action="store_true", help="draw the cell grid")
    parser.add_argument("--round", action="store_true", help="rounded corners and boxes")
    parser.add_argument("--theme", choices=sorted(THEMES), help="color theme")
    parser.add_argument(
        "--log-level", choices=LOG_LEVELS, default="WARNING",
        help="logging verbosity (default: WARNING)",
    )
    return parser


def resolve_format(fmt: str | None, output: str) -> str:
    if fmt:
        return fmt.lower()
    suffix = Path(output).suffix.lstrip(".").lower() if output != "-" else ""
    return suffix or "png"


def load_input(name: str, diagram_type: str) -> str:
    if name == "-":
        return sys.stdin.read()

    path = Path(name)
    if path.is_dir():
        if diagram_type != "tree":
            raise ValueError("a directory input is only allowed for tree diagrams")
        return directory_tree(path)
    if not path.is_file():
        raise ValueError("input is not readable")

    return path.read_text(encoding="utf-8")


def check_output(name: str) -> None:
    if name == "-":
        return

    path = Path(name)
    if path.is_dir():
        raise ValueError("only a filename is allowed as output")
    if path.exists():
        raise ValueError("output already exists")


def build_options(args: argparse.Namespace) -> DiagramOptions:
    options = DiagramOptions(
        format=resolve_format(args.format, args.output),
        scale_to=args.scale,
        debug=args.debug,
        round_corners=args.round,
        theme=args.theme,
    )

    if args.scale and not re.match(SCALE_PATTERN, args.scale):
        raise ValueError("wrong scaling parameter")
    if args.cell:
        options.cell_width, options.cell_height = parse_cell_size(args.cell)

    return options


def run(args: argparse.Namespace) -> None:
    options = build_options(args)
    backend = create_backend(options)

    ok, msg = backend.test_env()
    if not ok:
        raise RuntimeError(msg)

    content = load_input(args.input, args.type)
    check_output(args.output)

    ctx = backend.get_context()
    if args.type == "tree":
        draw_tree(ctx, content)
    elif args.type == "flow":
        draw_flow(ctx, content, options.round_corners)
    else:
        draw_diagram(ctx, content)

    logger.info("Rendering %s diagram to %s (%s)", args.type, args.output, options.format)

    backend.save_file(args.output, backend.get_document(), options.format)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        run(args)
    except (ValueError, RuntimeError, OSError) as err:
        print(f"error: {err}", file=sys.stderr)
        return 1

    return 0
