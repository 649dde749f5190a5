from __future__ import annotations

import heapq
import logging
import re
from dataclasses import dataclass, field

from grandalf.graphs import Edge, Graph, Vertex
from grandalf.layouts import SugiyamaLayout

from .backends import create_backend
from .context import DrawingContext
from .types import Arrow, DiagramOptions

logger = logging.getLogger(__name__)

# ============================================================================
# Flow diagrams -- boxes connected by arrows, positioned automatically.
#
#   # comments and blank lines are ignored
#   start[Read input] -> parse -> render
#   parse <- config
#   render <-> cache
#   render -- log
#
# Boxes are laid out top to bottom with grandalf (Sugiyama algorithm), one
# layout per connected component, components side by side. All positions
# are in cells.
# ============================================================================

BOX_HEIGHT = 3
NODE_SPACING = 4
LAYER_SPACING = 3
COMPONENT_SPACING = 4
TURN_PENALTY = 2

_MOVES = ((0, 1), (0, -1), (1, 0), (-1, 0))

_NODE_RE = re.compile(r"^([\w.]+)(?:\[([^\]]*)\])?$")
_OPERATOR_RE = re.compile(r"\s*(<->|->|<-|--)\s*")


# ============================================================================
# Types
# ============================================================================


@dataclass(slots=True)
class FlowNode:
    id: str
    label: str


@dataclass(slots=True)
class FlowEdge:
    source: str
    target: str
    arrow: Arrow = Arrow.END


@dataclass(slots=True)
class FlowGraph:
    nodes: dict[str, FlowNode] = field(default_factory=dict)
    edges: list[FlowEdge] = field(default_factory=list)


@dataclass(slots=True)
class PositionedFlowNode:
    id: str
    label: str
    # top-left cell and size in cells
    x: int
    y: int
    width: int
    height: int


@dataclass(slots=True)
class PositionedFlowEdge:
    source: str
    target: str
    points: list[tuple[int, int]]
    arrow: Arrow


@dataclass(slots=True)
class PositionedFlow:
    width: int
    height: int
    nodes: list[PositionedFlowNode] = field(default_factory=list)
    edges: list[PositionedFlowEdge] = field(default_factory=list)


# ============================================================================
# Parser
# ============================================================================


def parse_flow(text: str) -> FlowGraph:
    """Parse flow text into nodes and edges.

    Raises ValueError for an empty diagram or a line that is neither a node
    declaration nor a chain of connections.
    """
    graph = FlowGraph()

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw).strip()
        if not line:
            continue

        tokens = _OPERATOR_RE.split(line)
        ids = [_parse_node(graph, token, lineno) for token in tokens[0::2]]

        for op, source, target in zip(tokens[1::2], ids, ids[1:]):
            if source == target:
                logger.warning("Line %d: skipping self-loop on %r", lineno, source)
                continue

            if op == "->":
                graph.edges.append(FlowEdge(source=source, target=target, arrow=Arrow.END))
            elif op == "<-":
                graph.edges.append(FlowEdge(source=target, target=source, arrow=Arrow.END))
            elif op == "<->":
                graph.edges.append(FlowEdge(source=source, target=target, arrow=Arrow.BOTH))
            else:
                graph.edges.append(FlowEdge(source=source, target=target, arrow=Arrow.NONE))

    if not graph.nodes:
        raise ValueError("Empty flow diagram")

    return graph


def _strip_comment(line: str) -> str:
    """Cut a trailing # comment; a # inside a [label] is kept."""
    depth = 0
    for i, ch in enumerate(line):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(0, depth - 1)
        elif ch == "#" and depth == 0:
            return line[:i]
    return line


def _parse_node(graph: FlowGraph, token: str, lineno: int) -> str:
    match = _NODE_RE.match(token)
    if not match:
        raise ValueError(f'Invalid flow syntax on line {lineno}: "{token}"')

    node_id, label = match.group(1), match.group(2)

    node = graph.nodes.get(node_id)
    if node is None:
        graph.nodes[node_id] = FlowNode(id=node_id, label=label or node_id)
    elif label:
        node.label = label

    return node_id


# ============================================================================
# Layout
# ============================================================================


class _VertexView:
    """Minimal view object required by grandalf's SugiyamaLayout."""

    def __init__(self, w: float, h: float) -> None:
        self.w = w
        self.h = h
        # xy is set by the layout engine (center coordinates)
        self.xy = (0.0, 0.0)


def layout_flow(graph: FlowGraph) -> PositionedFlow:
    """Position boxes on the cell grid and route edges between them."""
    vertices: dict[str, Vertex] = {}
    for node in graph.nodes.values():
        v = Vertex(node.id)
        v.view = _VertexView(len(node.label) + 2, BOX_HEIGHT)
        vertices[node.id] = v

    edges = [Edge(vertices[e.source], vertices[e.target]) for e in graph.edges]
    g = Graph(list(vertices.values()), edges)

    # top-left cell per node id
    placed: dict[str, tuple[int, int]] = {}
    offset = 0

    for core in g.C:
        members = list(core.sV)

        if len(members) > 1:
            try:
                sug = SugiyamaLayout(core)
                sug.xspace = NODE_SPACING
                sug.yspace = LAYER_SPACING
                # dummy vertices of edges spanning several layers
                sug.dw = 1
                sug.dh = BOX_HEIGHT
                sug.init_all()
                sug.draw()
            except Exception as err:
                raise RuntimeError(f"Grandalf layout failed (flow diagram): {err}") from err
        else:
            members[0].view.xy = (members[0].view.w / 2, members[0].view.h / 2)

        # snap to the grid, then shift the component next to the previous one
        corners = {
            v.data: (
                round(v.view.xy[0] - v.view.w / 2),
                round(v.view.xy[1] - v.view.h / 2),
            )
            for v in members
        }
        min_x = min(x for x, _ in corners.values())
        min_y = min(y for _, y in corners.values())

        right = 0
        for node_id, (x, y) in corners.items():
            placed[node_id] = (x - min_x + offset, y - min_y)
            right = max(right, x - min_x + vertices[node_id].view.w)

        offset += right + COMPONENT_SPACING

    result = PositionedFlow(width=0, height=0)

    for node in graph.nodes.values():
        x, y = placed[node.id]
        width = len(node.label) + 2
        result.nodes.append(PositionedFlowNode(
            id=node.id, label=node.label,
            x=x, y=y, width=width, height=BOX_HEIGHT,
        ))
        result.width = max(result.width, x + width)
        result.height = max(result.height, y + BOX_HEIGHT)

    boxes = {n.id: n for n in result.nodes}
    blocked: set[tuple[int, int]] = set()
    for box in result.nodes:
        blocked |= _box_cells(box)

    # one free column and row past the boxes to route around them
    width, height = result.width, result.height

    for edge in graph.edges:
        points = _route_edge(
            boxes[edge.source], boxes[edge.target], edge.arrow, blocked, width, height,
        )
        result.edges.append(PositionedFlowEdge(
            source=edge.source,
            target=edge.target,
            points=points,
            arrow=edge.arrow,
        ))
        result.width = max(result.width, max(x for x, _ in points) + 1)
        result.height = max(result.height, max(y for _, y in points) + 1)

    logger.debug(
        "Laid out %d nodes in %d components (%dx%d cells)",
        len(result.nodes), len(g.C), result.width, result.height,
    )

    return result


def _box_cells(box: PositionedFlowNode) -> set[tuple[int, int]]:
    return {
        (x, y)
        for x in range(box.x, box.x + box.width)
        for y in range(box.y, box.y + box.height)
    }


def _route_edge(
    source: PositionedFlowNode,
    target: PositionedFlowNode,
    arrow: Arrow,
    blocked: set[tuple[int, int]],
    width: int,
    height: int,
) -> list[tuple[int, int]]:
    """Orthogonal path between two boxes that never enters another box.

    The path leaves the source through the border facing the target and
    enters the target through its top (from above) or bottom border. It
    starts and ends on those borders; an end carrying an arrow head stops in
    the cell just outside the box instead. In between, cells in ``blocked``
    are avoided and the route stays within columns 0..width and rows
    0..height.
    """
    scx = source.x + source.width // 2
    tcx = target.x + target.width // 2

    if target.y < source.y:
        leave = (scx, source.y)
        exit_dir = (0, -1)
    else:
        leave = (scx, source.y + source.height - 1)
        exit_dir = (0, 1)

    if target.y >= source.y + source.height:
        # target below, come in from the top
        arrive = (tcx, target.y)
        entry_dir = (0, 1)
    else:
        arrive = (tcx, target.y + target.height - 1)
        entry_dir = (0, -1)

    start = (leave[0], leave[1] + exit_dir[1])
    goal = (arrive[0], arrive[1] - entry_dir[1])

    path = _find_path(start, goal, exit_dir, entry_dir, blocked, width, height)
    if path is None:
        logger.warning(
            "No free route from %r to %r, drawing it across the layout",
            source.id, target.id,
        )
        path = [start, (goal[0], start[1]), goal]

    if not arrow & Arrow.START:
        path.insert(0, leave)
    if not arrow & Arrow.END:
        path.append(arrive)

    return _merge_path(path)


def _find_path(
    start: tuple[int, int],
    goal: tuple[int, int],
    exit_dir: tuple[int, int],
    entry_dir: tuple[int, int],
    blocked: set[tuple[int, int]],
    width: int,
    height: int,
) -> list[tuple[int, int]] | None:
    """A* search over free cells, every turn costs TURN_PENALTY extra steps.

    The first step continues in exit_dir and the goal is reached moving in
    entry_dir, so both ends of the route meet their boxes head on. Returns
    None when no route exists.
    """

    def heuristic(cell: tuple[int, int]) -> int:
        return abs(cell[0] - goal[0]) + abs(cell[1] - goal[1])

    start_state = (start, exit_dir)
    best_cost = {start_state: 0}
    came: dict[tuple, tuple] = {}
    open_heap = [(heuristic(start), 0, start, exit_dir)]

    while open_heap:
        _, cost, cell, direction = heapq.heappop(open_heap)
        state = (cell, direction)
        if cost > best_cost[state]:
            continue

        if cell == goal and (cell == start or direction == entry_dir):
            path = [cell]
            while state in came:
                state = came[state]
                path.append(state[0])
            path.reverse()
            return path

        x, y = cell
        for move in _MOVES:
            if cell == start and move != exit_dir:
                continue

            nxt = (x + move[0], y + move[1])
            if not (0 <= nxt[0] <= width and 0 <= nxt[1] <= height):
                continue
            if nxt in blocked:
                continue

            next_cost = cost + 1 + (TURN_PENALTY if move != direction else 0)
            next_state = (nxt, move)
            if next_cost >= best_cost.get(next_state, next_cost + 1):
                continue

            best_cost[next_state] = next_cost
            came[next_state] = state
            heapq.heappush(open_heap, (next_cost + heuristic(nxt), next_cost, nxt, move))

    return None


def _merge_path(path: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Drop the points in the middle of straight runs."""
    merged = path[:1]
    for (px, py), (x, y), (nx, ny) in zip(path, path[1:], path[2:]):
        if not (px == x == nx or py == y == ny):
            merged.append((x, y))
    if len(path) > 1:
        merged.append(path[-1])
    return merged


# ============================================================================
# Drawing
# ============================================================================


def draw_flow(ctx: DrawingContext, text: str, round: bool = False) -> None:
    flow = layout_flow(parse_flow(text))

    for node in flow.nodes:
        ctx.draw_label(node.x, node.y, node.label, round)

    for edge in flow.edges:
        ctx.draw_connection(edge.points, edge.arrow, round)


def render_flow(text: str, options: DiagramOptions | dict | None = None):
    """Lay out and render a flow diagram in the configured format."""
    options = DiagramOptions.from_value(options)
    backend = create_backend(options)

    draw_flow(backend.get_context(), text, options.round_corners)

    return backend.get_document()
