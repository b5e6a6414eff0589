"""Merge painted cells into shapes with holes.

Cells that share terrain type, height and elevation are merged into as few
polygons as possible:

  1. Every edge of every cell outline in the group goes into one edge graph.
  2. An edge whose exact reverse is already present cancels it; such pairs
     are the interior walls between two adjacent cells of the group.
  3. The surviving edges are walked into closed loops. Where two edges leave
     the same vertex (two cells touching only at a corner on a square grid),
     the walk takes the one reached first when sweeping counter-clockwise
     from the reversed incoming edge, which keeps the two cells' outlines
     apart rather than crossing over at the corner.
  4. Loops winding clockwise (on screen) are boundaries; counter-clockwise
     loops are holes.
  5. Each hole goes to the boundary that contains it. With nested shapes
     several boundaries contain a hole; the parent is then found by probing
     leftward from just below the hole's topmost vertex and taking the
     boundary whose edge is crossed nearest to the probe's origin.

Cell outlines come from the grid adapter, so this works for any lattice
whose cells tile the plane. Hex lattices never have more than one candidate
edge in step 3.
"""

from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from collections.abc import Iterable

from .errors import NonManifoldEdgeError, OrphanHoleError
from .geometry import LineSegment, Polygon
from .grid import GridAdapter, GridKind
from .types import CellAssignment, Point, Shape

logger = logging.getLogger(__name__)

# Vertices from neighbouring cells must compare equal for shared edges to
# cancel; rounding absorbs float noise from non-square lattices.
_VERTEX_DECIMALS = 6


def _round_point(p: Point) -> Point:
    return (round(p[0], _VERTEX_DECIMALS), round(p[1], _VERTEX_DECIMALS))


class _EdgeGraph:
    """Flat arena of directed edges indexed by start vertex.

    Edges are removed by clearing their arena slot, so indices stay stable
    and no removal rescans the whole list.
    """

    def __init__(self, edges: Iterable[LineSegment]) -> None:
        self._edges: list[LineSegment | None] = []
        self._by_start: dict[Point, list[int]] = defaultdict(list)
        self._by_ends: dict[tuple[Point, Point], list[int]] = defaultdict(
            list
        )
        self._cursor = 0
        self.remaining = 0
        for edge in edges:
            self._add(edge)

    def _add(self, edge: LineSegment) -> None:
        reverse = self._by_ends.get((edge.p2, edge.p1))
        if reverse:
            self.remove(reverse[-1])
            return
        idx = len(self._edges)
        self._edges.append(edge)
        self._by_start[edge.p1].append(idx)
        self._by_ends[(edge.p1, edge.p2)].append(idx)
        self.remaining += 1

    def remove(self, idx: int) -> LineSegment:
        edge = self._edges[idx]
        assert edge is not None
        self._edges[idx] = None
        self._by_start[edge.p1].remove(idx)
        self._by_ends[(edge.p1, edge.p2)].remove(idx)
        self.remaining -= 1
        return edge

    def pop_first(self) -> LineSegment:
        while self._edges[self._cursor] is None:
            self._cursor += 1
        return self.remove(self._cursor)

    def starting_at(self, vertex: Point) -> list[int]:
        return list(self._by_start.get(vertex, ()))

    def edge(self, idx: int) -> LineSegment:
        edge = self._edges[idx]
        assert edge is not None
        return edge


def _drop_collinear(vertices: list[Point]) -> list[Point]:
    """Remove vertices where the loop carries straight on."""
    result = list(vertices)
    i = 0
    while len(result) > 3 and i < len(result):
        (ax, ay), (bx, by), (cx, cy) = (
            result[i - 1],
            result[i],
            result[(i + 1) % len(result)],
        )
        ux, uy = bx - ax, by - ay
        vx, vy = cx - bx, cy - by
        cross = ux * vy - uy * vx
        dot = ux * vx + uy * vy
        scale = math.hypot(ux, uy) * math.hypot(vx, vy)
        if dot > 0 and abs(cross) <= 1e-9 * scale:
            del result[i]
        else:
            i += 1
    return result


def _walk_loops(graph: _EdgeGraph) -> list[Polygon]:
    loops: list[Polygon] = []
    while graph.remaining:
        edges = [graph.pop_first()]
        while edges[0].p1 != edges[-1].p2:
            last = edges[-1]
            candidates = graph.starting_at(last.p2)
            if not candidates:
                raise NonManifoldEdgeError(last.p2)
            if len(candidates) == 1:
                next_idx = candidates[0]
            else:
                next_idx = min(
                    candidates,
                    key=lambda i: last.angle_between(graph.edge(i)),
                )
            edges.append(graph.remove(next_idx))
        loops.append(Polygon(_drop_collinear([e.p1 for e in edges])))
    return loops


def _find_parent(
    hole: Polygon, solids: list[Shape], probe_offset: float
) -> Shape:
    containing = [s for s in solids if s.boundary.contains_polygon(hole)]

    if not containing:
        logger.error(
            "No boundary contains hole %r (%d candidate boundaries)",
            hole,
            len(solids),
        )
        raise OrphanHoleError(
            "Could not find a parent polygon for this hole: "
            "no containing polygons found."
        )
    if len(containing) == 1:
        return containing[0]

    _, min_y, _, _ = hole.bounding_box
    top_x, top_y = next(v for v in hole.vertices if v[1] == min_y)
    probe_y = top_y + probe_offset

    nearest_x = None
    nearest_shape = None
    for shape in containing:
        for edge in shape.boundary.edges:
            x = edge.intersects_y_at(probe_y)
            if x is None or x >= top_x:
                continue
            if nearest_x is None or x > nearest_x:
                nearest_x = x
                nearest_shape = shape

    if nearest_shape is None:
        logger.error(
            "Probe ray from hole %r crossed none of %d containing boundaries",
            hole,
            len(containing),
        )
        raise OrphanHoleError(
            "Could not find a parent polygon for this hole: "
            "no edges intersected horizontal ray."
        )
    return nearest_shape


def combine_polygons(
    polygons: list[Polygon],
    terrain_type_id: str,
    height: float,
    elevation: float,
    probe_offset: float,
) -> list[Shape]:
    """Merge same-attribute cell polygons into shapes.

    Edges shared by two polygons cancel; what remains is walked into loops.
    Clockwise loops become shape boundaries and counter-clockwise loops
    become holes of the innermost boundary containing them.

    Args:
        polygons: Clockwise cell polygons that all share one set of
            attributes.
        terrain_type_id: Terrain type of every resulting shape.
        height: Height of every resulting shape.
        elevation: Elevation of every resulting shape.
        probe_offset: Distance below a hole's top vertex from which a
            leftward probe picks the parent among nested boundaries.

    Returns:
        One shape per boundary loop, with its holes attached.

    Raises:
        NonManifoldEdgeError: The edges do not form closed loops.
        OrphanHoleError: A hole has no resolvable parent.
    """
    graph = _EdgeGraph(
        LineSegment(_round_point(e.p1), _round_point(e.p2))
        for p in polygons
        for e in p.edges
    )
    loops = _walk_loops(graph)

    solids = [
        Shape(
            boundary=loop,
            holes=[],
            terrain_type_id=terrain_type_id,
            height=height,
            elevation=elevation,
        )
        for loop in loops
        if loop.is_clockwise
    ]
    for hole in (loop for loop in loops if not loop.is_clockwise):
        _find_parent(hole, solids, probe_offset).holes.append(hole)
    return solids


def build_shapes(
    cells: Iterable[CellAssignment],
    grid: GridAdapter,
    hole_probe_offset: float = 0.05,
) -> list[Shape]:
    """Compute every shape for the given (sorted) cells.

    Cells are grouped by (terrain type, height, elevation) and each group is
    merged with ``combine_polygons``. Gridless grids are not supported and
    always produce no shapes.

    Returns:
        Shapes grouped in order of each attribute group's first cell.
    """
    if grid.kind is GridKind.GRIDLESS:
        return []

    start = time.perf_counter()

    groups: dict[tuple[str, float, float], list[CellAssignment]] = {}
    for cell in cells:
        groups.setdefault(cell.attributes, []).append(cell)

    shapes: list[Shape] = []
    for (terrain_type_id, height, elevation), group in groups.items():
        polygons = [Polygon(grid.cell_polygon(c.position)) for c in group]
        shapes.extend(
            combine_polygons(
                polygons,
                terrain_type_id,
                height,
                elevation,
                probe_offset=grid.size * hole_probe_offset,
            )
        )

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.debug(
        "Shape calculation took %.1f ms (%d groups, %d shapes)",
        elapsed_ms,
        len(groups),
        len(shapes),
    )
    return shapes
