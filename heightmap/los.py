"""Line of sight through height map shapes.

Given a ray between two points ``(x, y, h)`` (pixel position plus height),
this module finds, for each shape, the stretches of the ray that lie inside
the shape. Each stretch is an ``IntersectionRegion`` with ray-parametric
start/end positions (t in [0, 1]).

The computation per shape runs in stages:

  * **Height pre-filter**: a ray entirely above the shape's top or entirely
    below its elevation can never meet it.
  * **Height clipping**: an endpoint above the top (or below the bottom) is
    slid along the ray to that plane, so the 2D work below only sees the part
    of the ray inside the shape's vertical span. The clip positions are kept
    to map results back to the full ray at the end.
  * **Edge intersections**: the clipped ray is tested against every boundary
    and hole edge at once with NumPy. A hit exactly on a vertex whose other
    edge runs along the ray gets a synthetic partner hit on that edge, so a
    vertex is always met by exactly two hits.
  * **Start state**: whether the ray starts inside the shape. Off any edge
    this is a point-in-polygon test; on an edge or vertex it depends on which
    side the ray heads into.
  * **Sweep**: hits are grouped by equal t and processed in order. One hit
    is a clean crossing. Two hits are a vertex: it is a crossing only if the
    ray and its reverse disagree about being on the solid side. Four hits are
    the diagonal corner of a square lattice and never change state.
  * **Skims**: edges nearly parallel to and within a few pixels of the ray
    mark the overlapped part of the ray as skimmed. This runs as a separate
    pass so its tolerance does not create spurious crossings.

Because boundaries wind clockwise and holes counter-clockwise, the solid side
of every edge is on the right of its direction of travel, and the same angle
tests apply to boundary and hole edges alike (see ``geometry.py``).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import replace

import numpy as np

from .geometry import EPSILON, LineSegment, Polygon
from .types import (
    HeightMapSettings,
    Intersection,
    IntersectionRegion,
    LosPoint,
    Shape,
    ShapeRegions,
    TerrainCatalog,
)

logger = logging.getLogger(__name__)

RayPoint = Sequence[float]  # (x, y, h)
_ShapeEdge = tuple[Polygon | None, LineSegment]  # (hole or None, edge)


def _inverse_lerp(a: float, b: float, value: float) -> float:
    return (value - a) / (b - a)


def _shape_edges(shape: Shape) -> list[_ShapeEdge]:
    edges: list[_ShapeEdge] = [(None, e) for e in shape.boundary.edges]
    for hole in shape.holes:
        edges.extend((hole, e) for e in hole.edges)
    return edges


def _intersect_edges(
    ray: LineSegment, edges: list[_ShapeEdge]
) -> list[tuple[int, float, float]]:
    """Vectorized segment intersection of one ray against many edges.

    Returns (edge_index, t, u) for every edge crossed with t in (0, 1] and u
    in [0, 1] (both with epsilon slack). Parallel edges never intersect.
    """
    if not edges:
        return []
    segs = np.array(
        [(e.p1[0], e.p1[1], e.p2[0], e.p2[1]) for _, e in edges],
        dtype=np.float64,
    )
    ox, oy = ray.p1
    dx, dy = ray.dx, ray.dy
    seg_dx = segs[:, 2] - segs[:, 0]
    seg_dy = segs[:, 3] - segs[:, 1]
    d_x1 = segs[:, 0] - ox
    d_y1 = segs[:, 1] - oy

    denom = dx * seg_dy - dy * seg_dx
    valid_denom = denom != 0
    safe_denom = np.where(valid_denom, denom, 1.0)
    t = (d_x1 * seg_dy - d_y1 * seg_dx) / safe_denom
    u = (d_x1 * dy - d_y1 * dx) / safe_denom

    # t ~ 0 is excluded: the start state already accounts for it
    hits = (
        valid_denom
        & (t >= EPSILON)
        & (t <= 1 + EPSILON)
        & (u >= -EPSILON)
        & (u <= 1 + EPSILON)
    )
    return [
        (int(i), float(t[i]), float(u[i])) for i in np.flatnonzero(hits)
    ]


def _find_intersections(
    shape: Shape, ray: LineSegment, edges: list[_ShapeEdge]
) -> list[Intersection]:
    intersections: list[Intersection] = []
    for idx, t, u in _intersect_edges(ray, edges):
        hole, edge = edges[idx]
        point = ray.lerp(t)
        intersections.append(Intersection(point, t, u, edge, hole))

        poly = hole if hole is not None else shape.boundary
        if u < EPSILON:
            previous_edge = poly.previous_edge(edge)
            if previous_edge.is_parallel_to(ray):
                intersections.append(
                    Intersection(point, t, 1.0, previous_edge, hole)
                )
        elif u > 1 - EPSILON:
            next_edge = poly.next_edge(edge)
            if next_edge.is_parallel_to(ray):
                intersections.append(
                    Intersection(point, t, 0.0, next_edge, hole)
                )
    return intersections


def _group_by_t(intersections: list[Intersection]) -> list[list[Intersection]]:
    groups: list[list[Intersection]] = []
    for intersection in sorted(intersections, key=lambda i: i.t):
        if groups and abs(intersection.t - groups[-1][0].t) <= EPSILON:
            groups[-1].append(intersection)
        else:
            groups.append([intersection])
    return groups


def _heads_inside_at_vertex(
    poly: Polygon, edge: LineSegment, u: float, ray: LineSegment
) -> bool | None:
    """Whether ``ray`` heads into the solid side at an end of ``edge``.

    None if u is not at either end of the edge.
    """
    if u < EPSILON:
        previous_edge = poly.previous_edge(edge)
        return previous_edge.angle_between(ray) < previous_edge.angle_between(
            edge
        )
    if u > 1 - EPSILON:
        next_edge = poly.next_edge(edge)
        return edge.angle_between(ray) < edge.angle_between(next_edge)
    return None


def _starts_inside(
    shape: Shape,
    edges: list[_ShapeEdge],
    ray: LineSegment,
) -> bool:
    x, y = ray.p1
    on_edges: list[tuple[Polygon, LineSegment, float]] = []
    for hole, edge in edges:
        _, u, dist_sq = edge.closest_point_on_line_to(x, y)
        if -EPSILON < u < 1 + EPSILON and dist_sq < EPSILON * EPSILON:
            poly = hole if hole is not None else shape.boundary
            on_edges.append((poly, edge, u))

    if not on_edges:
        return shape.boundary.contains_point(
            x, y, contains_on_edge=False
        ) and not any(
            h.contains_point(x, y, contains_on_edge=True) for h in shape.holes
        )

    if len(on_edges) == 1:
        poly, edge, u = on_edges[0]
        at_vertex = _heads_inside_at_vertex(poly, edge, u, ray)
        if at_vertex is not None:
            return at_vertex
        # Parallel (0 or pi) runs along the edge, which is not inside
        a = edge.angle_between(ray)
        return 0 < a < math.pi

    if len(on_edges) == 2:
        return ray.is_between(on_edges[0][1], on_edges[1][1])

    if len(on_edges) == 4:
        return any(
            _heads_inside_at_vertex(poly, edge, u, ray)
            for poly, edge, u in on_edges
        )

    logger.warning(
        "Line of sight ray starts on %d edges of a single shape, expected "
        "0, 1, 2 or 4. This case is not supported and the result may be "
        "incorrect.",
        len(on_edges),
    )
    return False


class _RegionTracker:
    """Accumulates inside-regions while sweeping along the ray."""

    def __init__(
        self, start: LosPoint, h1: float, h2: float, inside: bool, skimmed: bool
    ) -> None:
        self.last = start
        self.inside = inside
        self.regions: list[IntersectionRegion] = []
        self._h1 = h1
        self._h2 = h2
        self._skimmed = skimmed

    def point_at(self, x: float, y: float, t: float) -> LosPoint:
        return LosPoint(x, y, self._h1 + (self._h2 - self._h1) * t, t)

    def advance(self, x: float, y: float, t: float) -> None:
        if t == self.last.t:
            return
        position = self.point_at(x, y, t)
        if self.inside:
            self.regions.append(
                IntersectionRegion(self.last, position, self._skimmed)
            )
        self.last = position


def _sweep(
    groups: list[list[Intersection]],
    ray: LineSegment,
    tracker: _RegionTracker,
) -> None:
    inverse_ray = ray.inverse()
    for group in groups:
        if len(group) == 1:
            hit = group[0]
            tracker.advance(hit.point[0], hit.point[1], hit.t)
            tracker.inside = not tracker.inside

        elif len(group) == 2:
            first, second = group
            if second.edge.p2 == first.edge.p1:
                first, second = second, first
            ray_inside = ray.is_between(first.edge, second.edge)
            inverse_inside = inverse_ray.is_between(first.edge, second.edge)
            # Agreement means the vertex was grazed from outside or inside
            if ray_inside != inverse_inside:
                tracker.advance(first.point[0], first.point[1], first.t)
                tracker.inside = ray_inside

        elif len(group) == 4:
            # Diagonal corner on a square grid: leaves in the same state
            pass

        else:
            logger.error(
                "Line of sight ray met a shape with %d intersections at "
                "t=%f, expected 1, 2 or 4. This case is not supported and "
                "the result may be incorrect.",
                len(group),
                group[0].t,
            )


def _find_skims(
    ray: LineSegment,
    edges: list[_ShapeEdge],
    angle_threshold: float,
    distance_squared: float,
) -> list[tuple[float, float]]:
    """Merged (t_start, t_end) spans where an edge runs along the ray."""
    ray_angle = ray.angle
    spans: list[tuple[float, float]] = []
    for _, edge in edges:
        diff = abs(edge.angle - ray_angle) % math.pi
        if min(diff, math.pi - diff) >= angle_threshold:
            continue
        _, t1, d1 = ray.closest_point_on_line_to(*edge.p1)
        _, t2, d2 = ray.closest_point_on_line_to(*edge.p2)
        t1 = min(max(t1, 0.0), 1.0)
        t2 = min(max(t2, 0.0), 1.0)
        if d1 > distance_squared or d2 > distance_squared:
            continue
        if abs(t1 - t2) <= EPSILON:
            continue
        spans.append((min(t1, t2), max(t1, t2)))

    spans.sort()
    merged: list[tuple[float, float]] = []
    for start, end in spans:
        if merged and start - merged[-1][1] <= EPSILON:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _splice_skim(
    regions: list[IntersectionRegion],
    skim_start: LosPoint,
    skim_end: LosPoint,
) -> None:
    """Insert a skimmed region, trimming any regions it partly overlaps."""
    ss, se = skim_start.t, skim_end.t
    start_region = None
    end_region = None
    splice_start = 0
    splice_end = len(regions)
    for j, region in enumerate(regions):
        if region.start.t < ss < region.end.t:
            start_region = region
        if region.start.t < se < region.end.t:
            end_region = region
        if region.end.t <= ss:
            splice_start = j + 1
        if region.start.t >= se and splice_end > j:
            splice_end = j

    replacement: list[IntersectionRegion] = []
    if start_region is not None:
        replacement.append(
            IntersectionRegion(
                start_region.start, skim_start, start_region.skimmed
            )
        )
    replacement.append(IntersectionRegion(skim_start, skim_end, True))
    if end_region is not None:
        replacement.append(
            IntersectionRegion(skim_end, end_region.end, end_region.skimmed)
        )
    regions[splice_start:splice_end] = replacement


def shape_intersections(
    shape: Shape,
    p1: RayPoint,
    p2: RayPoint,
    uses_height: bool = True,
    skim_angle_threshold: float = 0.05,
    skim_distance_squared: float = 16.0,
) -> list[IntersectionRegion]:
    """Regions of the ray p1 -> p2 that lie inside ``shape``.

    Shapes of terrain without height are treated as infinitely tall. Region
    t values are relative to the full, unclipped ray.

    Args:
        shape: The shape to test, holes included.
        p1: Ray start as (x, y, height).
        p2: Ray end as (x, y, height).
        uses_height: False for terrain without height.
        skim_angle_threshold: Largest angle, in radians, between the ray and
            an edge for the edge to count as running along the ray.
        skim_distance_squared: Largest squared distance from the ray for a
            parallel edge to count as skimmed.

    Returns:
        Inside regions ordered by t. Each region's ``skimmed`` flag marks a
        stretch where the ray runs along an edge.
    """
    x1, y1, h1 = p1
    x2, y2, h2 = p2

    top = shape.top if uses_height else math.inf
    bottom = shape.elevation if uses_height else -math.inf
    if h1 > top and h2 > top:
        return []
    if h1 < bottom and h2 < bottom:
        return []

    # Clip to the shape's vertical span; clip_t1/clip_t2 are full-ray t values
    full_ray = LineSegment.from_coords(x1, y1, x2, y2)
    clip_t1, ch1 = 0.0, h1
    if h1 > top:
        clip_t1, ch1 = _inverse_lerp(h1, h2, top), top
    elif h1 < bottom:
        clip_t1, ch1 = _inverse_lerp(h1, h2, bottom), bottom
    clip_t2, ch2 = 1.0, h2
    if h2 > top:
        clip_t2, ch2 = _inverse_lerp(h1, h2, top), top
    elif h2 < bottom:
        clip_t2, ch2 = _inverse_lerp(h1, h2, bottom), bottom

    cx1, cy1 = full_ray.lerp(clip_t1) if clip_t1 != 0 else (x1, y1)
    cx2, cy2 = full_ray.lerp(clip_t2) if clip_t2 != 1 else (x2, y2)
    ray = LineSegment.from_coords(cx1, cy1, cx2, cy2)

    edges = _shape_edges(shape)
    groups = _group_by_t(_find_intersections(shape, ray, edges))

    inside = False
    if bottom <= ch1 <= top:
        inside = _starts_inside(shape, edges, ray)

    # A flat ray exactly on the top or bottom plane only ever skims
    skimming_plane = (
        uses_height and h1 == h2 and (h1 == top or h1 == bottom)
    )

    tracker = _RegionTracker(
        LosPoint(cx1, cy1, ch1, 0.0), ch1, ch2, inside, skimming_plane
    )
    _sweep(groups, ray, tracker)
    tracker.advance(cx2, cy2, 1.0)
    regions = tracker.regions

    for ss, se in _find_skims(
        ray, edges, skim_angle_threshold, skim_distance_squared
    ):
        _splice_skim(
            regions,
            tracker.point_at(*ray.lerp(ss), ss),
            tracker.point_at(*ray.lerp(se), se),
        )

    if clip_t1 != 0 or clip_t2 != 1:
        span = clip_t2 - clip_t1

        def unclip(p: LosPoint) -> LosPoint:
            return replace(p, t=clip_t1 + p.t * span)

        regions = [
            IntersectionRegion(unclip(r.start), unclip(r.end), r.skimmed)
            for r in regions
        ]
    return regions


def calculate_line_of_sight(
    shapes: list[Shape],
    catalog: TerrainCatalog,
    p1: RayPoint,
    p2: RayPoint,
    include_no_height_terrain: bool = False,
    settings: HeightMapSettings | None = None,
) -> list[ShapeRegions]:
    """Every shape the ray p1 -> p2 passes through, with its regions.

    Shapes whose terrain type is missing from the catalog are ignored, as are
    no-height terrain shapes unless ``include_no_height_terrain`` is set.

    Args:
        shapes: Shapes as returned by ``build_shapes``.
        catalog: Decides whether each shape's terrain uses height.
        p1: Ray start as (x, y, height).
        p2: Ray end as (x, y, height).
        include_no_height_terrain: Also report shapes of terrain without
            height, treating them as infinitely tall.
        settings: Skim thresholds; defaults apply when omitted.

    Returns:
        One ``ShapeRegions`` per shape the ray passes through, in the order
        of ``shapes``. Shapes the ray misses are omitted.
    """
    settings = settings or HeightMapSettings()
    result: list[ShapeRegions] = []
    for shape in shapes:
        terrain_type = catalog.get(shape.terrain_type_id)
        if terrain_type is None:
            continue
        if not terrain_type.uses_height and not include_no_height_terrain:
            continue
        regions = shape_intersections(
            shape,
            p1,
            p2,
            terrain_type.uses_height,
            settings.skim_angle_threshold,
            settings.skim_distance_squared,
        )
        if regions:
            result.append(ShapeRegions(shape, regions))
    logger.debug(
        "Line of sight %s -> %s intersected %d of %d shapes",
        tuple(p1),
        tuple(p2),
        len(result),
        len(shapes),
    )
    return result
