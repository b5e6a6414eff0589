"""Flatten per-shape line of sight regions into one ray-ordered sequence.

Every region start/end is an event point along the ray. Between each pair of
consecutive event points the set of "active" shapes (those with a region
covering that interval) is resolved into one ``FlatRegion``:

  * elevation: the lowest elevation among active shapes;
  * height: from that elevation up to the highest active top;
  * terrain type: taken from the first active shape in input order. This is
    a simplification; overlapping terrain types are not broken down;
  * skimmed: only when a single shape is active and its region is a skim.
    Two shapes active at once means the ray ran between adjacent shapes,
    which counts as a real intersection.

Intervals with no active shape are gaps and produce nothing.
"""

from __future__ import annotations

import numpy as np

from .types import FlatRegion, IntersectionRegion, LosPoint, ShapeRegions


def _active_region(
    regions: list[IntersectionRegion], t: float
) -> IntersectionRegion | None:
    """The region covering the interval that ends at t, if any."""
    for region in regions:
        if region.start.t < t <= region.end.t:
            return region
    return None


def flatten_regions(shape_regions: list[ShapeRegions]) -> list[FlatRegion]:
    """Collapse per-shape regions into one ordered list along the ray.

    Args:
        shape_regions: Output of ``calculate_line_of_sight``.

    Returns:
        Non-overlapping regions ordered by t, one per interval covered by
        at least one shape.
    """
    points: dict[float, LosPoint] = {}
    for sr in shape_regions:
        for region in sr.regions:
            points.setdefault(region.start.t, region.start)
            points.setdefault(region.end.t, region.end)
    if not points:
        return []

    boundaries = np.unique(np.fromiter(points.keys(), dtype=np.float64))

    flat: list[FlatRegion] = []
    previous = points[float(boundaries[0])]
    for t in boundaries[1:].tolist():
        boundary = points[t]
        active = []
        for sr in shape_regions:
            region = _active_region(sr.regions, t)
            if region is not None:
                active.append((sr.shape, region))

        if active:
            elevation = min(shape.elevation for shape, _ in active)
            top = max(shape.top for shape, _ in active)
            flat.append(
                FlatRegion(
                    start=previous,
                    end=boundary,
                    terrain_type_id=active[0][0].terrain_type_id,
                    height=top - elevation,
                    elevation=elevation,
                    skimmed=len(active) == 1 and active[0][1].skimmed,
                )
            )
        previous = boundary
    return flat
