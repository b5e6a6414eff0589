"""Line segment and polygon primitives in pixel space.

All coordinates are screen pixels with the y axis pointing down, so a
polygon whose vertices run clockwise *on screen* has a positive shoelace
sum. Shapes rely on this orientation: boundaries wind clockwise and holes
counter-clockwise, which puts the solid side of every edge on the right of
its direction of travel.

Angles follow the same convention. ``LineSegment.angle`` is ``atan2(dy, dx)``
and so increases clockwise on screen. ``LineSegment.angle_between`` measures
the counter-clockwise sweep from the *reverse* of a segment to another
direction, which is the sweep that passes through the solid side at a
vertex where one edge ends and the next begins.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass

from shapely.geometry import Polygon as ShapelyPolygon

from .types import Point

EPSILON = sys.float_info.epsilon
TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class LineSegment:
    p1: Point
    p2: Point

    @staticmethod
    def from_coords(x1: float, y1: float, x2: float, y2: float) -> LineSegment:
        return LineSegment((x1, y1), (x2, y2))

    @property
    def dx(self) -> float:
        return self.p2[0] - self.p1[0]

    @property
    def dy(self) -> float:
        return self.p2[1] - self.p1[1]

    @property
    def angle(self) -> float:
        return math.atan2(self.dy, self.dx)

    @property
    def length_squared(self) -> float:
        return self.dx * self.dx + self.dy * self.dy

    def inverse(self) -> LineSegment:
        return LineSegment(self.p2, self.p1)

    def lerp(self, t: float) -> Point:
        return (self.p1[0] + self.dx * t, self.p1[1] + self.dy * t)

    def angle_between(self, other: LineSegment) -> float:
        """Counter-clockwise sweep in [0, 2pi) from this segment reversed to ``other``.

        Computed from cross/dot products rather than differencing two
        ``atan2`` results, so axis-aligned directions give exact angles and
        equal directions compare equal.
        """
        rx, ry = -self.dx, -self.dy
        ox, oy = other.dx, other.dy
        cross = rx * oy - ry * ox
        dot = rx * ox + ry * oy
        a = math.atan2(-cross, dot)
        if a < 0:
            a += TWO_PI
        return a

    def is_between(self, a: LineSegment, b: LineSegment) -> bool:
        """True if this segment's direction points into the solid side of the
        vertex where ``a`` ends and ``b`` begins.

        The two edges may be given in either order.
        """
        if a.p2 != b.p1 and b.p2 == a.p1:
            a, b = b, a
        return a.angle_between(self) < a.angle_between(b)

    def is_parallel_to(self, other: LineSegment) -> bool:
        cross = self.dx * other.dy - self.dy * other.dx
        scale = math.sqrt(self.length_squared * other.length_squared)
        return abs(cross) <= 1e-9 * scale

    def closest_point_on_line_to(
        self, x: float, y: float
    ) -> tuple[Point, float, float]:
        """Project (x, y) onto this segment's infinite line.

        Returns (point, t, distance_squared) where t is unclamped, so values
        outside [0, 1] lie beyond the segment's ends.
        """
        len_sq = self.length_squared
        if len_sq == 0:
            dist_sq = (x - self.p1[0]) ** 2 + (y - self.p1[1]) ** 2
            return self.p1, 0.0, dist_sq
        t = ((x - self.p1[0]) * self.dx + (y - self.p1[1]) * self.dy) / len_sq
        px, py = self.lerp(t)
        return (px, py), t, (x - px) ** 2 + (y - py) ** 2

    def intersects_y_at(self, y: float) -> float | None:
        """x where this segment crosses the horizontal line at ``y``, if any."""
        if self.dy == 0:
            return None
        lo, hi = sorted((self.p1[1], self.p2[1]))
        if y < lo or y > hi:
            return None
        return self.p1[0] + (y - self.p1[1]) * self.dx / self.dy


class Polygon:
    """Closed vertex loop; the last vertex connects back to the first."""

    def __init__(self, vertices: list[Point]) -> None:
        self.vertices: list[Point] = [(float(x), float(y)) for x, y in vertices]
        n = len(self.vertices)
        self.edges: list[LineSegment] = [
            LineSegment(self.vertices[i], self.vertices[(i + 1) % n])
            for i in range(n)
        ]
        self._edge_index = {edge: i for i, edge in enumerate(self.edges)}
        self._shapely: ShapelyPolygon | None = None

    def __repr__(self) -> str:
        return f"Polygon({self.vertices!r})"

    @property
    def signed_area(self) -> float:
        """Shoelace area; positive when the vertices run clockwise on screen."""
        area = 0.0
        for edge in self.edges:
            area += edge.p1[0] * edge.p2[1] - edge.p2[0] * edge.p1[1]
        return area / 2.0

    @property
    def is_clockwise(self) -> bool:
        return self.signed_area > 0

    @property
    def bounding_box(self) -> tuple[float, float, float, float]:
        xs = [v[0] for v in self.vertices]
        ys = [v[1] for v in self.vertices]
        return min(xs), min(ys), max(xs), max(ys)

    def previous_edge(self, edge: LineSegment) -> LineSegment:
        return self.edges[self._edge_index[edge] - 1]

    def next_edge(self, edge: LineSegment) -> LineSegment:
        return self.edges[(self._edge_index[edge] + 1) % len(self.edges)]

    def contains_point(
        self, x: float, y: float, contains_on_edge: bool = True
    ) -> bool:
        """Ray-casting point-in-polygon test.

        Points lying on an edge return ``contains_on_edge``.
        """
        for edge in self.edges:
            _, t, dist_sq = edge.closest_point_on_line_to(x, y)
            if -EPSILON < t < 1 + EPSILON and dist_sq < EPSILON * EPSILON:
                return contains_on_edge

        inside = False
        n = len(self.vertices)
        j = n - 1
        for i in range(n):
            xi, yi = self.vertices[i]
            xj, yj = self.vertices[j]
            if (yi > y) != (yj > y):
                intersect_x = (xj - xi) * (y - yi) / (yj - yi) + xi
                if x < intersect_x:
                    inside = not inside
            j = i
        return inside

    def contains_polygon(self, other: Polygon) -> bool:
        """True if ``other`` lies within this polygon's outline (touching allowed)."""
        if self._shapely is None:
            self._shapely = ShapelyPolygon(self.vertices)
        return self._shapely.covers(ShapelyPolygon(other.vertices))
