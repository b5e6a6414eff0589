"""Tests for line segment and polygon primitives."""

import math

from heightmap.geometry import LineSegment, Polygon

# Unit cell at the origin, clockwise on screen (y down)
_SQUARE = [(0, 0), (100, 0), (100, 100), (0, 100)]


def _seg(x1, y1, x2, y2):
    return LineSegment.from_coords(x1, y1, x2, y2)


class TestAngleBetween:
    def test_straight_on_is_pi(self):
        a = _seg(0, 0, 10, 0)
        b = _seg(10, 0, 20, 0)
        assert abs(a.angle_between(b) - math.pi) < 1e-12

    def test_doubling_back_is_zero(self):
        a = _seg(0, 0, 10, 0)
        b = _seg(10, 0, 0, 0)
        assert a.angle_between(b) == 0.0

    def test_right_turn_on_screen(self):
        # Heading right, then turning down the screen: clockwise turn
        a = _seg(0, 0, 10, 0)
        b = _seg(10, 0, 10, 10)
        assert abs(a.angle_between(b) - math.pi / 2) < 1e-12

    def test_left_turn_on_screen(self):
        a = _seg(0, 0, 10, 0)
        b = _seg(10, 0, 10, -10)
        assert abs(a.angle_between(b) - 3 * math.pi / 2) < 1e-12

    def test_range(self):
        a = _seg(0, 0, 3, 7)
        for dx, dy in [(1, 0), (0, 1), (-1, 0), (0, -1), (-5, -2), (4, -9)]:
            angle = a.angle_between(_seg(0, 0, dx, dy))
            assert 0 <= angle < 2 * math.pi


class TestIsBetween:
    def test_points_into_cell_corner(self):
        # Top-left corner of a clockwise cell: left edge runs up, top right
        left = _seg(0, 100, 0, 0)
        top = _seg(0, 0, 100, 0)
        assert _seg(0, 0, 50, 50).is_between(left, top)
        assert not _seg(0, 0, -50, -50).is_between(left, top)

    def test_edge_order_does_not_matter(self):
        left = _seg(0, 100, 0, 0)
        top = _seg(0, 0, 100, 0)
        ray = _seg(0, 0, 50, 50)
        assert ray.is_between(top, left) == ray.is_between(left, top)

    def test_along_edge_is_not_between(self):
        left = _seg(0, 100, 0, 0)
        top = _seg(0, 0, 100, 0)
        assert not _seg(0, 0, 50, 0).is_between(left, top)


class TestLineSegment:
    def test_parallel_either_direction(self):
        a = _seg(0, 0, 10, 0)
        assert a.is_parallel_to(_seg(5, 5, 20, 5))
        assert a.is_parallel_to(_seg(20, 5, 5, 5))
        assert not a.is_parallel_to(_seg(0, 0, 10, 1))

    def test_closest_point_unclamped(self):
        seg = _seg(0, 0, 10, 0)
        point, t, dist_sq = seg.closest_point_on_line_to(15, 3)
        assert point == (15, 0)
        assert abs(t - 1.5) < 1e-12
        assert abs(dist_sq - 9) < 1e-12

    def test_closest_point_degenerate_segment(self):
        seg = _seg(2, 2, 2, 2)
        point, t, dist_sq = seg.closest_point_on_line_to(5, 6)
        assert point == (2, 2)
        assert t == 0.0
        assert dist_sq == 25

    def test_intersects_y_at(self):
        seg = _seg(0, 0, 10, 20)
        assert seg.intersects_y_at(10) == 5
        assert seg.intersects_y_at(25) is None
        assert _seg(0, 5, 10, 5).intersects_y_at(5) is None

    def test_lerp_and_inverse(self):
        seg = _seg(0, 0, 10, 20)
        assert seg.lerp(0.5) == (5, 10)
        assert seg.inverse() == _seg(10, 20, 0, 0)


class TestPolygon:
    def test_clockwise_on_screen(self):
        poly = Polygon(_SQUARE)
        assert poly.signed_area == 10000
        assert poly.is_clockwise
        assert not Polygon(list(reversed(_SQUARE))).is_clockwise

    def test_edges_wrap(self):
        poly = Polygon(_SQUARE)
        assert len(poly.edges) == 4
        assert poly.edges[-1] == _seg(0, 100, 0, 0)
        assert poly.next_edge(poly.edges[-1]) == poly.edges[0]
        assert poly.previous_edge(poly.edges[0]) == poly.edges[-1]

    def test_bounding_box(self):
        assert Polygon(_SQUARE).bounding_box == (0, 0, 100, 100)

    def test_contains_point(self):
        poly = Polygon(_SQUARE)
        assert poly.contains_point(50, 50)
        assert not poly.contains_point(150, 50)
        assert not poly.contains_point(-1, 50)

    def test_contains_point_on_edge(self):
        poly = Polygon(_SQUARE)
        assert poly.contains_point(0, 50)
        assert not poly.contains_point(0, 50, contains_on_edge=False)
        assert not poly.contains_point(100, 100, contains_on_edge=False)

    def test_contains_polygon(self):
        outer = Polygon([(0, 0), (300, 0), (300, 300), (0, 300)])
        inner = Polygon([(100, 100), (100, 200), (200, 200), (200, 100)])
        assert outer.contains_polygon(inner)
        assert not inner.contains_polygon(outer)

    def test_contains_polygon_touching_edge(self):
        outer = Polygon([(0, 0), (300, 0), (300, 300), (0, 300)])
        touching = Polygon([(0, 0), (0, 100), (100, 100), (100, 0)])
        assert outer.contains_polygon(touching)
