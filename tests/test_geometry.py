"""Tests for the geometry kernel and geometry value objects."""

import math

import pytest

from shotserver.models.geometry import Point, RaySegment, Rect
from shotserver.util.geometry import (
    direction_vector,
    edge_normal,
    intersect_segment_rect,
    intersect_segments,
    reflect,
    reflect_direction,
    vector_direction,
)


def _close(a: Point, b: Point, tol: float = 1e-9) -> bool:
    return abs(a.x - b.x) <= tol and abs(a.y - b.y) <= tol


class TestPoint:
    def test_moved_along_axes(self):
        p = Point(10, 10)
        assert _close(p.moved(0, 5), Point(15, 10))
        assert _close(p.moved(90, 5), Point(10, 15))  # 90° is screen-down

    def test_distance(self):
        assert Point(0, 0).distance_to(Point(3, 4)) == 5

    def test_from_dict_accepts_pairs(self):
        assert Point.from_dict([1, 2]) == Point(1.0, 2.0)
        assert Point.from_dict({"x": 1, "y": 2}) == Point(1.0, 2.0)


class TestRaySegment:
    def test_cast_and_length(self):
        ray = RaySegment.cast(Point(0, 0), 0, 200)
        assert _close(ray.end, Point(200, 0))
        assert ray.length == pytest.approx(200)

    def test_truncated_keeps_start_and_direction(self):
        ray = RaySegment.cast(Point(0, 0), 90, 200).truncated(50)
        assert ray.start == Point(0, 0)
        assert ray.direction == 90
        assert ray.length == pytest.approx(50)


class TestIntersectSegments:
    def test_crossing(self):
        hit = intersect_segments(Point(0, 0), Point(10, 10), Point(0, 10), Point(10, 0))
        assert _close(hit, Point(5, 5))

    def test_parallel_returns_none(self):
        assert intersect_segments(Point(0, 0), Point(10, 0), Point(0, 1), Point(10, 1)) is None

    def test_collinear_returns_none(self):
        assert intersect_segments(Point(0, 0), Point(10, 0), Point(5, 0), Point(15, 0)) is None

    def test_outside_parameter_range(self):
        # Lines cross at (20, 0) which is beyond the first segment.
        assert intersect_segments(Point(0, 0), Point(10, 0), Point(20, -5), Point(20, 5)) is None

    def test_touching_endpoint_counts(self):
        hit = intersect_segments(Point(0, 0), Point(10, 0), Point(10, -5), Point(10, 5))
        assert _close(hit, Point(10, 0))


class TestIntersectSegmentRect:
    RECT = Rect(100, -20, 40, 40)

    def test_entry_point(self):
        hit = intersect_segment_rect(Point(0, 0), Point(200, 0), self.RECT)
        assert _close(hit, Point(99.5, 0))  # widened by the 0.5px tolerance

    def test_miss(self):
        assert intersect_segment_rect(Point(0, 100), Point(200, 100), self.RECT) is None

    def test_segment_ends_before_rect(self):
        assert intersect_segment_rect(Point(0, 0), Point(50, 0), self.RECT) is None

    def test_start_inside_enters_at_start(self):
        hit = intersect_segment_rect(Point(120, 0), Point(300, 0), self.RECT)
        assert _close(hit, Point(120, 0))

    def test_vertical_segment(self):
        hit = intersect_segment_rect(Point(120, -100), Point(120, 100), self.RECT)
        assert _close(hit, Point(120, -20.5))

    def test_zero_length_segment(self):
        assert intersect_segment_rect(Point(120, 0), Point(120, 0), self.RECT) is None


class TestReflection:
    def test_normal_is_unit_and_perpendicular(self):
        nx, ny = edge_normal(Point(0, 0), Point(3, 4))
        assert math.hypot(nx, ny) == pytest.approx(1.0)
        assert nx * 3 + ny * 4 == pytest.approx(0.0)

    def test_degenerate_edge_raises(self):
        with pytest.raises(ValueError):
            edge_normal(Point(1, 1), Point(1, 1))

    def test_reflect_formula(self):
        incident = direction_vector(30)
        normal = edge_normal(Point(0, 0), Point(0, 10))
        rx, ry = reflect(incident, normal)
        dot = incident[0] * normal[0] + incident[1] * normal[1]
        assert rx == pytest.approx(incident[0] - 2 * dot * normal[0])
        assert ry == pytest.approx(incident[1] - 2 * dot * normal[1])

    def test_reflect_ignores_normal_sign(self):
        incident = direction_vector(45)
        n = edge_normal(Point(0, 0), Point(10, 0))
        flipped = (-n[0], -n[1])
        assert reflect(incident, n) == pytest.approx(reflect(incident, flipped))

    def test_head_on_wall_reverses(self):
        assert abs(reflect_direction(0, Point(100, -10), Point(100, 10))) == pytest.approx(180)

    def test_glancing_horizontal_wall(self):
        assert reflect_direction(45, Point(0, 100), Point(200, 100)) == pytest.approx(-45)

    def test_vector_direction_roundtrip(self):
        assert vector_direction(direction_vector(120)) == pytest.approx(120)
