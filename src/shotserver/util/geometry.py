"""Geometry kernel - 2D intersection and reflection primitives.

Pure functions over Point / Rect.  This is the only place that does
floating-point geometry; tolerances come from util.constants.
"""

from __future__ import annotations

import math

from shotserver.models.geometry import Point, Rect
from shotserver.util.constants import PARALLEL_EPSILON, RECT_TOLERANCE

Vector = tuple[float, float]


def direction_vector(direction: float) -> Vector:
    """Unit vector for a direction in degrees."""
    rad = math.radians(direction)
    return (math.cos(rad), math.sin(rad))


def vector_direction(vector: Vector) -> float:
    """Direction in degrees of a vector (atan2, range -180..180)."""
    return math.degrees(math.atan2(vector[1], vector[0]))


def intersect_segments(
    a_start: Point, a_end: Point, b_start: Point, b_end: Point,
) -> Point | None:
    """Intersection point of segments a and b, or None.

    Uses the determinant / parametric form.  Parallel (and collinear)
    segments never intersect.
    """
    x1, y1, x2, y2 = a_start.x, a_start.y, a_end.x, a_end.y
    x3, y3, x4, y4 = b_start.x, b_start.y, b_end.x, b_end.y

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < PARALLEL_EPSILON:
        return None

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom

    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return Point(x1 + t * (x2 - x1), y1 + t * (y2 - y1))
    return None


def intersect_segment_rect(
    start: Point, end: Point, rect: Rect, tolerance: float = RECT_TOLERANCE,
) -> Point | None:
    """Entry point of a segment into a rectangle (slab method), or None.

    The rectangle is widened by `tolerance` on every side so grazing
    rays along an edge still register.  A segment starting inside the
    rectangle enters at its own start point.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    if dx == 0 and dy == 0:
        return None

    left, right = rect.left - tolerance, rect.right + tolerance
    top, bottom = rect.top - tolerance, rect.bottom + tolerance

    t_min, t_max = 0.0, 1.0

    if dx != 0:
        t1 = (left - start.x) / dx
        t2 = (right - start.x) / dx
        t_min = max(t_min, min(t1, t2))
        t_max = min(t_max, max(t1, t2))
    elif start.x < left or start.x > right:
        return None

    if dy != 0:
        t1 = (top - start.y) / dy
        t2 = (bottom - start.y) / dy
        t_min = max(t_min, min(t1, t2))
        t_max = min(t_max, max(t1, t2))
    elif start.y < top or start.y > bottom:
        return None

    if 0.0 <= t_min <= t_max <= 1.0:
        return Point(start.x + t_min * dx, start.y + t_min * dy)
    return None


def edge_normal(a: Point, b: Point) -> Vector:
    """Unit normal of the edge a→b (edge vector rotated by 90°).

    The sign is arbitrary; reflection does not depend on it.

    Raises:
        ValueError: If the edge has zero length.
    """
    ex, ey = b.x - a.x, b.y - a.y
    length = math.hypot(ex, ey)
    if length == 0:
        raise ValueError(f"Degenerate edge {a} -> {b} has no normal")
    return (-ey / length, ex / length)


def reflect(incident: Vector, normal: Vector) -> Vector:
    """Reflect `incident` about a mirror with normal `normal`: R = I - 2(I·N)N."""
    nx, ny = normal
    n_len = math.hypot(nx, ny)
    if n_len == 0:
        raise ValueError("Cannot reflect about a zero normal")
    nx, ny = nx / n_len, ny / n_len
    dot = incident[0] * nx + incident[1] * ny
    return (incident[0] - 2 * dot * nx, incident[1] - 2 * dot * ny)


def reflect_direction(direction: float, edge_start: Point, edge_end: Point) -> float:
    """Direction in degrees after bouncing off the edge edge_start→edge_end."""
    reflected = reflect(direction_vector(direction), edge_normal(edge_start, edge_end))
    return vector_direction(reflected)
