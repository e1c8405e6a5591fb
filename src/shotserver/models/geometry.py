"""Scene geometry value objects - points, rectangles and ray segments.

Scene coordinates are floats in pixels.  Directions are degrees with
0° along +x and 90° along +y (screen-down), increasing clockwise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Point:
    """Immutable scene coordinate.

    Attributes:
        x: Horizontal coordinate.
        y: Vertical coordinate (grows downwards).
    """

    x: float
    y: float

    # -- Geometry --------------------------------------------------------

    def distance_to(self, other: Point) -> float:
        """Euclidean distance to another point."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def moved(self, direction: float, distance: float) -> Point:
        """Return the point `distance` pixels away along `direction` degrees."""
        rad = math.radians(direction)
        return Point(self.x + math.cos(rad) * distance, self.y + math.sin(rad) * distance)

    # -- Serialization ---------------------------------------------------

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Any) -> Point:
        """Build a point from ``{"x": .., "y": ..}`` or an ``[x, y]`` pair."""
        if isinstance(data, Point):
            return data
        if isinstance(data, dict):
            return cls(float(data["x"]), float(data["y"]))
        x, y = data
        return cls(float(x), float(y))


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle anchored at its top-left corner."""

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rect:
        return cls(
            float(data["x"]), float(data["y"]),
            float(data["width"]), float(data["height"]),
        )


@dataclass(frozen=True)
class RaySegment:
    """One contiguous straight ray cast during shot execution.

    Attributes:
        start: Where the ray begins.
        end: Where the ray ends (truncated to the impact point on a hit).
        direction: Travel direction in degrees.
    """

    start: Point
    end: Point
    direction: float

    @classmethod
    def cast(cls, origin: Point, direction: float, length: float) -> RaySegment:
        """Create a ray of `length` pixels from `origin` along `direction`."""
        return cls(start=origin, end=origin.moved(direction, length), direction=direction)

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)

    def truncated(self, distance: float) -> RaySegment:
        """Return a copy ending `distance` pixels from the start."""
        return RaySegment(self.start, self.start.moved(self.direction, distance), self.direction)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "direction": self.direction,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RaySegment:
        return cls(
            start=Point.from_dict(data["start"]),
            end=Point.from_dict(data["end"]),
            direction=float(data["direction"]),
        )
