"""Collision model - a ray meeting an obstacle.

Collisions are produced by the obstacle query service and are always
handed around as lists sorted ascending by distance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from shotserver.models.geometry import Point
from shotserver.util.frozen import freeze, thaw


class CollisionKind(Enum):
    """Obstacle kinds a ray can run into."""

    BODY = "body"  # blocking mobile entity
    BARRIER = "barrier"  # blocking line edge (can be ricocheted off)
    AREA = "area"  # blocking region


@dataclass(frozen=True)
class Collision:
    """A single ray/obstacle intersection.

    Attributes:
        kind: Obstacle kind.
        point: Impact point in scene coordinates.
        distance: Distance from the ray start to the impact point.
        object_ref: Identifier of the obstacle that was hit.
        edge: Endpoints of the blocking edge (barriers only, needed for reflection).
        meta: Free-form per-kind metadata from the obstacle store (read-only).
    """

    kind: CollisionKind
    point: Point
    distance: float
    object_ref: Optional[str] = None
    edge: Optional[tuple[Point, Point]] = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "meta", freeze(self.meta))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "point": self.point.to_dict(),
            "distance": self.distance,
            "object_ref": self.object_ref,
            "edge": [p.to_dict() for p in self.edge] if self.edge else None,
            "meta": thaw(self.meta),
        }
        return data

    @staticmethod
    def fields_from_dict(data: dict[str, Any]) -> dict[str, Any]:
        """Constructor keyword arguments decoded from ``to_dict`` output."""
        edge = data.get("edge")
        return {
            "kind": CollisionKind(data["kind"]),
            "point": Point.from_dict(data["point"]),
            "distance": float(data["distance"]),
            "object_ref": data.get("object_ref"),
            "edge": (Point.from_dict(edge[0]), Point.from_dict(edge[1])) if edge else None,
            "meta": dict(data.get("meta") or {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Collision:
        return cls(**cls.fields_from_dict(data))
