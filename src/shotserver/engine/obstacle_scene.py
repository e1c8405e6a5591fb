"""Obstacle query service over an in-memory scene snapshot.

The executor only depends on the ObstacleQuery protocol; ObstacleScene is
the implementation used by the server and the tests.
"""

from __future__ import annotations

import logging
from typing import Protocol

from shotserver.models.collision import Collision, CollisionKind
from shotserver.models.geometry import RaySegment
from shotserver.models.scene import Scene
from shotserver.util.geometry import intersect_segment_rect, intersect_segments

log = logging.getLogger(__name__)


class ObstacleQuery(Protocol):
    """Anything that can report the obstacles a ray runs into."""

    def query_collisions(self, segment: RaySegment) -> list[Collision]:
        """Collisions along `segment`, sorted ascending by distance."""
        ...


class ObstacleScene:
    """Collision queries against a Scene.

    The scene is read, never modified.  Callers must not mutate it while
    a shot is executing.
    """

    def __init__(self, scene: Scene | None = None) -> None:
        self.scene = scene if scene is not None else Scene()

    def query_collisions(self, segment: RaySegment) -> list[Collision]:
        """Return every obstacle `segment` intersects, nearest first."""
        start, end = segment.start, segment.end
        found: list[Collision] = []

        for body in self.scene.bodies.values():
            point = intersect_segment_rect(start, end, body.rect)
            if point is not None:
                found.append(Collision(
                    kind=CollisionKind.BODY,
                    point=point,
                    distance=start.distance_to(point),
                    object_ref=body.ref,
                    meta=dict(body.meta),
                ))

        for barrier in self.scene.barriers.values():
            point = intersect_segments(start, end, barrier.a, barrier.b)
            if point is not None:
                found.append(Collision(
                    kind=CollisionKind.BARRIER,
                    point=point,
                    distance=start.distance_to(point),
                    object_ref=barrier.ref,
                    edge=(barrier.a, barrier.b),
                    meta=dict(barrier.meta),
                ))

        for area in self.scene.areas.values():
            point = intersect_segment_rect(start, end, area.rect)
            if point is not None:
                found.append(Collision(
                    kind=CollisionKind.AREA,
                    point=point,
                    distance=start.distance_to(point),
                    object_ref=area.ref,
                    meta=dict(area.meta),
                ))

        found.sort(key=lambda c: c.distance)
        if found:
            log.debug("Ray %s -> %s: %d collision(s)", start, end, len(found))
        return found
