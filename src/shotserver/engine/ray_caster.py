"""Ray caster - casts rays, filters collisions and handles ricochets.

A trace is one logical straight line of a given length.  When the line
hits a barrier and the bounce budget allows it, the caster reflects the
direction, restarts a few pixels past the impact point and keeps casting
until the remaining length is used up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from shotserver.engine.obstacle_scene import ObstacleQuery
from shotserver.loaders.engine_config_loader import EngineConfig
from shotserver.models.collision import Collision, CollisionKind
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.payload import RicochetSpec
from shotserver.models.shot import RicochetInfo
from shotserver.util.constants import (
    HIT_TIE_TOLERANCE,
    MIN_RECOLLISION_DISTANCE,
    RICOCHET_OFFSET,
)
from shotserver.util.geometry import reflect_direction

log = logging.getLogger(__name__)


class RayBudget:
    """Global per-shot cap on the number of cast rays."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def take(self) -> bool:
        """Consume one ray.  Returns False when the cap is reached."""
        if self.exhausted:
            return False
        self.used += 1
        return True


@dataclass
class BounceState:
    """Ricochet bookkeeping of one segment spec."""

    budget: RayBudget
    bounces: int = 0
    last_barrier: Optional[str] = None


@dataclass(frozen=True)
class CastRay:
    """A ray as cast, with the hits that ended it.

    Attributes:
        ray: Ray truncated at the nearest hit.
        ricochet: Set when the ray starts at a bounce point.
        hits: Nearest collisions (ties included); empty on a miss.
        bounced: The ray ended on a barrier it ricocheted off.
    """

    ray: RaySegment
    ricochet: RicochetInfo = field(default_factory=RicochetInfo)
    hits: tuple[Collision, ...] = ()
    bounced: bool = False


@dataclass
class TraceResult:
    """Outcome of one trace."""

    rays: list[CastRay]
    end: Point
    direction: float
    stopped: bool = False
    capped: bool = False


class RayCaster:
    """Casts rays against an obstacle query service.

    Args:
        obstacles: Obstacle query service; required.
        config: Engine configuration (ray cap, ricochet gate and defaults).

    Raises:
        ValueError: If no obstacle query service is given.
    """

    def __init__(self, obstacles: ObstacleQuery, config: EngineConfig | None = None) -> None:
        if obstacles is None:
            raise ValueError("RayCaster requires an obstacle query service")
        self.obstacles = obstacles
        self.config = config or EngineConfig()

    # -- Primitives ------------------------------------------------------

    def cast(self, origin: Point, direction: float, length: float) -> RaySegment:
        """A ray from `origin`, clamped to ``max_ray_distance``."""
        return RaySegment.cast(origin, direction, min(length, self.config.max_ray_distance))

    def bounce_limit(self, ricochet: RicochetSpec) -> int:
        """Bounce budget of a segment spec under the global gate."""
        if not (self.config.allow_ricochet and ricochet.enabled):
            return 0
        if ricochet.max_bounces is None:
            return self.config.max_ricochets
        return max(0, ricochet.max_bounces)

    def nearest_hits(
        self,
        ray: RaySegment,
        shooter_ref: Optional[str] = None,
        ignore_shooter: bool = False,
        last_barrier: Optional[str] = None,
    ) -> list[Collision]:
        """Collisions at the nearest distance along `ray`, after exclusions.

        Dropped before picking the nearest:
        - the shooter's own body when `ignore_shooter` is set,
        - the barrier just bounced off, within the re-collision distance.
        """
        candidates = []
        for c in self.obstacles.query_collisions(ray):
            if (ignore_shooter and shooter_ref is not None
                    and c.kind is CollisionKind.BODY and c.object_ref == shooter_ref):
                continue
            if (last_barrier is not None and c.kind is CollisionKind.BARRIER
                    and c.object_ref == last_barrier
                    and c.distance <= MIN_RECOLLISION_DISTANCE):
                continue
            candidates.append(c)
        if not candidates:
            return []
        nearest = min(c.distance for c in candidates)
        return [c for c in candidates if c.distance - nearest <= HIT_TIE_TOLERANCE]

    # -- Tracing ---------------------------------------------------------

    def trace(
        self,
        origin: Point,
        direction: float,
        length: float,
        ricochet: RicochetSpec,
        state: BounceState,
        shooter_ref: Optional[str] = None,
        ignore_shooter: bool = False,
    ) -> TraceResult:
        """Cast one logical line of `length`, bouncing off barriers.

        Bodies and areas always stop the line.  A barrier stops it unless
        the spec's bounce budget (tracked in `state`) has room left.
        """
        max_bounces = self.bounce_limit(ricochet)
        rays: list[CastRay] = []
        position, heading, remaining = origin, direction, length
        starts_at_bounce = False

        while remaining > 0:
            if not state.budget.take():
                return TraceResult(rays, position, heading, capped=True)

            ray = self.cast(position, heading, remaining)
            info = RicochetInfo(True, state.bounces) if starts_at_bounce else RicochetInfo()
            starts_at_bounce = False
            hits = self.nearest_hits(ray, shooter_ref, ignore_shooter, state.last_barrier)

            if not hits:
                rays.append(CastRay(ray, info))
                return TraceResult(rays, ray.end, heading)

            nearest = hits[0]
            ray = ray.truncated(nearest.distance)
            can_bounce = (
                state.bounces < max_bounces
                and nearest.edge is not None
                and all(h.kind is CollisionKind.BARRIER for h in hits)
            )
            if not can_bounce:
                rays.append(CastRay(ray, info, tuple(hits)))
                return TraceResult(rays, nearest.point, heading, stopped=True)

            rays.append(CastRay(ray, info, tuple(hits), bounced=True))
            heading = reflect_direction(heading, *nearest.edge)
            state.bounces += 1
            state.last_barrier = nearest.object_ref
            log.debug("Ricochet %d off %s at %s -> %.2f deg",
                      state.bounces, nearest.object_ref, nearest.point, heading)
            position = nearest.point.moved(heading, RICOCHET_OFFSET)
            remaining -= nearest.distance + RICOCHET_OFFSET
            starts_at_bounce = True

        return TraceResult(rays, position, heading)
