"""Shot model - the immutable result tree of one fired shot.

A ShotResult is built by the shot executor during a single fire call
and frozen before it is returned.  Branch shots are nested full results
in ``split_shots``; use flatten_segments / flatten_hits to walk the tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from shotserver.models.collision import Collision, CollisionKind
from shotserver.models.geometry import Point, RaySegment
from shotserver.util.frozen import freeze, thaw


@dataclass(frozen=True)
class RicochetInfo:
    """Bounce marker of a rendered segment."""

    is_ricochet: bool = False
    bounce_number: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"is_ricochet": self.is_ricochet, "bounce_number": self.bounce_number}


@dataclass(frozen=True)
class ShotSegment:
    """One render-ready ray of a shot.

    Attributes:
        seg_type: Kind of the segment spec that cast this ray.
        ray: The cast ray, truncated at the impact point on a hit.
        segment_index: Position in the shot, unique and increasing.
        ricochet: Whether this ray starts at a bounce point.
        tags: Effect names triggered by this ray.
        iteration_index: Step number for line-until-collision rays.
    """

    seg_type: str
    ray: RaySegment
    segment_index: int
    ricochet: RicochetInfo = field(default_factory=RicochetInfo)
    tags: tuple[str, ...] = ()
    iteration_index: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "seg_type": self.seg_type,
            "ray": self.ray.to_dict(),
            "segment_index": self.segment_index,
            "ricochet": self.ricochet.to_dict(),
            "tags": list(self.tags),
            "iteration_index": self.iteration_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShotSegment:
        ricochet = data.get("ricochet") or {}
        return cls(
            seg_type=data["seg_type"],
            ray=RaySegment.from_dict(data["ray"]),
            segment_index=int(data["segment_index"]),
            ricochet=RicochetInfo(
                is_ricochet=bool(ricochet.get("is_ricochet", False)),
                bounce_number=int(ricochet.get("bounce_number", 0)),
            ),
            tags=tuple(data.get("tags") or ()),
            iteration_index=data.get("iteration_index"),
        )


@dataclass(frozen=True)
class ShotHit(Collision):
    """A collision that stopped (or bounced) a ray of the shot."""

    segment_type: str = ""
    segment_index: int = 0
    damage: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "damage", freeze(self.damage))

    @classmethod
    def from_collision(
        cls, collision: Collision, segment_type: str, segment_index: int,
        damage: Optional[dict[str, float]] = None,
    ) -> ShotHit:
        return cls(
            kind=collision.kind,
            point=collision.point,
            distance=collision.distance,
            object_ref=collision.object_ref,
            edge=collision.edge,
            meta=dict(collision.meta),
            segment_type=segment_type,
            segment_index=segment_index,
            damage=dict(damage or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["segment_type"] = self.segment_type
        data["segment_index"] = self.segment_index
        data["damage"] = thaw(self.damage)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShotHit:
        return cls(
            **Collision.fields_from_dict(data),
            segment_type=data.get("segment_type", ""),
            segment_index=int(data.get("segment_index", 0)),
            damage=dict(data.get("damage") or {}),
        )


@dataclass(frozen=True)
class BranchOrigin:
    """Where a split shot was spawned from in its parent."""

    parent_segment_index: int
    parent_segment_type: str
    child_index: int
    offset_angle: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_segment_index": self.parent_segment_index,
            "parent_segment_type": self.parent_segment_type,
            "child_index": self.child_index,
            "offset_angle": self.offset_angle,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BranchOrigin:
        return cls(
            parent_segment_index=int(data["parent_segment_index"]),
            parent_segment_type=data["parent_segment_type"],
            child_index=int(data["child_index"]),
            offset_angle=float(data["offset_angle"]),
        )


@dataclass(frozen=True)
class ShotResult:
    """Complete output of one fired shot.

    Attributes:
        id: Unique shot id (``shot_<ms>_<n>``).
        timestamp: Fire time in epoch milliseconds.
        shooter_ref: Identifier of the firing entity, if any.
        source: Launch point.
        direction: Launch direction in degrees.
        payload: The fired payload, echoed as a read-only mapping.
        segments: Rendered rays in cast order.
        hits: Collisions that stopped or bounced a ray.
        split_shots: Nested results of branch shots.
        total_distance: Summed length of all rays of this shot.
        execution_time_ms: Wall time spent executing, children included.
        completed: False when the shot was aborted by a fault.
        error: Fault description when aborted.
        branch: Spawn origin, for split shots only.
    """

    id: str
    timestamp: int
    shooter_ref: Optional[str]
    source: Point
    direction: float
    payload: Mapping[str, Any]
    segments: tuple[ShotSegment, ...] = ()
    hits: tuple[ShotHit, ...] = ()
    split_shots: tuple[ShotResult, ...] = ()
    total_distance: float = 0.0
    execution_time_ms: float = 0.0
    completed: bool = False
    error: Optional[str] = None
    branch: Optional[BranchOrigin] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", freeze(self.payload))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "shooter_ref": self.shooter_ref,
            "source": self.source.to_dict(),
            "direction": self.direction,
            "payload": thaw(self.payload),
            "segments": [s.to_dict() for s in self.segments],
            "hits": [h.to_dict() for h in self.hits],
            "split_shots": [child.to_dict() for child in self.split_shots],
            "total_distance": self.total_distance,
            "execution_time_ms": self.execution_time_ms,
            "completed": self.completed,
            "error": self.error,
            "branch": self.branch.to_dict() if self.branch else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShotResult:
        branch = data.get("branch")
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            shooter_ref=data.get("shooter_ref"),
            source=Point.from_dict(data["source"]),
            direction=float(data["direction"]),
            payload=data.get("payload") or {},
            segments=tuple(ShotSegment.from_dict(s) for s in data.get("segments") or ()),
            hits=tuple(ShotHit.from_dict(h) for h in data.get("hits") or ()),
            split_shots=tuple(cls.from_dict(c) for c in data.get("split_shots") or ()),
            total_distance=float(data.get("total_distance", 0.0)),
            execution_time_ms=float(data.get("execution_time_ms", 0.0)),
            completed=bool(data.get("completed", False)),
            error=data.get("error"),
            branch=BranchOrigin.from_dict(branch) if branch else None,
        )

    @property
    def ricochet_count(self) -> int:
        return sum(1 for s in self.segments if s.ricochet.is_ricochet)

    def hits_of_kind(self, kind: CollisionKind) -> list[ShotHit]:
        return [h for h in self.hits if h.kind is kind]


# -- Tree traversal ------------------------------------------------------

def iter_shots(result: ShotResult):
    """Yield a result and all nested split shots, depth first (pre-order)."""
    stack = [result]
    while stack:
        shot = stack.pop()
        yield shot
        stack.extend(reversed(shot.split_shots))


def flatten_segments(result: ShotResult) -> list[ShotSegment]:
    """All segments of the tree, parent before children."""
    return [seg for shot in iter_shots(result) for seg in shot.segments]


def flatten_hits(result: ShotResult) -> list[ShotHit]:
    """All hits of the tree, parent before children."""
    return [hit for shot in iter_shots(result) for hit in shot.hits]
