"""Payload model - the authored shape of a projectile's trajectory.

A Payload is an ordered list of segment specs.  The segment specs form
a closed union (LineSpec | LineUntilCollisionSpec); the engine
dispatches on the concrete type.

Dict format (YAML / JSON)::

    name: rifle
    ignore_shooter_segments: 1
    trajectory:
      - kind: line
        length: 800
        ricochet: {enabled: true, max_bounces: 1}
        damage: {direct: 35}
        effects: {on_hit: [heavy_bullet_impact]}
      - kind: line_until_collision
        length: 50
        max_iterations: 10
        children:
          - {offset_angle: -30, length: 100}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from shotserver.util.constants import DEFAULT_MAX_ITERATIONS


class SegmentKind:
    """Segment kind strings used in authored payloads."""

    LINE = "line"
    LINE_UNTIL_COLLISION = "line_until_collision"


# Legacy spellings accepted on input.
_KIND_ALIASES = {
    "lineRec": SegmentKind.LINE_UNTIL_COLLISION,
    "line_rec": SegmentKind.LINE_UNTIL_COLLISION,
}


@dataclass(frozen=True)
class RicochetSpec:
    """Ricochet settings of a segment.

    Attributes:
        enabled: Whether barrier hits bounce instead of stopping.
        max_bounces: Bounce budget; None means the engine default.
    """

    enabled: bool = False
    max_bounces: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "max_bounces": self.max_bounces}


@dataclass(frozen=True)
class BranchSpec:
    """A sub-projectile spawned at its parent segment's terminal point.

    Attributes:
        offset_angle: Degrees added to the parent's terminal direction.
        length: Length of the child's single segment.
        kind: Segment kind of the child (line by default).
        max_iterations: Iteration cap when kind is line_until_collision.
        damage: Damage carried by the child's hits.
        effects: Effect hooks of the child segment.
    """

    offset_angle: float
    length: float
    kind: str = SegmentKind.LINE
    max_iterations: Optional[int] = None
    damage: dict[str, float] = field(default_factory=dict)
    effects: dict[str, list[str]] = field(default_factory=dict)

    def to_segment(self) -> SegmentSpec:
        """The single segment spec a child payload is built from."""
        if self.kind == SegmentKind.LINE_UNTIL_COLLISION:
            return LineUntilCollisionSpec(
                length=self.length,
                max_iterations=self.max_iterations or DEFAULT_MAX_ITERATIONS,
                damage=dict(self.damage),
                effects=dict(self.effects),
            )
        return LineSpec(length=self.length, damage=dict(self.damage), effects=dict(self.effects))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"offset_angle": self.offset_angle, "length": self.length}
        if self.kind != SegmentKind.LINE:
            data["kind"] = self.kind
            data["max_iterations"] = self.max_iterations
        if self.damage:
            data["damage"] = dict(self.damage)
        if self.effects:
            data["effects"] = {hook: list(names) for hook, names in self.effects.items()}
        return data


@dataclass(frozen=True)
class LineSpec:
    """Fixed-length straight line."""

    kind: ClassVar[str] = SegmentKind.LINE

    length: float
    ricochet: RicochetSpec = field(default_factory=RicochetSpec)
    children: tuple[BranchSpec, ...] = ()
    damage: dict[str, float] = field(default_factory=dict)
    effects: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return _segment_to_dict(self, {"length": self.length})


@dataclass(frozen=True)
class LineUntilCollisionSpec:
    """Line stepped in `length` increments until something is hit.

    Attributes:
        length: Step size; None means the engine's fire_segment_length.
        max_iterations: Maximum number of steps.
    """

    kind: ClassVar[str] = SegmentKind.LINE_UNTIL_COLLISION

    length: Optional[float] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    ricochet: RicochetSpec = field(default_factory=RicochetSpec)
    children: tuple[BranchSpec, ...] = ()
    damage: dict[str, float] = field(default_factory=dict)
    effects: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return _segment_to_dict(self, {
            "length": self.length,
            "max_iterations": self.max_iterations,
        })


SegmentSpec = Union[LineSpec, LineUntilCollisionSpec]
SEGMENT_SPEC_TYPES = (LineSpec, LineUntilCollisionSpec)


@dataclass(frozen=True)
class Payload:
    """Authored projectile description.

    Attributes:
        name: Display name (weapon label).
        trajectory: Ordered segment specs.
        ignore_shooter_segments: Number of leading segments that do not
            collide with the shooter's own body.
    """

    name: str
    trajectory: tuple[SegmentSpec, ...]
    ignore_shooter_segments: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "trajectory": [spec.to_dict() for spec in self.trajectory],
            "ignore_shooter_segments": self.ignore_shooter_segments,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Payload:
        """Parse a payload dict.

        Raises:
            ValueError: On unknown segment kinds or missing numeric fields.
        """
        raw = data.get("trajectory")
        if not isinstance(raw, list):
            raise ValueError("Payload must contain a trajectory list")
        return cls(
            name=str(data.get("name", "")),
            trajectory=tuple(segment_from_dict(entry) for entry in raw),
            ignore_shooter_segments=int(data.get("ignore_shooter_segments", 1)),
        )


# -- Parsing -------------------------------------------------------------

def _segment_to_dict(spec: SegmentSpec, base: dict[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {"kind": spec.kind, **base}
    if spec.ricochet.enabled:
        data["ricochet"] = spec.ricochet.to_dict()
    if spec.children:
        data["children"] = [child.to_dict() for child in spec.children]
    if spec.damage:
        data["damage"] = dict(spec.damage)
    if spec.effects:
        data["effects"] = {hook: list(names) for hook, names in spec.effects.items()}
    return data


def _number(data: dict[str, Any], key: str, required: bool = True) -> Optional[float]:
    value = data.get(key)
    if value is None:
        if required:
            raise ValueError(f"Segment is missing required numeric field {key!r}")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Segment field {key!r} must be a number, got {value!r}")
    return float(value)


def _kind(data: dict[str, Any], default: Optional[str] = None) -> Optional[str]:
    raw = data.get("kind", data.get("type", default))
    return _KIND_ALIASES.get(raw, raw)


def _ricochet_from_dict(data: Any) -> RicochetSpec:
    if not data:
        return RicochetSpec()
    max_bounces = data.get("max_bounces")
    return RicochetSpec(
        enabled=bool(data.get("enabled", False)),
        max_bounces=int(max_bounces) if max_bounces is not None else None,
    )


def _extras_from_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Damage and effect hooks; null hook lists become empty."""
    return {
        "damage": {k: float(v) for k, v in (data.get("damage") or {}).items()},
        "effects": {hook: list(names or []) for hook, names in (data.get("effects") or {}).items()},
    }


def branch_from_dict(data: dict[str, Any]) -> BranchSpec:
    """Parse a branch (child projectile) dict."""
    kind = _kind(data, SegmentKind.LINE)
    if kind not in (SegmentKind.LINE, SegmentKind.LINE_UNTIL_COLLISION):
        raise ValueError(f"Unknown branch segment kind: {kind!r}")
    max_iterations = data.get("max_iterations")
    return BranchSpec(
        offset_angle=float(data.get("offset_angle", 0.0)),
        length=_number(data, "length"),
        kind=kind,
        max_iterations=int(max_iterations) if max_iterations is not None else None,
        **_extras_from_dict(data),
    )


def segment_from_dict(data: dict[str, Any]) -> SegmentSpec:
    """Parse one trajectory entry into its segment spec.

    Raises:
        ValueError: Unknown kind or missing / non-numeric length.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Trajectory entry must be a mapping, got {data!r}")
    kind = _kind(data)

    common: dict[str, Any] = {
        "ricochet": _ricochet_from_dict(data.get("ricochet")),
        "children": tuple(branch_from_dict(c) for c in data.get("children") or ()),
        **_extras_from_dict(data),
    }

    if kind == SegmentKind.LINE:
        return LineSpec(length=_number(data, "length"), **common)
    if kind == SegmentKind.LINE_UNTIL_COLLISION:
        max_iterations = data.get("max_iterations", DEFAULT_MAX_ITERATIONS)
        return LineUntilCollisionSpec(
            length=_number(data, "length", required=False),
            max_iterations=int(max_iterations),
            **common,
        )
    raise ValueError(f"Unknown trajectory segment kind: {kind!r}")
