"""Scene model - the obstacles a shot can collide with.

Bodies are blocking mobile entities (tokens), barriers are blocking line
edges (walls) and areas are blocking regions (tiles, drawings).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shotserver.models.geometry import Point, Rect


@dataclass(frozen=True)
class Body:
    """A blocking mobile entity with a rectangular footprint."""

    ref: str
    rect: Rect
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Barrier:
    """A blocking line edge from `a` to `b`."""

    ref: str
    a: Point
    b: Point
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Area:
    """A blocking rectangular region."""

    ref: str
    rect: Rect
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class Scene:
    """All obstacles of one scene.

    Attributes:
        name: Scene identifier.
        bodies: Mobile entities, keyed by reference.
        barriers: Wall edges, keyed by reference.
        areas: Blocking regions, keyed by reference.
    """

    name: str = "default"
    bodies: dict[str, Body] = field(default_factory=dict)
    barriers: dict[str, Barrier] = field(default_factory=dict)
    areas: dict[str, Area] = field(default_factory=dict)

    # -- Mutation --------------------------------------------------------

    def add(self, obstacle: Body | Barrier | Area) -> None:
        """Insert or replace an obstacle by its reference."""
        if isinstance(obstacle, Body):
            self.bodies[obstacle.ref] = obstacle
        elif isinstance(obstacle, Barrier):
            self.barriers[obstacle.ref] = obstacle
        elif isinstance(obstacle, Area):
            self.areas[obstacle.ref] = obstacle
        else:
            raise TypeError(f"Not an obstacle: {obstacle!r}")

    def remove(self, ref: str) -> bool:
        """Remove the obstacle with `ref`.  Returns True if one was removed."""
        for store in (self.bodies, self.barriers, self.areas):
            if store.pop(ref, None) is not None:
                return True
        return False

    # -- Queries ---------------------------------------------------------

    def __len__(self) -> int:
        return len(self.bodies) + len(self.barriers) + len(self.areas)
