"""Weapon payload presets.

Each preset builds a Payload from keyword options, so callers can tweak
range, damage or spread without authoring the trajectory by hand::

    payload = create("shotgun", pellets=7, spread=45)
"""

from __future__ import annotations

from typing import Any, Callable

from shotserver.models.payload import (
    BranchSpec,
    LineSpec,
    LineUntilCollisionSpec,
    Payload,
    RicochetSpec,
    SegmentKind,
)


def _ricochet(allow: bool, max_bounces: int) -> RicochetSpec:
    return RicochetSpec(enabled=allow, max_bounces=max_bounces)


def _fan(count: int, spread: float, step: float) -> list[float]:
    """Offset angles of `count` sub-projectiles centred on the heading."""
    start = -spread / 2
    return [start + i * step for i in range(count)]


# -- Presets -------------------------------------------------------------

def pistol(length: float = 300, damage: dict | None = None,
           allow_ricochet: bool = False, max_ricochets: int = 0) -> Payload:
    """Single short straight line."""
    return Payload("pistol", (
        LineSpec(
            length=length,
            ricochet=_ricochet(allow_ricochet, max_ricochets),
            damage=damage or {"direct": 15},
            effects={"on_hit": ["bullet_impact"]},
        ),
    ))


def rifle(length: float = 800, damage: dict | None = None,
          allow_ricochet: bool = False, max_ricochets: int = 1) -> Payload:
    """Long straight line with high damage."""
    return Payload("rifle", (
        LineSpec(
            length=length,
            ricochet=_ricochet(allow_ricochet, max_ricochets),
            damage=damage or {"direct": 35},
            effects={"on_hit": ["heavy_bullet_impact"], "on_ricochet": ["bullet_ricochet"]},
        ),
    ))


def shotgun(length: float = 200, pellets: int = 5, spread: float = 30,
            damage: dict | None = None) -> Payload:
    """Short muzzle segment splitting into a fan of pellets."""
    if pellets < 1:
        raise ValueError(f"shotgun needs at least one pellet, got {pellets}")
    step = spread / (pellets - 1) if pellets > 1 else 0.0
    offsets = _fan(pellets, spread, step) if pellets > 1 else [0.0]
    children = tuple(
        BranchSpec(
            offset_angle=offset,
            length=length,
            damage=damage or {"direct": 8},
            effects={"on_hit": ["pellet_impact"]},
        )
        for offset in offsets
    )
    return Payload("shotgun", (
        LineSpec(
            length=50,
            damage={"direct": 1},
            effects={"on_hit": ["shotgun_muzzle_flash"]},
            children=children,
        ),
    ))


def grenade_launcher(length: float = 400, direct_damage: dict | None = None,
                     explosion_damage: dict | None = None,
                     allow_ricochet: bool = False) -> Payload:
    """Straight flight followed by an instant explosion step."""
    return Payload("grenade_launcher", (
        LineSpec(
            length=length,
            ricochet=_ricochet(allow_ricochet, 0),
            damage=direct_damage or {"direct": 25},
            effects={"on_hit": ["grenade_direct_hit"]},
        ),
        LineUntilCollisionSpec(
            length=1,
            max_iterations=1,
            damage=explosion_damage or {"area": 50},
            effects={
                "on_collision": ["grenade_explosion"],
                "on_miss": ["grenade_explosion"],
            },
        ),
    ))


def laser(length: float = 600, damage: dict | None = None,
          allow_ricochet: bool = False, max_ricochets: int = 2) -> Payload:
    """Long energy beam that can reflect off walls."""
    return Payload("laser", (
        LineSpec(
            length=length,
            ricochet=_ricochet(allow_ricochet, max_ricochets),
            damage=damage or {"direct": 20, "thermal": 10},
            effects={"on_hit": ["laser_burn"], "on_ricochet": ["laser_reflection"]},
        ),
    ))


def cluster_munition(length: float = 300, submunitions: int = 8, spread: float = 60,
                     main_damage: dict | None = None,
                     sub_damage: dict | None = None) -> Payload:
    """Straight carrier releasing stepping sub-munitions at its end."""
    if submunitions < 1:
        raise ValueError(f"cluster_munition needs at least one submunition, got {submunitions}")
    children = tuple(
        BranchSpec(
            offset_angle=offset,
            length=80,
            kind=SegmentKind.LINE_UNTIL_COLLISION,
            max_iterations=5,
            damage=sub_damage or {"direct": 15, "area": 25},
            effects={
                "on_collision": ["submunition_explosion"],
                "on_miss": ["submunition_explosion"],
            },
        )
        for offset in _fan(submunitions, spread, spread / submunitions)
    )
    return Payload("cluster_munition", (
        LineSpec(
            length=length,
            damage=main_damage or {"direct": 10},
            effects={"on_hit": ["cluster_direct_hit"]},
            children=children,
        ),
    ))


PRESETS: dict[str, Callable[..., Payload]] = {
    "pistol": pistol,
    "rifle": rifle,
    "shotgun": shotgun,
    "grenade_launcher": grenade_launcher,
    "laser": laser,
    "cluster_munition": cluster_munition,
}

DESCRIPTIONS: dict[str, dict[str, str]] = {
    "pistol": {
        "name": "Pistol",
        "description": "Simple close-range weapon with a single straight trajectory",
        "range": "short",
        "complexity": "simple",
    },
    "rifle": {
        "name": "Rifle",
        "description": "Long-range weapon with high accuracy and damage",
        "range": "long",
        "complexity": "simple",
    },
    "shotgun": {
        "name": "Shotgun",
        "description": "Splits into several pellets with a wide spread",
        "range": "short",
        "complexity": "medium (split)",
    },
    "grenade_launcher": {
        "name": "Grenade launcher",
        "description": "Two stages: projectile flight, then an explosion",
        "range": "medium",
        "complexity": "medium (explosive)",
    },
    "laser": {
        "name": "Laser",
        "description": "Energy weapon that can reflect off walls",
        "range": "long",
        "complexity": "medium (reflections)",
    },
    "cluster_munition": {
        "name": "Cluster munition",
        "description": "Carrier projectile releasing many sub-munitions",
        "range": "medium",
        "complexity": "high (multiple split)",
    },
}


def available() -> list[str]:
    """Names of all weapon presets."""
    return list(PRESETS)


def create(weapon_type: str, **options: Any) -> Payload:
    """Build the preset payload `weapon_type` with option overrides.

    Raises:
        ValueError: If the weapon type is unknown.
    """
    builder = PRESETS.get(weapon_type)
    if builder is None:
        raise ValueError(f"Unknown weapon type: {weapon_type}")
    return builder(**options)


def describe(weapon_type: str) -> dict[str, str]:
    """Display metadata of a preset; unknown types get a placeholder."""
    return dict(DESCRIPTIONS.get(weapon_type, {
        "name": "Unknown",
        "description": "Unknown weapon type",
    }))
