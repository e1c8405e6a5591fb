"""Scene loader - parses obstacle scene YAML files into Scene models.

Format::

    name: courtyard
    bodies:
      guard: {x: 300, y: 80, width: 40, height: 40}
    barriers:
      north_wall: {a: [0, 0], b: [800, 0]}
    areas:
      pillar: {x: 400, y: 300, width: 60, height: 60}

Every obstacle may carry an optional ``meta`` mapping.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from shotserver.models.geometry import Point, Rect
from shotserver.models.scene import Area, Barrier, Body, Scene


def _rect(ref: str, attrs: dict[str, Any]) -> Rect:
    try:
        return Rect.from_dict(attrs)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Obstacle {ref!r} needs x, y, width and height") from exc


def _endpoint(ref: str, attrs: dict[str, Any], key: str) -> Point:
    try:
        return Point.from_dict(attrs[key])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Barrier {ref!r} needs endpoint {key!r} as [x, y]") from exc


def scene_from_dict(data: dict[str, Any]) -> Scene:
    """Build a Scene from its dict form.

    Raises:
        ValueError: If an obstacle entry is malformed.
    """
    scene = Scene(name=str(data.get("name", "default")))

    for ref, attrs in (data.get("bodies") or {}).items():
        scene.add(Body(str(ref), _rect(ref, attrs), dict(attrs.get("meta") or {})))

    for ref, attrs in (data.get("barriers") or {}).items():
        a, b = _endpoint(ref, attrs, "a"), _endpoint(ref, attrs, "b")
        if a == b:
            raise ValueError(f"Barrier {ref!r} has zero length")
        scene.add(Barrier(str(ref), a, b, dict(attrs.get("meta") or {})))

    for ref, attrs in (data.get("areas") or {}).items():
        scene.add(Area(str(ref), _rect(ref, attrs), dict(attrs.get("meta") or {})))

    return scene


def scene_to_dict(scene: Scene) -> dict[str, Any]:
    """Inverse of scene_from_dict."""
    return {
        "name": scene.name,
        "bodies": {
            ref: {**body.rect.to_dict(), "meta": dict(body.meta)}
            for ref, body in scene.bodies.items()
        },
        "barriers": {
            ref: {"a": [bar.a.x, bar.a.y], "b": [bar.b.x, bar.b.y], "meta": dict(bar.meta)}
            for ref, bar in scene.barriers.items()
        },
        "areas": {
            ref: {**area.rect.to_dict(), "meta": dict(area.meta)}
            for ref, area in scene.areas.items()
        },
    }


def load_scene(path: str | Path) -> Scene:
    """Load an obstacle scene from a YAML file.

    Args:
        path: Path to the scene YAML file.

    Returns:
        Populated Scene instance.
    """
    path = Path(path)
    with path.open() as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}
    return scene_from_dict(data)
