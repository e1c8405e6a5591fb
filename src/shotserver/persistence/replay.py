"""Shot replay - plays a stored ShotResult back through a renderer.

Replay never touches the obstacle query service: everything a renderer
needs is already in the result tree.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from shotserver.models.collision import CollisionKind
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.shot import RicochetInfo, ShotResult, iter_shots

log = logging.getLogger(__name__)


class Renderer(Protocol):
    """Drawing collaborator fed by replays and the progressive stream."""

    def draw_segment(self, shot_id: str, index: int, ray: RaySegment,
                     ricochet: RicochetInfo) -> None: ...

    def draw_hit(self, shot_id: str, kind: CollisionKind, point: Point) -> None: ...

    def finish(self, shot_id: str) -> None: ...


class ShotReplayer:
    """Replays shot trees with optional non-blocking pacing.

    Args:
        renderer: Drawing collaborator.
        segment_delay_ms: Pause before each ordinary segment.
        ricochet_delay_ms: Pause before each ricochet segment.
    """

    def __init__(
        self,
        renderer: Renderer,
        segment_delay_ms: float = 0.0,
        ricochet_delay_ms: float = 0.0,
    ) -> None:
        self.renderer = renderer
        self.segment_delay_ms = segment_delay_ms
        self.ricochet_delay_ms = ricochet_delay_ms

    async def replay(self, result: ShotResult, shot_id: Optional[str] = None) -> int:
        """Draw every segment then every hit of the tree.

        Segments and hits are drawn under the id of the shot that owns
        them, so a branch's segment 0 never replaces its parent's. Only the
        root shot is renamed by ``shot_id``.

        Returns:
            Number of segments drawn.
        """
        root_id = shot_id or result.id
        shots = [(root_id if sub is result else sub.id, sub) for sub in iter_shots(result)]
        drawn = 0
        for sub_id, sub in shots:
            for seg in sub.segments:
                delay = self.ricochet_delay_ms if seg.ricochet.is_ricochet else self.segment_delay_ms
                if delay > 0:
                    await asyncio.sleep(delay / 1000.0)
                self.renderer.draw_segment(sub_id, seg.segment_index, seg.ray, seg.ricochet)
                drawn += 1
        for sub_id, sub in shots:
            for hit in sub.hits:
                self.renderer.draw_hit(sub_id, hit.kind, hit.point)
        self.renderer.finish(root_id)
        log.debug("Replayed %s: %d segment(s)", root_id, drawn)
        return drawn
