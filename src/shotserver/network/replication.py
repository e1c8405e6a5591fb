"""Shot replication - publishing results and consuming them remotely.

The authoritative channel is a single ``shot_record`` carrying the whole
ShotResult; every consumer replays from it.  The progressive channel
(``fire_shot`` / ``shot_segment`` / ``shot_hit`` / ``shot_complete``) only
drives animation and is never used to resolve hits.

Delivery is at-most-once: transport failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from shotserver.models.collision import CollisionKind
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.messages import (
    FireShot,
    ShotCompleteMessage,
    ShotHitMessage,
    ShotMessage,
    ShotRecord,
    ShotSegmentMessage,
    parse_message,
)
from shotserver.models.shot import RicochetInfo, ShotResult, iter_shots
from shotserver.network.serialization import segment_info, segment_infos, shot_from_dict, shot_to_dict
from shotserver.persistence.replay import Renderer, ShotReplayer
from shotserver.persistence.shot_store import ShotStore
from shotserver.util.geometry import vector_direction

log = logging.getLogger(__name__)

# Send signature: async (message dict) -> None
SendFn = Callable[[dict[str, Any]], Awaitable[None]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ShotBroadcaster:
    """Publishes shot results through a send callable.

    Args:
        send: Async callable delivering one message dict.
        sender: Peer id stamped on every message.
        segment_delay_ms: Pause between progressive segment messages.
        ricochet_delay_ms: Pause before progressive ricochet segments.
    """

    def __init__(
        self,
        send: SendFn,
        sender: int = 0,
        segment_delay_ms: float = 0.0,
        ricochet_delay_ms: float = 0.0,
    ) -> None:
        self._send_fn = send
        self.sender = sender
        self.segment_delay_ms = segment_delay_ms
        self.ricochet_delay_ms = ricochet_delay_ms

    async def publish_record(
        self, result: ShotResult, meta: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Send the authoritative record.  Returns False if delivery failed."""
        msg = ShotRecord(
            sender=self.sender,
            timestamp=_now_ms(),
            shot=shot_to_dict(result),
            meta=dict(meta or {}),
        )
        return await self._send(msg)

    async def publish_progressive(self, result: ShotResult, weapon_label: str = "") -> int:
        """Stream a result for progressive playback.

        Returns:
            Number of messages delivered.
        """
        shooter = result.shooter_ref
        delivered = 0

        delivered += await self._send(FireShot(
            sender=self.sender,
            timestamp=_now_ms(),
            shot_id=result.id,
            shooter_ref=shooter,
            direction=result.direction,
            source=result.source.to_dict(),
            weapon_label=weapon_label or result.payload.get("name", ""),
        ))

        ricochets = 0
        for sub in iter_shots(result):
            for seg in sub.segments:
                if seg.ricochet.is_ricochet:
                    ricochets += 1
                    delay = self.ricochet_delay_ms
                else:
                    delay = self.segment_delay_ms
                if delay > 0:
                    await asyncio.sleep(delay / 1000.0)
                delivered += await self._send(ShotSegmentMessage(
                    sender=self.sender,
                    timestamp=_now_ms(),
                    shot_id=sub.id,
                    root_shot_id=result.id,
                    shooter_ref=shooter,
                    segment_index=seg.segment_index,
                    segment=segment_info(seg),
                    ricochet_count=ricochets,
                ))

        total_hits = 0
        for sub in iter_shots(result):
            for hit in sub.hits:
                total_hits += 1
                delivered += await self._send(ShotHitMessage(
                    sender=self.sender,
                    timestamp=_now_ms(),
                    shot_id=sub.id,
                    root_shot_id=result.id,
                    shooter_ref=shooter,
                    hit_kind=hit.kind.value,
                    hit_point=hit.point.to_dict(),
                    target_ref=hit.object_ref,
                    distance=hit.distance,
                ))

        infos = segment_infos(result)
        delivered += await self._send(ShotCompleteMessage(
            sender=self.sender,
            timestamp=_now_ms(),
            shot_id=result.id,
            shooter_ref=shooter,
            total_segments=len(infos),
            total_hits=total_hits,
            segments=infos,
        ))
        return delivered

    async def _send(self, msg: ShotMessage) -> bool:
        try:
            await self._send_fn(msg.model_dump())
        except Exception as exc:
            log.warning("Dropping %s message: %s", msg.type, exc)
            return False
        log.debug("Sent %s", msg.type)
        return True


class ShotReceiver:
    """Consumes replication messages on a peer.

    Records are stored and replayed; progressive messages only reach the
    renderer.  Messages stamped with this peer's own id are ignored.

    Args:
        renderer: Drawing collaborator.
        store: History store for received records.
        replayer: Replays received records; defaults to an unpaced one.
        own_sender: This peer's id, or None to accept every sender.
    """

    def __init__(
        self,
        renderer: Renderer,
        store: Optional[ShotStore] = None,
        replayer: Optional[ShotReplayer] = None,
        own_sender: Optional[int] = None,
    ) -> None:
        self.renderer = renderer
        self.store = store
        self.replayer = replayer or ShotReplayer(renderer)
        self.own_sender = own_sender
        self._handlers: dict[str, Callable[[Any], Awaitable[None]]] = {
            "fire_shot": self._on_fire_shot,
            "shot_segment": self._on_segment,
            "shot_hit": self._on_hit,
            "shot_complete": self._on_complete,
            "shot_record": self._on_record,
        }

    async def handle(self, raw: dict[str, Any]) -> bool:
        """Process one incoming message.  Returns True if it was acted on."""
        try:
            msg = parse_message(raw)
        except ValidationError as exc:
            log.warning("Ignoring malformed %s message: %s", raw.get("type"), exc)
            return False
        if msg.sender == self.own_sender:
            return False
        handler = self._handlers.get(msg.type)
        if handler is None:
            log.warning("Unknown replication message type: %s", msg.type)
            return False
        log.debug("Received %s from %d", msg.type, msg.sender)
        await handler(msg)
        return True

    # -- Handlers --------------------------------------------------------

    async def _on_fire_shot(self, msg: FireShot) -> None:
        log.debug("Peer %d fired %s (%s)", msg.sender, msg.shot_id, msg.weapon_label)

    async def _on_segment(self, msg: ShotSegmentMessage) -> None:
        start = Point(msg.segment.start.x, msg.segment.start.y)
        end = Point(msg.segment.end.x, msg.segment.end.y)
        ray = RaySegment(start, end, vector_direction((end.x - start.x, end.y - start.y)))
        ricochet = RicochetInfo(msg.segment.is_ricochet, msg.segment.bounce_number)
        self.renderer.draw_segment(msg.shot_id, msg.segment_index, ray, ricochet)

    async def _on_hit(self, msg: ShotHitMessage) -> None:
        try:
            kind = CollisionKind(msg.hit_kind)
        except ValueError:
            log.warning("Unknown hit kind %r in %s", msg.hit_kind, msg.shot_id)
            return
        self.renderer.draw_hit(msg.shot_id, kind, Point(msg.hit_point.x, msg.hit_point.y))

    async def _on_complete(self, msg: ShotCompleteMessage) -> None:
        self.renderer.finish(msg.shot_id)

    async def _on_record(self, msg: ShotRecord) -> None:
        try:
            result = shot_from_dict(msg.shot)
        except ValueError as exc:
            log.warning("Ignoring malformed shot record: %s", exc)
            return
        if not result.completed:
            log.warning("Ignoring incomplete shot record %s: %s", result.id, result.error)
            return
        if self.store is not None:
            self.store.add(msg.shot, msg.meta)
        await self.replayer.replay(result)
