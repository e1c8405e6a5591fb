"""Shot executor - walks a payload and builds the ShotResult tree.

Segment specs run in order, each starting where the previous one ended.
Specs with children spawn independent branch shots at their terminal
point.  Faults abort the shot but never escape ``fire``: the caller
always receives a ShotResult, flagged with ``error`` when aborted.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Mapping, Optional, Union

from shotserver.engine.obstacle_scene import ObstacleQuery
from shotserver.engine.ray_caster import RayBudget, RayCaster
from shotserver.engine.segments import StepContext, StepResult, execute_segment
from shotserver.loaders.engine_config_loader import EngineConfig
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.payload import (
    SEGMENT_SPEC_TYPES,
    Payload,
    SegmentSpec,
    segment_from_dict,
)
from shotserver.models.shot import BranchOrigin, ShotHit, ShotResult, ShotSegment
from shotserver.util.events import EventBus, ShotCompleted, ShotFailed, ShotFired
from shotserver.util.frozen import thaw

log = logging.getLogger(__name__)

PayloadLike = Union[Payload, Mapping[str, Any]]

_shot_counter = itertools.count(1)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ShotExecutor:
    """Executes payloads against an obstacle query service.

    The executor holds no per-shot state, so concurrent ``fire`` calls
    against the same obstacle snapshot are safe.

    Args:
        obstacles: Obstacle query service.
        config: Engine configuration.
        event_bus: Optional bus receiving ShotFired / ShotCompleted / ShotFailed.

    Raises:
        ValueError: If no obstacle query service is given.
    """

    def __init__(
        self,
        obstacles: ObstacleQuery,
        config: EngineConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.caster = RayCaster(obstacles, self.config)
        self.event_bus = event_bus

    # -- Public API ------------------------------------------------------

    async def fire(
        self,
        source: Point,
        direction: float,
        payload: PayloadLike,
        shooter_ref: Optional[str] = None,
    ) -> ShotResult:
        """Fire a payload from `source` towards `direction` degrees.

        Args:
            source: Launch point.
            direction: Launch direction in degrees.
            payload: A Payload or its dict form; dict entries are parsed
                one by one, so a bad entry keeps the segments before it.
            shooter_ref: Identifier of the firing entity.

        Returns:
            The completed (or error-flagged) ShotResult.
        """
        label = _payload_name(payload)
        shot_id = self._next_id()
        try:
            source = Point.from_dict(source)
            direction = float(direction)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Shot %s rejected: bad source or direction: %s", shot_id, exc)
            result = self._rejected(shot_id, payload, shooter_ref, exc)
            self._emit(ShotFailed(result.id, result.error or "", result))
            return result

        self._emit(ShotFired(shot_id, shooter_ref, source, direction, label))
        result = await self._run(shot_id, source, direction, payload, shooter_ref)

        if result.completed:
            log.info("Shot %s (%s) by %s: %d segment(s), %d hit(s), %d split shot(s) in %.1f ms",
                     result.id, label, shooter_ref, len(result.segments), len(result.hits),
                     len(result.split_shots), result.execution_time_ms)
            self._emit(ShotCompleted(result))
        else:
            self._emit(ShotFailed(result.id, result.error or "", result))
        return result

    def preview(self, source: Point, direction: float) -> RaySegment:
        """Collision-free aiming ray of ``preview_ray_length``."""
        return self.caster.cast(Point.from_dict(source), direction, self.config.preview_ray_length)

    # -- Execution -------------------------------------------------------

    async def _run(
        self,
        shot_id: str,
        source: Point,
        direction: float,
        payload: PayloadLike,
        shooter_ref: Optional[str],
        branch: Optional[BranchOrigin] = None,
    ) -> ShotResult:
        started = time.perf_counter()
        timestamp = _now_ms()
        budget = RayBudget(self.config.max_fire_segments)
        segments: list[ShotSegment] = []
        hits: list[ShotHit] = []
        children: list[ShotResult] = []
        position, heading = source, direction
        error: Optional[str] = None

        try:
            entries, ignore_count = _trajectory(payload)
            for spec_index, entry in enumerate(entries):
                spec = entry if isinstance(entry, SEGMENT_SPEC_TYPES) else segment_from_dict(entry)
                ctx = StepContext(
                    position=position,
                    direction=heading,
                    shooter_ref=shooter_ref,
                    segment_index=len(segments),
                    budget=budget,
                    ignore_shooter=spec_index < ignore_count,
                )
                step = execute_segment(spec, ctx, self.caster)
                segments.extend(step.segments)
                hits.extend(step.hits)
                position, heading = step.next_position, step.next_direction

                if spec.children:
                    children.extend(await self._spawn(spec, step, shooter_ref))
                if step.capped:
                    log.warning("Shot %s reached the segment cap (%d), stopping",
                                shot_id, self.config.max_fire_segments)
                    break
                if not step.should_continue:
                    break
        except Exception as exc:
            log.exception("Shot %s aborted", shot_id)
            error = f"{type(exc).__name__}: {exc}"

        return ShotResult(
            id=shot_id,
            timestamp=timestamp,
            shooter_ref=shooter_ref,
            source=source,
            direction=direction,
            payload=_payload_dict(payload),
            segments=tuple(segments),
            hits=tuple(hits),
            split_shots=tuple(children),
            total_distance=sum(s.ray.length for s in segments),
            execution_time_ms=(time.perf_counter() - started) * 1000.0,
            completed=error is None,
            error=error,
            branch=branch,
        )

    @staticmethod
    def _rejected(
        shot_id: str, payload: PayloadLike, shooter_ref: Optional[str], exc: Exception,
    ) -> ShotResult:
        """Error result for a shot whose launch parameters could not be read."""
        return ShotResult(
            id=shot_id,
            timestamp=_now_ms(),
            shooter_ref=shooter_ref,
            source=Point(0.0, 0.0),
            direction=0.0,
            payload=_payload_dict(payload),
            completed=False,
            error=f"{type(exc).__name__}: {exc}",
        )

    async def _spawn(
        self, spec: SegmentSpec, step: StepResult, shooter_ref: Optional[str],
    ) -> list[ShotResult]:
        """Run the branch shots of a finished segment spec."""
        parent_index = step.segments[-1].segment_index if step.segments else -1
        runs = []
        for child_index, child in enumerate(spec.children):
            origin = BranchOrigin(
                parent_segment_index=parent_index,
                parent_segment_type=spec.kind,
                child_index=child_index,
                offset_angle=child.offset_angle,
            )
            child_payload = Payload(
                name=f"{spec.kind}_branch_{child_index}",
                trajectory=(child.to_segment(),),
                ignore_shooter_segments=0,
            )
            runs.append(self._run(
                self._next_id(),
                step.next_position,
                step.terminal_direction + child.offset_angle,
                child_payload,
                shooter_ref,
                branch=origin,
            ))

        if self.config.concurrent_branches:
            return list(await asyncio.gather(*runs))
        return [await run for run in runs]

    # -- Helpers ---------------------------------------------------------

    @staticmethod
    def _next_id() -> str:
        return f"shot_{_now_ms()}_{next(_shot_counter)}"

    def _emit(self, event: object) -> None:
        if self.event_bus is None:
            return
        try:
            self.event_bus.emit(event)
        except Exception:
            log.exception("Event handler failed for %s", type(event).__name__)


def _payload_name(payload: PayloadLike) -> str:
    if isinstance(payload, Payload):
        return payload.name
    if isinstance(payload, Mapping):
        return str(payload.get("name", ""))
    return ""


def _payload_dict(payload: PayloadLike) -> dict[str, Any]:
    """The payload as echoed in the result."""
    if isinstance(payload, Payload):
        return payload.to_dict()
    if isinstance(payload, Mapping):
        return thaw(payload)
    return {}


def _trajectory(payload: PayloadLike) -> tuple[list[Any], int]:
    """Trajectory entries and the shooter-ignore count of a payload.

    Raises:
        ValueError: If the payload has no trajectory list.
    """
    if isinstance(payload, Payload):
        return list(payload.trajectory), payload.ignore_shooter_segments
    if not isinstance(payload, Mapping):
        raise ValueError(f"Not a payload: {payload!r}")
    entries = payload.get("trajectory")
    if not isinstance(entries, (list, tuple)):
        raise ValueError("Payload must contain a trajectory list")
    return list(entries), int(payload.get("ignore_shooter_segments", 1))
