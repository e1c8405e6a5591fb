"""Trajectory segment execution.

Each segment spec kind has one executor function taking a StepContext
and returning a StepResult.  ``execute_segment`` dispatches on the spec
type; unknown types are a configuration fault (ValueError).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from shotserver.engine.ray_caster import BounceState, CastRay, RayBudget, RayCaster
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.payload import LineSpec, LineUntilCollisionSpec, SegmentSpec
from shotserver.models.shot import ShotHit, ShotSegment


@dataclass(frozen=True)
class StepContext:
    """Inputs threaded from one segment spec to the next.

    Attributes:
        position: Where this segment starts.
        direction: Heading in degrees.
        shooter_ref: Identifier of the firing entity.
        segment_index: Index assigned to the first ray of this step.
        ignore_shooter: Skip collisions with the shooter's own body.
        budget: Shot-wide ray cap.
    """

    position: Point
    direction: float
    shooter_ref: Optional[str]
    segment_index: int
    budget: RayBudget
    ignore_shooter: bool = False


@dataclass(frozen=True)
class StepResult:
    """Output of one segment spec execution."""

    segments: tuple[ShotSegment, ...]
    hits: tuple[ShotHit, ...]
    next_position: Point
    next_direction: float
    should_continue: bool
    capped: bool = False

    @property
    def rays(self) -> tuple[RaySegment, ...]:
        return tuple(s.ray for s in self.segments)

    @property
    def collisions(self) -> tuple[ShotHit, ...]:
        return self.hits

    @property
    def terminal_direction(self) -> float:
        return self.next_direction


def _effects(spec: SegmentSpec, hook: str) -> tuple[str, ...]:
    return tuple(spec.effects.get(hook, ()))


def _collect(
    spec: SegmentSpec,
    cast: list[tuple[Optional[int], CastRay]],
    first_index: int,
    hit_hook: str,
    missed: bool,
) -> tuple[tuple[ShotSegment, ...], tuple[ShotHit, ...]]:
    """Turn cast rays into indexed shot segments and hits."""
    segments: list[ShotSegment] = []
    hits: list[ShotHit] = []
    for offset, (iteration, cast_ray) in enumerate(cast):
        index = first_index + offset
        if cast_ray.bounced:
            tags = _effects(spec, "on_ricochet")
        elif cast_ray.hits:
            tags = _effects(spec, hit_hook)
        elif missed and offset == len(cast) - 1:
            tags = _effects(spec, "on_miss")
        else:
            tags = ()
        segments.append(ShotSegment(
            seg_type=spec.kind,
            ray=cast_ray.ray,
            segment_index=index,
            ricochet=cast_ray.ricochet,
            tags=tags,
            iteration_index=iteration,
        ))
        hits.extend(
            ShotHit.from_collision(c, spec.kind, index, spec.damage)
            for c in cast_ray.hits
        )
    return tuple(segments), tuple(hits)


# -- Executors -----------------------------------------------------------

def _execute_line(spec: LineSpec, ctx: StepContext, caster: RayCaster) -> StepResult:
    """One fixed-length line, ricocheting if enabled."""
    if spec.length < 0:
        raise ValueError(f"Line length must not be negative: {spec.length}")
    trace = caster.trace(
        ctx.position, ctx.direction, spec.length, spec.ricochet,
        BounceState(ctx.budget), ctx.shooter_ref, ctx.ignore_shooter,
    )
    segments, hits = _collect(
        spec, [(None, r) for r in trace.rays], ctx.segment_index,
        hit_hook="on_hit", missed=not (trace.stopped or trace.capped),
    )
    return StepResult(
        segments=segments,
        hits=hits,
        next_position=trace.end,
        next_direction=trace.direction,
        should_continue=not (trace.stopped or trace.capped),
        capped=trace.capped,
    )


def _execute_line_until_collision(
    spec: LineUntilCollisionSpec, ctx: StepContext, caster: RayCaster,
) -> StepResult:
    """Step in fixed increments until a blocking hit or the iteration cap."""
    step = spec.length if spec.length is not None else caster.config.fire_segment_length
    if step <= 0:
        raise ValueError(f"Step length must be positive: {step}")

    state = BounceState(ctx.budget)
    cast: list[tuple[Optional[int], CastRay]] = []
    position, heading = ctx.position, ctx.direction
    stopped = capped = False

    for iteration in range(spec.max_iterations):
        trace = caster.trace(
            position, heading, step, spec.ricochet,
            state, ctx.shooter_ref, ctx.ignore_shooter,
        )
        cast.extend((iteration, r) for r in trace.rays)
        position, heading = trace.end, trace.direction
        if trace.stopped or trace.capped:
            stopped, capped = trace.stopped, trace.capped
            break

    segments, hits = _collect(
        spec, cast, ctx.segment_index,
        hit_hook="on_collision", missed=not (stopped or capped),
    )
    return StepResult(
        segments=segments,
        hits=hits,
        next_position=position,
        next_direction=heading,
        should_continue=not (stopped or capped),
        capped=capped,
    )


_EXECUTORS: dict[type, Callable[..., StepResult]] = {
    LineSpec: _execute_line,
    LineUntilCollisionSpec: _execute_line_until_collision,
}


def execute_segment(spec: SegmentSpec, ctx: StepContext, caster: RayCaster) -> StepResult:
    """Execute one segment spec.

    Raises:
        ValueError: If the spec is not a known segment kind.
    """
    executor = _EXECUTORS.get(type(spec))
    if executor is None:
        raise ValueError(f"Unknown segment spec: {spec!r}")
    return executor(spec, ctx, caster)
