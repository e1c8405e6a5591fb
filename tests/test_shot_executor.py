"""Tests for ShotExecutor: payload walking, bouncing, branching and faults."""

import logging

import pytest

from shotserver.engine import payload_factory
from shotserver.engine.obstacle_scene import ObstacleScene
from shotserver.engine.shot_executor import ShotExecutor
from shotserver.loaders.engine_config_loader import EngineConfig
from shotserver.models.collision import CollisionKind
from shotserver.models.geometry import Point, Rect
from shotserver.models.payload import (
    BranchSpec,
    LineSpec,
    LineUntilCollisionSpec,
    Payload,
    RicochetSpec,
)
from shotserver.models.scene import Area, Barrier, Body, Scene
from shotserver.models.shot import flatten_hits, flatten_segments
from shotserver.util.events import EventBus, ShotCompleted, ShotFailed, ShotFired


ORIGIN = Point(0, 0)


def _executor(*obstacles, event_bus=None, **config) -> ShotExecutor:
    scene = Scene()
    for obstacle in obstacles:
        scene.add(obstacle)
    return ShotExecutor(ObstacleScene(scene), EngineConfig(**config), event_bus)


def _line(length, **kwargs) -> Payload:
    return Payload("test", (LineSpec(length=length, **kwargs),))


WALL = Barrier("wall", Point(100, -50), Point(100, 50))


class TestStraightShots:
    async def test_open_space(self):
        result = await _executor().fire(ORIGIN, 0, _line(200))
        assert result.completed and result.error is None
        assert len(result.segments) == 1
        assert result.hits == ()
        assert result.segments[0].ray.end.x == pytest.approx(200)
        assert result.total_distance == pytest.approx(200)
        assert result.id.startswith("shot_")

    async def test_barrier_stops_line(self):
        result = await _executor(WALL).fire(ORIGIN, 0, _line(200))
        assert len(result.segments) == 1
        assert result.segments[0].ray.length == pytest.approx(100, abs=1)
        assert len(result.hits) == 1
        hit = result.hits[0]
        assert hit.kind is CollisionKind.BARRIER
        assert hit.object_ref == "wall"
        assert hit.segment_index == 0
        assert hit.segment_type == "line"

    async def test_accepts_dict_payload(self):
        payload = {"name": "dict", "trajectory": [{"kind": "line", "length": 120}]}
        result = await _executor().fire({"x": 0, "y": 0}, 0, payload)
        assert result.completed
        assert result.to_dict()["payload"] == payload
        assert result.segments[0].ray.length == pytest.approx(120)

    async def test_is_deterministic(self):
        executor = _executor(WALL, Body("crate", Rect(40, 60, 20, 20)))
        payload = payload_factory.laser()
        first = await executor.fire(Point(10, 10), 15, payload)
        second = await executor.fire(Point(10, 10), 15, payload)
        assert first.id != second.id
        assert first.segments == second.segments
        assert first.hits == second.hits


class TestRicochet:
    async def test_single_bounce(self):
        payload = _line(200, ricochet=RicochetSpec(enabled=True, max_bounces=1))
        result = await _executor(WALL).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 2
        bounced = result.segments[1]
        assert bounced.ricochet.is_ricochet
        assert bounced.ricochet.bounce_number == 1
        assert bounced.ray.direction % 360 == pytest.approx(180)
        assert bounced.ray.length == pytest.approx(95)
        assert result.ricochet_count == 1

    async def test_bounce_budget_is_respected(self):
        left = Barrier("left", Point(0, -50), Point(0, 50))
        right = Barrier("right", Point(100, -50), Point(100, 50))
        payload = _line(1000, ricochet=RicochetSpec(enabled=True, max_bounces=2))
        result = await _executor(left, right).fire(Point(50, 0), 0, payload)
        assert len(result.segments) == 3
        assert result.ricochet_count == 2
        assert len(result.hits) == 3

    async def test_body_hit_never_bounces(self):
        payload = _line(200, ricochet=RicochetSpec(enabled=True, max_bounces=3))
        result = await _executor(Body("guard", Rect(100, -10, 20, 20))).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 1
        assert result.hits_of_kind(CollisionKind.BODY)[0].object_ref == "guard"

    async def test_area_hit_never_bounces(self):
        payload = _line(200, ricochet=RicochetSpec(enabled=True, max_bounces=3))
        result = await _executor(Area("crates", Rect(100, -10, 20, 20))).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 1
        assert result.ricochet_count == 0
        assert result.segments[0].ray.length == pytest.approx(100, abs=1)
        assert result.hits_of_kind(CollisionKind.AREA)[0].object_ref == "crates"

    async def test_global_ricochet_switch(self):
        payload = _line(200, ricochet=RicochetSpec(enabled=True, max_bounces=3))
        result = await _executor(WALL, allow_ricochet=False).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 1
        assert result.ricochet_count == 0


class TestMultiSegment:
    async def test_line_until_collision(self):
        payload = Payload("seeker", (LineUntilCollisionSpec(length=50, max_iterations=10),))
        result = await _executor(Body("guard", Rect(175, -20, 40, 40))).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 4
        assert result.hits[0].segment_index == 3
        assert result.hits[0].segment_type == "line_until_collision"

    async def test_segments_chain_and_indices(self):
        payload = Payload("chain", (
            LineSpec(length=100),
            LineUntilCollisionSpec(length=20, max_iterations=3),
            LineSpec(length=40),
        ))
        result = await _executor().fire(ORIGIN, 0, payload)
        indices = [s.segment_index for s in result.segments]
        assert indices == list(range(len(result.segments))) == [0, 1, 2, 3, 4]
        for prev, nxt in zip(result.segments, result.segments[1:]):
            assert nxt.ray.start.x == pytest.approx(prev.ray.end.x)
        assert result.total_distance == pytest.approx(200)

    async def test_stop_skips_remaining_specs(self):
        payload = Payload("two", (LineSpec(length=200), LineSpec(length=200)))
        result = await _executor(WALL).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 1

    async def test_hit_indices_reference_segments(self):
        payload = payload_factory.laser()
        result = await _executor(WALL, Barrier("back", Point(-100, -50), Point(-100, 50))).fire(
            ORIGIN, 0, payload)
        for hit in result.hits:
            assert 0 <= hit.segment_index < len(result.segments)

    async def test_global_segment_cap(self, caplog):
        payload = Payload("long", (LineUntilCollisionSpec(length=100, max_iterations=10),))
        with caplog.at_level(logging.WARNING, logger="shotserver.engine.shot_executor"):
            result = await _executor(max_fire_segments=5).fire(ORIGIN, 0, payload)
        assert len(result.segments) == 5
        assert result.completed
        assert "segment cap" in caplog.text

    async def test_default_step_length(self):
        payload = Payload("seeker", (LineUntilCollisionSpec(max_iterations=10),))
        executor = _executor(Body("guard", Rect(60, -10, 20, 20)), fire_segment_length=25)
        result = await executor.fire(ORIGIN, 0, payload)
        assert len(result.segments) == 3


class TestShooterExclusion:
    async def test_shooter_body_is_ignored(self):
        me = Body("me", Rect(-10, -10, 20, 20))
        result = await _executor(me).fire(ORIGIN, 0, _line(100), shooter_ref="me")
        assert result.hits == ()
        assert result.segments[0].ray.length == pytest.approx(100, abs=1)

    async def test_other_bodies_still_hit(self):
        me = Body("me", Rect(-10, -10, 20, 20))
        them = Body("them", Rect(50, -10, 20, 20))
        result = await _executor(me, them).fire(ORIGIN, 0, _line(100), shooter_ref="me")
        assert [h.object_ref for h in result.hits] == ["them"]


class TestEffects:
    async def test_tags_and_damage(self):
        payload = _line(200, damage={"direct": 12}, effects={"on_hit": ["impact"]})
        result = await _executor(WALL).fire(ORIGIN, 0, payload)
        assert result.segments[0].tags == ("impact",)
        assert result.hits[0].damage == {"direct": 12}


class TestBranches:
    def _splitter(self) -> Payload:
        return _line(100, children=(
            BranchSpec(offset_angle=-30, length=50),
            BranchSpec(offset_angle=30, length=50),
        ))

    async def test_children_directions(self):
        result = await _executor().fire(ORIGIN, 10, self._splitter())
        assert len(result.split_shots) == 2
        directions = [child.direction for child in result.split_shots]
        assert directions == [pytest.approx(-20), pytest.approx(40)]
        end = result.segments[0].ray.end
        for index, child in enumerate(result.split_shots):
            assert child.source.x == pytest.approx(end.x)
            assert child.source.y == pytest.approx(end.y)
            assert child.branch.child_index == index
            assert child.branch.parent_segment_type == "line"
            assert child.branch.parent_segment_index == 0
            assert child.completed

    async def test_children_spawn_after_stop(self):
        result = await _executor(WALL).fire(ORIGIN, 0, self._splitter())
        assert len(result.split_shots) == 2

    async def test_sequential_matches_concurrent(self):
        concurrent = await _executor(WALL).fire(ORIGIN, 0, self._splitter())
        sequential = await _executor(WALL, concurrent_branches=False).fire(ORIGIN, 0, self._splitter())
        assert [c.segments for c in concurrent.split_shots] == \
            [c.segments for c in sequential.split_shots]

    async def test_flatten(self):
        result = await _executor(WALL).fire(ORIGIN, 0, payload_factory.cluster_munition())
        segments = flatten_segments(result)
        assert segments[0] == result.segments[0]
        assert len(segments) == len(result.segments) + sum(len(c.segments) for c in result.split_shots)
        assert len(flatten_hits(result)) >= len(result.hits)

    async def test_shotgun_preset(self):
        result = await _executor().fire(ORIGIN, 0, payload_factory.shotgun(pellets=5))
        assert len(result.segments) == 1
        assert len(result.split_shots) == 5
        for pellet in result.split_shots:
            assert pellet.payload["name"].startswith("line_branch_")


class TestFaults:
    async def test_unknown_kind_aborts(self):
        payload = {"name": "bad", "trajectory": [
            {"kind": "line", "length": 100},
            {"kind": "zigzag"},
        ]}
        result = await _executor().fire(ORIGIN, 0, payload)
        assert result.completed is False
        assert "ValueError" in result.error
        assert len(result.segments) == 1

    async def test_missing_trajectory(self):
        result = await _executor().fire(ORIGIN, 0, {"name": "empty"})
        assert result.completed is False
        assert result.segments == ()

    def test_requires_obstacles(self):
        with pytest.raises(ValueError):
            ShotExecutor(None)

    async def test_bad_source_is_an_error_result(self):
        bus = EventBus()
        failed = []
        bus.on(ShotFailed, failed.append)
        result = await _executor(event_bus=bus).fire({"x": 1}, 0, _line(50))
        assert result.completed is False
        assert "KeyError" in result.error
        assert result.segments == ()
        assert failed[0].result is result

    async def test_bad_direction_is_an_error_result(self):
        result = await _executor().fire(ORIGIN, None, _line(50))
        assert result.completed is False
        assert "TypeError" in result.error
        assert result.payload["name"] == "test"


class TestEvents:
    async def test_completed_events(self):
        bus = EventBus()
        seen = []
        bus.on(ShotFired, seen.append)
        bus.on(ShotCompleted, seen.append)
        bus.on(ShotFailed, seen.append)
        result = await _executor(event_bus=bus).fire(ORIGIN, 0, _line(50), shooter_ref="p1")
        assert [type(e) for e in seen] == [ShotFired, ShotCompleted]
        assert seen[0].shot_id == result.id
        assert seen[0].shooter_ref == "p1"
        assert seen[0].weapon_label == "test"
        assert seen[1].result is result

    async def test_failed_event(self):
        bus = EventBus()
        failed = []
        bus.on(ShotFailed, failed.append)
        result = await _executor(event_bus=bus).fire(ORIGIN, 0, {"trajectory": [{"kind": "nope"}]})
        assert failed[0].shot_id == result.id
        assert failed[0].result is result

    async def test_handler_errors_do_not_escape(self):
        bus = EventBus()

        def boom(evt):
            raise RuntimeError("handler broke")

        bus.on(ShotCompleted, boom)
        result = await _executor(event_bus=bus).fire(ORIGIN, 0, _line(50))
        assert result.completed


class TestPreview:
    def test_preview_length(self):
        ray = _executor(preview_ray_length=500).preview(ORIGIN, 90)
        assert ray.length == pytest.approx(500)
        assert ray.end.y == pytest.approx(500)

    def test_preview_is_clamped(self):
        ray = _executor(WALL, preview_ray_length=500, max_ray_distance=300).preview(ORIGIN, 0)
        assert ray.length == pytest.approx(300)
