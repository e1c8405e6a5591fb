"""Tests for replaying stored shots through a renderer."""

from unittest.mock import MagicMock, call

from shotserver.models.collision import CollisionKind
from shotserver.models.geometry import Point
from shotserver.network.serialization import shot_from_dict, shot_to_dict
from shotserver.persistence.replay import ShotReplayer


class TestShotReplayer:
    async def test_draws_whole_tree(self, shot):
        renderer = MagicMock()
        drawn = await ShotReplayer(renderer).replay(shot)
        assert drawn == 3
        assert renderer.draw_segment.call_count == 3
        first = renderer.draw_segment.call_args_list[0]
        assert first.args[0] == shot.id
        assert first.args[2] == shot.segments[0].ray
        assert renderer.draw_hit.call_args_list == [
            call(shot.id, CollisionKind.BARRIER, Point(100, 0)),
            call("shot_1000_1_c", CollisionKind.BODY, Point(-43.3, 25)),
        ]
        renderer.finish.assert_called_once_with(shot.id)

    async def test_branch_segments_keep_their_own_id(self, shot):
        renderer = MagicMock()
        await ShotReplayer(renderer).replay(shot)
        keys = [(c.args[0], c.args[1]) for c in renderer.draw_segment.call_args_list]
        assert keys == [(shot.id, 0), (shot.id, 1), ("shot_1000_1_c", 0)]
        assert len(set(keys)) == len(keys)

    async def test_rename_applies_to_root_only(self, shot):
        renderer = MagicMock()
        await ShotReplayer(renderer).replay(shot, shot_id="replay-1")
        ids = [c.args[0] for c in renderer.draw_segment.call_args_list]
        assert ids == ["replay-1", "replay-1", "shot_1000_1_c"]

    async def test_replay_from_stored_dict(self, shot):
        """A record rebuilt from its dict replays without any obstacle scene."""
        renderer = MagicMock()
        await ShotReplayer(renderer).replay(shot_from_dict(shot_to_dict(shot)), shot_id="replay-1")
        renderer.finish.assert_called_once_with("replay-1")
        ricochets = [c.args[3].is_ricochet for c in renderer.draw_segment.call_args_list]
        assert ricochets == [False, True, False]

    async def test_pacing(self, shot, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("shotserver.persistence.replay.asyncio.sleep", fake_sleep)
        await ShotReplayer(MagicMock(), segment_delay_ms=20, ricochet_delay_ms=50).replay(shot)
        assert delays == [0.02, 0.05, 0.02]
