"""Tests for the YAML-backed shot history."""

import pytest
import yaml

from conftest import build_shot
from shotserver.persistence.shot_store import ShotStore


class TestShotStore:
    def test_add_and_get(self, tmp_path, shot):
        store = ShotStore(str(tmp_path / "shots.yaml"))
        record = store.add(shot, {"speaker": "alice"})
        assert record["id"] == shot.id
        assert store.get(shot.id) == shot
        assert store.get_record(shot.id)["meta"] == {"speaker": "alice"}
        assert store.get("missing") is None

    def test_accepts_dict(self, shot):
        store = ShotStore(None)
        store.add(shot.to_dict())
        assert store.get(shot.id) == shot

    def test_rejects_missing_id(self):
        with pytest.raises(ValueError):
            ShotStore(None).add({"segments": []})

    def test_recent_is_newest_first(self):
        store = ShotStore(None)
        for i in range(3):
            store.add(build_shot(f"shot_{i}"), now=100.0 + i)
        assert [r["id"] for r in store.recent()] == ["shot_2", "shot_1", "shot_0"]
        assert [r["id"] for r in store.recent(2)] == ["shot_2", "shot_1"]

    def test_same_id_replaces(self):
        store = ShotStore(None)
        store.add(build_shot("a"), {"v": 1}, now=100.0)
        store.add(build_shot("b"), now=101.0)
        store.add(build_shot("a"), {"v": 2}, now=102.0)
        assert len(store) == 2
        assert store.recent()[0]["meta"] == {"v": 2}

    def test_max_size(self):
        store = ShotStore(None, max_size=2)
        for i in range(4):
            store.add(build_shot(f"shot_{i}"), now=100.0 + i)
        assert [r["id"] for r in store.recent()] == ["shot_3", "shot_2"]

    def test_prune_by_age(self):
        store = ShotStore(None, max_age_s=10.0)
        store.add(build_shot("old"), now=100.0)
        store.add(build_shot("new"), now=105.0)
        assert store.prune(now=112.0) == 1
        assert [r["id"] for r in store.recent()] == ["new"]

    def test_age_limit_disabled(self):
        store = ShotStore(None, max_age_s=None)
        store.add(build_shot("old"), now=0.0)
        assert store.prune(now=1e9) == 0

    def test_remove_and_clear(self):
        store = ShotStore(None)
        store.add(build_shot("a"), now=1.0)
        store.add(build_shot("b"), now=2.0)
        assert store.remove("a") is True
        assert store.remove("a") is False
        store.clear()
        assert len(store) == 0

    def test_persists_and_reloads(self, tmp_path, shot):
        path = tmp_path / "shots.yaml"
        ShotStore(str(path), max_age_s=None).add(shot, {"speaker": "alice"})

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["shots"][0]["id"] == shot.id

        reloaded = ShotStore(str(path), max_age_s=None)
        reloaded.load()
        assert reloaded.get(shot.id) == shot
        assert not path.with_suffix(".tmp").exists()

    def test_load_missing_file(self, tmp_path):
        store = ShotStore(str(tmp_path / "nope.yaml"))
        store.load()
        assert len(store) == 0

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "shots.yaml"
        path.write_text("shots: [unclosed", encoding="utf-8")
        store = ShotStore(str(path))
        store.load()
        assert len(store) == 0
