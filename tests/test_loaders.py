"""Tests for the YAML loaders and the shipped config files."""

from pathlib import Path

import pytest
import yaml

from shotserver.loaders.engine_config_loader import EngineConfig, load_engine_config
from shotserver.loaders.payload_loader import load_payloads
from shotserver.loaders.scene_loader import load_scene, scene_from_dict, scene_to_dict
from shotserver.models.geometry import Point, Rect
from shotserver.models.payload import LineSpec, LineUntilCollisionSpec

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def _write(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestEngineConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_engine_config(str(tmp_path / "nope.yaml"))
        assert cfg == EngineConfig()

    def test_overrides_and_unknown_keys(self, tmp_path):
        path = _write(tmp_path / "engine.yaml", {
            "max_ricochets": 7,
            "allow_ricochet": False,
            "bogus": 1,
            "server": {"ws_port": 9999, "also_bogus": True},
        })
        cfg = load_engine_config(str(path))
        assert cfg.max_ricochets == 7
        assert cfg.allow_ricochet is False
        assert cfg.server.ws_port == 9999
        assert cfg.server.rest_port == 8080

    def test_shipped_config(self):
        cfg = load_engine_config(str(CONFIG_DIR / "engine.yaml"))
        assert cfg.max_fire_segments == 50
        assert cfg.server.progressive_broadcast is True


class TestSceneLoader:
    def test_from_dict(self):
        scene = scene_from_dict({
            "name": "yard",
            "bodies": {"guard": {"x": 1, "y": 2, "width": 3, "height": 4, "meta": {"team": "red"}}},
            "barriers": {"wall": {"a": [0, 0], "b": [10, 0]}},
            "areas": {"pit": {"x": 5, "y": 5, "width": 2, "height": 2}},
        })
        assert scene.name == "yard"
        assert scene.bodies["guard"].rect == Rect(1, 2, 3, 4)
        assert scene.bodies["guard"].meta == {"team": "red"}
        assert scene.barriers["wall"].b == Point(10, 0)
        assert len(scene) == 3

    def test_round_trip(self):
        data = {
            "name": "yard",
            "bodies": {"guard": {"x": 1, "y": 2, "width": 3, "height": 4, "meta": {}}},
            "barriers": {"wall": {"a": [0, 0], "b": [10, 0], "meta": {"material": "steel"}}},
            "areas": {},
        }
        assert scene_from_dict(scene_to_dict(scene_from_dict(data))) == scene_from_dict(data)

    def test_malformed_body(self):
        with pytest.raises(ValueError, match="guard"):
            scene_from_dict({"bodies": {"guard": {"x": 1}}})

    def test_malformed_barrier(self):
        with pytest.raises(ValueError, match="endpoint 'b'"):
            scene_from_dict({"barriers": {"wall": {"a": [0, 0]}}})

    def test_zero_length_barrier(self):
        with pytest.raises(ValueError, match="zero length"):
            scene_from_dict({"barriers": {"wall": {"a": [1, 1], "b": [1, 1]}}})

    def test_shipped_scene(self):
        scene = load_scene(CONFIG_DIR / "scenes" / "default.yaml")
        assert scene.name == "courtyard"
        assert "mirror" in scene.barriers
        assert scene.areas["crates"].meta == {"material": "wood"}


class TestPayloadLoader:
    def test_single_file(self, tmp_path):
        path = _write(tmp_path / "payloads.yaml", {"payloads": {
            "scout": {"trajectory": [{"kind": "line", "length": 10}]},
        }})
        payloads = load_payloads(path)
        assert list(payloads) == ["scout"]
        assert isinstance(payloads["scout"].trajectory[0], LineSpec)
        assert payloads["scout"].ignore_shooter_segments == 1

    def test_directory(self, tmp_path):
        _write(tmp_path / "b_seeker.yaml", {"trajectory": [{"kind": "lineRec", "length": 5}]})
        _write(tmp_path / "a_scout.yaml", {"trajectory": [{"kind": "line", "length": 10}]})
        payloads = load_payloads(tmp_path)
        assert list(payloads) == ["a_scout", "b_seeker"]
        assert isinstance(payloads["b_seeker"].trajectory[0], LineUntilCollisionSpec)

    def test_error_names_payload(self, tmp_path):
        path = _write(tmp_path / "payloads.yaml", {"payloads": {
            "broken": {"trajectory": [{"kind": "warp"}]},
        }})
        with pytest.raises(ValueError, match="broken"):
            load_payloads(path)

    def test_shipped_library(self):
        payloads = load_payloads(CONFIG_DIR / "payloads.yaml")
        assert set(payloads) == {"bouncer", "seeker", "splitter"}
        assert len(payloads["splitter"].trajectory[0].children) == 2
