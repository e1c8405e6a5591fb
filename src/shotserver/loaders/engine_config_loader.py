"""Engine configuration - loads tunable constants from config/engine.yaml.

Provides a single ``EngineConfig`` dataclass that is loaded once at startup
and then passed to the executor, the replication layer and the server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from shotserver.util import constants

log = logging.getLogger(__name__)

DEFAULT_ENGINE_CONFIG_PATH = "config/engine.yaml"


@dataclass
class ServerConfig:
    """Network and storage settings of the relay hub."""

    ws_host: str = "0.0.0.0"
    ws_port: int = 8765
    rest_port: int = 8080
    ws_ping_interval: int = 30
    ws_ping_timeout: int = 10
    ws_max_message_size: int = 1_048_576

    # -- Storage -----------------------------------------------------
    history_path: Optional[str] = "shots.yaml"
    history_max_size: int = 50
    history_max_age_s: float = 300.0
    progressive_broadcast: bool = True

    # -- Content -----------------------------------------------------
    scene_path: Optional[str] = "config/scenes/default.yaml"
    payloads_path: Optional[str] = "config/payloads.yaml"


@dataclass
class EngineConfig:
    """All tunable engine constants.

    Loaded from ``config/engine.yaml``.  Every field has a sensible default
    so the server can start even without the file.
    """

    # -- Rays --------------------------------------------------------
    max_ray_distance: float = constants.MAX_RAY_DISTANCE
    preview_ray_length: float = constants.PREVIEW_RAY_LENGTH
    fire_segment_length: float = constants.FIRE_SEGMENT_LENGTH
    max_fire_segments: int = constants.MAX_FIRE_SEGMENTS

    # -- Ricochet ----------------------------------------------------
    allow_ricochet: bool = True
    max_ricochets: int = constants.MAX_RICOCHETS

    # -- Pacing ------------------------------------------------------
    fire_animation_delay_ms: float = constants.FIRE_ANIMATION_DELAY_MS
    ricochet_animation_delay_ms: float = constants.RICOCHET_ANIMATION_DELAY_MS

    # -- Branches ----------------------------------------------------
    concurrent_branches: bool = True

    server: ServerConfig = field(default_factory=ServerConfig)


def load_engine_config(path: str = DEFAULT_ENGINE_CONFIG_PATH) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Missing keys fall back to dataclass defaults, unknown keys are
    ignored.  If the file does not exist, a warning is logged and pure
    defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Engine config not found at %s, using defaults", p)
        return EngineConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded engine config from %s (%d keys)", p, len(raw))

    server_raw = raw.pop("server", None)
    server = ServerConfig(**{
        k: v for k, v in server_raw.items()
        if k in ServerConfig.__dataclass_fields__
    }) if isinstance(server_raw, dict) else ServerConfig()

    return EngineConfig(server=server, **{
        k: v for k, v in raw.items()
        if k in EngineConfig.__dataclass_fields__ and k != "server"
    })
