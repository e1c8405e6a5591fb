"""Shot server entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (engine config, scene, payload library)
2. Create services (executor, history store, router, hub, broadcaster)
3. Wire event handlers
4. Start network servers (WebSocket hub + REST API)
5. Run until a shutdown signal arrives

Usage:
    python -m shotserver.main
    # or via entry point:
    shotserver --config config/engine.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from shotserver.engine.obstacle_scene import ObstacleScene
from shotserver.engine.shot_executor import ShotExecutor
from shotserver.loaders.engine_config_loader import (
    DEFAULT_ENGINE_CONFIG_PATH,
    EngineConfig,
    load_engine_config,
)
from shotserver.loaders.payload_loader import load_payloads
from shotserver.loaders.scene_loader import load_scene
from shotserver.models.payload import Payload
from shotserver.models.scene import Scene
from shotserver.network.handlers import register_all_handlers
from shotserver.network.replication import ShotBroadcaster
from shotserver.network.router import Router
from shotserver.network.server import HUB_PEER_ID, Server
from shotserver.persistence.shot_store import ShotStore
from shotserver.util.events import EventBus, ShotCompleted, ShotFailed

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Container for all loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    scene: Scene = field(default_factory=Scene)
    payloads: dict[str, Payload] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all services."""

    engine_config: EngineConfig = field(default_factory=EngineConfig)
    event_bus: Optional[EventBus] = None
    scene: Optional[Scene] = None
    executor: Optional[ShotExecutor] = None
    payloads: dict[str, Payload] = field(default_factory=dict)
    shot_store: Optional[ShotStore] = None
    router: Optional[Router] = None
    server: Optional[Server] = None
    broadcaster: Optional[ShotBroadcaster] = None
    rest_server: Any = None
    background_tasks: set = field(default_factory=set)


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(config_path: str = DEFAULT_ENGINE_CONFIG_PATH) -> Configuration:
    """Load engine config, obstacle scene and payload library.

    A missing scene or payload file is not fatal: the server starts with
    an empty scene / library and logs a warning.
    """
    log.info("Loading configuration …")
    engine = load_engine_config(config_path)
    server_cfg = engine.server

    scene = Scene()
    if server_cfg.scene_path and Path(server_cfg.scene_path).exists():
        scene = load_scene(server_cfg.scene_path)
        log.info("  scene:    %r with %d obstacles from %s",
                 scene.name, len(scene), server_cfg.scene_path)
    else:
        log.warning("  scene:    %s not found, starting with an empty scene", server_cfg.scene_path)

    payloads: dict[str, Payload] = {}
    if server_cfg.payloads_path and Path(server_cfg.payloads_path).exists():
        payloads = load_payloads(server_cfg.payloads_path)
        log.info("  payloads: %d from %s", len(payloads), server_cfg.payloads_path)
    else:
        log.warning("  payloads: %s not found, presets only", server_cfg.payloads_path)

    return Configuration(engine=engine, scene=scene, payloads=payloads)


# ===================================================================
# 2. Create services
# ===================================================================


def create_services(config: Configuration) -> Services:
    """Instantiate all services with proper dependency injection.

    Args:
        config: Loaded configuration.

    Returns:
        Populated :class:`Services` container.
    """
    log.info("Creating services …")
    engine = config.engine
    srv = engine.server

    event_bus = EventBus()
    executor = ShotExecutor(ObstacleScene(config.scene), engine, event_bus)

    shot_store = ShotStore(srv.history_path, srv.history_max_size, srv.history_max_age_s)
    shot_store.load()

    router = Router()
    server = Server(router, host=srv.ws_host, port=srv.ws_port,
                    ping_interval=srv.ws_ping_interval, ping_timeout=srv.ws_ping_timeout,
                    max_size=srv.ws_max_message_size)
    broadcaster = ShotBroadcaster(
        server.broadcast_all,
        sender=HUB_PEER_ID,
        segment_delay_ms=engine.fire_animation_delay_ms,
        ricochet_delay_ms=engine.ricochet_animation_delay_ms,
    )

    log.info("  all services created")
    return Services(
        engine_config=engine,
        event_bus=event_bus,
        scene=config.scene,
        executor=executor,
        payloads=dict(config.payloads),
        shot_store=shot_store,
        router=router,
        server=server,
        broadcaster=broadcaster,
    )


# ===================================================================
# 3. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register event handlers to connect services via the EventBus.

    Completed shots are streamed progressively to peers in the
    background; failed shots are only logged.

    Args:
        services: All instantiated services.
    """
    log.info("Wiring event handlers …")
    bus = services.event_bus

    def _on_completed(evt: ShotCompleted) -> None:
        if services.broadcaster is None or not services.engine_config.server.progressive_broadcast:
            return
        task = asyncio.get_running_loop().create_task(
            services.broadcaster.publish_progressive(evt.result))
        services.background_tasks.add(task)
        task.add_done_callback(services.background_tasks.discard)

    def _on_failed(evt: ShotFailed) -> None:
        log.warning("Shot %s failed: %s (%d partial segment(s))",
                    evt.shot_id, evt.error, len(evt.result.segments))

    bus.on(ShotCompleted, _on_completed)
    bus.on(ShotFailed, _on_failed)
    log.info("  event handlers registered")


# ===================================================================
# 4. Start network servers
# ===================================================================


async def start_network(services: Services) -> None:
    """Start the WebSocket hub and REST API so peers can connect.

    Message handlers are registered on the router before the hub
    begins accepting connections.  The FastAPI REST app is started on
    a separate port via uvicorn.

    Args:
        services: All instantiated services.
    """
    log.info("Starting network servers …")
    register_all_handlers(services)
    await services.server.start()

    from shotserver.network.rest_api import create_app
    import uvicorn

    srv = services.engine_config.server
    rest_app = create_app(services)
    config = uvicorn.Config(
        rest_app,
        host=srv.ws_host,
        port=srv.rest_port,
        log_level="info",
        access_log=False,
    )
    services.rest_server = uvicorn.Server(config)
    task = asyncio.create_task(services.rest_server.serve())
    services.background_tasks.add(task)
    task.add_done_callback(services.background_tasks.discard)
    log.info("  REST API listening on http://%s:%d", srv.ws_host, srv.rest_port)


# ===================================================================
# 5. Run until shutdown
# ===================================================================


async def run_until_shutdown(services: Services) -> None:
    """Block until SIGINT / SIGTERM, then stop the network servers."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received, stopping …")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    await stop.wait()

    log.info("Shutting down …")
    if services.server is not None:
        await services.server.stop()
    if services.rest_server is not None:
        services.rest_server.should_exit = True
        log.info("  REST API server stopped")
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_path: str = DEFAULT_ENGINE_CONFIG_PATH) -> None:
    """Initialize and run all server components."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Shot Server starting ===")

    config = load_configuration(config_path)
    services = create_services(config)
    wire_events(services)
    await start_network(services)
    await run_until_shutdown(services)


def main() -> None:
    """Entry point for the shot server."""
    parser = argparse.ArgumentParser(description="Trajectory simulation and replication hub")
    parser.add_argument("--config", default=DEFAULT_ENGINE_CONFIG_PATH,
                        help="Path to the engine config YAML")
    args = parser.parse_args()
    asyncio.run(_start(config_path=args.config))


if __name__ == "__main__":
    main()
