"""REST API - FastAPI application for firing shots and browsing history.

Shots fired here are executed by the hub's own executor against the
loaded scene, stored, and published to every WebSocket peer.

Usage::

    from shotserver.network.rest_api import create_app

    app = create_app(services)
    # Start with uvicorn as an asyncio task alongside the WS server
"""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from shotserver.engine import payload_factory
from shotserver.models.geometry import Point
from shotserver.models.payload import Payload
from shotserver.network.rest_models import (
    FireRequest,
    FireResponse,
    PayloadListResponse,
    PreviewRequest,
    PreviewResponse,
    ShotListResponse,
)

if TYPE_CHECKING:
    from shotserver.main import Services

log = logging.getLogger(__name__)


def _resolve_payload(services: "Services", body: FireRequest) -> Payload | dict[str, Any]:
    """Inline payload, named library payload, or built-in preset."""
    if body.payload is not None:
        return body.payload
    if not body.preset:
        raise HTTPException(status_code=422, detail="Either payload or preset is required")
    if body.preset in services.payloads:
        return services.payloads[body.preset]
    if body.preset not in payload_factory.PRESETS:
        raise HTTPException(status_code=404, detail=f"Unknown payload: {body.preset}")
    try:
        return payload_factory.create(body.preset, **body.preset_options)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid preset options: {exc}") from exc


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can access the engine without global state.
    """
    app = FastAPI(title="Shot Server", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =================================================================
    # Shots
    # =================================================================

    @app.post("/api/shots", response_model=FireResponse)
    async def fire_shot(body: FireRequest) -> dict[str, Any]:
        payload = _resolve_payload(services, body)
        result = await services.executor.fire(
            Point(body.source.x, body.source.y),
            body.direction,
            payload,
            shooter_ref=body.shooter_ref,
        )
        if not result.completed:
            return {"success": False, "shot": result.to_dict(), "error": result.error or ""}

        meta = {
            "speaker": body.speaker or body.shooter_ref or "",
            "weapon_label": result.payload.get("name", ""),
        }
        services.shot_store.add(result, meta)
        if services.broadcaster is not None:
            await services.broadcaster.publish_record(result, meta)
        return {"success": True, "shot": result.to_dict(), "error": ""}

    @app.get("/api/shots", response_model=ShotListResponse)
    async def list_shots(limit: int = 50) -> dict[str, Any]:
        services.shot_store.prune()
        return {"shots": services.shot_store.recent(limit)}

    @app.get("/api/shots/{shot_id}")
    async def get_shot(shot_id: str) -> dict[str, Any]:
        record = services.shot_store.get_record(shot_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Unknown shot: {shot_id}")
        return record

    @app.post("/api/preview", response_model=PreviewResponse)
    async def preview(body: PreviewRequest) -> dict[str, Any]:
        ray = services.executor.preview(Point(body.source.x, body.source.y), body.direction)
        return ray.to_dict()

    # =================================================================
    # Payloads
    # =================================================================

    @app.get("/api/payloads", response_model=PayloadListResponse)
    async def list_payloads() -> dict[str, Any]:
        return {
            "presets": {name: payload_factory.describe(name) for name in payload_factory.available()},
            "library": {name: p.to_dict() for name, p in services.payloads.items()},
        }

    log.info("REST API created with %d routes", len(app.routes))
    return app
