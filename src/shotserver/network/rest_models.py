"""Pydantic request/response models for the REST API.

These models define the HTTP request bodies and response shapes.
They are intentionally separate from the WebSocket ShotMessage models
to keep the REST API clean and self-documenting.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ===================================================================
# Shots
# ===================================================================


class PointBody(BaseModel):
    x: float
    y: float


class FireRequest(BaseModel):
    """Fire either an inline payload or a named payload / preset."""

    source: PointBody
    direction: float
    payload: Optional[Dict[str, Any]] = None
    preset: Optional[str] = None
    preset_options: Dict[str, Any] = Field(default_factory=dict)
    shooter_ref: Optional[str] = None
    speaker: Optional[str] = None


class FireResponse(BaseModel):
    success: bool
    shot: Dict[str, Any]
    error: str = ""


class ShotListResponse(BaseModel):
    shots: List[Dict[str, Any]] = Field(default_factory=list)


class PreviewRequest(BaseModel):
    source: PointBody
    direction: float


class PreviewResponse(BaseModel):
    start: PointBody
    end: PointBody
    direction: float


# ===================================================================
# Payloads
# ===================================================================


class PayloadListResponse(BaseModel):
    presets: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    library: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
