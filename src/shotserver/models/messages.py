"""Network message models.

Typed Pydantic models for all peer <-> hub messages.
Each message type gets its own model with validation.

Two channels share these models:
- the authoritative ``shot_record`` carrying one complete ShotResult,
- the progressive, visual-only stream (``fire_shot``, ``shot_segment``,
  ``shot_hit``, ``shot_complete``) correlated by ``shot_id``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel


# -- Base ----------------------------------------------------------------

class ShotMessage(BaseModel):
    """Base class for all messages."""

    type: str
    sender: int = 0
    timestamp: int = 0


class PointModel(BaseModel):
    x: float
    y: float


class SegmentInfo(BaseModel):
    """Render-only view of one segment."""

    start: PointModel
    end: PointModel
    is_ricochet: bool = False
    bounce_number: int = 0


# -- Session -------------------------------------------------------------

class WelcomeMessage(ShotMessage):
    type: Literal["welcome"] = "welcome"
    peer_id: int = 0


class ErrorMessage(ShotMessage):
    type: Literal["error"] = "error"
    message: str = ""


# -- Progressive stream --------------------------------------------------

class FireShot(ShotMessage):
    type: Literal["fire_shot"] = "fire_shot"
    shot_id: str
    shooter_ref: Optional[str] = None
    direction: float
    source: PointModel
    weapon_label: str = ""


class ShotSegmentMessage(ShotMessage):
    type: Literal["shot_segment"] = "shot_segment"
    shot_id: str
    root_shot_id: Optional[str] = None
    shooter_ref: Optional[str] = None
    segment_index: int
    segment: SegmentInfo
    ricochet_count: int = 0


class ShotHitMessage(ShotMessage):
    type: Literal["shot_hit"] = "shot_hit"
    shot_id: str
    root_shot_id: Optional[str] = None
    shooter_ref: Optional[str] = None
    hit_kind: str
    hit_point: PointModel
    target_ref: Optional[str] = None
    distance: float = 0.0


class ShotCompleteMessage(ShotMessage):
    type: Literal["shot_complete"] = "shot_complete"
    shot_id: str
    shooter_ref: Optional[str] = None
    total_segments: int = 0
    total_hits: int = 0
    segments: list[SegmentInfo] = []


# -- Authoritative record ------------------------------------------------

class ShotRecord(ShotMessage):
    """A complete ShotResult (as dict) plus free-form metadata."""

    type: Literal["shot_record"] = "shot_record"
    shot: dict[str, Any]
    meta: dict[str, Any] = {}


# -- History -------------------------------------------------------------

class HistoryRequest(ShotMessage):
    type: Literal["history_request"] = "history_request"
    limit: int = 50


class HistoryResponse(ShotMessage):
    type: Literal["history_response"] = "history_response"
    shots: list[dict[str, Any]] = []


# -- Registry ------------------------------------------------------------

MESSAGE_TYPES: dict[str, type[ShotMessage]] = {
    # Session
    "welcome": WelcomeMessage,
    "error": ErrorMessage,
    # Progressive stream
    "fire_shot": FireShot,
    "shot_segment": ShotSegmentMessage,
    "shot_hit": ShotHitMessage,
    "shot_complete": ShotCompleteMessage,
    # Record
    "shot_record": ShotRecord,
    # History
    "history_request": HistoryRequest,
    "history_response": HistoryResponse,
}

PROGRESSIVE_TYPES = ("fire_shot", "shot_segment", "shot_hit", "shot_complete")


def parse_message(data: dict[str, Any]) -> ShotMessage:
    """Parse a raw dict into the appropriate typed message model."""
    msg_type = data.get("type", "")
    model_cls = MESSAGE_TYPES.get(msg_type, ShotMessage)
    return model_cls.model_validate(data)
