"""Serialization - JSON encoding/decoding with optional compression.

ShotResult trees travel as plain dicts; ``shot_from_dict(shot_to_dict(r))``
yields a structurally equal tree, split shots included.
"""

from __future__ import annotations

import json
import zlib
from typing import Any

from shotserver.models.shot import ShotResult, ShotSegment, flatten_segments


def encode(data: dict[str, Any], compress: bool = False) -> bytes:
    """Encode a message dict to bytes (JSON, optionally compressed)."""
    payload = json.dumps(data, separators=(",", ":")).encode("utf-8")
    if compress:
        payload = zlib.compress(payload)
    return payload


def decode(raw: bytes, compressed: bool = False) -> dict[str, Any]:
    """Decode bytes to a message dict."""
    if compressed:
        raw = zlib.decompress(raw)
    return json.loads(raw.decode("utf-8"))


# -- Shot results --------------------------------------------------------

def shot_to_dict(result: ShotResult) -> dict[str, Any]:
    """JSON-safe dict of a whole shot tree."""
    return result.to_dict()


def shot_from_dict(data: dict[str, Any]) -> ShotResult:
    """Rebuild a shot tree from ``shot_to_dict`` output.

    Raises:
        ValueError: If the dict is not a shot record.
    """
    try:
        return ShotResult.from_dict(data)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed shot record: {exc}") from exc


def segment_info(segment: ShotSegment) -> dict[str, Any]:
    """Render-only view of a segment as used by the progressive stream."""
    return {
        "start": segment.ray.start.to_dict(),
        "end": segment.ray.end.to_dict(),
        "is_ricochet": segment.ricochet.is_ricochet,
        "bounce_number": segment.ricochet.bounce_number,
    }


def segment_infos(result: ShotResult) -> list[dict[str, Any]]:
    """Render-only views of every segment of the tree, parent first."""
    return [segment_info(s) for s in flatten_segments(result)]
