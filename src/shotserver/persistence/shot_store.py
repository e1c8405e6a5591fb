"""Shot store - bounded history of completed shots, persisted to YAML.

Records are opaque to the store: the shot is kept as its dict form and
only rebuilt into a ShotResult on ``get``.

File format (shots.yaml):
    shots:
      - id: shot_1760000000000_1
        shot: {...}                 # ShotResult.to_dict()
        meta: {speaker: alice}
        stored_at: 1760000000.0     # epoch seconds
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from shotserver.models.shot import ShotResult
from shotserver.network.serialization import shot_from_dict, shot_to_dict

log = logging.getLogger(__name__)

DEFAULT_PATH = "shots.yaml"
DEFAULT_MAX_SIZE = 50
DEFAULT_MAX_AGE_S = 300.0


class ShotStore:
    """YAML-backed shot history.

    All write operations immediately persist to disk (atomic write via
    a temporary file).  Reads are served from the in-memory list, which
    is kept oldest first.

    Args:
        path: Path to the YAML file, or None for a memory-only store.
        max_size: Maximum number of records; the oldest are dropped.
        max_age_s: Records older than this are pruned (None disables).
    """

    def __init__(
        self,
        path: Optional[str] = DEFAULT_PATH,
        max_size: int = DEFAULT_MAX_SIZE,
        max_age_s: Optional[float] = DEFAULT_MAX_AGE_S,
    ) -> None:
        self._path = Path(path) if path else None
        self.max_size = max_size
        self.max_age_s = max_age_s
        self._records: list[dict[str, Any]] = []

    # -- Load / Save -----------------------------------------------------

    def load(self) -> None:
        """Load records from disk.  Safe to call even if file does not exist."""
        if self._path is None:
            return
        if not self._path.exists():
            log.info("ShotStore: no file at %s, starting empty", self._path)
            return
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
            self._records = [r for r in data.get("shots", []) or [] if r.get("id")]
            log.info("ShotStore: loaded %d shots from %s", len(self._records), self._path)
        except Exception:
            log.exception("ShotStore: failed to load %s, starting empty", self._path)
            self._records = []

    def _save(self) -> None:
        """Persist current state atomically."""
        if self._path is None:
            return
        tmp = self._path.with_suffix(".tmp")
        try:
            tmp.write_text(
                yaml.safe_dump({"shots": self._records}, default_flow_style=False,
                               allow_unicode=True, sort_keys=False),
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except Exception:
            log.exception("ShotStore: failed to save to %s", self._path)
            if tmp.exists():
                tmp.unlink(missing_ok=True)

    # -- Public API ------------------------------------------------------

    def add(
        self,
        shot: Union[ShotResult, dict[str, Any]],
        meta: Optional[dict[str, Any]] = None,
        now: Optional[float] = None,
    ) -> dict[str, Any]:
        """Store a shot (replacing a record with the same id) and return the record."""
        shot_dict = shot_to_dict(shot) if isinstance(shot, ShotResult) else dict(shot)
        shot_id = shot_dict.get("id")
        if not shot_id:
            raise ValueError("Shot record has no id")
        record: dict[str, Any] = {
            "id": shot_id,
            "shot": shot_dict,
            "meta": dict(meta or {}),
            "stored_at": time.time() if now is None else now,
        }
        self._records = [r for r in self._records if r["id"] != shot_id]
        self._records.append(record)
        self._prune(record["stored_at"])
        self._save()
        log.info("ShotStore: stored %s (%d in history)", shot_id, len(self._records))
        return record

    def get(self, shot_id: str) -> Optional[ShotResult]:
        """The stored shot rebuilt as a ShotResult, or None."""
        record = self.get_record(shot_id)
        return shot_from_dict(record["shot"]) if record else None

    def get_record(self, shot_id: str) -> Optional[dict[str, Any]]:
        for record in self._records:
            if record["id"] == shot_id:
                return record
        return None

    def recent(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Records newest first, at most `limit` of them."""
        records = list(reversed(self._records))
        return records if limit is None else records[:max(0, limit)]

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired and excess records.  Returns how many were dropped."""
        removed = self._prune(time.time() if now is None else now)
        if removed:
            self._save()
        return removed

    def remove(self, shot_id: str) -> bool:
        """Delete one record.  Returns True if found."""
        before = len(self._records)
        self._records = [r for r in self._records if r["id"] != shot_id]
        if len(self._records) == before:
            return False
        self._save()
        return True

    def clear(self) -> None:
        self._records = []
        self._save()

    def __len__(self) -> int:
        return len(self._records)

    # -- Internal --------------------------------------------------------

    def _prune(self, now: float) -> int:
        before = len(self._records)
        if self.max_age_s is not None:
            cutoff = now - self.max_age_s
            self._records = [r for r in self._records if r["stored_at"] >= cutoff]
        if len(self._records) > self.max_size:
            self._records = self._records[-self.max_size:]
        removed = before - len(self._records)
        if removed:
            log.debug("ShotStore: pruned %d record(s)", removed)
        return removed
