# path: territory-engine/territory_engine/services/offline_queue.py
"""
Offline claim queue shared with the client.

Entries are stored as an opaque JSON list; a failed submission is retried
with exponential backoff capped at five minutes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
import json
import logging
import secrets
import threading
import time

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from territory_engine.models.claim_models import ClaimSource
from territory_engine.models.territory_models import Coordinate

logger = logging.getLogger(__name__)

MAX_BACKOFF_MS = 5 * 60 * 1000


def backoff_ms(attempts: int) -> int:
    return min(MAX_BACKOFF_MS, (2 ** min(attempts, 6)) * 1000)


def _now_ms() -> int:
    return int(time.time() * 1000)


class OfflineRunPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: List[Coordinate]
    duration: float
    source: ClaimSource
    user_id: str = Field(alias="userId")


class OfflineRunMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    distance: float = 0.0
    area: float = 0.0
    avg_pace: float = Field(default=0.0, alias="avgPace")


class OfflineRunEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    payload: OfflineRunPayload
    metadata: OfflineRunMetadata
    attempts: int = 0
    next_attempt_at: int = Field(default=0, alias="nextAttemptAt")  # epoch ms

    def should_attempt(self, now_ms: Optional[int] = None) -> bool:
        if not self.next_attempt_at:
            return True
        return self.next_attempt_at <= (now_ms if now_ms is not None else _now_ms())


_entries_adapter = TypeAdapter(List[OfflineRunEntry])


class OfflineQueue:
    def __init__(self, path: Path, clock: Callable[[], int] = _now_ms):
        self.path = Path(path)
        self.clock = clock
        self._lock = threading.Lock()

    def _load(self) -> List[OfflineRunEntry]:
        if not self.path.exists():
            return []
        try:
            return _entries_adapter.validate_json(self.path.read_bytes())
        except ValidationError as exc:
            logger.error("Unreadable offline queue at %s, starting empty: %s", self.path, exc)
            return []

    def _persist(self, entries: List[OfflineRunEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [e.model_dump(mode="json", by_alias=True) for e in entries]
        self.path.write_text(json.dumps(data, separators=(",", ":")), encoding="utf-8")

    def entries(self) -> List[OfflineRunEntry]:
        with self._lock:
            return self._load()

    def enqueue(self, payload: OfflineRunPayload, metadata: OfflineRunMetadata) -> OfflineRunEntry:
        with self._lock:
            entries = self._load()
            entry = OfflineRunEntry(
                id=f"offline-{self.clock()}-{secrets.token_hex(3)}",
                payload=payload,
                metadata=metadata,
            )
            entries.append(entry)
            self._persist(entries)
        return entry

    def update(self, entry_id: str, **changes) -> Optional[OfflineRunEntry]:
        with self._lock:
            entries = self._load()
            for i, e in enumerate(entries):
                if e.id == entry_id:
                    entries[i] = e.model_copy(update=changes)
                    self._persist(entries)
                    return entries[i]
        return None

    def mark_failed(self, entry_id: str) -> Optional[OfflineRunEntry]:
        with self._lock:
            entries = self._load()
            for i, e in enumerate(entries):
                if e.id == entry_id:
                    attempts = e.attempts + 1
                    entries[i] = e.model_copy(
                        update={"attempts": attempts, "next_attempt_at": self.clock() + backoff_ms(attempts)}
                    )
                    self._persist(entries)
                    logger.info("Offline run %s failed %d time(s), next try in %dms", entry_id, attempts, backoff_ms(attempts))
                    return entries[i]
        return None

    def due(self) -> List[OfflineRunEntry]:
        now = self.clock()
        return [e for e in self.entries() if e.should_attempt(now)]

    def remove(self, entry_id: str) -> None:
        with self._lock:
            self._persist([e for e in self._load() if e.id != entry_id])

    def clear(self) -> None:
        with self._lock:
            self._persist([])
