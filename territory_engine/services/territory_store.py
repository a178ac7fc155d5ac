# path: territory-engine/territory_engine/services/territory_store.py
"""
In-memory territory and player state.

Territories are versioned: readers take a snapshot, decide, and hand back a
ChangeSet listing every write together with the version it was based on.
``apply`` takes the per-id locks of all touched territories in id order,
checks every version, and only then writes; a single mismatch raises
StaleTerritoryError and leaves the store untouched so the caller can re-read
and retry.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import threading
import uuid

from territory_engine.models.territory_models import PlayerProfile, Territory
from territory_engine.utils.geo import bbox_wgs84, bboxes_intersect
from territory_engine.utils.polygons import PolygonShape, overlap_area_m2


class StaleTerritoryError(Exception):
    """Raised when a write targets a territory version that is no longer current."""

    def __init__(self, territory_id: str, expected: int, actual: Optional[int]):
        super().__init__(f"territory {territory_id} is at version {actual}, expected {expected}")
        self.territory_id = territory_id
        self.expected = expected
        self.actual = actual


@dataclass
class ChangeSet:
    commits: List[Tuple[Territory, int]] = field(default_factory=list)  # (new state, version read)
    deletes: List[Tuple[str, int]] = field(default_factory=list)  # (id, version read)
    inserts: List[Territory] = field(default_factory=list)
    player_deltas: List[Tuple[str, int, int]] = field(default_factory=list)  # (player, points, territories)

    def touched_ids(self) -> List[str]:
        return sorted({t.id for t, _ in self.commits} | {tid for tid, _ in self.deletes})


class InMemoryTerritoryStore:
    def __init__(self):
        self._territories: Dict[str, Territory] = {}
        self._players: Dict[str, PlayerProfile] = {}
        self._lock = threading.Lock()
        self._id_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def _id_lock(self, territory_id: str) -> threading.Lock:
        with self._lock:
            return self._id_locks[territory_id]

    # Territories

    def get(self, territory_id: str) -> Optional[Territory]:
        with self._lock:
            t = self._territories.get(territory_id)
        return t.model_copy(deep=True) if t is not None else None

    def list_territories(self) -> List[Territory]:
        with self._lock:
            items = list(self._territories.values())
        return [t.model_copy(deep=True) for t in sorted(items, key=lambda t: t.id)]

    def find_overlapping(self, shape: PolygonShape) -> List[Territory]:
        """Territories sharing a positive area with ``shape``, ordered by id."""
        box = bbox_wgs84(shape.shell)
        hits = []
        for t in self.list_territories():
            if not bboxes_intersect(box, bbox_wgs84(t.polygon)):
                continue
            if overlap_area_m2(shape, PolygonShape.from_points(t.polygon, t.holes)) > 0:
                hits.append(t)
        return hits

    def insert(self, territory: Territory) -> Territory:
        if not territory.id:
            territory = territory.model_copy(update={"id": str(uuid.uuid4())})
        self.apply(ChangeSet(inserts=[territory]))
        return self.get(territory.id)

    def _check_version(self, territory_id: str, expected: int) -> None:
        current = self._territories.get(territory_id)
        if current is None or current.version != expected:
            raise StaleTerritoryError(territory_id, expected, current.version if current else None)

    def apply(self, changes: ChangeSet) -> None:
        """Write every change of ``changes`` or none of them."""
        locks = [self._id_lock(tid) for tid in changes.touched_ids()]
        for lock in locks:
            lock.acquire()
        try:
            with self._lock:
                for territory, expected in changes.commits:
                    self._check_version(territory.id, expected)
                for territory_id, expected in changes.deletes:
                    self._check_version(territory_id, expected)
                for territory in changes.inserts:
                    if territory.id in self._territories:
                        raise ValueError(f"territory {territory.id} already exists")

                now = datetime.now(timezone.utc)
                for territory, expected in changes.commits:
                    self._territories[territory.id] = territory.model_copy(
                        update={"version": expected + 1, "updated_at": now}, deep=True
                    )
                for territory_id, _ in changes.deletes:
                    del self._territories[territory_id]
                    self._id_locks.pop(territory_id, None)
                for territory in changes.inserts:
                    self._territories[territory.id] = territory.model_copy(
                        update={"version": 0, "updated_at": now}, deep=True
                    )
                for player_id, points, territories in changes.player_deltas:
                    self._bump_player(player_id, points, territories, 0.0)
        finally:
            for lock in reversed(locks):
                lock.release()

    # Players

    def player(self, player_id: str) -> PlayerProfile:
        with self._lock:
            p = self._players.get(player_id)
        return p.model_copy() if p is not None else PlayerProfile(id=player_id)

    def _bump_player(self, player_id: str, points: int, territories: int, distance: float) -> PlayerProfile:
        p = self._players.get(player_id) or PlayerProfile(id=player_id)
        p = p.model_copy(
            update={
                "total_points": max(0, p.total_points + points),
                "total_territories": max(0, p.total_territories + territories),
                "total_distance": p.total_distance + distance,
            }
        )
        self._players[player_id] = p
        return p.model_copy()

    def update_player(
        self,
        player_id: str,
        points: int = 0,
        territories: int = 0,
        distance: float = 0.0,
    ) -> PlayerProfile:
        with self._lock:
            return self._bump_player(player_id, points, territories, distance)
