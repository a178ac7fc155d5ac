# path: territory-engine/territory_engine/services/contest_resolver.py
"""
Ownership resolution for one claimed loop.

Each territory the loop overlaps is decided on its own: reinforce when the
claimant already owns it, otherwise check shield/protection/cooldown, then
the pace requirement, then take the land either whole (annexation) or by
carving the loop out of it (partial steal).

Decisions are planned against a snapshot of the store and written as one
ChangeSet, so a conflicting concurrent write leaves every territory of the
claim as it was and the whole loop is re-planned.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple
import logging
import uuid

from territory_engine.config import BalanceSettings, get_settings
from territory_engine.models.territory_models import (
    ClaimCandidate,
    ClaimOutcome,
    ContestAction,
    RejectReason,
    Territory,
)
from territory_engine.services.errors import TerritoryConflictError
from territory_engine.services.rewards import required_pace, reward_points
from territory_engine.services.territory_store import ChangeSet, InMemoryTerritoryStore, StaleTerritoryError
from territory_engine.utils.geo import perimeter_m
from territory_engine.utils.polygons import (
    PolygonShape,
    covers,
    difference_shapes,
    union_shapes,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def territory_shape(territory: Territory) -> PolygonShape:
    return PolygonShape.from_points(territory.polygon, territory.holes)


class ContestResolver:
    def __init__(
        self,
        store: InMemoryTerritoryStore,
        settings: Optional[BalanceSettings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    def resolve(
        self,
        candidate: ClaimCandidate,
        claimant_id: str,
        claimant_level: int,
        now: Optional[datetime] = None,
    ) -> List[ClaimOutcome]:
        now = now or self.clock()
        shape = PolygonShape.from_points(candidate.loop)

        stale: Optional[StaleTerritoryError] = None
        for attempt in range(self.settings.conflict_max_retries):
            outcomes, changes = self._plan(shape, candidate, claimant_id, claimant_level, now)
            try:
                self.store.apply(changes)
            except StaleTerritoryError as exc:
                logger.warning("Concurrent update on territory %s (attempt %d): %s", exc.territory_id, attempt + 1, exc)
                stale = exc
                continue
            for o in outcomes:
                if o.action != ContestAction.REJECTED:
                    logger.info(
                        "Territory %s %s by %s (%.0f m²%s)",
                        o.territory_id, o.action.value, claimant_id, o.area_delta, ", annexed" if o.annexed else "",
                    )
            return outcomes
        raise TerritoryConflictError(stale.territory_id)

    def _plan(
        self,
        shape: PolygonShape,
        candidate: ClaimCandidate,
        claimant_id: str,
        claimant_level: int,
        now: datetime,
    ) -> Tuple[List[ClaimOutcome], ChangeSet]:
        changes = ChangeSet()
        outcomes = [
            self._decide(territory, shape, candidate, claimant_id, claimant_level, now, changes)
            for territory in self.store.find_overlapping(shape)
        ]

        if not outcomes:
            points = reward_points(candidate.metrics.distance, candidate.metrics.area, False, self.settings)
            territory = self._new_territory(candidate, claimant_id, claimant_level, now, points)
            changes.inserts.append(territory)
            return [
                ClaimOutcome(
                    action=ContestAction.CONQUERED,
                    territory_id=territory.id,
                    holding_id=territory.id,
                    area_delta=territory.area,
                    points_gained=points,
                )
            ], changes

        reinforced = [o for o in outcomes if o.action == ContestAction.REINFORCED]
        stolen = [o for o in outcomes if o.action == ContestAction.STOLEN]
        if not stolen:
            return outcomes, changes

        points = reward_points(candidate.metrics.distance, candidate.metrics.area, True, self.settings)
        if reinforced:
            holding_id = reinforced[0].territory_id
        else:
            holding = self._new_territory(candidate, claimant_id, claimant_level, now, points)
            changes.inserts.append(holding)
            holding_id = holding.id

        credited = []
        first_steal = True
        for o in outcomes:
            if o.action == ContestAction.STOLEN:
                update = {"holding_id": holding_id}
                if first_steal:
                    update["points_gained"] = points
                    first_steal = False
                o = o.model_copy(update=update)
            credited.append(o)
        return credited, changes

    def _new_territory(
        self,
        candidate: ClaimCandidate,
        owner_id: str,
        owner_level: int,
        now: datetime,
        points: int,
    ) -> Territory:
        s = self.settings
        m = candidate.metrics
        return Territory(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            polygon=list(candidate.loop),
            area=m.area,
            perimeter=m.perimeter,
            avg_pace=m.avg_pace,
            required_pace=required_pace(m.avg_pace, owner_level, s),
            protected_until=now + timedelta(hours=s.protection_hours),
            cooldown_until=now + timedelta(hours=s.steal_cooldown_hours),
            conquest_points=points,
        )

    # Per-territory decisions

    def _decide(
        self,
        current: Territory,
        shape: PolygonShape,
        candidate: ClaimCandidate,
        claimant_id: str,
        claimant_level: int,
        now: datetime,
        changes: ChangeSet,
    ) -> ClaimOutcome:
        if current.owner_id == claimant_id:
            return self._reinforce(current, candidate, claimant_level, now, changes)

        block = current.contest_block(now)
        if block is not None:
            logger.info("Attack on %s by %s blocked: %s", current.id, claimant_id, block.value)
            return ClaimOutcome(action=ContestAction.REJECTED, territory_id=current.id, reject_reason=block)

        needed = required_pace(current.avg_pace, claimant_level, self.settings)
        if candidate.metrics.avg_pace > needed:
            logger.info(
                "Attack on %s by %s too slow: %.2f > %.2f min/km",
                current.id, claimant_id, candidate.metrics.avg_pace, needed,
            )
            return ClaimOutcome(
                action=ContestAction.REJECTED,
                territory_id=current.id,
                reject_reason=RejectReason.PACE_TOO_SLOW,
                required_pace=needed,
            )

        return self._steal(current, shape, needed, now, changes)

    def _reinforce(
        self,
        current: Territory,
        candidate: ClaimCandidate,
        claimant_level: int,
        now: datetime,
        changes: ChangeSet,
    ) -> ClaimOutcome:
        s = self.settings
        merged = union_shapes(territory_shape(current), candidate.loop)
        pace = candidate.metrics.avg_pace
        updated = current.model_copy(
            update={
                "polygon": list(merged.shell),
                "holes": [list(h) for h in merged.holes],
                "area": merged.area,
                "perimeter": perimeter_m(merged.shell),
                "avg_pace": pace,
                "required_pace": required_pace(pace, claimant_level, s),
                "protected_until": now + timedelta(hours=s.protection_hours),
            }
        )
        changes.commits.append((updated, current.version))
        return ClaimOutcome(
            action=ContestAction.REINFORCED,
            territory_id=current.id,
            holding_id=current.id,
            area_delta=updated.area - current.area,
        )

    def _steal(
        self,
        current: Territory,
        shape: PolygonShape,
        needed: float,
        now: datetime,
        changes: ChangeSet,
    ) -> ClaimOutcome:
        s = self.settings
        base = territory_shape(current)

        if covers(shape, base):
            return self._annex(current, needed, "fully covered", changes)

        result = difference_shapes(base, shape, s.min_area_m2)
        if not result.ok:
            return self._annex(current, needed, result.status.value, changes)

        remainder = result.shape
        updated = current.model_copy(
            update={
                "polygon": list(remainder.shell),
                "holes": [list(h) for h in remainder.holes],
                "area": remainder.area,
                "perimeter": perimeter_m(remainder.shell),
                "cooldown_until": now + timedelta(hours=s.steal_cooldown_hours),
            }
        )
        changes.commits.append((updated, current.version))
        logger.debug("Territory %s shrinks %.0f -> %.0f m² (%s)", current.id, current.area, updated.area, result.status.value)
        return ClaimOutcome(
            action=ContestAction.STOLEN,
            territory_id=current.id,
            area_delta=current.area - updated.area,
            required_pace=needed,
        )

    def _annex(self, current: Territory, needed: float, why: str, changes: ChangeSet) -> ClaimOutcome:
        changes.deletes.append((current.id, current.version))
        changes.player_deltas.append((current.owner_id, -current.conquest_points, -1))
        logger.debug("Territory %s to be annexed (%s)", current.id, why)
        return ClaimOutcome(
            action=ContestAction.STOLEN,
            territory_id=current.id,
            area_delta=current.area,
            required_pace=needed,
            annexed=True,
        )
