# path: territory-engine/territory_engine/services/claim_processor.py

from __future__ import annotations

from typing import List, Optional, Tuple
import logging
import uuid

from territory_engine.config import BalanceSettings, get_settings
from territory_engine.models.claim_models import (
    ClaimRequest,
    ClaimResultData,
    PrecheckCandidate,
    PrecheckResponse,
    ValidationResult,
)
from territory_engine.models.territory_models import (
    ClaimCandidate,
    ClaimOutcome,
    ContestAction,
    PolygonMetrics,
    RejectReason,
)
from territory_engine.services.contest_resolver import ContestResolver
from territory_engine.services.errors import ClaimRejectedError, ClaimValidationError, TerritoryConflictError
from territory_engine.services.gps_filter import cap_points
from territory_engine.services.loop_extractor import extract_loops
from territory_engine.services.rewards import calculate_level, reward_points
from territory_engine.services.run_validator import validate_import, validate_run
from territory_engine.services.territory_store import InMemoryTerritoryStore
from territory_engine.utils.geo import (
    average_pace,
    ensure_closed,
    is_closed,
    path_distance_m,
    perimeter_m,
    polygon_area_m2,
)

logger = logging.getLogger(__name__)

REJECT_STATUS = {
    RejectReason.SHIELD_ACTIVE: 403,
    RejectReason.PROTECTED: 403,
    RejectReason.COOLDOWN: 429,
    RejectReason.PACE_TOO_SLOW: 400,
}

REJECT_MESSAGES = {
    RejectReason.SHIELD_ACTIVE: "Territory is shielded",
    RejectReason.PROTECTED: "Territory is temporarily protected",
    RejectReason.COOLDOWN: "You must wait before attacking this territory again",
}


def _reject_message(outcome: ClaimOutcome) -> str:
    if outcome.reject_reason == RejectReason.PACE_TOO_SLOW:
        return f"You need a pace of {outcome.required_pace:.2f} min/km or faster to steal this territory"
    return REJECT_MESSAGES[outcome.reject_reason]


class ClaimProcessor:
    """Runs a submitted path through extraction, validation, contest and scoring."""

    def __init__(
        self,
        store: InMemoryTerritoryStore,
        resolver: Optional[ContestResolver] = None,
        settings: Optional[BalanceSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.resolver = resolver or ContestResolver(store, self.settings)

    def build_candidates(self, request: ClaimRequest) -> Tuple[List[ClaimCandidate], float, float]:
        """Closed loops of the run with their metrics, plus run distance and pace."""
        s = self.settings
        if len(request.path) < s.min_loop_vertices:
            raise ClaimValidationError("Invalid path", [f"Path needs at least {s.min_loop_vertices} points"])
        if request.duration <= 0:
            raise ClaimValidationError("Invalid duration", ["Duration must be greater than zero"])

        threshold = s.import_closure_m if request.source == "import" else s.live_closure_m
        distance = path_distance_m(request.path)
        pace = average_pace(distance, request.duration)

        # Only the polygon geometry is capped; distance and pace use the path as submitted
        path = cap_points(request.path, s.max_path_points)
        if is_closed(request.path, threshold):
            loops = [(tuple(ensure_closed(path)), distance)]
        else:
            # Sub-loop length excludes the vertex repeated to close the ring
            loops = [(loop, path_distance_m(loop[:-1])) for loop in extract_loops(path, s.loop_closure_m)]
        if not loops:
            raise ClaimValidationError(
                "You must close the loop to claim a territory",
                [f"Start and end must be within {threshold:.0f} m, or the path must cross itself"],
            )

        candidates = [
            ClaimCandidate(
                loop=loop,
                metrics=PolygonMetrics(
                    area=polygon_area_m2(loop),
                    perimeter=perimeter_m(loop),
                    avg_pace=pace,
                    distance=loop_distance,
                ),
            )
            for loop, loop_distance in loops
        ]
        return candidates, distance, pace

    def _validate(self, request: ClaimRequest, candidate: ClaimCandidate, level: int) -> ValidationResult:
        if request.source == "import":
            # Closure tolerance applies to the file as exported, not to the closed ring
            return validate_import(request.path, request.duration, candidate.metrics.area, level, self.settings)
        return validate_run(candidate.loop, request.duration, candidate.metrics.area, level, self.settings)

    def precheck(self, request: ClaimRequest, user_id: str) -> PrecheckResponse:
        level = calculate_level(self.store.player(user_id).total_points, self.settings)
        candidates, distance, pace = self.build_candidates(request)
        return PrecheckResponse(
            level=level,
            distance=distance,
            avg_pace=pace,
            candidates=[
                PrecheckCandidate(
                    metrics=c.metrics,
                    validation=self._validate(request, c, level),
                    projected_points=reward_points(c.metrics.distance, c.metrics.area, False, self.settings),
                )
                for c in candidates
            ],
        )

    def process(self, request: ClaimRequest, user_id: str) -> ClaimResultData:
        level = calculate_level(self.store.player(user_id).total_points, self.settings)
        candidates, distance, _ = self.build_candidates(request)

        valid, errors = [], []
        for c in candidates:
            result = self._validate(request, c, level)
            if result.is_valid:
                valid.append(c)
            else:
                errors.extend(e for e in result.errors if e not in errors)
        if not valid:
            logger.info("Claim by %s failed validation: %s", user_id, "; ".join(errors))
            raise ClaimValidationError("Run is not valid", errors)

        outcomes: List[ClaimOutcome] = []
        conflict: Optional[TerritoryConflictError] = None
        for c in valid:
            try:
                outcomes.extend(self.resolver.resolve(c, user_id, level))
            except TerritoryConflictError as exc:
                # Loops already written stay credited; this one is dropped
                logger.warning("Claim by %s lost a loop to a conflict on %s", user_id, exc.territory_id)
                conflict = exc

        accepted = [o for o in outcomes if o.action != ContestAction.REJECTED]
        if not accepted:
            if conflict is not None:
                raise conflict
            first = outcomes[0]
            raise ClaimRejectedError(
                _reject_message(first),
                status_code=REJECT_STATUS[first.reject_reason],
                errors=[_reject_message(o) for o in outcomes],
            )

        conquered = sum(1 for o in accepted if o.action == ContestAction.CONQUERED)
        stolen = sum(1 for o in accepted if o.action == ContestAction.STOLEN)
        points = sum(o.points_gained for o in accepted)
        reinforced_ids = {o.territory_id for o in accepted if o.action == ContestAction.REINFORCED}
        new_holdings = {o.holding_id for o in accepted if o.holding_id} - reinforced_ids
        self.store.update_player(user_id, points=points, territories=len(new_holdings), distance=distance)

        if stolen:
            action = "stolen"
        elif conquered:
            action = "conquered"
        else:
            action = "reinforced"

        run_id = str(uuid.uuid4())
        logger.info(
            "Run %s by %s: %s (conquered=%d stolen=%d points=%d)",
            run_id, user_id, action, conquered, stolen, points,
        )
        return ClaimResultData(
            action=action,
            territories_conquered=conquered,
            territories_stolen=stolen,
            territories_lost=0,
            points_gained=points,
            run_id=run_id,
            challenge_rewards=[],
            outcomes=outcomes,
        )
