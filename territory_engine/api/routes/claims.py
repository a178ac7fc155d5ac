# path: territory-engine/territory_engine/api/routes/claims.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from territory_engine.models.claim_models import ClaimRequest, ClaimResponse, PrecheckResponse
from territory_engine.models.territory_models import Territory
from territory_engine.services.claim_processor import ClaimProcessor
from territory_engine.services.errors import ClaimValidationError
from territory_engine.services.territory_store import InMemoryTerritoryStore

router = APIRouter(tags=["claims"])

_store = InMemoryTerritoryStore()
_processor = ClaimProcessor(_store)


def get_processor() -> ClaimProcessor:
    return _processor


def is_in_current_week(when: datetime, now: Optional[datetime] = None) -> bool:
    """Monday 00:00 to Sunday 23:59:59.999 of the week containing ``now``."""
    now = now or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    monday = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return monday <= when < monday + timedelta(days=7)


@router.post("/claims", response_model=ClaimResponse, response_model_exclude_none=True)
def submit_claim(
    request: ClaimRequest,
    x_user_id: str = Header(...),
    processor: ClaimProcessor = Depends(get_processor),
) -> ClaimResponse:
    # Imports only count for the current week
    if request.source == "import" and request.started_at is not None and not is_in_current_week(request.started_at):
        raise ClaimValidationError(
            "Only runs from the current week can be imported",
            ["Only runs from the current week (Monday to Sunday) can be imported"],
        )
    data = processor.process(request, x_user_id)
    return ClaimResponse(success=True, data=data)


@router.post("/claims/precheck", response_model=PrecheckResponse)
def precheck_claim(
    request: ClaimRequest,
    x_user_id: str = Header(...),
    processor: ClaimProcessor = Depends(get_processor),
) -> PrecheckResponse:
    return processor.precheck(request, x_user_id)


@router.get("/territories", response_model=List[Territory])
def list_territories(processor: ClaimProcessor = Depends(get_processor)) -> List[Territory]:
    return processor.store.list_territories()


@router.get("/territories/{territory_id}", response_model=Territory)
def get_territory(territory_id: str, processor: ClaimProcessor = Depends(get_processor)) -> Territory:
    territory = processor.store.get(territory_id)
    if territory is None:
        raise HTTPException(status_code=404, detail="Territory not found")
    return territory
