# path: territory-engine/territory_engine/models/claim_models.py

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from territory_engine.models.territory_models import ClaimOutcome, Coordinate, PolygonMetrics


ClaimSource = Literal["live", "import"]


class ClaimRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: List[Coordinate]
    duration: float  # seconds
    source: ClaimSource = "live"
    is_public: Optional[bool] = Field(default=None, alias="isPublic")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")

    @field_validator("path")
    @classmethod
    def validate_path(cls, path: List[Coordinate]):
        if not path:
            raise ValueError("path must contain at least 1 coordinate")
        return path


class ValidationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: List[str] = Field(default_factory=list)


class ClaimResultData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["conquered", "stolen", "reinforced"]
    territories_conquered: int = Field(default=0, ge=0, alias="territoriesConquered")
    territories_stolen: int = Field(default=0, ge=0, alias="territoriesStolen")
    territories_lost: int = Field(default=0, ge=0, alias="territoriesLost")
    points_gained: int = Field(default=0, alias="pointsGained")
    run_id: str = Field(alias="runId")
    challenge_rewards: List[str] = Field(default_factory=list, alias="challengeRewards")
    outcomes: List[ClaimOutcome] = Field(default_factory=list)


class ClaimResponse(BaseModel):
    success: bool
    data: Optional[ClaimResultData] = None
    error: Optional[str] = None
    errors: Optional[List[str]] = None


class PrecheckCandidate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    metrics: PolygonMetrics
    validation: ValidationResult
    projected_points: int = Field(alias="projectedPoints")


class PrecheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: int
    distance: float
    avg_pace: float = Field(alias="avgPace")
    candidates: List[PrecheckCandidate]
