# path: territory-engine/territory_engine/models/territory_models.py

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float
    accuracy: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[int] = None  # epoch milliseconds

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, lat: float):
        if not (-90.0 <= lat <= 90.0):
            raise ValueError(f"lat out of range [-90,90]: {lat}")
        return lat

    @field_validator("lng")
    @classmethod
    def validate_lng(cls, lng: float):
        if not (-180.0 <= lng <= 180.0):
            raise ValueError(f"lng out of range [-180,180]: {lng}")
        return lng


# First vertex repeated as last, at least 4 vertices. Never mutated.
ClosedLoop = Tuple[Coordinate, ...]


class PolygonMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    area: float = Field(ge=0)  # m²
    perimeter: float = Field(ge=0)  # m
    avg_pace: float = Field(ge=0)  # min/km
    distance: float = Field(default=0.0, ge=0)  # m, length of the trace behind the loop


class ClaimCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    loop: ClosedLoop
    metrics: PolygonMetrics

    @field_validator("loop")
    @classmethod
    def validate_loop(cls, loop: ClosedLoop):
        if len(loop) < 4:
            raise ValueError("Closed loop must contain at least 4 vertices")
        first, last = loop[0], loop[-1]
        if (first.lat, first.lng) != (last.lat, last.lng):
            raise ValueError("Closed loop must repeat its first vertex as last")
        return loop


class ContestAction(str, Enum):
    CONQUERED = "conquered"
    STOLEN = "stolen"
    REINFORCED = "reinforced"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    SHIELD_ACTIVE = "shield_active"
    PROTECTED = "protected"
    COOLDOWN = "cooldown"
    PACE_TOO_SLOW = "pace_too_slow"


class Territory(BaseModel):
    id: str
    owner_id: str
    polygon: List[Coordinate]
    holes: List[List[Coordinate]] = Field(default_factory=list)
    area: float = Field(ge=0)
    perimeter: float = Field(ge=0)
    avg_pace: float = Field(ge=0)
    required_pace: Optional[float] = None
    protected_until: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None
    shield_active: bool = False
    conquest_points: int = 0
    version: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def contest_block(self, now: datetime) -> Optional[RejectReason]:
        """Reason this territory cannot be attacked at ``now``, if any."""
        if self.shield_active:
            return RejectReason.SHIELD_ACTIVE
        if self.protected_until is not None and now < self.protected_until:
            return RejectReason.PROTECTED
        if self.cooldown_until is not None and now < self.cooldown_until:
            return RejectReason.COOLDOWN
        return None


class ClaimOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ContestAction
    territory_id: Optional[str] = None
    holding_id: Optional[str] = None  # claimant territory that now holds the loop
    area_delta: float = 0.0
    points_gained: int = 0
    reject_reason: Optional[RejectReason] = None
    required_pace: Optional[float] = None
    annexed: bool = False


class PlayerProfile(BaseModel):
    id: str
    total_points: int = 0
    total_territories: int = 0
    total_distance: float = 0.0
