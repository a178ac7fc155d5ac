# path: territory-engine/territory_engine/config.py
"""
Balance constants for the territory engine.

Every threshold the game balance depends on lives here so that the client
pre-check and the authoritative resolution read the same values, and so
tests can override them without touching the algorithms.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LEVEL_THRESHOLDS = [
    0,
    100,
    250,
    500,
    850,
    1300,
    1900,
    2600,
    3400,
    4300,
    5300,
    6500,
    7900,
    9500,
    11300,
    13300,
    15500,
    18000,
    20800,
    24000,
]


class BalanceSettings(BaseSettings):
    """Game balance and GPS tuning, overridable through TERRITORY_* env vars."""

    model_config = SettingsConfigDict(env_prefix="TERRITORY_", frozen=True)

    # Territory size
    min_area_m2: float = Field(default=10_000.0, gt=0, description="Smallest livable territory")
    max_area_m2: float = Field(default=5_000_000.0, gt=0, description="Flat cap for every level")

    # Loop closure
    loop_closure_m: float = Field(default=30.0, gt=0, description="Sub-loop extraction threshold")
    live_closure_m: float = Field(default=50.0, gt=0, description="Live run closure threshold")
    import_closure_m: float = Field(default=100.0, gt=0, description="Imported run closure threshold")
    max_path_points: int = Field(default=400, ge=4)
    min_loop_vertices: int = Field(default=4, ge=4)

    # Adaptive GPS filter
    gps_min_distance_m: float = Field(default=5.0, ge=0)
    gps_min_interval_ms: int = Field(default=2000, ge=0)
    gps_min_interval_floor_ms: int = Field(default=1000, ge=0)
    gps_max_accuracy_m: float = Field(default=25.0, gt=0)
    gps_adaptive_speed_mps: float = Field(default=2.0, gt=0)
    gps_jump_speed_mps: float = Field(default=14.0, gt=0, description="~50 km/h")
    gps_jump_previous_speed_mps: float = Field(default=5.0, gt=0)

    # Run plausibility
    min_duration_s: float = Field(default=60.0, ge=0)
    max_speed_mps: float = Field(default=12.0, gt=0, description="Human running/biking ceiling")
    reject_self_intersecting: bool = False

    # Levels and rewards
    level_thresholds: List[int] = Field(default_factory=lambda: list(DEFAULT_LEVEL_THRESHOLDS))
    level_step_points: int = Field(default=3000, gt=0)
    reward_points_per_km: float = 10.0
    reward_area_m2_per_point: float = Field(default=2000.0, gt=0)
    reward_conquer_bonus: int = 50
    reward_steal_bonus: int = 75

    # Contest
    defense_bonus_tiers: List[Tuple[int, float]] = Field(
        default_factory=lambda: [(11, 1.0), (6, 0.75), (1, 0.5)],
        description="(minimum level, bonus minutes/km), checked top-down",
    )
    min_required_pace: float = Field(default=2.5, gt=0)
    protection_hours: float = Field(default=24.0, ge=0)
    steal_cooldown_hours: float = Field(default=6.0, ge=0)
    conflict_max_retries: int = Field(default=3, ge=1)

    log_level: str = "INFO"

    @field_validator("level_thresholds")
    @classmethod
    def validate_thresholds(cls, thresholds: List[int]):
        if not thresholds or thresholds[0] != 0:
            raise ValueError("level_thresholds must start at 0")
        for prev, cur in zip(thresholds, thresholds[1:]):
            if cur <= prev:
                raise ValueError("level_thresholds must be strictly increasing")
        return thresholds

    @field_validator("defense_bonus_tiers")
    @classmethod
    def sort_tiers(cls, tiers: List[Tuple[int, float]]):
        if not tiers:
            raise ValueError("defense_bonus_tiers must not be empty")
        return sorted(tiers, key=lambda t: t[0], reverse=True)


@lru_cache(maxsize=1)
def get_settings() -> BalanceSettings:
    return BalanceSettings()
