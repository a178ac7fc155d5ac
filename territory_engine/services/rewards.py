# path: territory-engine/territory_engine/services/rewards.py
"""
Scoring, levels and contest pace requirements.

Pure functions shared by the pre-check and the authoritative resolution;
both must produce identical numbers for the same inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import math

from territory_engine.config import BalanceSettings, get_settings


def _half_up(value: float) -> int:
    # Matches the client-side rounding (halves go up, also for negatives)
    return int(math.floor(value + 0.5))


def reward_points(distance_m: float, area_m2: float, is_steal: bool, settings: Optional[BalanceSettings] = None) -> int:
    s = settings or get_settings()
    distance_points = _half_up(distance_m / 1000 * s.reward_points_per_km)
    area_points = int(math.floor(area_m2 / s.reward_area_m2_per_point))
    action_points = s.reward_steal_bonus if is_steal else s.reward_conquer_bonus
    return distance_points + area_points + action_points


def calculate_level(total_points: int, settings: Optional[BalanceSettings] = None) -> int:
    s = settings or get_settings()
    thresholds = s.level_thresholds

    level = 1
    for i, threshold in enumerate(thresholds):
        if total_points >= threshold:
            level = i + 1
        else:
            break
    if level >= len(thresholds):
        extra = (total_points - thresholds[-1]) // s.level_step_points
        level = len(thresholds) + extra
    return level


@dataclass(frozen=True)
class LevelInfo:
    level: int
    current_level_points: int
    next_level_points: int
    progress_percentage: float
    points_to_next_level: int


def level_info(total_points: int, settings: Optional[BalanceSettings] = None) -> LevelInfo:
    s = settings or get_settings()
    thresholds = s.level_thresholds
    level = calculate_level(total_points, s)

    if level >= len(thresholds):
        current = thresholds[-1] + (level - len(thresholds)) * s.level_step_points
        nxt = current + s.level_step_points
    else:
        current = thresholds[level - 1]
        nxt = thresholds[level]

    progress = min((total_points - current) / (nxt - current) * 100, 100.0)
    return LevelInfo(
        level=level,
        current_level_points=current,
        next_level_points=nxt,
        progress_percentage=progress,
        points_to_next_level=max(0, nxt - total_points),
    )


def get_max_area_for_level(level: int, settings: Optional[BalanceSettings] = None) -> float:
    # Flat on purpose: bigger territories are not unlocked by levelling up.
    return (settings or get_settings()).max_area_m2


def defense_bonus_minutes(level: int, settings: Optional[BalanceSettings] = None) -> float:
    tiers = (settings or get_settings()).defense_bonus_tiers
    for min_level, bonus in tiers:
        if level >= min_level:
            return bonus
    return tiers[-1][1]


def required_pace(territory_pace: float, level: int, settings: Optional[BalanceSettings] = None) -> float:
    """Slowest pace (min/km) that still steals a territory run at ``territory_pace``."""
    s = settings or get_settings()
    return max(territory_pace - defense_bonus_minutes(level, s), s.min_required_pace)
