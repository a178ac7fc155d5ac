# path: territory-engine/territory_engine/services/run_validator.py

from __future__ import annotations

from typing import List, Optional, Sequence

from territory_engine.config import BalanceSettings, get_settings
from territory_engine.models.claim_models import ValidationResult
from territory_engine.models.territory_models import Coordinate
from territory_engine.services.rewards import get_max_area_for_level
from territory_engine.utils.geo import haversine_m, path_distance_m, segment_speeds_mps
from territory_engine.utils.polygons import is_simple_ring


def _speed_errors(loop: Sequence[Coordinate], duration_s: float, s: BalanceSettings) -> List[str]:
    errors = []
    speeds = segment_speeds_mps(loop)

    if speeds:
        top = max(speeds)
        if top > s.max_speed_mps:
            errors.append(f"Speed too high: {top * 3.6:.1f} km/h exceeds {s.max_speed_mps * 3.6:.0f} km/h")
        for prev, cur in zip(speeds, speeds[1:]):
            if cur > s.gps_jump_speed_mps and prev < s.gps_jump_previous_speed_mps:
                errors.append(f"GPS jump detected: {cur * 3.6:.1f} km/h right after {prev * 3.6:.1f} km/h")
                break
    elif duration_s > 0:
        avg = path_distance_m(loop) / duration_s
        if avg > s.max_speed_mps:
            errors.append(f"Average speed too high: {avg * 3.6:.1f} km/h exceeds {s.max_speed_mps * 3.6:.0f} km/h")
    return errors


def validate_run(
    loop: Sequence[Coordinate],
    duration_s: float,
    area: float,
    user_level: int,
    settings: Optional[BalanceSettings] = None,
) -> ValidationResult:
    """Check a closed loop for plausible human effort; reports every broken rule."""
    s = settings or get_settings()
    errors: List[str] = []

    if len(loop) < s.min_loop_vertices:
        errors.append(f"Loop needs at least {s.min_loop_vertices} points, got {len(loop)}")

    if duration_s <= 0:
        errors.append("Duration must be greater than zero")
    elif duration_s < s.min_duration_s:
        errors.append(f"Run too short: {duration_s:.0f}s < {s.min_duration_s:.0f}s")

    errors.extend(_speed_errors(loop, duration_s, s))

    if area < s.min_area_m2:
        errors.append(f"Territory too small: {area:.0f} m² < {s.min_area_m2:.0f} m²")
    max_area = get_max_area_for_level(user_level, s)
    if area > max_area:
        errors.append(f"Territory too large: {area:.0f} m² > {max_area:.0f} m²")

    if s.reject_self_intersecting and len(loop) >= 4 and not is_simple_ring(loop):
        errors.append("Loop crosses itself")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_import(
    path: Sequence[Coordinate],
    duration_s: float,
    area: float,
    user_level: int,
    settings: Optional[BalanceSettings] = None,
) -> ValidationResult:
    """Imported files get a looser closure tolerance on top of the regular checks."""
    s = settings or get_settings()
    result = validate_run(path, duration_s, area, user_level, s)
    errors = list(result.errors)
    if len(path) < 3 or haversine_m(path[0], path[-1]) > s.import_closure_m:
        errors.insert(0, f"Route does not close: start and end must be within {s.import_closure_m:.0f} m")
    return ValidationResult(is_valid=not errors, errors=errors)
