# path: territory-engine/territory_engine/services/gps_filter.py

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging

from territory_engine.config import BalanceSettings, get_settings
from territory_engine.models.territory_models import Coordinate
from territory_engine.utils.geo import haversine_m

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    recorded: bool
    distance: float
    total_distance: float
    reason: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    record: bool
    distance: float
    speed: float
    reason: Optional[str] = None


class AdaptiveGpsFilter:
    """
    Stateful sample filter for a live run.

    Each location callback is fed through ``record_point``; rejected samples
    are dropped silently (debug log only). The minimum interval between kept
    samples adapts to the current speed: slow movement stretches it, fast
    movement shortens it down to a floor.
    """

    def __init__(self, settings: Optional[BalanceSettings] = None):
        self.settings = settings or get_settings()
        self.reset()

    def reset(self) -> None:
        self._last_point: Optional[Coordinate] = None
        self._last_timestamp = 0
        self._last_speed = 0.0
        self._points: List[Coordinate] = []
        self._total_distance = 0.0

    @property
    def points(self) -> List[Coordinate]:
        return list(self._points)

    @property
    def total_distance(self) -> float:
        return self._total_distance

    def adaptive_interval_ms(self, speed: float) -> float:
        s = self.settings
        if speed < s.gps_adaptive_speed_mps:
            return s.gps_min_interval_ms * 2
        if speed > s.gps_adaptive_speed_mps * 3:
            return max(s.gps_min_interval_floor_ms, s.gps_min_interval_ms / 2)
        return s.gps_min_interval_ms

    def should_record_point(self, point: Coordinate, accuracy: Optional[float], timestamp: int) -> Decision:
        s = self.settings

        if accuracy is not None and accuracy > s.gps_max_accuracy_m:
            return Decision(False, 0.0, 0.0, f"low accuracy: {accuracy:.0f}m > {s.gps_max_accuracy_m:.0f}m")

        if self._last_point is None:
            return Decision(True, 0.0, 0.0)

        elapsed_ms = timestamp - self._last_timestamp
        distance = haversine_m(self._last_point, point)
        speed = distance / (elapsed_ms / 1000) if elapsed_ms > 0 else 0.0

        min_interval = self.adaptive_interval_ms(speed)
        if elapsed_ms < min_interval:
            return Decision(False, distance, speed, f"too soon: {elapsed_ms}ms < {min_interval:.0f}ms")

        if distance < s.gps_min_distance_m:
            return Decision(False, distance, speed, f"too close: {distance:.1f}m < {s.gps_min_distance_m:.0f}m")

        if speed > s.gps_jump_speed_mps and self._last_speed < s.gps_jump_previous_speed_mps:
            return Decision(False, distance, speed, f"anomalous jump: {speed * 3.6:.1f} km/h")

        return Decision(True, distance, speed)

    def record_point(self, point: Coordinate, accuracy: Optional[float], timestamp: int) -> RecordResult:
        decision = self.should_record_point(point, accuracy, timestamp)
        if not decision.record:
            logger.debug("GPS sample dropped: %s", decision.reason)
            return RecordResult(False, 0.0, self._total_distance, decision.reason)

        self._last_point = point
        self._last_timestamp = timestamp
        self._last_speed = decision.speed
        self._points.append(point)
        self._total_distance += decision.distance

        logger.debug("GPS sample kept: +%.1fm at %.1f km/h", decision.distance, decision.speed * 3.6)
        return RecordResult(True, decision.distance, self._total_distance)

    def stats(self) -> dict:
        return {
            "points_count": len(self._points),
            "total_distance": self._total_distance,
            "last_speed": self._last_speed,
            "last_point": self._last_point,
        }

    def smoothed_path(self, window: int = 3) -> List[Coordinate]:
        return cap_points(smooth_path(self._points, window), self.settings.max_path_points)


def smooth_path(points: Sequence[Coordinate], window: int = 3) -> List[Coordinate]:
    """Centered moving average over lat/lng; endpoints stay where they are."""
    n = len(points)
    if window < 2 or n <= 2:
        return list(points)
    half = window // 2
    out = [points[0]]
    for i in range(1, n - 1):
        lo, hi = max(0, i - half), min(n, i + half + 1)
        chunk = points[lo:hi]
        out.append(
            Coordinate(
                lat=sum(p.lat for p in chunk) / len(chunk),
                lng=sum(p.lng for p in chunk) / len(chunk),
                accuracy=points[i].accuracy,
                timestamp=points[i].timestamp,
            )
        )
    out.append(points[-1])
    return out


def cap_points(points: Sequence[Coordinate], max_points: int) -> List[Coordinate]:
    """Evenly downsample to at most ``max_points`` vertices, keeping first and last."""
    n = len(points)
    if n <= max_points:
        return list(points)
    if max_points < 2:
        raise ValueError("max_points must be >= 2")
    step = (n - 1) / (max_points - 1)
    return [points[round(i * step)] for i in range(max_points)]
