"""Shared fixtures and trace builders for the territory engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from territory_engine.config import BalanceSettings
from territory_engine.models.territory_models import ClaimCandidate, Coordinate, PolygonMetrics, Territory
from territory_engine.services.contest_resolver import ContestResolver
from territory_engine.services.territory_store import InMemoryTerritoryStore
from territory_engine.utils.geo import path_distance_m, perimeter_m, polygon_area_m2

# Metres per degree along the equator for R = 6,371 km
M_PER_DEG = 111_194.93

NOW = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)


def rect(lat0: float, lng0: float, lat1: float, lng1: float) -> List[Coordinate]:
    """Closed rectangle traced counter-clockwise from (lat0, lng0)."""
    return [
        Coordinate(lat=lat0, lng=lng0),
        Coordinate(lat=lat0, lng=lng1),
        Coordinate(lat=lat1, lng=lng1),
        Coordinate(lat=lat1, lng=lng0),
        Coordinate(lat=lat0, lng=lng0),
    ]


def timed(points: List[Coordinate], start_ms: int, step_ms: int) -> List[Coordinate]:
    return [
        Coordinate(lat=p.lat, lng=p.lng, timestamp=start_ms + i * step_ms)
        for i, p in enumerate(points)
    ]


def densify(points: List[Coordinate], per_edge: int) -> List[Coordinate]:
    """Insert evenly spaced vertices along every edge."""
    out = []
    for a, b in zip(points, points[1:]):
        for k in range(per_edge):
            f = k / per_edge
            out.append(Coordinate(lat=a.lat + f * (b.lat - a.lat), lng=a.lng + f * (b.lng - a.lng)))
    out.append(points[-1])
    return out


def duration_for_pace(distance_m: float, pace_min_per_km: float) -> float:
    return pace_min_per_km * 60 * distance_m / 1000


def candidate(loop: List[Coordinate], pace: float) -> ClaimCandidate:
    return ClaimCandidate(
        loop=tuple(loop),
        metrics=PolygonMetrics(
            area=polygon_area_m2(loop),
            perimeter=perimeter_m(loop),
            avg_pace=pace,
            distance=path_distance_m(loop),
        ),
    )


def seed_territory(
    store: InMemoryTerritoryStore,
    owner_id: str,
    loop: List[Coordinate],
    pace: float,
    territory_id: str = "t-1",
    protected_until: Optional[datetime] = None,
    cooldown_until: Optional[datetime] = None,
    shield_active: bool = False,
    conquest_points: int = 100,
) -> Territory:
    return store.insert(
        Territory(
            id=territory_id,
            owner_id=owner_id,
            polygon=loop,
            area=polygon_area_m2(loop),
            perimeter=perimeter_m(loop),
            avg_pace=pace,
            protected_until=protected_until,
            cooldown_until=cooldown_until,
            shield_active=shield_active,
            conquest_points=conquest_points,
        )
    )


@pytest.fixture
def settings() -> BalanceSettings:
    return BalanceSettings()


@pytest.fixture
def store() -> InMemoryTerritoryStore:
    return InMemoryTerritoryStore()


@pytest.fixture
def resolver(store, settings) -> ContestResolver:
    return ContestResolver(store, settings, clock=lambda: NOW)
