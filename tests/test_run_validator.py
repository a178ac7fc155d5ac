"""Run plausibility checks."""

from territory_engine.config import BalanceSettings
from territory_engine.models.territory_models import Coordinate
from territory_engine.services.run_validator import validate_import, validate_run
from territory_engine.utils.geo import polygon_area_m2

from conftest import densify, rect, timed

# 222 m square walked at ~3 m/s
LOOP = timed(densify(rect(0, 0, 0.002, 0.002), 4), start_ms=0, step_ms=18_500)
AREA = polygon_area_m2(LOOP)


def test_plausible_run_is_valid(settings):
    result = validate_run(LOOP, 300, AREA, 1, settings)
    assert result.is_valid, result.errors
    assert result.errors == []


def test_every_broken_rule_is_reported(settings):
    tiny = rect(0, 0, 0.0003, 0.0003)
    result = validate_run(tiny[:3], 10, polygon_area_m2(tiny), 1, settings)
    assert not result.is_valid
    joined = " | ".join(result.errors)
    assert "at least 4 points" in joined
    assert "too short" in joined
    assert "too small" in joined
    assert len(result.errors) >= 3


def test_zero_duration_is_rejected(settings):
    result = validate_run(LOOP, 0, AREA, 1, settings)
    assert "Duration must be greater than zero" in result.errors


def test_speed_ceiling(settings):
    fast = timed(densify(rect(0, 0, 0.002, 0.002), 4), start_ms=0, step_ms=3_000)  # ~18.5 m/s
    result = validate_run(fast, 300, AREA, 1, settings)
    assert any("Speed too high" in e for e in result.errors)


def test_average_speed_used_without_timestamps(settings):
    untimed = densify(rect(0, 0, 0.002, 0.002), 4)
    result = validate_run(untimed, 61, AREA, 1, settings)  # 890 m in 61 s
    assert any("Average speed too high" in e for e in result.errors)


def test_gps_jump_is_detected(settings):
    pts = [
        Coordinate(lat=0, lng=0, timestamp=0),
        Coordinate(lat=0, lng=0.0003, timestamp=10_000),    # ~3.3 m/s
        Coordinate(lat=0, lng=0.0033, timestamp=30_000),    # ~16.7 m/s
        Coordinate(lat=0.002, lng=0.0033, timestamp=120_000),
        Coordinate(lat=0, lng=0, timestamp=220_000),
    ]
    result = validate_run(pts, 220, 70_000, 1, settings)
    assert any("GPS jump" in e for e in result.errors)


def test_area_cap_is_flat_for_every_level(settings):
    for level in (1, 50, 99):
        result = validate_run(LOOP, 300, 6_000_000, level, settings)
        assert any("too large" in e for e in result.errors)
        assert validate_run(LOOP, 300, 4_999_999, level, settings).is_valid


def test_self_intersection_only_rejected_when_enabled():
    bowtie = timed([
        Coordinate(lat=0, lng=0),
        Coordinate(lat=0.002, lng=0.002),
        Coordinate(lat=0, lng=0.002),
        Coordinate(lat=0.002, lng=0),
        Coordinate(lat=0, lng=0),
    ], start_ms=0, step_ms=100_000)
    assert validate_run(bowtie, 400, 20_000, 1, BalanceSettings()).is_valid
    strict = validate_run(bowtie, 400, 20_000, 1, BalanceSettings(reject_self_intersecting=True))
    assert "Loop crosses itself" in strict.errors


def test_import_requires_closure_within_100m(settings):
    closed = validate_import(LOOP, 300, AREA, 1, settings)
    assert closed.is_valid

    # Ends ~89 m from the start: fine for an import
    near = LOOP[:-1] + [Coordinate(lat=0.0008, lng=0, timestamp=LOOP[-1].timestamp)]
    assert validate_import(near, 300, AREA, 1, settings).is_valid

    far = LOOP[:-2]
    result = validate_import(far, 300, AREA, 1, settings)
    assert not result.is_valid
    assert "does not close" in result.errors[0]
