"""Candidate building and run-level bookkeeping of the claim pipeline."""

import pytest

from territory_engine.models.claim_models import ClaimRequest
from territory_engine.models.territory_models import Coordinate
from territory_engine.services.claim_processor import ClaimProcessor
from territory_engine.services.contest_resolver import ContestResolver
from territory_engine.services.errors import TerritoryConflictError
from territory_engine.services.gps_filter import cap_points
from territory_engine.services.rewards import reward_points
from territory_engine.utils.geo import average_pace, haversine_m, path_distance_m

from conftest import densify, rect, timed

HOME = densify(rect(0, 0, 0.002, 0.002), 4)
AWAY = densify(rect(0.004, 0.004, 0.006, 0.006), 4)


class FlakyResolver(ContestResolver):
    """Fails the given calls with a conflict, resolves the rest normally."""

    def __init__(self, store, settings, fail_calls):
        super().__init__(store, settings)
        self.fail_calls = set(fail_calls)
        self.calls = 0

    def resolve(self, *args, **kwargs):
        self.calls += 1
        if self.calls in self.fail_calls:
            raise TerritoryConflictError("t-busy")
        return super().resolve(*args, **kwargs)


def request_for(points, duration, **extra):
    step = int(duration * 1000 / (len(points) - 1))
    return ClaimRequest(path=timed(points, start_ms=0, step_ms=step), duration=duration, **extra)


def test_whole_run_candidate_uses_the_run_distance(store, settings):
    # Stops ~40 m short of the start; the closing edge is not run distance
    path = HOME[:-1] + [Coordinate(lat=0.00036, lng=0)]
    assert 30 < haversine_m(path[0], path[-1]) < 50
    processor = ClaimProcessor(store, settings=settings)
    request = request_for(path, 300)

    [cand], distance, _ = processor.build_candidates(request)

    assert distance == pytest.approx(path_distance_m(path))
    assert cand.metrics.distance == pytest.approx(distance)

    projected = processor.precheck(request, "runner").candidates[0].projected_points
    assert projected == reward_points(distance, cand.metrics.area, False, settings)

    result = processor.process(request, "runner")
    assert result.points_gained == projected
    assert store.player("runner").total_distance == pytest.approx(distance)


def test_sub_loop_distance_leaves_out_the_closing_vertex(store, settings):
    processor = ClaimProcessor(store, settings=settings)
    cands, distance, _ = processor.build_candidates(request_for(HOME + AWAY, 900))

    assert len(cands) == 2
    for c in cands:
        assert c.metrics.distance == pytest.approx(path_distance_m(c.loop[:-1]))
    assert distance == pytest.approx(path_distance_m(HOME + AWAY))


def test_distance_and_pace_are_measured_before_the_point_cap(store, settings):
    # 801 vertices zigzagging along a 445 m square
    base = densify(rect(0, 0, 0.004, 0.004), 200)
    zigzag = [
        Coordinate(lat=p.lat + 0.00005, lng=p.lng + 0.00005) if i % 2 else p
        for i, p in enumerate(base)
    ]
    processor = ClaimProcessor(store, settings=settings)

    [cand], distance, pace = processor.build_candidates(request_for(zigzag, 1200))

    assert distance == pytest.approx(path_distance_m(zigzag))
    assert distance > path_distance_m(cap_points(zigzag, settings.max_path_points))
    assert pace == pytest.approx(average_pace(distance, 1200))
    assert len(cand.loop) <= settings.max_path_points + 1


def test_conflict_on_a_later_loop_keeps_earlier_loops_credited(store, settings):
    processor = ClaimProcessor(store, FlakyResolver(store, settings, fail_calls={2}), settings)

    result = processor.process(request_for(HOME + AWAY, 900), "runner")

    assert result.territories_conquered == 1
    player = store.player("runner")
    assert player.total_points == result.points_gained > 0
    assert player.total_territories == 1
    assert len(store.list_territories()) == 1


def test_conflict_on_the_first_loop_still_resolves_the_rest(store, settings):
    processor = ClaimProcessor(store, FlakyResolver(store, settings, fail_calls={1}), settings)

    result = processor.process(request_for(HOME + AWAY, 900), "runner")

    assert result.territories_conquered == 1
    assert store.player("runner").total_territories == 1


def test_conflict_on_every_loop_is_raised(store, settings):
    processor = ClaimProcessor(store, FlakyResolver(store, settings, fail_calls={1}), settings)

    with pytest.raises(TerritoryConflictError):
        processor.process(request_for(HOME, 300), "runner")

    assert store.list_territories() == []
    assert store.player("runner").total_points == 0
