"""Scalar geometry: distances, closure, area, perimeter, pace."""

import pytest

from territory_engine.models.territory_models import Coordinate
from territory_engine.utils.geo import (
    average_pace,
    bbox_wgs84,
    ensure_closed,
    haversine_m,
    is_closed,
    path_distance_m,
    perimeter_m,
    polygon_area_m2,
    segment_speeds_mps,
)

from conftest import rect

SQUARE = [
    Coordinate(lat=0, lng=0),
    Coordinate(lat=0, lng=0.001),
    Coordinate(lat=0.001, lng=0.001),
    Coordinate(lat=0.001, lng=0),
]


def test_haversine_small_delta_at_equator():
    assert haversine_m(Coordinate(lat=0, lng=0), Coordinate(lat=0, lng=0.001)) == pytest.approx(111.19, abs=1)


def test_haversine_is_symmetric_and_zero_on_same_point():
    a = Coordinate(lat=40.4168, lng=-3.7038)
    b = Coordinate(lat=40.4200, lng=-3.6900)
    assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))
    assert haversine_m(a, a) == 0


@pytest.mark.parametrize("offset_deg,threshold,expected", [
    (0.0, 50, True),
    (0.0004, 50, True),     # ~44 m
    (0.0005, 50, False),    # ~56 m
    (0.0008, 100, True),    # ~89 m
    (0.0002, 30, True),     # ~22 m
    (0.0003, 30, False),    # ~33 m
])
def test_is_closed_matches_endpoint_distance(offset_deg, threshold, expected):
    loop = SQUARE + [Coordinate(lat=0, lng=offset_deg)]
    assert is_closed(loop, threshold) is expected
    assert is_closed(loop, threshold) == (haversine_m(loop[0], loop[-1]) <= threshold)


def test_is_closed_needs_three_points():
    assert not is_closed(SQUARE[:2], 1000)


def test_open_square_is_not_closed():
    assert not is_closed(SQUARE, 50)
    assert is_closed(SQUARE + [SQUARE[0]], 50)


def test_unit_square_area_and_perimeter():
    closed = SQUARE + [SQUARE[0]]
    assert polygon_area_m2(closed) == pytest.approx(12_300, abs=500)
    assert perimeter_m(closed) == pytest.approx(444, abs=5)


def test_area_ignores_winding_direction():
    closed = SQUARE + [SQUARE[0]]
    assert polygon_area_m2(closed) == pytest.approx(polygon_area_m2(list(reversed(closed))))


def test_area_of_degenerate_ring_is_zero():
    assert polygon_area_m2(SQUARE[:2]) == 0


def test_perimeter_wraps_open_ring():
    assert perimeter_m(SQUARE) == pytest.approx(perimeter_m(SQUARE + [SQUARE[0]]))


def test_path_distance_sums_segments():
    assert path_distance_m(rect(0, 0, 0.001, 0.001)) == pytest.approx(4 * 111.19, abs=2)
    assert path_distance_m([SQUARE[0]]) == 0


def test_average_pace():
    assert average_pace(5000, 1500) == pytest.approx(5.0)
    assert average_pace(0, 600) == 0


def test_ensure_closed_appends_first_vertex_only_when_needed():
    closed = ensure_closed(SQUARE)
    assert len(closed) == 5
    assert (closed[-1].lat, closed[-1].lng) == (SQUARE[0].lat, SQUARE[0].lng)
    assert ensure_closed(closed) == closed


def test_segment_speeds_skip_untimed_pairs():
    pts = [
        Coordinate(lat=0, lng=0, timestamp=0),
        Coordinate(lat=0, lng=0.001, timestamp=10_000),
        Coordinate(lat=0, lng=0.002),
        Coordinate(lat=0, lng=0.003, timestamp=40_000),
    ]
    speeds = segment_speeds_mps(pts)
    assert len(speeds) == 1
    assert speeds[0] == pytest.approx(11.12, abs=0.1)


def test_bbox():
    box = bbox_wgs84(rect(1.0, 2.0, 1.5, 2.5))
    assert box == {"min_lat": 1.0, "min_lng": 2.0, "max_lat": 1.5, "max_lng": 2.5}
