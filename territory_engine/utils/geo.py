# path: territory-engine/territory_engine/utils/geo.py

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence
import math

from territory_engine.models.territory_models import Coordinate


EARTH_RADIUS_M = 6371000.0


def bbox_wgs84(points: Iterable[Coordinate]) -> Dict[str, float]:
    pts = list(points)
    lngs = [p.lng for p in pts]
    lats = [p.lat for p in pts]
    return {
        "min_lat": min(lats),
        "min_lng": min(lngs),
        "max_lat": max(lats),
        "max_lng": max(lngs),
    }


def bboxes_intersect(a: Dict[str, float], b: Dict[str, float]) -> bool:
    return not (
        a["max_lat"] < b["min_lat"]
        or b["max_lat"] < a["min_lat"]
        or a["max_lng"] < b["min_lng"]
        or b["max_lng"] < a["min_lng"]
    )


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlmb = math.radians(b.lng - a.lng)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(s), math.sqrt(1 - s))


def path_distance_m(points: Sequence[Coordinate]) -> float:
    total = 0.0
    for i in range(1, len(points)):
        total += haversine_m(points[i - 1], points[i])
    return total


def is_closed(points: Sequence[Coordinate], threshold_m: float) -> bool:
    if len(points) < 3:
        return False
    return haversine_m(points[0], points[-1]) <= threshold_m


def ensure_closed(points: Sequence[Coordinate]) -> List[Coordinate]:
    """Return a copy whose last vertex repeats the first one."""
    out = list(points)
    if not out:
        return out
    first, last = out[0], out[-1]
    if (first.lat, first.lng) != (last.lat, last.lng):
        out.append(Coordinate(lat=first.lat, lng=first.lng))
    return out


def polygon_area_m2(points: Sequence[Coordinate]) -> float:
    """
    Spherical-excess area of a ring, in m².

    Approximation meant for city-block scale polygons; it does not correct
    self-intersections and is not geodesically exact for large rings.
    """
    n = len(points)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        j = (i + 1) % n
        lat1 = math.radians(points[i].lat)
        lat2 = math.radians(points[j].lat)
        lng1 = math.radians(points[i].lng)
        lng2 = math.radians(points[j].lng)
        total += (lng2 - lng1) * (2 + math.sin(lat1) + math.sin(lat2))
    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def perimeter_m(points: Sequence[Coordinate]) -> float:
    n = len(points)
    if n < 2:
        return 0.0
    total = 0.0
    for i in range(n):
        total += haversine_m(points[i], points[(i + 1) % n])
    return total


def average_pace(distance_m: float, duration_s: float) -> float:
    # minutes per km
    if distance_m == 0:
        return 0.0
    return (duration_s / 60) / (distance_m / 1000)


def segment_speeds_mps(points: Sequence[Coordinate]) -> List[float]:
    """Speed of each consecutive pair that carries timestamps; pairs without time are skipped."""
    speeds = []
    for i in range(1, len(points)):
        a, b = points[i - 1], points[i]
        if a.timestamp is None or b.timestamp is None:
            continue
        dt = (b.timestamp - a.timestamp) / 1000.0
        if dt <= 0:
            continue
        speeds.append(haversine_m(a, b) / dt)
    return speeds
