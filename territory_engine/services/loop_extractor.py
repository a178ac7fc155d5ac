# path: territory-engine/territory_engine/services/loop_extractor.py

from __future__ import annotations

from typing import List, Optional, Sequence

from territory_engine.config import get_settings
from territory_engine.models.territory_models import ClosedLoop, Coordinate
from territory_engine.utils.geo import haversine_m


def extract_loops(trace: Sequence[Coordinate], threshold_m: Optional[float] = None) -> List[ClosedLoop]:
    """
    Split a trace into the earliest-closing, non-overlapping loops.

    For each start index i the scan looks for the first j > i + 2 whose point
    lies within ``threshold_m`` of trace[i]; the loop trace[i..j] is emitted
    with trace[i] repeated at the end and the scan resumes after j. Whatever
    trails the last closed loop is dropped.

    Quadratic in the worst case, bounded by the path point cap.
    """
    if threshold_m is None:
        threshold_m = get_settings().loop_closure_m

    loops: List[ClosedLoop] = []
    n = len(trace)
    i = 0
    while i < n - 3:
        closing = None
        for j in range(i + 3, n):
            if haversine_m(trace[i], trace[j]) <= threshold_m:
                closing = j
                break
        if closing is None:
            i += 1
            continue
        start = trace[i]
        loops.append(tuple(trace[i:closing + 1]) + (Coordinate(lat=start.lat, lng=start.lng),))
        i = closing + 1
    return loops
