# path: territory-engine/territory_engine/utils/polygons.py
"""
Polygon boolean operations over lng/lat rings.

Shapely works in the planar lng/lat space; every area that feeds a game
rule is measured afterwards with the spherical-excess formula from
``geo.polygon_area_m2`` so both sides of the claim agree on the numbers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple
import logging

from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from territory_engine.models.territory_models import Coordinate
from territory_engine.utils.geo import ensure_closed, polygon_area_m2

logger = logging.getLogger(__name__)

Ring = Tuple[Coordinate, ...]


@dataclass(frozen=True)
class PolygonShape:
    """A closed shell with optional holes; rings are lat/lng coordinate tuples."""

    shell: Ring
    holes: Tuple[Ring, ...] = field(default_factory=tuple)

    @classmethod
    def from_points(cls, shell: Sequence[Coordinate], holes: Sequence[Sequence[Coordinate]] = ()) -> "PolygonShape":
        return cls(
            shell=tuple(ensure_closed(shell)),
            holes=tuple(tuple(ensure_closed(h)) for h in holes),
        )

    @property
    def area(self) -> float:
        hole_area = sum(polygon_area_m2(h) for h in self.holes)
        return max(0.0, polygon_area_m2(self.shell) - hole_area)

    def to_shapely(self) -> Polygon:
        return Polygon(
            [(p.lng, p.lat) for p in self.shell],
            [[(p.lng, p.lat) for p in h] for h in self.holes],
        )


class DifferenceStatus(str, Enum):
    OK = "ok"
    REPAIRED = "repaired"  # succeeded after zero-buffer repair
    BELOW_MINIMUM = "below_minimum"  # remainder smaller than the livable minimum
    FAILED = "failed"


@dataclass(frozen=True)
class DifferenceResult:
    status: DifferenceStatus
    shape: Optional[PolygonShape] = None
    area: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (DifferenceStatus.OK, DifferenceStatus.REPAIRED)


def _ring_from_coords(coords) -> Ring:
    return tuple(ensure_closed([Coordinate(lat=float(lat), lng=float(lng)) for lng, lat in coords]))


def from_shapely(geom: BaseGeometry) -> Optional[PolygonShape]:
    """
    Convert a shapely result back to a single shape.

    A MultiPolygon keeps its largest piece by spherical area; anything that is
    not areal (empty, lines, points) yields None.
    """
    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, Polygon):
        shape = PolygonShape(
            shell=_ring_from_coords(geom.exterior.coords),
            holes=tuple(_ring_from_coords(r.coords) for r in geom.interiors),
        )
        return shape if len(shape.shell) >= 4 else None
    if isinstance(geom, MultiPolygon) or hasattr(geom, "geoms"):
        pieces = [from_shapely(g) for g in geom.geoms if isinstance(g, (Polygon, MultiPolygon))]
        pieces = [p for p in pieces if p is not None]
        if not pieces:
            return None
        return max(pieces, key=lambda p: p.area)
    return None


def _repair(geom: BaseGeometry) -> BaseGeometry:
    return geom if geom.is_valid else geom.buffer(0)


def overlap_area_m2(a: PolygonShape, b: PolygonShape) -> float:
    """Spherical area of the intersection of two shapes; 0 when disjoint or degenerate."""
    try:
        ga, gb = _repair(a.to_shapely()), _repair(b.to_shapely())
        if not ga.intersects(gb):
            return 0.0
        inter = ga.intersection(gb)
    except (GEOSException, ValueError) as exc:
        logger.warning("Intersection failed: %s", exc)
        return 0.0
    parts = [inter] if isinstance(inter, Polygon) else getattr(inter, "geoms", [])
    total = 0.0
    for g in parts:
        if isinstance(g, Polygon):
            piece = from_shapely(g)
            if piece is not None:
                total += piece.area
    return total


def covers(cover: PolygonShape, target: PolygonShape) -> bool:
    try:
        return bool(_repair(cover.to_shapely()).covers(_repair(target.to_shapely())))
    except (GEOSException, ValueError) as exc:
        logger.warning("Cover test failed: %s", exc)
        return False


def is_simple_ring(points: Sequence[Coordinate]) -> bool:
    """False when the ring crosses itself."""
    if len(points) < 4:
        return False
    try:
        return bool(Polygon([(p.lng, p.lat) for p in points]).is_valid)
    except (GEOSException, ValueError):
        return False


def union_shapes(owner: PolygonShape, new_loop: Sequence[Coordinate]) -> PolygonShape:
    """
    Merge a newly claimed loop into an owner's holding.

    Falls back to ``owner`` unchanged when the two do not unify into a single
    polygon (non-adjacent inputs, invalid rings, GEOS errors).
    """
    try:
        merged = _repair(owner.to_shapely()).union(_repair(PolygonShape.from_points(new_loop).to_shapely()))
    except (GEOSException, ValueError) as exc:
        logger.warning("Union failed, keeping original polygon: %s", exc)
        return owner
    if not isinstance(merged, Polygon) or merged.is_empty:
        logger.warning("Union produced %s, keeping original polygon", merged.geom_type)
        return owner
    result = from_shapely(merged)
    if result is None:
        logger.warning("Union produced a degenerate ring, keeping original polygon")
        return owner
    return result


def difference_shapes(base: PolygonShape, cut: PolygonShape, minimum_area: float) -> DifferenceResult:
    """
    ``base - cut`` as a two-stage operation.

    Stage one runs the boolean op on the inputs as given; stage two retries
    with both inputs zero-buffered to repair self-intersections. The result
    is BELOW_MINIMUM when the operation succeeds but leaves less than
    ``minimum_area`` m², FAILED when neither stage produces a geometry.
    """
    status = DifferenceStatus.OK
    try:
        diff = base.to_shapely().difference(cut.to_shapely())
    except (GEOSException, ValueError) as exc:
        logger.warning("Direct difference failed, retrying with buffer(0): %s", exc)
        diff = None

    if diff is None:
        status = DifferenceStatus.REPAIRED
        try:
            diff = base.to_shapely().buffer(0).difference(cut.to_shapely().buffer(0))
        except (GEOSException, ValueError) as exc:
            logger.warning("Repaired difference failed: %s", exc)
            return DifferenceResult(status=DifferenceStatus.FAILED)

    if diff.is_empty:
        return DifferenceResult(status=DifferenceStatus.BELOW_MINIMUM)

    remainder = from_shapely(diff)
    if remainder is None:
        return DifferenceResult(status=DifferenceStatus.FAILED)

    area = remainder.area
    if area < minimum_area:
        return DifferenceResult(status=DifferenceStatus.BELOW_MINIMUM, area=area)
    return DifferenceResult(status=status, shape=remainder, area=area)


def safe_difference(base: PolygonShape, cut: PolygonShape, minimum_area: float) -> Optional[PolygonShape]:
    """Remainder of ``base - cut``, or None when the op fails or leaves too little land."""
    result = difference_shapes(base, cut, minimum_area)
    return result.shape if result.ok else None
