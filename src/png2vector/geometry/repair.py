"""
Self-intersection repair for png2vector polygons.

Repair is a pluggable capability: the validator only depends on the
PolygonRepairer interface, and ShapelyRepairer is the default backend.
"""

from abc import ABC, abstractmethod

from shapely.geometry import GeometryCollection, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient
from shapely.validation import explain_validity, make_valid

from png2vector.exceptions import RepairError
from png2vector.models import Polygon
from png2vector.tracer import get_tracer


class PolygonRepairer(ABC):
    """Abstract interface for polygon repair backends."""

    @abstractmethod
    def repair(self, polygon):
        """
        Remove self-intersections from a polygon.

        Args:
            polygon: Polygon with closed, oriented rings

        Returns:
            repaired Polygon, or None if nothing with area remains

        Raises:
            RepairError if the backend cannot process the polygon
        """
        pass


def _polygon_parts(geometry):
    """Flatten a geometry into its non-empty polygon parts, in order."""
    if isinstance(geometry, ShapelyPolygon):
        return [] if geometry.is_empty else [geometry]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts = []
        for geom in geometry.geoms:
            parts.extend(_polygon_parts(geom))
        return parts
    return []


def _ring_to_points(ring):
    return [[float(x), float(y)] for x, y in ring.coords]


class ShapelyRepairer(PolygonRepairer):
    """
    Repair backend built on shapely's make_valid.

    Valid polygons pass through untouched. For invalid ones the first
    polygon part of the repaired geometry is kept and re-oriented with the
    exterior counter-clockwise and holes clockwise.
    """

    def repair(self, polygon):
        tracer = get_tracer()

        try:
            shape = ShapelyPolygon(polygon.exterior, polygon.holes)
            if shape.is_valid:
                return polygon

            reason = explain_validity(shape)
            parts = _polygon_parts(make_valid(shape))
        except Exception as e:
            raise RepairError(f"Polygon repair failed: {e}") from e

        if not parts:
            tracer.event(f"Repair left no area: {reason}")
            return None

        if len(parts) > 1:
            tracer.event(f"Repair split polygon into {len(parts)} parts, keeping the first: {reason}")

        fixed = orient(parts[0], sign=1.0)
        return Polygon(
            exterior=_ring_to_points(fixed.exterior),
            holes=[_ring_to_points(interior) for interior in fixed.interiors],
        )
