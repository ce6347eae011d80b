"""
Geometry validation and cleanup for png2vector.

Brings simplified contours into CAD-safe shape: closed rings, no repeated
vertices, counter-clockwise exteriors with clockwise holes, no
self-intersections, no tiny artifacts, coordinates on a fixed grid.

Winding uses the signed area sum((x1 - x0) * (y1 + y0)) / 2 over
consecutive points of a closed ring: negative is counter-clockwise, positive
is clockwise.
"""

from png2vector.exceptions import DegeneratePolygonError, GeometryError, RepairError
from png2vector.models import Polygon
from png2vector.tracer import get_tracer, trace

TOLERANCE = 0.001


def ensure_closed_ring(points, tolerance=TOLERANCE):
    """Append the first point if the ring is open. Rings under 3 points are returned as-is."""
    if len(points) < 3:
        return list(points)

    first = points[0]
    last = points[-1]
    if abs(first[0] - last[0]) < tolerance and abs(first[1] - last[1]) < tolerance:
        return list(points)

    return list(points) + [[first[0], first[1]]]


def remove_duplicate_points(points, tolerance=TOLERANCE):
    """Drop points closer than tolerance to the previously kept point."""
    if len(points) <= 1:
        return list(points)

    cleaned = [points[0]]
    for point in points[1:]:
        previous = cleaned[-1]
        dx = point[0] - previous[0]
        dy = point[1] - previous[1]
        if (dx * dx + dy * dy) ** 0.5 >= tolerance:
            cleaned.append(point)

    return cleaned


def signed_area(points):
    """Signed area; positive for clockwise rings, negative for counter-clockwise."""
    if len(points) < 3:
        return 0.0

    area = 0.0
    for current, nxt in zip(points[:-1], points[1:]):
        area += (nxt[0] - current[0]) * (nxt[1] + current[1])

    return area / 2


def polygon_area(points):
    return abs(signed_area(points))


def ensure_counter_clockwise(points):
    if len(points) >= 3 and signed_area(points) > 0:
        return list(reversed(points))
    return list(points)


def ensure_clockwise(points):
    if len(points) >= 3 and signed_area(points) < 0:
        return list(reversed(points))
    return list(points)


def _distinct_vertex_count(ring):
    if len(ring) > 1 and ring[0] == ring[-1]:
        return len(ring) - 1
    return len(ring)


def _normalize(polygon, tolerance):
    """
    Close, de-duplicate and orient the rings of one polygon.

    Raises DegeneratePolygonError if the exterior has fewer than 3 distinct
    vertices. Zero net area is left to the repairer.
    """
    if len(polygon.exterior) < 3:
        raise DegeneratePolygonError(f"Exterior has {len(polygon.exterior)} points")

    exterior = remove_duplicate_points(ensure_closed_ring(polygon.exterior, tolerance), tolerance)
    holes = [remove_duplicate_points(ensure_closed_ring(hole, tolerance), tolerance) for hole in polygon.holes]

    if _distinct_vertex_count(exterior) < 3:
        raise DegeneratePolygonError(f"Exterior collapsed to {len(exterior)} points")

    return Polygon(
        exterior=ensure_counter_clockwise(exterior),
        holes=[ensure_clockwise(hole) for hole in holes if len(hole) >= 3],
    )


@trace(label="validate_geometry")
def validate_geometry(polygons, repairer=None, tolerance=TOLERANCE):
    """
    Validate and repair a polygon set.

    Degenerate polygons are dropped. When the repairer fails, the
    unrepaired polygon is kept and a warning is logged.

    Args:
        polygons: list of Polygon
        repairer: PolygonRepairer, defaults to ShapelyRepairer
        tolerance: closure and duplicate-point tolerance

    Returns:
        list of validated Polygon
    """
    tracer = get_tracer()

    if repairer is None:
        from png2vector.geometry.repair import ShapelyRepairer
        repairer = ShapelyRepairer()

    valid = []
    for index, polygon in enumerate(polygons):
        try:
            normalized = _normalize(polygon, tolerance)
        except GeometryError as e:
            tracer.event(f"Dropped polygon {index}: {e.message}", level="DEBUG")
            continue

        try:
            repaired = repairer.repair(normalized)
        except Exception as e:
            reason = e.message if isinstance(e, RepairError) else str(e)
            tracer.warn(f"Repair failed for polygon {index}, keeping unrepaired: {reason}")
            repaired = normalized

        if repaired is None:
            tracer.event(f"Dropped polygon {index}: nothing left after repair", level="DEBUG")
            continue

        valid.append(repaired)

    tracer.event(f"Validated {len(valid)}/{len(polygons)} polygons")
    return valid


def snap_to_grid(points, grid_size=TOLERANCE):
    """Round every coordinate to the nearest multiple of grid_size."""
    return [[_snap(p[0], grid_size), _snap(p[1], grid_size)] for p in points]


def _snap(value, grid_size):
    snapped = round(round(value / grid_size) * grid_size, 10)
    return snapped + 0.0  # -0.0 -> 0.0


@trace(label="cleanup_geometry")
def cleanup_geometry(polygons, min_area, grid_size=TOLERANCE, hole_area_ratio=0.1):
    """
    Remove small artifacts and snap coordinates.

    Polygons with exterior area below min_area are dropped, holes below
    min_area * hole_area_ratio are dropped, then every ring is snapped to
    grid_size. Polygons left with under 3 exterior points are dropped.
    """
    tracer = get_tracer()

    cleaned = []
    holes_removed = 0
    for polygon in polygons:
        if polygon_area(polygon.exterior) < min_area:
            continue

        kept_holes = [hole for hole in polygon.holes if polygon_area(hole) >= min_area * hole_area_ratio]
        holes_removed += len(polygon.holes) - len(kept_holes)

        exterior = snap_to_grid(polygon.exterior, grid_size)
        if len(exterior) < 3:
            continue

        cleaned.append(Polygon(
            exterior=exterior,
            holes=[snap_to_grid(hole, grid_size) for hole in kept_holes],
        ))

    tracer.event(f"Cleanup kept {len(cleaned)}/{len(polygons)} polygons, removed {holes_removed} holes")
    return cleaned


def _orientation(p, q, r):
    """0 if collinear, 1 if clockwise, 2 if counter-clockwise."""
    value = (q[1] - p[1]) * (r[0] - q[0]) - (q[0] - p[0]) * (r[1] - q[1])
    if abs(value) < 1e-12:
        return 0
    return 1 if value > 0 else 2


def _on_segment(p, q, r):
    """True if q lies on segment p-r, given the three are collinear."""
    return (min(p[0], r[0]) <= q[0] <= max(p[0], r[0])
            and min(p[1], r[1]) <= q[1] <= max(p[1], r[1]))


def segments_intersect(p1, p2, p3, p4):
    """True if segment p1-p2 touches or crosses segment p3-p4."""
    o1 = _orientation(p1, p2, p3)
    o2 = _orientation(p1, p2, p4)
    o3 = _orientation(p3, p4, p1)
    o4 = _orientation(p3, p4, p2)

    if o1 != o2 and o3 != o4:
        return True

    # Collinear overlaps
    if o1 == 0 and _on_segment(p1, p3, p2):
        return True
    if o2 == 0 and _on_segment(p1, p4, p2):
        return True
    if o3 == 0 and _on_segment(p3, p1, p4):
        return True
    if o4 == 0 and _on_segment(p3, p2, p4):
        return True

    return False


def has_self_intersections(points):
    """
    Test a closed ring for crossings between non-adjacent edges.

    O(n^2); intended for validation reports, not the hot path.
    """
    segments = len(points) - 1
    if segments < 4:
        return False

    for i in range(segments):
        for j in range(i + 2, segments):
            if i == 0 and j == segments - 1:
                continue  # first and last edge share the closing vertex
            if segments_intersect(points[i], points[i + 1], points[j], points[j + 1]):
                return True

    return False


def is_valid_polygon(polygon):
    """Check ring sizes, positive exterior area and a simple exterior."""
    if len(polygon.exterior) < 3:
        return False

    if any(len(hole) < 3 for hole in polygon.holes):
        return False

    if polygon_area(polygon.exterior) <= 0:
        return False

    return not has_self_intersections(polygon.exterior)
