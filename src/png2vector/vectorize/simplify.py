"""
Contour simplification using the Ramer-Douglas-Peucker algorithm.

Each ring is treated as an open path with fixed endpoints, so the closing
segment is never collapsed.
"""

import numpy as np

from png2vector.models import Contour
from png2vector.tracer import get_tracer, trace


def rdp_simplify(points, epsilon):
    """
    Ramer-Douglas-Peucker simplification of an open path.

    Args:
        points: list of [x, y] points
        epsilon: maximum allowed distance from the simplified path

    Returns:
        simplified list of points, first and last point always kept
    """
    if len(points) <= 2:
        return list(points)

    points_arr = np.asarray(points, dtype=np.float64)
    keep = np.zeros(len(points), dtype=bool)
    keep[0] = keep[-1] = True

    # Explicit stack; rings from large blobs overflow recursion
    stack = [(0, len(points) - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        distances = _segment_distances(points_arr[first + 1:last], points_arr[first], points_arr[last])
        offset = int(np.argmax(distances))

        if distances[offset] > epsilon:
            index = first + 1 + offset
            keep[index] = True
            stack.append((first, index))
            stack.append((index, last))

    return [points[i] for i in np.flatnonzero(keep)]


def _segment_distances(points, start, end):
    """
    Distance from each point to the segment start-end.

    Projections are clamped to the segment, so points beyond either end
    measure to the nearer endpoint.
    """
    seg = end - start
    seg_len_sq = float(np.dot(seg, seg))

    if seg_len_sq == 0:
        return np.linalg.norm(points - start, axis=1)

    t = np.clip((points - start) @ seg / seg_len_sq, 0.0, 1.0)
    nearest = start + np.outer(t, seg)
    return np.linalg.norm(points - nearest, axis=1)


def count_points(contours):
    """Total vertices over exteriors and holes."""
    return sum(len(c.points) + sum(len(h) for h in c.holes) for c in contours)


@trace(label="simplify_contours")
def simplify_contours(contours, epsilon):
    """
    Simplify every exterior and hole ring independently.

    Returns new Contour objects; the input list is left untouched.
    """
    tracer = get_tracer()

    simplified = [
        Contour(
            points=rdp_simplify(contour.points, epsilon),
            holes=[rdp_simplify(hole, epsilon) for hole in contour.holes],
            is_hole=contour.is_hole,
            parent=contour.parent,
        )
        for contour in contours
    ]

    before = count_points(contours)
    after = count_points(simplified)
    reduction = 1 - (after / before) if before > 0 else 0
    tracer.event(f"Simplified: {before} -> {after} points ({reduction:.1%} reduction)")

    return simplified
