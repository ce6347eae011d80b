"""
Boundary tracing for png2vector.

Finds the outer boundary of every foreground component with Moore-neighbour
tracing, then seeds a hole trace from each enclosed background pixel that
has at least 6 of its 8 neighbours in the foreground. Each hole ring is
assigned to the first contour that contains its seed.
"""

import cv2
import numpy as np

from png2vector.models import Contour
from png2vector.tracer import get_tracer, trace

# N, NE, E, SE, S, SW, W, NW as (dx, dy)
DIRECTIONS = [(0, -1), (1, -1), (1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1)]

MIN_RING_POINTS = 4


def _is_foreground(mask, x, y):
    height, width = mask.shape
    return 0 <= x < width and 0 <= y < height and bool(mask[y, x])


def _moore_trace(mask, start, direction, max_steps):
    """
    Follow the foreground boundary from start.

    Each step scans the 8 neighbours clockwise beginning at the current
    direction; the first foreground neighbour becomes current and the next
    scan begins two positions counter-clockwise from where it was found.
    Stops on returning to start with at least 3 points, when a pixel has no
    foreground neighbour, or after max_steps.
    """
    x, y = start
    points = [(x, y)]

    for _ in range(max_steps):
        found = None
        for i in range(8):
            d = (direction + i) % 8
            dx, dy = DIRECTIONS[d]
            if _is_foreground(mask, x + dx, y + dy):
                found = d
                break

        if found is None:
            break

        dx, dy = DIRECTIONS[found]
        x, y = x + dx, y + dy
        direction = (found + 6) % 8

        if (x, y) == start and len(points) >= 3:
            break
        points.append((x, y))

    return points


def point_in_polygon(point, ring):
    """
    Ray-casting containment test.

    Edges use the half-open rule so a point on a horizontal vertex row is
    counted once.
    """
    px, py = point[0], point[1]
    inside = False
    n = len(ring)

    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > py) != (yj > py):
            cross_x = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < cross_x:
                inside = not inside
        j = i

    return inside


def _to_ring(pixels):
    return [[float(x), float(y)] for x, y in pixels]


def _background_regions(mask):
    """Label 4-connected background regions and flag those that never reach the border."""
    height, width = mask.shape
    _, labels, stats, _ = cv2.connectedComponentsWithStats((~mask).astype(np.uint8), connectivity=4)

    left = stats[:, cv2.CC_STAT_LEFT]
    top = stats[:, cv2.CC_STAT_TOP]
    right = left + stats[:, cv2.CC_STAT_WIDTH]
    bottom = top + stats[:, cv2.CC_STAT_HEIGHT]
    enclosed = (left > 0) & (top > 0) & (right < width) & (bottom < height)
    enclosed[0] = False  # label 0 is foreground

    return labels, stats, enclosed


def _outer_background(mask, bg_labels, enclosed):
    """Border-reaching background, padded by one out-of-bounds pixel on every side."""
    return np.pad(~mask & ~enclosed[bg_labels], 1, constant_values=True)


def _outer_edge_pixels(mask, outer):
    """Foreground pixels with a 4-neighbour in the outer background."""
    touches = outer[:-2, 1:-1] | outer[2:, 1:-1] | outer[1:-1, :-2] | outer[1:-1, 2:]
    return mask & touches


def _open_side(outer, x, y):
    """Direction of the first of N, E, S, W that is outer background."""
    for d in (0, 2, 4, 6):
        dx, dy = DIRECTIONS[d]
        if outer[y + 1 + dy, x + 1 + dx]:
            return d
    return 0


def _drop_covered(traces):
    """Drop traces whose pixels all lie on another trace of the same component."""
    pixel_sets = [set(t) for t in traces]
    kept = []
    for i, pixels in enumerate(pixel_sets):
        covered = any(
            j != i and pixels <= other and (pixels != other or j < i)
            for j, other in enumerate(pixel_sets)
        )
        if not covered:
            kept.append(traces[i])
    return kept


def _trace_exteriors(mask, bg_labels, enclosed):
    """
    Trace the outer boundary of every 8-connected foreground component.

    A trace through a one-pixel junction can return to its start before
    walking every branch. Outer-edge pixels the first trace missed seed
    further traces in row-major order, and traces covered by a later one
    are dropped. Pixels bordering only enclosed background are never
    seeds; they belong to hole rings.
    """
    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(mask.astype(np.uint8), connectivity=8)
    if num_labels <= 1:
        return []

    outer = _outer_background(mask, bg_labels, enclosed)
    edge = _outer_edge_pixels(mask, outer)

    label_ids, first_index = np.unique(labels.ravel(), return_index=True)
    order = sorted((index, label) for label, index in zip(label_ids, first_index) if label != 0)

    contours = []
    for _, label in order:
        left = stats[label, cv2.CC_STAT_LEFT]
        top = stats[label, cv2.CC_STAT_TOP]
        right = left + stats[label, cv2.CC_STAT_WIDTH]
        bottom = top + stats[label, cv2.CC_STAT_HEIGHT]
        max_steps = 4 * int(stats[label, cv2.CC_STAT_AREA]) + 8

        seeds = edge[top:bottom, left:right] & (labels[top:bottom, left:right] == label)

        traced = set()
        traces = []
        for y, x in zip(*np.nonzero(seeds)):
            start = (int(x + left), int(y + top))
            if start in traced:
                continue
            pixels = _moore_trace(mask, start, _open_side(outer, *start), max_steps)
            traced.update(pixels)
            traces.append(pixels)

        for pixels in _drop_covered(traces):
            if len(pixels) >= MIN_RING_POINTS:
                contours.append(Contour(points=_to_ring(pixels)))

    return contours


def _hole_seeds(mask, bg_labels, stats, enclosed):
    """
    Yield (seed, area) for background pixels mostly surrounded by foreground.

    A seed is an interior background pixel with at least 6 of its 8
    neighbours in the foreground, inside a background region that does not
    reach the border. Each region yields at most one seed, its first
    qualifying pixel in row-major order.
    """
    height, width = mask.shape
    if height < 3 or width < 3:
        return

    fg = mask.astype(np.uint8)
    neighbours = sum(
        fg[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]
        for dx, dy in DIRECTIONS
    )

    inner_labels = bg_labels[1:-1, 1:-1]
    candidates = ~mask[1:-1, 1:-1] & (neighbours >= 6) & enclosed[inner_labels]

    seen = set()
    for y, x in zip(*np.nonzero(candidates)):
        label = int(inner_labels[y, x])
        if label in seen:
            continue
        seen.add(label)
        yield (int(x) + 1, int(y) + 1), int(stats[label, cv2.CC_STAT_AREA])


def _trace_hole(mask, seed, area):
    """Trace the foreground ring around seed, starting at its first foreground neighbour."""
    sx, sy = seed
    for d, (dx, dy) in enumerate(DIRECTIONS):
        if _is_foreground(mask, sx + dx, sy + dy):
            start = (sx + dx, sy + dy)
            return _moore_trace(mask, start, (d + 6) % 8, 8 * area + 16)
    return []


@trace(label="extract_contours")
def extract_contours(bitmap, debug_writer=None):
    """
    Extract boundary contours with their holes from a binary bitmap.

    Args:
        bitmap: binary RGBA bitmap (0 = foreground)
        debug_writer: optional DebugArtifactWriter

    Returns:
        list of Contour, in row-major order of their first pixel
    """
    tracer = get_tracer()

    mask = bitmap[..., 0] == 0
    bg_labels, bg_stats, enclosed = _background_regions(mask)

    with tracer.span("trace_exteriors", module="contour"):
        contours = _trace_exteriors(mask, bg_labels, enclosed)
        tracer.event(f"Traced {len(contours)} exterior contours")

    with tracer.span("trace_holes", module="contour"):
        hole_count = 0
        dropped = 0
        for seed, area in _hole_seeds(mask, bg_labels, bg_stats, enclosed):
            ring = _trace_hole(mask, seed, area)
            if len(ring) < MIN_RING_POINTS:
                dropped += 1
                continue

            for contour in contours:
                if point_in_polygon(seed, contour.points):
                    contour.holes.append(_to_ring(ring))
                    hole_count += 1
                    break
            else:
                dropped += 1

        tracer.event(f"Assigned {hole_count} holes, dropped {dropped}")

    if debug_writer:
        from png2vector.io.save_artifacts import draw_contour_overlay
        debug_writer.save_image(draw_contour_overlay(bitmap, contours), "contours", "01_contours_overlay.png")
        debug_writer.save_json({
            "contour_count": len(contours),
            "hole_count": hole_count,
            "holes_dropped": dropped,
            "points": sum(len(c.points) for c in contours),
        }, "contours", "contour_metrics.json")

    return contours
