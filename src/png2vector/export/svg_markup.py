"""
SVG markup generation for png2vector.

Every polygon becomes a single path whose subpaths are the exterior and its
holes, rendered with fill-rule="evenodd". Stroked outlines live in the
VW_CLASS_Detail group; the optional white fill lives in VW_CLASS_Fill,
painted beneath the outlines.
"""

import io

import svgwrite

from png2vector.tracer import get_tracer, trace

DETAIL_CLASS = "VW_CLASS_Detail"
FILL_CLASS = "VW_CLASS_Fill"


def format_coordinate(value, precision=6):
    """Fixed precision with trailing zeros trimmed; -0 becomes 0."""
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def ring_to_path_data(ring, precision=6):
    """Convert one ring into an 'M ... Z' subpath."""
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]

    parts = []
    for i, (x, y) in enumerate(ring):
        command = "M" if i == 0 else "L"
        parts.append(f"{command} {format_coordinate(x, precision)} {format_coordinate(y, precision)}")
    parts.append("Z")
    return " ".join(parts)


def polygon_to_path_data(polygon, precision=6):
    """Combined path data for an exterior and all of its holes."""
    return " ".join(ring_to_path_data(ring, precision) for ring in polygon.rings if len(ring) >= 3)


def _new_drawing(width, height, size=None):
    dwg = svgwrite.Drawing(size=size or (f"{width}px", f"{height}px"))
    dwg.viewbox(0, 0, width, height)
    return dwg


def _add_polygon_groups(dwg, path_data, white_fill, stroke_color, stroke_width, fill_color):
    if white_fill:
        fill_group = dwg.g(class_=FILL_CLASS, fill=fill_color, stroke="none")
        for d in path_data:
            fill_group.add(dwg.path(d=d, fill_rule="evenodd"))
        dwg.add(fill_group)

    detail_group = dwg.g(class_=DETAIL_CLASS, fill="none", stroke=stroke_color, stroke_width=stroke_width)
    for d in path_data:
        detail_group.add(dwg.path(d=d, fill_rule="evenodd"))
    dwg.add(detail_group)


def _to_markup(dwg):
    buffer = io.StringIO()
    dwg.write(buffer, pretty=True)
    return buffer.getvalue()


@trace(label="generate_svg")
def generate_svg(polygons, width, height, white_fill=False, stroke_color="black",
                 stroke_width=1.0, fill_color="white", precision=6):
    """
    Generate SVG markup for a polygon set.

    Args:
        polygons: list of Polygon
        width, height: canvas size in pixels, also used for the viewBox
        white_fill: add the VW_CLASS_Fill group beneath the outlines

    Returns:
        SVG document as a string
    """
    tracer = get_tracer()

    dwg = _new_drawing(width, height)
    path_data = [d for d in (polygon_to_path_data(p, precision) for p in polygons) if d]
    _add_polygon_groups(dwg, path_data, white_fill, stroke_color, stroke_width, fill_color)

    tracer.event(f"SVG emitted with {len(path_data)} paths")
    return _to_markup(dwg)


def generate_optimized_svg(polygons, width, height, white_fill=False, title=None,
                           description=None, units="px", scale=1.0):
    """
    SVG variant for CAD import, with title/description metadata and a
    physical document size of (width * scale, height * scale) in units.
    """
    size = (f"{format_coordinate(width * scale)}{units}", f"{format_coordinate(height * scale)}{units}")
    dwg = _new_drawing(width, height, size=size)
    dwg.set_desc(title=title or "Vectorized drawing",
                 desc=description or f"{len(polygons)} polygons traced from a {width}x{height} raster")

    path_data = [d for d in (polygon_to_path_data(p) for p in polygons) if d]
    _add_polygon_groups(dwg, path_data, white_fill, "black", 1.0, "white")

    return _to_markup(dwg)


def generate_styled_svg(polygons, width, height, stroke_color="black", stroke_width=1.0,
                        fill_color=None, background_color=None):
    """Preview SVG with custom colours; fill_color enables the fill group."""
    dwg = _new_drawing(width, height)

    if background_color:
        dwg.add(dwg.rect(insert=(0, 0), size=(width, height), fill=background_color))

    path_data = [d for d in (polygon_to_path_data(p) for p in polygons) if d]
    _add_polygon_groups(dwg, path_data, bool(fill_color), stroke_color, stroke_width, fill_color or "none")

    return _to_markup(dwg)
