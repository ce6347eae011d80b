"""
DXF (AutoCAD 2000, AC1015) generation for png2vector.

Output is a flat list of group code / value lines joined by newlines.
Ring geometry is emitted only as closed LWPOLYLINE entities on the
VW_CLASS_Detail layer; the optional fill is a SOLID HATCH per polygon on the
VW_CLASS_Fill layer.
"""

from png2vector.tracer import get_tracer, trace

DETAIL_LAYER = "VW_CLASS_Detail"
FILL_LAYER = "VW_CLASS_Fill"

FIRST_HANDLE = 0x64
OWNER_HANDLE = "1F"

EXTERNAL_PATH_FLAG = 2
INTERNAL_PATH_FLAG = 16


def format_dxf_coordinate(value):
    """Six decimals with trailing zeros trimmed; -0 becomes 0."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _pairs(*items):
    """Flatten (code, value) pairs into DXF lines."""
    return [str(item) for item in items]


def _header_section():
    return _pairs(
        0, "SECTION",
        2, "HEADER",
        9, "$ACADVER",
        1, "AC1015",
        9, "$HANDSEED",
        5, "FFFF",
        9, "$MEASUREMENT",
        70, 1,  # metric
        0, "ENDSEC",
    )


def _layer_record(handle, name, color, lineweight):
    return _pairs(
        0, "LAYER",
        5, handle,
        330, 2,
        100, "AcDbSymbolTableRecord",
        100, "AcDbLayerTableRecord",
        2, name,
        70, 0,
        62, color,
        6, "CONTINUOUS",
        370, lineweight,
    )


def _tables_section():
    lines = _pairs(
        0, "SECTION",
        2, "TABLES",
        0, "TABLE",
        2, "LAYER",
        5, 2,
        330, 0,
        100, "AcDbSymbolTable",
        70, 2,
    )
    lines += _layer_record(10, DETAIL_LAYER, 7, 25)
    lines += _layer_record(11, FILL_LAYER, 1, 0)
    lines += _pairs(0, "ENDTAB", 0, "ENDSEC")
    return lines


def _objects_section():
    return _pairs(
        0, "SECTION",
        2, "OBJECTS",
        0, "DICTIONARY",
        5, "C",
        330, 0,
        100, "AcDbDictionary",
        281, 1,
        3, "ACAD_GROUP",
        350, "D",
        0, "DICTIONARY",
        5, "D",
        330, "C",
        100, "AcDbDictionary",
        281, 1,
        0, "ENDSEC",
    )


def _vertices(points):
    lines = []
    for x, y in points:
        lines += _pairs(10, format_dxf_coordinate(x), 20, format_dxf_coordinate(y))
    return lines


def _lwpolyline(points, handle):
    lines = _pairs(
        0, "LWPOLYLINE",
        5, handle,
        330, OWNER_HANDLE,
        100, "AcDbEntity",
        8, DETAIL_LAYER,
        100, "AcDbPolyline",
        90, len(points),
        70, 1,  # closed
    )
    return lines + _vertices(points)


def _boundary_path(points, flag):
    lines = _pairs(
        92, flag,
        93, 1,
        72, 1,
        94, len(points),
    )
    return lines + _vertices(points) + _pairs(97, 0)


def _hatch(exterior, holes, handle):
    lines = _pairs(
        0, "HATCH",
        5, handle,
        330, OWNER_HANDLE,
        100, "AcDbEntity",
        8, FILL_LAYER,
        62, 7,
        100, "AcDbHatch",
        10, "0.0",
        20, "0.0",
        30, "0.0",
        210, "0.0",
        220, "0.0",
        230, "1.0",
        2, "SOLID",
        70, 1,  # solid fill
        71, 0,
        91, 1 + len(holes),
    )
    lines += _boundary_path(exterior, EXTERNAL_PATH_FLAG)
    for hole in holes:
        lines += _boundary_path(hole, INTERNAL_PATH_FLAG)
    lines += _pairs(
        75, 1,
        76, 1,
        98, 1,
        10, "0.0",
        20, "0.0",
    )
    return lines


def _entities_section(polygons, white_fill):
    """
    ENTITIES section shared by the full and minimal writers.

    Rings with fewer than 3 points produce no entity and consume no handle.
    """
    lines = _pairs(0, "SECTION", 2, "ENTITIES")
    handle = FIRST_HANDLE

    def next_handle():
        nonlocal handle
        value = f"{handle:X}"
        handle += 1
        return value

    for polygon in polygons:
        if len(polygon.exterior) < 3:
            continue
        holes = [hole for hole in polygon.holes if len(hole) >= 3]

        lines += _lwpolyline(polygon.exterior, next_handle())
        for hole in holes:
            lines += _lwpolyline(hole, next_handle())

        if white_fill:
            lines += _hatch(polygon.exterior, holes, next_handle())

    lines += _pairs(0, "ENDSEC")
    return lines


@trace(label="generate_dxf")
def generate_dxf(polygons, width, height, white_fill=False):
    """
    Generate a complete DXF document.

    Args:
        polygons: list of validated Polygon
        width, height: source raster size (carried for API symmetry with SVG)
        white_fill: add one SOLID HATCH per polygon on the fill layer

    Returns:
        DXF text
    """
    tracer = get_tracer()

    lines = _header_section()
    lines += _tables_section()
    lines += _entities_section(polygons, white_fill)
    lines += _objects_section()
    lines += _pairs(0, "EOF")

    tracer.event(f"DXF emitted: {len(polygons)} polygons, {len(lines)} lines, canvas={width}x{height}")
    return "\n".join(lines)


def generate_minimal_dxf(polygons, white_fill=False):
    """ENTITIES section and EOF only, for importers that reject full headers."""
    lines = _entities_section(polygons, white_fill)
    lines += _pairs(0, "EOF")
    return "\n".join(lines)
