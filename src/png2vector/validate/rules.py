"""
Validation rules for png2vector outputs.

DXF checks enforce the CAD import contract (balanced sections, one final
EOF, closed LWPOLYLINE only, fixed layer names). Polygon checks verify the
winding and topology guarantees of the geometry stage.
"""

from png2vector.export.dxf import DETAIL_LAYER, FILL_LAYER
from png2vector.geometry.validate import is_valid_polygon, signed_area
from png2vector.models import CheckResult, Severity, ValidationReport
from png2vector.tracer import get_tracer, trace

FORBIDDEN_ENTITIES = {"LINE", "POLYLINE", "SPLINE", "ARC", "CIRCLE", "ELLIPSE"}
ALLOWED_LAYERS = {DETAIL_LAYER, FILL_LAYER}


def parse_dxf_pairs(content):
    """Split DXF text into (group code, value) pairs with whitespace stripped."""
    lines = [line.strip() for line in content.splitlines()]
    return list(zip(lines[0::2], lines[1::2]))


def _split_entities(pairs):
    """Group pairs into records starting at each group code 0."""
    records = []
    for code, value in pairs:
        if code == "0":
            records.append((value, []))
        elif records:
            records[-1][1].append((code, value))
    return records


def _summarize(checks):
    report = ValidationReport(checks=checks)
    get_tracer().event(f"Validation complete: {report.error_count} errors, {report.warning_count} warnings")
    return report


@trace(label="validate_dxf_output")
def validate_dxf_output(content):
    """
    Validate DXF text for CAD compatibility.

    Returns ValidationReport; report.is_valid is False if any error-level
    check fails.
    """
    pairs = parse_dxf_pairs(content)
    records = _split_entities(pairs)

    checks = [
        check_sections(pairs),
        check_entities_section(pairs),
        check_eof(pairs),
        check_entity_types(records),
        check_closed_polylines(records),
        check_layers(content, records),
    ]

    return _summarize(checks)


def check_sections(pairs):
    """SECTION declarations must exist and each must have a matching ENDSEC."""
    opened = sum(1 for pair in pairs if pair == ("0", "SECTION"))
    closed = sum(1 for pair in pairs if pair == ("0", "ENDSEC"))

    if opened == 0:
        message = "Missing SECTION declarations"
    elif opened != closed:
        message = f"Unbalanced sections: {opened} SECTION vs {closed} ENDSEC"
    else:
        message = f"{opened} sections, all closed"

    return CheckResult(
        rule_id="dxf_sections",
        severity=Severity.ERROR,
        passed=opened > 0 and opened == closed,
        message=message,
        evidence={"sections": opened, "endsec": closed},
    )


def check_entities_section(pairs):
    present = ("2", "ENTITIES") in pairs

    return CheckResult(
        rule_id="dxf_entities",
        severity=Severity.ERROR,
        passed=present,
        message="ENTITIES section present" if present else "Missing ENTITIES section",
    )


def check_eof(pairs):
    """EOF must appear exactly once, as the final record."""
    count = sum(1 for pair in pairs if pair == ("0", "EOF"))
    is_last = bool(pairs) and pairs[-1] == ("0", "EOF")

    if count == 0:
        message = "Missing EOF marker"
    elif count > 1 or not is_last:
        message = f"EOF must be the single final record (found {count})"
    else:
        message = "EOF marker present"

    return CheckResult(
        rule_id="dxf_eof",
        severity=Severity.ERROR,
        passed=count == 1 and is_last,
        message=message,
        evidence={"eof_count": count},
    )


def check_entity_types(records):
    found = sorted({name for name, _ in records if name in FORBIDDEN_ENTITIES})

    return CheckResult(
        rule_id="dxf_entity_types",
        severity=Severity.ERROR,
        passed=not found,
        message=f"Disallowed entity types: {', '.join(found)}" if found else "Only LWPOLYLINE/HATCH geometry",
        evidence={"disallowed": found},
    )


def check_closed_polylines(records):
    """Every LWPOLYLINE must carry closed flag bit 1 in group 70."""
    unclosed = 0
    total = 0

    for name, fields in records:
        if name != "LWPOLYLINE":
            continue
        total += 1
        flags = [value for code, value in fields if code == "70"]
        if not flags or not (int(flags[0]) & 1):
            unclosed += 1

    return CheckResult(
        rule_id="dxf_closed_polylines",
        severity=Severity.WARN,
        passed=unclosed == 0,
        message=(
            f"Found {unclosed} unclosed LWPOLYLINE - should be closed for CAD compatibility"
            if unclosed else f"All {total} LWPOLYLINE entities closed"
        ),
        evidence={"lwpolylines": total, "unclosed": unclosed},
    )


def check_layers(content, records):
    """VW_CLASS_Detail must be present and entities may only use the two fixed layers."""
    entity_layers = {value for _, fields in records for code, value in fields if code == "8"}
    unknown = sorted(entity_layers - ALLOWED_LAYERS)
    has_detail = DETAIL_LAYER in content

    if not has_detail:
        message = f"Missing {DETAIL_LAYER} layer"
    elif unknown:
        message = f"Unexpected layer names: {', '.join(unknown)}"
    else:
        message = "Layer names valid"

    return CheckResult(
        rule_id="dxf_layers",
        severity=Severity.WARN,
        passed=has_detail and not unknown,
        message=message,
        evidence={"entity_layers": sorted(entity_layers)},
    )


@trace(label="check_polygons")
def check_polygons(polygons, grid_size=0.001):
    """Winding, closure, grid and simplicity checks over a polygon set."""
    bad_exteriors = []
    bad_holes = []
    open_rings = 0
    off_grid = 0
    invalid = []

    for index, polygon in enumerate(polygons):
        if signed_area(polygon.exterior) >= 0:
            bad_exteriors.append(index)
        if any(signed_area(hole) <= 0 for hole in polygon.holes):
            bad_holes.append(index)

        for ring in polygon.rings:
            if len(ring) < 2 or ring[0] != ring[-1]:
                open_rings += 1
            for x, y in ring:
                if not (_on_grid(x, grid_size) and _on_grid(y, grid_size)):
                    off_grid += 1

        if not is_valid_polygon(polygon):
            invalid.append(index)

    checks = [
        CheckResult(
            rule_id="polygon_exterior_winding",
            severity=Severity.ERROR,
            passed=not bad_exteriors,
            message=(f"{len(bad_exteriors)} exteriors not counter-clockwise" if bad_exteriors
                     else "All exteriors counter-clockwise"),
            evidence={"polygons": bad_exteriors[:20]},
        ),
        CheckResult(
            rule_id="polygon_hole_winding",
            severity=Severity.ERROR,
            passed=not bad_holes,
            message=(f"{len(bad_holes)} polygons with holes not clockwise" if bad_holes
                     else "All holes clockwise"),
            evidence={"polygons": bad_holes[:20]},
        ),
        CheckResult(
            rule_id="polygon_closed_rings",
            severity=Severity.ERROR,
            passed=open_rings == 0,
            message=f"{open_rings} open rings" if open_rings else "All rings closed",
        ),
        CheckResult(
            rule_id="polygon_grid",
            severity=Severity.WARN,
            passed=off_grid == 0,
            message=f"{off_grid} vertices off the {grid_size} grid" if off_grid else "All vertices on grid",
        ),
        CheckResult(
            rule_id="polygon_validity",
            severity=Severity.WARN,
            passed=not invalid,
            message=f"{len(invalid)} invalid polygons" if invalid else "All polygons simple",
            evidence={"polygons": invalid[:20]},
        ),
    ]

    return _summarize(checks)


def _on_grid(value, grid_size):
    steps = value / grid_size
    return abs(steps - round(steps)) < 1e-6
