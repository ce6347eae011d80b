"""Tests for DXF generation."""

import pytest

from conftest import make_square


def _lines(dxf):
    return dxf.split("\n")


def _values_after(dxf, code):
    lines = _lines(dxf)
    return [lines[i + 1] for i in range(0, len(lines) - 1, 2) if lines[i] == code]


def _entity_count(dxf, name):
    return sum(1 for value in _values_after(dxf, "0") if value == name)


def _test_polygons():
    from png2vector.models import Polygon

    return [
        Polygon(exterior=make_square(10)),
        Polygon(exterior=make_square(20, (20, 0)), holes=[list(reversed(make_square(5, (25, 5))))]),
    ]


class TestGenerateDxf:
    """Tests for generate_dxf."""

    def test_lwpolyline_per_ring(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf(_test_polygons(), 100, 100)

        assert _entity_count(dxf, "LWPOLYLINE") == 3

    def test_hatch_only_with_fill(self):
        from png2vector.export.dxf import generate_dxf

        assert _entity_count(generate_dxf(_test_polygons(), 100, 100, white_fill=True), "HATCH") == 2
        assert _entity_count(generate_dxf(_test_polygons(), 100, 100, white_fill=False), "HATCH") == 0

    def test_single_polygon_boundary_count(self):
        from png2vector.export.dxf import generate_dxf
        from png2vector.models import Polygon

        dxf = generate_dxf([Polygon(exterior=make_square(10))], 100, 100, white_fill=True)

        assert _entity_count(dxf, "LWPOLYLINE") == 1
        assert _entity_count(dxf, "HATCH") == 1
        assert _values_after(dxf, "91") == ["1"]
        assert _values_after(dxf, "92") == ["2"]

    def test_polygon_with_hole_boundary_count(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf(_test_polygons()[1:], 100, 100, white_fill=True)

        assert _entity_count(dxf, "LWPOLYLINE") == 2
        assert _entity_count(dxf, "HATCH") == 1
        assert _values_after(dxf, "91") == ["2"]
        assert _values_after(dxf, "92") == ["2", "16"]

    def test_polylines_closed_with_vertex_count(self):
        from png2vector.export.dxf import generate_dxf
        from png2vector.models import Polygon

        dxf = generate_dxf([Polygon(exterior=make_square(10))], 100, 100)

        assert _values_after(dxf, "90") == ["5"]
        assert "70\n1\n10" in dxf

    def test_header_and_layers(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf(_test_polygons(), 100, 100)

        assert "$ACADVER\n1\nAC1015" in dxf
        assert "VW_CLASS_Detail" in dxf
        assert "VW_CLASS_Fill" in dxf
        assert "Layer0" not in dxf
        assert "Default" not in dxf
        assert "SPLINE" not in dxf
        assert set(_values_after(dxf, "8")) == {"VW_CLASS_Detail"}

    def test_handles_are_sequential_hex(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf(_test_polygons(), 100, 100, white_fill=True)

        lines = _lines(dxf)
        entity_handles = [
            lines[i + 3] for i in range(0, len(lines) - 3, 2)
            if lines[i] == "0" and lines[i + 1] in ("LWPOLYLINE", "HATCH")
        ]
        assert entity_handles == ["64", "65", "66", "67", "68"]

    def test_coordinate_precision(self):
        from png2vector.export.dxf import generate_dxf
        from png2vector.models import Polygon

        polygon = Polygon(exterior=[
            [1.1234567, 2.9876543],
            [10.333333333, 2.9876543],
            [10.333333333, 8.5],
            [1.1234567, 2.9876543],
        ])

        dxf = generate_dxf([polygon], 20, 20)

        assert "1.123457" in dxf
        assert "2.987654" in dxf
        assert "10.333333" in dxf
        assert "10.3333333" not in dxf

    def test_sections_balanced_and_single_eof(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf(_test_polygons(), 100, 100, white_fill=True)
        zero_values = _values_after(dxf, "0")

        assert zero_values.count("SECTION") == zero_values.count("ENDSEC") == 4
        assert zero_values.count("EOF") == 1
        assert dxf.endswith("0\nEOF")

    def test_empty_polygon_set(self):
        from png2vector.export.dxf import generate_dxf

        dxf = generate_dxf([], 100, 100)

        assert "SECTION" in dxf
        assert "ENTITIES" in dxf
        assert dxf.endswith("0\nEOF")
        assert _entity_count(dxf, "LWPOLYLINE") == 0

    def test_short_rings_skipped(self):
        from png2vector.export.dxf import generate_dxf
        from png2vector.models import Polygon

        polygon = Polygon(exterior=make_square(10), holes=[[[1, 1], [2, 2]]])

        dxf = generate_dxf([polygon], 100, 100, white_fill=True)

        assert _entity_count(dxf, "LWPOLYLINE") == 1
        assert _values_after(dxf, "91") == ["1"]


class TestMinimalDxf:
    """Tests for generate_minimal_dxf."""

    def test_no_header_or_tables(self):
        from png2vector.export.dxf import generate_dxf, generate_minimal_dxf

        minimal = generate_minimal_dxf(_test_polygons())
        full = generate_dxf(_test_polygons(), 100, 100)

        assert "HEADER" not in minimal
        assert "TABLES" not in minimal
        assert "ENTITIES" in minimal
        assert minimal.endswith("0\nEOF")
        assert len(minimal) < len(full)

    def test_entities_match_full_output(self):
        from png2vector.export.dxf import generate_dxf, generate_minimal_dxf

        minimal = generate_minimal_dxf(_test_polygons(), white_fill=True)
        full = generate_dxf(_test_polygons(), 100, 100, white_fill=True)

        entities = minimal[:-len("\n0\nEOF")]
        assert entities in full

    def test_fill_honored(self):
        from png2vector.export.dxf import generate_minimal_dxf

        assert _entity_count(generate_minimal_dxf(_test_polygons(), white_fill=True), "HATCH") == 2
        assert _entity_count(generate_minimal_dxf(_test_polygons()), "HATCH") == 0


class TestFormatDxfCoordinate:
    """Tests for DXF coordinate formatting."""

    @pytest.mark.parametrize("value,expected", [
        (0.0, "0"),
        (-0.0, "0"),
        (-0.0000004, "0"),
        (5.0, "5"),
        (1.5, "1.5"),
        (-2.25, "-2.25"),
        (1.1234567, "1.123457"),
    ])
    def test_format(self, value, expected):
        from png2vector.export.dxf import format_dxf_coordinate

        assert format_dxf_coordinate(value) == expected
