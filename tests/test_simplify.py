"""Tests for Douglas-Peucker simplification."""


class TestRdpSimplify:
    """Tests for rdp_simplify."""

    def test_collinear_points_collapse(self):
        from png2vector.vectorize.simplify import rdp_simplify

        points = [[0, 0], [1, 0], [2, 0], [3, 0]]

        assert rdp_simplify(points, 0.5) == [[0, 0], [3, 0]]

    def test_spike_preserved(self):
        from png2vector.vectorize.simplify import rdp_simplify

        points = [[0, 0], [5, 3], [10, 0]]

        assert rdp_simplify(points, 1.0) == points

    def test_small_deviation_removed(self):
        from png2vector.vectorize.simplify import rdp_simplify

        points = [[0, 0], [5, 0.4], [10, 0]]

        assert rdp_simplify(points, 0.5) == [[0, 0], [10, 0]]

    def test_short_paths_unchanged(self):
        from png2vector.vectorize.simplify import rdp_simplify

        assert rdp_simplify([], 1.0) == []
        assert rdp_simplify([[1, 1]], 1.0) == [[1, 1]]
        assert rdp_simplify([[1, 1], [2, 2]], 1.0) == [[1, 1], [2, 2]]

    def test_closed_ring_keeps_corners(self):
        from png2vector.vectorize.simplify import rdp_simplify

        ring = [[0, 0], [5, 0], [10, 0], [10, 5], [10, 10], [5, 10], [0, 10], [0, 5], [0, 0]]

        result = rdp_simplify(ring, 0.5)

        assert result == [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]

    def test_endpoints_fixed(self):
        from png2vector.vectorize.simplify import rdp_simplify

        points = [[0, 0], [3, 1], [6, -1], [9, 1], [12, 0]]

        result = rdp_simplify(points, 5.0)

        assert result[0] == [0, 0]
        assert result[-1] == [12, 0]


class TestSimplifyContours:
    """Tests for contour-level simplification."""

    def test_exterior_and_holes_simplified(self):
        from png2vector.models import Contour
        from png2vector.vectorize.simplify import count_points, simplify_contours

        contour = Contour(
            points=[[0, 0], [5, 0], [10, 0], [10, 10], [0, 10]],
            holes=[[[2, 2], [3, 2], [4, 2], [4, 4], [2, 4]]],
        )

        result = simplify_contours([contour], 0.5)

        assert len(result) == 1
        assert result[0].points == [[0, 0], [10, 0], [10, 10], [0, 10]]
        assert result[0].holes == [[[2, 2], [4, 2], [4, 4], [2, 4]]]
        assert count_points(result) == 8

    def test_input_not_mutated(self):
        from png2vector.models import Contour
        from png2vector.vectorize.simplify import simplify_contours

        contour = Contour(points=[[0, 0], [1, 0], [2, 0], [2, 2]])
        before = contour.model_copy(deep=True)

        result = simplify_contours([contour], 0.5)

        assert contour == before
        assert result[0] is not contour

    def test_count_points(self):
        from png2vector.models import Contour
        from png2vector.vectorize.simplify import count_points

        contours = [
            Contour(points=[[0, 0]] * 4, holes=[[[1, 1]] * 3]),
            Contour(points=[[0, 0]] * 5),
        ]

        assert count_points(contours) == 12
