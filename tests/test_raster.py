"""Tests for raster preprocessing."""

import numpy as np
import pytest

from conftest import bitmap_from_rows, blank_bitmap


class TestGrayscale:
    """Tests for luminance conversion."""

    def test_luminance_weights_and_rounding(self):
        from png2vector.preprocess.raster import to_grayscale

        img = blank_bitmap(1, 1)
        img[0, 0] = [100, 150, 200, 77]

        gray = to_grayscale(img)

        # 0.299*100 + 0.587*150 + 0.114*200 = 140.75
        assert gray[0, 0, 0] == 141
        assert gray[0, 0, 1] == gray[0, 0, 2] == 141
        assert gray[0, 0, 3] == 77

    def test_input_not_modified(self):
        from png2vector.preprocess.raster import to_grayscale

        img = blank_bitmap(2, 2)
        img[0, 0] = [10, 20, 30, 255]
        original = img.copy()

        to_grayscale(img)

        assert np.array_equal(img, original)


class TestGaussianBlur:
    """Tests for the separable Gaussian blur."""

    def test_zero_radius_returns_copy(self, square_bitmap):
        from png2vector.preprocess.raster import gaussian_blur

        result = gaussian_blur(square_bitmap, 0)

        assert result is not square_bitmap
        assert np.array_equal(result, square_bitmap)

    def test_kernel_size_and_normalization(self):
        from png2vector.preprocess.raster import generate_gaussian_kernel

        kernel = generate_gaussian_kernel(1.0)

        assert len(kernel) == 5
        assert kernel.sum() == pytest.approx(1.0)
        assert kernel[2] == kernel.max()

    def test_uniform_image_unchanged(self):
        from png2vector.preprocess.raster import gaussian_blur

        img = np.full((6, 6, 4), 90, dtype=np.uint8)

        result = gaussian_blur(img, 1.5)

        assert np.array_equal(result, img)

    def test_edge_softened(self, square_bitmap):
        from png2vector.preprocess.raster import gaussian_blur

        result = gaussian_blur(square_bitmap, 1.0)

        # Pixels next to the square are no longer pure white
        assert 0 < result[0, 2, 0] < 255


class TestBinarize:
    """Tests for threshold binarization."""

    def test_threshold_is_inclusive_for_background(self):
        from png2vector.preprocess.raster import binarize

        img = blank_bitmap(2, 1)
        img[0, 0, :3] = 128
        img[0, 1, :3] = 127

        binary = binarize(img, 128)

        assert binary[0, 0, 0] == 255
        assert binary[0, 1, 0] == 0

    @pytest.mark.parametrize("threshold", [1, 64, 100, 128, 200, 255])
    def test_gray_levels_split_exactly_at_threshold(self, threshold):
        from png2vector.preprocess.raster import binarize

        img = blank_bitmap(256, 1)
        img[0, :, :3] = np.arange(256, dtype=np.uint8)[:, None]

        binary = binarize(img, threshold)

        assert np.all(binary[0, :threshold, 0] == 0)
        assert np.all(binary[0, threshold:, 0] == 255)

    def test_grayscale_keeps_pure_gray_levels(self):
        from png2vector.preprocess.raster import to_grayscale

        img = blank_bitmap(256, 1)
        img[0, :, :3] = np.arange(256, dtype=np.uint8)[:, None]

        gray = to_grayscale(img)

        assert np.array_equal(gray[0, :, 0], np.arange(256))

    def test_binary_output_values(self, filled_rectangle_image):
        from png2vector.preprocess.raster import binarize

        binary = binarize(filled_rectangle_image)

        assert set(np.unique(binary[..., :3])).issubset({0, 255})
        assert np.all(binary[..., 3] == 255)


class TestMorphologyClose:
    """Tests for morphological closing."""

    def test_fills_one_pixel_gap(self):
        from png2vector.preprocess.raster import morphology_close

        img = bitmap_from_rows([
            ".........",
            ".........",
            "..##.##..",
            "..##.##..",
            "..##.##..",
            ".........",
            ".........",
        ])

        result = morphology_close(img, 1)

        assert result[3, 4, 0] == 0
        assert result[0, 0, 0] == 255
        assert np.count_nonzero(result[..., 0] == 0) == 15

    def test_zero_iterations_is_identity(self, ring_bitmap):
        from png2vector.preprocess.raster import morphology_close

        result = morphology_close(ring_bitmap, 0)

        assert np.array_equal(result, ring_bitmap)


class TestRemoveSpeckles:
    """Tests for small-component removal."""

    def test_removes_small_keeps_large(self):
        from png2vector.preprocess.raster import remove_speckles

        img = bitmap_from_rows([
            "#......",
            ".......",
            "...###.",
            "...###.",
            "...###.",
        ])

        result = remove_speckles(img, 2)

        assert result[0, 0, 0] == 255
        assert np.count_nonzero(result[..., 0] == 0) == 9

    def test_diagonal_pixels_are_separate_components(self):
        from png2vector.preprocess.raster import remove_speckles

        img = bitmap_from_rows([
            "#.",
            ".#",
        ])

        result = remove_speckles(img, 2)

        assert np.count_nonzero(result[..., 0] == 0) == 0

    def test_all_background(self):
        from png2vector.preprocess.raster import remove_speckles

        img = blank_bitmap(4, 4)

        assert np.array_equal(remove_speckles(img, 10), img)


class TestPreprocessRaster:
    """Tests for the full preprocessing chain."""

    def test_chain_output_is_binary(self, two_blobs_image, default_config):
        from png2vector.models import ProcessingOptions
        from png2vector.preprocess.raster import preprocess_raster

        options = ProcessingOptions(epsilon=1.0, area_min=10, threshold=128)

        result = preprocess_raster(two_blobs_image, options, default_config)

        assert result.shape == two_blobs_image.shape
        assert set(np.unique(result[..., :3])).issubset({0, 255})
        assert np.count_nonzero(result[..., 0] == 0) > 2000

    def test_debug_artifacts_written(self, square_bitmap, default_config, temp_dir):
        import os

        from png2vector.io.save_artifacts import DebugArtifactWriter
        from png2vector.models import ProcessingOptions
        from png2vector.preprocess.raster import preprocess_raster

        writer = DebugArtifactWriter(temp_dir)
        options = ProcessingOptions(epsilon=1.0, area_min=1)

        preprocess_raster(square_bitmap, options, default_config, writer)

        stage_dir = os.path.join(temp_dir, "debug", "preprocess")
        assert os.path.exists(os.path.join(stage_dir, "02_binary.png"))
        assert os.path.exists(os.path.join(stage_dir, "preprocess_metrics.json"))

    def test_foreground_ratio(self, square_bitmap):
        from png2vector.preprocess.raster import foreground_ratio

        assert foreground_ratio(square_bitmap) == pytest.approx(9 / 25)
