"""
Raster preprocessing for png2vector.

Deterministic bitmap -> bitmap transforms: grayscale, Gaussian blur,
threshold binarization, morphological closing and speckle removal.
Every function returns a new RGBA array and never modifies its input.

Binary convention: 0 is foreground (black), 255 is background (white).
"""

import math

import cv2
import numpy as np

from png2vector.tracer import get_tracer, trace

# Luma weights in thousandths; integer sums keep gray levels exact
_LUMA_PERMILLE = np.array([299, 587, 114], dtype=np.int64)


def _luminance_permille(bitmap):
    return bitmap[..., :3].astype(np.int64) @ _LUMA_PERMILLE


def _round_half_up(values):
    return np.floor(values + 0.5)


def _from_gray(gray, alpha=None):
    """Replicate a 2-D channel into RGB and attach alpha (opaque if None)."""
    height, width = gray.shape
    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = 255 if alpha is None else alpha
    return out


def to_grayscale(bitmap):
    """
    Convert RGBA bitmap to grayscale using 0.299R + 0.587G + 0.114B.

    Alpha is preserved.
    """
    gray = np.clip((_luminance_permille(bitmap) + 500) // 1000, 0, 255).astype(np.uint8)
    return _from_gray(gray, alpha=bitmap[..., 3])


def generate_gaussian_kernel(radius):
    """
    Build a normalized 1-D Gaussian kernel.

    Size is 2 * ceil(radius * 2) + 1 and sigma is radius / 3.
    """
    size = int(math.ceil(radius * 2)) * 2 + 1
    sigma = radius / 3.0
    center = size // 2

    offsets = np.arange(size) - center
    kernel = np.exp(-(offsets ** 2) / (2 * sigma * sigma))
    return kernel / kernel.sum()


def _convolve_axis(channels, kernel, axis):
    """Convolve along one axis with clamp-to-edge borders, rounding to uint8."""
    half = len(kernel) // 2
    pad = [(0, 0)] * channels.ndim
    pad[axis] = (half, half)
    padded = np.pad(channels.astype(np.float64), pad, mode="edge")

    length = channels.shape[axis]
    result = np.zeros(channels.shape, dtype=np.float64)
    for k, weight in enumerate(kernel):
        window = np.take(padded, np.arange(k, k + length), axis=axis)
        result += window * weight

    return np.clip(_round_half_up(result), 0, 255).astype(np.uint8)


def gaussian_blur(bitmap, radius=1.0):
    """
    Separable Gaussian blur, horizontal pass then vertical pass.

    All four channels are blurred. A non-positive radius returns a copy.
    """
    if radius <= 0:
        return bitmap.copy()

    kernel = generate_gaussian_kernel(radius)

    horizontal = _convolve_axis(bitmap, kernel, axis=1)
    return _convolve_axis(horizontal, kernel, axis=0)


def binarize(bitmap, threshold=128):
    """
    Threshold luminance into pure black/white.

    Luminance >= threshold becomes background (255), otherwise foreground (0).
    Alpha is forced opaque.
    """
    binary = np.where(_luminance_permille(bitmap) >= threshold * 1000, 255, 0).astype(np.uint8)
    return _from_gray(binary)


_MORPH_KERNEL = np.ones((3, 3), dtype=np.uint8)


def morphology_close(bitmap, iterations=1):
    """
    Morphological closing of the dark foreground.

    Each iteration takes the 3x3 minimum (grows black) and then the 3x3
    maximum (shrinks black back), filling gaps narrower than the kernel.
    Out-of-bounds neighbours are ignored.
    """
    channel = bitmap[..., 0].copy()

    for _ in range(iterations):
        channel = cv2.erode(channel, _MORPH_KERNEL)
        channel = cv2.dilate(channel, _MORPH_KERNEL)

    return _from_gray(channel)


def remove_speckles(bitmap, min_area):
    """
    Erase 4-connected foreground components smaller than min_area pixels.

    Labeling assigns every foreground pixel to exactly one component.
    """
    foreground = (bitmap[..., 0] == 0).astype(np.uint8)
    cleaned = bitmap.copy()

    if not foreground.any():
        return cleaned

    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(foreground, connectivity=4)

    small = np.zeros(num_labels, dtype=bool)
    for i in range(1, num_labels):  # skip background (0)
        if stats[i, cv2.CC_STAT_AREA] < min_area:
            small[i] = True

    erase = small[labels]
    cleaned[erase, 0] = 255
    cleaned[erase, 1] = 255
    cleaned[erase, 2] = 255

    return cleaned


def foreground_ratio(bitmap):
    """Fraction of pixels that are foreground (black)."""
    return float(np.count_nonzero(bitmap[..., 0] == 0)) / (bitmap.shape[0] * bitmap.shape[1])


@trace(label="preprocess_raster")
def preprocess_raster(bitmap, options, config, debug_writer=None):
    """
    Run the full preprocessing chain.

    grayscale -> blur (optional) -> binarize -> closing -> speckle removal.

    Args:
        bitmap: RGBA input bitmap
        options: ProcessingOptions carrying threshold and area_min
        config: PipelineConfig
        debug_writer: optional DebugArtifactWriter

    Returns:
        binary RGBA bitmap
    """
    tracer = get_tracer()

    with tracer.span("grayscale", module="raster"):
        processed = to_grayscale(bitmap)
        if debug_writer:
            debug_writer.save_image(processed, "preprocess", "01_gray.png")

    if config.preprocess.blur_radius > 0:
        with tracer.span("blur", module="raster"):
            processed = gaussian_blur(processed, config.preprocess.blur_radius)

    with tracer.span("binarize", module="raster"):
        processed = binarize(processed, options.threshold)
        if debug_writer:
            debug_writer.save_image(processed, "preprocess", "02_binary.png")

    if config.preprocess.morph_iterations > 0:
        with tracer.span("morphology", module="raster"):
            processed = morphology_close(processed, config.preprocess.morph_iterations)

    with tracer.span("despeckle", module="raster"):
        processed = remove_speckles(processed, options.area_min)

    ratio = foreground_ratio(processed)
    tracer.event(f"Binary result: foreground_ratio={ratio:.3f}")

    if debug_writer:
        debug_writer.save_image(processed, "preprocess", "03_cleaned.png")
        debug_writer.save_json({
            "threshold": options.threshold,
            "area_min": options.area_min,
            "blur_radius": config.preprocess.blur_radius,
            "morph_iterations": config.preprocess.morph_iterations,
            "foreground_ratio": round(ratio, 4),
            "image_width": int(bitmap.shape[1]),
            "image_height": int(bitmap.shape[0]),
        }, "preprocess", "preprocess_metrics.json")

    return processed
