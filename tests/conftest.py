"""Pytest fixtures for png2vector tests."""

import os
import tempfile

import cv2
import numpy as np
import pytest


def bitmap_from_rows(rows):
    """
    Build an RGBA bitmap from strings; '#' is foreground, anything else background.
    """
    height = len(rows)
    width = len(rows[0])
    img = np.full((height, width, 4), 255, dtype=np.uint8)
    for y, row in enumerate(rows):
        for x, ch in enumerate(row):
            if ch == "#":
                img[y, x, :3] = 0
    return img


def blank_bitmap(width, height):
    return np.full((height, width, 4), 255, dtype=np.uint8)


@pytest.fixture(autouse=True)
def reset_tracer():
    """Leave the global tracer disabled after every test."""
    yield
    from png2vector.tracer import configure_tracer
    configure_tracer(enabled=False)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def square_bitmap():
    """5x5 bitmap with a centered 3x3 foreground square."""
    return bitmap_from_rows([
        ".....",
        ".###.",
        ".###.",
        ".###.",
        ".....",
    ])


@pytest.fixture
def ring_bitmap():
    """7x7 bitmap with a 5x5 foreground ring around a single background pixel."""
    return bitmap_from_rows([
        ".......",
        ".#####.",
        ".#####.",
        ".##.##.",
        ".#####.",
        ".#####.",
        ".......",
    ])


@pytest.fixture
def filled_rectangle_image():
    """White RGBA image with a solid black rectangle."""
    img = blank_bitmap(120, 80)
    cv2.rectangle(img, (20, 15), (99, 64), (0, 0, 0, 255), -1)
    return img


@pytest.fixture
def frame_image():
    """White RGBA image with a black block around a one-pixel-wide slot (one polygon with one hole)."""
    img = blank_bitmap(100, 100)
    cv2.rectangle(img, (10, 10), (89, 89), (0, 0, 0, 255), -1)
    img[30:70, 50] = 255
    return img


@pytest.fixture
def junction_blob_image():
    """Solid square joined by a one-pixel diagonal to an apex that also carries a short spur."""
    img = blank_bitmap(28, 23)
    img[4:21, 2:19, :3] = 0
    for x, y in [(19, 3), (20, 2), (21, 1), (22, 0), (23, 1), (24, 2), (25, 3)]:
        img[y, x, :3] = 0
    return img


@pytest.fixture
def two_blobs_image():
    """Two separate filled shapes."""
    img = blank_bitmap(160, 80)
    cv2.rectangle(img, (10, 10), (59, 59), (0, 0, 0, 255), -1)
    cv2.circle(img, (115, 40), 25, (0, 0, 0, 255), -1)
    return img


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from png2vector.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def png_bytes(filled_rectangle_image):
    """PNG-encoded bytes of the filled rectangle image."""
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(filled_rectangle_image, cv2.COLOR_RGBA2BGRA))
    assert ok
    return encoded.tobytes()


@pytest.fixture
def synthetic_input_file(temp_dir, frame_image):
    """Write the frame image to disk for CLI tests."""
    path = os.path.join(temp_dir, "drawing.png")
    cv2.imwrite(path, cv2.cvtColor(frame_image, cv2.COLOR_RGBA2BGRA))
    return path


def make_square(size=10.0, offset=(0.0, 0.0)):
    """Closed counter-clockwise square ring starting at the offset corner."""
    ox, oy = offset
    return [
        [ox, oy],
        [ox + size, oy],
        [ox + size, oy + size],
        [ox, oy + size],
        [ox, oy],
    ]
