"""
Bitmap construction and image decoding for png2vector.

A bitmap is a uint8 numpy array of shape (height, width, 4) holding RGBA
pixels. Every pipeline stage consumes and returns arrays of this shape.
"""

import os

import cv2
import numpy as np

from png2vector.exceptions import DecodeError
from png2vector.tracer import get_tracer, trace


def make_bitmap(width, height, data):
    """
    Build a bitmap from a flat RGBA buffer.

    The buffer is copied so the caller's input is never aliased.

    Raises DecodeError if the dimensions or buffer length are inconsistent.
    """
    if int(width) <= 0 or int(height) <= 0:
        raise DecodeError(f"Invalid bitmap dimensions: {width}x{height}")

    if isinstance(data, np.ndarray):
        buffer = data.astype(np.uint8).ravel()
    else:
        buffer = np.frombuffer(bytes(data), dtype=np.uint8)

    expected = int(width) * int(height) * 4
    if buffer.size != expected:
        raise DecodeError(
            f"Pixel buffer has {buffer.size} bytes, expected {expected} for {width}x{height} RGBA"
        )

    return buffer.reshape(int(height), int(width), 4).copy()


def ensure_bitmap(image):
    """
    Validate an array as a bitmap, converting gray/RGB arrays to RGBA.

    Raises DecodeError for arrays that cannot be interpreted as an image.
    """
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise DecodeError("Bitmap must be a non-empty numpy array")

    if image.dtype != np.uint8:
        raise DecodeError(f"Bitmap must be uint8, got {image.dtype}")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)

    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2RGBA)

    if image.ndim == 3 and image.shape[2] == 4:
        return image.copy()

    raise DecodeError(f"Unsupported bitmap shape: {image.shape}")


@trace(label="decode_png")
def decode_png(data):
    """
    Decode PNG bytes into an RGBA bitmap.

    Raises DecodeError if the bytes are not a decodable PNG image.
    """
    tracer = get_tracer()

    if not data:
        raise DecodeError("Empty image payload")

    if not bytes(data[:8]) == b"\x89PNG\r\n\x1a\n":
        raise DecodeError("Only PNG images are supported")

    raw = np.frombuffer(bytes(data), dtype=np.uint8)
    decoded = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED)

    if decoded is None:
        raise DecodeError("Failed to decode PNG image")

    # 16-bit PNGs are reduced to 8 bits per channel
    if decoded.dtype == np.uint16:
        decoded = (decoded >> 8).astype(np.uint8)

    if decoded.ndim == 2:
        bitmap = cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGBA)
    elif decoded.shape[2] == 3:
        bitmap = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGBA)
    else:
        bitmap = cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)

    tracer.event(f"Decoded PNG: {bitmap.shape[1]}x{bitmap.shape[0]}")

    return bitmap


def load_png(path):
    """
    Read and decode a PNG file from disk.

    Raises FileNotFoundError if path does not exist.
    Raises DecodeError if the file is not a decodable PNG.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    with open(path, "rb") as f:
        data = f.read()

    return data, decode_png(data)


def encode_png(bitmap):
    """Encode an RGBA bitmap as PNG bytes."""
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(bitmap, cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise DecodeError("Failed to encode bitmap as PNG")
    return encoded.tobytes()
