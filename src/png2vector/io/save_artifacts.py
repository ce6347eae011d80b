"""
Artifact saving utilities for png2vector.

Writes trace outputs (SVG, DXF, metrics) and, in debug mode, intermediate
bitmaps and contour overlays.
"""

import json
import os

import cv2
import numpy as np

from png2vector.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_image(img, path, max_edge=None):
    """
    Save a bitmap or overlay image to disk.

    Optionally downscales to max_edge while preserving aspect ratio.
    RGBA and RGB inputs are converted to OpenCV channel order.
    """
    tracer = get_tracer()

    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (max(1, int(img.shape[1] * scale)), max(1, int(img.shape[0] * scale)))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_NEAREST)

    if img.ndim == 3 and img.shape[2] == 4:
        out = cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)
    elif img.ndim == 3 and img.shape[2] == 3:
        out = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    else:
        out = img

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, out)
    tracer.event(f"Saved image: {path}")


def save_json(data, path, indent=2):
    """
    Save a dictionary or Pydantic model to JSON.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}")


def save_text(content, path):
    """Save text content (SVG markup, DXF) to file."""
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(content)

    tracer.event(f"Saved text: {path}")


def draw_contour_overlay(bitmap, contours, exterior_color=(0, 160, 0), hole_color=(220, 0, 0)):
    """
    Draw traced contours on top of a bitmap.

    Exteriors and holes get distinct colors. Returns an RGB image.
    """
    overlay = cv2.cvtColor(bitmap, cv2.COLOR_RGBA2RGB)

    for contour in contours:
        if len(contour.points) >= 2:
            pts = np.round(np.array(contour.points)).astype(np.int32)
            cv2.polylines(overlay, [pts], isClosed=True, color=exterior_color, thickness=1)
        for hole in contour.holes:
            if len(hole) >= 2:
                pts = np.round(np.array(hole)).astype(np.int32)
                cv2.polylines(overlay, [pts], isClosed=True, color=hole_color, thickness=1)

    return overlay


class DebugArtifactWriter:
    """
    Helper class to manage debug artifact writing for one trace run.

    Each stage writes into <out_dir>/debug/<stage_name>/.
    """

    def __init__(self, out_dir, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.enabled = enabled
        self.max_edge = max_edge

    def get_stage_dir(self, stage_name):
        """Get the debug directory for a stage, creating it if needed."""
        stage_dir = os.path.join(self.out_dir, "debug", stage_name)
        ensure_dir(stage_dir)
        return stage_dir

    def save_image(self, img, stage_name, filename):
        """Save an image artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_image(img, path, max_edge=self.max_edge)

    def save_json(self, data, stage_name, filename):
        """Save a JSON artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_json(data, path)

    def save_text(self, content, stage_name, filename):
        """Save a text artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_text(content, path)
