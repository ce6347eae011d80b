"""
Optional neural edge detection for png2vector.

An EdgeDetector turns a photo-like bitmap into a binary edge bitmap before
the deterministic pipeline runs. The ONNX implementation runs a HED-style
model on CPU through onnxruntime, which is an optional dependency
(install the "ai" extra).
"""

import os
from abc import ABC, abstractmethod

import cv2
import numpy as np

from png2vector.exceptions import AIPreprocessingError
from png2vector.tracer import get_tracer, trace


class EdgeDetector(ABC):
    """Abstract interface for edge-detection backends."""

    @abstractmethod
    def detect(self, bitmap):
        """
        Produce a binary edge bitmap of the same size as the input.

        Args:
            bitmap: RGBA uint8 array

        Returns:
            RGBA bitmap with black edges on white, alpha 255

        Raises:
            AIPreprocessingError if the backend is unavailable or fails
        """
        pass

    @abstractmethod
    def is_available(self):
        """Check if this detector is ready to use."""
        pass

    def close(self):
        """Release any held resources."""


class OnnxEdgeDetector(EdgeDetector):
    """
    HED edge detector backed by an onnxruntime InferenceSession.

    The session is created on first use and released by close().
    """

    def __init__(self, model_path, edge_threshold=0.5):
        self.model_path = model_path
        self.edge_threshold = edge_threshold
        self._session = None

    def is_available(self):
        return os.path.exists(self.model_path)

    def _get_session(self):
        if self._session is not None:
            return self._session

        if not os.path.exists(self.model_path):
            raise AIPreprocessingError(
                "Edge detection model not available",
                details=f"model not found at {self.model_path}",
            )

        try:
            import onnxruntime as ort
        except ImportError as e:
            raise AIPreprocessingError("onnxruntime is not installed", details=str(e)) from e

        tracer = get_tracer()
        with tracer.span("load_model", module="edge_ai", path=self.model_path):
            try:
                options = ort.SessionOptions()
                options.log_severity_level = 3  # errors only
                self._session = ort.InferenceSession(
                    str(self.model_path),
                    sess_options=options,
                    providers=["CPUExecutionProvider"],
                )
            except Exception as e:
                raise AIPreprocessingError("Failed to load edge detection model", details=str(e)) from e

        return self._session

    @staticmethod
    def to_input_tensor(bitmap):
        """RGBA (H, W, 4) uint8 -> float32 tensor [1, 3, H, W] scaled to 0..1."""
        rgb = bitmap[..., :3].astype(np.float32) / 255.0
        return np.ascontiguousarray(rgb.transpose(2, 0, 1)[np.newaxis])

    def to_bitmap(self, edge_map, width, height):
        """Threshold a [1, C, H, W] probability map into a black-on-white RGBA bitmap."""
        if edge_map.ndim != 4:
            raise AIPreprocessingError("Invalid edge detection output", details=f"shape {edge_map.shape}")

        probabilities = edge_map[0, 0].astype(np.float32)
        if probabilities.shape != (height, width):
            probabilities = cv2.resize(probabilities, (width, height), interpolation=cv2.INTER_LINEAR)

        gray = np.where(probabilities > self.edge_threshold, 0, 255).astype(np.uint8)
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGBA)

    @trace(label="detect_edges")
    def detect(self, bitmap):
        tracer = get_tracer()
        session = self._get_session()

        height, width = bitmap.shape[:2]
        input_name = session.get_inputs()[0].name

        try:
            outputs = session.run(None, {input_name: self.to_input_tensor(bitmap)})
        except Exception as e:
            raise AIPreprocessingError("Edge detection inference failed", details=str(e)) from e

        edges = self.to_bitmap(np.asarray(outputs[0]), width, height)
        tracer.event(f"Edge map: {int(np.count_nonzero(edges[..., 0] == 0))} edge pixels")
        return edges

    def close(self):
        if self._session is not None:
            get_tracer().event("Released edge detection session")
        self._session = None


def get_edge_detector(config):
    """Create the edge detector described by config.ai."""
    return OnnxEdgeDetector(
        model_path=config.ai.model_path,
        edge_threshold=config.ai.edge_threshold,
    )
