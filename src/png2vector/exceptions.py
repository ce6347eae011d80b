"""
Error taxonomy for png2vector.

Every error carries a machine-readable code so callers can surface a single
structured error to the user.
"""


class Png2VectorError(Exception):
    """Base exception for all png2vector errors."""

    code = "PROCESSING_ERROR"

    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)


class DecodeError(Png2VectorError):
    """Input bitmap is malformed or cannot be decoded."""

    code = "DECODE_FAILED"


class InvalidRequestError(Png2VectorError):
    """Request parameters are out of range or malformed."""

    code = "INVALID_REQUEST"


class ProcessingError(Png2VectorError):
    """Unexpected failure inside a pipeline stage."""

    code = "PROCESSING_ERROR"

    def __init__(self, stage, reason):
        self.stage = stage
        self.reason = reason
        super().__init__("Internal processing error", details=f"{stage}: {reason}")


class GeometryError(Png2VectorError):
    """Errors in per-polygon geometry handling."""

    code = "GEOMETRY_ERROR"


class DegeneratePolygonError(GeometryError):
    """Polygon has too few points or no area. The polygon is dropped."""

    code = "DEGENERATE_POLYGON"


class RepairError(GeometryError):
    """Self-intersection repair failed. The unrepaired polygon is kept."""

    code = "REPAIR_FAILED"


class AIPreprocessingError(Png2VectorError):
    """Edge-detection model unavailable or inference failed."""

    code = "AI_UNAVAILABLE"
