"""
Pydantic data models for png2vector.

Contours, polygons, request options and the response contract all flow
through these validated models. Points are [x, y] float pairs in pixel space.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Severity levels for validation checks."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"


class Contour(BaseModel):
    """A traced boundary ring plus the hole rings it owns."""
    points: List[List[float]] = Field(default_factory=list)
    holes: List[List[List[float]]] = Field(default_factory=list)
    is_hole: bool = False
    parent: int = -1

    model_config = ConfigDict(extra="forbid")


class Polygon(BaseModel):
    """Exterior ring plus hole rings, each ring as a list of [x, y] points."""
    exterior: List[List[float]] = Field(default_factory=list)
    holes: List[List[List[float]]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def rings(self):
        """Exterior followed by every hole."""
        return [self.exterior] + list(self.holes)

    @property
    def node_count(self):
        return sum(len(ring) for ring in self.rings)


class ProcessingOptions(BaseModel):
    """Per-run parameters derived from the fidelity knob."""
    epsilon: float = Field(..., gt=0.0)
    area_min: float = Field(..., ge=1.0)
    threshold: int = Field(128, ge=0, le=255)
    use_ai: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)


class _CamelModel(BaseModel):
    """Base for models exchanged with callers using camelCase keys."""
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TraceRequest(_CamelModel):
    """User-facing trace parameters."""
    fidelity: float = Field(50.0, ge=0.0, le=100.0)
    white_fill: bool = False
    threshold: Optional[int] = Field(None, ge=0, le=255)
    despeckle_area_min: Optional[float] = Field(None, ge=0.0)
    use_ai: bool = False


class StageTimings(_CamelModel):
    """Per-stage wall time in milliseconds."""
    preprocessing: float = 0.0
    ai_processing: float = 0.0
    vectorization: float = 0.0
    export: float = 0.0
    total: float = 0.0


class TraceMetrics(_CamelModel):
    """Counts and timings reported alongside the vector output."""
    node_count: int = 0
    polygon_count: int = 0
    simplification: float = 0.0
    timings: StageTimings = Field(default_factory=StageTimings)


class TraceResponse(_CamelModel):
    """SVG markup, base64 DXF and metrics for one trace run."""
    svg_markup: str
    cad_exchange: str
    metrics: TraceMetrics


class TraceOutcome(BaseModel):
    """Everything one trace run produced, for callers that need more than the response."""
    response: TraceResponse
    polygons: List[Polygon] = Field(default_factory=list)
    options: ProcessingOptions
    dxf: str

    model_config = ConfigDict(extra="forbid")


class ErrorResponse(_CamelModel):
    """Structured error returned instead of a TraceResponse."""
    error: str
    code: str
    details: Optional[str] = None


class CheckResult(BaseModel):
    """Result of a single validation check."""
    rule_id: str
    severity: Severity
    passed: bool
    message: str
    evidence: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ValidationReport(BaseModel):
    """Collection of validation check results."""
    checks: List[CheckResult] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def has_errors(self):
        """Check if any errors exist."""
        return any(c.severity == Severity.ERROR and not c.passed for c in self.checks)

    @property
    def is_valid(self):
        return not self.has_errors

    @property
    def errors(self):
        """Messages of failed error-level checks."""
        return [c.message for c in self.checks if c.severity == Severity.ERROR and not c.passed]

    @property
    def warnings(self):
        """Messages of failed warning-level checks."""
        return [c.message for c in self.checks if c.severity == Severity.WARN and not c.passed]

    @property
    def error_count(self):
        """Count of failed error-level checks."""
        return len(self.errors)

    @property
    def warning_count(self):
        """Count of failed warning-level checks."""
        return len(self.warnings)


def count_nodes(polygons):
    """Total number of vertices over every ring of every polygon."""
    return sum(polygon.node_count for polygon in polygons)
