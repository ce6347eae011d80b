"""
Pipeline orchestrator for png2vector.

Runs one trace request end to end:

    decode -> optional edge detection -> preprocess -> extract contours
    -> simplify -> validate/repair -> cleanup -> SVG + DXF -> metrics

The Vectorizer owns the optional edge detector for its whole lifetime and
releases it when closed; use it as a context manager.
"""

import base64
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

import numpy as np
from pydantic import ValidationError

from png2vector.config import PipelineConfig
from png2vector.exceptions import (
    AIPreprocessingError, InvalidRequestError, Png2VectorError, ProcessingError,
)
from png2vector.export.dxf import generate_dxf, generate_minimal_dxf
from png2vector.export.svg_markup import generate_svg
from png2vector.geometry.validate import cleanup_geometry, validate_geometry
from png2vector.io.decode import decode_png, ensure_bitmap
from png2vector.io.save_artifacts import DebugArtifactWriter
from png2vector.models import (
    ErrorResponse, Polygon, ProcessingOptions, StageTimings, TraceMetrics,
    TraceOutcome, TraceRequest, TraceResponse, count_nodes,
)
from png2vector.preprocess.edge_ai import get_edge_detector
from png2vector.preprocess.raster import preprocess_raster
from png2vector.tracer import get_tracer, trace
from png2vector.vectorize.contour import extract_contours
from png2vector.vectorize.simplify import simplify_contours


def _coerce_request(request, config):
    """Accept a TraceRequest, a camelCase/snake_case dict, or None."""
    if request is None:
        return TraceRequest(fidelity=config.request.default_fidelity)
    if isinstance(request, TraceRequest):
        return request
    try:
        return TraceRequest.model_validate(request)
    except ValidationError as e:
        raise InvalidRequestError("Invalid trace request", details=str(e)) from e


def derive_processing_options(request, config=None):
    """
    Map the fidelity knob and explicit overrides onto ProcessingOptions.

    Higher fidelity gives a smaller epsilon (more nodes) and a smaller
    despeckle area (more small shapes survive).
    """
    config = config or PipelineConfig()
    request = _coerce_request(request, config)

    factor = request.fidelity / 100
    epsilon = max(config.simplify.min_epsilon, config.simplify.base_epsilon * (1 - factor * 0.8))
    area_min = max(
        config.cleanup.min_area_floor,
        request.despeckle_area_min or config.cleanup.base_area_min * (1 - factor * 0.9),
    )
    threshold = request.threshold or config.request.default_threshold

    try:
        return ProcessingOptions(
            epsilon=epsilon,
            area_min=area_min,
            threshold=threshold,
            use_ai=bool(request.use_ai),
        )
    except ValidationError as e:
        raise InvalidRequestError("Invalid processing options", details=str(e)) from e


class Vectorizer:
    """
    Reusable raster-to-vector engine.

    Args:
        config: PipelineConfig, defaults used when None
        repairer: PolygonRepairer for self-intersection repair
        edge_detector: EdgeDetector; when None one is created from
            config.ai on the first request that asks for it
    """

    def __init__(self, config=None, repairer=None, edge_detector=None):
        self.config = config or PipelineConfig()
        self.repairer = repairer
        self._edge_detector = edge_detector
        self._owns_detector = edge_detector is None
        self._pending_detection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        """
        Release the edge detector, if one was acquired.

        If a timed-out detection is still running, the release happens on
        its worker thread once detect returns.
        """
        detector = self._edge_detector
        if detector is None:
            return
        if self._owns_detector:
            self._edge_detector = None

        pending, self._pending_detection = self._pending_detection, None
        if pending is not None and not pending.done():
            get_tracer().event("Edge detection still running, releasing detector when it returns")
            pending.add_done_callback(lambda _: detector.close())
            return

        detector.close()

    @property
    def edge_detector(self):
        if self._edge_detector is None:
            self._edge_detector = get_edge_detector(self.config)
        return self._edge_detector

    def _detect_edges(self, bitmap):
        """
        Run edge detection bounded by config.ai.timeout_seconds.

        Any failure is logged as a warning and the input bitmap is returned.
        A timed-out call cannot be interrupted: its worker thread runs until
        detect returns and interpreter exit waits for it. Until then later
        requests skip edge detection rather than share the detector.
        """
        tracer = get_tracer()

        if self._pending_detection is not None:
            if not self._pending_detection.done():
                tracer.warn("Previous edge detection still running, using original image")
                return bitmap
            self._pending_detection = None

        detector = self.edge_detector

        if not detector.is_available():
            tracer.warn("AI preprocessing unavailable, using original image")
            return bitmap

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(detector.detect, bitmap)
            edges = future.result(timeout=self.config.ai.timeout_seconds)
            return ensure_bitmap(edges)
        except FuturesTimeoutError:
            self._pending_detection = future
            tracer.warn(f"AI preprocessing timed out after {self.config.ai.timeout_seconds}s, using original image")
        except AIPreprocessingError as e:
            tracer.warn(f"AI preprocessing failed, using original image: {e.message}", details=e.details)
        except Exception as e:
            tracer.warn(f"AI preprocessing failed, using original image: {type(e).__name__}: {e}")
        finally:
            executor.shutdown(wait=False)

        return bitmap

    def _debug_writer(self):
        debug = self.config.debug
        if debug.enabled and debug.out_dir:
            return DebugArtifactWriter(debug.out_dir, enabled=True, max_edge=debug.max_edge_scale)
        return None

    @trace(label="trace_bitmap")
    def run(self, bitmap, request=None):
        """
        Trace a decoded bitmap.

        Returns TraceOutcome carrying the response plus the final polygons
        and the DXF text.

        Raises DecodeError or InvalidRequestError for bad input and
        ProcessingError for any unexpected stage failure.
        """
        tracer = get_tracer()
        total_start = time.perf_counter()
        timings = {}

        request = _coerce_request(request, self.config)
        options = derive_processing_options(request, self.config)
        bitmap = ensure_bitmap(bitmap)
        height, width = bitmap.shape[:2]
        debug_writer = self._debug_writer()

        tracer.event(
            f"Options: epsilon={options.epsilon:.3f} area_min={options.area_min:.1f} "
            f"threshold={options.threshold} use_ai={options.use_ai}"
        )

        stage = "preprocessing"
        try:
            source = bitmap
            if options.use_ai:
                stage = "ai_processing"
                with tracer.timed("ai_stage", timings, "ai_processing", module="pipeline"):
                    source = self._detect_edges(bitmap)

            stage = "preprocessing"
            with tracer.timed("preprocess", timings, "preprocessing", module="pipeline"):
                binary = preprocess_raster(source, options, self.config, debug_writer)

            stage = "vectorization"
            with tracer.timed("vectorize", timings, "vectorization", module="pipeline"):
                contours = extract_contours(binary, debug_writer)
                simplified = simplify_contours(contours, options.epsilon)

                polygons = [Polygon(exterior=c.points, holes=c.holes) for c in simplified]
                del contours, simplified

                polygons = validate_geometry(
                    polygons,
                    repairer=self.repairer,
                    tolerance=self.config.cleanup.point_tolerance,
                )
                polygons = cleanup_geometry(
                    polygons,
                    options.area_min,
                    grid_size=self.config.cleanup.grid_size,
                    hole_area_ratio=self.config.cleanup.hole_area_ratio,
                )

            stage = "export"
            with tracer.timed("export", timings, "export", module="pipeline"):
                svg = generate_svg(
                    polygons, width, height,
                    white_fill=request.white_fill,
                    stroke_color=self.config.export.stroke_color,
                    stroke_width=self.config.export.stroke_width,
                    fill_color=self.config.export.fill_color,
                    precision=self.config.export.coordinate_precision,
                )
                if self.config.export.minimal_dxf:
                    dxf = generate_minimal_dxf(polygons, white_fill=request.white_fill)
                else:
                    dxf = generate_dxf(polygons, width, height, white_fill=request.white_fill)
                cad_exchange = base64.b64encode(dxf.encode("utf-8")).decode("ascii")

        except Png2VectorError:
            raise
        except Exception as e:
            tracer.event(f"Stage {stage} failed: {type(e).__name__}: {e}", level="ERROR")
            raise ProcessingError(stage, f"{type(e).__name__}: {e}") from e

        timings["total"] = (time.perf_counter() - total_start) * 1000

        metrics = TraceMetrics(
            node_count=count_nodes(polygons),
            polygon_count=len(polygons),
            simplification=options.epsilon,
            timings=StageTimings(**timings),
        )

        tracer.event(
            f"Traced {metrics.polygon_count} polygons, {metrics.node_count} nodes "
            f"in {metrics.timings.total:.0f}ms"
        )

        if debug_writer:
            from png2vector.validate.rules import check_polygons
            debug_writer.save_json(check_polygons(polygons), "validation", "polygon_checks.json")
            debug_writer.save_json(metrics, "validation", "metrics.json")

        response = TraceResponse(svg_markup=svg, cad_exchange=cad_exchange, metrics=metrics)
        return TraceOutcome(response=response, polygons=polygons, options=options, dxf=dxf)

    def trace_bitmap(self, bitmap, request=None):
        """Trace a decoded RGBA bitmap and return the TraceResponse."""
        return self.run(bitmap, request).response

    def trace_png(self, data, request=None):
        """Decode PNG bytes and trace them."""
        return self.trace_bitmap(decode_png(data), request)


def trace_image(data, request=None, config=None):
    """
    One-shot helper: trace PNG bytes or a bitmap array with a scoped Vectorizer.
    """
    with Vectorizer(config) as vectorizer:
        if isinstance(data, np.ndarray):
            return vectorizer.trace_bitmap(data, request)
        return vectorizer.trace_png(data, request)


def error_response(exc):
    """Convert an exception into the structured ErrorResponse returned to callers."""
    if isinstance(exc, Png2VectorError):
        return ErrorResponse(error=exc.message, code=exc.code, details=exc.details)
    return ErrorResponse(
        error="Internal processing error",
        code=ProcessingError.code,
        details=f"{type(exc).__name__}: {exc}",
    )
