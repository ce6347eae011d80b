"""
Command-line interface for png2vector.

Provides commands for tracing a PNG into SVG + DXF, validating DXF files
and writing a default configuration.
"""

import argparse
import os
import sys

from png2vector.config import load_config, save_default_config
from png2vector.tracer import configure_tracer, get_tracer

TRACE_LEVELS = ["ERROR", "WARN", "INFO", "DEBUG"]


def build_parser():
    parser = argparse.ArgumentParser(
        prog="png2vector",
        description="png2vector: Convert black-and-white PNG drawings to CAD-ready SVG and DXF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Trace command
    trace_parser = subparsers.add_parser("trace", help="Trace a PNG into SVG and DXF")
    trace_parser.add_argument("--input", "-i", required=True, help="Input PNG file")
    trace_parser.add_argument("--out", "-o", required=True, help="Output directory")
    trace_parser.add_argument("--fidelity", type=float, default=None,
                              help="Detail level 0-100 (higher keeps more nodes)")
    trace_parser.add_argument("--white-fill", action="store_true", help="Add white fill layer")
    trace_parser.add_argument("--threshold", type=int, default=None, help="Binarization threshold 0-255")
    trace_parser.add_argument("--despeckle-area-min", type=float, default=None,
                              help="Minimum speckle/polygon area in pixels")
    trace_parser.add_argument("--use-ai", action="store_true", help="Run neural edge detection first")
    trace_parser.add_argument("--minimal-dxf", action="store_true",
                              help="Write only the ENTITIES section of the DXF")
    trace_parser.add_argument("--config", "-c", default=None, help="Path to YAML configuration file")
    trace_parser.add_argument("--debug", action="store_true", help="Enable debug artifact generation")
    trace_parser.add_argument("--report", action="store_true", help="Write validation report files")
    trace_parser.add_argument("--trace", action="store_true", help="Enable runtime tracing")
    trace_parser.add_argument("--trace-level", default="INFO", choices=TRACE_LEVELS, help="Trace log level")
    trace_parser.add_argument("--trace-file", default=None, help="Path to write trace logs")
    trace_parser.add_argument("--trace-json", action="store_true", help="Enable JSON trace output")

    # Validate command
    validate_parser = subparsers.add_parser("validate-dxf", help="Check a DXF file for CAD compatibility")
    validate_parser.add_argument("file", help="DXF file to validate")

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="png2vector_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "trace":
        return handle_trace(args)
    elif args.command == "validate-dxf":
        return handle_validate_dxf(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def _build_request(args, config):
    from pydantic import ValidationError

    from png2vector.exceptions import InvalidRequestError
    from png2vector.models import TraceRequest

    values = {
        "fidelity": config.request.default_fidelity if args.fidelity is None else args.fidelity,
        "white_fill": args.white_fill,
        "threshold": args.threshold,
        "despeckle_area_min": args.despeckle_area_min,
        "use_ai": args.use_ai,
    }
    try:
        return TraceRequest(**values)
    except ValidationError as e:
        raise InvalidRequestError("Invalid trace request", details=str(e)) from e


def handle_trace(args):
    """Handle the trace command."""
    # Warnings (repair and AI fallbacks) are always shown
    configure_tracer(
        enabled=True,
        level=args.trace_level if args.trace else "WARN",
        file_path=args.trace_file,
        json_output=args.trace_json,
    )

    tracer = get_tracer()

    from png2vector.exceptions import InvalidRequestError
    from png2vector.io.decode import load_png
    from png2vector.io.save_artifacts import ensure_dir, save_json, save_text
    from png2vector.pipeline import Vectorizer, error_response

    try:
        config = load_config(args.config)
        if args.minimal_dxf:
            config.export.minimal_dxf = True
        if args.debug:
            config.debug.enabled = True
            config.debug.out_dir = args.out

        request = _build_request(args, config)

        if not os.path.exists(args.input):
            raise InvalidRequestError("Input file not found", details=args.input)

        ensure_dir(args.out)

        with tracer.span("cli_trace", module="cli"):
            _, bitmap = load_png(args.input)
            with Vectorizer(config) as vectorizer:
                outcome = vectorizer.run(bitmap, request)

        stem = os.path.splitext(os.path.basename(args.input))[0]
        svg_path = os.path.join(args.out, f"{stem}.svg")
        dxf_path = os.path.join(args.out, f"{stem}.dxf")
        save_text(outcome.response.svg_markup, svg_path)
        save_text(outcome.dxf, dxf_path)
        save_json(outcome.response.metrics, os.path.join(args.out, "metrics.json"))

        metrics = outcome.response.metrics
        print("\nTrace completed successfully.")
        print(f"  Polygons: {metrics.polygon_count}")
        print(f"  Nodes: {metrics.node_count}")
        print(f"  Epsilon: {metrics.simplification:.3f}")
        print(f"  Total time: {metrics.timings.total:.0f}ms")
        print(f"\nOutputs saved to: {args.out}/")
        print(f"  - {stem}.svg")
        print(f"  - {stem}.dxf")
        print("  - metrics.json")

        if args.report:
            report = _write_report(outcome, args.out)
            print("  - validation_report.json")
            if report.has_errors:
                print("\n[!] Validation errors detected. Review validation_report.json")
                return 1

        return 0

    except Exception as e:
        tracer.event(f"Trace failed: {e}", level="ERROR")
        print(error_response(e).model_dump_json(by_alias=True, indent=2))
        return 1


def _write_report(outcome, out_dir):
    from png2vector.models import ValidationReport
    from png2vector.validate.report import generate_report
    from png2vector.validate.rules import check_polygons, validate_dxf_output

    checks = validate_dxf_output(outcome.dxf).checks + check_polygons(outcome.polygons).checks
    report = ValidationReport(checks=checks)
    generate_report(report, out_dir)
    return report


def handle_validate_dxf(args):
    """Handle the validate-dxf command."""
    from png2vector.validate.report import format_summary
    from png2vector.validate.rules import validate_dxf_output

    if not os.path.exists(args.file):
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return 1

    with open(args.file, "r", encoding="utf-8", errors="replace") as f:
        content = f.read()

    report = validate_dxf_output(content)
    print(format_summary(report, title=f"DXF Validation: {os.path.basename(args.file)}"))

    return 0 if report.is_valid else 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
