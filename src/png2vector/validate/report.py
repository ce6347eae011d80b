"""
Validation report generation for png2vector.

Writes a JSON report with every check result plus a plain-text summary.
"""

import os

from png2vector.io.save_artifacts import save_json, save_text
from png2vector.tracer import get_tracer, trace


def format_check_result(check):
    """Format a single check result for display."""
    status = "PASS" if check.passed else "FAIL"
    severity = check.severity.value.upper()
    return f"[{status}][{severity}] {check.rule_id}: {check.message}"


def format_summary(report, title="png2vector Validation Report"):
    lines = [title, "=" * 40, ""]

    failed = [c for c in report.checks if not c.passed]

    lines.append(f"Total checks: {len(report.checks)}")
    lines.append(f"Passed: {len(report.checks) - len(failed)}")
    lines.append(f"Failed: {len(failed)}")
    lines.append("")

    if failed:
        lines.append("ISSUES:")
        lines.append("-" * 40)
        for check in failed:
            lines.append(format_check_result(check))
        lines.append("")

    lines.append("ALL CHECKS:")
    lines.append("-" * 40)
    for check in report.checks:
        lines.append(format_check_result(check))

    return "\n".join(lines) + "\n"


@trace(label="generate_report")
def generate_report(report, out_dir):
    """
    Write validation report files.

    Creates:
    - validation_report.json: full check results
    - validation_summary.txt: human-readable summary

    Returns (report_path, summary_path).
    """
    tracer = get_tracer()

    report_path = os.path.join(out_dir, "validation_report.json")
    save_json({
        "is_valid": report.is_valid,
        "error_count": report.error_count,
        "warning_count": report.warning_count,
        "checks": [c.model_dump(mode="json") for c in report.checks],
    }, report_path)

    summary_path = os.path.join(out_dir, "validation_summary.txt")
    save_text(format_summary(report), summary_path)

    tracer.event(f"Report saved: {len(report.checks)} checks, {report.error_count} errors")

    return report_path, summary_path
