"""
Report rendering: console text, JSON and CSV.
"""

import csv
import io
import json
from typing import Any


def export_report_json(report: dict[str, Any], output_path: str) -> None:
    """
    Export report to JSON file

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, default=str)


def load_report_json(input_path: str) -> dict[str, Any]:
    with open(input_path, encoding="utf-8") as f:
        return json.load(f)


def export_report_csv(report: dict[str, Any], output_path: str) -> None:
    """
    Export the report's id-level findings to CSV

    One row per sampled differing entry, then one per sampled target-only
    and source-only id.
    """
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        _write_csv_rows(report, f)


def format_report_console(report: dict[str, Any]) -> str:
    """
    Format report for console output

    Args:
        report: Report dictionary

    Returns:
        Formatted string for console display
    """
    counts = report["counts"]
    lines = []

    lines.append("=" * 80)
    lines.append("RECONCILIATION REPORT")
    lines.append("=" * 80)
    lines.append(f"Status: {report['status']}")
    if report.get("run_id"):
        lines.append(f"Run: {report['run_id']}")
    lines.append(f"Timestamp: {report['timestamp']}")
    if report.get("source") or report.get("target"):
        lines.append(f"Source: {report.get('source', '')}")
        lines.append(f"Target: {report.get('target', '')}")
    lines.append(f"Total: {counts['total']:,}")
    lines.append(f"Match: {counts['match']:,}")
    lines.append(f"Source only: {counts['source_only']:,}")
    lines.append(f"Target only: {counts['target_only']:,}")
    lines.append(f"Differing: {counts['differing']:,}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 80)
    lines.append(report["summary"])
    lines.append("")

    if report.get("differences"):
        lines.append("DIFFERENCES")
        lines.append("-" * 80)
        for entry in report["differences"]:
            lines.append(f"id: {entry['id']}")
            lines.append(f"  source: {entry.get('source_digest')}")
            lines.append(f"  target: {entry.get('target_digest')}")
        if report.get("not_shown"):
            lines.append(f"{report['not_shown']} more not shown")
        lines.append("")

    if report.get("failed_batches"):
        lines.append("BATCH FAILURES")
        lines.append("-" * 80)
        for failure in report["failed_batches"]:
            lines.append(
                f"{failure['side']} batch {failure['batch_index']} "
                f"(offset {failure['offset']}, {failure['size']} records): {failure['error']}"
            )
        lines.append(f"Unresolved ids: {report.get('unresolved_count', 0)}")
        lines.append("")

    if report.get("recommendations"):
        lines.append("RECOMMENDATIONS")
        lines.append("-" * 80)
        for i, rec in enumerate(report["recommendations"], 1):
            lines.append(f"{i}. {rec}")
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)


def render_report(report: dict[str, Any], output_format: str = "console") -> str:
    """Render a report as a string in 'console', 'json' or 'csv' form."""
    if output_format == "console":
        return format_report_console(report)
    if output_format == "json":
        return json.dumps(report, indent=2, default=str)
    if output_format == "csv":
        buffer = io.StringIO()
        _write_csv_rows(report, buffer)
        return buffer.getvalue()
    raise ValueError(f"Unknown report format: {output_format!r}")


def _write_csv_rows(report: dict[str, Any], stream) -> None:
    writer = csv.writer(stream)
    writer.writerow(["id", "classification", "source_digest", "target_digest"])
    for entry in report.get("differences", []):
        writer.writerow([
            entry.get("id"),
            "differing",
            entry.get("source_digest") or "",
            entry.get("target_digest") or "",
        ])
    for record_id in report.get("target_only_sample", []):
        writer.writerow([record_id, "target_only", "", ""])
    for record_id in report.get("source_only_sample", []):
        writer.writerow([record_id, "source_only", "", ""])
