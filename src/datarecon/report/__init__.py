"""
Reconciliation reports: generation and console/JSON/CSV rendering.
"""

from .formatters import (
    export_report_csv,
    export_report_json,
    format_report_console,
    load_report_json,
    render_report,
)
from .generator import Status, generate_report

__all__ = [
    "Status",
    "generate_report",
    "format_report_console",
    "export_report_json",
    "export_report_csv",
    "load_report_json",
    "render_report",
]
