"""Console and JSON reporting."""

from report.console import render_remediation, render_scan
from report.json_report import build_report, report_status, write_report

__all__ = [
    "build_report",
    "render_remediation",
    "render_scan",
    "report_status",
    "write_report",
]
