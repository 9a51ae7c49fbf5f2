"""Machine-readable scan report."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from model.records import Severity
from utils import utc_timestamp, write_json

if TYPE_CHECKING:
    from pathlib import Path

    from model.records import Violation

ReportStatus = Literal["FAILED", "PASSED_WITH_WARNINGS", "PASSED"]


def report_status(violations: list[Violation]) -> ReportStatus:
    """FAILED on any error, PASSED_WITH_WARNINGS on any warning, else PASSED."""
    severities = {violation.severity for violation in violations}
    if Severity.ERROR in severities:
        return "FAILED"
    if Severity.WARNING in severities:
        return "PASSED_WITH_WARNINGS"
    return "PASSED"


def build_report(violations: list[Violation], *, timestamp: str | None = None) -> dict[str, Any]:
    results: list[dict[str, Any]] = []
    for violation in violations:
        entry: dict[str, Any] = {
            "ruleId": violation.rule_id,
            "severity": violation.severity.value.upper(),
            "message": violation.message,
        }
        if violation.location:
            entry["location"] = violation.location
        results.append(entry)

    def count(severity: Severity) -> int:
        return sum(1 for violation in violations if violation.severity is severity)

    return {
        "timestamp": timestamp or utc_timestamp(),
        "totalIssues": len(violations),
        "summary": {
            "errors": count(Severity.ERROR),
            "warnings": count(Severity.WARNING),
            "info": count(Severity.INFO),
        },
        "status": report_status(violations),
        "results": results,
    }


def write_report(path: Path, violations: list[Violation]) -> dict[str, Any]:
    """Write the JSON report, keeping the documented field order."""
    report = build_report(violations)
    write_json(path, report, sort_keys=False)
    return report


__all__ = ["build_report", "report_status", "write_report"]
