from __future__ import annotations

from typing import TYPE_CHECKING

from model.layers import Layer
from model.records import Category, ModuleInfo, Severity, Violation
from report.console import render_modules, render_scan, render_violations
from report.json_report import build_report, report_status, write_report
from utils import load_json

if TYPE_CHECKING:
    from pathlib import Path


def _violation(rule_id: str, severity: Severity, location: str | None = None) -> Violation:
    return Violation(
        rule_id=rule_id,
        severity=severity,
        category=Category.STRUCTURE,
        message=f"{rule_id} message",
        location=location,
        suggested_fix=f"fix {rule_id}",
    )


def test_report_status_derivation() -> None:
    assert report_status([]) == "PASSED"
    assert report_status([_violation("I-1", Severity.INFO)]) == "PASSED"
    assert report_status([_violation("W-1", Severity.WARNING)]) == "PASSED_WITH_WARNINGS"
    assert (
        report_status([_violation("W-1", Severity.WARNING), _violation("E-1", Severity.ERROR)])
        == "FAILED"
    )


def test_build_report_fields_and_order() -> None:
    violations = [
        _violation("SS-006", Severity.ERROR, "/repo/text-processor-common"),
        _violation("NM-001", Severity.WARNING),
    ]

    report = build_report(violations, timestamp="2024-01-01T00:00:00Z")

    assert list(report) == ["timestamp", "totalIssues", "summary", "status", "results"]
    assert report["totalIssues"] == 2
    assert report["summary"] == {"errors": 1, "warnings": 1, "info": 0}
    assert report["status"] == "FAILED"
    assert report["results"] == [
        {
            "ruleId": "SS-006",
            "severity": "ERROR",
            "message": "SS-006 message",
            "location": "/repo/text-processor-common",
        },
        {"ruleId": "NM-001", "severity": "WARNING", "message": "NM-001 message"},
    ]


def test_write_report_keeps_field_order(tmp_path: Path) -> None:
    path = tmp_path / "out" / "report.json"

    write_report(path, [_violation("DP-004", Severity.ERROR)])

    loaded = load_json(path)
    assert list(loaded) == ["timestamp", "totalIssues", "summary", "status", "results"]
    assert loaded["timestamp"].endswith("Z")
    assert list(loaded["results"][0]) == ["ruleId", "severity", "message"]


def test_console_groups_violations_by_severity() -> None:
    lines = render_violations(
        [
            _violation("NM-001", Severity.WARNING),
            _violation("SS-006", Severity.ERROR, "/repo/x-common"),
        ]
    )

    assert lines == [
        "ERRORS:",
        "  [SS-006] SS-006 message",
        "      Location: /repo/x-common",
        "      Fix: fix SS-006",
        "WARNINGS:",
        "  [NM-001] NM-001 message",
        "      Fix: fix NM-001",
    ]
    assert render_violations([]) == ["No violations found."]


def test_module_table_marks_completeness_and_compliance(tmp_path: Path) -> None:
    modules = [
        ModuleInfo(artifact_id="shop-api", path=tmp_path / "shop-api", layer=Layer.CONTRACTS),
        ModuleInfo(artifact_id="shop-core", path=tmp_path / "shop-core", layer=Layer.IMPLEMENTATION),
        ModuleInfo(artifact_id="cart-api", path=tmp_path / "cart-api", layer=Layer.CONTRACTS),
    ]
    flagged = Violation(
        rule_id="SS-002",
        severity=Severity.ERROR,
        category=Category.STRUCTURE,
        message="missing core",
        modules=("cart-api",),
    )

    lines = render_modules(modules, [flagged])

    assert lines[0].split() == ["COMPONENT", "LAYERS", "COMPLETE", "COMPLIANT"]
    assert lines[2].split() == ["shop", "api,core", "yes", "yes"]
    assert lines[3].split() == ["cart", "api", "no", "no"]
    assert render_modules([], []) == ["No layered modules found."]


def test_render_scan_summary_line() -> None:
    text = render_scan([], [_violation("E-1", Severity.ERROR), _violation("W-1", Severity.WARNING)])

    assert text.splitlines()[0] == "Layered module structure"
    assert text.splitlines()[-1] == "0 module(s), 2 violation(s): 1 error(s), 1 warning(s)"
