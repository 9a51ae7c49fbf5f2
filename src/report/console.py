"""Plain-text rendering of scan and remediation results."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from model.layers import Layer
from model.records import FixStatus, Severity
from scan.modules import group_by_component
from utils import relative_posix

if TYPE_CHECKING:
    from fix.orchestrator import RemediationOutcome
    from model.records import ModuleInfo, Violation

RULE = "=" * 60
REQUIRED_LAYERS = (Layer.CONTRACTS, Layer.IMPLEMENTATION)


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    widths = [len(header) for header in headers]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row, strict=True)]

    def line(cells: list[str]) -> str:
        padded = (cell.ljust(width) for cell, width in zip(cells, widths, strict=True))
        return "  ".join(padded).rstrip()

    return [line(headers), line(["-" * width for width in widths])] + [line(row) for row in rows]


def render_modules(modules: list[ModuleInfo], violations: list[Violation]) -> list[str]:
    """One row per component: layers present, completeness and compliance."""
    flagged = {artifact for violation in violations for artifact in violation.modules}
    rows: list[list[str]] = []
    for component, members in group_by_component(modules).items():
        layers = sorted(
            (module.layer for module in members if module.layer is not None),
            key=lambda layer: layer.level,
        )
        complete = all(layer in layers for layer in REQUIRED_LAYERS)
        compliant = not any(module.artifact_id in flagged for module in members)
        rows.append(
            [
                component,
                ",".join(layer.suffix for layer in layers),
                "yes" if complete else "no",
                "yes" if compliant else "no",
            ]
        )
    if not rows:
        return ["No layered modules found."]
    return _table(["COMPONENT", "LAYERS", "COMPLETE", "COMPLIANT"], rows)


def render_violations(violations: list[Violation]) -> list[str]:
    if not violations:
        return ["No violations found."]

    lines: list[str] = []
    for severity in (Severity.ERROR, Severity.WARNING, Severity.INFO):
        group = [violation for violation in violations if violation.severity is severity]
        if not group:
            continue
        lines.append(f"{severity.value.upper()}S:")
        for violation in group:
            lines.append(f"  [{violation.rule_id}] {violation.message}")
            if violation.location:
                lines.append(f"      Location: {violation.location}")
            if violation.suggested_fix:
                lines.append(f"      Fix: {violation.suggested_fix}")
    return lines


def render_scan(modules: list[ModuleInfo], violations: list[Violation]) -> str:
    errors = sum(1 for violation in violations if violation.severity is Severity.ERROR)
    warnings = sum(1 for violation in violations if violation.severity is Severity.WARNING)
    lines = [
        "Layered module structure",
        RULE,
        *render_modules(modules, violations),
        "",
        *render_violations(violations),
        RULE,
        f"{len(modules)} module(s), {len(violations)} violation(s): "
        f"{errors} error(s), {warnings} warning(s)",
    ]
    return "\n".join(lines) + "\n"


def render_remediation(outcome: RemediationOutcome, root: Path) -> str:
    mode = "Applied" if outcome.applied else "Planned"
    lines = [f"Remediation ({'apply' if outcome.applied else 'preview'})", RULE]
    if not outcome.results:
        lines.append("Nothing to remediate.")
    for result in outcome.results:
        lines.append(
            f"  {result.status.value.upper():<8} "
            f"[{result.violation.rule_id}] {result.description}"
        )
        if result.error:
            lines.append(f"      Error: {result.error}")
        elif result.status is FixStatus.SKIPPED and result.source is None:
            location = result.violation.location
            if location:
                lines.append(f"      Location: {relative_posix(Path(location), root)}")
    for failure in outcome.rollback_failures:
        lines.append(
            f"  ROLLBACK could not restore {relative_posix(failure.target, root)}: "
            f"{failure.message}"
        )
    lines.append(RULE)
    status = FixStatus.APPLIED if outcome.applied else FixStatus.PLANNED
    summary = (
        f"{mode}: {outcome.count(status)}, failed: {outcome.count(FixStatus.FAILED)}, "
        f"skipped: {outcome.count(FixStatus.SKIPPED)}"
    )
    if outcome.rollback_failures:
        summary += (
            f" (rolled back, {len(outcome.rollback_failures)} file(s) could not be restored)"
        )
    elif outcome.rolled_back:
        summary += " (rolled back, no changes kept)"
    lines.append(summary)
    return "\n".join(lines) + "\n"


__all__ = ["render_modules", "render_remediation", "render_scan", "render_violations"]
