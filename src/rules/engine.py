"""Rule evaluation against scanned modules."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from graph.algos import build_dependency_graph, find_first_cycle
from model.records import Category, ModuleInfo, RuleDefinition, Severity, Violation
from rules.config import ArchitectureConfig
from scan.modules import group_by_component

if TYPE_CHECKING:
    from collections.abc import Callable

    from model.layers import Layer

logger = logging.getLogger(__name__)


def _violation(
    rule: RuleDefinition,
    message: str,
    *,
    location: str | None,
    modules: tuple[str, ...] = (),
    category: Category | None = None,
    severity: Severity | None = None,
) -> Violation:
    return Violation(
        rule_id=rule.id,
        severity=severity or rule.severity,
        category=category or rule.category,
        message=message,
        location=location,
        suggested_fix=rule.fix or None,
        modules=modules,
    )


def _provides(module: ModuleInfo, layer: Layer) -> bool:
    # Unrecognized suffixes rank as entry points but do not count as a facade.
    return module.layer is layer and module.artifact_id.lower().endswith(f"-{layer.suffix}")


def _check_required_layer(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    layer = rule.detection.layer
    if layer is None:
        logger.warning("Rule %s names no layer; skipped", rule.id)
        return []
    violations: list[Violation] = []
    for component, members in group_by_component(modules).items():
        applicable = [module for module in members if rule.applies_to_module(module)]
        if not applicable:
            continue
        if any(_provides(module, layer) for module in members):
            continue
        location = members[0].path.parent
        violations.append(
            _violation(
                rule,
                f"Component '{component}' has no {layer.label} module "
                f"('{component}-{layer.suffix}')",
                location=str(location),
                modules=tuple(module.artifact_id for module in members),
            )
        )
    return violations


def _check_forbidden_layer(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    layer = rule.detection.layer
    if rule.detection.variant == "no-foundation" and architecture.allow_foundation_layer:
        return []
    return [
        _violation(
            rule,
            f"Module '{module.artifact_id}' uses the {layer.label} layer, "
            "which this architecture does not allow",
            location=str(module.path),
            modules=(module.artifact_id,),
        )
        for module in modules
        if layer is not None and module.layer is layer and rule.applies_to_module(module)
    ]


def _check_forbidden_suffix(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    pattern = re.compile(rule.detection.pattern or "")
    violations: list[Violation] = []
    for module in modules:
        if not rule.applies_to_module(module):
            continue
        match = pattern.search(module.artifact_id)
        if match is None:
            continue
        violations.append(
            _violation(
                rule,
                f"Module '{module.artifact_id}' uses the forbidden suffix "
                f"'{match.group(0)}'",
                location=str(module.path),
                modules=(module.artifact_id,),
            )
        )
    return violations


def _check_name_pattern(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    pattern = re.compile(rule.detection.pattern or "")
    return [
        _violation(
            rule,
            f"Module '{module.artifact_id}' does not match {pattern.pattern}",
            location=str(module.path),
            modules=(module.artifact_id,),
        )
        for module in modules
        if rule.applies_to_module(module) and not pattern.search(module.artifact_id)
    ]


def _check_aggregator_packaging(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    return [
        _violation(
            rule,
            f"Aggregator '{module.artifact_id}' has packaging "
            f"'{module.packaging}', expected 'pom'",
            location=str(module.path),
            modules=(module.artifact_id,),
        )
        for module in modules
        if module.is_aggregator
        and rule.applies_to_module(module)
        and module.packaging != "pom"
    ]


def _check_layer_dependency(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    by_artifact = {module.artifact_id: module for module in modules}
    violations: list[Violation] = []
    for module in modules:
        if module.layer is None or not rule.applies_to_module(module):
            continue
        for dep_id in module.dependencies:
            dependency = by_artifact.get(dep_id)
            if dependency is None or dependency.layer is None:
                continue
            if dependency.artifact_id == module.artifact_id:
                message = f"Module '{module.artifact_id}' depends on itself"
            elif module.layer.can_depend_on(dependency.layer):
                continue
            else:
                message = (
                    f"Module '{module.artifact_id}' ({module.layer.label}) must not "
                    f"depend on '{dependency.artifact_id}' ({dependency.layer.label})"
                )
            violations.append(
                _violation(
                    rule,
                    message,
                    location=str(module.path),
                    modules=(module.artifact_id, dependency.artifact_id),
                    category=Category.DEPENDENCY,
                    severity=Severity.ERROR,
                )
            )
    return violations


def _check_no_cycles(
    rule: RuleDefinition,
    modules: list[ModuleInfo],
    architecture: ArchitectureConfig,
) -> list[Violation]:
    cycle = find_first_cycle(build_dependency_graph(modules))
    if cycle is None:
        return []
    rendered = " -> ".join([*cycle, cycle[0]])
    first = next(module for module in modules if module.artifact_id == cycle[0])
    return [
        _violation(
            rule,
            f"Circular dependency: {rendered}",
            location=str(first.path),
            modules=tuple(cycle),
        )
    ]


_DETECTORS: dict[
    str,
    Callable[[RuleDefinition, list[ModuleInfo], ArchitectureConfig], list[Violation]],
] = {
    "required-layer": _check_required_layer,
    "forbidden-layer": _check_forbidden_layer,
    "forbidden-suffix": _check_forbidden_suffix,
    "name-pattern": _check_name_pattern,
    "aggregator-packaging": _check_aggregator_packaging,
    "layer-dependency": _check_layer_dependency,
    "no-cycles": _check_no_cycles,
}


def validate(
    modules: list[ModuleInfo],
    rules: list[RuleDefinition],
    *,
    architecture: ArchitectureConfig | None = None,
) -> list[Violation]:
    """Evaluate every enabled rule against the scanned modules.

    Pure and deterministic: violations are ordered by rule, then by the
    component or module order of the scan.
    """
    architecture = architecture or ArchitectureConfig()
    violations: list[Violation] = []
    for rule in rules:
        if not rule.enabled:
            logger.debug("Rule %s disabled", rule.id)
            continue
        found = _DETECTORS[rule.detection.kind](rule, modules, architecture)
        logger.debug("Rule %s produced %d violation(s)", rule.id, len(found))
        violations.extend(found)
    return violations


__all__ = ["validate"]
