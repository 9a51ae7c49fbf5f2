"""Value types shared by the scanner, rule engine and fixers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from model.layers import UTILITY_SUFFIXES, Layer

ModuleKind = Literal["leaf", "aggregator", "unknown"]
DetectionKind = Literal[
    "required-layer",
    "forbidden-layer",
    "forbidden-suffix",
    "name-pattern",
    "aggregator-packaging",
    "layer-dependency",
    "no-cycles",
]
RuleScope = Literal["module", "component", "project"]
FixAction = Literal["move", "delete", "update", "none"]


class Severity(str, Enum):
    """Violation severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Category(str, Enum):
    """Rule category."""

    STRUCTURE = "structure"
    DEPENDENCY = "dependency"
    NAMING = "naming"


class ModuleInfo(BaseModel):
    """A module discovered from a build descriptor."""

    model_config = ConfigDict(frozen=True)

    artifact_id: str
    group_id: str | None = None
    path: Path
    layer: Layer | None = None
    kind: ModuleKind = "leaf"
    packaging: str = "jar"
    dependencies: tuple[str, ...] = ()
    declared_modules: tuple[str, ...] = ()
    parent_artifact_id: str | None = None

    @property
    def component(self) -> str:
        """Artifact id with its layer or utility suffix removed (the component base name)."""
        lowered = self.artifact_id.lower()
        if self.layer is not None:
            suffix = f"-{self.layer.suffix}"
            if lowered.endswith(suffix):
                return self.artifact_id[: -len(suffix)]
        for suffix in UTILITY_SUFFIXES:
            if lowered.endswith(suffix):
                return self.artifact_id[: -len(suffix)]
        return self.artifact_id

    @property
    def is_utility(self) -> bool:
        return self.artifact_id.lower().endswith(UTILITY_SUFFIXES)

    @property
    def full_name(self) -> str:
        if self.group_id:
            return f"{self.group_id}:{self.artifact_id}"
        return self.artifact_id

    @property
    def is_aggregator(self) -> bool:
        return self.kind == "aggregator"


class DetectionSpec(BaseModel):
    """Declarative description of what a rule detects."""

    model_config = ConfigDict(frozen=True)

    kind: DetectionKind
    scope: RuleScope = "module"
    layer: Layer | None = None
    pattern: str | None = None
    variant: str | None = None


class RuleDefinition(BaseModel):
    """A rule loaded from configuration. Never mutated after loading."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: Category = Category.STRUCTURE
    severity: Severity = Severity.ERROR
    enabled: bool = True
    applies_to: tuple[str, ...] = Field(
        default=(),
        description="Module kinds or layer labels the rule targets (empty = all)",
    )
    detection: DetectionSpec
    reason: str = ""
    fix: str = ""

    def applies_to_module(self, module: ModuleInfo) -> bool:
        """Evaluate the applicability predicate for one module."""
        if not self.applies_to:
            return True
        if module.kind in self.applies_to:
            return True
        return module.layer is not None and module.layer.label in self.applies_to


class Violation(BaseModel):
    """A detected deviation from a rule."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: Severity
    category: Category
    message: str
    location: str | None = None
    suggested_fix: str | None = None
    modules: tuple[str, ...] = ()


class FixStatus(str, Enum):
    """Outcome of one remediation action."""

    PLANNED = "planned"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FixResult:
    status: FixStatus
    violation: Violation
    description: str
    action: FixAction = "none"
    source: Path | None = None
    destination: Path | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is FixStatus.FAILED

    @classmethod
    def planned(
        cls,
        violation: Violation,
        description: str,
        *,
        action: FixAction,
        source: Path | None = None,
        destination: Path | None = None,
    ) -> FixResult:
        return cls(FixStatus.PLANNED, violation, description, action, source, destination)

    @classmethod
    def applied(
        cls,
        violation: Violation,
        description: str,
        *,
        action: FixAction,
        source: Path | None = None,
        destination: Path | None = None,
    ) -> FixResult:
        return cls(FixStatus.APPLIED, violation, description, action, source, destination)

    @classmethod
    def failure(
        cls,
        violation: Violation,
        description: str,
        *,
        error: str,
        action: FixAction = "none",
        source: Path | None = None,
        destination: Path | None = None,
    ) -> FixResult:
        return cls(
            FixStatus.FAILED,
            violation,
            description,
            action,
            source,
            destination,
            error,
        )

    @classmethod
    def skipped(
        cls,
        violation: Violation,
        description: str,
        *,
        action: FixAction = "none",
        source: Path | None = None,
    ) -> FixResult:
        return cls(FixStatus.SKIPPED, violation, description, action, source)


__all__ = [
    "Category",
    "DetectionKind",
    "DetectionSpec",
    "FixAction",
    "FixResult",
    "FixStatus",
    "ModuleInfo",
    "ModuleKind",
    "RuleDefinition",
    "RuleScope",
    "Severity",
    "Violation",
]
