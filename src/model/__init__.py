"""Value types for modules, rules, violations and fix results."""

from model.errors import (
    FixFailureError,
    InvalidInputError,
    RuleParseError,
    ScopeViolationError,
    StratifyError,
)
from model.layers import Layer, layer_for_artifact
from model.records import (
    Category,
    DetectionSpec,
    FixResult,
    FixStatus,
    ModuleInfo,
    RuleDefinition,
    Severity,
    Violation,
)

__all__ = [
    "Category",
    "DetectionSpec",
    "FixFailureError",
    "FixResult",
    "FixStatus",
    "InvalidInputError",
    "Layer",
    "ModuleInfo",
    "RuleDefinition",
    "RuleParseError",
    "ScopeViolationError",
    "Severity",
    "StratifyError",
    "Violation",
    "layer_for_artifact",
]
