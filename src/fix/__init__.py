"""Automatic remediation of structure violations."""

from fix.aggregator import AggregatorValidation, AggregatorValidator
from fix.base import FixContext, Fixer, FixerConfig
from fix.classify import Classification, classify_source, classify_text
from fix.orchestrator import RemediationOutcome, Remediator, remediate
from fix.registry import FixerRegistry, default_registry
from fix.relocate import LayerRelocationFixer

__all__ = [
    "AggregatorValidation",
    "AggregatorValidator",
    "Classification",
    "FixContext",
    "Fixer",
    "FixerConfig",
    "FixerRegistry",
    "LayerRelocationFixer",
    "RemediationOutcome",
    "Remediator",
    "classify_source",
    "classify_text",
    "default_registry",
    "remediate",
]
