"""Scan, validate and dispatch violations to fixers."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from backup.manager import BackupManager
from fix.aggregator import AggregatorValidator
from fix.base import FixContext
from fix.registry import FixerRegistry, default_registry
from model.records import FixResult, FixStatus, ModuleInfo, Violation
from rules.config import StratifyConfig, load_config
from rules.engine import validate
from rules.loader import load_rules
from scan.modules import scan_modules

if TYPE_CHECKING:
    from backup.manager import RestoreResult
    from fix.base import Fixer

logger = logging.getLogger(__name__)

NO_FIXER_MESSAGE = "No fixer available"


@dataclass
class RemediationOutcome:
    """Everything one remediation run produced."""

    applied: bool
    modules: list[ModuleInfo] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    results: list[FixResult] = field(default_factory=list)
    rolled_back: bool = False
    rollback_results: list[RestoreResult] = field(default_factory=list)
    transaction_id: str | None = None

    @property
    def failed(self) -> list[FixResult]:
        return [result for result in self.results if result.failed]

    @property
    def rollback_failures(self) -> list[RestoreResult]:
        """Files the rollback could not put back; the tree is only partly restored."""
        return [result for result in self.rollback_results if not result.success]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.rollback_failures

    def count(self, status: FixStatus) -> int:
        return sum(1 for result in self.results if result.status is status)


class Remediator:
    """Runs the fixers of a registry against one project."""

    def __init__(
        self,
        root: Path,
        *,
        config: StratifyConfig | None = None,
        registry: FixerRegistry | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.config = config if config is not None else load_config(self.root)
        self.registry = registry if registry is not None else default_registry()

    def _dispatch_order(
        self, violations: list[Violation]
    ) -> list[tuple[Violation, Fixer | None]]:
        """Pair violations with fixers: ascending priority, then discovery order."""
        paired = [(violation, self.registry.find(violation)) for violation in violations]
        return sorted(paired, key=lambda pair: _priority(pair[1]))

    def run(self, *, apply: bool = False) -> RemediationOutcome:
        modules = scan_modules(
            self.root,
            exclude_patterns=self.config.exclude,
            nested_gitignore=self.config.nested_gitignore,
        )
        loader = load_rules(self.root, self.config)
        violations = validate(
            modules, loader.definitions(), architecture=self.config.architecture
        )
        outcome = RemediationOutcome(applied=apply, modules=modules, violations=violations)
        context = FixContext(
            root=self.root,
            modules=modules,
            config=self.config,
            aggregators=AggregatorValidator(),
        )

        if not apply:
            for violation, fixer in self._dispatch_order(violations):
                outcome.results.extend(self._preview(violation, fixer, context))
            return outcome

        manager = BackupManager(self.root, self.config.state_dir)
        with manager.begin_transaction() as transaction:
            context.transaction = transaction
            outcome.transaction_id = transaction.id
            for violation, fixer in self._dispatch_order(violations):
                if fixer is None:
                    outcome.results.append(_no_fixer(violation))
                    continue
                logger.debug("Applying %s to %s", fixer.name, violation.rule_id)
                outcome.results.extend(fixer.fix(violation, context))

            if outcome.failed:
                logger.warning(
                    "%d fix(es) failed; rolling back transaction %s",
                    len(outcome.failed),
                    transaction.id,
                )
                outcome.rollback_results = transaction.rollback()
                outcome.rolled_back = True
            else:
                transaction.commit()
        return outcome

    def _preview(
        self, violation: Violation, fixer: Fixer | None, context: FixContext
    ) -> list[FixResult]:
        if fixer is None:
            return [_no_fixer(violation)]
        logger.debug("Previewing %s for %s", fixer.name, violation.rule_id)
        return fixer.preview(violation, context)


def _priority(fixer: Fixer | None) -> float:
    return fixer.priority if fixer is not None else math.inf


def _no_fixer(violation: Violation) -> FixResult:
    return FixResult.skipped(violation, NO_FIXER_MESSAGE)


def remediate(
    root: Path,
    *,
    apply: bool = False,
    config: StratifyConfig | None = None,
    registry: FixerRegistry | None = None,
) -> RemediationOutcome:
    """Preview (default) or apply every available fix for ``root``."""
    return Remediator(root, config=config, registry=registry).run(apply=apply)


__all__ = ["NO_FIXER_MESSAGE", "RemediationOutcome", "Remediator", "remediate"]
