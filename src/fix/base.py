"""Fixer base class and the context fixers run in."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING

from fix.aggregator import AggregatorValidator
from model.errors import StratifyError
from model.records import FixResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from backup.transaction import BackupTransaction
    from model.records import ModuleInfo, Violation
    from rules.config import StratifyConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixerConfig:
    """Static metadata for one fixer. Lower priority runs first."""

    name: str
    priority: int = 100
    description: str = ""
    enabled: bool = True
    tags: tuple[str, ...] = ()


@dataclass
class FixContext:
    """Everything a fixer may read or write during one remediation run."""

    root: Path
    modules: list[ModuleInfo]
    config: StratifyConfig
    aggregators: AggregatorValidator = field(default_factory=AggregatorValidator)
    transaction: BackupTransaction | None = None

    def module_at(self, location: str | Path | None) -> ModuleInfo | None:
        if location is None:
            return None
        target = Path(location).resolve()
        for module in self.modules:
            if module.path.resolve() == target:
                return module
        return None

    def require_transaction(self) -> BackupTransaction:
        if self.transaction is None:
            msg = "Fixes can only be applied inside a backup transaction"
            raise RuntimeError(msg)
        return self.transaction


class Fixer:
    """Base class for fixers.

    Subclasses list the rule ids they handle in ``rule_ids`` and implement
    :meth:`_plan` and :meth:`_apply`. Both return one result per action.
    """

    rule_ids: frozenset[str] = frozenset()

    def __init__(self, config: FixerConfig) -> None:
        self.config = config

    @property
    def name(self) -> str:
        """Fixer name for logging and identification."""
        return self.config.name

    @property
    def priority(self) -> int:
        return self.config.priority

    def can_fix(self, violation: Violation) -> bool:
        return self.config.enabled and violation.rule_id in self.rule_ids

    def preview(self, violation: Violation, context: FixContext) -> list[FixResult]:
        """Describe the actions :meth:`fix` would take. Never mutates anything."""
        return self._guarded(self._plan, violation, context)

    def fix(self, violation: Violation, context: FixContext) -> list[FixResult]:
        """Carry out the fix through the context's transaction."""
        return self._guarded(self._apply, violation, context)

    def _guarded(
        self,
        step: Callable[[Violation, FixContext], list[FixResult]],
        violation: Violation,
        context: FixContext,
    ) -> list[FixResult]:
        try:
            return step(violation, context)
        except StratifyError as exc:
            logger.debug("%s failed on %s: %s", self.name, violation.rule_id, exc)
            return [_failed(violation, exc)]
        except Exception as exc:
            logger.exception("%s raised while handling %s", self.name, violation.rule_id)
            return [_failed(violation, exc)]

    def _plan(self, violation: Violation, context: FixContext) -> list[FixResult]:
        raise NotImplementedError

    def _apply(self, violation: Violation, context: FixContext) -> list[FixResult]:
        raise NotImplementedError


def _failed(violation: Violation, exc: Exception) -> FixResult:
    return FixResult.failure(
        violation,
        str(exc),
        error=type(exc).__name__,
        source=getattr(exc, "path", None),
    )


__all__ = ["FixContext", "Fixer", "FixerConfig"]
