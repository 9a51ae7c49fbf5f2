"""Relocation of foundation and utility sources into their proper layers."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from fix.base import FixContext, Fixer, FixerConfig
from fix.classify import Classification, classify_source
from model.errors import FixFailureError, ScopeViolationError
from model.layers import Layer
from model.records import FixResult, ModuleInfo, Violation
from scan.descriptors import POM_FILENAME, find_descriptor, remove_module_declaration
from scan.files import iter_source_files
from scan.modules import find_sibling
from utils import relative_posix

if TYPE_CHECKING:
    from rules.config import RemediationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Move:
    source: Path
    destination: Path
    classification: Classification


@dataclass
class _Plan:
    module: ModuleInfo
    aggregator_root: Path
    moves: list[_Move] = field(default_factory=list)
    failures: list[FixResult] = field(default_factory=list)
    leftovers: list[Path] = field(default_factory=list)
    delete_module: bool = False
    declaration: str | None = None


class LayerRelocationFixer(Fixer):
    """Empties a forbidden ``-common`` or ``-util`` module into its layered siblings.

    Each source file of a ``-common`` module is classified and moved to the
    same relative path under the sibling module of its target layer. Sources
    of a utility module all go to the ``-core`` sibling. Once only the build
    descriptor is left, the module directory is deleted and its ``<module>``
    entry is dropped from the aggregator; any other file left behind keeps
    the module in place and is reported as a skipped result.
    """

    rule_ids = frozenset({"SS-006", "SS-007"})

    def __init__(self, config: FixerConfig | None = None) -> None:
        super().__init__(
            config
            or FixerConfig(
                name="layer-relocation",
                priority=10,
                description="Move foundation and utility sources into layered modules",
                tags=("structure", "relocation"),
            )
        )

    def _classify(
        self, module: ModuleInfo, source: Path, settings: RemediationConfig
    ) -> Classification:
        classification = classify_source(source, contract_suffixes=settings.contract_suffixes)
        if module.is_utility:
            return replace(classification, layer=Layer.IMPLEMENTATION, reason="utility type")
        return classification

    def _build_plan(self, violation: Violation, context: FixContext) -> _Plan:
        module = context.module_at(violation.location)
        if module is None:
            msg = f"No scanned module at {violation.location}"
            raise FixFailureError(msg)

        settings = context.config.remediation
        aggregator_root = context.aggregators.find_aggregator_ancestor(
            module.path, max_levels=settings.aggregator_search_depth
        )
        if aggregator_root is None:
            msg = f"No aggregator module found above {module.path}"
            raise ScopeViolationError(msg, path=module.path)

        plan = _Plan(module=module, aggregator_root=aggregator_root)
        self._require_boundary(context, module.path, aggregator_root)

        moved: set[Path] = set()
        for source in iter_source_files(
            module.path, settings.source_roots, settings.source_extensions
        ):
            classification = self._classify(module, source, settings)
            sibling = find_sibling(context.modules, module, classification.layer)
            if sibling is None:
                expected = f"{module.component}-{classification.layer.suffix}"
                plan.failures.append(
                    FixResult.failure(
                        violation,
                        f"Cannot move {relative_posix(source, context.root)}: "
                        f"missing sibling module '{expected}'",
                        error=FixFailureError.__name__,
                        action="move",
                        source=source,
                    )
                )
                continue

            destination = sibling.path / source.relative_to(module.path)
            self._require_boundary(context, destination, aggregator_root)
            if destination.exists():
                plan.failures.append(
                    FixResult.failure(
                        violation,
                        f"Destination already exists: "
                        f"{relative_posix(destination, context.root)}",
                        error=FixFailureError.__name__,
                        action="move",
                        source=source,
                        destination=destination,
                    )
                )
                continue

            plan.moves.append(_Move(source, destination, classification))
            moved.add(source.resolve())

        descriptor = find_descriptor(module.path)
        plan.leftovers = sorted(
            path
            for path in module.path.rglob("*")
            if (path.is_file() or path.is_symlink())
            and path.resolve() not in moved
            and path != descriptor
        )
        plan.delete_module = not plan.failures and not plan.leftovers

        aggregator = context.aggregators.validate_aggregator(aggregator_root)
        if module.path.resolve() in aggregator.child_module_paths:
            plan.declaration = relative_posix(module.path.resolve(), aggregator_root)
        return plan

    def _require_boundary(self, context: FixContext, path: Path, aggregator_root: Path) -> None:
        if not context.aggregators.is_within_aggregator_boundary(path, aggregator_root):
            msg = f"{path} is outside the aggregator boundary of {aggregator_root}"
            raise ScopeViolationError(msg, path=path)

    def _plan(self, violation: Violation, context: FixContext) -> list[FixResult]:
        plan = self._build_plan(violation, context)
        results = [
            FixResult.planned(
                violation,
                self._describe(move, context.root),
                action="move",
                source=move.source,
                destination=move.destination,
            )
            for move in plan.moves
        ]
        results.extend(plan.failures)
        if plan.delete_module:
            results.extend(self._planned_cleanup(plan, violation, context.root))
        elif not plan.failures:
            results.append(self._kept_module(plan, violation, context.root))
        return results

    def _kept_module(self, plan: _Plan, violation: Violation, root: Path) -> FixResult:
        """Skipped result for a module that still holds files nothing relocates."""
        remaining = ", ".join(relative_posix(path, root) for path in plan.leftovers)
        return FixResult.skipped(
            violation,
            f"Module not deleted: {len(plan.leftovers)} non-source file(s) remain: "
            f"{remaining}",
            action="delete",
            source=plan.module.path,
        )

    def _planned_cleanup(
        self, plan: _Plan, violation: Violation, root: Path
    ) -> list[FixResult]:
        results = [
            FixResult.planned(
                violation,
                f"Delete emptied module {relative_posix(plan.module.path, root)}",
                action="delete",
                source=plan.module.path,
            )
        ]
        if plan.declaration is not None:
            pom = plan.aggregator_root / POM_FILENAME
            results.append(
                FixResult.planned(
                    violation,
                    f"Remove <module>{plan.declaration}</module> from "
                    f"{relative_posix(pom, root)}",
                    action="update",
                    source=pom,
                )
            )
        return results

    def _describe(self, move: _Move, root: Path) -> str:
        return (
            f"Move {relative_posix(move.source, root)} -> "
            f"{relative_posix(move.destination, root)} ({move.classification.reason})"
        )

    def _apply(self, violation: Violation, context: FixContext) -> list[FixResult]:
        transaction = context.require_transaction()
        plan = self._build_plan(violation, context)
        if plan.failures:
            skipped = [
                FixResult.skipped(
                    violation,
                    f"Not applied: {self._describe(move, context.root)}",
                    action="move",
                    source=move.source,
                )
                for move in plan.moves
            ]
            return [*plan.failures, *skipped]

        results: list[FixResult] = []
        for move in plan.moves:
            self._ensure_dir(move.destination.parent, context)
            transaction.register_created(move.destination)
            transaction.backup(move.source)
            shutil.copy2(move.source, move.destination)
            move.source.unlink()
            logger.debug("Moved %s to %s", move.source, move.destination)
            results.append(
                FixResult.applied(
                    violation,
                    self._describe(move, context.root),
                    action="move",
                    source=move.source,
                    destination=move.destination,
                )
            )

        if plan.delete_module:
            results.extend(self._delete_module(plan, violation, context))
        else:
            results.append(self._kept_module(plan, violation, context.root))
        return results

    def _ensure_dir(self, directory: Path, context: FixContext) -> None:
        transaction = context.require_transaction()
        missing: list[Path] = []
        current = directory
        while not current.exists():
            missing.append(current)
            current = current.parent
        for path in reversed(missing):
            transaction.register_created(path)
            path.mkdir()

    def _delete_module(
        self, plan: _Plan, violation: Violation, context: FixContext
    ) -> list[FixResult]:
        transaction = context.require_transaction()
        module_path = plan.module.path
        directories = sorted(
            (path for path in module_path.rglob("*") if path.is_dir()),
            key=lambda p: len(p.parts),
        )
        for path in [module_path, *directories]:
            transaction.record_removed_dir(path)
        for path in module_path.rglob("*"):
            if path.is_file():
                transaction.backup(path)
        shutil.rmtree(module_path)
        logger.debug("Deleted module %s", module_path)

        results = [
            FixResult.applied(
                violation,
                f"Deleted emptied module {relative_posix(module_path, context.root)}",
                action="delete",
                source=module_path,
            )
        ]

        if plan.declaration is not None:
            pom = plan.aggregator_root / POM_FILENAME
            transaction.backup(pom)
            if remove_module_declaration(pom, plan.declaration):
                results.append(
                    FixResult.applied(
                        violation,
                        f"Removed <module>{plan.declaration}</module> from "
                        f"{relative_posix(pom, context.root)}",
                        action="update",
                        source=pom,
                    )
                )
        return results


__all__ = ["LayerRelocationFixer"]
