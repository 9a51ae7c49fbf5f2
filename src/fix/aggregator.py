"""Aggregator (parent) module detection and scope boundaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from model.errors import InvalidInputError
from scan.descriptors import POM_FILENAME, parse_pom
from scan.modules import AGGREGATOR_SUFFIXES

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_DEPTH = 5


@dataclass(frozen=True)
class AggregatorValidation:
    valid: bool
    artifact_id: str | None = None
    child_module_paths: tuple[Path, ...] = field(default=())
    error: str | None = None


class AggregatorValidator:
    """Answers aggregator questions for one remediation run.

    Results are cached by resolved module root, so the validator must not
    outlive the run that created it: descriptors edited by a fix are not
    re-read.
    """

    def __init__(self) -> None:
        self._cache: dict[Path, AggregatorValidation] = {}

    def validate_aggregator(self, module_root: Path) -> AggregatorValidation:
        """Check that ``module_root`` is a pure aggregator.

        Valid only if its own descriptor has ``pom`` packaging, an artifact
        id ending in ``-aggregator`` or ``-parent``, and declares at least
        one child module.
        """
        root = Path(module_root).resolve()
        cached = self._cache.get(root)
        if cached is not None:
            return cached

        result = self._validate(root)
        self._cache[root] = result
        return result

    def _validate(self, root: Path) -> AggregatorValidation:
        pom = root / POM_FILENAME
        if not pom.is_file():
            return AggregatorValidation(False, error=f"No {POM_FILENAME} in {root}")

        try:
            descriptor = parse_pom(pom)
        except InvalidInputError as exc:
            return AggregatorValidation(False, error=str(exc))

        artifact_id = descriptor.artifact_id
        children = tuple((root / name).resolve() for name in descriptor.modules)
        if descriptor.packaging != "pom":
            error = f"packaging is '{descriptor.packaging}', expected 'pom'"
        elif artifact_id is None or not artifact_id.lower().endswith(AGGREGATOR_SUFFIXES):
            error = f"artifactId '{artifact_id}' must end with -aggregator or -parent"
        elif not children:
            error = "no <modules> declared"
        else:
            return AggregatorValidation(True, artifact_id, children)

        logger.debug("%s is not an aggregator: %s", root, error)
        return AggregatorValidation(False, artifact_id, children, error)

    def is_aggregator_module(self, module_root: Path) -> bool:
        return self.validate_aggregator(module_root).valid

    def is_within_aggregator_boundary(self, path: Path, aggregator_root: Path) -> bool:
        """True if ``path`` is the aggregator itself or lies in a declared child."""
        validation = self.validate_aggregator(aggregator_root)
        if not validation.valid:
            return False

        root = Path(aggregator_root).resolve()
        target = Path(path).resolve()
        if target == root or target.parent == root and target.name == POM_FILENAME:
            return True
        return any(
            target == child or child in target.parents
            for child in validation.child_module_paths
        )

    def find_aggregator_ancestor(
        self, module_root: Path, max_levels: int = DEFAULT_SEARCH_DEPTH
    ) -> Path | None:
        """Nearest aggregator at or above ``module_root``, within ``max_levels``."""
        current: Path | None = Path(module_root).resolve()
        for _ in range(max_levels):
            if current is None:
                break
            if self.is_aggregator_module(current):
                return current
            parent = current.parent
            current = parent if parent != current else None
        return None


__all__ = ["AggregatorValidation", "AggregatorValidator"]
