"""Module discovery over a multi-module source tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from model.errors import InvalidInputError
from model.layers import Layer, layer_for_artifact
from model.records import ModuleInfo
from scan.descriptors import find_descriptor, parse_descriptor
from scan.files import _build_gitignore_matcher, should_skip_dir

if TYPE_CHECKING:
    from collections.abc import Callable

    from scan.descriptors import Descriptor

logger = logging.getLogger(__name__)

AGGREGATOR_SUFFIXES = ("-parent", "-aggregator")


def _to_module(directory: Path, descriptor: Descriptor) -> ModuleInfo:
    artifact_id = descriptor.artifact_id
    if artifact_id is None:
        return ModuleInfo(
            artifact_id=directory.name,
            group_id=descriptor.group_id,
            path=directory,
            kind="unknown",
            packaging=descriptor.packaging,
            dependencies=descriptor.dependencies,
            declared_modules=descriptor.modules,
            parent_artifact_id=descriptor.parent_artifact_id,
        )

    is_aggregator = descriptor.packaging == "pom" or artifact_id.lower().endswith(
        AGGREGATOR_SUFFIXES
    )
    layer: Layer | None = None
    if not is_aggregator:
        layer = layer_for_artifact(artifact_id) or Layer.ENTRY_POINT

    return ModuleInfo(
        artifact_id=artifact_id,
        group_id=descriptor.group_id,
        path=directory,
        layer=layer,
        kind="aggregator" if is_aggregator else "leaf",
        packaging=descriptor.packaging,
        dependencies=descriptor.dependencies,
        declared_modules=descriptor.modules,
        parent_artifact_id=descriptor.parent_artifact_id,
    )


def _list_subdirs(directory: Path) -> list[Path]:
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        msg = f"Cannot read directory {directory}: {exc}"
        raise InvalidInputError(msg, path=directory) from exc
    return sorted((entry for entry in entries if entry.is_dir()), key=lambda p: p.name)


def _walk(
    directory: Path,
    root: Path,
    gitignore_matches: Callable[[str], bool] | None,
    exclude_patterns: list[str] | None,
    modules: list[ModuleInfo],
) -> None:
    descriptor_path = find_descriptor(directory)
    if descriptor_path is not None:
        module = _to_module(directory, parse_descriptor(descriptor_path))
        logger.debug(
            "Found module %s (%s) at %s",
            module.artifact_id,
            module.layer.label if module.layer else module.kind,
            directory,
        )
        modules.append(module)

    for child in _list_subdirs(directory):
        if should_skip_dir(child, root, gitignore_matches, exclude_patterns):
            continue
        _walk(child, root, gitignore_matches, exclude_patterns, modules)


def scan_modules(
    root: Path,
    *,
    exclude_patterns: list[str] | None = None,
    nested_gitignore: bool = False,
) -> list[ModuleInfo]:
    """Discover every module below ``root``.

    A directory holding a ``pom.xml`` (or ``build.gradle``) is a module; the
    walk continues below it so nested modules are found too. Hidden and
    symlinked directories, gitignored directories and directories matching
    ``exclude_patterns`` are skipped.

    Returns:
        Modules in traversal order: sorted names at each level, parents
        before their children.

    Raises:
        InvalidInputError: If ``root`` is not a directory, a directory cannot
            be listed, or a descriptor is malformed.
    """
    root = Path(root)
    if not root.is_dir():
        msg = f"Not a directory: {root}"
        raise InvalidInputError(msg, path=root)

    gitignore_matches = _build_gitignore_matcher(
        root,
        nested_gitignore=nested_gitignore,
    )

    modules: list[ModuleInfo] = []
    _walk(root, root, gitignore_matches, exclude_patterns, modules)
    return modules


def group_by_component(modules: list[ModuleInfo]) -> dict[str, list[ModuleInfo]]:
    """Group leaf modules by component, ordered by first appearance."""
    components: dict[str, list[ModuleInfo]] = {}
    for module in modules:
        if module.kind != "leaf":
            continue
        components.setdefault(module.component, []).append(module)
    return components


def find_sibling(
    modules: list[ModuleInfo], module: ModuleInfo, layer: Layer
) -> ModuleInfo | None:
    """Return the module of ``layer`` that shares ``module``'s component."""
    for candidate in modules:
        if (
            candidate.kind == "leaf"
            and candidate.layer is layer
            and candidate.component == module.component
            and not candidate.is_utility
        ):
            return candidate
    return None


__all__ = [
    "AGGREGATOR_SUFFIXES",
    "find_sibling",
    "group_by_component",
    "scan_modules",
]
