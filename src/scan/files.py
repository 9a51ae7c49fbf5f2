"""Directory and source file filtering for module scans."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from pathlib import Path


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _iter_gitignore_files(root: Path) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    gitignore_paths = [root / ".gitignore"]
    gitignore_paths.extend(root.rglob(".gitignore"))
    unique_paths = {
        path for path in gitignore_paths if path.is_file() and not path.is_symlink()
    }
    return sorted(unique_paths, key=lambda p: p.relative_to(root).as_posix())


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def should_skip_dir(
    path: Path,
    root: Path,
    gitignore_matches: Callable[[str], bool] | None,
    exclude_patterns: Iterable[str] | None,
) -> bool:
    """Check whether the scanner should skip a directory and everything below it."""
    if path.name.startswith(".") or path.is_symlink():
        return True

    if not _is_within_root(path, root):
        return True

    rel_path_str = path.relative_to(root).as_posix()

    # Directory-only patterns ("target/") match the contents, not the bare path.
    if gitignore_matches is not None and (
        gitignore_matches(str(path)) or gitignore_matches(str(path / "_"))
    ):
        return True

    return bool(exclude_patterns) and any(
        fnmatch(rel_path_str, pat) for pat in exclude_patterns or ()
    )


def iter_source_files(
    module_root: Path,
    source_roots: Iterable[str],
    extensions: Iterable[str],
) -> Iterator[Path]:
    """Yield regular source files under a module's source roots.

    Files are sorted by their path relative to ``module_root`` so that
    relocation plans are deterministic.
    """
    suffixes = tuple(extensions)
    matched: list[Path] = []
    for source_root in source_roots:
        base = module_root / source_root
        if not base.is_dir():
            continue
        matched.extend(
            path
            for path in base.rglob("*")
            if path.is_file()
            and not path.is_symlink()
            and path.name.endswith(suffixes)
            and _is_within_root(path, module_root)
        )

    matched.sort(key=lambda p: p.relative_to(module_root).as_posix())
    yield from matched


__all__ = ["iter_source_files", "should_skip_dir"]
