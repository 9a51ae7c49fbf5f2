"""Source file classification into target layers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from model.layers import Layer

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

_NOISE = re.compile(
    r'"""[\s\S]*?"""'  # text blocks
    r"|//[^\n]*"
    r"|/\*[\s\S]*?\*/"
    r'|"(?:\\.|[^"\\\n])*"'
    r"|'(?:\\.|[^'\\\n])*'"
)
_MODIFIERS = r"(?:(?:public|protected|private|abstract|final|static|sealed|non-sealed|strictfp)\s+)*"
_DECLARATION = re.compile(
    rf"\b(?P<modifiers>{_MODIFIERS})"
    r"(?P<kind>@\s*interface|class|interface|enum|record)\s+(?P<name>[A-Za-z_$][\w$]*)"
)


@dataclass(frozen=True)
class Classification:
    layer: Layer
    type_name: str | None
    kind: str | None
    reason: str


def strip_noise(source: str) -> str:
    """Blank out comments and string/char literals, keeping line structure."""
    return _NOISE.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), source)


def find_declaration(source: str) -> tuple[str, str, bool] | None:
    """Return ``(kind, name, is_public)`` of the first type declaration."""
    match = _DECLARATION.search(strip_noise(source))
    if match is None:
        return None
    kind = "annotation" if match.group("kind").startswith("@") else match.group("kind")
    return kind, match.group("name"), "public" in match.group("modifiers").split()


def classify_text(
    source: str,
    *,
    file_stem: str | None = None,
    contract_suffixes: Iterable[str] = (),
) -> Classification:
    """Decide the target layer for one source file's text.

    Predicates run in order and the first match wins: public interface or
    annotation type, public enum, public record, a type name ending in a
    contract suffix. Everything else is implementation.
    """
    declaration = find_declaration(source)
    kind, name, is_public = declaration if declaration else (None, file_stem, False)

    if is_public and kind in {"interface", "annotation"}:
        return Classification(Layer.CONTRACTS, name, kind, f"public {kind}")
    if is_public and kind == "enum":
        return Classification(Layer.CONTRACTS, name, kind, "public enum")
    if is_public and kind == "record":
        return Classification(Layer.CONTRACTS, name, kind, "public record")

    if name:
        for suffix in contract_suffixes:
            if name.endswith(suffix):
                return Classification(
                    Layer.CONTRACTS, name, kind, f"type name ends with '{suffix}'"
                )

    return Classification(Layer.IMPLEMENTATION, name, kind, "implementation type")


def classify_source(path: Path, *, contract_suffixes: Iterable[str] = ()) -> Classification:
    """Read and classify one source file. Raises OSError if unreadable."""
    source = path.read_text(encoding="utf-8", errors="replace")
    return classify_text(
        source,
        file_stem=path.stem,
        contract_suffixes=contract_suffixes,
    )


__all__ = ["Classification", "classify_source", "classify_text", "find_declaration"]
