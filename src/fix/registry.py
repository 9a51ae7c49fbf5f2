"""Explicit registry of the available fixers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fix.relocate import LayerRelocationFixer

if TYPE_CHECKING:
    from fix.base import Fixer
    from model.records import Violation


class FixerRegistry:
    """Holds fixers in ascending priority; ties keep registration order."""

    def __init__(self, fixers: list[Fixer] | None = None) -> None:
        self._fixers: list[Fixer] = []
        for fixer in fixers or []:
            self.register(fixer)

    def register(self, fixer: Fixer) -> None:
        self._fixers.append(fixer)
        self._fixers.sort(key=lambda f: f.priority)

    def fixers(self) -> list[Fixer]:
        return list(self._fixers)

    def find(self, violation: Violation) -> Fixer | None:
        """First fixer, by priority, that can handle ``violation``."""
        for fixer in self._fixers:
            if fixer.can_fix(violation):
                return fixer
        return None

    def __len__(self) -> int:
        return len(self._fixers)


def default_registry() -> FixerRegistry:
    """Build the registry of fixers shipped with stratify."""
    return FixerRegistry([LayerRelocationFixer()])


__all__ = ["FixerRegistry", "default_registry"]
