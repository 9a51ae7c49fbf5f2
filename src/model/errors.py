"""Error taxonomy for scanning, rule loading and remediation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class StratifyError(Exception):
    """Base class for all errors raised by this project."""


class InvalidInputError(StratifyError):
    """Raised when a root path is missing, not a directory, or unreadable."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class RuleParseError(StratifyError):
    """Raised when a rule source or a single rule entry is malformed.

    ``rule_id`` is the id of the rule under construction, when known.
    """

    def __init__(
        self,
        message: str,
        rule_id: str | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.rule_id = rule_id
        self.source = source

    def __str__(self) -> str:
        base = super().__str__()
        if self.rule_id:
            base = f"[{self.rule_id}] {base}"
        if self.source:
            base = f"{self.source}: {base}"
        return base


class ScopeViolationError(StratifyError):
    """Raised when a fixer would mutate a path outside its aggregator boundary."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class FixFailureError(StratifyError):
    """Raised when a fix cannot be carried out (missing sibling, I/O failure)."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


__all__ = [
    "FixFailureError",
    "InvalidInputError",
    "RuleParseError",
    "ScopeViolationError",
    "StratifyError",
]
