"""Architectural layer ranks for layered modules."""

from __future__ import annotations

from enum import Enum


class Layer(Enum):
    """One rank in the five-level module hierarchy.

    Members are declared in ascending ``level`` order. A layer may only depend
    on layers whose level is strictly lower, so the foundation layer depends on
    nothing and the entry-point layer may depend on every other layer.
    """

    FOUNDATION = (1, "common")
    EXTENSION_POINTS = (2, "spi")
    CONTRACTS = (3, "api")
    IMPLEMENTATION = (4, "core")
    ENTRY_POINT = (5, "facade")

    def __init__(self, level: int, suffix: str) -> None:
        self.level = level
        self.suffix = suffix

    @property
    def label(self) -> str:
        """Human-readable name (e.g. ``extension-points``)."""
        return self.name.lower().replace("_", "-")

    def can_depend_on(self, other: Layer) -> bool:
        return self.level > other.level

    @classmethod
    def from_suffix(cls, suffix: str) -> Layer | None:
        """Resolve an artifact-name suffix (``api``, ``-core``...) to a layer."""
        normalized = suffix.strip().lower().lstrip("-")
        for layer in cls:
            if layer.suffix == normalized:
                return layer
        return None

    @classmethod
    def parse(cls, value: str) -> Layer:
        """Parse a layer from its label, member name or suffix.

        Raises:
            ValueError: If the value names no layer.
        """
        normalized = value.strip().lower().replace("_", "-")
        for layer in cls:
            if normalized in {layer.label, layer.suffix}:
                return layer
        msg = f"Unknown layer '{value}'. Valid layers: " + ", ".join(
            layer.label for layer in cls
        )
        raise ValueError(msg)


UTILITY_SUFFIXES = ("-util", "-utils")


def layer_for_artifact(artifact_id: str) -> Layer | None:
    """Return the layer named by the trailing ``-suffix`` of an artifact id."""
    _, sep, suffix = artifact_id.rpartition("-")
    if not sep:
        return None
    return Layer.from_suffix(suffix)


__all__ = ["UTILITY_SUFFIXES", "Layer", "layer_for_artifact"]
