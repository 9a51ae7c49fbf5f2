from __future__ import annotations

from pathlib import Path

import tomllib
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILENAME = "stratify.toml"

DEFAULT_CONTRACT_SUFFIXES = ["Exception", "Error", "Request", "Response", "Dto", "DTO"]


class ArchitectureConfig(BaseModel):
    """Architecture variant the project follows."""

    model_config = ConfigDict(extra="forbid")

    allow_foundation_layer: bool = Field(
        default=False,
        description="Permit '-common' foundation modules (the no-foundation variant forbids them)",
    )


class RemediationConfig(BaseModel):
    """Settings for file classification and relocation."""

    model_config = ConfigDict(extra="forbid")

    source_roots: list[str] = Field(
        default_factory=lambda: ["src/main/java", "src/test/java"],
        description="Source directories, relative to a module root, that fixers relocate",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: [".java"],
        description="File extensions treated as relocatable source files",
    )
    contract_suffixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTRACT_SUFFIXES),
        description="Type-name suffixes that mark a file as a contract",
    )
    aggregator_search_depth: int = Field(
        default=5,
        ge=1,
        description="How many parent directories to search for an aggregator",
    )

    @field_validator("source_roots")
    @classmethod
    def validate_source_roots(cls, v: list[str]) -> list[str]:
        for entry in v:
            if not entry or Path(entry).is_absolute() or ".." in Path(entry).parts:
                msg = f"source root '{entry}' must be a relative path inside the module"
                raise ValueError(msg)
        return v


class StratifyConfig(BaseModel):
    """Project configuration loaded from stratify.toml."""

    model_config = ConfigDict(extra="forbid")

    rule_files: list[str] = Field(
        default_factory=list,
        description="Extra rule sources, relative to the project root, merged after the defaults",
    )
    state_dir: str = Field(
        default=".remediation",
        description="Directory for staged backups and transaction journals",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for directories the scanner skips",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    architecture: ArchitectureConfig = Field(default_factory=ArchitectureConfig)
    remediation: RemediationConfig = Field(default_factory=RemediationConfig)


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_within_root(root: Path, value: str, *, setting: str) -> Path:
    """Resolve a configured relative path against ``root``, refusing to leave it."""
    candidate = Path(value)
    if not value or value.startswith("~") or candidate.is_absolute():
        msg = f"{setting} = {value!r}: expected a path relative to the project root"
        raise ConfigError(msg)

    resolved_root = root.resolve()
    try:
        resolved = (resolved_root / candidate).resolve()
    except OSError as exc:
        msg = f"{setting} = {value!r} cannot be resolved: {exc}"
        raise ConfigError(msg) from exc

    if resolved != resolved_root and resolved_root not in resolved.parents:
        msg = f"{setting} = {value!r} escapes the project root {resolved_root}"
        raise ConfigError(msg)
    return resolved


def resolve_state_dir(root: Path, state_dir: str) -> Path:
    """Directory below the project root holding staged backups and journals."""
    resolved = resolve_within_root(root, state_dir, setting="state_dir")
    if resolved == root.resolve():
        msg = f"state_dir = {state_dir!r} must name a directory below the project root"
        raise ConfigError(msg)
    return resolved


def load_config(root: Path) -> StratifyConfig:
    """Load configuration from stratify.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return StratifyConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        config = StratifyConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e

    resolve_state_dir(Path(root), config.state_dir)
    return config
