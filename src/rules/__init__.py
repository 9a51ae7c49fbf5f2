"""Rule definitions, configuration and evaluation."""

from rules.config import (
    ArchitectureConfig,
    ConfigError,
    RemediationConfig,
    StratifyConfig,
    load_config,
    resolve_state_dir,
)
from rules.engine import validate
from rules.loader import RuleLoader, load_rules

__all__ = [
    "ArchitectureConfig",
    "ConfigError",
    "RemediationConfig",
    "RuleLoader",
    "StratifyConfig",
    "load_config",
    "load_rules",
    "resolve_state_dir",
    "validate",
]
