"""Declarative rule loading from properties, TOML and YAML sources."""

from __future__ import annotations

import logging
import re
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomllib
from pydantic import ValidationError

from model.errors import RuleParseError
from model.layers import Layer
from model.records import DetectionSpec, RuleDefinition

if TYPE_CHECKING:
    from types import ModuleType

    from rules.config import StratifyConfig

logger = logging.getLogger(__name__)

DEFAULT_RULES_RESOURCE = "default-rules.properties"

PROPERTIES_SUFFIXES = frozenset({".properties"})
TOML_SUFFIXES = frozenset({".toml"})
YAML_SUFFIXES = frozenset({".yaml", ".yml"})

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_KEY_ALIASES = {"target_modules": "applies_to"}
_LAYER_KINDS = frozenset({"required-layer", "forbidden-layer"})
_PATTERN_KINDS = frozenset({"name-pattern", "forbidden-suffix"})
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "f": "\f"}


def _import_yaml() -> ModuleType | None:
    """Return the PyYAML module, or None when it is not installed."""
    try:
        import yaml
    except ImportError:
        return None
    return yaml


def _normalize_key(key: str) -> str:
    snake = _CAMEL_BOUNDARY.sub(r"_\1", key.strip()).lower().replace("-", "_")
    return _KEY_ALIASES.get(snake, snake)


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(char)
    return "".join(out)


def _split_property(line: str) -> tuple[str, str]:
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char in "=:" or char.isspace():
            key = line[:index]
            rest = line[index:].lstrip(" \t\f")
            if rest[:1] in {"=", ":"}:
                rest = rest[1:]
            return _unescape(key), _unescape(rest.lstrip(" \t\f"))
    return _unescape(line), ""


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java-style properties text into an ordered key/value mapping.

    Supports ``#``/``!`` comments, ``=``, ``:`` or whitespace separators and
    backslash line continuation. Later duplicate keys win.
    """
    entries: dict[str, str] = {}
    logical = ""
    for raw_line in text.splitlines():
        line = raw_line.lstrip()
        if not logical and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            logical += line[:-1]
            continue
        logical += line
        key, value = _split_property(logical)
        logical = ""
        if key:
            entries[key] = value
    if logical:
        key, value = _split_property(logical)
        if key:
            entries[key] = value
    return entries


def _group_properties(entries: dict[str, str]) -> dict[str, dict[str, Any]]:
    """Group ``ID.prop.sub=value`` keys into one nested mapping per rule id."""
    grouped: dict[str, dict[str, Any]] = {}
    for key, value in entries.items():
        rule_id, sep, prop = key.partition(".")
        if not sep or not prop:
            logger.warning("Ignoring property without a rule id prefix: %s", key)
            continue
        target = grouped.setdefault(rule_id, {})
        *parents, leaf = prop.split(".")
        for part in parents:
            nested = target.setdefault(part, {})
            if not isinstance(nested, dict):
                nested = {}
                target[part] = nested
            target = nested
        target[leaf] = value
    return grouped


def _normalize_mapping(raw: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        name = _normalize_key(str(key))
        normalized[name] = _normalize_mapping(value) if isinstance(value, dict) else value
    return normalized


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, list | tuple):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value)]


def _as_bool(value: Any, rule_id: str, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    msg = f"'{field}' must be true or false, got {value!r}"
    raise RuleParseError(msg, rule_id=rule_id)


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _build_detection(rule_id: str, raw: Any) -> DetectionSpec:
    if not isinstance(raw, dict) or "kind" not in raw:
        msg = "missing detection.kind"
        raise RuleParseError(msg, rule_id=rule_id)

    data: dict[str, Any] = {
        key: _lower(raw[key]) for key in ("kind", "scope", "variant") if key in raw
    }
    if raw.get("pattern") is not None:
        pattern = str(raw["pattern"])
        try:
            re.compile(pattern)
        except re.error as exc:
            msg = f"invalid detection.pattern {pattern!r}: {exc}"
            raise RuleParseError(msg, rule_id=rule_id) from exc
        data["pattern"] = pattern
    if raw.get("layer") is not None:
        try:
            data["layer"] = Layer.parse(str(raw["layer"]))
        except ValueError as exc:
            raise RuleParseError(str(exc), rule_id=rule_id) from exc

    try:
        detection = DetectionSpec.model_validate(data)
    except ValidationError as exc:
        msg = f"invalid detection: {_first_error(exc)}"
        raise RuleParseError(msg, rule_id=rule_id) from exc

    if detection.kind in _LAYER_KINDS and detection.layer is None:
        msg = f"detection kind '{detection.kind}' requires detection.layer"
        raise RuleParseError(msg, rule_id=rule_id)
    if detection.kind in _PATTERN_KINDS and detection.pattern is None:
        msg = f"detection kind '{detection.kind}' requires detection.pattern"
        raise RuleParseError(msg, rule_id=rule_id)
    return detection


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]


def build_rule(rule_id: str, raw: dict[str, Any]) -> RuleDefinition:
    """Validate one raw rule mapping (keys already normalized).

    Raises:
        RuleParseError: If any attribute is malformed. The error carries
            ``rule_id``.
    """
    data: dict[str, Any] = {
        "id": rule_id,
        "name": str(raw.get("name") or rule_id),
        "description": str(raw.get("description", "")),
        "reason": str(raw.get("reason", "")),
        "fix": str(raw.get("fix", "")),
        "applies_to": tuple(item.lower() for item in _as_list(raw.get("applies_to"))),
        "detection": _build_detection(rule_id, raw.get("detection")),
    }
    if "category" in raw:
        data["category"] = _lower(raw["category"])
    if "severity" in raw:
        data["severity"] = _lower(raw["severity"])
    if "enabled" in raw:
        data["enabled"] = _as_bool(raw["enabled"], rule_id, "enabled")

    try:
        return RuleDefinition.model_validate(data)
    except ValidationError as exc:
        raise RuleParseError(_first_error(exc), rule_id=rule_id) from exc


class RuleLoader:
    """Accumulates rule definitions from several sources.

    Sources merge by rule id, field by field, with the last write winning.
    A rule keeps the position at which its id was first loaded. Malformed
    rules are recorded in :attr:`errors` and skipped; loading never raises
    for bad input.
    """

    def __init__(self) -> None:
        self._raw: dict[str, dict[str, Any]] = {}
        self._rules: dict[str, RuleDefinition] = {}
        self.errors: list[RuleParseError] = []

    @property
    def rules(self) -> dict[str, RuleDefinition]:
        return dict(self._rules)

    def definitions(self) -> list[RuleDefinition]:
        return list(self._rules.values())

    def load(self, *sources: Path | str) -> list[RuleDefinition]:
        for source in sources:
            self.load_path(Path(source))
        return self.definitions()

    def load_defaults(self) -> RuleLoader:
        text = (
            resources.files("rules")
            .joinpath(DEFAULT_RULES_RESOURCE)
            .read_text(encoding="utf-8")
        )
        return self.load_text(text, "properties", source=DEFAULT_RULES_RESOURCE)

    def load_path(self, path: Path) -> RuleLoader:
        suffix = path.suffix.lower()
        if suffix in PROPERTIES_SUFFIXES:
            fmt = "properties"
        elif suffix in TOML_SUFFIXES:
            fmt = "toml"
        elif suffix in YAML_SUFFIXES:
            fmt = "yaml"
        else:
            logger.warning("Skipping rule source with unknown format: %s", path)
            return self

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            self._record(RuleParseError(f"cannot read rule source: {exc}", source=str(path)))
            return self

        return self.load_text(text, fmt, source=str(path))

    def load_text(self, text: str, fmt: str, *, source: str = "<text>") -> RuleLoader:
        try:
            entries = self._parse_source(text, fmt, source)
        except RuleParseError as exc:
            self._record(exc)
            return self
        if entries is None:
            return self

        for rule_id, raw in entries.items():
            if not isinstance(raw, dict):
                self._record(
                    RuleParseError("rule entry must be a mapping", rule_id=rule_id, source=source)
                )
                continue
            merged = _merge(self._raw.get(rule_id, {}), _normalize_mapping(raw))
            try:
                rule = build_rule(rule_id, merged)
            except RuleParseError as exc:
                exc.source = source
                self._record(exc)
                continue
            self._raw[rule_id] = merged
            self._rules[rule_id] = rule
            logger.debug("Loaded rule %s from %s", rule_id, source)
        return self

    def _parse_source(
        self, text: str, fmt: str, source: str
    ) -> dict[str, Any] | None:
        if fmt == "properties":
            return _group_properties(parse_properties(text))

        if fmt == "toml":
            try:
                data: Any = tomllib.loads(text)
            except tomllib.TOMLDecodeError as exc:
                msg = f"invalid TOML: {exc}"
                raise RuleParseError(msg, source=source) from exc
        elif fmt == "yaml":
            yaml = _import_yaml()
            if yaml is None:
                logger.warning("PyYAML is not installed; skipping rule source %s", source)
                return None
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                msg = f"invalid YAML: {exc}"
                raise RuleParseError(msg, source=source) from exc
        else:
            msg = f"unsupported rule format '{fmt}'"
            raise RuleParseError(msg, source=source)

        if data is None:
            return {}
        if not isinstance(data, dict):
            msg = "rule source must be a mapping of rule id to rule"
            raise RuleParseError(msg, source=source)
        rules = data.get("rules", data)
        if not isinstance(rules, dict):
            msg = "'rules' must be a mapping of rule id to rule"
            raise RuleParseError(msg, source=source)
        return {str(key): value for key, value in rules.items()}

    def _record(self, error: RuleParseError) -> None:
        logger.warning("Skipping malformed rule: %s", error)
        self.errors.append(error)


def load_rules(root: Path, config: StratifyConfig, extra: list[Path] | None = None) -> RuleLoader:
    """Load the default rules, then the configured and extra rule files."""
    loader = RuleLoader().load_defaults()
    for rule_file in config.rule_files:
        loader.load_path(root / rule_file)
    for path in extra or []:
        loader.load_path(path)
    return loader


__all__ = [
    "RuleLoader",
    "build_rule",
    "load_rules",
    "parse_properties",
]
