from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

import rules.loader as loader_module
from model.layers import Layer
from model.records import Category, Severity
from rules.config import StratifyConfig
from rules.loader import RuleLoader, load_rules, parse_properties

if TYPE_CHECKING:
    from pathlib import Path


def test_default_rules_load_in_declared_order() -> None:
    loader = RuleLoader().load_defaults()

    assert loader.errors == []
    assert [rule.id for rule in loader.definitions()] == [
        "SS-001",
        "SS-002",
        "SS-006",
        "SS-007",
        "SS-103",
        "NM-001",
        "MS-005",
        "DP-001",
        "DP-004",
    ]


def test_default_rule_attributes() -> None:
    rules = RuleLoader().load_defaults().rules

    forbidden = rules["SS-006"]
    assert forbidden.category is Category.STRUCTURE
    assert forbidden.severity is Severity.ERROR
    assert forbidden.detection.kind == "forbidden-layer"
    assert forbidden.detection.layer is Layer.FOUNDATION
    assert forbidden.detection.variant == "no-foundation"
    assert forbidden.applies_to == ("foundation",)
    assert forbidden.fix.startswith("Move contract types to '-api'")
    assert "then delete the '-common' module" in forbidden.fix

    naming = rules["NM-001"]
    assert naming.severity is Severity.WARNING
    assert naming.detection.pattern == "^.+-(common|spi|api|core|facade)$"
    assert rules["DP-004"].detection.scope == "project"

    utility = rules["SS-007"]
    assert utility.detection.kind == "forbidden-suffix"
    assert utility.detection.pattern == "-utils?$"
    assert utility.fix.startswith("Move the utilities into '<component>-core'")

    facade = rules["SS-103"]
    assert facade.severity is Severity.INFO
    assert facade.detection.layer is Layer.ENTRY_POINT
    assert facade.applies_to == ("extension-points",)


def test_parse_properties_handles_separators_comments_and_continuations() -> None:
    entries = parse_properties(
        "# comment\n"
        "! another comment\n"
        "a.name = First\n"
        "b.name: Second\n"
        "c.name Third\n"
        "d.fix=one, \\\n"
        "    two\n"
        "e.path=C\\:\\\\tmp\n"
    )

    assert entries == {
        "a.name": "First",
        "b.name": "Second",
        "c.name": "Third",
        "d.fix": "one, two",
        "e.path": "C:\\tmp",
    }


def test_later_source_overrides_fields_and_keeps_position(tmp_path: Path) -> None:
    override = tmp_path / "local.properties"
    override.write_text(
        "SS-001.severity=warning\n"
        "SS-006.enabled=false\n"
        "XX-100.name=Custom\n"
        "XX-100.detection.kind=name-pattern\n"
        "XX-100.detection.pattern=^acme-\n",
        encoding="utf-8",
    )

    loader = RuleLoader().load_defaults()
    definitions = loader.load(override)

    ids = [rule.id for rule in definitions]
    assert ids[:3] == ["SS-001", "SS-002", "SS-006"]
    assert ids[-1] == "XX-100"
    assert loader.rules["SS-001"].severity is Severity.WARNING
    assert loader.rules["SS-001"].detection.layer is Layer.CONTRACTS
    assert loader.rules["SS-006"].enabled is False


def test_malformed_rule_is_skipped_and_recorded(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    source = tmp_path / "rules.properties"
    source.write_text(
        "OK-1.name=Fine\n"
        "OK-1.detection.kind=no-cycles\n"
        "BAD-1.name=Broken\n"
        "BAD-1.severity=fatal\n"
        "BAD-1.detection.kind=no-cycles\n"
        "BAD-2.name=Broken too\n"
        "BAD-2.enabled=maybe\n"
        "BAD-2.detection.kind=no-cycles\n"
        "BAD-3.detection.kind=required-layer\n"
        "BAD-4.detection.kind=teleport\n",
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="rules.loader"):
        loader = RuleLoader()
        definitions = loader.load(source)

    assert [rule.id for rule in definitions] == ["OK-1"]
    assert [error.rule_id for error in loader.errors] == ["BAD-1", "BAD-2", "BAD-3", "BAD-4"]
    assert all(error.source == str(source) for error in loader.errors)
    assert "requires detection.layer" in str(loader.errors[2])
    assert "Skipping malformed rule" in caplog.text


def test_toml_rules_load_from_rules_table(tmp_path: Path) -> None:
    source = tmp_path / "rules.toml"
    source.write_text(
        """
[rules.TM-001]
name = "No spi"
severity = "INFO"
applies_to = ["leaf"]
enabled = true

[rules.TM-001.detection]
kind = "forbidden-layer"
layer = "spi"
""".strip(),
        encoding="utf-8",
    )

    loader = RuleLoader()
    (rule,) = loader.load(source)

    assert rule.id == "TM-001"
    assert rule.severity is Severity.INFO
    assert rule.applies_to == ("leaf",)
    assert rule.detection.layer is Layer.EXTENSION_POINTS


def test_invalid_toml_source_is_recorded_without_rule_id(tmp_path: Path) -> None:
    source = tmp_path / "rules.toml"
    source.write_text("[rules.\n", encoding="utf-8")

    loader = RuleLoader()
    assert loader.load(source) == []

    (error,) = loader.errors
    assert error.rule_id is None
    assert "invalid TOML" in str(error)


def test_yaml_rules_load_with_camel_case_keys(tmp_path: Path) -> None:
    pytest.importorskip("yaml")
    source = tmp_path / "rules.yaml"
    source.write_text(
        "rules:\n"
        "  YM-001:\n"
        "    name: Aggregators need pom packaging\n"
        "    category: STRUCTURE\n"
        "    targetModules: [aggregator]\n"
        "    detection:\n"
        "      kind: aggregator-packaging\n",
        encoding="utf-8",
    )

    (rule,) = RuleLoader().load(source)

    assert rule.id == "YM-001"
    assert rule.applies_to == ("aggregator",)
    assert rule.detection.kind == "aggregator-packaging"


def test_yaml_source_skipped_with_warning_when_pyyaml_missing(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(loader_module, "_import_yaml", lambda: None)
    source = tmp_path / "rules.yml"
    source.write_text("rules: {}\n", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="rules.loader"):
        loader = RuleLoader()
        definitions = loader.load(source)

    assert definitions == []
    assert loader.errors == []
    assert "PyYAML is not installed" in caplog.text


def test_missing_rule_file_is_recorded(tmp_path: Path) -> None:
    loader = RuleLoader()
    loader.load(tmp_path / "absent.properties")

    (error,) = loader.errors
    assert "cannot read rule source" in str(error)


def test_load_rules_merges_configured_files_after_defaults(tmp_path: Path) -> None:
    (tmp_path / "team.properties").write_text("NM-001.enabled=false\n", encoding="utf-8")
    config = StratifyConfig(rule_files=["team.properties"])

    loader = load_rules(tmp_path, config)

    assert loader.rules["NM-001"].enabled is False
    assert len(loader.definitions()) == 9
