from __future__ import annotations

from pathlib import Path

import pytest

from fix.classify import classify_source, classify_text, find_declaration, strip_noise
from model.layers import Layer
from rules.config import DEFAULT_CONTRACT_SUFFIXES

COMMON_SOURCES = (
    Path(__file__).parent
    / "fixtures"
    / "text_processor"
    / "text-processor-common"
    / "src"
    / "main"
    / "java"
    / "com"
    / "example"
    / "text"
)


@pytest.mark.parametrize(
    ("file_name", "layer", "reason"),
    [
        ("Tokenizer.java", Layer.CONTRACTS, "public interface"),
        ("TokenType.java", Layer.CONTRACTS, "public enum"),
        ("ParseException.java", Layer.CONTRACTS, "type name ends with 'Exception'"),
        ("TextNormalizer.java", Layer.IMPLEMENTATION, "implementation type"),
    ],
)
def test_fixture_sources_are_classified(file_name: str, layer: Layer, reason: str) -> None:
    classification = classify_source(
        COMMON_SOURCES / file_name, contract_suffixes=DEFAULT_CONTRACT_SUFFIXES
    )

    assert classification.layer is layer
    assert classification.reason == reason
    assert classification.type_name == Path(file_name).stem


def test_keywords_in_comments_and_strings_are_ignored() -> None:
    source = (
        "package a;\n"
        "/** public interface Fake {} */\n"
        "// public enum AlsoFake\n"
        "public final class Real {\n"
        '    String s = "public record Nope(int x) {}";\n'
        "}\n"
    )

    assert find_declaration(source) == ("class", "Real", True)
    assert classify_text(source).layer is Layer.IMPLEMENTATION


def test_strip_noise_keeps_line_structure() -> None:
    source = "a /* one\ntwo */ b // three\nc"

    stripped = strip_noise(source)

    assert stripped.count("\n") == source.count("\n")
    assert "one" not in stripped
    assert "three" not in stripped
    assert stripped.startswith("a ")
    assert stripped.endswith("c")


def test_public_annotation_and_record_are_contracts() -> None:
    annotation = classify_text("public @interface Audited {}")
    record = classify_text("public record Point(int x, int y) {}")

    assert (annotation.layer, annotation.kind, annotation.reason) == (
        Layer.CONTRACTS,
        "annotation",
        "public annotation",
    )
    assert (record.layer, record.type_name) == (Layer.CONTRACTS, "Point")


def test_package_private_interface_is_implementation() -> None:
    classification = classify_text("interface Hidden { void run(); }")

    assert classification.layer is Layer.IMPLEMENTATION
    assert classification.kind == "interface"


def test_suffix_match_uses_file_stem_when_no_declaration_found() -> None:
    classification = classify_text(
        "// generated\n", file_stem="OrderDto", contract_suffixes=["Dto"]
    )

    assert classification.layer is Layer.CONTRACTS
    assert classification.kind is None
    assert classification.reason == "type name ends with 'Dto'"


def test_first_matching_predicate_wins() -> None:
    classification = classify_text(
        "public interface ValidationError {}", contract_suffixes=["Error"]
    )

    assert classification.reason == "public interface"
