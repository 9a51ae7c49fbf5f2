from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from model.errors import InvalidInputError
from model.layers import Layer
from scan.descriptors import parse_pom, remove_module_declaration
from scan.modules import find_sibling, group_by_component, scan_modules

FIXTURE = Path(__file__).parent / "fixtures" / "text_processor"


def _copy_fixture(root: Path) -> None:
    shutil.copytree(FIXTURE, root)


def _write_pom(directory: Path, body: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "pom.xml").write_text(
        f'<project xmlns="http://maven.apache.org/POM/4.0.0">{body}</project>',
        encoding="utf-8",
    )


def test_scan_fixture_returns_parent_then_sorted_children(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)

    modules = scan_modules(repo_root)

    assert [module.artifact_id for module in modules] == [
        "text-processor-parent",
        "text-processor-api",
        "text-processor-common",
        "text-processor-core",
        "text-processor-facade",
    ]
    parent = modules[0]
    assert parent.kind == "aggregator"
    assert parent.layer is None
    assert parent.declared_modules == (
        "text-processor-common",
        "text-processor-api",
        "text-processor-core",
        "text-processor-facade",
    )


def test_scan_fixture_derives_layers_and_excludes_parent_block(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)

    by_id = {module.artifact_id: module for module in scan_modules(repo_root)}

    core = by_id["text-processor-core"]
    assert core.layer is Layer.IMPLEMENTATION
    assert core.kind == "leaf"
    assert core.group_id == "com.example.text"
    assert core.parent_artifact_id == "text-processor-parent"
    assert core.dependencies == ("text-processor-api", "text-processor-common")
    assert core.component == "text-processor"
    assert core.full_name == "com.example.text:text-processor-core"
    assert by_id["text-processor-common"].layer is Layer.FOUNDATION


def test_scan_is_read_only_and_deterministic(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)
    before = sorted(p.relative_to(repo_root).as_posix() for p in repo_root.rglob("*"))

    first = scan_modules(repo_root)
    second = scan_modules(repo_root)

    after = sorted(p.relative_to(repo_root).as_posix() for p in repo_root.rglob("*"))
    assert first == second
    assert before == after


def test_unknown_suffix_defaults_to_entry_point(tmp_path: Path) -> None:
    _write_pom(tmp_path / "billing-service", "<artifactId>billing-service</artifactId>")

    (module,) = scan_modules(tmp_path)

    assert module.kind == "leaf"
    assert module.layer is Layer.ENTRY_POINT


def test_parent_suffix_without_pom_packaging_is_still_aggregator(tmp_path: Path) -> None:
    _write_pom(tmp_path, "<artifactId>shop-parent</artifactId>")

    (module,) = scan_modules(tmp_path)

    assert module.kind == "aggregator"
    assert module.packaging == "jar"
    assert module.layer is None


def test_descriptor_without_artifact_id_is_unknown(tmp_path: Path) -> None:
    _write_pom(tmp_path / "mystery", "<groupId>com.example</groupId>")

    (module,) = scan_modules(tmp_path)

    assert module.kind == "unknown"
    assert module.artifact_id == "mystery"
    assert module.layer is None


def test_hidden_gitignored_and_excluded_dirs_are_skipped(tmp_path: Path) -> None:
    _write_pom(tmp_path / "shop-api", "<artifactId>shop-api</artifactId>")
    _write_pom(tmp_path / ".cache" / "x-api", "<artifactId>x-api</artifactId>")
    _write_pom(tmp_path / "target" / "y-api", "<artifactId>y-api</artifactId>")
    _write_pom(tmp_path / "sandbox" / "z-api", "<artifactId>z-api</artifactId>")
    (tmp_path / ".gitignore").write_text("target/\n", encoding="utf-8")

    modules = scan_modules(tmp_path, exclude_patterns=["sandbox"])

    assert [module.artifact_id for module in modules] == ["shop-api"]


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_symlinked_dirs_are_not_followed(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write_pom(repo_root / "shop-api", "<artifactId>shop-api</artifactId>")
    external = tmp_path / "external"
    _write_pom(external / "leak-core", "<artifactId>leak-core</artifactId>")
    (repo_root / "linked").symlink_to(external, target_is_directory=True)

    modules = scan_modules(repo_root)

    assert [module.artifact_id for module in modules] == ["shop-api"]


def test_gradle_module_is_detected(tmp_path: Path) -> None:
    module_dir = tmp_path / "orders-core"
    module_dir.mkdir()
    (module_dir / "build.gradle").write_text(
        "group = 'com.example.orders'\n"
        "dependencies {\n"
        "    implementation 'com.example.orders:orders-api:1.0'\n"
        "    implementation project(':orders-spi')\n"
        "    api(project(\":libs:ledger-api\"))\n"
        "    testImplementation 'junit:junit:4.13'\n"
        "}\n",
        encoding="utf-8",
    )

    (module,) = scan_modules(tmp_path)

    assert module.artifact_id == "orders-core"
    assert module.group_id == "com.example.orders"
    assert module.layer is Layer.IMPLEMENTATION
    assert module.dependencies == ("orders-api", "orders-spi", "ledger-api")


def test_scan_missing_root_raises_invalid_input(tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError, match="Not a directory"):
        scan_modules(tmp_path / "missing")


def test_malformed_descriptor_aborts_scan(tmp_path: Path) -> None:
    (tmp_path / "pom.xml").write_text("<project><artifactId>x", encoding="utf-8")

    with pytest.raises(InvalidInputError, match="Malformed build descriptor") as exc_info:
        scan_modules(tmp_path)

    assert exc_info.value.path == tmp_path / "pom.xml"


def test_parse_pom_ignores_commented_modules(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)

    descriptor = parse_pom(repo_root / "pom.xml")

    assert "text-processor-legacy" not in descriptor.modules
    assert descriptor.packaging == "pom"


def test_remove_module_declaration_keeps_other_lines(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)
    pom = repo_root / "pom.xml"

    assert remove_module_declaration(pom, "text-processor-common") is True
    assert remove_module_declaration(pom, "text-processor-common") is False

    descriptor = parse_pom(pom)
    assert descriptor.modules == (
        "text-processor-api",
        "text-processor-core",
        "text-processor-facade",
    )
    assert "<!-- <module>text-processor-legacy</module> -->" in pom.read_text(
        encoding="utf-8"
    )


def test_group_by_component_and_find_sibling(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_fixture(repo_root)
    modules = scan_modules(repo_root)

    components = group_by_component(modules)
    common = next(m for m in modules if m.layer is Layer.FOUNDATION)

    assert list(components) == ["text-processor"]
    assert len(components["text-processor"]) == 4
    sibling = find_sibling(modules, common, Layer.CONTRACTS)
    assert sibling is not None
    assert sibling.artifact_id == "text-processor-api"
    assert find_sibling(modules, common, Layer.EXTENSION_POINTS) is None


def test_five_layer_suffixes_are_classified_regardless_of_order(tmp_path: Path) -> None:
    for name in ("x-facade", "x-api", "x-common", "x-core", "x-spi"):
        _write_pom(tmp_path / f"dir-{len(name)}-{name[::-1]}", f"<artifactId>{name}</artifactId>")

    modules = scan_modules(tmp_path)

    assert len(modules) == 5
    assert {module.artifact_id: module.layer for module in modules} == {
        "x-common": Layer.FOUNDATION,
        "x-spi": Layer.EXTENSION_POINTS,
        "x-api": Layer.CONTRACTS,
        "x-core": Layer.IMPLEMENTATION,
        "x-facade": Layer.ENTRY_POINT,
    }
