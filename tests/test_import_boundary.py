from __future__ import annotations

import sys


def test_cli_import_does_not_load_optional_or_dropped_stacks() -> None:
    before_modules = set(sys.modules)
    import cli  # noqa: F401

    newly_imported = set(sys.modules) - before_modules
    assert not any(
        name.split(".")[0] in {"yaml", "dspy", "tree_sitter"} for name in newly_imported
    )
