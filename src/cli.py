"""Command-line interface for stratify."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from backup.manager import BackupManager
from fix.orchestrator import remediate
from model.errors import InvalidInputError, ScopeViolationError
from report.console import render_remediation, render_scan
from report.json_report import write_report
from rules.config import ConfigError, StratifyConfig, load_config
from rules.engine import validate
from rules.loader import load_rules
from scan.modules import scan_modules


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root (default: .)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stratify")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan", help="Validate the layered module structure (read-only)"
    )
    _add_common_paths(scan_parser)
    scan_parser.add_argument(
        "--report",
        default=None,
        help="Write a JSON report to this path",
    )
    scan_parser.add_argument(
        "--rules",
        nargs="+",
        default=[],
        metavar="FILE",
        help="Extra rule files merged over the defaults and configured rules",
    )

    remediate_parser = subparsers.add_parser(
        "remediate", help="Preview or apply automatic fixes"
    )
    _add_common_paths(remediate_parser)
    remediate_parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply the fixes inside one backup transaction (default: preview)",
    )

    restore_parser = subparsers.add_parser(
        "restore", help="Restore files from the backup staging area"
    )
    _add_common_paths(restore_parser)
    restore_parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="Files to restore, relative to the root (default: every staged file)",
    )

    recover_parser = subparsers.add_parser(
        "recover", help="Roll back transactions left by an interrupted run"
    )
    _add_common_paths(recover_parser)

    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Delete all staged backups and journals"
    )
    _add_common_paths(cleanup_parser)

    return parser


def _handle_scan(
    root: Path,
    config: StratifyConfig,
    report: str | None,
    rule_files: list[str],
) -> int:
    modules = scan_modules(
        root,
        exclude_patterns=config.exclude,
        nested_gitignore=config.nested_gitignore,
    )
    loader = load_rules(root, config, [Path(path) for path in rule_files])
    for error in loader.errors:
        sys.stderr.write(f"rule error: {error}\n")

    violations = validate(
        modules, loader.definitions(), architecture=config.architecture
    )
    sys.stdout.write(render_scan(modules, violations))

    if report is not None:
        report_path = Path(report).expanduser().resolve()
        write_report(report_path, violations)
        sys.stderr.write(f"report: {report_path}\n")

    return 1 if violations else 0


def _handle_remediate(root: Path, config: StratifyConfig, apply: bool) -> int:
    outcome = remediate(root, apply=apply, config=config)
    sys.stdout.write(render_remediation(outcome, root))
    if apply and not outcome.ok:
        for result in outcome.failed:
            sys.stderr.write(f"failed: {result.description}\n")
        for failure in outcome.rollback_failures:
            sys.stderr.write(f"not restored: {failure.target}: {failure.message}\n")
        return 1
    return 0


def _handle_restore(manager: BackupManager, files: list[str]) -> int:
    if files:
        results = [manager.restore(Path(file)) for file in files]
    else:
        results = manager.restore_all()

    exit_code = 0
    for result in results:
        if result.success:
            sys.stdout.write(f"restored: {result.target}\n")
        else:
            sys.stderr.write(f"{result.target}: {result.message}\n")
            exit_code = 1
    if not results:
        sys.stdout.write("Nothing to restore.\n")
    return exit_code


def _handle_recover(manager: BackupManager) -> int:
    pending = manager.pending_transactions()
    if not pending:
        sys.stdout.write("No interrupted transactions.\n")
        return 0
    results = manager.recover()
    rolled_back = len(pending) - len(manager.pending_transactions())
    failures = [result for result in results if not result.success]
    for result in failures:
        sys.stderr.write(f"{result.target}: {result.message}\n")
    sys.stdout.write(
        f"Rolled back {rolled_back} transaction(s), restored "
        f"{len(results) - len(failures)} file(s).\n"
    )
    return 1 if failures else 0


def _handle_cleanup(manager: BackupManager) -> int:
    count = manager.cleanup()
    sys.stdout.write(f"Removed {count} staged file(s).\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    root = Path(args.root).expanduser().resolve()

    try:
        if not root.is_dir():
            msg = f"Not a directory: {root}"
            raise InvalidInputError(msg, path=root)
        config = load_config(root)

        if args.command == "scan":
            return _handle_scan(root, config, args.report, args.rules)

        if args.command == "remediate":
            return _handle_remediate(root, config, args.apply)

        manager = BackupManager(root, config.state_dir)

        if args.command == "restore":
            return _handle_restore(manager, args.files)

        if args.command == "recover":
            return _handle_recover(manager)

        if args.command == "cleanup":
            return _handle_cleanup(manager)
    except (InvalidInputError, ScopeViolationError, ConfigError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    parser.error(f"unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
