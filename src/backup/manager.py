"""File-level backup staging under the project state directory."""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path

import orjson

from backup.transaction import BackupTransaction
from model.errors import ScopeViolationError
from rules.config import resolve_state_dir
from utils import load_json, utc_timestamp

logger = logging.getLogger(__name__)

STAGING_DIRNAME = "staging"
JOURNAL_DIRNAME = "journal"


@dataclass(frozen=True)
class BackupResult:
    """Outcome of staging one file."""

    original: Path
    staged: Path | None
    success: bool
    message: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def skipped(self) -> bool:
        return self.success and self.staged is None


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of restoring one file from staging."""

    target: Path
    staged: Path | None
    success: bool
    message: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)


class BackupManager:
    """Stages copies of project files so that changes can be undone.

    A staged copy lives at ``<state_dir>/staging/<path relative to root>``.
    Backing up the same file twice replaces the earlier copy. Staged copies
    are never removed implicitly; see :meth:`cleanup`.
    """

    def __init__(self, project_root: Path, state_dir: str = ".remediation") -> None:
        self.project_root = Path(project_root).resolve()
        self.state_path = resolve_state_dir(self.project_root, state_dir)
        self.staging_root = self.state_path / STAGING_DIRNAME
        self.journal_root = self.state_path / JOURNAL_DIRNAME

    def _relative(self, file: Path) -> Path:
        resolved = (self.project_root / file).resolve()
        try:
            relative = resolved.relative_to(self.project_root)
        except ValueError as exc:
            msg = f"{file} is outside the project root {self.project_root}"
            raise ScopeViolationError(msg, path=Path(file)) from exc
        if resolved == self.state_path or self.state_path in resolved.parents:
            msg = f"{file} is inside the state directory"
            raise ScopeViolationError(msg, path=Path(file))
        return relative

    def backup_path(self, file: Path) -> Path:
        """Return where the staged copy of ``file`` lives (existing or not)."""
        return self.staging_root / self._relative(file)

    def backup(self, file: Path) -> BackupResult:
        original = self.project_root / self._relative(file)
        if not original.is_file() or original.is_symlink():
            logger.debug("Nothing to back up at %s", original)
            return BackupResult(original, None, True, "not a regular file; skipped")

        staged = self.backup_path(original)
        try:
            staged.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(original, staged)
        except OSError as exc:
            logger.warning("Backup of %s failed: %s", original, exc)
            return BackupResult(original, None, False, str(exc))

        logger.debug("Backed up %s to %s", original, staged)
        return BackupResult(original, staged, True)

    def restore(self, file: Path) -> RestoreResult:
        target = self.project_root / self._relative(file)
        staged = self.backup_path(target)
        if not staged.is_file():
            return RestoreResult(target, None, False, "no backup found")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(staged, target)
        except OSError as exc:
            logger.warning("Restore of %s failed: %s", target, exc)
            return RestoreResult(target, staged, False, str(exc))

        logger.debug("Restored %s from %s", target, staged)
        return RestoreResult(target, staged, True)

    def restore_all(self) -> list[RestoreResult]:
        return [self.restore(file) for file in self.list_backed_up_files()]

    def has_backup(self, file: Path) -> bool:
        return self.backup_path(file).is_file()

    def list_backed_up_files(self) -> list[Path]:
        """Original paths of every staged copy, sorted by relative path."""
        if not self.staging_root.is_dir():
            return []
        staged = sorted(
            (path for path in self.staging_root.rglob("*") if path.is_file()),
            key=lambda p: p.relative_to(self.staging_root).as_posix(),
        )
        return [
            self.project_root / path.relative_to(self.staging_root) for path in staged
        ]

    def delete_backup(self, file: Path) -> bool:
        staged = self.backup_path(file)
        if not staged.is_file():
            return False
        staged.unlink()
        parent = staged.parent
        while parent != self.staging_root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent
        return True

    def cleanup(self) -> int:
        """Delete every staged copy and journal. Returns the staged-file count."""
        count = len(self.list_backed_up_files())
        for directory in (self.staging_root, self.journal_root):
            if directory.is_dir():
                shutil.rmtree(directory)
        logger.debug("Removed %d staged file(s) from %s", count, self.staging_root)
        return count

    def begin_transaction(self) -> BackupTransaction:
        transaction = BackupTransaction(self, uuid.uuid4().hex)
        logger.debug("Started transaction %s", transaction.id)
        return transaction

    def journal_path(self, transaction_id: str) -> Path:
        return self.journal_root / f"{transaction_id}.json"

    def pending_transactions(self) -> list[str]:
        """Ids of transactions whose journal shows they never finished."""
        if not self.journal_root.is_dir():
            return []
        return sorted(path.stem for path in self.journal_root.glob("*.json"))

    def recover(self) -> list[RestoreResult]:
        """Roll back every transaction left behind by an interrupted run.

        A journal that cannot be read is reported as a failed result and
        left in place; the remaining transactions are still rolled back.
        """
        results: list[RestoreResult] = []
        for transaction_id in self.pending_transactions():
            journal_path = self.journal_path(transaction_id)
            try:
                journal = load_json(journal_path)
                transaction = BackupTransaction.from_journal(self, journal)
            except (orjson.JSONDecodeError, KeyError, TypeError, OSError) as exc:
                logger.error("Unreadable journal %s: %s", journal_path, exc)
                results.append(
                    RestoreResult(journal_path, None, False, f"unreadable journal: {exc!r}")
                )
                continue
            logger.warning("Rolling back interrupted transaction %s", transaction_id)
            results.extend(transaction.rollback())
        return results


__all__ = ["BackupManager", "BackupResult", "RestoreResult"]
