"""All-or-nothing grouping of backups with an on-disk journal."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from model.errors import FixFailureError
from utils import utc_timestamp, write_json

if TYPE_CHECKING:
    from types import TracebackType

    from backup.manager import BackupManager, BackupResult, RestoreResult

logger = logging.getLogger(__name__)


class BackupTransaction:
    """A unit of reversible work.

    Every file a fixer modifies or deletes is staged through :meth:`backup`
    first, and every path it creates is announced through
    :meth:`register_created` before it is written. :meth:`commit` keeps the
    changes; :meth:`rollback` (or closing without a commit) deletes created
    paths, recreates removed directories and restores staged files in
    reverse order.

    The journal under ``<state_dir>/journal/<id>.json`` is rewritten after
    every step and removed when the transaction finishes, so a journal left
    on disk marks an interrupted run that :meth:`BackupManager.recover` can
    undo.
    """

    def __init__(self, manager: BackupManager, transaction_id: str) -> None:
        self.manager = manager
        self.id = transaction_id
        self.started = utc_timestamp()
        self.entries: list[Path] = []
        self.created: list[Path] = []
        self.removed_dirs: list[Path] = []
        self.active = True
        self.committed = False
        self._write_journal()

    @classmethod
    def from_journal(cls, manager: BackupManager, journal: dict[str, Any]) -> BackupTransaction:
        transaction = cls.__new__(cls)
        transaction.manager = manager
        transaction.id = str(journal["id"])
        transaction.started = str(journal.get("started", ""))
        root = manager.project_root
        transaction.entries = [root / item for item in journal.get("entries", [])]
        transaction.created = [root / item for item in journal.get("created", [])]
        transaction.removed_dirs = [root / item for item in journal.get("removed_dirs", [])]
        transaction.active = True
        transaction.committed = False
        return transaction

    def __enter__(self) -> BackupTransaction:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _require_active(self) -> None:
        if not self.active:
            msg = f"Transaction {self.id} is not active"
            raise RuntimeError(msg)

    def _relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.manager.project_root).as_posix()

    def _journal(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "started": self.started,
            "entries": [self._relative(path) for path in self.entries],
            "created": [self._relative(path) for path in self.created],
            "removed_dirs": [self._relative(path) for path in self.removed_dirs],
        }

    def _write_journal(self) -> None:
        write_json(self.manager.journal_path(self.id), self._journal(), sort_keys=False)

    def _drop_journal(self) -> None:
        self.manager.journal_path(self.id).unlink(missing_ok=True)

    def backup(self, path: Path) -> BackupResult:
        """Stage ``path`` before it is modified or deleted.

        Only the first backup of a path within one transaction is taken, so
        rollback restores the state from before the transaction began.

        Raises:
            FixFailureError: If the copy cannot be staged.
        """
        self._require_active()
        path = Path(path).resolve()
        if path in self.entries:
            return _already_staged(self.manager, path)

        result = self.manager.backup(path)
        if not result.success:
            msg = f"Could not back up {path}: {result.message}"
            raise FixFailureError(msg, path=path)
        if result.staged is not None:
            self.entries.append(path)
            self._write_journal()
        return result

    def register_created(self, path: Path) -> None:
        """Record a file or directory this transaction is about to create."""
        self._require_active()
        self.created.append(Path(path).resolve())
        self._write_journal()

    def record_removed_dir(self, path: Path) -> None:
        """Record a directory this transaction is about to remove."""
        self._require_active()
        self.removed_dirs.append(Path(path).resolve())
        self._write_journal()

    def commit(self) -> None:
        self._require_active()
        self.active = False
        self.committed = True
        self._drop_journal()
        logger.debug("Committed transaction %s (%d staged)", self.id, len(self.entries))

    def rollback(self) -> list[RestoreResult]:
        """Undo every recorded change. Staged copies used here are removed.

        Raises:
            RuntimeError: If the transaction was committed or already closed.
        """
        if self.committed:
            msg = f"Transaction {self.id} is already committed"
            raise RuntimeError(msg)
        self._require_active()

        for path in reversed(self.created):
            if path.is_dir() and not path.is_symlink():
                if not any(path.iterdir()):
                    path.rmdir()
            elif path.exists() or path.is_symlink():
                path.unlink()

        for directory in reversed(self.removed_dirs):
            directory.mkdir(parents=True, exist_ok=True)

        results: list[RestoreResult] = []
        for path in reversed(self.entries):
            result = self.manager.restore(path)
            results.append(result)
            if result.success:
                self.manager.delete_backup(path)
            else:
                logger.error("Could not restore %s: %s", path, result.message)

        self.active = False
        self._drop_journal()
        logger.debug("Rolled back transaction %s", self.id)
        return results

    def close(self) -> None:
        """Roll back if still active; otherwise do nothing."""
        if self.active:
            self.rollback()


def _already_staged(manager: BackupManager, path: Path) -> BackupResult:
    from backup.manager import BackupResult

    return BackupResult(path, manager.backup_path(path), True, "already staged")


__all__ = ["BackupTransaction"]
