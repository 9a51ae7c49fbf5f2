"""Reversible file changes: staged backups and transactions."""

from backup.manager import BackupManager, BackupResult, RestoreResult
from backup.transaction import BackupTransaction

__all__ = ["BackupManager", "BackupResult", "BackupTransaction", "RestoreResult"]
