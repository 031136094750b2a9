"""
Backup & Retention Manager.

Full SUSDB backups with dated, collision-free file names, and mtime based
retention pruning of older backup files.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from autowsus.application.ports import SqlExecutor
from autowsus.domain.config.settings import BackupSettings
from autowsus.domain.models import BackupDescriptor, PruneResult
from autowsus.infrastructure.susdb_queries import SusdbQueries

logger = logging.getLogger(__name__)

BACKUP_EXTENSION = ".bak"


class BackupService:
    """Creates and prunes SUSDB backup files."""

    def __init__(
        self,
        sql: SqlExecutor,
        queries: SusdbQueries,
        settings: BackupSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.sql = sql
        self.queries = queries
        self.settings = settings or BackupSettings()
        self._clock = clock

    def next_backup_path(self, target_dir: Path) -> Path:
        """
        Return the first free dated file name in target_dir.

        SUSDB_YYYYMMDD.bak, then SUSDB_YYYYMMDD_1.bak, _2, ...
        """
        stem = f"{self.settings.file_prefix}_{self._clock():%Y%m%d}"
        candidate = target_dir / f"{stem}{BACKUP_EXTENSION}"
        suffix = 0
        while candidate.exists():
            suffix += 1
            candidate = target_dir / f"{stem}_{suffix}{BACKUP_EXTENSION}"
        return candidate

    def backup(self, target_dir: str | Path) -> BackupDescriptor:
        """
        Run a full backup into target_dir.

        Raises:
            SqlExecutionError: If the BACKUP statement fails
            OSError: If the target directory cannot be created
        """
        target = Path(target_dir)
        target.mkdir(parents=True, exist_ok=True)
        path = self.next_backup_path(target)

        logger.info("Backing up %s to %s", self.queries.database, path)
        query = self.queries.full_backup(str(path), self.settings.compression)
        start = time.monotonic()
        self.sql.execute(query.sql, query.params, timeout=0, autocommit=True)
        duration = time.monotonic() - start

        size_mb = path.stat().st_size / (1024 * 1024) if path.exists() else 0.0
        descriptor = BackupDescriptor(
            file_path=str(path),
            size_mb=round(size_mb, 2),
            duration_seconds=round(duration, 2),
        )
        logger.info("Backup complete: %.2f MB in %.1fs", descriptor.size_mb, descriptor.duration_seconds)
        return descriptor

    def prune(
        self,
        target_dir: str | Path,
        retention_days: int | None = None,
        keep: str | Path | None = None,
    ) -> PruneResult:
        """
        Delete backup files last modified before the retention window.

        Args:
            target_dir: Backup directory
            retention_days: Window in days (default from settings, 90)
            keep: File that must survive regardless of age

        Returns:
            PruneResult with deleted paths and MB freed
        """
        days = retention_days if retention_days is not None else self.settings.retention_days
        cutoff = (self._clock() - timedelta(days=days)).timestamp()
        keep_path = Path(keep).resolve() if keep else None
        result = PruneResult()

        target = Path(target_dir)
        if not target.is_dir():
            logger.info("Backup directory %s does not exist, nothing to prune", target)
            return result

        freed_bytes = 0
        for path in sorted(target.glob(f"*{BACKUP_EXTENSION}")):
            if keep_path is not None and path.resolve() == keep_path:
                continue
            stat = path.stat()
            if stat.st_mtime >= cutoff:
                continue
            path.unlink()
            freed_bytes += stat.st_size
            result.deleted_files.append(str(path))
            logger.debug("Pruned %s", path)

        result.freed_mb = round(freed_bytes / (1024 * 1024), 2)
        logger.info("Pruned %d backups older than %d days (%.2f MB freed)", len(result.deleted_files), days, result.freed_mb)
        return result

    @staticmethod
    def latest_backup(target_dir: str | Path) -> Path | None:
        """Most recently modified backup file, if any."""
        target = Path(target_dir)
        if not target.is_dir():
            return None
        backups = [path for path in target.glob(f"*{BACKUP_EXTENSION}") if path.is_file()]
        if not backups:
            return None
        return max(backups, key=lambda path: path.stat().st_mtime)
