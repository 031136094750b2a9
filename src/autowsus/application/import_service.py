"""
Content import for a disconnected WSUS server.

The receiving half of the differential export: pulls WsusContent from an
export root (the rolling mirror, or one dated archive under Archive/) into
the local content directory, newer-or-missing only. Backup files found
beside the content can be copied into the local backup directory for a
restore.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from autowsus.application.export_service import copy_stage, sync_options
from autowsus.application.ports import FileSyncEngine
from autowsus.domain.config.settings import ExportSettings
from autowsus.domain.models import FileSyncResult, ImportDescriptor
from autowsus.domain.outcome import Outcome

logger = logging.getLogger(__name__)

_ARCHIVE_NAME = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ImportService:
    """Copies exported content into the local WSUS content directory."""

    def __init__(self, engine: FileSyncEngine, settings: ExportSettings | None = None):
        self.engine = engine
        self.settings = settings or ExportSettings()

    def latest_archive(self, export_root: str | Path) -> str | None:
        """Name of the newest dated archive under export_root, if any."""
        archive_dir = Path(export_root) / self.settings.archive_folder
        if not archive_dir.is_dir():
            return None
        names = sorted(p.name for p in archive_dir.iterdir() if p.is_dir() and _ARCHIVE_NAME.match(p.name))
        return names[-1] if names else None

    def source_root(self, export_root: str | Path, archive: str | None = None) -> Path:
        root = Path(export_root)
        return root / self.settings.archive_folder / archive if archive else root

    def import_content(
        self,
        export_root: str | Path,
        content_dir: str | Path,
        archive: str | None = None,
        backup_dir: str | Path | None = None,
    ) -> Outcome[ImportDescriptor]:
        """
        Import content, and optionally backups, from an export.

        Args:
            export_root: Root written by the export on the connected server
            content_dir: Local WSUS content directory
            archive: Dated archive name (YYYY-MM-DD); the rolling mirror when None
            backup_dir: Copy *.bak files from the source into this directory

        Returns:
            Outcome with the ImportDescriptor. A missing source or an
            unwritable content directory is an error; copy problems are warnings.
        """
        source = self.source_root(export_root, archive)
        content_source = source / self.settings.content_folder
        if not content_source.is_dir():
            return Outcome.failed(f"No {self.settings.content_folder} folder in {source}")

        destination = Path(content_dir)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return Outcome.failed(f"Content directory {destination} is not writable: {exc}")

        outcome: Outcome[ImportDescriptor] = Outcome.ok()
        logger.info("Importing %s into %s", content_source, destination)
        results: list[FileSyncResult] = [copy_stage(
            self.engine, self.settings, "Import content",
            content_source, destination, sync_options(self.settings), outcome,
        )]

        backup_files: list[str] = []
        if backup_dir is not None:
            backups = tuple(sorted(p.name for p in source.glob("*.bak") if p.is_file()))
            if not backups:
                outcome.warn(f"Import: no backup file in {source}")
            else:
                results.append(copy_stage(
                    self.engine, self.settings, "Import backup",
                    source, Path(backup_dir), sync_options(self.settings, files=backups), outcome,
                ))
                backup_files = [str(Path(backup_dir) / name) for name in backups]

        total_bytes = sum(result.bytes_copied for result in results)
        outcome.value = ImportDescriptor(
            source_path=str(source),
            content_dir=str(destination),
            file_count=sum(result.files_copied for result in results),
            size_gb=round(total_bytes / (1024 ** 3), 3),
            backup_files=backup_files,
        )
        logger.info("Import complete: %d files, %.3f GB", outcome.value.file_count, outcome.value.size_gb)
        return outcome
