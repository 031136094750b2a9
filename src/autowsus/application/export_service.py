"""
Differential Export Engine.

Replicates WSUS content and the latest backup to an export root for a
disconnected site, in two stages:

1. Rolling full mirror: the backup file into the root and all content into
   root/WsusContent, newer-or-missing only, never deleting anything.
2. Dated archive: the same backup plus content modified within the window
   into root/Archive/YYYY-MM-DD/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable

from autowsus.application.ports import FileSyncEngine, SyncOptions
from autowsus.domain.config.settings import ExportSettings
from autowsus.domain.errors import FileSyncError
from autowsus.domain.models import ExportDescriptor, FileSyncResult
from autowsus.domain.outcome import Outcome

logger = logging.getLogger(__name__)


def sync_options(
    settings: ExportSettings,
    max_age_days: int | None = None,
    files: tuple[str, ...] = (),
) -> SyncOptions:
    """Newer-or-missing copy options; recursive unless an explicit file list is given."""
    return SyncOptions(
        recurse=not files,
        max_age_days=max_age_days,
        exclude_older=True,
        exclude_patterns=tuple(settings.exclude_patterns),
        files=files,
        thread_count=settings.thread_count,
        retries=settings.retries,
        retry_wait_seconds=settings.retry_wait_seconds,
    )


def copy_stage(
    engine: FileSyncEngine,
    settings: ExportSettings,
    label: str,
    source: Path,
    dest: Path,
    options: SyncOptions,
    outcome: Outcome,
) -> FileSyncResult:
    """Run one sync and turn engine errors and failure or partial exit codes into warnings."""
    try:
        result = engine.sync(str(source), str(dest), options)
    except FileSyncError as exc:
        outcome.warn(f"{label}: {exc}")
        return FileSyncResult(exit_code=settings.failure_exit_code)

    if result.exit_code >= settings.failure_exit_code:
        detail = f" ({len(result.failed_files)} files failed)" if result.failed_files else ""
        outcome.warn(f"{label}: copy failures, exit code {result.exit_code}{detail}")
    elif result.exit_code >= settings.partial_exit_code:
        outcome.warn(f"{label}: partial success, exit code {result.exit_code}")
    return result


class ExportService:
    """Two-stage export through a FileSyncEngine."""

    def __init__(
        self,
        engine: FileSyncEngine,
        settings: ExportSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.engine = engine
        self.settings = settings or ExportSettings()
        self._clock = clock

    def _options(self, max_age_days: int | None = None, files: tuple[str, ...] = ()) -> SyncOptions:
        return sync_options(self.settings, max_age_days, files)

    @staticmethod
    def check_writable(export_root: Path) -> str | None:
        """Create the root if needed and write a marker file; return an error message or None."""
        marker = export_root / f".autowsus-marker-{uuid.uuid4().hex}"
        try:
            export_root.mkdir(parents=True, exist_ok=True)
            marker.write_bytes(b"")
            marker.unlink()
        except OSError as exc:
            return f"Export root {export_root} is not writable: {exc}"
        return None

    def _copy(self, label: str, source: Path, dest: Path, options: SyncOptions, outcome: Outcome) -> FileSyncResult:
        return copy_stage(self.engine, self.settings, f"Export {label}", source, dest, options, outcome)

    def export(
        self,
        source_content_dir: str | Path,
        export_root: str | Path,
        window_days: int,
        backup_file: str | Path | None = None,
    ) -> Outcome[ExportDescriptor]:
        """
        Run both export stages.

        Args:
            source_content_dir: WSUS content directory
            export_root: Destination root (removable drive or share)
            window_days: Age window for the archive copy
            backup_file: Backup to include; skipped when None

        Returns:
            Outcome with the ExportDescriptor; an unwritable root is an error
        """
        if window_days <= 0:
            return Outcome.failed(f"Export window must be positive, got {window_days}")

        root = Path(export_root)
        problem = self.check_writable(root)
        if problem:
            logger.error(problem)
            return Outcome.failed(problem)

        source = Path(source_content_dir)
        archive = root / self.settings.archive_folder / f"{self._clock():%Y-%m-%d}"
        outcome: Outcome[ExportDescriptor] = Outcome.ok()
        results: list[FileSyncResult] = []

        backup = Path(backup_file) if backup_file else None
        if backup is not None and not backup.is_file():
            outcome.warn(f"Export: backup file {backup} not found, continuing with content only")
            backup = None

        # Stage 1: rolling full mirror
        logger.info("Export stage 1: full mirror into %s", root)
        if backup is not None:
            results.append(self._copy("backup (root)", backup.parent, root, self._options(files=(backup.name,)), outcome))
        results.append(self._copy(
            "content (root)", source, root / self.settings.content_folder, self._options(), outcome,
        ))

        # Stage 2: dated archive
        logger.info("Export stage 2: %d-day archive into %s", window_days, archive)
        if backup is not None:
            results.append(self._copy(
                "backup (archive)", backup.parent, archive, self._options(files=(backup.name,)), outcome,
            ))
        results.append(self._copy(
            "content (archive)", source, archive / self.settings.content_folder,
            self._options(max_age_days=window_days), outcome,
        ))

        file_count = sum(result.files_copied for result in results)
        total_bytes = sum(result.bytes_copied for result in results)
        outcome.value = ExportDescriptor(
            root_path=str(root),
            archive_path=str(archive),
            file_count=file_count,
            size_gb=round(total_bytes / (1024 ** 3), 3),
            window_days=window_days,
        )
        logger.info("Export complete: %d files, %.3f GB", file_count, outcome.value.size_gb)
        return outcome
