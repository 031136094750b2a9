"""
Tests for importing exported content on a disconnected server.
"""

import os
import time
from pathlib import Path
from unittest.mock import Mock

from autowsus.application.import_service import ImportService
from autowsus.domain.errors import FileSyncError
from autowsus.domain.models import FileSyncResult
from autowsus.infrastructure.file_sync import ThreadedSyncEngine


def write(path: Path, content: bytes = b"payload", age_days: float = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    stamp = time.time() - age_days * 86400
    os.utime(path, (stamp, stamp))
    return path


class TestImportContent:
    """Real copies through the threaded engine."""

    def setup_method(self):
        self.service = ImportService(ThreadedSyncEngine(sleep=lambda s: None))

    def test_mirror_imported_into_content_dir(self, tmp_path):
        export = tmp_path / "export"
        write(export / "WsusContent" / "A1" / "one.cab")
        write(export / "WsusContent" / "B2" / "two.cab")
        write(export / "SUSDB_20250615.bak")
        content = tmp_path / "WsusContent"

        outcome = self.service.import_content(export, content)

        assert outcome.succeeded
        assert outcome.warnings == []
        assert (content / "A1" / "one.cab").exists()
        assert (content / "B2" / "two.cab").exists()
        assert not (content / "SUSDB_20250615.bak").exists()
        assert outcome.value.file_count == 2
        assert outcome.value.source_path == str(export)
        assert outcome.value.backup_files == []

    def test_newer_local_file_is_kept(self, tmp_path):
        export = tmp_path / "export"
        write(export / "WsusContent" / "A1" / "one.cab", b"exported", age_days=5)
        local = write(tmp_path / "WsusContent" / "A1" / "one.cab", b"local")

        outcome = self.service.import_content(export, tmp_path / "WsusContent")

        assert outcome.succeeded
        assert local.read_bytes() == b"local"

    def test_archive_with_backup(self, tmp_path):
        archive = tmp_path / "export" / "Archive" / "2025-06-15"
        write(archive / "WsusContent" / "A1" / "recent.cab")
        write(archive / "SUSDB_20250615.bak")
        backups = tmp_path / "backups"

        outcome = self.service.import_content(
            tmp_path / "export", tmp_path / "WsusContent", archive="2025-06-15", backup_dir=backups,
        )

        assert outcome.succeeded
        assert (tmp_path / "WsusContent" / "A1" / "recent.cab").exists()
        assert (backups / "SUSDB_20250615.bak").exists()
        assert outcome.value.backup_files == [str(backups / "SUSDB_20250615.bak")]
        assert outcome.value.file_count == 2

    def test_missing_backup_is_warning(self, tmp_path):
        write(tmp_path / "export" / "WsusContent" / "x.cab")

        outcome = self.service.import_content(
            tmp_path / "export", tmp_path / "WsusContent", backup_dir=tmp_path / "backups",
        )

        assert outcome.succeeded
        assert outcome.warnings == [f"Import: no backup file in {tmp_path / 'export'}"]

    def test_missing_content_folder_fails(self, tmp_path):
        (tmp_path / "export").mkdir()

        outcome = self.service.import_content(tmp_path / "export", tmp_path / "WsusContent")

        assert not outcome.succeeded
        assert "No WsusContent folder" in outcome.error
        assert not (tmp_path / "WsusContent").exists()

    def test_unwritable_content_dir_fails(self, tmp_path):
        write(tmp_path / "export" / "WsusContent" / "x.cab")
        blocker = tmp_path / "blocker"
        blocker.write_text("file in the way")

        outcome = self.service.import_content(tmp_path / "export", blocker / "WsusContent")

        assert not outcome.succeeded
        assert "not writable" in outcome.error


class TestArchiveSelection:

    def setup_method(self):
        self.service = ImportService(Mock())

    def test_latest_archive_ignores_other_folders(self, tmp_path):
        for name in ("2025-05-01", "2025-06-15", "2025-06-01", "scratch"):
            (tmp_path / "Archive" / name).mkdir(parents=True)
        (tmp_path / "Archive" / "2099-01-01.txt").write_text("not a folder")

        assert self.service.latest_archive(tmp_path) == "2025-06-15"

    def test_no_archive_folder(self, tmp_path):
        assert self.service.latest_archive(tmp_path) is None

    def test_source_root(self, tmp_path):
        assert self.service.source_root(tmp_path) == tmp_path
        assert self.service.source_root(tmp_path, "2025-06-15") == tmp_path / "Archive" / "2025-06-15"


class TestImportExitCodes:
    """Copy engine results become warnings, never errors."""

    def setup_method(self):
        self.engine = Mock()
        self.service = ImportService(self.engine)

    def test_failure_exit_code_warns(self, tmp_path):
        (tmp_path / "export" / "WsusContent").mkdir(parents=True)
        self.engine.sync.return_value = FileSyncResult(exit_code=8, failed_files=["a.cab", "b.cab"])

        outcome = self.service.import_content(tmp_path / "export", tmp_path / "content")

        assert outcome.succeeded
        assert outcome.warnings == ["Import content: copy failures, exit code 8 (2 files failed)"]

    def test_engine_error_warns(self, tmp_path):
        (tmp_path / "export" / "WsusContent").mkdir(parents=True)
        self.engine.sync.side_effect = FileSyncError("robocopy not found")

        outcome = self.service.import_content(tmp_path / "export", tmp_path / "content")

        assert outcome.succeeded
        assert outcome.warnings == ["Import content: robocopy not found"]
        assert outcome.value.file_count == 0

    def test_content_copy_options(self, tmp_path):
        (tmp_path / "export" / "WsusContent").mkdir(parents=True)
        self.engine.sync.return_value = FileSyncResult(exit_code=1, files_copied=3, bytes_copied=3 * 1024 ** 3)

        outcome = self.service.import_content(tmp_path / "export", tmp_path / "content")

        source, dest, options = self.engine.sync.call_args[0]
        assert source == str(tmp_path / "export" / "WsusContent")
        assert dest == str(tmp_path / "content")
        assert options.recurse
        assert options.exclude_older
        assert options.max_age_days is None
        assert outcome.value.size_gb == 3.0
