"""
Tests for the file sync engines.
"""

import os
import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from autowsus.application.ports import SyncOptions
from autowsus.domain.errors import FileSyncError
from autowsus.infrastructure.file_sync import (
    RobocopySyncEngine,
    ThreadedSyncEngine,
    parse_robocopy_summary,
)

ROBOCOPY_SUMMARY = """
------------------------------------------------------------------------------

               Total    Copied   Skipped  Mismatch    FAILED    Extras
    Dirs :        12         2        10         0         0         0
   Files :       340        25       315         0         0         3
   Bytes :   12.50 g   1.5 g    11.00 g         0         0    20.1 m
   Times :   0:05:01   0:04:10                       0:00:00   0:00:51
"""


def write(path: Path, content: bytes = b"data", age_days: float = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    stamp = time.time() - age_days * 86400
    os.utime(path, (stamp, stamp))
    return path


class TestRobocopySummary:

    def test_parses_copied_column(self):
        files, size = parse_robocopy_summary(ROBOCOPY_SUMMARY)
        assert files == 25
        assert size == int(1.5 * 1024 ** 3)

    def test_plain_byte_counts(self):
        files, size = parse_robocopy_summary("   Files :  3  2  1  0  0  0\n   Bytes :  900  600  300  0  0  0\n")
        assert (files, size) == (2, 600)

    def test_no_summary(self):
        assert parse_robocopy_summary("ERROR 53 (0x00000035) network path not found") == (0, 0)


class TestRobocopySyncEngine:

    def setup_method(self):
        self.engine = RobocopySyncEngine()

    def test_build_arguments(self):
        options = SyncOptions(
            max_age_days=7,
            exclude_patterns=("*.tmp", "~*"),
            thread_count=16,
            retries=3,
            retry_wait_seconds=5,
        )
        args = self.engine.build_arguments(r"C:\WSUS\WsusContent", r"E:\Export\WsusContent", options)

        assert args[:3] == ["robocopy", r"C:\WSUS\WsusContent", r"E:\Export\WsusContent"]
        for flag in ("/E", "/XO", "/MAXAGE:7", "/MT:16", "/R:3", "/W:5", "/NP", "/NDL", "/NFL"):
            assert flag in args
        xf = args.index("/XF")
        assert args[xf + 1:xf + 3] == ["*.tmp", "~*"]

    def test_single_file_copy(self):
        args = self.engine.build_arguments("C:/b", "E:/x", SyncOptions(recurse=False, files=("SUSDB.bak",)))
        assert args[3] == "SUSDB.bak"
        assert "/E" not in args
        assert not any(arg.startswith("/MAXAGE") for arg in args)

    @patch("autowsus.infrastructure.file_sync.subprocess.run")
    def test_sync_maps_result(self, mock_run):
        mock_run.return_value = Mock(returncode=3, stdout=ROBOCOPY_SUMMARY, stderr="")
        result = self.engine.sync("src", "dst", SyncOptions())
        assert result.exit_code == 3
        assert result.files_copied == 25

    @patch("autowsus.infrastructure.file_sync.subprocess.run", side_effect=FileNotFoundError("robocopy"))
    def test_missing_executable(self, mock_run):
        with pytest.raises(FileSyncError):
            self.engine.sync("src", "dst", SyncOptions())


class TestThreadedSyncEngine:

    def setup_method(self):
        self.engine = ThreadedSyncEngine(sleep=lambda seconds: None)

    def test_copies_missing_files_recursively(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "a.cab", b"aaaa")
        write(src / "sub" / "b.cab", b"bb")

        result = self.engine.sync(str(src), str(dst), SyncOptions())

        assert result.exit_code == 1
        assert result.files_copied == 2
        assert result.bytes_copied == 6
        assert (dst / "sub" / "b.cab").read_bytes() == b"bb"

    def test_second_run_copies_nothing(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "a.cab")
        self.engine.sync(str(src), str(dst), SyncOptions())

        result = self.engine.sync(str(src), str(dst), SyncOptions())

        assert result.exit_code == 0
        assert result.files_copied == 0

    def test_never_deletes_destination_only_files(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "a.cab")
        extra = write(dst / "extra.cab")
        self.engine.sync(str(src), str(dst), SyncOptions())
        assert extra.exists()

    def test_newer_destination_not_overwritten(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "a.cab", b"old", age_days=5)
        write(dst / "a.cab", b"newer", age_days=1)

        result = self.engine.sync(str(src), str(dst), SyncOptions())

        assert result.files_copied == 0
        assert (dst / "a.cab").read_bytes() == b"newer"

    def test_age_filter_and_exclusions(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "fresh.cab", age_days=2)
        write(src / "stale.cab", age_days=10)
        write(src / "partial.tmp", age_days=1)

        options = SyncOptions(max_age_days=7, exclude_patterns=("*.tmp",))
        result = self.engine.sync(str(src), str(dst), options)

        assert result.files_copied == 1
        assert (dst / "fresh.cab").exists()
        assert not (dst / "stale.cab").exists()
        assert not (dst / "partial.tmp").exists()

    def test_explicit_file_list(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "SUSDB_20250615.bak")
        write(src / "SUSDB_20250614.bak")

        result = self.engine.sync(str(src), str(dst), SyncOptions(recurse=False, files=("SUSDB_20250615.bak",)))

        assert result.files_copied == 1
        assert sorted(p.name for p in dst.iterdir()) == ["SUSDB_20250615.bak"]

    def test_retries_then_reports_failure(self, tmp_path):
        src, dst = tmp_path / "src", tmp_path / "dst"
        write(src / "a.cab")
        waits = []
        engine = ThreadedSyncEngine(sleep=waits.append)

        with patch("autowsus.infrastructure.file_sync.shutil.copy2", side_effect=PermissionError("locked")):
            result = engine.sync(str(src), str(dst), SyncOptions(retries=2, retry_wait_seconds=1))

        assert result.exit_code == 8
        assert result.failed_files == [str(src / "a.cab")]
        assert waits == [1, 1]

    def test_missing_source(self, tmp_path):
        result = self.engine.sync(str(tmp_path / "absent"), str(tmp_path / "dst"), SyncOptions())
        assert result.exit_code == 8
