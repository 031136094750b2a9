"""
File Sync Engine adapters.

Two implementations of the FileSyncEngine port:
- RobocopySyncEngine shells out to robocopy on Windows hosts
- ThreadedSyncEngine is a pure Python copier used elsewhere and in tests

Both copy newer-or-missing files only and never delete from the
destination. Exit codes follow robocopy conventions so callers can treat
them uniformly: 0 nothing copied, 1 files copied, 4-7 mismatches or
extras, 8 and above at least one copy failed.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
import shutil
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable

from autowsus.application.ports import FileSyncEngine, SyncOptions
from autowsus.domain.errors import FileSyncError
from autowsus.domain.models import FileSyncResult

logger = logging.getLogger(__name__)

EXIT_NO_CHANGE = 0
EXIT_COPIED = 1
EXIT_FAILED = 8

_UNITS = {"": 1, "k": 1024, "m": 1024 ** 2, "g": 1024 ** 3, "t": 1024 ** 4}
_SUMMARY_LINE = re.compile(r"^\s*(Files|Bytes)\s*:\s*(.+)$", re.IGNORECASE)
_SUMMARY_VALUE = re.compile(r"(\d+(?:\.\d+)?)\s*([kmgt]?)(?=\s|$)", re.IGNORECASE)


# ============================================================================
# Robocopy
# ============================================================================

def parse_size(value: str, unit: str = "") -> int:
    """Convert a robocopy summary value such as '1.5 g' to bytes."""
    return int(float(value) * _UNITS[unit.lower()])


def parse_robocopy_summary(output: str) -> tuple[int, int]:
    """
    Read copied file and byte counts from robocopy's summary table.

    The table columns are Total, Copied, Skipped, Mismatch, FAILED, Extras;
    the second value of the Files and Bytes rows is what was copied.

    Returns:
        (files_copied, bytes_copied)
    """
    files_copied = 0
    bytes_copied = 0
    for line in output.splitlines():
        match = _SUMMARY_LINE.match(line)
        if not match:
            continue
        values = _SUMMARY_VALUE.findall(match.group(2))
        if len(values) < 2:
            continue
        label = match.group(1).lower()
        if label == "files":
            files_copied = int(float(values[1][0]))
        else:
            bytes_copied = parse_size(*values[1])
    return files_copied, bytes_copied


class RobocopySyncEngine(FileSyncEngine):
    """Runs robocopy and maps its exit code and summary to FileSyncResult."""

    def __init__(self, executable: str = "robocopy", timeout: int | None = None):
        self.executable = executable
        self.timeout = timeout

    def build_arguments(self, source: str, dest: str, options: SyncOptions) -> list[str]:
        args = [self.executable, source, dest]
        args.extend(options.files)
        if options.recurse:
            args.append("/E")
        if options.exclude_older:
            args.append("/XO")
        if options.max_age_days:
            args.append(f"/MAXAGE:{int(options.max_age_days)}")
        if options.exclude_patterns:
            args.append("/XF")
            args.extend(options.exclude_patterns)
        args.extend([
            f"/MT:{int(options.thread_count)}",
            f"/R:{int(options.retries)}",
            f"/W:{int(options.retry_wait_seconds)}",
            "/NP",
            "/NDL",
            "/NFL",
        ])
        return args

    def sync(self, source: str, dest: str, options: SyncOptions) -> FileSyncResult:
        args = self.build_arguments(source, dest, options)
        logger.info("robocopy %s -> %s", source, dest)
        logger.debug("Command: %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise FileSyncError(f"robocopy could not run: {exc}") from exc

        files_copied, bytes_copied = parse_robocopy_summary(proc.stdout or "")
        if proc.returncode >= EXIT_FAILED:
            logger.warning("robocopy exited with %d: %s", proc.returncode, (proc.stderr or "").strip())
        else:
            logger.info("robocopy exit %d, %d files copied", proc.returncode, files_copied)
        return FileSyncResult(
            exit_code=proc.returncode,
            files_copied=files_copied,
            bytes_copied=bytes_copied,
        )


# ============================================================================
# Pure Python engine
# ============================================================================

class ThreadedSyncEngine(FileSyncEngine):
    """
    Newer-or-missing copier built on a thread pool.

    Honors every SyncOptions field: recursion, the modification-age window,
    exclusion globs, an explicit file list, worker count and per-file
    retries with a fixed wait.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._clock = clock
        self._sleep = sleep

    def _candidates(self, source: Path, options: SyncOptions) -> list[Path]:
        if options.files:
            return [source / name for name in options.files if (source / name).is_file()]
        pattern = "**/*" if options.recurse else "*"
        return [path for path in source.glob(pattern) if path.is_file()]

    def _is_excluded(self, path: Path, options: SyncOptions) -> bool:
        return any(fnmatch.fnmatch(path.name, pattern) for pattern in options.exclude_patterns)

    def _needs_copy(self, src: Path, dst: Path, options: SyncOptions, now: float) -> bool:
        src_stat = src.stat()
        if options.max_age_days is not None and now - src_stat.st_mtime > options.max_age_days * 86400:
            return False
        if not dst.exists():
            return True
        dst_stat = dst.stat()
        if options.exclude_older and dst_stat.st_mtime > src_stat.st_mtime:
            return False
        return dst_stat.st_mtime != src_stat.st_mtime or dst_stat.st_size != src_stat.st_size

    def _copy_with_retry(self, src: Path, dst: Path, options: SyncOptions) -> int:
        attempt = 0
        while True:
            try:
                dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, dst)
                return src.stat().st_size
            except OSError as exc:
                if attempt >= options.retries:
                    raise
                attempt += 1
                logger.debug("Retry %d/%d for %s: %s", attempt, options.retries, src, exc)
                self._sleep(options.retry_wait_seconds)

    def sync(self, source: str, dest: str, options: SyncOptions) -> FileSyncResult:
        source_path = Path(source)
        dest_path = Path(dest)
        if not source_path.is_dir():
            logger.warning("Source directory missing: %s", source)
            return FileSyncResult(exit_code=EXIT_FAILED, failed_files=[str(source_path)])

        now = self._clock()
        work: list[tuple[Path, Path]] = []
        for src in self._candidates(source_path, options):
            if self._is_excluded(src, options):
                continue
            dst = dest_path / src.relative_to(source_path)
            if self._needs_copy(src, dst, options, now):
                work.append((src, dst))

        files_copied = 0
        bytes_copied = 0
        failed: list[str] = []
        with ThreadPoolExecutor(max_workers=max(1, options.thread_count)) as pool:
            futures = {pool.submit(self._copy_with_retry, src, dst, options): src for src, dst in work}
            for future in as_completed(futures):
                src = futures[future]
                try:
                    bytes_copied += future.result()
                    files_copied += 1
                except OSError as exc:
                    logger.warning("Copy failed for %s: %s", src, exc)
                    failed.append(str(src))

        if failed:
            exit_code = EXIT_FAILED
        elif files_copied:
            exit_code = EXIT_COPIED
        else:
            exit_code = EXIT_NO_CHANGE
        logger.info(
            "Synced %s -> %s: %d copied, %d failed",
            source, dest, files_copied, len(failed),
        )
        return FileSyncResult(
            exit_code=exit_code,
            files_copied=files_copied,
            bytes_copied=bytes_copied,
            failed_files=failed,
        )


def default_sync_engine() -> FileSyncEngine:
    """robocopy on Windows when available, otherwise the threaded engine."""
    if os.name == "nt" and shutil.which("robocopy"):
        return RobocopySyncEngine()
    return ThreadedSyncEngine()
