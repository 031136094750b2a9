"""
Tests for the JSON and Excel run reports.
"""

import json
from datetime import datetime, timedelta, timezone

from openpyxl import load_workbook

from autowsus.domain.models import BackupDescriptor, MaintenanceRun, PhaseName, PhaseStatus
from autowsus.infrastructure.excel_report import write_run_report
from autowsus.infrastructure.json_report import run_to_dict, write_json_report

START = datetime(2025, 6, 15, 2, 0, tzinfo=timezone.utc)


def make_run() -> MaintenanceRun:
    run = MaintenanceRun(start_time=START, declined_expired=2, declined_old=3, approved=7)
    run.record_phase(PhaseName.CONNECT, PhaseStatus.COMPLETED, 1.234)
    run.record_phase(PhaseName.SYNC, PhaseStatus.FAILED, 60)
    run.record_phase(PhaseName.BACKUP, PhaseStatus.SKIPPED)
    run.backup = BackupDescriptor(file_path="D:/Backups/SUSDB_20250615.bak", size_mb=812.5, duration_seconds=42.0)
    run.warnings.append("Database size 9.10 GB is at or above 90% of the 10 GB limit")
    run.errors.append("Sync: Cannot start synchronization: timeout")
    run.finalize(START + timedelta(minutes=5))
    return run


class TestJsonReport:

    def test_run_to_dict(self):
        data = run_to_dict(make_run())

        assert data["success"] is False
        assert data["declined_total"] == 5
        assert data["duration_seconds"] == 300
        assert data["start_time"] == "2025-06-15T02:00:00+00:00"
        assert data["phases"][0] == {"name": "Connect", "status": "completed", "duration_seconds": 1.23}
        assert data["backup"]["size_mb"] == 812.5
        assert data["export"] is None

    def test_write_json_report(self, tmp_path):
        path = write_json_report(make_run(), tmp_path / "reports" / "run.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["errors"] == ["Sync: Cannot start synchronization: timeout"]


class TestExcelReport:

    def test_sheets_and_content(self, tmp_path):
        path = write_run_report(make_run(), tmp_path / "run.xlsx")

        wb = load_workbook(path)
        assert wb.sheetnames == ["Summary", "Phases", "Issues"]

        summary = {row[0]: row[1] for row in wb["Summary"].iter_rows(values_only=True)}
        assert summary["Result"] == "Failed"
        assert summary["Declined (total)"] == 5
        assert summary["Backup file"] == "D:/Backups/SUSDB_20250615.bak"

        phases = list(wb["Phases"].iter_rows(min_row=2, values_only=True))
        assert phases == [("Connect", "completed", 1.23), ("Sync", "failed", 60), ("Backup", "skipped", 0)]

        issues = list(wb["Issues"].iter_rows(min_row=2, values_only=True))
        assert [severity for severity, _ in issues] == ["Error", "Warning"]
