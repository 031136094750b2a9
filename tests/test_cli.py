"""
CLI tests using typer's CliRunner with the container patched out.
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from autowsus import __version__
from autowsus.domain.config import MaintenanceSettings
from autowsus.domain.models import (
    HealthReport,
    MaintenanceRun,
    Operation,
    PhaseName,
    PhaseStatus,
    RepairResult,
    ServiceHealth,
)
from autowsus.interface.cli import app

runner = CliRunner()

STARTED = datetime(2025, 6, 15, 2, 0, tzinfo=timezone.utc)


def finished_run(errors=()) -> MaintenanceRun:
    run = MaintenanceRun(start_time=STARTED)
    run.record_phase(PhaseName.CONNECT, PhaseStatus.COMPLETED, 0.5)
    run.errors.extend(errors)
    run.finalize(STARTED)
    return run


class TestSimpleCommands:

    def test_presets(self):
        result = runner.invoke(app, ["presets"])
        assert result.exit_code == 0
        assert "backup-and-export" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert __version__ in result.output

    def test_unknown_operation_is_usage_error(self, tmp_path):
        result = runner.invoke(app, ["run", "-u", "-o", "sync,defrag", "-c", str(tmp_path)])
        assert result.exit_code == 2


class TestRunCommand:

    def setup_method(self):
        self.container = MagicMock()
        self.container.settings = MaintenanceSettings()
        self.container.pipeline.run.return_value = finished_run()

    def invoke(self, args, tmp_path, **kwargs):
        self.container.settings.paths.log_dir = str(tmp_path / "logs")
        with patch("autowsus.interface.cli.Container", return_value=self.container):
            return runner.invoke(app, ["run", *args, "-c", str(tmp_path)], **kwargs)

    def plan(self):
        return self.container.pipeline.run.call_args[0][0]

    def test_unattended_success(self, tmp_path):
        result = self.invoke(["--unattended", "--preset", "quick"], tmp_path)

        assert result.exit_code == 0, result.output
        plan = self.plan()
        assert plan.unattended
        assert plan.operations == frozenset({Operation.SYNC, Operation.CLEANUP, Operation.BACKUP})

    def test_errors_give_exit_code_one(self, tmp_path):
        self.container.pipeline.run.return_value = finished_run(["Backup: disk full"])

        result = self.invoke(["-u"], tmp_path)

        assert result.exit_code == 1
        assert "Backup: disk full" in result.output

    def test_operations_override_and_flags(self, tmp_path):
        self.invoke(["-u", "-o", "ultimate-cleanup,export", "--skip-export", "--export-days", "7"], tmp_path)

        plan = self.plan()
        assert plan.is_selected(Operation.ULTIMATE_CLEANUP)
        assert not plan.is_selected(Operation.EXPORT)
        assert plan.export_window_days == 7

    def test_interactive_prompts(self, tmp_path):
        result = self.invoke(["--preset", "full"], tmp_path, input="14\nn\n")

        assert result.exit_code == 0, result.output
        plan = self.plan()
        assert plan.export_window_days == 14
        assert not plan.is_selected(Operation.ULTIMATE_CLEANUP)

    def test_reports_written(self, tmp_path):
        report = tmp_path / "out" / "run.json"

        self.invoke(["-u", "--report-json", str(report), "--report-xlsx", str(tmp_path / "run.xlsx")], tmp_path)

        assert json.loads(report.read_text(encoding="utf-8"))["success"] is True
        assert (tmp_path / "run.xlsx").exists()

    def test_invalid_config_exits_two(self, tmp_path):
        (tmp_path / "maintenance_config.json").write_text('{"sql": {"auth": "kerberos"}}')

        result = self.invoke(["-u"], tmp_path)

        assert result.exit_code == 2
        assert "Configuration error" in result.output
        self.container.pipeline.run.assert_not_called()

    def test_run_logs_to_log_dir(self, tmp_path):
        result = self.invoke(["-u"], tmp_path)

        assert result.exit_code == 0, result.output
        logs = list((tmp_path / "logs").glob("autowsus_*.log"))
        assert len(logs) == 1

    def test_explicit_log_file_wins(self, tmp_path):
        log_file = tmp_path / "explicit.log"
        self.container.settings.paths.log_dir = str(tmp_path / "logs")

        with patch("autowsus.interface.cli.Container", return_value=self.container):
            result = runner.invoke(app, ["--log-file", str(log_file), "run", "-u", "-c", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert log_file.exists()
        assert not (tmp_path / "logs").exists()


class TestConfigCommands:

    def test_show_masks_password(self, tmp_path):
        (tmp_path / "maintenance_config.json").write_text(
            '{"catalog": {"server": "wsus-hq"}, "sql": {"auth": "sql", "username": "u", "password": "hunter2"}}'
        )

        result = runner.invoke(app, ["config", "show", "-c", str(tmp_path)])

        assert result.exit_code == 0
        assert "wsus-hq" in result.output
        assert "hunter2" not in result.output

    def test_validate_defaults(self, tmp_path):
        result = runner.invoke(app, ["config", "validate", "-c", str(tmp_path)])
        assert result.exit_code == 0
        assert "defaults" in result.output

    def test_validate_connectivity_failure(self, tmp_path):
        container = MagicMock()
        container.settings = MaintenanceSettings()
        container.sql.test_connection.return_value = False
        container.catalog.connect.return_value = "WSUS01 10.0"

        with patch("autowsus.interface.cli.Container", return_value=container):
            result = runner.invoke(app, ["config", "validate", "--check-connectivity", "-c", str(tmp_path)])

        assert result.exit_code == 1
        assert "SQL Server unreachable" in result.output

    def test_init_writes_defaults(self, tmp_path):
        result = runner.invoke(app, ["config", "init", "-c", str(tmp_path / "cfg")])

        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "cfg" / "maintenance_config.json").read_text(encoding="utf-8"))
        assert data["policy"]["approval_cap"] == 100
        assert data["paths"]["log_dir"] == MaintenanceSettings().paths.log_dir
        assert MaintenanceSettings.model_validate(data) == MaintenanceSettings()

    def test_init_refuses_to_overwrite(self, tmp_path):
        (tmp_path / "maintenance_config.json").write_text('{"backup": {"retention_days": 10}}')

        result = runner.invoke(app, ["config", "init", "-c", str(tmp_path)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert "retention_days" in (tmp_path / "maintenance_config.json").read_text()

    def test_init_force_overwrites(self, tmp_path):
        (tmp_path / "maintenance_config.json").write_text('{"backup": {"retention_days": 10}}')

        result = runner.invoke(app, ["config", "init", "--force", "-c", str(tmp_path)])

        assert result.exit_code == 0
        data = json.loads((tmp_path / "maintenance_config.json").read_text(encoding="utf-8"))
        assert data["backup"]["retention_days"] == 90


class TestHealthCommand:

    def setup_method(self):
        self.container = MagicMock()
        self.container.settings = MaintenanceSettings()
        self.healthy = HealthReport(
            services=[ServiceHealth("WsusService", "Running")], database_size_gb=4.2,
        )
        self.unhealthy = HealthReport(
            services=[ServiceHealth("WsusService", "Stopped")],
            database_size_gb=4.2,
            issues=["Service WsusService is not running (status: Stopped)"],
        )

    def invoke(self, args, tmp_path):
        with patch("autowsus.interface.cli.Container", return_value=self.container):
            return runner.invoke(app, ["health", *args, "-c", str(tmp_path)])

    def test_healthy(self, tmp_path):
        self.container.health_service.check.return_value = self.healthy

        result = self.invoke([], tmp_path)

        assert result.exit_code == 0, result.output
        assert "Healthy" in result.output
        self.container.health_service.repair.assert_not_called()

    def test_unhealthy_without_repair(self, tmp_path):
        self.container.health_service.check.return_value = self.unhealthy

        result = self.invoke([], tmp_path)

        assert result.exit_code == 1
        assert "WsusService is not running" in result.output
        self.container.health_service.repair.assert_not_called()

    def test_repair_then_recheck(self, tmp_path):
        service = self.container.health_service
        service.check.side_effect = [self.unhealthy, self.healthy]
        service.repair.return_value = RepairResult(started=["WsusService"])

        result = self.invoke(["--repair"], tmp_path)

        assert result.exit_code == 0, result.output
        assert "Started WsusService" in result.output
        assert service.check.call_count == 2

    def test_repair_failure_exits_one(self, tmp_path):
        service = self.container.health_service
        service.check.return_value = self.unhealthy
        service.repair.return_value = RepairResult(failed=["WsusService"])

        result = self.invoke(["--repair"], tmp_path)

        assert result.exit_code == 1
        assert "Could not start WsusService" in result.output


class TestImportCommand:
    """Real container and threaded copy engine over tmp_path."""

    def write_config(self, tmp_path, export_root=None):
        paths = {
            "content_dir": str(tmp_path / "content"),
            "backup_dir": str(tmp_path / "backups"),
            "export_root": str(export_root) if export_root else None,
        }
        (tmp_path / "maintenance_config.json").write_text(json.dumps({"paths": paths}), encoding="utf-8")

    def test_imports_from_configured_root(self, tmp_path):
        export = tmp_path / "export"
        (export / "WsusContent" / "A1").mkdir(parents=True)
        (export / "WsusContent" / "A1" / "one.cab").write_bytes(b"cab")
        (export / "SUSDB_20250615.bak").write_bytes(b"bak")
        self.write_config(tmp_path, export)

        result = runner.invoke(app, ["import", "--with-backup", "-c", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "content" / "A1" / "one.cab").exists()
        assert (tmp_path / "backups" / "SUSDB_20250615.bak").exists()
        assert "Imported 2 files" in result.output

    def test_latest_archive_from_source_option(self, tmp_path):
        media = tmp_path / "media"
        for day in ("2025-06-01", "2025-06-15"):
            (media / "Archive" / day / "WsusContent").mkdir(parents=True)
            (media / "Archive" / day / "WsusContent" / f"{day}.cab").write_bytes(b"cab")
        self.write_config(tmp_path)

        result = runner.invoke(app, ["import", "-s", str(media), "--archive", "latest", "-c", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "content" / "2025-06-15.cab").exists()
        assert not (tmp_path / "content" / "2025-06-01.cab").exists()

    def test_missing_content_exits_one(self, tmp_path):
        (tmp_path / "empty").mkdir()
        self.write_config(tmp_path)

        result = runner.invoke(app, ["import", "-s", str(tmp_path / "empty"), "-c", str(tmp_path)])

        assert result.exit_code == 1
        assert "Import failed" in result.output

    def test_no_source_is_usage_error(self, tmp_path):
        self.write_config(tmp_path)

        result = runner.invoke(app, ["import", "-c", str(tmp_path)])

        assert result.exit_code == 2
