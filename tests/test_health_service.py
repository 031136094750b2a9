"""
Tests for service, database and disk health checks and service repair.
"""

from unittest.mock import Mock

from autowsus.application.health_service import HealthService
from autowsus.domain.config.settings import MaintenanceSettings
from autowsus.domain.errors import SqlExecutionError

from conftest import FakeServiceController

GB = 1024 ** 3


class TestHealthCheck:

    def setup_method(self):
        self.settings = MaintenanceSettings()
        self.services = FakeServiceController()
        self.purge = Mock()
        self.purge.database_size_gb.return_value = 3.456
        self.free_gb = 500

    def service(self, tmp_path):
        self.settings.paths.backup_dir = str(tmp_path / "backups")
        return HealthService(
            self.settings, self.services, self.purge,
            disk_usage=lambda path: (1000 * GB, (1000 - self.free_gb) * GB, self.free_gb * GB),
        )

    def test_all_running_is_healthy(self, tmp_path):
        report = self.service(tmp_path).check()

        assert report.healthy
        assert report.database_connected
        assert report.database_size_gb == 3.46
        assert [s.name for s in report.services] == ["MSSQL$SQLEXPRESS", "WsusService", "W3SVC"]
        assert all(s.running for s in report.services)

    def test_stopped_and_missing_services_reported(self, tmp_path):
        self.services.states = {"WsusService": "Stopped", "W3SVC": "NotFound"}

        report = self.service(tmp_path).check()

        assert not report.healthy
        assert report.issues == [
            "Service WsusService is not running (status: Stopped)",
            "Service W3SVC is not running (status: NotFound)",
        ]

    def test_unreachable_database(self, tmp_path):
        self.purge.database_size_gb.side_effect = SqlExecutionError("login failed")

        report = self.service(tmp_path).check()

        assert not report.database_connected
        assert report.issues == ["Database unreachable: login failed"]

    def test_low_disk_checked_on_existing_ancestor(self, tmp_path):
        self.free_gb = 2
        seen = []
        service = self.service(tmp_path)
        service._disk_usage = lambda path: seen.append(path) or (10 * GB, 8 * GB, 2 * GB)

        warnings = service.degraded_warnings(1.0)

        assert seen == [str(tmp_path)]
        assert warnings == [f"Low disk space on {tmp_path}: 2.0 GB free, minimum 10 GB"]

    def test_given_service_states_are_not_queried_again(self, tmp_path):
        service = self.service(tmp_path)
        service.services = Mock()

        assert service.degraded_warnings(1.0, services=[]) == []
        service.services.status.assert_not_called()


class TestRepair:

    def setup_method(self):
        self.settings = MaintenanceSettings()
        self.services = FakeServiceController()
        self.health = HealthService(self.settings, self.services, Mock(), disk_usage=lambda path: (0, 0, 500 * GB))

    def test_starts_only_stopped_services(self):
        self.services.states = {"WsusService": "Stopped"}

        result = self.health.repair()

        assert self.services.events == [("start", "WsusService")]
        assert result.started == ["WsusService"]
        assert result.success

    def test_failed_start_reported(self):
        self.services.states = {"W3SVC": "Stopped", "MSSQL$SQLEXPRESS": "StartPending"}
        self.services.start_ok = False

        result = self.health.repair()

        assert result.failed == ["MSSQL$SQLEXPRESS", "W3SVC"]
        assert not result.success

    def test_nothing_to_do(self):
        result = self.health.repair()

        assert self.services.events == []
        assert result.started == [] and result.success
