"""
Health checks and repair for the WSUS server.

Checks the services WSUS depends on (SQL Server, the WSUS service, IIS),
SUSDB reachability and size against the SQL Express ceiling, and free disk
on the backup volume. Repair starts required services that are not running.

The pipeline reports the same findings as warnings during Connect; the
`health` CLI command reports them on their own.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable

from autowsus.application.ports import ServiceController
from autowsus.application.purge_service import PurgeService
from autowsus.domain.config.settings import MaintenanceSettings
from autowsus.domain.errors import ConfigurationError, SqlExecutionError
from autowsus.domain.models import HealthReport, RepairResult, ServiceHealth

logger = logging.getLogger(__name__)

GB = 1024 ** 3


def _existing_ancestor(path: Path) -> Path | None:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return None


class HealthService:
    """Service, database and disk checks with a service-start repair."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        services: ServiceController,
        purge: PurgeService,
        disk_usage: Callable[[str], tuple] = shutil.disk_usage,
    ):
        self.settings = settings
        self.services = services
        self.purge = purge
        self._disk_usage = disk_usage

    # ========================================================================
    # Checks
    # ========================================================================

    def service_health(self) -> list[ServiceHealth]:
        results = []
        for name in self.settings.health.required_services:
            health = ServiceHealth(name=name, status=self.services.status(name))
            logger.debug("Service %s: %s", name, health.status)
            results.append(health)
        return results

    def degraded_warnings(self, database_size_gb: float, services: list[ServiceHealth] | None = None) -> list[str]:
        """
        Degraded conditions that do not stop maintenance.

        Args:
            database_size_gb: Current SUSDB size
            services: Already collected service states; queried when None

        Returns:
            One message per problem; empty when healthy
        """
        health = self.settings.health
        warnings: list[str] = []

        for service in self.service_health() if services is None else services:
            if not service.running:
                warnings.append(f"Service {service.name} is not running (status: {service.status})")

        threshold = health.database_size_ceiling_gb * health.database_warning_ratio
        if database_size_gb >= threshold:
            warnings.append(
                f"Database size {database_size_gb:.2f} GB is at or above "
                f"{health.database_warning_ratio:.0%} of the {health.database_size_ceiling_gb:.0f} GB limit"
            )

        volume = _existing_ancestor(Path(self.settings.paths.backup_dir))
        if volume is not None:
            try:
                free_gb = self._disk_usage(str(volume))[2] / GB
            except OSError as exc:
                logger.debug("Cannot read free space for %s: %s", volume, exc)
            else:
                if free_gb < health.min_free_disk_gb:
                    warnings.append(
                        f"Low disk space on {volume}: {free_gb:.1f} GB free, "
                        f"minimum {health.min_free_disk_gb:.0f} GB"
                    )
        return warnings

    def check(self) -> HealthReport:
        """Full check: services, database reachability and size, disk."""
        report = HealthReport(services=self.service_health())
        try:
            report.database_size_gb = round(self.purge.database_size_gb(), 2)
        except (SqlExecutionError, ConfigurationError) as exc:
            report.database_connected = False
            report.issues.append(f"Database unreachable: {exc}")
        report.issues.extend(self.degraded_warnings(report.database_size_gb, report.services))

        if report.healthy:
            logger.info("Health check passed")
        else:
            logger.warning("Health check found %d issue(s)", len(report.issues))
        return report

    # ========================================================================
    # Repair
    # ========================================================================

    def repair(self) -> RepairResult:
        """Start every required service that is not running."""
        result = RepairResult()
        timeout = self.settings.catalog.service_timeout
        for service in self.service_health():
            if service.running:
                continue
            logger.info("Starting %s (was %s)", service.name, service.status)
            if self.services.start(service.name, timeout):
                result.started.append(service.name)
            else:
                result.failed.append(service.name)
        logger.info("Repair started %d service(s), %d failed", len(result.started), len(result.failed))
        return result
