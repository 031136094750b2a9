"""
Maintenance Pipeline Controller.

Runs the phases of a maintenance plan in a fixed order:

    Connect -> Sync -> Classification -> Cleanup -> UltimateCleanup
            -> Backup -> RetentionPrune -> Export

Connect is the only phase whose failure ends the run. Every other phase
reports through an Outcome; its error goes to MaintenanceRun.errors
(prefixed with the phase name) and its warnings to MaintenanceRun.warnings,
and the pipeline moves on. Cancellation is checked between phases only.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from autowsus.application.backup_service import BackupService
from autowsus.application.classification_service import ClassificationService
from autowsus.application.export_service import ExportService
from autowsus.application.health_service import HealthService
from autowsus.application.ports import CatalogClient, ServiceController
from autowsus.application.purge_service import PurgeService
from autowsus.application.sync_monitor import SyncMonitor
from autowsus.domain.config.settings import MaintenanceSettings
from autowsus.domain.errors import CatalogConnectionError, CatalogError, ConfigurationError, SqlExecutionError
from autowsus.domain.models import MaintenanceRun, Operation, PhaseName, PhaseStatus
from autowsus.domain.outcome import Outcome
from autowsus.domain.plan import MaintenancePlan
from autowsus.infrastructure.susdb_queries import RevisionState

logger = logging.getLogger(__name__)

class PhaseSkipped(Exception):
    """Raised by a phase that turns out to have nothing to act on."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MaintenancePipeline:
    """Sequential phase runner producing a MaintenanceRun."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        catalog: CatalogClient,
        classification: ClassificationService,
        sync_monitor: SyncMonitor,
        purge: PurgeService,
        backup: BackupService,
        export: ExportService,
        services: ServiceController,
        health: HealthService,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings
        self.catalog = catalog
        self.classification = classification
        self.sync_monitor = sync_monitor
        self.purge = purge
        self.backup = backup
        self.export = export
        self.services = services
        self.health = health
        self._clock = clock

    # ========================================================================
    # Run loop
    # ========================================================================

    def run(self, plan: MaintenancePlan, cancel_event: threading.Event | None = None) -> MaintenanceRun:
        """
        Execute a plan.

        Args:
            plan: Frozen maintenance plan
            cancel_event: Set by the caller to stop before the next phase

        Returns:
            Finalized MaintenanceRun; never raises for phase failures
        """
        run = MaintenanceRun(start_time=self._clock())
        logger.info("Maintenance run started: %s", ", ".join(sorted(op.value for op in plan.operations)) or "no operations")

        started = time.monotonic()
        try:
            outcome = self._connect(run)
        except CatalogConnectionError as exc:
            logger.error("Connect failed, aborting run: %s", exc)
            run.record_phase(PhaseName.CONNECT, PhaseStatus.FAILED, time.monotonic() - started)
            run.errors.append(f"{PhaseName.CONNECT.value}: {exc}")
            run.finalize(self._clock())
            return run
        run.warnings.extend(outcome.warnings)
        run.record_phase(PhaseName.CONNECT, PhaseStatus.COMPLETED, time.monotonic() - started)

        phases: list[tuple[PhaseName, bool, Callable[[MaintenanceRun, MaintenancePlan], Outcome]]] = [
            (PhaseName.SYNC, plan.is_selected(Operation.SYNC), self._sync),
            (PhaseName.CLASSIFICATION, True, self._classify),
            (PhaseName.CLEANUP, plan.is_selected(Operation.CLEANUP), self._cleanup),
            (PhaseName.ULTIMATE_CLEANUP, plan.is_selected(Operation.ULTIMATE_CLEANUP), self._ultimate_cleanup),
            (PhaseName.BACKUP, plan.is_selected(Operation.BACKUP), self._backup),
            (PhaseName.RETENTION_PRUNE, plan.is_selected(Operation.BACKUP), self._retention_prune),
            (PhaseName.EXPORT, plan.is_selected(Operation.EXPORT), self._export),
        ]

        cancelled = False
        for name, selected, action in phases:
            if not cancelled and cancel_event is not None and cancel_event.is_set():
                cancelled = True
                run.warnings.append(f"Run cancelled before {name.value}")
                logger.warning("Run cancelled before %s", name.value)
            if cancelled or not selected:
                run.record_phase(name, PhaseStatus.SKIPPED)
                continue
            self._execute(run, plan, name, action)

        run.finalize(self._clock())
        logger.info(
            "Maintenance run finished: %s (%d warnings, %d errors)",
            "success" if run.success else "failed", len(run.warnings), len(run.errors),
        )
        return run

    def _execute(
        self,
        run: MaintenanceRun,
        plan: MaintenancePlan,
        name: PhaseName,
        action: Callable[[MaintenanceRun, MaintenancePlan], Outcome],
    ) -> None:
        logger.info("Phase %s started", name.value)
        started = time.monotonic()
        try:
            outcome = action(run, plan)
        except PhaseSkipped as exc:
            run.warnings.append(str(exc))
            run.record_phase(name, PhaseStatus.SKIPPED, time.monotonic() - started)
            logger.info("Phase %s skipped: %s", name.value, exc)
            return
        except Exception as exc:  # phase boundary: nothing but Connect may end the run
            logger.exception("Phase %s raised", name.value)
            outcome = Outcome.failed(str(exc) or exc.__class__.__name__)

        run.warnings.extend(outcome.warnings)
        if outcome.succeeded:
            status = PhaseStatus.COMPLETED
        else:
            status = PhaseStatus.FAILED
            run.errors.append(f"{name.value}: {outcome.error}")
            logger.error("Phase %s failed: %s", name.value, outcome.error)
        result = run.record_phase(name, status, time.monotonic() - started)
        logger.info("Phase %s %s in %.1fs", name.value, status.value, result.duration_seconds)

    # ========================================================================
    # Phases
    # ========================================================================

    def _connect(self, run: MaintenanceRun) -> Outcome[str]:
        """Reach the catalog (fatal on failure), then measure and check health."""
        description = self.catalog.connect()
        outcome: Outcome[str] = Outcome.ok(description)

        try:
            run.database_size_gb = round(self.purge.database_size_gb(), 2)
        except (SqlExecutionError, ConfigurationError) as exc:
            outcome.warn(f"Cannot read database size: {exc}")
        for warning in self.health.degraded_warnings(run.database_size_gb):
            outcome.warn(warning)
        return outcome

    def _sync(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        sync = self.settings.sync
        return self.sync_monitor.run_sync(sync.timeout_iterations, sync.poll_interval_seconds)

    def _classify(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        outcome = self.classification.run(self._clock())
        counts = outcome.value
        if counts is not None:
            run.declined_expired = counts.declined_expired
            run.declined_superseded = counts.declined_superseded
            run.declined_old = counts.declined_old
            run.approved = counts.approved
        return outcome

    def _cleanup(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        """Online cleanup: server cleanup wizard, then light database maintenance."""
        outcome: Outcome[dict[str, int]] = Outcome.ok()
        errors: list[str] = []
        try:
            outcome.value = self.catalog.run_server_cleanup()
            logger.info("Server cleanup: %s", outcome.value)
        except CatalogError as exc:
            errors.append(f"Server cleanup failed: {exc}")

        try:
            self.purge.remove_supersession_records(RevisionState.DECLINED)
            outcome.warnings.extend(self.purge.optimize_indexes().warnings)
            self.purge.update_statistics()
        except (SqlExecutionError, ConfigurationError) as exc:
            errors.append(f"Database maintenance failed: {exc}")

        if errors:
            outcome.error = "; ".join(errors)
        return outcome

    def _ultimate_cleanup(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        """Deep cleanup with the WSUS service stopped; the service is always restarted."""
        catalog = self.settings.catalog
        if not self.services.stop(catalog.service_name, catalog.service_timeout):
            return Outcome.failed(f"Could not stop {catalog.service_name}; deep cleanup not attempted")

        outcome: Outcome = Outcome.ok()
        try:
            self.purge.remove_supersession_records(RevisionState.DECLINED)
            self.purge.remove_supersession_records(RevisionState.SUPERSEDED)
            purged = self.purge.purge(self.purge.declined_update_ids())
            outcome.warnings.extend(purged.warnings)
            outcome.value = purged.value
            outcome.warnings.extend(self.purge.optimize_indexes().warnings)
            self.purge.update_statistics()
            self.purge.reclaim_space()
        except SqlExecutionError as exc:
            outcome.error = f"Deep cleanup stopped: {exc}"
        finally:
            if not self.services.start(catalog.service_name, catalog.service_timeout):
                restart_error = f"{catalog.service_name} did not restart after deep cleanup"
                outcome.error = f"{outcome.error}; {restart_error}" if outcome.error else restart_error

        try:
            run.database_size_gb = round(self.purge.database_size_gb(), 2)
        except (SqlExecutionError, ConfigurationError) as exc:
            outcome.warn(f"Cannot re-measure database size: {exc}")
        return outcome

    def _backup(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        run.backup = self.backup.backup(self.settings.paths.backup_dir)
        return Outcome.ok(run.backup)

    def _retention_prune(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        if run.backup is None:
            raise PhaseSkipped("Retention prune skipped: no backup was created in this run")
        return Outcome.ok(self.backup.prune(
            self.settings.paths.backup_dir,
            self.settings.backup.retention_days,
            keep=run.backup.file_path,
        ))

    def _export(self, run: MaintenanceRun, plan: MaintenancePlan) -> Outcome:
        paths = self.settings.paths
        if not paths.export_root:
            return Outcome.failed("No export root configured (paths.export_root)")

        backup_file = run.backup.file_path if run.backup else self.backup.latest_backup(paths.backup_dir)
        outcome = self.export.export(paths.content_dir, paths.export_root, plan.export_window_days, backup_file)
        if outcome.value is not None:
            run.export = outcome.value
        return outcome


