"""
Dependency injection container for the application.

Builds the infrastructure adapters and services from MaintenanceSettings on
first use. Tests and callers can inject any adapter up front to replace the
real one.
"""

import logging
from pathlib import Path
from typing import Optional

from ..domain.config import MaintenanceSettings
from ..infrastructure.catalog_client import WsusCatalogClient
from ..infrastructure.config.repository import ConfigRepository
from ..infrastructure.file_sync import default_sync_engine
from ..infrastructure.powershell import PowerShellRunner
from ..infrastructure.sql_server import SqlConnector
from ..infrastructure.susdb_queries import SusdbQueries
from ..infrastructure.windows_services import PowerShellServiceController
from .backup_service import BackupService
from .classification_service import ClassificationService
from .export_service import ExportService
from .health_service import HealthService
from .import_service import ImportService
from .pipeline import MaintenancePipeline
from .ports import CatalogClient, FileSyncEngine, ServiceController, SqlExecutor
from .purge_service import PurgeService
from .sync_monitor import SyncMonitor

logger = logging.getLogger(__name__)


class Container:
    """
    Dependency injection container.

    Manages the creation and lifecycle of the pipeline and its collaborators.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        settings: Optional[MaintenanceSettings] = None,
        catalog: Optional[CatalogClient] = None,
        sql: Optional[SqlExecutor] = None,
        sync_engine: Optional[FileSyncEngine] = None,
        services: Optional[ServiceController] = None,
    ):
        """
        Initialize the container.

        Args:
            config_dir: Directory holding maintenance_config.json(c)
            settings: Settings override; loaded from config_dir when None
            catalog: Catalog client override
            sql: SQL executor override
            sync_engine: File sync engine override
            services: Service controller override
        """
        self.config_dir = Path(config_dir) if config_dir else Path.cwd() / "config"
        self._settings = settings
        self._config_repository: Optional[ConfigRepository] = None
        self._runner: Optional[PowerShellRunner] = None
        self._catalog = catalog
        self._sql = sql
        self._sync_engine = sync_engine
        self._services = services
        self._queries: Optional[SusdbQueries] = None
        self._purge_service: Optional[PurgeService] = None
        self._backup_service: Optional[BackupService] = None
        self._health_service: Optional[HealthService] = None
        self._pipeline: Optional[MaintenancePipeline] = None

    @property
    def config_repository(self) -> ConfigRepository:
        """Get the configuration repository."""
        if self._config_repository is None:
            self._config_repository = ConfigRepository(self.config_dir)
        return self._config_repository

    @property
    def settings(self) -> MaintenanceSettings:
        """Get settings, loading them from the config directory on first use."""
        if self._settings is None:
            self._settings = self.config_repository.load_settings()
        return self._settings

    @property
    def powershell(self) -> PowerShellRunner:
        if self._runner is None:
            self._runner = PowerShellRunner(timeout=self.settings.catalog.powershell_timeout)
        return self._runner

    @property
    def catalog(self) -> CatalogClient:
        """Get the WSUS catalog client."""
        if self._catalog is None:
            self._catalog = WsusCatalogClient(self.settings.catalog, self.powershell)
        return self._catalog

    @property
    def sql(self) -> SqlExecutor:
        """Get the SUSDB executor."""
        if self._sql is None:
            self._sql = SqlConnector(self.settings.sql)
        return self._sql

    @property
    def sync_engine(self) -> FileSyncEngine:
        if self._sync_engine is None:
            self._sync_engine = default_sync_engine()
            logger.debug("Using %s for file copies", type(self._sync_engine).__name__)
        return self._sync_engine

    @property
    def services(self) -> ServiceController:
        if self._services is None:
            self._services = PowerShellServiceController(self.powershell)
        return self._services

    @property
    def queries(self) -> SusdbQueries:
        if self._queries is None:
            self._queries = SusdbQueries(self.settings.sql.database)
        return self._queries

    @property
    def purge_service(self) -> PurgeService:
        if self._purge_service is None:
            self._purge_service = PurgeService(
                self.sql,
                self.queries,
                self.settings.purge,
                query_timeout=self.settings.sql.query_timeout,
                maintenance_timeout=self.settings.sql.maintenance_timeout,
            )
        return self._purge_service

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(self.sql, self.queries, self.settings.backup)
        return self._backup_service

    @property
    def health_service(self) -> HealthService:
        if self._health_service is None:
            self._health_service = HealthService(self.settings, self.services, self.purge_service)
        return self._health_service

    @property
    def import_service(self) -> ImportService:
        return ImportService(self.sync_engine, self.settings.export)

    @property
    def pipeline(self) -> MaintenancePipeline:
        """Get the pipeline wired with every service."""
        if self._pipeline is None:
            settings = self.settings
            self._pipeline = MaintenancePipeline(
                settings=settings,
                catalog=self.catalog,
                classification=ClassificationService(
                    self.catalog, settings.policy, settings.catalog.target_group,
                ),
                sync_monitor=SyncMonitor(self.catalog, settings.sync.grace_period_seconds),
                purge=self.purge_service,
                backup=self.backup_service,
                export=ExportService(self.sync_engine, settings.export),
                services=self.services,
                health=self.health_service,
            )
        return self._pipeline
