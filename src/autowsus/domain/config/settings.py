"""
Maintenance settings domain model.

Every tunable of the pipeline lives here so nothing is read from ambient
state. Loaded from maintenance_config.json by the config repository; any
section missing from the file falls back to these defaults.
"""

import calendar
import logging
from datetime import datetime

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from autowsus.domain.models import UpdateClassification

logger = logging.getLogger(__name__)


class SqlSettings(BaseModel):
    """Connection settings for the SUSDB instance."""

    instance: str = Field(default=r".\SQLEXPRESS", description="SQL Server instance")
    database: str = Field(default="SUSDB", description="WSUS database name")
    auth: str = Field(default="integrated", description="'integrated' or 'sql'")
    username: str | None = Field(default=None, description="SQL login for auth='sql'")
    password: SecretStr | None = Field(default=None, description="SQL password for auth='sql'")
    connect_timeout: int = Field(default=15, ge=1, le=300)
    query_timeout: int = Field(default=30, ge=1, le=3600)
    maintenance_timeout: int = Field(
        default=0,
        ge=0,
        description="Timeout for purge/index/shrink commands; 0 means unbounded",
    )

    @field_validator("auth")
    @classmethod
    def validate_auth(cls, v: str) -> str:
        v = v.lower()
        if v not in ("integrated", "sql"):
            raise ValueError("auth must be 'integrated' or 'sql'")
        return v

    @model_validator(mode="after")
    def require_sql_login(self) -> "SqlSettings":
        if self.auth == "sql" and (not self.username or self.password is None):
            raise ValueError("auth='sql' requires both username and password")
        return self


class CatalogSettings(BaseModel):
    """WSUS administration API settings."""

    server: str = Field(default="localhost")
    port: int = Field(default=8530, ge=1, le=65535)
    use_ssl: bool = Field(default=False)
    target_group: str = Field(default="All Computers", description="Default approval target group")
    service_name: str = Field(default="WsusService", description="Windows service stopped for deep cleanup")
    powershell_timeout: int = Field(default=600, ge=10, le=7200)
    service_timeout: int = Field(default=120, ge=5, le=1800)


class PathSettings(BaseModel):
    """Filesystem locations."""

    content_dir: str = Field(default=r"C:\WSUS\WsusContent")
    backup_dir: str = Field(default=r"C:\WSUS\Backups")
    export_root: str | None = Field(default=None, description="Export destination (removable or network share)")
    log_dir: str = Field(default=r"C:\WSUS\Logs")


class UpdatePolicy(BaseModel):
    """
    Decline and approval policy.

    max_age_months is the single age cutoff used wherever "old" updates are
    judged by vendor release date.
    """

    max_age_months: int = Field(default=6, ge=1, le=120)
    approval_cap: int = Field(default=100, ge=0, description="Skip all approvals above this many candidates")
    approval_sample_size: int = Field(default=10, ge=1, le=100)
    excluded_title_terms: list[str] = Field(default_factory=lambda: ["preview", "beta"])
    approvable_classifications: list[UpdateClassification] = Field(
        default_factory=lambda: [
            UpdateClassification.CRITICAL,
            UpdateClassification.SECURITY,
            UpdateClassification.ROLLUP,
            UpdateClassification.SERVICE_PACK,
            UpdateClassification.UPDATE,
        ]
    )
    decline_expired: bool = Field(default=True)
    decline_superseded: bool = Field(default=True)
    decline_old: bool = Field(default=True)
    auto_approve: bool = Field(default=True)

    @field_validator("approvable_classifications")
    @classmethod
    def warn_noisy_classifications(cls, v: list[UpdateClassification]) -> list[UpdateClassification]:
        """Definition updates and upgrades are expected to stay manual."""
        noisy = {UpdateClassification.DEFINITION, UpdateClassification.UPGRADE} & set(v)
        if noisy:
            logger.warning(
                "Auto-approval enabled for %s - these normally need manual review",
                ", ".join(sorted(c.value for c in noisy)),
            )
        return v

    def release_cutoff(self, now: datetime) -> datetime:
        """Return now minus max_age_months calendar months, clamping the day."""
        month_index = now.year * 12 + (now.month - 1) - self.max_age_months
        year, month = divmod(month_index, 12)
        month += 1
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)


class PurgeSettings(BaseModel):
    """Purge and optimize tunables."""

    batch_size: int = Field(default=100, ge=1, le=10000)
    progress_every_batches: int = Field(default=5, ge=1)
    supersession_row_limit: int = Field(default=10000, ge=100, le=1000000)
    reorganize_threshold_percent: float = Field(default=10.0, ge=0, le=100)
    rebuild_threshold_percent: float = Field(default=30.0, ge=0, le=100)
    min_page_count: int = Field(default=1000, ge=0)
    min_reclaim_mb: float = Field(default=100.0, ge=0)
    shrink_target_free_percent: int = Field(default=10, ge=0, le=99)


class BackupSettings(BaseModel):
    """Backup naming and retention."""

    retention_days: int = Field(default=90, ge=1, le=3650)
    file_prefix: str = Field(default="SUSDB")
    compression: bool = Field(default=False, description="SQL Express does not support compression")


class SyncSettings(BaseModel):
    """Catalog synchronization polling."""

    timeout_iterations: int = Field(default=120, ge=1)
    poll_interval_seconds: float = Field(default=30, ge=0)
    grace_period_seconds: float = Field(default=10, ge=0)


class ExportSettings(BaseModel):
    """Differential export tunables."""

    default_window_days: int = Field(default=30, ge=1, le=3650)
    content_folder: str = Field(default="WsusContent")
    archive_folder: str = Field(default="Archive")
    exclude_patterns: list[str] = Field(default_factory=lambda: ["*.tmp", "*.partial", "~*"])
    thread_count: int = Field(default=16, ge=1, le=128)
    retries: int = Field(default=3, ge=0, le=100)
    retry_wait_seconds: int = Field(default=5, ge=0, le=300)
    failure_exit_code: int = Field(default=8, description="Copy exit codes at or above this mean failures")
    partial_exit_code: int = Field(default=4, description="Copy exit codes at or above this mean mismatches")


class HealthSettings(BaseModel):
    """Degraded-condition thresholds and required services checked at connect time."""

    min_free_disk_gb: float = Field(default=10.0, ge=0)
    database_size_ceiling_gb: float = Field(default=10.0, gt=0, description="SQL Express limit")
    database_warning_ratio: float = Field(default=0.9, gt=0, le=1)
    required_services: list[str] = Field(
        default_factory=lambda: ["MSSQL$SQLEXPRESS", "WsusService", "W3SVC"],
        description="Services that must be running: SQL Server, WSUS and IIS",
    )


class MaintenanceSettings(BaseModel):
    """Root settings object handed to the container."""

    sql: SqlSettings = SqlSettings()
    catalog: CatalogSettings = CatalogSettings()
    paths: PathSettings = PathSettings()
    policy: UpdatePolicy = UpdatePolicy()
    purge: PurgeSettings = PurgeSettings()
    backup: BackupSettings = BackupSettings()
    sync: SyncSettings = SyncSettings()
    export: ExportSettings = ExportSettings()
    health: HealthSettings = HealthSettings()
