"""
Domain models for AutoWsus.

This module contains the core entities of a maintenance run:
- Catalog entries as reported by the WSUS server
- Per-phase results and the run aggregate
- Descriptors for produced artifacts (backups, exports)
- Results of the individual database and file operations

These models are pure data structures with no I/O dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class Operation(Enum):
    """Operation a maintenance plan can select."""
    SYNC = "sync"
    CLEANUP = "cleanup"
    ULTIMATE_CLEANUP = "ultimate_cleanup"
    BACKUP = "backup"
    EXPORT = "export"

    @classmethod
    def from_string(cls, value: str) -> "Operation":
        """Parse CLI style names ('ultimate-cleanup', 'Backup', ...)."""
        normalized = value.strip().lower().replace("-", "_")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown operation: {value!r}")


class PhaseName(Enum):
    """Pipeline phases in execution order."""
    CONNECT = "Connect"
    SYNC = "Sync"
    CLASSIFICATION = "Classification"
    CLEANUP = "Cleanup"
    ULTIMATE_CLEANUP = "UltimateCleanup"
    BACKUP = "Backup"
    RETENTION_PRUNE = "RetentionPrune"
    EXPORT = "Export"


class PhaseStatus(Enum):
    """Terminal status of a phase."""
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


class UpdateClassification(Enum):
    """WSUS update classification."""
    CRITICAL = "Critical Updates"
    SECURITY = "Security Updates"
    ROLLUP = "Update Rollups"
    SERVICE_PACK = "Service Packs"
    UPDATE = "Updates"
    DEFINITION = "Definition Updates"
    UPGRADE = "Upgrades"
    OTHER = "Other"

    @classmethod
    def from_title(cls, title: str | None) -> "UpdateClassification":
        """Map a WSUS classification title; anything unrecognised is OTHER."""
        if not title:
            return cls.OTHER
        wanted = title.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.OTHER


class SyncStatus(Enum):
    """Subscription synchronization status."""
    NOT_PROCESSING = "NotProcessing"
    RUNNING = "Running"
    STOPPING = "Stopping"
    UNKNOWN = "Unknown"

    @classmethod
    def from_string(cls, value: str | None) -> "SyncStatus":
        for member in cls:
            if value and member.value.lower() == value.strip().lower():
                return member
        return cls.UNKNOWN


# ============================================================================
# Catalog
# ============================================================================

@dataclass(frozen=True)
class UpdateRecord:
    """
    A single catalog entry as reported by the WSUS server.

    Records are never mutated locally; decline and approve actions go back
    to the server through the catalog client.

    Attributes:
        id: Update GUID
        title: Update title
        is_declined: Already declined on the server
        is_superseded: Replaced by a newer update
        is_expired: Expired by the vendor
        release_date: Vendor release (creation) date
        classification: Update classification
        has_install_approval: Approved for install on the default target group
    """
    id: str
    title: str
    is_declined: bool = False
    is_superseded: bool = False
    is_expired: bool = False
    release_date: datetime | None = None
    classification: UpdateClassification = UpdateClassification.OTHER
    has_install_approval: bool = False


@dataclass
class ClassificationResult:
    """Disjoint action sets produced by the update policy."""
    expired: list[UpdateRecord] = field(default_factory=list)
    superseded: list[UpdateRecord] = field(default_factory=list)
    old: list[UpdateRecord] = field(default_factory=list)
    approvable: list[UpdateRecord] = field(default_factory=list)

    @property
    def decline_count(self) -> int:
        return len(self.expired) + len(self.superseded) + len(self.old)


@dataclass
class SyncResult:
    """Outcome of a catalog synchronization."""
    result: str = "Unknown"
    new_count: int = 0
    revised_count: int = 0
    error: str | None = None
    timed_out: bool = False
    polls: int = 0

    @property
    def succeeded(self) -> bool:
        return self.result.lower() == "succeeded"


# ============================================================================
# Database
# ============================================================================

@dataclass
class PurgeResult:
    """Result of the batched declined-update purge."""
    requested: int = 0
    deleted_count: int = 0
    failed_count: int = 0


@dataclass
class IndexOptimizationResult:
    """Counts of indexes touched by index maintenance."""
    rebuilt: int = 0
    reorganized: int = 0
    failed: int = 0


@dataclass
class DatabaseSpaceInfo:
    """Space usage of the data files."""
    allocated_mb: float = 0.0
    used_mb: float = 0.0
    free_mb: float = 0.0

    @property
    def used_percentage(self) -> float:
        return (self.used_mb / self.allocated_mb) * 100 if self.allocated_mb > 0 else 0.0


@dataclass
class BackupDescriptor:
    """A completed full backup."""
    file_path: str
    size_mb: float
    duration_seconds: float


@dataclass
class PruneResult:
    """Backups removed by retention pruning."""
    deleted_files: list[str] = field(default_factory=list)
    freed_mb: float = 0.0


# ============================================================================
# Files
# ============================================================================

@dataclass
class FileSyncResult:
    """
    Result of one directory sync.

    Exit codes follow robocopy: below 8 is success or partial success,
    8 and above means some copies failed.
    """
    exit_code: int
    files_copied: int = 0
    bytes_copied: int = 0
    failed_files: list[str] = field(default_factory=list)


@dataclass
class ExportDescriptor:
    """A completed differential export."""
    root_path: str
    archive_path: str
    file_count: int
    size_gb: float
    window_days: int


@dataclass
class ImportDescriptor:
    """Content (and optionally backups) pulled in from an export."""
    source_path: str
    content_dir: str
    file_count: int
    size_gb: float
    backup_files: list[str] = field(default_factory=list)


# ============================================================================
# Health
# ============================================================================

@dataclass
class ServiceHealth:
    """State of one Windows service the server depends on."""
    name: str
    status: str

    @property
    def running(self) -> bool:
        return self.status == "Running"


@dataclass
class HealthReport:
    """
    Result of a health check.

    Attributes:
        services: Status of every required service
        database_connected: False when SUSDB could not be queried
        database_size_gb: SUSDB size when connected
        issues: Human-readable problems; empty means healthy
    """
    services: list[ServiceHealth] = field(default_factory=list)
    database_connected: bool = True
    database_size_gb: float = 0.0
    issues: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.issues


@dataclass
class RepairResult:
    """Services started, or not, by a health repair."""
    started: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


# ============================================================================
# Run aggregate
# ============================================================================

@dataclass
class PhaseResult:
    """Terminal result of one pipeline phase."""
    name: PhaseName
    status: PhaseStatus
    duration_seconds: float = 0.0


@dataclass
class MaintenanceRun:
    """
    Aggregate root of one pipeline execution.

    Created at pipeline start, finalized at pipeline end. Never persisted by
    the pipeline itself; callers render or export it.
    """
    start_time: datetime
    end_time: datetime | None = None
    phases: list[PhaseResult] = field(default_factory=list)
    declined_expired: int = 0
    declined_superseded: int = 0
    declined_old: int = 0
    approved: int = 0
    database_size_gb: float = 0.0
    backup: BackupDescriptor | None = None
    export: ExportDescriptor | None = None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    success: bool = False

    @property
    def declined_total(self) -> int:
        return self.declined_expired + self.declined_superseded + self.declined_old

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def phase(self, name: PhaseName) -> PhaseResult | None:
        """Return the recorded result for a phase, if any."""
        for result in self.phases:
            if result.name == name:
                return result
        return None

    def record_phase(self, name: PhaseName, status: PhaseStatus, duration_seconds: float = 0.0) -> PhaseResult:
        """
        Append a phase result.

        Raises:
            ValueError: If the phase was already recorded in this run
        """
        if self.phase(name) is not None:
            raise ValueError(f"Phase {name.value} already recorded for this run")
        result = PhaseResult(name=name, status=status, duration_seconds=round(duration_seconds, 2))
        self.phases.append(result)
        return result

    def finalize(self, end_time: datetime) -> None:
        """Stamp the end time and compute overall success."""
        self.end_time = end_time
        self.success = not self.errors
