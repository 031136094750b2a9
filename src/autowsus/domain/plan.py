"""
Maintenance plans and presets.

A MaintenancePlan is the only input the pipeline reads besides settings.
It is frozen so nothing can change the selection once a run has started.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .models import Operation

DEFAULT_EXPORT_WINDOW_DAYS = 30


class MaintenancePreset(Enum):
    """Operation selector presets offered by the CLI."""
    FULL = "full"
    QUICK = "quick"
    SYNC_ONLY = "sync-only"
    BACKUP_AND_EXPORT = "backup-and-export"
    DB_ONLY = "db-only"


PRESET_OPERATIONS: dict[MaintenancePreset, frozenset[Operation]] = {
    MaintenancePreset.FULL: frozenset(Operation),
    MaintenancePreset.QUICK: frozenset({Operation.SYNC, Operation.CLEANUP, Operation.BACKUP}),
    MaintenancePreset.SYNC_ONLY: frozenset({Operation.SYNC}),
    MaintenancePreset.BACKUP_AND_EXPORT: frozenset({Operation.BACKUP, Operation.EXPORT}),
    MaintenancePreset.DB_ONLY: frozenset({Operation.ULTIMATE_CLEANUP, Operation.BACKUP}),
}

PRESET_DESCRIPTIONS: dict[MaintenancePreset, str] = {
    MaintenancePreset.FULL: "Sync, cleanup, deep cleanup, backup and export",
    MaintenancePreset.QUICK: "Sync, cleanup and backup (no service downtime)",
    MaintenancePreset.SYNC_ONLY: "Catalog sync and decline/approval policy",
    MaintenancePreset.BACKUP_AND_EXPORT: "Backup with retention, then export",
    MaintenancePreset.DB_ONLY: "Deep database cleanup and backup",
}


@dataclass(frozen=True)
class MaintenancePlan:
    """
    Immutable description of what a maintenance run should do.

    Attributes:
        operations: Selected operations
        skip_ultimate_cleanup: Suppress deep cleanup even if selected
        skip_export: Suppress export even if selected
        export_window_days: Age window for the dated archive copy (> 0)
        unattended: No interactive prompts, defaults applied
    """
    operations: frozenset[Operation]
    skip_ultimate_cleanup: bool = False
    skip_export: bool = False
    export_window_days: int = DEFAULT_EXPORT_WINDOW_DAYS
    unattended: bool = False

    def __post_init__(self):
        if not isinstance(self.operations, frozenset):
            object.__setattr__(self, "operations", frozenset(self.operations))
        if self.export_window_days <= 0:
            raise ValueError(f"export_window_days must be positive, got {self.export_window_days}")

    def is_selected(self, operation: Operation) -> bool:
        """True if the operation runs, with the skip flags applied."""
        if operation not in self.operations:
            return False
        if operation is Operation.ULTIMATE_CLEANUP and self.skip_ultimate_cleanup:
            return False
        if operation is Operation.EXPORT and self.skip_export:
            return False
        return True


def build_plan(
    preset: MaintenancePreset = MaintenancePreset.FULL,
    operations: Iterable[Operation] | None = None,
    unattended: bool = False,
    export_window_days: int | None = None,
    skip_ultimate_cleanup: bool = False,
    skip_export: bool = False,
) -> MaintenancePlan:
    """
    Build a plan from a preset, optionally overridden by an explicit list.

    Args:
        preset: Preset used when no explicit operations are given
        operations: Explicit operations; replaces the preset entirely
        unattended: Suppress prompts
        export_window_days: Archive window; defaults to 30 days
        skip_ultimate_cleanup: Suppress deep cleanup
        skip_export: Suppress export

    Returns:
        MaintenancePlan
    """
    selected = frozenset(operations) if operations else PRESET_OPERATIONS[preset]
    return MaintenancePlan(
        operations=selected,
        skip_ultimate_cleanup=skip_ultimate_cleanup,
        skip_export=skip_export,
        export_window_days=export_window_days or DEFAULT_EXPORT_WINDOW_DAYS,
        unattended=unattended,
    )
