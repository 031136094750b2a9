"""
Configuration domain package.

This package contains the settings models for the maintenance pipeline.
"""

from .settings import (
    BackupSettings,
    CatalogSettings,
    ExportSettings,
    HealthSettings,
    MaintenanceSettings,
    PathSettings,
    PurgeSettings,
    SqlSettings,
    SyncSettings,
    UpdatePolicy,
)

__all__ = [
    "BackupSettings",
    "CatalogSettings",
    "ExportSettings",
    "HealthSettings",
    "MaintenanceSettings",
    "PathSettings",
    "PurgeSettings",
    "SqlSettings",
    "SyncSettings",
    "UpdatePolicy",
]
