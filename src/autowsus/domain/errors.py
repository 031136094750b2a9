"""
Exception hierarchy raised at the infrastructure edge.

Services convert these into Outcome values; only CatalogConnectionError is
allowed to end a maintenance run.
"""


class AutoWsusError(Exception):
    """Base class for all AutoWsus errors."""


class ConfigurationError(AutoWsusError):
    """Configuration file missing required values or malformed."""


class CatalogError(AutoWsusError):
    """A call against the WSUS administration API failed."""


class CatalogConnectionError(CatalogError):
    """The WSUS server could not be reached at all."""


class SqlExecutionError(AutoWsusError):
    """A query or command against SUSDB failed."""


class FileSyncError(AutoWsusError):
    """The file copy tool could not be started."""
