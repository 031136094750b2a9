"""
Port definitions for external collaborators.

The pipeline and its services only talk to these interfaces. Concrete
adapters live in the infrastructure layer (PowerShell, pyodbc, robocopy);
tests provide in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from autowsus.domain.models import FileSyncResult, SyncResult, SyncStatus, UpdateRecord


@dataclass(frozen=True)
class SqlCredential:
    """Explicit SQL login; integrated security is used when absent."""
    username: str
    password: str


@dataclass(frozen=True)
class SyncOptions:
    """
    Options for one directory sync.

    Attributes:
        recurse: Include subdirectories
        max_age_days: Only copy files modified within this many days
        exclude_older: Skip files where the destination copy is newer
        exclude_patterns: Filename globs never copied
        files: Restrict the copy to these file names
        thread_count: Copy worker threads
        retries: Retries per failed file
        retry_wait_seconds: Wait between retries
    """
    recurse: bool = True
    max_age_days: int | None = None
    exclude_older: bool = True
    exclude_patterns: tuple[str, ...] = field(default_factory=tuple)
    files: tuple[str, ...] = field(default_factory=tuple)
    thread_count: int = 8
    retries: int = 3
    retry_wait_seconds: int = 5


class CatalogClient(ABC):
    """Facade over the WSUS administration API."""

    @abstractmethod
    def connect(self) -> str:
        """
        Verify the WSUS server is reachable.

        Returns:
            Server description (name and version)

        Raises:
            CatalogConnectionError: If the server cannot be reached
        """

    @abstractmethod
    def get_all_records(self) -> list[UpdateRecord]:
        """Fetch every catalog entry."""

    @abstractmethod
    def decline(self, update_id: str) -> None:
        """Decline one update. Raises CatalogError on failure."""

    @abstractmethod
    def approve(self, update_id: str, target_group: str) -> None:
        """Approve one update for install. Raises CatalogError on failure."""

    @abstractmethod
    def trigger_sync(self) -> None:
        """Start a subscription synchronization."""

    @abstractmethod
    def get_sync_status(self) -> SyncStatus:
        """Current synchronization status."""

    @abstractmethod
    def get_last_sync_result(self) -> SyncResult:
        """Result of the most recent synchronization."""

    @abstractmethod
    def run_server_cleanup(self) -> dict[str, int]:
        """Run the built-in server cleanup; returns counts per category."""


class SqlExecutor(ABC):
    """Runs parameterized queries and commands against SUSDB."""

    @abstractmethod
    def execute(
        self,
        query: str,
        params: Sequence[Any] = (),
        timeout: int = 30,
        credential: SqlCredential | None = None,
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Execute a query and return rows as dictionaries.

        Args:
            query: T-SQL with '?' placeholders
            params: Positional parameters
            timeout: Query timeout in seconds (0 = unbounded)
            credential: Optional explicit login
            autocommit: Run outside a transaction (BACKUP, DBCC)

        Raises:
            SqlExecutionError: If the query fails
        """

    def execute_scalar(
        self,
        query: str,
        params: Sequence[Any] = (),
        timeout: int = 30,
        credential: SqlCredential | None = None,
        autocommit: bool = False,
    ) -> Any:
        """Execute and return the first column of the first row."""
        rows = self.execute(query, params, timeout, credential, autocommit)
        if rows:
            return next(iter(rows[0].values()), None)
        return None


class FileSyncEngine(ABC):
    """Age-filtered, retryable directory mirroring."""

    @abstractmethod
    def sync(self, source: str, dest: str, options: SyncOptions) -> FileSyncResult:
        """Copy newer-or-missing files from source into dest; never deletes."""


class ServiceController(ABC):
    """Windows service status and start/stop."""

    @abstractmethod
    def stop(self, service_name: str, timeout_seconds: int) -> bool:
        """Stop a service and wait; True when stopped."""

    @abstractmethod
    def start(self, service_name: str, timeout_seconds: int) -> bool:
        """Start a service and wait; True when running."""

    @abstractmethod
    def status(self, service_name: str) -> str:
        """Current status ('Running', 'Stopped', ...), or 'NotFound'."""
