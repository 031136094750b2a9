"""
Shared fixtures and in-memory fakes for the maintenance ports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import pytest

from autowsus.application.ports import CatalogClient, ServiceController, SqlCredential, SqlExecutor
from autowsus.domain.errors import CatalogError, SqlExecutionError
from autowsus.domain.models import SyncResult, SyncStatus, UpdateClassification, UpdateRecord

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_record(
    record_id: str,
    title: str | None = None,
    days_old: int = 10,
    classification: UpdateClassification = UpdateClassification.SECURITY,
    **flags: Any,
) -> UpdateRecord:
    """Build an UpdateRecord released days_old days before NOW."""
    return UpdateRecord(
        id=record_id,
        title=title or f"Update {record_id}",
        release_date=NOW - timedelta(days=days_old),
        classification=classification,
        **flags,
    )


class FakeCatalogClient(CatalogClient):
    """Catalog with scripted records, statuses and failures."""

    def __init__(self, records: Sequence[UpdateRecord] = ()):
        self.records = list(records)
        self.connect_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.trigger_error: Exception | None = None
        self.cleanup_error: Exception | None = None
        self.fail_decline: set[str] = set()
        self.fail_approve: set[str] = set()
        self.statuses: list[SyncStatus] = [SyncStatus.NOT_PROCESSING]
        self.last_result = SyncResult(result="Succeeded", new_count=3, revised_count=1)
        self.declined: list[str] = []
        self.approved: list[tuple[str, str]] = []
        self.sync_triggered = 0
        self.status_polls = 0
        self.cleanup_runs = 0

    def connect(self) -> str:
        if self.connect_error:
            raise self.connect_error
        return "WSUS01 10.0.17763"

    def get_all_records(self) -> list[UpdateRecord]:
        if self.fetch_error:
            raise self.fetch_error
        return list(self.records)

    def decline(self, update_id: str) -> None:
        if update_id in self.fail_decline:
            raise CatalogError(f"decline refused for {update_id}")
        self.declined.append(update_id)

    def approve(self, update_id: str, target_group: str) -> None:
        if update_id in self.fail_approve:
            raise CatalogError(f"approve refused for {update_id}")
        self.approved.append((update_id, target_group))

    def trigger_sync(self) -> None:
        if self.trigger_error:
            raise self.trigger_error
        self.sync_triggered += 1

    def get_sync_status(self) -> SyncStatus:
        index = min(self.status_polls, len(self.statuses) - 1)
        self.status_polls += 1
        return self.statuses[index]

    def get_last_sync_result(self) -> SyncResult:
        return self.last_result

    def run_server_cleanup(self) -> dict[str, int]:
        if self.cleanup_error:
            raise self.cleanup_error
        self.cleanup_runs += 1
        return {"ObsoleteUpdatesDeleted": 2, "DiskSpaceFreed": 1024}


class FakeSqlExecutor(SqlExecutor):
    """
    Records every statement and answers by substring match.

    responses maps a SQL fragment to either a row list or a callable taking
    (query, params) and returning rows. Statements containing a fragment in
    failures raise SqlExecutionError.
    """

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self.responses: dict[str, Any] = {}
        self.failures: set[str] = set()
        self.fail_params: set[Any] = set()

    def execute(
        self,
        query: str,
        params: Sequence[Any] = (),
        timeout: int = 30,
        credential: SqlCredential | None = None,
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        self.calls.append({"query": query, "params": tuple(params), "timeout": timeout, "autocommit": autocommit})
        for fragment in self.failures:
            if fragment in query:
                raise SqlExecutionError(f"forced failure on {fragment}")
        if any(param in self.fail_params for param in params):
            raise SqlExecutionError(f"forced failure for {params}")
        for fragment, response in self.responses.items():
            if fragment in query:
                return response(query, params) if callable(response) else list(response)
        return []

    def queries_containing(self, fragment: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if fragment in call["query"]]


class FakeServiceController(ServiceController):
    def __init__(self, stop_ok: bool = True, start_ok: bool = True):
        self.stop_ok = stop_ok
        self.start_ok = start_ok
        self.events: list[tuple[str, str]] = []
        self.states: dict[str, str] = {}

    def stop(self, service_name: str, timeout_seconds: int) -> bool:
        self.events.append(("stop", service_name))
        return self.stop_ok

    def start(self, service_name: str, timeout_seconds: int) -> bool:
        self.events.append(("start", service_name))
        return self.start_ok

    def status(self, service_name: str) -> str:
        return self.states.get(service_name, "Running")


@pytest.fixture
def catalog() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def sql() -> FakeSqlExecutor:
    return FakeSqlExecutor()
