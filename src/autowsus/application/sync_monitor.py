"""
Synchronization monitor.

Triggers a catalog synchronization and polls its status until the server
reports it is no longer processing, or until the poll budget runs out.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from autowsus.application.ports import CatalogClient
from autowsus.domain.errors import CatalogError
from autowsus.domain.models import SyncResult, SyncStatus
from autowsus.domain.outcome import Outcome

logger = logging.getLogger(__name__)


class SyncMonitor:
    """Runs one synchronization to completion."""

    def __init__(
        self,
        catalog: CatalogClient,
        grace_period_seconds: float = 10,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.catalog = catalog
        self.grace_period_seconds = grace_period_seconds
        self._sleep = sleep
        self._clock = clock

    def run_sync(self, timeout_iterations: int = 120, poll_interval_seconds: float = 30) -> Outcome[SyncResult]:
        """
        Trigger a sync and wait for it.

        Args:
            timeout_iterations: Maximum number of status polls
            poll_interval_seconds: Wait between polls

        Returns:
            Outcome whose value is the last sync result. A trigger failure is
            an error; timeouts and unsuccessful results are warnings.
        """
        try:
            self.catalog.trigger_sync()
        except CatalogError as exc:
            return Outcome.failed(f"Cannot start synchronization: {exc}")

        started = self._clock()
        self._sleep(self.grace_period_seconds)

        outcome: Outcome[SyncResult] = Outcome.ok()
        polls = 0
        finished = False
        while polls < timeout_iterations:
            polls += 1
            try:
                status = self.catalog.get_sync_status()
            except CatalogError as exc:
                logger.debug("Sync status poll %d failed: %s", polls, exc)
                status = SyncStatus.UNKNOWN
            if status is SyncStatus.NOT_PROCESSING:
                finished = True
                break
            logger.debug("Sync status after poll %d: %s", polls, status.value)
            if polls < timeout_iterations:
                self._sleep(poll_interval_seconds)

        if not finished:
            outcome.warn(f"Synchronization still running after {timeout_iterations} status checks")

        result_known = True
        try:
            result = self.catalog.get_last_sync_result()
        except CatalogError as exc:
            outcome.warn(f"Cannot read last synchronization result: {exc}")
            result = SyncResult()
            result_known = False

        result.timed_out = not finished
        result.polls = polls
        outcome.value = result

        if result_known and not result.succeeded:
            detail = f": {result.error}" if result.error else ""
            outcome.warn(f"Synchronization result was {result.result}{detail}")

        logger.info(
            "Synchronization %s after %.0fs (%d new, %d revised)",
            result.result, self._clock() - started, result.new_count, result.revised_count,
        )
        return outcome
