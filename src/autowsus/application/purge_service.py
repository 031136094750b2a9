"""
Purge & Optimize Engine.

Database-side cleanup of SUSDB:
- supersession record removal in bounded DELETE TOP batches
- purge of declined updates through spDeleteUpdate, one update per call
- index rebuild/reorganize by fragmentation
- statistics refresh
- space reclamation when enough free space exists

All statements come from SusdbQueries. Methods raise SqlExecutionError when
their primary statement fails; per-record and per-index failures are
collected instead.
"""

from __future__ import annotations

import logging
from typing import Sequence

from autowsus.application.batching import BatchProcessor, BatchProgress
from autowsus.application.ports import SqlExecutor
from autowsus.domain.config.settings import PurgeSettings
from autowsus.domain.errors import SqlExecutionError
from autowsus.domain.models import DatabaseSpaceInfo, IndexOptimizationResult, PurgeResult
from autowsus.domain.outcome import Outcome
from autowsus.infrastructure.susdb_queries import Query, RevisionState, SusdbQueries

logger = logging.getLogger(__name__)


class PurgeService:
    """Runs maintenance statements against SUSDB through the SQL executor."""

    def __init__(
        self,
        sql: SqlExecutor,
        queries: SusdbQueries,
        settings: PurgeSettings | None = None,
        query_timeout: int = 30,
        maintenance_timeout: int = 0,
    ):
        self.sql = sql
        self.queries = queries
        self.settings = settings or PurgeSettings()
        self.query_timeout = query_timeout
        self.maintenance_timeout = maintenance_timeout

    def _execute(self, query: Query, timeout: int | None = None, autocommit: bool = False):
        return self.sql.execute(
            query.sql,
            query.params,
            timeout=self.maintenance_timeout if timeout is None else timeout,
            autocommit=autocommit,
        )

    def _scalar(self, query: Query, timeout: int | None = None):
        return self.sql.execute_scalar(
            query.sql,
            query.params,
            timeout=self.maintenance_timeout if timeout is None else timeout,
        )

    # ========================================================================
    # Size
    # ========================================================================

    def database_size_gb(self) -> float:
        value = self._scalar(self.queries.database_size_gb(), timeout=self.query_timeout)
        return float(value or 0)

    def database_space(self) -> DatabaseSpaceInfo:
        rows = self._execute(self.queries.database_space(), timeout=self.query_timeout)
        row = rows[0] if rows else {}
        return DatabaseSpaceInfo(
            allocated_mb=float(row.get("AllocatedMB") or 0),
            used_mb=float(row.get("UsedMB") or 0),
            free_mb=float(row.get("FreeMB") or 0),
        )

    # ========================================================================
    # Supersession and purge
    # ========================================================================

    def remove_supersession_records(self, state: RevisionState) -> int:
        """
        Delete supersession rows for revisions in state, row_limit rows per call.

        Returns:
            Total rows removed
        """
        total = 0
        while True:
            deleted = int(self._scalar(
                self.queries.delete_supersession_batch(state, self.settings.supersession_row_limit)
            ) or 0)
            total += deleted
            if deleted == 0:
                break
            logger.debug("Removed %d supersession rows (state %s), %d so far", deleted, state.name, total)
        logger.info("Removed %d supersession records for %s revisions", total, state.name.lower())
        return total

    def declined_update_ids(self) -> list[int]:
        rows = self._execute(self.queries.declined_update_ids(), timeout=self.query_timeout)
        return [int(row["LocalUpdateID"]) for row in rows]

    def purge(self, declined_ids: Sequence[int], batch_size: int | None = None) -> Outcome[PurgeResult]:
        """
        Delete declined updates one at a time through spDeleteUpdate.

        Failures are counted and summarised in a single warning; purge is
        best-effort and always succeeds as a phase step.
        """
        size = batch_size or self.settings.batch_size

        def report(progress: BatchProgress) -> None:
            logger.info(
                "Purge progress: %.1f%% (%d/%d), %d deleted",
                progress.percent_complete, progress.processed, progress.total, progress.succeeded,
            )

        processor = BatchProcessor(
            progress_every=self.settings.progress_every_batches,
            on_progress=report,
            failure_types=(SqlExecutionError,),
        )
        batch_report = processor.for_each_batch(
            list(declined_ids),
            size,
            lambda local_id: self._execute(self.queries.delete_update(local_id)),
        )

        result = PurgeResult(
            requested=len(declined_ids),
            deleted_count=batch_report.succeeded,
            failed_count=batch_report.failed,
        )
        outcome: Outcome[PurgeResult] = Outcome.ok(result)
        if batch_report.failures:
            first_id, first_error = batch_report.failures[0]
            outcome.warn(
                f"Purge: {batch_report.failed} of {len(declined_ids)} declined updates could not be "
                f"deleted (first: {first_id}: {first_error})"
            )
        logger.info("Purged %d/%d declined updates", result.deleted_count, result.requested)
        return outcome

    # ========================================================================
    # Indexes, statistics, space
    # ========================================================================

    def optimize_indexes(self) -> Outcome[IndexOptimizationResult]:
        """Rebuild heavily fragmented indexes and reorganize moderately fragmented ones."""
        rows = self._execute(self.queries.fragmented_indexes(
            self.settings.reorganize_threshold_percent,
            self.settings.min_page_count,
        ), timeout=self.query_timeout)

        result = IndexOptimizationResult()
        outcome: Outcome[IndexOptimizationResult] = Outcome.ok(result)
        for row in rows:
            schema, table, index = row["SchemaName"], row["TableName"], row["IndexName"]
            fragmentation = float(row["Fragmentation"])
            rebuild = fragmentation > self.settings.rebuild_threshold_percent
            query = (
                self.queries.rebuild_index(schema, table, index)
                if rebuild
                else self.queries.reorganize_index(schema, table, index)
            )
            try:
                self._execute(query)
            except SqlExecutionError as exc:
                result.failed += 1
                outcome.warn(f"Index maintenance failed for {schema}.{table}.{index}: {exc}")
                continue
            if rebuild:
                result.rebuilt += 1
            else:
                result.reorganized += 1
            logger.debug("%s %s.%s (%.1f%%)", "Rebuilt" if rebuild else "Reorganized", table, index, fragmentation)

        logger.info(
            "Index maintenance: %d rebuilt, %d reorganized, %d failed",
            result.rebuilt, result.reorganized, result.failed,
        )
        return outcome

    def update_statistics(self) -> None:
        self._execute(self.queries.update_statistics())
        logger.info("Statistics refreshed")

    def reclaim_space(self) -> bool:
        """
        Shrink the database when reclaimable space exceeds min_reclaim_mb.

        Returns:
            True if a shrink was issued
        """
        space = self.database_space()
        if space.free_mb <= self.settings.min_reclaim_mb:
            logger.info(
                "Skipping shrink: %.0f MB free is below the %.0f MB threshold",
                space.free_mb, self.settings.min_reclaim_mb,
            )
            return False
        logger.info("Shrinking database (%.0f MB free)", space.free_mb)
        self._execute(
            self.queries.shrink_database(self.settings.shrink_target_free_percent),
            autocommit=True,
        )
        return True
