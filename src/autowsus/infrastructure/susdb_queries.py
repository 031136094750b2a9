"""
SUSDB Query Builder - parameterized maintenance statements.

Every statement the maintenance services send to SUSDB is built here.
Values always travel as '?' parameters; the only text spliced into SQL are
identifiers, and those go through quote_identifier().

Usage:
    queries = SusdbQueries("SUSDB")
    query = queries.delete_supersession_batch(state=RevisionState.SUPERSEDED, row_limit=10000)
    deleted = executor.execute_scalar(query.sql, query.params)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RevisionState(Enum):
    """tbRevision.State values used by maintenance."""
    DECLINED = 2
    SUPERSEDED = 3


@dataclass(frozen=True)
class Query:
    """SQL text plus its positional parameters."""
    sql: str
    params: tuple[Any, ...] = field(default_factory=tuple)


def quote_identifier(name: str) -> str:
    """Bracket-quote a SQL Server identifier, escaping closing brackets."""
    return "[" + name.replace("]", "]]") + "]"


class SusdbQueries:
    """Builds maintenance statements for one WSUS database."""

    def __init__(self, database: str = "SUSDB"):
        self.database = database

    # ========================================================================
    # Size and space
    # ========================================================================

    def database_size_gb(self) -> Query:
        return Query(
            "SELECT CAST(SUM(size) * 8.0 / 1024 / 1024 AS DECIMAL(10,2)) AS SizeGB "
            "FROM sys.master_files WHERE database_id = DB_ID(?)",
            (self.database,),
        )

    def database_space(self) -> Query:
        """Allocated, used and free MB of the data files."""
        return Query(
            """
            SELECT
                SUM(size / 128.0) AS AllocatedMB,
                SUM(CAST(FILEPROPERTY(name, 'SpaceUsed') AS INT) / 128.0) AS UsedMB,
                SUM((size - CAST(FILEPROPERTY(name, 'SpaceUsed') AS INT)) / 128.0) AS FreeMB
            FROM sys.database_files
            WHERE type = 0
            """
        )

    def shrink_database(self, target_free_percent: int) -> Query:
        return Query(
            f"DBCC SHRINKDATABASE({quote_identifier(self.database)}, {int(target_free_percent)}) WITH NO_INFOMSGS"
        )

    # ========================================================================
    # Supersession and purge
    # ========================================================================

    def delete_supersession_batch(self, state: RevisionState, row_limit: int) -> Query:
        """Delete at most row_limit supersession rows for revisions in the given state."""
        return Query(
            """
            SET NOCOUNT ON;
            DELETE TOP (?) rsu
            FROM tbRevisionSupersedesUpdate rsu
            INNER JOIN tbRevision r ON rsu.RevisionID = r.RevisionID
            WHERE r.State = ?;
            SELECT @@ROWCOUNT AS Deleted;
            """,
            (int(row_limit), state.value),
        )

    def declined_update_ids(self) -> Query:
        """Local update ids that have at least one declined revision (state 2)."""
        return Query(
            """
            SELECT DISTINCT r.LocalUpdateID
            FROM tbRevision r
            WHERE r.State = ?
            ORDER BY r.LocalUpdateID
            """,
            (RevisionState.DECLINED.value,),
        )

    def delete_update(self, local_update_id: int) -> Query:
        """The catalog's own per-update delete procedure."""
        return Query(
            "SET NOCOUNT ON; EXEC spDeleteUpdate @localUpdateID = ?",
            (int(local_update_id),),
        )

    # ========================================================================
    # Indexes and statistics
    # ========================================================================

    def fragmented_indexes(self, min_fragmentation: float, min_page_count: int) -> Query:
        return Query(
            """
            SELECT
                OBJECT_SCHEMA_NAME(ips.object_id) AS SchemaName,
                OBJECT_NAME(ips.object_id) AS TableName,
                i.name AS IndexName,
                ips.avg_fragmentation_in_percent AS Fragmentation,
                ips.page_count AS PageCount
            FROM sys.dm_db_index_physical_stats(DB_ID(), NULL, NULL, NULL, 'LIMITED') ips
            INNER JOIN sys.indexes i ON ips.object_id = i.object_id AND ips.index_id = i.index_id
            WHERE ips.avg_fragmentation_in_percent > ?
              AND ips.page_count > ?
              AND i.name IS NOT NULL
              AND OBJECT_NAME(ips.object_id) NOT LIKE 'ivw%'
            ORDER BY ips.page_count DESC
            """,
            (float(min_fragmentation), int(min_page_count)),
        )

    def rebuild_index(self, schema: str, table: str, index: str) -> Query:
        return Query(
            f"ALTER INDEX {quote_identifier(index)} ON "
            f"{quote_identifier(schema)}.{quote_identifier(table)} "
            "REBUILD WITH (ONLINE = OFF, SORT_IN_TEMPDB = ON)"
        )

    def reorganize_index(self, schema: str, table: str, index: str) -> Query:
        return Query(
            f"ALTER INDEX {quote_identifier(index)} ON "
            f"{quote_identifier(schema)}.{quote_identifier(table)} REORGANIZE"
        )

    def update_statistics(self) -> Query:
        return Query("EXEC sp_updatestats")

    # ========================================================================
    # Backup
    # ========================================================================

    def full_backup(self, file_path: str, compression: bool = False) -> Query:
        options = "INIT, CHECKSUM, STATS = 10"
        if compression:
            options += ", COMPRESSION"
        return Query(
            f"DECLARE @path NVARCHAR(4000) = ?; "
            f"BACKUP DATABASE {quote_identifier(self.database)} TO DISK = @path WITH {options}",
            (file_path,),
        )
