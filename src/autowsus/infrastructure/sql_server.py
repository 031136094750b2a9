"""
SQL Server connection and query execution module.

Handles:
- Connection string building for the SUSDB instance
- ODBC driver detection and fallback
- Parameterized query execution with per-call timeouts
- Autocommit execution for BACKUP and DBCC commands
- Optional explicit SQL credential per call
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence

import pyodbc

from autowsus.application.ports import SqlCredential, SqlExecutor
from autowsus.domain.config.settings import SqlSettings
from autowsus.domain.errors import ConfigurationError, SqlExecutionError

logger = logging.getLogger(__name__)


class SqlConnector(SqlExecutor):
    """
    SQL Server connection manager for SUSDB.

    Opens one connection per call so every call carries its own timeout
    and transaction mode.
    """

    def __init__(self, settings: SqlSettings):
        """
        Initialize SQL connector.

        Args:
            settings: Instance, database, auth mode and timeouts
        """
        self.settings = settings
        self._driver: str | None = None

        logger.info(
            "SqlConnector initialized for %s/%s (auth=%s)",
            settings.instance, settings.database, settings.auth,
        )

    def _detect_odbc_driver(self) -> str:
        """
        Detect best available ODBC driver.

        Returns:
            ODBC driver name

        Raises:
            SqlExecutionError: If no suitable driver found
        """
        if self._driver:
            return self._driver

        drivers = pyodbc.drivers()
        logger.debug("Available ODBC drivers: %s", drivers)

        # Preferred drivers (newest first)
        preferred = [
            "ODBC Driver 18 for SQL Server",
            "ODBC Driver 17 for SQL Server",
            "ODBC Driver 13 for SQL Server",
            "ODBC Driver 11 for SQL Server",
        ]
        fallback = [
            "SQL Server Native Client 11.0",
            "SQL Server Native Client 10.0",
            "SQL Server",
        ]

        for driver in preferred:
            if driver in drivers:
                logger.info("Using ODBC driver: %s", driver)
                self._driver = driver
                return driver

        for driver in fallback:
            if driver in drivers:
                logger.warning("Using fallback ODBC driver: %s", driver)
                self._driver = driver
                return driver

        raise SqlExecutionError("No SQL Server ODBC driver found. Please install ODBC Driver 17 or 18.")

    def build_connection_string(self, credential: SqlCredential | None = None) -> str:
        """
        Build ODBC connection string.

        Args:
            credential: Explicit login overriding the configured auth mode

        Returns:
            Connection string

        Raises:
            ConfigurationError: If SQL authentication is configured without a login
        """
        driver = self._detect_odbc_driver()

        parts = [
            f"DRIVER={{{driver}}}",
            f"SERVER={self.settings.instance}",
            f"DATABASE={self.settings.database}",
            f"TIMEOUT={self.settings.connect_timeout}",
            "Encrypt=yes",
            "TrustServerCertificate=yes",  # Required for SQL Server 2022+ self-signed certs
            "APP=AutoWsus",
        ]

        if credential is None and self.settings.auth == "sql":
            if not self.settings.username or self.settings.password is None:
                raise ConfigurationError("Username and password required for SQL authentication")
            credential = SqlCredential(
                username=self.settings.username,
                password=self.settings.password.get_secret_value(),
            )

        if credential is None:
            parts.append("Trusted_Connection=yes")
        else:
            parts.append(f"UID={credential.username}")
            parts.append(f"PWD={credential.password}")

        logger.debug("Connection string built (credentials masked)")
        return ";".join(parts)

    def test_connection(self) -> bool:
        """
        Test SQL Server connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.execute("SELECT 1 AS Ok", timeout=self.settings.connect_timeout)
            logger.info("Connection test successful: %s", self.settings.instance)
            return True
        except (SqlExecutionError, ConfigurationError) as e:
            logger.error("Connection test failed for %s: %s", self.settings.instance, e)
            return False

    def execute(
        self,
        query: str,
        params: Sequence[Any] = (),
        timeout: int = 30,
        credential: SqlCredential | None = None,
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Execute SQL and return results as list of dictionaries.

        Result sets produced before the last one (PRINT output, row counts)
        are drained so that BACKUP and batched DELETE loops run to completion
        before the call returns.

        Args:
            query: T-SQL with '?' placeholders
            params: Positional parameters
            timeout: Query timeout in seconds (0 = unbounded)
            credential: Optional explicit login
            autocommit: Run outside a transaction

        Returns:
            Rows of the last result set that had columns

        Raises:
            SqlExecutionError: If connection or execution fails
            ConfigurationError: If the SQL login is incomplete
        """
        conn_str = self.build_connection_string(credential)
        try:
            conn = pyodbc.connect(conn_str, autocommit=autocommit)
        except pyodbc.Error as e:
            raise SqlExecutionError(f"Cannot connect to {self.settings.instance}: {e}") from e

        try:
            conn.timeout = timeout
            cursor = conn.cursor()
            if params:
                cursor.execute(query, *params)
            else:
                cursor.execute(query)

            results: list[dict[str, Any]] = []
            while True:
                if cursor.description:
                    columns = [column[0] for column in cursor.description]
                    results = [self._row_to_dict(columns, row) for row in cursor.fetchall()]
                if not cursor.nextset():
                    break

            if not autocommit:
                conn.commit()

            logger.debug("Query returned %d rows", len(results))
            return results
        except pyodbc.Error as e:
            if not autocommit:
                conn.rollback()
            raise SqlExecutionError(str(e)) from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_dict(columns: list[str], row: Any) -> dict[str, Any]:
        """Convert a pyodbc row, stringifying types other than primitives/decimals/datetimes."""
        row_dict: dict[str, Any] = {}
        for i, column in enumerate(columns):
            value = row[i]
            if value is None or isinstance(value, (str, int, float, bool)):
                row_dict[column] = value
            elif isinstance(value, (Decimal, datetime)):
                row_dict[column] = value
            else:
                row_dict[column] = str(value)
        return row_dict

