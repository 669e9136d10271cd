"""DuckDB engine backing the SQL console connections.

Provides a connection manager that:
- Opens the configured named DuckDB databases
- Applies memory and thread limits from configuration
- Hands out exclusive per-session connections (one cursor each)
- Provides health checks for every configured database
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import duckdb

from sql_console.config import get_settings
from sql_console.query.models import (
    ConnectionNotFoundError,
    QueryCancelledError,
    StatementResult,
)
from sql_console.query.splitter import classify_sql_op

if TYPE_CHECKING:
    from collections.abc import Generator

    from sql_console.config import Settings

_AFFECTED_ROWS_OPS = frozenset({"INSERT", "UPDATE", "DELETE"})


def _quote_identifier(identifier: str) -> str:
    """Quote an identifier for use in SQL."""
    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


def _use_statement(database: str) -> str:
    """Build a USE statement for a ``database`` or ``database.schema`` name."""
    return "USE " + ".".join(_quote_identifier(part) for part in database.split("."))


class DuckDBConnection:
    """A session-scoped DuckDB connection.

    Wraps a dedicated cursor so that one session never shares a statement
    stream with another. The cursor can be interrupted from another thread.
    """

    supports_cancel = True

    def __init__(self, cursor: duckdb.DuckDBPyConnection, max_rows: int) -> None:
        self._cursor = cursor
        self._max_rows = max_rows
        self._lock = threading.Lock()
        self._running_query_id: str | None = None

    def execute_statement(
        self, sql: str, *, database: str | None = None, query_id: str | None = None
    ) -> StatementResult:
        """Execute one statement.

        Args:
            sql: Statement text.
            database: Database (or database.schema) to switch to first.
            query_id: Identifier a later cancel request refers to.

        Returns:
            Rows as dicts, column schema and row counts.

        Raises:
            QueryCancelledError: If the statement was interrupted.
            duckdb.Error: If DuckDB rejects the statement.
        """
        with self._lock:
            self._running_query_id = query_id
        try:
            if database:
                self._cursor.execute(_use_statement(database))
            self._cursor.execute(sql)
            return self._collect(sql)
        except duckdb.InterruptException as e:
            raise QueryCancelledError(str(e) or "Statement interrupted") from e
        finally:
            with self._lock:
                self._running_query_id = None

    def _collect(self, sql: str) -> StatementResult:
        description = self._cursor.description
        if not description:
            return StatementResult(rows=[], columns=None, row_count=0)

        names = [col[0] for col in description]
        columns: list[dict[str, str | None]] = [
            {"name": col[0], "type": str(col[1]) if col[1] is not None else None}
            for col in description
        ]

        if classify_sql_op(sql) in _AFFECTED_ROWS_OPS and names == ["Count"]:
            row = self._cursor.fetchone()
            return StatementResult(affected_rows=int(row[0]) if row else 0)

        fetched = self._cursor.fetchmany(self._max_rows + 1)
        limited = len(fetched) > self._max_rows
        rows: list[dict[str, Any]] = [dict(zip(names, values)) for values in fetched[: self._max_rows]]
        return StatementResult(
            rows=rows,
            columns=columns,
            row_count=len(rows),
            limited=limited,
            limit=self._max_rows if limited else None,
        )

    def cancel(self, query_id: str) -> None:
        """Interrupt the running statement if it belongs to ``query_id``."""
        with self._lock:
            if self._running_query_id == query_id:
                self._cursor.interrupt()

    def ping(self) -> bool:
        """Check the cursor can still run a trivial query."""
        try:
            self._cursor.execute("SELECT 1").fetchone()
        except duckdb.Error:
            return False
        return True


class DuckDBEngine:
    """DuckDB connection manager for the configured databases.

    This class manages DuckDB databases with:
    - One root connection per configured connection id
    - Configurable memory limits and thread counts
    - Thread-safe creation of per-session cursors
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the DuckDB engine.

        Args:
            settings: Application settings. If None, uses cached settings.
        """
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._databases: dict[str, duckdb.DuckDBPyConnection] = {}

    @property
    def connection_ids(self) -> list[str]:
        """Get the configured connection ids."""
        return sorted(self._settings.duckdb.connections)

    def _create_connection(self, path: str) -> duckdb.DuckDBPyConnection:
        """Create a new DuckDB connection with configured settings.

        Args:
            path: Database file path, or ``:memory:``.

        Returns:
            Configured DuckDB connection.
        """
        conn = duckdb.connect(path)

        duckdb_config = self._settings.duckdb
        conn.execute(f"SET memory_limit = '{duckdb_config.memory_limit}'")
        conn.execute(f"SET threads = {duckdb_config.threads}")

        return conn

    def initialize(self) -> None:
        """Open every configured database.

        This method should be called once at application startup.
        """
        with self._lock:
            if self._databases:
                return
            for connection_id, path in self._settings.duckdb.connections.items():
                self._databases[connection_id] = self._create_connection(path)

    def close(self) -> None:
        """Close the engine and release resources."""
        with self._lock:
            for conn in self._databases.values():
                conn.close()
            self._databases.clear()

    @contextmanager
    def connect(self, connection_id: str) -> Generator[DuckDBConnection, None, None]:
        """Get an exclusive connection for one session.

        Args:
            connection_id: Configured connection id.

        Yields:
            A DuckDBConnection backed by a fresh cursor.

        Raises:
            ConnectionNotFoundError: If the connection id is not configured.
        """
        if connection_id not in self._settings.duckdb.connections:
            raise ConnectionNotFoundError(f"Connection not found: {connection_id}")
        if not self.is_initialized:
            self.initialize()

        with self._lock:
            cursor = self._databases[connection_id].cursor()
        try:
            yield DuckDBConnection(cursor, self._settings.query.max_result_rows)
        finally:
            cursor.close()

    def health_check(self) -> dict[str, Any]:
        """Check health of every configured database.

        Returns:
            Dictionary with health status:
            - healthy: Overall health status
            - connections: Per connection id ``{"healthy": bool, "error": str | None}``
        """
        connections: dict[str, dict[str, Any]] = {}
        for connection_id in self.connection_ids:
            conn = self._databases.get(connection_id)
            if conn is None:
                connections[connection_id] = {"healthy": False, "error": "Engine not initialized"}
                continue
            try:
                conn.execute("SELECT 1").fetchone()
                connections[connection_id] = {"healthy": True, "error": None}
            except Exception as e:
                connections[connection_id] = {"healthy": False, "error": f"DuckDB error: {e}"}

        healthy = bool(connections) and all(c["healthy"] for c in connections.values())
        return {"healthy": healthy, "connections": connections}

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return bool(self._databases)


_engine: DuckDBEngine | None = None


def get_engine() -> DuckDBEngine:
    """Get the global DuckDB engine instance (cached).

    Returns:
        The global DuckDB engine.
    """
    global _engine
    if _engine is None:
        _engine = DuckDBEngine()
    return _engine


def reset_engine() -> None:
    """Reset the global engine (useful for testing)."""
    global _engine
    if _engine is not None:
        _engine.close()
    _engine = None
