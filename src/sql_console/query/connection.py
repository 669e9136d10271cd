"""Connection capability consumed by the query executor.

The executor never talks to a driver directly. Anything that can run one
statement with a database context and a query id satisfies ``Connection``.
Cancellation is optional and advertised through ``supports_cancel``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sql_console.query.models import StatementResult


@runtime_checkable
class Connection(Protocol):
    """A connection exclusively owned by one running session."""

    supports_cancel: bool

    def execute_statement(
        self, sql: str, *, database: str | None = None, query_id: str | None = None
    ) -> StatementResult:
        """Execute one statement and return its rows and metadata."""
        ...

    def cancel(self, query_id: str) -> None:
        """Cancel the statement currently running under ``query_id``."""
        ...

    def ping(self) -> bool:
        """Check the connection is usable."""
        ...
