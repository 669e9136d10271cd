"""Query executor for multi-statement SQL sessions.

Provides:
- Request validation (database name, statement count)
- Statement splitting and optional row limit enforcement
- Strictly sequential execution with per-statement timing and errors
- Stop-on-error and continue-on-error policies
- Session cancellation through a cancellation registry
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from sql_console.config import get_settings
from sql_console.models.query import (
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    QueryResultSet,
    QuerySession,
    ResponseMeta,
)
from sql_console.observability import (
    decrement_active_sessions,
    get_logger,
    get_tracer,
    increment_active_sessions,
    record_session,
    record_statement_duration,
    record_statement_rows,
)
from sql_console.query.cancellation import CancelHandle, CancellationRegistry
from sql_console.query.connection import Connection
from sql_console.query.engine import get_engine
from sql_console.query.history import InMemorySessionHistory
from sql_console.query.limits import enforce_select_limit
from sql_console.query.models import (
    CANCELLED_MESSAGE,
    CancelOutcome,
    ErrorKind,
    InvalidDatabaseNameError,
    MissingIdentifierError,
    QueryCancelledError,
    ResultStatus,
    StatementError,
    TooManyStatementsError,
)
from sql_console.query.splitter import (
    classify_sql_op,
    is_blank_statement,
    make_title,
    split_statements,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sql_console.config import Settings
    from sql_console.query.engine import DuckDBEngine
    from sql_console.query.history import SessionSink

logger = get_logger(__name__)

DATABASE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def validate_database_name(database: str | None) -> str | None:
    """Validate the database context of a request.

    Args:
        database: Database name, or None for the connection default.

    Returns:
        The trimmed name, or None if absent or blank.

    Raises:
        InvalidDatabaseNameError: If the name has invalid characters or length.
    """
    if database is None:
        return None
    name = database.strip()
    if not name:
        return None
    if not DATABASE_NAME_PATTERN.match(name):
        raise InvalidDatabaseNameError(
            "Database name must be 1-64 characters of letters, digits, '_', '.' or '-'"
        )
    return name


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(round(time.time() * 1000))


def reconcile_finished_at(started_at: int, finished_at: int, duration_ms: int) -> int:
    """Keep a wall-clock end consistent with a monotonic duration.

    The end never precedes the start, and a positive duration is never
    displayed as an instant.
    """
    finished_at = max(finished_at, started_at)
    if finished_at == started_at and duration_ms > 0:
        finished_at = started_at + duration_ms
    return finished_at


@dataclass
class ExecutionOutcome:
    """Session summary with index-aligned result sets and rows."""

    session: QuerySession
    result_sets: list[QueryResultSet] = field(default_factory=list)
    results: list[list[dict[str, Any]]] = field(default_factory=list)


@dataclass
class _StatementOutcome:
    result_set: QueryResultSet
    rows: list[dict[str, Any]]
    error: StatementError | None = None


class QueryExecutor:
    """Executes SQL sessions and manages their cancellation.

    A session runs its statements one after another on a connection it
    owns exclusively. Sessions may run concurrently on different threads;
    the cancellation registry and the history sink are the only shared state.
    """

    def __init__(
        self,
        engine: DuckDBEngine | None = None,
        registry: CancellationRegistry | None = None,
        sink: SessionSink | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            engine: Engine providing connections. If None, uses global engine.
            registry: Cancellation registry. A new one is created if None.
            sink: Receives finished sessions. Defaults to in-memory history.
            settings: Application settings. If None, uses cached settings.
        """
        self._settings = settings or get_settings()
        self._engine = engine or get_engine()
        self._registry = registry or CancellationRegistry()
        self._sink = sink if sink is not None else InMemorySessionHistory(
            self._settings.query.history_size
        )

    @property
    def registry(self) -> CancellationRegistry:
        """Get the cancellation registry of this executor."""
        return self._registry

    @property
    def sink(self) -> SessionSink:
        """Get the sink receiving finished sessions."""
        return self._sink

    def prepare_statements(self, sql: str, *, enforce_limit: bool = False) -> list[str]:
        """Split a submission into executable statements.

        Args:
            sql: Raw SQL text.
            enforce_limit: Cap SELECT statements to the configured row limit.

        Returns:
            Statements in source order, without comment-only entries.

        Raises:
            TooManyStatementsError: If the statement count exceeds the maximum.
        """
        statements = [s for s in split_statements(sql) if not is_blank_statement(s)]
        self._check_statement_count(statements)
        if enforce_limit:
            max_rows = self._settings.query.max_result_rows
            statements = [enforce_select_limit(s, max_rows) for s in statements]
        return statements

    def _check_statement_count(self, statements: Sequence[str]) -> None:
        maximum = self._settings.query.max_statements
        if len(statements) > maximum:
            raise TooManyStatementsError(len(statements), maximum)

    def execute(self, request: ExecuteQueryRequest) -> ExecuteQueryResponse:
        """Validate, run and record one execution request.

        Args:
            request: Execution request from the API.

        Returns:
            The session envelope.

        Raises:
            QueryValidationError: If the request is rejected before execution.
            ConnectionNotFoundError: If the connection id is unknown.
        """
        if not request.connection_id.strip():
            raise MissingIdentifierError("Missing connection id")

        database = validate_database_name(request.database)
        session_id = request.session_id or str(uuid4())
        query_config = self._settings.query
        stop_on_error = (
            request.stop_on_error
            if request.stop_on_error is not None
            else query_config.default_stop_on_error
        )
        enforce_limit = (
            request.enforce_limit
            if request.enforce_limit is not None
            else query_config.enforce_row_limit
        )

        statements = self.prepare_statements(request.sql, enforce_limit=enforce_limit)

        logger.info(
            "Executing SQL",
            session_id=session_id,
            connection_id=request.connection_id,
            database=database,
            statements=len(statements),
        )

        with self._engine.connect(request.connection_id) as connection:
            outcome = self.run(
                connection,
                statements,
                session_id=session_id,
                connection_id=request.connection_id,
                database=database,
                stop_on_error=stop_on_error,
                sql_text=request.sql,
                user_id=request.user_id,
                tab_id=request.tab_id,
                source=request.source,
            )

        response = ExecuteQueryResponse(
            session=outcome.session,
            query_result_sets=outcome.result_sets,
            results=outcome.results,
            meta=ResponseMeta(
                ref_id=request.ref_id or str(uuid4()),
                duration_ms=outcome.session.duration_ms,
                total_sets=len(outcome.result_sets),
                stop_on_error=stop_on_error,
            ),
        )
        self._save(response)
        return response

    def _save(self, response: ExecuteQueryResponse) -> None:
        try:
            self._sink.save(response)
        except Exception:
            logger.exception(
                "Failed to record session", session_id=response.session.session_id
            )

    def run(
        self,
        connection: Connection,
        statements: Sequence[str],
        *,
        session_id: str,
        connection_id: str,
        database: str | None = None,
        stop_on_error: bool = False,
        sql_text: str | None = None,
        user_id: str | None = None,
        tab_id: str | None = None,
        source: str | None = None,
    ) -> ExecutionOutcome:
        """Execute statements in order on one connection.

        Statement failures are recorded in their result sets and never
        raised. The session is registered for cancellation for the whole run.

        Args:
            connection: Connection owned by this session.
            statements: Statements in execution order.
            session_id: Session identifier, also the query id for cancellation.
            connection_id: Identifier of the connection, for the session record.
            database: Database context shared by all statements.
            stop_on_error: Stop at the first failing statement.
            sql_text: Original submission. Defaults to the joined statements.
            user_id: Submitting user.
            tab_id: Editor tab.
            source: Origin tag.

        Returns:
            Session, result sets and rows, index-aligned.

        Raises:
            TooManyStatementsError: If the statement count exceeds the maximum.
            SessionAlreadyActiveError: If the session id is already running.
            TypeError: If the connection does not provide the Connection interface.
        """
        self._check_statement_count(statements)
        if not isinstance(connection, Connection):
            raise TypeError(f"Unusable connection handle: {type(connection).__name__}")

        session_fields: dict[str, Any] = {
            "session_id": session_id,
            "user_id": user_id,
            "tab_id": tab_id,
            "connection_id": connection_id,
            "database": database,
            "sql_text": sql_text if sql_text is not None else ";\n".join(statements),
            "source": source,
            "stop_on_error": stop_on_error,
        }

        if not statements:
            now = epoch_ms()
            session = QuerySession(
                **session_fields,
                status=ResultStatus.SUCCESS,
                started_at=now,
                finished_at=now,
                duration_ms=0,
                result_set_count=0,
            )
            record_session(session.status.value)
            return ExecutionOutcome(session=session)

        cancel_fn = connection.cancel if connection.supports_cancel else None
        handle = CancelHandle(session_id=session_id, cancel_fn=cancel_fn)
        self._registry.register_active(session_id, handle)
        increment_active_sessions()

        result_sets: list[QueryResultSet] = []
        results: list[list[dict[str, Any]]] = []
        first_error: str | None = None

        try:
            with get_tracer().start_as_current_span("query.session") as span:
                span.set_attribute("session.id", session_id)
                span.set_attribute("session.statements", len(statements))

                started_at = epoch_ms()
                t0 = time.perf_counter()

                for index, statement in enumerate(statements):
                    if handle.cancelled:
                        break

                    outcome = self._execute_one(
                        connection, statement, index, session_id, database, handle
                    )
                    result_sets.append(outcome.result_set)
                    results.append(outcome.rows)

                    if outcome.error is not None:
                        if first_error is None:
                            first_error = outcome.error.message
                        if stop_on_error or outcome.error.kind is ErrorKind.CANCELLED:
                            break

                    if handle.cancelled:
                        break

                t1 = time.perf_counter()
                finished_at = epoch_ms()
                span.set_attribute("session.result_sets", len(result_sets))
        finally:
            self._registry.unregister(session_id, handle)
            decrement_active_sessions()

        duration_ms = max(0, round((t1 - t0) * 1000))
        if handle.cancelled and first_error is None:
            first_error = CANCELLED_MESSAGE
        status = ResultStatus.ERROR if first_error is not None else ResultStatus.SUCCESS

        session = QuerySession(
            **session_fields,
            status=status,
            error_message=first_error,
            started_at=started_at,
            finished_at=reconcile_finished_at(started_at, finished_at, duration_ms),
            duration_ms=duration_ms,
            result_set_count=len(result_sets),
            cancelled=handle.cancelled,
        )
        record_session(status.value)
        logger.info(
            "Session finished",
            session_id=session_id,
            status=status.value,
            result_sets=len(result_sets),
            duration_ms=duration_ms,
            cancelled=handle.cancelled,
        )
        return ExecutionOutcome(session=session, result_sets=result_sets, results=results)

    def _execute_one(
        self,
        connection: Connection,
        statement: str,
        index: int,
        session_id: str,
        database: str | None,
        handle: CancelHandle,
    ) -> _StatementOutcome:
        """Execute a single statement and capture its outcome."""
        sql_op = classify_sql_op(statement)
        base: dict[str, Any] = {
            "session_id": session_id,
            "set_index": index,
            "sql_text": statement,
            "sql_op": sql_op,
            "title": make_title(statement),
        }

        with get_tracer().start_as_current_span("query.statement") as span:
            span.set_attribute("statement.index", index)
            span.set_attribute("statement.op", sql_op)

            started_at = epoch_ms()
            t0 = time.perf_counter()
            try:
                result = connection.execute_statement(
                    statement, database=database, query_id=session_id
                )
            except Exception as e:
                duration_ms = max(0, round((time.perf_counter() - t0) * 1000))
                finished_at = epoch_ms()
                cancelled = handle.cancelled or isinstance(e, QueryCancelledError)
                error = StatementError.from_exception(e, cancelled=cancelled)
                span.set_attribute("statement.status", error.kind.value)

                logger.warning(
                    "SQL statement failed",
                    session_id=session_id,
                    set_index=index,
                    error=error.message,
                    error_kind=error.kind.value,
                )
                record_statement_duration(duration_ms / 1000, sql_op, error.kind.value)

                result_set = QueryResultSet(
                    **base,
                    columns=None,
                    row_count=0,
                    affected_rows=None,
                    status=ResultStatus.ERROR,
                    error_message=error.message,
                    error_code=error.code,
                    error_sql_state=error.sql_state,
                    error_meta=error.meta,
                    error_kind=error.kind,
                    started_at=started_at,
                    finished_at=reconcile_finished_at(started_at, finished_at, duration_ms),
                    duration_ms=duration_ms,
                )
                rows = [{"error": error.message, "code": error.code, "sql": statement}]
                return _StatementOutcome(result_set=result_set, rows=rows, error=error)

            duration_ms = max(0, round((time.perf_counter() - t0) * 1000))
            finished_at = epoch_ms()
            span.set_attribute("statement.status", ResultStatus.SUCCESS.value)

        if result.affected_rows is not None and not result.rows:
            rows: list[dict[str, Any]] = [{"ok": True, "affected_rows": result.affected_rows}]
            row_count = 0
        else:
            rows = list(result.rows)
            row_count = result.row_count if result.row_count is not None else len(rows)

        record_statement_duration(duration_ms / 1000, sql_op, ResultStatus.SUCCESS.value)
        record_statement_rows(row_count)

        result_set = QueryResultSet(
            **base,
            columns=result.columns,
            row_count=row_count,
            limited=result.limited,
            limit=result.limit,
            affected_rows=result.affected_rows if not result.rows else None,
            status=ResultStatus.SUCCESS,
            started_at=started_at,
            finished_at=reconcile_finished_at(started_at, finished_at, duration_ms),
            duration_ms=duration_ms,
        )
        return _StatementOutcome(result_set=result_set, rows=rows)

    def cancel(self, session_id: str) -> CancelOutcome:
        """Cancel a running session.

        Args:
            session_id: Session to cancel.

        Returns:
            OK, NOT_FOUND or UNSUPPORTED.
        """
        return self._registry.cancel(session_id)

    def get_session(self, session_id: str) -> ExecuteQueryResponse | None:
        """Get a finished session from the history, if the sink keeps one."""
        if isinstance(self._sink, InMemorySessionHistory):
            return self._sink.get(session_id)
        return None

    def recent_sessions(self, limit: int = 50) -> list[QuerySession]:
        """Get recently finished sessions, newest first."""
        if isinstance(self._sink, InMemorySessionHistory):
            return self._sink.recent(limit)
        return []


_executor: QueryExecutor | None = None


def get_executor() -> QueryExecutor:
    """Get the global query executor (cached).

    Returns:
        The global QueryExecutor instance.
    """
    global _executor
    if _executor is None:
        _executor = QueryExecutor()
    return _executor


def reset_executor() -> None:
    """Reset the global executor (useful for testing)."""
    global _executor
    _executor = None
