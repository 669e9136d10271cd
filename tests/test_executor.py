"""Tests for the query executor."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from sql_console.config import DuckDBConfig, QueryConfig, Settings, reset_settings
from sql_console.models.query import ExecuteQueryRequest
from sql_console.query.cancellation import CancelHandle
from sql_console.query.engine import DuckDBEngine, reset_engine
from sql_console.query.executor import (
    QueryExecutor,
    get_executor,
    reconcile_finished_at,
    reset_executor,
    validate_database_name,
)
from sql_console.query.history import InMemorySessionHistory
from sql_console.query.models import (
    CANCELLED_MESSAGE,
    CancelOutcome,
    ConnectionNotFoundError,
    ErrorKind,
    InvalidDatabaseNameError,
    MissingIdentifierError,
    ResultStatus,
    SessionAlreadyActiveError,
    StatementResult,
    TooManyStatementsError,
)


class DriverError(Exception):
    """Driver-style error carrying codes."""

    def __init__(self, message: str, code: str | None = None, sqlstate: str | None = None):
        super().__init__(message)
        self.code = code
        self.sqlstate = sqlstate
        self.errno = 1064


class FakeConnection:
    """Connection returning scripted outcomes per statement text."""

    supports_cancel = True

    def __init__(self, outcomes: dict[str, StatementResult | Exception] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.executed: list[tuple[str, str | None, str | None]] = []
        self.cancelled: list[str] = []

    def execute_statement(
        self, sql: str, *, database: str | None = None, query_id: str | None = None
    ) -> StatementResult:
        self.executed.append((sql, database, query_id))
        outcome = self.outcomes.get(
            sql,
            StatementResult(
                rows=[{"v": 1}], columns=[{"name": "v", "type": "INTEGER"}], row_count=1
            ),
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def cancel(self, query_id: str) -> None:
        self.cancelled.append(query_id)

    def ping(self) -> bool:
        return True


class BlockingConnection(FakeConnection):
    """Connection whose ``SLOW`` statement blocks until cancelled or released."""

    def __init__(self, supports_cancel: bool = True) -> None:
        super().__init__()
        self.supports_cancel = supports_cancel
        self.started = threading.Event()
        self.release = threading.Event()

    def execute_statement(
        self, sql: str, *, database: str | None = None, query_id: str | None = None
    ) -> StatementResult:
        if sql != "SLOW":
            return super().execute_statement(sql, database=database, query_id=query_id)
        self.executed.append((sql, database, query_id))
        self.started.set()
        if not self.release.wait(timeout=5):
            raise TimeoutError("statement was never released")
        if self.cancelled:
            raise RuntimeError("Query interrupted")
        return StatementResult(rows=[], columns=[], row_count=0)

    def cancel(self, query_id: str) -> None:
        super().cancel(query_id)
        self.release.set()


@pytest.fixture(autouse=True)
def clean_state():
    """Reset global state before and after each test."""
    reset_settings()
    reset_engine()
    reset_executor()
    yield
    reset_settings()
    reset_engine()
    reset_executor()


@pytest.fixture
def mock_settings() -> Settings:
    """Create settings for testing."""
    return Settings(
        duckdb=DuckDBConfig(memory_limit="1GB", threads=2, connections={"default": ":memory:"}),
        query=QueryConfig(max_result_rows=1000, max_statements=10),
    )


@pytest.fixture
def executor(mock_settings: Settings) -> QueryExecutor:
    """Create an executor with a mocked engine."""
    return QueryExecutor(engine=MagicMock(), settings=mock_settings)


@pytest.fixture
def duckdb_executor(mock_settings: Settings):
    """Create an executor backed by a real in-memory DuckDB engine."""
    engine = DuckDBEngine(settings=mock_settings)
    engine.initialize()
    yield QueryExecutor(engine=engine, settings=mock_settings)
    engine.close()


def _run(executor: QueryExecutor, connection, statements, **kwargs):
    kwargs.setdefault("session_id", "session-1")
    kwargs.setdefault("connection_id", "default")
    return executor.run(connection, statements, **kwargs)


class TestValidateDatabaseName:
    """Tests for database name validation."""

    @pytest.mark.parametrize("name", ["analytics", "db_1", "my-db", "main.public", "a" * 64])
    def test_valid(self, name):
        """Test valid names are accepted."""
        assert validate_database_name(name) == name

    def test_trimmed(self):
        """Test surrounding whitespace is removed."""
        assert validate_database_name("  sales ") == "sales"

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_absent(self, name):
        """Test missing names mean the connection default."""
        assert validate_database_name(name) is None

    @pytest.mark.parametrize("name", ["bad name", "db;drop", "a" * 65, "db`x", "ünicode"])
    def test_invalid(self, name):
        """Test invalid names are rejected."""
        with pytest.raises(InvalidDatabaseNameError):
            validate_database_name(name)


class TestReconcileFinishedAt:
    """Tests for the wall-clock correction rule."""

    def test_equal_with_duration_corrected(self):
        """Test an instant end with a positive duration is moved forward."""
        assert reconcile_finished_at(1000, 1000, 5) == 1005

    def test_zero_duration_unchanged(self):
        """Test an instant end with zero duration stays."""
        assert reconcile_finished_at(1000, 1000, 0) == 1000

    def test_end_never_before_start(self):
        """Test a clock step backwards never yields end before start."""
        assert reconcile_finished_at(1000, 990, 0) == 1000
        assert reconcile_finished_at(1000, 990, 7) == 1007

    def test_later_end_unchanged(self):
        """Test a normal end is kept."""
        assert reconcile_finished_at(1000, 1012, 10) == 1012


class TestRun:
    """Tests for QueryExecutor.run."""

    def test_success_session(self, executor: QueryExecutor):
        """Test all statements succeed and results are index-aligned."""
        connection = FakeConnection()
        outcome = _run(executor, connection, ["SELECT 1", "SELECT 2"], database="main")

        assert outcome.session.status is ResultStatus.SUCCESS
        assert outcome.session.error_message is None
        assert outcome.session.result_set_count == 2
        assert [rs.set_index for rs in outcome.result_sets] == [0, 1]
        assert [rs.sql_text for rs in outcome.result_sets] == ["SELECT 1", "SELECT 2"]
        assert outcome.results == [[{"v": 1}], [{"v": 1}]]
        assert connection.executed == [
            ("SELECT 1", "main", "session-1"),
            ("SELECT 2", "main", "session-1"),
        ]

    def test_result_set_fields(self, executor: QueryExecutor):
        """Test a successful result set carries classification and schema."""
        outcome = _run(executor, FakeConnection(), ["select * from users"])
        rs = outcome.result_sets[0]

        assert rs.sql_op == "SELECT"
        assert rs.title == "SELECT: select * from users"
        assert rs.columns == [{"name": "v", "type": "INTEGER"}]
        assert rs.row_count == 1
        assert rs.affected_rows is None
        assert rs.status is ResultStatus.SUCCESS
        assert rs.error_message is None
        assert rs.finished_at >= rs.started_at

    def test_affected_rows_for_dml(self, executor: QueryExecutor):
        """Test DML results report affected rows and a synthetic row."""
        connection = FakeConnection(
            {"UPDATE t SET a = 1": StatementResult(affected_rows=3)}
        )
        outcome = _run(executor, connection, ["UPDATE t SET a = 1"])
        rs = outcome.result_sets[0]

        assert rs.affected_rows == 3
        assert rs.row_count == 0
        assert rs.columns is None
        assert outcome.results[0] == [{"ok": True, "affected_rows": 3}]

    def test_stop_on_error(self, executor: QueryExecutor):
        """Test a failure halts the session when stop_on_error is set."""
        connection = FakeConnection({"B": DriverError("syntax error", code="1064")})
        outcome = _run(executor, connection, ["A", "B", "C"], stop_on_error=True)

        assert outcome.session.result_set_count == 2
        assert [rs.sql_text for rs in outcome.result_sets] == ["A", "B"]
        assert [sql for sql, _, _ in connection.executed] == ["A", "B"]
        assert outcome.session.status is ResultStatus.ERROR
        assert outcome.session.error_message == "syntax error"

    def test_continue_on_error(self, executor: QueryExecutor):
        """Test later statements run when stop_on_error is off."""
        connection = FakeConnection({"B": DriverError("syntax error")})
        outcome = _run(executor, connection, ["A", "B", "C"], stop_on_error=False)

        assert outcome.session.result_set_count == 3
        assert [rs.status for rs in outcome.result_sets] == [
            ResultStatus.SUCCESS,
            ResultStatus.ERROR,
            ResultStatus.SUCCESS,
        ]
        assert outcome.session.status is ResultStatus.ERROR
        assert outcome.session.error_message == "syntax error"

    def test_first_error_message_kept(self, executor: QueryExecutor):
        """Test the session reports the first error, not the last."""
        connection = FakeConnection({"A": DriverError("first"), "B": DriverError("second")})
        outcome = _run(executor, connection, ["A", "B"])

        assert outcome.session.error_message == "first"

    def test_error_result_set(self, executor: QueryExecutor):
        """Test a failed statement captures error fields and a diagnostic row."""
        connection = FakeConnection({"BAD": DriverError("boom", code="42", sqlstate="42000")})
        outcome = _run(executor, connection, ["BAD"])
        rs = outcome.result_sets[0]

        assert rs.status is ResultStatus.ERROR
        assert rs.error_message == "boom"
        assert rs.error_code == "42"
        assert rs.error_sql_state == "42000"
        assert rs.error_meta == {"name": "DriverError", "errno": 1064}
        assert rs.error_kind is ErrorKind.EXECUTION
        assert rs.row_count == 0
        assert rs.affected_rows is None
        assert rs.columns is None
        assert outcome.results[0] == [{"error": "boom", "code": "42", "sql": "BAD"}]

    def test_zero_statements(self, executor: QueryExecutor):
        """Test an empty statement list yields a well-formed empty session."""
        connection = FakeConnection()
        outcome = _run(executor, connection, [])

        assert outcome.session.result_set_count == 0
        assert outcome.session.status is ResultStatus.SUCCESS
        assert outcome.session.duration_ms == 0
        assert outcome.session.started_at == outcome.session.finished_at
        assert outcome.result_sets == []
        assert outcome.results == []
        assert connection.executed == []
        assert not executor.registry.is_active("session-1")

    def test_too_many_statements(self, executor: QueryExecutor):
        """Test oversized batches are rejected before anything runs."""
        connection = FakeConnection()
        with pytest.raises(TooManyStatementsError):
            _run(executor, connection, [f"SELECT {i}" for i in range(11)])
        assert connection.executed == []

    def test_unusable_connection(self, executor: QueryExecutor):
        """Test a handle without the connection interface is a hard failure."""
        with pytest.raises(TypeError, match="Unusable connection"):
            _run(executor, object(), ["SELECT 1"])

    def test_session_already_active(self, executor: QueryExecutor):
        """Test a session id that is already running is rejected."""
        executor.registry.register_active("session-1", CancelHandle(session_id="session-1"))
        connection = FakeConnection()

        with pytest.raises(SessionAlreadyActiveError):
            _run(executor, connection, ["SELECT 1"])
        assert connection.executed == []

    def test_registry_cleared_after_run(self, executor: QueryExecutor):
        """Test the session is unregistered once the run ends, even on errors."""
        connection = FakeConnection({"A": DriverError("x")})
        _run(executor, connection, ["A"], stop_on_error=True)

        assert not executor.registry.is_active("session-1")
        assert executor.cancel("session-1") is CancelOutcome.NOT_FOUND

    def test_session_timing(self, executor: QueryExecutor):
        """Test session duration spans the batch and end follows start."""

        class SlowConnection(FakeConnection):
            def execute_statement(self, sql, *, database=None, query_id=None):
                time.sleep(0.02)
                return super().execute_statement(sql, database=database, query_id=query_id)

        outcome = _run(executor, SlowConnection(), ["A", "B"])
        session = outcome.session

        assert session.duration_ms >= 30
        assert session.finished_at >= session.started_at
        assert all(rs.duration_ms >= 15 for rs in outcome.result_sets)
        assert session.duration_ms >= max(rs.duration_ms for rs in outcome.result_sets)

    def test_session_context_fields(self, executor: QueryExecutor):
        """Test caller context is copied onto the session."""
        outcome = _run(
            executor,
            FakeConnection(),
            ["SELECT 1"],
            sql_text="SELECT 1;",
            user_id="u1",
            tab_id="t1",
            source="console",
            stop_on_error=True,
        )
        session = outcome.session

        assert session.session_id == "session-1"
        assert session.connection_id == "default"
        assert session.sql_text == "SELECT 1;"
        assert session.user_id == "u1"
        assert session.tab_id == "t1"
        assert session.source == "console"
        assert session.stop_on_error is True
        assert session.cancelled is False


class TestCancellation:
    """Tests for cancelling running sessions."""

    def test_cancel_running_session(self, executor: QueryExecutor):
        """Test cancel fails the current statement and skips the rest."""
        connection = BlockingConnection()
        holder = {}

        thread = threading.Thread(
            target=lambda: holder.update(
                outcome=_run(executor, connection, ["A", "SLOW", "C"], session_id="s-cancel")
            )
        )
        thread.start()
        assert connection.started.wait(timeout=5)

        assert executor.cancel("s-cancel") is CancelOutcome.OK
        thread.join(timeout=5)

        outcome = holder["outcome"]
        assert [rs.sql_text for rs in outcome.result_sets] == ["A", "SLOW"]
        assert outcome.result_sets[0].status is ResultStatus.SUCCESS
        cancelled = outcome.result_sets[1]
        assert cancelled.status is ResultStatus.ERROR
        assert cancelled.error_kind is ErrorKind.CANCELLED
        assert cancelled.error_message == CANCELLED_MESSAGE
        assert outcome.session.status is ResultStatus.ERROR
        assert outcome.session.error_message == CANCELLED_MESSAGE
        assert outcome.session.cancelled is True
        assert "C" not in [sql for sql, _, _ in connection.executed]
        assert connection.cancelled == ["s-cancel"]
        assert not executor.registry.is_active("s-cancel")

    def test_cancel_unknown_session(self, executor: QueryExecutor):
        """Test cancelling an unknown session does not affect a running one."""
        connection = BlockingConnection()
        holder = {}

        thread = threading.Thread(
            target=lambda: holder.update(
                outcome=_run(executor, connection, ["SLOW", "C"], session_id="s-run")
            )
        )
        thread.start()
        assert connection.started.wait(timeout=5)

        assert executor.cancel("other") is CancelOutcome.NOT_FOUND
        connection.release.set()
        thread.join(timeout=5)

        outcome = holder["outcome"]
        assert outcome.session.status is ResultStatus.SUCCESS
        assert outcome.session.result_set_count == 2
        assert connection.cancelled == []

    def test_cancel_unsupported_runs_to_completion(self, executor: QueryExecutor):
        """Test an unsupported cancel leaves the session running."""
        connection = BlockingConnection(supports_cancel=False)
        holder = {}

        thread = threading.Thread(
            target=lambda: holder.update(
                outcome=_run(executor, connection, ["SLOW", "C"], session_id="s-nocancel")
            )
        )
        thread.start()
        assert connection.started.wait(timeout=5)

        assert executor.cancel("s-nocancel") is CancelOutcome.UNSUPPORTED
        connection.release.set()
        thread.join(timeout=5)

        outcome = holder["outcome"]
        assert outcome.session.status is ResultStatus.SUCCESS
        assert outcome.session.result_set_count == 2
        assert outcome.session.cancelled is False


class TestExecute:
    """Tests for QueryExecutor.execute with a real DuckDB engine."""

    def test_multi_statement_session(self, duckdb_executor: QueryExecutor):
        """Test DDL, DML and SELECT run in order on one connection."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default",
                sql=(
                    "CREATE TABLE items (id INT, name VARCHAR);\n"
                    "INSERT INTO items VALUES (1, 'a;b'), (2, 'c');\n"
                    "SELECT * FROM items ORDER BY id;"
                ),
            )
        )

        assert response.session.status is ResultStatus.SUCCESS
        assert response.session.result_set_count == 3
        assert [rs.sql_op for rs in response.query_result_sets] == ["DDL", "INSERT", "SELECT"]
        assert response.query_result_sets[1].affected_rows == 2
        assert response.results[2] == [{"id": 1, "name": "a;b"}, {"id": 2, "name": "c"}]
        assert [c["name"] for c in response.query_result_sets[2].columns] == ["id", "name"]
        assert response.meta.total_sets == 3

    def test_commented_dml_classified(self, duckdb_executor: QueryExecutor):
        """Test a leading comment does not hide the DML verb."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default",
                sql=(
                    "CREATE TABLE seeded (id INT);\n"
                    "-- load fixtures\nINSERT INTO seeded VALUES (1), (2);"
                ),
            )
        )

        inserted = response.query_result_sets[1]
        assert inserted.sql_op == "INSERT"
        assert inserted.title.startswith("INSERT: INSERT INTO seeded")
        assert inserted.affected_rows == 2
        assert response.results[1] == [{"ok": True, "affected_rows": 2}]

    def test_failing_statement_recorded(self, duckdb_executor: QueryExecutor):
        """Test a DuckDB error is captured into the result set."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default",
                sql="SELECT 1; SELECT * FROM nonexistent_table_xyz; SELECT 3",
            )
        )

        assert response.session.status is ResultStatus.ERROR
        assert response.session.result_set_count == 3
        failed = response.query_result_sets[1]
        assert failed.status is ResultStatus.ERROR
        assert "nonexistent_table_xyz" in failed.error_message.lower()
        assert failed.error_meta["name"]
        assert response.results[1][0]["sql"] == "SELECT * FROM nonexistent_table_xyz"

    def test_stop_on_error_request(self, duckdb_executor: QueryExecutor):
        """Test stop_on_error from the request halts the session."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default",
                sql="SELECT * FROM missing_table; SELECT 2",
                stop_on_error=True,
            )
        )

        assert response.session.result_set_count == 1
        assert response.meta.stop_on_error is True

    def test_rows_capped_by_connection(self, mock_settings: Settings):
        """Test the connection caps rows and flags the result as limited."""
        mock_settings.query.max_result_rows = 5
        engine = DuckDBEngine(settings=mock_settings)
        executor = QueryExecutor(engine=engine, settings=mock_settings)
        try:
            response = executor.execute(
                ExecuteQueryRequest(connection_id="default", sql="SELECT * FROM range(10)")
            )
        finally:
            engine.close()

        rs = response.query_result_sets[0]
        assert rs.row_count == 5
        assert rs.limited is True
        assert rs.limit == 5
        assert len(response.results[0]) == 5

    def test_enforce_limit_rewrites_select(self, mock_settings: Settings):
        """Test enforce_limit appends the configured cap to SELECTs."""
        mock_settings.query.max_result_rows = 5
        engine = DuckDBEngine(settings=mock_settings)
        executor = QueryExecutor(engine=engine, settings=mock_settings)
        try:
            response = executor.execute(
                ExecuteQueryRequest(
                    connection_id="default",
                    sql="SELECT * FROM range(10)",
                    enforce_limit=True,
                )
            )
        finally:
            engine.close()

        rs = response.query_result_sets[0]
        assert rs.sql_text == "SELECT * FROM range(10) LIMIT 5"
        assert rs.row_count == 5
        assert rs.limited is False

    def test_database_context(self, duckdb_executor: QueryExecutor):
        """Test statements run inside the requested database."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default",
                database="memory",
                sql="SELECT current_database() AS db",
            )
        )

        assert response.results[0] == [{"db": "memory"}]
        assert response.session.database == "memory"

    def test_comment_only_submission(self, duckdb_executor: QueryExecutor):
        """Test comment-only SQL yields an empty successful session."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(connection_id="default", sql="-- nothing\n/* here */;  ;")
        )

        assert response.session.result_set_count == 0
        assert response.session.status is ResultStatus.SUCCESS
        assert response.query_result_sets == []

    def test_generates_session_and_ref_ids(self, duckdb_executor: QueryExecutor):
        """Test missing identifiers are generated."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(connection_id="default", sql="SELECT 1")
        )

        assert response.session.session_id
        assert response.meta.ref_id

    def test_keeps_supplied_ids(self, duckdb_executor: QueryExecutor):
        """Test supplied session and reference ids are echoed."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(
                connection_id="default", sql="SELECT 1", session_id="abc", ref_id="ref-1"
            )
        )

        assert response.session.session_id == "abc"
        assert response.meta.ref_id == "ref-1"

    def test_invalid_database_rejected(self, duckdb_executor: QueryExecutor):
        """Test an invalid database name is rejected before execution."""
        with pytest.raises(InvalidDatabaseNameError):
            duckdb_executor.execute(
                ExecuteQueryRequest(connection_id="default", database="x y", sql="SELECT 1")
            )

    def test_missing_connection_id_rejected(self, duckdb_executor: QueryExecutor):
        """Test a blank connection id is rejected."""
        with pytest.raises(MissingIdentifierError):
            duckdb_executor.execute(ExecuteQueryRequest(connection_id="  ", sql="SELECT 1"))

    def test_unknown_connection(self, duckdb_executor: QueryExecutor):
        """Test an unknown connection id raises ConnectionNotFoundError."""
        with pytest.raises(ConnectionNotFoundError):
            duckdb_executor.execute(ExecuteQueryRequest(connection_id="nope", sql="SELECT 1"))

    def test_too_many_statements_request(self, duckdb_executor: QueryExecutor):
        """Test the statement limit applies to requests."""
        sql = ";".join(f"SELECT {i}" for i in range(11))
        with pytest.raises(TooManyStatementsError):
            duckdb_executor.execute(ExecuteQueryRequest(connection_id="default", sql=sql))

    def test_session_recorded_in_history(self, duckdb_executor: QueryExecutor):
        """Test finished sessions are stored in the history sink."""
        response = duckdb_executor.execute(
            ExecuteQueryRequest(connection_id="default", sql="SELECT 1", session_id="hist-1")
        )

        assert duckdb_executor.get_session("hist-1") == response
        assert [s.session_id for s in duckdb_executor.recent_sessions()] == ["hist-1"]

    def test_sink_failure_does_not_fail_request(self, mock_settings: Settings):
        """Test a failing sink is logged and the response still returned."""
        engine = DuckDBEngine(settings=mock_settings)
        sink = MagicMock()
        sink.save.side_effect = RuntimeError("disk full")
        executor = QueryExecutor(engine=engine, sink=sink, settings=mock_settings)
        try:
            response = executor.execute(
                ExecuteQueryRequest(connection_id="default", sql="SELECT 1")
            )
        finally:
            engine.close()

        assert response.session.status is ResultStatus.SUCCESS
        sink.save.assert_called_once()
        assert executor.get_session(response.session.session_id) is None


class TestTracing:
    """Tests for spans emitted by the executor."""

    def test_session_and_statement_spans(self, executor: QueryExecutor):
        """Test one session span and one span per statement, without SQL text."""
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))

        sensitive = "SELECT password FROM users WHERE email = 'a@example.com'"
        with patch(
            "sql_console.query.executor.get_tracer",
            return_value=provider.get_tracer("test"),
        ):
            _run(executor, FakeConnection(), [sensitive, "SELECT 2"])

        spans = exporter.get_finished_spans()
        names = [s.name for s in spans]
        assert names.count("query.statement") == 2
        assert names.count("query.session") == 1

        for span in spans:
            for value in dict(span.attributes).values():
                if isinstance(value, str):
                    assert "password" not in value.lower()


class TestGlobalExecutor:
    """Tests for global executor singleton."""

    def test_get_executor_returns_same_instance(self):
        """Test get_executor returns cached instance."""
        with patch("sql_console.query.executor.get_engine") as mock:
            mock.return_value = MagicMock()

            executor1 = get_executor()
            executor2 = get_executor()
            assert executor1 is executor2

    def test_reset_executor_clears_cache(self):
        """Test reset_executor clears the cached executor."""
        with patch("sql_console.query.executor.get_engine") as mock:
            mock.return_value = MagicMock()

            executor1 = get_executor()
            reset_executor()
            executor2 = get_executor()
            assert executor1 is not executor2

    def test_default_sink_is_history(self):
        """Test the default sink keeps finished sessions in memory."""
        with patch("sql_console.query.executor.get_engine") as mock:
            mock.return_value = MagicMock()
            assert isinstance(get_executor().sink, InMemorySessionHistory)
