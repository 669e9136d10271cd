"""API models for query execution.

Provides Pydantic models for:
- Query execution requests
- Session and per-statement result envelopes
- Cancellation requests and responses
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from sql_console.query.models import ErrorKind, ResultStatus


class ExecuteQueryRequest(BaseModel):
    """Request to execute one or more SQL statements."""

    connection_id: str = Field(..., description="Configured connection to run against.")
    session_id: str | None = Field(
        default=None,
        description="Session identifier used for cancellation. Generated if omitted.",
    )
    database: str | None = Field(
        default=None,
        description="Database context for every statement.",
    )
    sql: str = Field(..., description="SQL text, possibly holding several statements.")
    stop_on_error: bool | None = Field(
        default=None,
        description="Stop at the first failing statement. Defaults to configuration.",
    )
    enforce_limit: bool | None = Field(
        default=None,
        description="Cap SELECT statements to the configured row limit.",
    )
    user_id: str | None = Field(default=None, description="Submitting user.")
    tab_id: str | None = Field(default=None, description="Editor tab the SQL came from.")
    source: str | None = Field(default=None, description="Origin tag, e.g. console.")
    ref_id: str | None = Field(default=None, description="Client reference echoed in meta.")

    @field_validator("database", mode="before")
    @classmethod
    def strip_database(cls, value: Any) -> Any:
        """Trim the database name and treat blank as absent."""
        if isinstance(value, str):
            return value.strip() or None
        return value


class QueryResultSet(BaseModel):
    """Outcome of one executed statement."""

    session_id: str = Field(..., description="Owning session.")
    set_index: int = Field(..., description="Position of the statement in the session.")
    sql_text: str = Field(..., description="Statement text as executed.")
    sql_op: str = Field(..., description="Classified verb: SELECT, INSERT, DDL, TXN, ...")
    title: str = Field(..., description="Short label for the statement.")
    columns: list[dict[str, str | None]] | None = Field(
        default=None, description="Column schema for row-returning statements."
    )
    row_count: int = Field(default=0, description="Rows returned.")
    limited: bool = Field(default=False, description="Whether the rows were capped.")
    limit: int | None = Field(default=None, description="Row cap applied, if any.")
    affected_rows: int | None = Field(default=None, description="Rows changed by DML.")
    status: ResultStatus = Field(..., description="success or error.")
    error_message: str | None = None
    error_code: str | None = None
    error_sql_state: str | None = None
    error_meta: dict[str, Any] | None = Field(
        default=None, description="Error name and errno. Never a stack trace."
    )
    error_kind: ErrorKind | None = Field(
        default=None, description="execution or cancelled for failed statements."
    )
    warnings: list[str] | None = None
    started_at: int = Field(..., description="Wall-clock start, epoch milliseconds.")
    finished_at: int = Field(..., description="Wall-clock end, epoch milliseconds.")
    duration_ms: int = Field(..., description="Monotonic duration in milliseconds.")


class QuerySession(BaseModel):
    """Summary of one submitted SQL text."""

    session_id: str
    user_id: str | None = None
    tab_id: str | None = None
    connection_id: str
    database: str | None = None
    sql_text: str
    source: str | None = None
    status: ResultStatus
    error_message: str | None = None
    started_at: int = Field(..., description="Wall-clock start, epoch milliseconds.")
    finished_at: int = Field(..., description="Wall-clock end, epoch milliseconds.")
    duration_ms: int = Field(..., description="Monotonic duration in milliseconds.")
    result_set_count: int
    stop_on_error: bool
    cancelled: bool = Field(default=False, description="True if a cancel took effect.")


class ResponseMeta(BaseModel):
    """Bookkeeping returned alongside a session."""

    ref_id: str
    duration_ms: int
    total_sets: int
    stop_on_error: bool


class ExecuteQueryResponse(BaseModel):
    """Session envelope with per-statement results and rows."""

    session: QuerySession
    query_result_sets: list[QueryResultSet] = Field(
        default_factory=list, description="Ordered by set_index."
    )
    results: list[list[dict[str, Any]]] = Field(
        default_factory=list, description="Rows per statement, aligned with query_result_sets."
    )
    meta: ResponseMeta


class CancelQueryRequest(BaseModel):
    """Request to cancel a running session."""

    session_id: str = Field(..., min_length=1, description="Session to cancel.")


class CancelQueryResponse(BaseModel):
    """Response for a successful cancellation."""

    ok: bool = Field(..., description="True when the cancel was delegated.")
    session_id: str = Field(..., description="Session identifier.")


class SessionListResponse(BaseModel):
    """Recently finished sessions, newest first."""

    sessions: list[QuerySession]
