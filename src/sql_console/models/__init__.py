"""Models package for SQL Console."""

from sql_console.models.query import (
    CancelQueryRequest,
    CancelQueryResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    QueryResultSet,
    QuerySession,
    ResponseMeta,
    SessionListResponse,
)

__all__ = [
    "CancelQueryRequest",
    "CancelQueryResponse",
    "ExecuteQueryRequest",
    "ExecuteQueryResponse",
    "QueryResultSet",
    "QuerySession",
    "ResponseMeta",
    "SessionListResponse",
]
