"""Query API routes for executing SQL sessions.

Provides endpoints for:
- Executing a multi-statement SQL submission
- Cancelling a running session
- Looking up finished sessions
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Query

from sql_console.models.query import (
    CancelQueryRequest,
    CancelQueryResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    SessionListResponse,
)
from sql_console.observability import get_logger
from sql_console.query.executor import get_executor
from sql_console.query.models import (
    CancelOutcome,
    ConnectionNotFoundError,
    QueryValidationError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/query", tags=["query"])


@router.post("/execute", response_model=ExecuteQueryResponse)
async def execute_query(request: ExecuteQueryRequest) -> ExecuteQueryResponse:
    """Execute the statements of a SQL submission in order.

    Statement failures are reported inside the response; only requests
    rejected before execution produce an error status.

    Args:
        request: Execution request with SQL, connection and session options.

    Returns:
        ExecuteQueryResponse with the session, result sets and rows.

    Raises:
        HTTPException: 400 on validation failure, 404 for an unknown
            connection, 500 if execution itself breaks.
    """
    executor = get_executor()

    try:
        return await asyncio.to_thread(executor.execute, request)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ConnectionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.exception("SQL execution error", connection_id=request.connection_id)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("/cancel", response_model=CancelQueryResponse)
async def cancel_query(request: CancelQueryRequest) -> CancelQueryResponse:
    """Cancel the statement currently running in a session.

    Args:
        request: Cancellation request with the session id.

    Returns:
        CancelQueryResponse with ok=True once the cancel was delegated.

    Raises:
        HTTPException: 404 if the session is not running, 400 if its
            connection cannot cancel.
    """
    executor = get_executor()
    outcome = executor.cancel(request.session_id)

    if outcome is CancelOutcome.NOT_FOUND:
        raise HTTPException(
            status_code=404,
            detail=f"Session not running: {request.session_id}",
        )
    if outcome is CancelOutcome.UNSUPPORTED:
        raise HTTPException(
            status_code=400,
            detail="Cancellation is not supported by this connection",
        )

    return CancelQueryResponse(ok=True, session_id=request.session_id)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    limit: int = Query(default=50, ge=1, le=500, description="Maximum sessions to return"),
) -> SessionListResponse:
    """List recently finished sessions, newest first."""
    return SessionListResponse(sessions=get_executor().recent_sessions(limit))


@router.get("/sessions/{session_id}", response_model=ExecuteQueryResponse)
async def get_session(session_id: str) -> ExecuteQueryResponse:
    """Get the full envelope of a finished session.

    Raises:
        HTTPException: 404 if the session is unknown or no longer kept.
    """
    response = get_executor().get_session(session_id)
    if response is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return response
