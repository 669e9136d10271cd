"""Data models for statement execution.

Provides:
- Result and error kinds for executed statements
- The result a connection returns for one statement
- A closed error structure captured from driver exceptions
- Exceptions raised before or around execution
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResultStatus(str, Enum):
    """Outcome of a session or a single statement."""

    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Kind of a statement-level failure."""

    EXECUTION = "execution"
    CANCELLED = "cancelled"


class CancelOutcome(str, Enum):
    """Result of a cancellation request."""

    OK = "ok"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"


CANCELLED_MESSAGE = "Query was cancelled"


@dataclass
class StatementResult:
    """Rows and metadata returned by a connection for one statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[dict[str, str | None]] | None = None
    row_count: int | None = None
    limited: bool = False
    limit: int | None = None
    affected_rows: int | None = None


@dataclass(frozen=True)
class StatementError:
    """Error details captured from a failed statement.

    Only the message, driver codes and the exception class name are kept;
    tracebacks never reach the session model.
    """

    message: str
    code: str | None = None
    sql_state: str | None = None
    name: str | None = None
    errno: int | None = None
    kind: ErrorKind = ErrorKind.EXECUTION

    @classmethod
    def from_exception(cls, exc: BaseException, *, cancelled: bool = False) -> StatementError:
        """Build an error record from a raised exception.

        Args:
            exc: Exception raised by the connection.
            cancelled: Whether the session was cancelled while the statement ran.

        Returns:
            The captured error.
        """
        if cancelled:
            return cls(
                message=CANCELLED_MESSAGE,
                name=type(exc).__name__,
                kind=ErrorKind.CANCELLED,
            )

        code = getattr(exc, "code", None)
        sql_state = getattr(exc, "sql_state", None) or getattr(exc, "sqlstate", None)
        errno = getattr(exc, "errno", None)
        return cls(
            message=str(exc) or type(exc).__name__,
            code=str(code) if code is not None else None,
            sql_state=str(sql_state) if sql_state is not None else None,
            name=type(exc).__name__,
            errno=errno if isinstance(errno, int) else None,
        )

    @property
    def meta(self) -> dict[str, Any]:
        """Name and errno of the underlying error."""
        return {"name": self.name, "errno": self.errno}


class QueryValidationError(Exception):
    """Raised when a request is rejected before any statement runs."""

    pass


class MissingIdentifierError(QueryValidationError):
    """Raised when a required identifier is missing from a request."""

    pass


class InvalidDatabaseNameError(QueryValidationError):
    """Raised when the database context is not a valid name."""

    pass


class TooManyStatementsError(QueryValidationError):
    """Raised when a submission holds more statements than allowed."""

    def __init__(self, count: int, maximum: int) -> None:
        super().__init__(f"Too many statements: {count} (maximum {maximum})")
        self.count = count
        self.maximum = maximum


class SessionAlreadyActiveError(QueryValidationError):
    """Raised when a session id is already running."""

    pass


class ConnectionNotFoundError(Exception):
    """Raised when no connection is configured for an id."""

    pass


class QueryCancelledError(Exception):
    """Raised by a connection when its running statement is cancelled."""

    pass
