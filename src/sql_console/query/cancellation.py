"""Routing of cancel requests to running sessions.

The registry maps a session id to the handle of the session currently
running under that id. Cancelling is cooperative: the registry flags the
handle and delegates to the connection, the executor observes the flag.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from sql_console.observability import get_logger
from sql_console.query.models import CancelOutcome, SessionAlreadyActiveError

logger = get_logger(__name__)


@dataclass(eq=False)
class CancelHandle:
    """Means of cancelling one running session.

    ``cancel_fn`` is None when the underlying connection cannot cancel.
    """

    session_id: str
    cancel_fn: Callable[[str], None] | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def supports_cancel(self) -> bool:
        """Whether a cancel request can reach the connection."""
        return self.cancel_fn is not None

    @property
    def cancelled(self) -> bool:
        """Whether a cancel request took effect."""
        return self._cancelled.is_set()

    def mark_cancelled(self) -> None:
        """Flag the session as cancelled."""
        self._cancelled.set()


class CancellationRegistry:
    """Thread-safe map of active session ids to cancel handles."""

    def __init__(self) -> None:
        self._handles: dict[str, CancelHandle] = {}
        self._lock = threading.Lock()

    def register_active(self, session_id: str, handle: CancelHandle) -> None:
        """Register the handle of a session that is about to run.

        Raises:
            SessionAlreadyActiveError: If the session id is already running.
        """
        with self._lock:
            if session_id in self._handles:
                raise SessionAlreadyActiveError(f"Session already running: {session_id}")
            self._handles[session_id] = handle

    def unregister(self, session_id: str, handle: CancelHandle | None = None) -> None:
        """Remove a session's mapping.

        When ``handle`` is given, the mapping is only removed if it still
        points at that handle.
        """
        with self._lock:
            current = self._handles.get(session_id)
            if current is None:
                return
            if handle is not None and current is not handle:
                return
            del self._handles[session_id]

    def is_active(self, session_id: str) -> bool:
        """Check whether a session id is currently running."""
        with self._lock:
            return session_id in self._handles

    def active_sessions(self) -> list[str]:
        """Get the ids of all running sessions."""
        with self._lock:
            return list(self._handles)

    def cancel(self, session_id: str) -> CancelOutcome:
        """Cancel the statement currently running under ``session_id``.

        Returns:
            OK if the cancel was delegated, NOT_FOUND if no such session is
            running, UNSUPPORTED if its connection cannot cancel.

        Raises:
            Exception: Whatever the connection's cancel raises.
        """
        with self._lock:
            handle = self._handles.get(session_id)
            if handle is None:
                return CancelOutcome.NOT_FOUND
            if not handle.supports_cancel:
                return CancelOutcome.UNSUPPORTED
            handle.mark_cancelled()
            cancel_fn = handle.cancel_fn

        logger.info("Cancelling session", session_id=session_id)
        cancel_fn(session_id)
        return CancelOutcome.OK

