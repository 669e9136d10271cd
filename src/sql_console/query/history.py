"""Session history sinks.

Finished sessions are handed to a sink after the response is assembled.
Durable storage lives outside this service; the bundled sink keeps a
bounded number of recent sessions in memory.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from sql_console.models.query import ExecuteQueryResponse, QuerySession


class SessionSink(Protocol):
    """Receives every finished session envelope."""

    def save(self, response: ExecuteQueryResponse) -> None:
        """Persist one finished session."""
        ...


class InMemorySessionHistory:
    """Bounded, thread-safe store of recent session envelopes."""

    def __init__(self, max_sessions: int = 200) -> None:
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, ExecuteQueryResponse] = OrderedDict()
        self._lock = threading.Lock()

    def save(self, response: ExecuteQueryResponse) -> None:
        """Store a session, evicting the oldest beyond capacity."""
        if self._max_sessions <= 0:
            return
        session_id = response.session.session_id
        with self._lock:
            self._sessions.pop(session_id, None)
            self._sessions[session_id] = response
            while len(self._sessions) > self._max_sessions:
                self._sessions.popitem(last=False)

    def get(self, session_id: str) -> ExecuteQueryResponse | None:
        """Get a stored session envelope by id."""
        with self._lock:
            return self._sessions.get(session_id)

    def recent(self, limit: int = 50) -> list[QuerySession]:
        """Get the most recent sessions, newest first."""
        with self._lock:
            responses = list(self._sessions.values())
        return [r.session for r in reversed(responses)][:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
