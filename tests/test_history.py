"""Tests for the in-memory session history."""

from __future__ import annotations

import pytest

from sql_console.models.query import ExecuteQueryResponse, QuerySession, ResponseMeta
from sql_console.query.history import InMemorySessionHistory
from sql_console.query.models import ResultStatus


def make_response(session_id: str) -> ExecuteQueryResponse:
    """Build a minimal finished session envelope."""
    return ExecuteQueryResponse(
        session=QuerySession(
            session_id=session_id,
            connection_id="default",
            sql_text="SELECT 1",
            status=ResultStatus.SUCCESS,
            started_at=1000,
            finished_at=1001,
            duration_ms=1,
            result_set_count=0,
            stop_on_error=False,
        ),
        meta=ResponseMeta(ref_id="ref", duration_ms=1, total_sets=0, stop_on_error=False),
    )


@pytest.fixture
def history() -> InMemorySessionHistory:
    """Create a small history."""
    return InMemorySessionHistory(max_sessions=3)


class TestInMemorySessionHistory:
    """Tests for InMemorySessionHistory."""

    def test_save_and_get(self, history: InMemorySessionHistory):
        """Test a saved session can be fetched by id."""
        response = make_response("s1")
        history.save(response)

        assert history.get("s1") is response
        assert history.get("missing") is None

    def test_recent_newest_first(self, history: InMemorySessionHistory):
        """Test recent sessions come back newest first."""
        for session_id in ("s1", "s2", "s3"):
            history.save(make_response(session_id))

        assert [s.session_id for s in history.recent()] == ["s3", "s2", "s1"]
        assert [s.session_id for s in history.recent(limit=2)] == ["s3", "s2"]

    def test_evicts_oldest(self, history: InMemorySessionHistory):
        """Test the oldest session is dropped beyond capacity."""
        for session_id in ("s1", "s2", "s3", "s4"):
            history.save(make_response(session_id))

        assert len(history) == 3
        assert history.get("s1") is None
        assert history.get("s4") is not None

    def test_resave_moves_to_newest(self, history: InMemorySessionHistory):
        """Test saving an existing id replaces it and makes it newest."""
        history.save(make_response("s1"))
        history.save(make_response("s2"))
        replacement = make_response("s1")
        history.save(replacement)

        assert len(history) == 2
        assert history.get("s1") is replacement
        assert history.recent()[0].session_id == "s1"

    def test_zero_capacity_keeps_nothing(self):
        """Test a history of size zero stores nothing."""
        history = InMemorySessionHistory(max_sessions=0)
        history.save(make_response("s1"))

        assert len(history) == 0
        assert history.recent() == []
