"""SessionManager lifecycle."""

import pytest

from app.core.constants import SessionStatus, StageName
from app.pipeline.errors import SessionNotFoundError
from app.pipeline.session import SessionManager


@pytest.mark.asyncio
async def test_create_starts_running_at_zero(store):
    sessions = SessionManager(store)
    session_id = await sessions.create("BP-001", "r-1")

    row = store.sessions[session_id]
    assert row["status"] == SessionStatus.RUNNING
    assert row["progress"] == 0
    assert row["reading_id"] == "r-1"


@pytest.mark.asyncio
async def test_progress_is_monotonic(store):
    sessions = SessionManager(store)
    session_id = await sessions.create("BP-001")

    assert await sessions.report_progress(session_id, StageName.DETECTOR, "a", 20) == 20
    assert await sessions.report_progress(session_id, StageName.DIAGNOSER, "b", 10) == 20
    assert store.sessions[session_id]["progress"] == 20
    assert store.sessions[session_id]["current_stage"] == StageName.DIAGNOSER


@pytest.mark.asyncio
async def test_terminal_state_is_final(store):
    sessions = SessionManager(store)
    session_id = await sessions.create("BP-001")

    assert await sessions.complete(session_id, {"anomalyDetected": False}) is True
    assert await sessions.fail(session_id, "late failure") is False
    assert await sessions.complete(session_id, {"anomalyDetected": True}) is False

    row = store.sessions[session_id]
    assert row["status"] == SessionStatus.COMPLETED
    assert row["result_summary"] == {"anomalyDetected": False}
    assert row["error_message"] is None


@pytest.mark.asyncio
async def test_terminal_state_seen_by_another_manager(store):
    session_id = await SessionManager(store).create("BP-001")
    await SessionManager(store).fail(session_id, "boom")

    assert await SessionManager(store).complete(session_id, {}) is False
    assert store.sessions[session_id]["status"] == SessionStatus.FAILED


@pytest.mark.asyncio
async def test_fail_records_error(store):
    sessions = SessionManager(store)
    session_id = await sessions.create("BP-001")

    await sessions.fail(session_id, "database went away", {"anomalyDetected": True})

    row = store.sessions[session_id]
    assert row["status"] == SessionStatus.FAILED
    assert row["error_message"] == "database went away"
    assert row["result_summary"] == {"anomalyDetected": True, "error": "database went away"}


@pytest.mark.asyncio
async def test_progress_after_close_is_ignored(store):
    sessions = SessionManager(store)
    session_id = await sessions.create("BP-001")
    await sessions.complete(session_id, {})

    await sessions.report_progress(session_id, StageName.NOTIFIER, "late", 50)

    assert store.sessions[session_id]["progress"] == 100


@pytest.mark.asyncio
async def test_status_of_unknown_session(store):
    with pytest.raises(SessionNotFoundError):
        await SessionManager(store).status("missing")
