"""
SessionManager — lifecycle of the persisted pipeline session.

    RUNNING ──complete()──▶ COMPLETED
        └─────fail()──────▶ FAILED

Terminal states are final: a second complete()/fail() is logged and
ignored.  Progress written through report_progress() never goes down
within one run.
"""

from __future__ import annotations

from typing import Any

from app.core.constants import TERMINAL_SESSION_STATUSES, ResultKind, SessionStatus
from app.core.logging import get_logger
from app.pipeline.errors import SessionNotFoundError
from app.repositories.base import PipelineStore

logger = get_logger(__name__)


class SessionManager:

    def __init__(self, store: PipelineStore) -> None:
        self.store = store
        self._progress: dict[str, int] = {}
        self._closed: set[str] = set()

    async def create(self, machine_id: str, reading_id: str | None = None) -> str:
        session_id = await self.store.create_session(machine_id, reading_id)
        self._progress[session_id] = 0
        logger.info("Session created", session_id=session_id, machine_id=machine_id)
        return session_id

    async def report_progress(self, session_id: str, stage: str, action: str, progress: int) -> int:
        """
        Persist the current stage/action.  Returns the progress actually
        written, which is never below what this run wrote before.
        """
        if session_id in self._closed:
            logger.warning("Progress after session closed ignored", session_id=session_id, stage=stage)
            return self._progress.get(session_id, progress)

        value = max(self._progress.get(session_id, 0), min(100, int(progress)))
        await self.store.update_session_progress(session_id, stage, action, value)
        self._progress[session_id] = value
        return value

    async def complete(self, session_id: str, summary: dict[str, Any]) -> bool:
        """Close the session as COMPLETED.  False when it was already closed."""
        return await self._close(session_id, SessionStatus.COMPLETED, summary, None)

    async def fail(self, session_id: str, error: str, summary: dict[str, Any] | None = None) -> bool:
        """Close the session as FAILED.  False when it was already closed."""
        payload = dict(summary or {})
        payload["error"] = error
        return await self._close(session_id, SessionStatus.FAILED, payload, error)

    async def is_closed(self, session_id: str) -> bool:
        if session_id in self._closed:
            return True
        row = await self.store.get_session(session_id)
        return row is not None and row["status"] in TERMINAL_SESSION_STATUSES

    async def _close(
        self,
        session_id: str,
        status: SessionStatus,
        summary: dict[str, Any],
        error: str | None,
    ) -> bool:
        if await self.is_closed(session_id):
            logger.warning("Session already closed", session_id=session_id, requested_status=status)
            self._closed.add(session_id)
            return False

        await self.store.finalize_session(session_id, status.value, summary, error)
        self._closed.add(session_id)
        self._progress.pop(session_id, None)
        logger.info("Session closed", session_id=session_id, status=status)
        return True

    async def status(self, session_id: str) -> dict[str, Any]:
        """Session record, its log entries (oldest first) and its stored results."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found", session_id=session_id)

        logs = await self.store.list_log_entries(session_id)
        anomalies = await self.store.list_results(session_id, ResultKind.ANOMALY)
        diagnoses = await self.store.list_results(session_id, ResultKind.DIAGNOSIS)
        work_orders = await self.store.list_results(session_id, ResultKind.WORK_ORDER)
        notifications = await self.store.list_results(session_id, ResultKind.NOTIFICATION)

        return {
            "session": session,
            "logs": logs,
            "anomaly": anomalies[-1] if anomalies else None,
            "diagnosis": diagnoses[-1] if diagnoses else None,
            "work_order": work_orders[-1] if work_orders else None,
            "notifications": notifications,
        }
