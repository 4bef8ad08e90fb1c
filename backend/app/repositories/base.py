"""
PipelineStore — everything the pipeline reads from or writes to storage.

Two implementations:
    - SqlPipelineStore     (app.repositories.store)   Postgres via SQLAlchemy
    - InMemoryPipelineStore (app.repositories.memory) tests and local demo

Rules:
    - Writes are plain inserts/updates; nothing here enforces the
      session lifecycle (that is SessionManager's job)
    - Any exception raised here is fatal to the run that made the call
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from app.pipeline.models import (
    AnomalyDetails,
    Contact,
    Diagnosis,
    Machine,
    Notification,
    Part,
    SafetyApproval,
    Technician,
    Threshold,
    WorkOrder,
)
from app.pipeline.state import LogEntry

DomainResult = AnomalyDetails | Diagnosis | WorkOrder | Notification


class PipelineStore(ABC):
    """Storage contract used by the session manager, stages and API."""

    # ─── Sessions ──────────────────────────────────────

    @abstractmethod
    async def create_session(
        self,
        machine_id: str,
        reading_id: str | None = None,
        started_at: datetime | None = None,
    ) -> str:
        """Insert a RUNNING session with progress 0 and return its id."""

    @abstractmethod
    async def update_session_progress(
        self,
        session_id: str,
        stage: str,
        action: str,
        progress: int,
    ) -> None:
        ...

    @abstractmethod
    async def finalize_session(
        self,
        session_id: str,
        status: str,
        summary: dict[str, Any],
        error: str | None = None,
    ) -> None:
        """Write the terminal status, completion time and result summary."""

    @abstractmethod
    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def list_sessions(self, machine_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent sessions first."""

    # ─── Stage log ─────────────────────────────────────

    @abstractmethod
    async def save_log_entry(self, entry: LogEntry) -> None:
        ...

    @abstractmethod
    async def list_log_entries(self, session_id: str) -> list[dict[str, Any]]:
        """Log entries of a session, oldest first."""

    # ─── Domain results ────────────────────────────────

    @abstractmethod
    async def save_result(
        self,
        kind: str,
        session_id: str,
        machine_id: str,
        result: DomainResult,
    ) -> str:
        """Persist one anomaly/diagnosis/work order/notification; return its id."""

    @abstractmethod
    async def list_results(self, session_id: str, kind: str) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def record_safety_review(self, wo_number: str, approval: SafetyApproval) -> None:
        """Attach the Validator's verdict to an existing work order."""

    @abstractmethod
    async def mark_notification_sent(
        self,
        notification_id: str,
        message_id: str | None,
        sent_at: datetime,
    ) -> None:
        ...

    # ─── Resources & directory ─────────────────────────

    @abstractmethod
    async def list_available_technicians(self) -> list[Technician]:
        ...

    @abstractmethod
    async def list_parts_in_stock(self) -> list[Part]:
        ...

    @abstractmethod
    async def find_contact(self, name: str | None, roles: tuple[str, ...]) -> Contact | None:
        """
        Look up a directory entry.

        With a name: the employee of that name whose role is in `roles`.
        Without a name: the first active employee whose role is in `roles`.
        """

    # ─── Machines & thresholds ─────────────────────────

    @abstractmethod
    async def get_machine(self, machine_id: str) -> Machine | None:
        ...

    @abstractmethod
    async def list_thresholds(self, machine_type: str) -> list[Threshold]:
        ...

    @abstractmethod
    async def update_machine_health(self, machine_id: str, status: str, health_score: int) -> None:
        ...
