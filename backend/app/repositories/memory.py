"""
InMemoryPipelineStore — PipelineStore kept in process memory.

Used by the test-suite and by scripts/demo_pipeline.py.  Reference data
(technicians, parts, employees, machines, thresholds) is seeded through
the constructor; everything else is written by the pipeline.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from app.core.constants import ResultKind, SessionStatus, WorkOrderStatus
from app.pipeline.models import Contact, Machine, Part, SafetyApproval, Technician, Threshold
from app.pipeline.state import LogEntry
from app.repositories.base import DomainResult, PipelineStore


class InMemoryPipelineStore(PipelineStore):

    def __init__(
        self,
        *,
        technicians: Iterable[Technician] = (),
        parts: Iterable[Part] = (),
        contacts: Iterable[Contact] = (),
        machines: Iterable[Machine] = (),
        thresholds: Iterable[Threshold] = (),
    ) -> None:
        self.technicians = list(technicians)
        self.parts = list(parts)
        self.contacts = list(contacts)
        self.machines: dict[str, Machine] = {m.machine_id: m for m in machines}
        self.thresholds = list(thresholds)

        self.sessions: dict[str, dict[str, Any]] = {}
        self.log_entries: list[LogEntry] = []
        self.results: dict[str, list[dict[str, Any]]] = {k.value: [] for k in ResultKind}
        # Every progress write, in order, per session
        self.progress_history: dict[str, list[int]] = {}

    # ─── Sessions ──────────────────────────────────────

    async def create_session(self, machine_id, reading_id=None, started_at=None) -> str:
        session_id = str(uuid.uuid4())
        self.sessions[session_id] = {
            "id": session_id,
            "machine_id": machine_id,
            "reading_id": reading_id,
            "status": SessionStatus.RUNNING.value,
            "current_stage": None,
            "current_action": None,
            "progress": 0,
            "started_at": (started_at or datetime.now(timezone.utc)).isoformat(),
            "completed_at": None,
            "result_summary": None,
            "error_message": None,
        }
        self.progress_history[session_id] = [0]
        return session_id

    async def update_session_progress(self, session_id, stage, action, progress) -> None:
        row = self.sessions[session_id]
        row.update(current_stage=stage, current_action=action, progress=progress)
        self.progress_history[session_id].append(progress)

    async def finalize_session(self, session_id, status, summary, error=None) -> None:
        row = self.sessions[session_id]
        row.update(
            status=status,
            result_summary=summary,
            error_message=error,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        if status == SessionStatus.COMPLETED:
            row["progress"] = 100
            self.progress_history[session_id].append(100)

    async def get_session(self, session_id) -> dict[str, Any] | None:
        row = self.sessions.get(session_id)
        return dict(row) if row else None

    async def list_sessions(self, machine_id=None, limit=50) -> list[dict[str, Any]]:
        rows = [dict(r) for r in self.sessions.values() if machine_id is None or r["machine_id"] == machine_id]
        rows.sort(key=lambda r: r["started_at"], reverse=True)
        return rows[:limit]

    # ─── Stage log ─────────────────────────────────────

    async def save_log_entry(self, entry: LogEntry) -> None:
        self.log_entries.append(entry)

    async def list_log_entries(self, session_id) -> list[dict[str, Any]]:
        entries = [e for e in self.log_entries if e.session_id == session_id]
        entries.sort(key=lambda e: e.created_at)
        return [e.to_dict() for e in entries]

    # ─── Domain results ────────────────────────────────

    async def save_result(self, kind, session_id, machine_id, result: DomainResult) -> str:
        record_id = str(uuid.uuid4())
        record = {"id": record_id, "session_id": session_id, "machine_id": machine_id, **result.to_dict()}
        if kind == ResultKind.WORK_ORDER:
            record["status"] = WorkOrderStatus.PENDING.value
        self.results[ResultKind(kind).value].append(record)
        return record_id

    async def list_results(self, session_id, kind) -> list[dict[str, Any]]:
        return [dict(r) for r in self.results[ResultKind(kind).value] if r["session_id"] == session_id]

    async def record_safety_review(self, wo_number: str, approval: SafetyApproval) -> None:
        for record in self.results[ResultKind.WORK_ORDER.value]:
            if record["wo_number"] == wo_number:
                record.update(
                    safety_decision=approval.decision,
                    safety_approved=approval.approved,
                    safety_checks=[c.to_dict() for c in approval.checks],
                    status=(WorkOrderStatus.APPROVED if approval.approved else WorkOrderStatus.PENDING).value,
                )

    async def mark_notification_sent(self, notification_id, message_id, sent_at) -> None:
        for record in self.results[ResultKind.NOTIFICATION.value]:
            if record["id"] == notification_id:
                record.update(delivered=True, delivery_message_id=message_id, sent_at=sent_at.isoformat())

    # ─── Resources & directory ─────────────────────────

    async def list_available_technicians(self) -> list[Technician]:
        return [t for t in self.technicians if t.available]

    async def list_parts_in_stock(self) -> list[Part]:
        return [p for p in self.parts if p.quantity > 0]

    async def find_contact(self, name, roles) -> Contact | None:
        for contact in self.contacts:
            if contact.role in roles and (not name or contact.name == name):
                return contact
        return None

    # ─── Machines & thresholds ─────────────────────────

    async def get_machine(self, machine_id) -> Machine | None:
        return self.machines.get(machine_id)

    async def list_thresholds(self, machine_type) -> list[Threshold]:
        return [t for t in self.thresholds if t.machine_type == machine_type]

    async def update_machine_health(self, machine_id, status, health_score) -> None:
        machine = self.machines.get(machine_id)
        if machine is None:
            return
        self.machines[machine_id] = Machine(
            machine_id=machine.machine_id,
            name=machine.name,
            type=machine.type,
            location=machine.location,
            criticality=machine.criticality,
            status=status,
            health_score=health_score,
        )
