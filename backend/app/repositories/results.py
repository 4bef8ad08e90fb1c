"""
Domain-result repository: anomalies, diagnoses, work orders, notifications.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import ResultKind, WorkOrderStatus
from app.db.models.anomaly import AnomalyRecord
from app.db.models.diagnosis import DiagnosisRecord
from app.db.models.notification import NotificationRecord
from app.db.models.work_order import WorkOrderRecord
from app.pipeline.models import AnomalyDetails, Diagnosis, Notification, SafetyApproval, WorkOrder

_MODELS = {
    ResultKind.ANOMALY: AnomalyRecord,
    ResultKind.DIAGNOSIS: DiagnosisRecord,
    ResultKind.WORK_ORDER: WorkOrderRecord,
    ResultKind.NOTIFICATION: NotificationRecord,
}


def build_row(kind: str, session_id: uuid.UUID, machine_id: str, result: Any):
    """ORM row for a domain result."""
    common = {"session_id": session_id, "machine_id": machine_id}

    if kind == ResultKind.ANOMALY:
        a: AnomalyDetails = result
        return AnomalyRecord(
            **common,
            anomaly_type=a.type,
            severity=a.severity,
            description=a.reasoning,
            confidence=a.confidence,
            metrics=[m.to_dict() for m in a.metrics],
        )

    if kind == ResultKind.DIAGNOSIS:
        d: Diagnosis = result
        return DiagnosisRecord(
            **common,
            root_cause=d.root_cause,
            confidence=d.confidence,
            time_to_failure=d.time_to_failure,
            recommended_action=d.recommended_action,
            reasoning=d.reasoning,
            maintenance_urgency=d.maintenance_urgency,
            failure_probability=d.failure_probability,
            cost_impact=d.cost_impact,
            details=d.to_dict(),
        )

    if kind == ResultKind.WORK_ORDER:
        w: WorkOrder = result
        return WorkOrderRecord(
            **common,
            wo_number=w.wo_number,
            title=w.title,
            description=w.description,
            priority=w.priority,
            assigned_technician=w.assigned_technician,
            scheduled_start=w.scheduled_start,
            scheduled_end=w.scheduled_end,
            parts=[p.to_dict() for p in w.parts],
            estimated_cost=w.estimated_cost,
            cost_breakdown=w.cost_breakdown.to_dict() if w.cost_breakdown else None,
            reasoning=w.reasoning,
            status=WorkOrderStatus.PENDING.value,
        )

    if kind == ResultKind.NOTIFICATION:
        n: Notification = result
        return NotificationRecord(
            **common,
            recipient_type=n.recipient_type,
            recipient_name=n.recipient_name,
            recipient_address=n.recipient_address,
            channel=n.channel,
            message_type=n.message_type,
            title=n.title,
            content=n.content,
            priority=n.priority,
            delivered=n.delivered,
        )

    raise ValueError(f"Unknown result kind: {kind}")


async def insert_result(db: AsyncSession, kind: str, session_id: uuid.UUID, machine_id: str, result: Any) -> str:
    row = build_row(kind, session_id, machine_id, result)
    db.add(row)
    await db.flush()
    return str(row.id)


async def list_results(db: AsyncSession, session_id: uuid.UUID, kind: str) -> list[Any]:
    model = _MODELS[ResultKind(kind)]
    stmt = select(model).where(model.session_id == session_id).order_by(model.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def record_safety_review(db: AsyncSession, wo_number: str, approval: SafetyApproval) -> None:
    stmt = (
        update(WorkOrderRecord)
        .where(WorkOrderRecord.wo_number == wo_number)
        .values(
            safety_decision=approval.decision,
            safety_approved=approval.approved,
            safety_checks=[c.to_dict() for c in approval.checks],
            status=(WorkOrderStatus.APPROVED if approval.approved else WorkOrderStatus.PENDING).value,
        )
    )
    await db.execute(stmt)
    await db.flush()


async def mark_notification_sent(
    db: AsyncSession,
    notification_id: str,
    *,
    message_id: str | None,
    sent_at: datetime,
) -> None:
    stmt = (
        update(NotificationRecord)
        .where(NotificationRecord.id == uuid.UUID(notification_id))
        .values(delivered=True, line_message_id=message_id, sent_at=sent_at)
    )
    await db.execute(stmt)
    await db.flush()


def to_dict(row: Any) -> dict[str, Any]:
    """Column values of any result row, JSON-ready."""
    out: dict[str, Any] = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[column.key] = value
    return out
