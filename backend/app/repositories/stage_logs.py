"""
Stage-log repository.  Log rows are insert-only.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.stage_log import StageLog
from app.pipeline.state import LogEntry


async def insert_log(db: AsyncSession, entry: LogEntry) -> StageLog:
    data = entry.to_dict()
    row = StageLog(
        id=uuid.UUID(entry.entry_id),
        session_id=uuid.UUID(entry.session_id),
        machine_id=entry.machine_id,
        stage=entry.stage,
        action=entry.action,
        input_data=data["input_data"],
        output_data=data["output_data"],
        reasoning=entry.reasoning,
        thinking_rounds=data["thinking_rounds"],
        decision_path=data["decision_path"],
        confidence=entry.confidence,
        decision=entry.decision,
        next_stage=entry.next_stage,
        status=entry.status,
        duration_ms=entry.duration_ms,
        created_at=entry.created_at,
    )
    db.add(row)
    await db.flush()
    return row


async def list_logs(db: AsyncSession, session_id: uuid.UUID) -> list[StageLog]:
    """Logs of a session ordered by creation time."""
    stmt = select(StageLog).where(StageLog.session_id == session_id).order_by(StageLog.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def to_dict(row: StageLog) -> dict[str, Any]:
    return {
        "id": str(row.id),
        "session_id": str(row.session_id),
        "stage": row.stage,
        "machine_id": row.machine_id,
        "action": row.action,
        "input_data": row.input_data,
        "output_data": row.output_data,
        "reasoning": row.reasoning,
        "thinking_rounds": row.thinking_rounds,
        "decision_path": row.decision_path,
        "confidence": row.confidence,
        "decision": row.decision,
        "next_stage": row.next_stage,
        "status": row.status,
        "duration_ms": row.duration_ms,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
