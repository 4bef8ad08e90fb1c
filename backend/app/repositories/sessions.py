"""
Pipeline-session repository.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import SessionStatus
from app.db.models.pipeline_session import PipelineSession


def parse_session_id(session_id: str) -> uuid.UUID | None:
    """UUID for a session id string; None when it is not a UUID."""
    try:
        return uuid.UUID(str(session_id))
    except ValueError:
        return None


async def create_session(
    db: AsyncSession,
    *,
    machine_id: str,
    reading_id: str | None = None,
    started_at: datetime | None = None,
) -> PipelineSession:
    """Insert a RUNNING session at progress 0."""
    row = PipelineSession(
        machine_id=machine_id,
        reading_id=reading_id,
        status=SessionStatus.RUNNING.value,
        progress=0,
        started_at=started_at or datetime.now(timezone.utc),
    )
    db.add(row)
    await db.flush()
    return row


async def get_session(db: AsyncSession, session_id: str) -> PipelineSession | None:
    key = parse_session_id(session_id)
    if key is None:
        return None
    return await db.get(PipelineSession, key)


async def update_progress(
    db: AsyncSession,
    session_id: str,
    *,
    stage: str,
    action: str,
    progress: int,
) -> None:
    stmt = (
        update(PipelineSession)
        .where(PipelineSession.id == uuid.UUID(session_id))
        .values(current_stage=stage, current_action=action, progress=progress)
    )
    await db.execute(stmt)
    await db.flush()


async def finalize(
    db: AsyncSession,
    session_id: str,
    *,
    status: str,
    summary: dict[str, Any],
    error: str | None = None,
) -> None:
    values: dict[str, Any] = {
        "status": status,
        "result_summary": summary,
        "completed_at": datetime.now(timezone.utc),
        "error_message": error,
    }
    if status == SessionStatus.COMPLETED:
        values["progress"] = 100
    stmt = update(PipelineSession).where(PipelineSession.id == uuid.UUID(session_id)).values(**values)
    await db.execute(stmt)
    await db.flush()


async def list_sessions(
    db: AsyncSession,
    *,
    machine_id: str | None = None,
    limit: int = 50,
) -> list[PipelineSession]:
    """Most recent sessions first."""
    stmt = select(PipelineSession).order_by(PipelineSession.started_at.desc())
    if machine_id:
        stmt = stmt.where(PipelineSession.machine_id == machine_id)
    result = await db.execute(stmt.limit(limit))
    return list(result.scalars().all())


def to_dict(row: PipelineSession) -> dict[str, Any]:
    return {
        "id": str(row.id),
        "machine_id": row.machine_id,
        "reading_id": row.reading_id,
        "status": row.status,
        "current_stage": row.current_stage,
        "current_action": row.current_action,
        "progress": row.progress,
        "started_at": row.started_at.isoformat() if row.started_at else None,
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
        "result_summary": row.result_summary,
        "error_message": row.error_message,
    }
