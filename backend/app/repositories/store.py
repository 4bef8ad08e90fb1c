"""
SqlPipelineStore — PipelineStore backed by Postgres.

Each operation opens its own session from the factory and commits on
exit, so progress written by one stage is visible to status pollers
straight away.  SQLAlchemy errors surface as PersistenceError.
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.pipeline.errors import PersistenceError
from app.pipeline.models import Contact, Machine, Part, SafetyApproval, Technician, Threshold
from app.pipeline.state import LogEntry
from app.repositories import resources, results, sessions, stage_logs
from app.repositories.base import DomainResult, PipelineStore

logger = get_logger(__name__)


def _persistence(operation: str) -> Callable:
    """Re-raise SQLAlchemy errors from `operation` as PersistenceError."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("Store operation failed", operation=operation, error=str(exc))
                raise PersistenceError(f"{operation} failed: {exc}", details={"operation": operation}) from exc
        return wrapper
    return decorator


class SqlPipelineStore(PipelineStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    # ─── Sessions ──────────────────────────────────────

    @_persistence("create_session")
    async def create_session(self, machine_id, reading_id=None, started_at=None) -> str:
        async with self._factory() as db, db.begin():
            row = await sessions.create_session(db, machine_id=machine_id, reading_id=reading_id, started_at=started_at)
            return str(row.id)

    @_persistence("update_session_progress")
    async def update_session_progress(self, session_id, stage, action, progress) -> None:
        async with self._factory() as db, db.begin():
            await sessions.update_progress(db, session_id, stage=stage, action=action, progress=progress)

    @_persistence("finalize_session")
    async def finalize_session(self, session_id, status, summary, error=None) -> None:
        async with self._factory() as db, db.begin():
            await sessions.finalize(db, session_id, status=status, summary=summary, error=error)

    @_persistence("get_session")
    async def get_session(self, session_id) -> dict[str, Any] | None:
        async with self._factory() as db:
            row = await sessions.get_session(db, session_id)
            return sessions.to_dict(row) if row else None

    @_persistence("list_sessions")
    async def list_sessions(self, machine_id=None, limit=50) -> list[dict[str, Any]]:
        async with self._factory() as db:
            rows = await sessions.list_sessions(db, machine_id=machine_id, limit=limit)
            return [sessions.to_dict(r) for r in rows]

    # ─── Stage log ─────────────────────────────────────

    @_persistence("save_log_entry")
    async def save_log_entry(self, entry: LogEntry) -> None:
        async with self._factory() as db, db.begin():
            await stage_logs.insert_log(db, entry)

    @_persistence("list_log_entries")
    async def list_log_entries(self, session_id) -> list[dict[str, Any]]:
        key = sessions.parse_session_id(session_id)
        if key is None:
            return []
        async with self._factory() as db:
            return [stage_logs.to_dict(r) for r in await stage_logs.list_logs(db, key)]

    # ─── Domain results ────────────────────────────────

    @_persistence("save_result")
    async def save_result(self, kind, session_id, machine_id, result: DomainResult) -> str:
        async with self._factory() as db, db.begin():
            return await results.insert_result(db, kind, sessions.parse_session_id(session_id), machine_id, result)

    @_persistence("list_results")
    async def list_results(self, session_id, kind) -> list[dict[str, Any]]:
        key = sessions.parse_session_id(session_id)
        if key is None:
            return []
        async with self._factory() as db:
            return [results.to_dict(r) for r in await results.list_results(db, key, kind)]

    @_persistence("record_safety_review")
    async def record_safety_review(self, wo_number: str, approval: SafetyApproval) -> None:
        async with self._factory() as db, db.begin():
            await results.record_safety_review(db, wo_number, approval)

    @_persistence("mark_notification_sent")
    async def mark_notification_sent(self, notification_id: str, message_id: str | None, sent_at: datetime) -> None:
        async with self._factory() as db, db.begin():
            await results.mark_notification_sent(db, notification_id, message_id=message_id, sent_at=sent_at)

    # ─── Resources & directory ─────────────────────────

    @_persistence("list_available_technicians")
    async def list_available_technicians(self) -> list[Technician]:
        async with self._factory() as db:
            rows = await resources.list_available_technicians(db)
        return [
            Technician(
                name=r.name,
                skill_level=r.skill_level,
                specializations=tuple(r.specializations or ()),
                available=r.is_available,
                current_shift=r.current_shift,
            )
            for r in rows
        ]

    @_persistence("list_parts_in_stock")
    async def list_parts_in_stock(self) -> list[Part]:
        async with self._factory() as db:
            rows = await resources.list_parts_in_stock(db)
        return [
            Part(part_number=r.part_number, name=r.name, quantity=r.quantity, unit_cost=r.unit_cost, category=r.category or "")
            for r in rows
        ]

    @_persistence("find_contact")
    async def find_contact(self, name, roles) -> Contact | None:
        async with self._factory() as db:
            row = await resources.find_employee(db, name=name, roles=tuple(roles))
        if row is None:
            return None
        return Contact(name=row.name, role=row.role, line_user_id=row.line_user_id, email=row.email)

    # ─── Machines & thresholds ─────────────────────────

    @_persistence("get_machine")
    async def get_machine(self, machine_id) -> Machine | None:
        async with self._factory() as db:
            row = await resources.get_machine(db, machine_id)
        if row is None:
            return None
        return Machine(
            machine_id=row.machine_id,
            name=row.name,
            type=row.type,
            location=row.location or "",
            criticality=row.criticality,
            status=row.status,
            health_score=row.health_score,
        )

    @_persistence("list_thresholds")
    async def list_thresholds(self, machine_type) -> list[Threshold]:
        async with self._factory() as db:
            rows = await resources.list_thresholds(db, machine_type)
        return [
            Threshold(
                metric=r.metric,
                unit=r.unit or "",
                machine_type=r.machine_type,
                warning_low=r.warning_low,
                warning_high=r.warning_high,
                critical_low=r.critical_low,
                critical_high=r.critical_high,
            )
            for r in rows
        ]

    @_persistence("update_machine_health")
    async def update_machine_health(self, machine_id, status, health_score) -> None:
        async with self._factory() as db, db.begin():
            await resources.update_machine_health(db, machine_id, status=status, health_score=health_score)
