"""
Reference-data repository: technicians, parts, employee directory,
machines and thresholds.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.resources import (
    EmployeeRecord,
    MachineRecord,
    PartRecord,
    TechnicianRecord,
    ThresholdRecord,
)


async def list_available_technicians(db: AsyncSession) -> list[TechnicianRecord]:
    stmt = (
        select(TechnicianRecord)
        .where(TechnicianRecord.is_available.is_(True))
        .order_by(TechnicianRecord.skill_level.desc(), TechnicianRecord.name)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_parts_in_stock(db: AsyncSession) -> list[PartRecord]:
    stmt = select(PartRecord).where(PartRecord.quantity > 0).order_by(PartRecord.part_number)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_employee(
    db: AsyncSession,
    *,
    name: str | None,
    roles: tuple[str, ...],
) -> EmployeeRecord | None:
    """Active employee by name (when given) whose role is one of `roles`."""
    stmt = select(EmployeeRecord).where(
        EmployeeRecord.is_active.is_(True),
        EmployeeRecord.role.in_(roles),
    )
    if name:
        stmt = stmt.where(EmployeeRecord.name == name)
    result = await db.execute(stmt.order_by(EmployeeRecord.created_at).limit(1))
    return result.scalar_one_or_none()


async def get_machine(db: AsyncSession, machine_id: str) -> MachineRecord | None:
    stmt = select(MachineRecord).where(MachineRecord.machine_id == machine_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_thresholds(db: AsyncSession, machine_type: str) -> list[ThresholdRecord]:
    stmt = select(ThresholdRecord).where(ThresholdRecord.machine_type == machine_type).order_by(ThresholdRecord.metric)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_machine_health(db: AsyncSession, machine_id: str, *, status: str, health_score: int) -> None:
    stmt = (
        update(MachineRecord)
        .where(MachineRecord.machine_id == machine_id)
        .values(status=status, health_score=health_score)
    )
    await db.execute(stmt)
    await db.flush()
