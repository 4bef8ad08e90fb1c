"""
WorkOrderRecord — maintenance work orders.

Inserted by the Planner with status PENDING; the Validator then stamps
its safety review (approved flag, checks) onto the same row.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.models.base import Base, generate_uuid, utcnow


class WorkOrderRecord(Base):
    __tablename__ = "work_orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    session_id = Column(UUID(as_uuid=True), ForeignKey("pipeline_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(String(50), nullable=False, index=True)

    # ── Work order ───────────────────────────
    wo_number = Column(String(50), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(20), nullable=False)
    assigned_technician = Column(String(255), nullable=True)
    scheduled_start = Column(DateTime(timezone=True), nullable=True)
    scheduled_end = Column(DateTime(timezone=True), nullable=True)
    parts = Column(JSONB, default=list)
    estimated_cost = Column(Float, nullable=False, default=0)
    cost_breakdown = Column(JSONB, nullable=True)
    reasoning = Column(Text, nullable=True)

    # ── Safety review ────────────────────────
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    safety_decision = Column(String(20), nullable=True)
    safety_approved = Column(Boolean, nullable=True)
    safety_checks = Column(JSONB, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
