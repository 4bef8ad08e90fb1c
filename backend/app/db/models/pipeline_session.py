"""
PipelineSession — one row per pipeline run.

Created RUNNING before the first stage runs, updated with the current
stage/progress while it runs, and closed exactly once as COMPLETED or
FAILED with a result summary.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.models.base import Base, generate_uuid, utcnow


class PipelineSession(Base):
    """One row per pipeline run."""

    __tablename__ = "pipeline_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)

    # ── Subject ──────────────────────────────
    machine_id = Column(String(50), nullable=False, index=True)
    reading_id = Column(String(100), nullable=True)

    # ── Status / Progress ────────────────────
    status = Column(String(20), nullable=False, default="RUNNING", index=True)
    current_stage = Column(String(20), nullable=True)
    current_action = Column(Text, nullable=True)
    progress = Column(Integer, nullable=False, default=0)

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # ── Outcome ──────────────────────────────
    result_summary = Column(JSONB, nullable=True)
    error_message = Column(Text, nullable=True)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationships ─────────────────────────
    stage_logs = relationship("StageLog", back_populates="session", cascade="all, delete-orphan", order_by="StageLog.created_at")

    def __repr__(self) -> str:
        return f"<PipelineSession {self.id} machine={self.machine_id} status={self.status} progress={self.progress}>"
