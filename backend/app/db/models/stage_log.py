"""
StageLog — one row per stage invocation within a pipeline session.

Holds the full reasoning trail (thinking rounds, decision path) so the
dashboard can replay why each stage decided what it did.  Rows are
written once and never updated.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.models.base import Base, generate_uuid, utcnow


class StageLog(Base):
    """One row per stage execution."""

    __tablename__ = "stage_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    session_id = Column(UUID(as_uuid=True), ForeignKey("pipeline_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(String(50), nullable=True)

    # ── Stage identity ────────────────────────
    stage = Column(String(20), nullable=False, index=True)
    action = Column(Text, nullable=False)

    # ── Snapshots ─────────────────────────────
    input_data = Column(JSONB, default=dict)
    output_data = Column(JSONB, default=dict)

    # ── Reasoning trail ───────────────────────
    reasoning = Column(Text, nullable=True)
    thinking_rounds = Column(JSONB, default=list)
    decision_path = Column(JSONB, nullable=True)
    confidence = Column(Integer, nullable=True)
    decision = Column(Text, nullable=False)
    next_stage = Column(String(20), nullable=False)

    # ── Status / timing ───────────────────────
    status = Column(String(20), nullable=False)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # ── Relationship ──────────────────────────
    session = relationship("PipelineSession", back_populates="stage_logs")

    def __repr__(self) -> str:
        return f"<StageLog {self.stage} session={self.session_id} next={self.next_stage}>"
