"""DiagnosisRecord — root-cause diagnoses produced by the Diagnoser."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.models.base import Base, generate_uuid, utcnow


class DiagnosisRecord(Base):
    __tablename__ = "diagnoses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    session_id = Column(UUID(as_uuid=True), ForeignKey("pipeline_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(String(50), nullable=False, index=True)

    # ── Diagnosis ────────────────────────────
    root_cause = Column(Text, nullable=False)
    confidence = Column(Integer, nullable=False)
    time_to_failure = Column(String(50), nullable=True)
    recommended_action = Column(Text, nullable=True)
    reasoning = Column(Text, nullable=True)

    # ── Prediction / business impact ─────────
    maintenance_urgency = Column(String(20), nullable=True)
    failure_probability = Column(Float, nullable=True)
    cost_impact = Column(Float, nullable=True)
    details = Column(JSONB, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
