"""AnomalyRecord — anomalies confirmed by the Detector."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.models.base import Base, generate_uuid, utcnow


class AnomalyRecord(Base):
    __tablename__ = "anomalies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    session_id = Column(UUID(as_uuid=True), ForeignKey("pipeline_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(String(50), nullable=False, index=True)

    anomaly_type = Column(String(100), nullable=False)
    severity = Column(String(20), nullable=False, index=True)
    description = Column(Text, nullable=True)
    confidence = Column(Integer, nullable=True)
    metrics = Column(JSONB, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
