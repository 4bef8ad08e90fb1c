"""NotificationRecord — one row per message the Notifier produced."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.db.models.base import Base, generate_uuid, utcnow


class NotificationRecord(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    session_id = Column(UUID(as_uuid=True), ForeignKey("pipeline_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_id = Column(String(50), nullable=False)

    # ── Recipient ────────────────────────────
    recipient_type = Column(String(30), nullable=False)
    recipient_name = Column(String(255), nullable=False)
    recipient_address = Column(String(255), nullable=True)
    channel = Column(String(20), nullable=False)

    # ── Message ──────────────────────────────
    message_type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False)

    # ── Delivery ─────────────────────────────
    delivered = Column(Boolean, nullable=False, default=False)
    line_message_id = Column(String(100), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
