"""
Reference tables read by the pipeline: technicians, parts inventory,
employee directory, machines and thresholds.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.models.base import Base, generate_uuid, utcnow


class TechnicianRecord(Base):
    __tablename__ = "technicians"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    skill_level = Column(Integer, nullable=False, default=1)
    specializations = Column(JSONB, default=list)
    is_available = Column(Boolean, nullable=False, default=True, index=True)
    current_shift = Column(String(20), nullable=True)


class PartRecord(Base):
    __tablename__ = "parts_inventory"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    part_number = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Float, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=False, default=0)


class EmployeeRecord(Base):
    """Directory used to resolve notification recipients to LINE ids."""

    __tablename__ = "employees"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False, index=True)
    role = Column(String(30), nullable=False, index=True)
    line_user_id = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MachineRecord(Base):
    __tablename__ = "machines"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    machine_id = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    location = Column(String(255), nullable=True)
    criticality = Column(String(20), nullable=False, default="MEDIUM")
    status = Column(String(20), nullable=False, default="NORMAL")
    health_score = Column(Integer, nullable=False, default=100)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ThresholdRecord(Base):
    __tablename__ = "thresholds"

    id = Column(UUID(as_uuid=True), primary_key=True, default=generate_uuid)
    machine_type = Column(String(50), nullable=False, index=True)
    metric = Column(String(50), nullable=False)
    unit = Column(String(20), nullable=True)
    warning_low = Column(Float, nullable=True)
    warning_high = Column(Float, nullable=True)
    critical_low = Column(Float, nullable=True)
    critical_high = Column(Float, nullable=True)
