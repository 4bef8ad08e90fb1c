"""Pipeline request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from app.pipeline.models import SensorReading


class SensorValues(BaseModel):
    """Raw sensor values; any metric may be omitted."""

    vib_rms_horizontal: float | None = None
    vib_rms_vertical: float | None = None
    vib_peak_accel: float | None = None
    bearing_temp: float | None = None
    motor_temp: float | None = None
    pressure: float | None = None
    current_amp: float | None = None
    reading_id: str | None = None
    timestamp: datetime | None = None


class PipelineRunRequest(BaseModel):
    """Run the pipeline for one machine, on explicit values or a demo scenario."""

    machine_id: str = Field(..., min_length=1, max_length=64)
    reading: SensorValues | None = None
    scenario: str | None = None

    @model_validator(mode="after")
    def _reading_or_scenario(self) -> PipelineRunRequest:
        if self.reading is None and self.scenario is None:
            raise ValueError("Either reading or scenario is required")
        return self

    def to_reading(self) -> SensorReading | None:
        if self.reading is None:
            return None
        return SensorReading(machine_id=self.machine_id, **self.reading.model_dump())


class PipelineRunResponse(BaseModel):
    session_id: str
    status: str
    summary: dict[str, Any]
    state: dict[str, Any]


class PipelineTriggerResponse(BaseModel):
    message: str
    session_id: str
    celery_task_id: str
    status: str
