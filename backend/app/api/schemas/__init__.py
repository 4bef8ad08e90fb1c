"""API schema package."""

from app.api.schemas.pipeline import (
    PipelineRunRequest,
    PipelineRunResponse,
    PipelineTriggerResponse,
    SensorValues,
)

__all__ = ["PipelineRunRequest", "PipelineRunResponse", "PipelineTriggerResponse", "SensorValues"]
