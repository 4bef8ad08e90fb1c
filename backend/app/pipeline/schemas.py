"""
Response schemas for the reasoning calls made by each stage.

The reasoning service is asked for JSON.  parse_reasoning() is the one
place where that JSON is checked: it strips a markdown fence if the
model added one, decodes, and validates against the stage's schema.
Business logic downstream only ever sees a validated model.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.constants import MaintenanceUrgency, Priority, RecipientType, Severity
from app.pipeline.errors import ReasoningParseError

T = TypeVar("T", bound=BaseModel)


def normalize_confidence(value: float | int | str | None) -> int:
    """
    Bring a confidence score onto the 0-100 scale.

    Values strictly between 0 and 1 are read as fractions (0.85 -> 85);
    anything else is read as a percentage.  Result is clamped to 0-100.

    Raises:
        ValueError: not a number, or not finite (NaN, Infinity).
    """
    if value is None:
        return 0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"confidence must be a finite number, got {value!r}")
    if 0 < number < 1:
        number *= 100
    return int(min(100, max(0, round(number))))


# ═══════════════════════════════════════════════════════════
#  Shared pieces
# ═══════════════════════════════════════════════════════════

class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ReasoningRound(_Lenient):
    thought: str = ""
    observation: str = ""
    conclusion: str = ""


class OptionConsidered(_Lenient):
    option: str
    description: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    score: float = 0.0


class DecisionAnalysis(_Lenient):
    options_considered: list[OptionConsidered] = Field(default_factory=list)
    selection_reason: str = ""


class ReasoningResponse(_Lenient):
    """Fields every stage's reasoning response may carry."""

    reasoning: str = ""
    thinking_rounds: list[ReasoningRound] = Field(default_factory=list)
    decision_analysis: DecisionAnalysis | None = None


# ═══════════════════════════════════════════════════════════
#  Per-stage responses
# ═══════════════════════════════════════════════════════════

class DetectorResponse(ReasoningResponse):
    is_anomaly: bool = Field(validation_alias=AliasChoices("is_anomaly", "isAnomaly"))
    severity: Severity
    anomaly_type: str = Field(validation_alias=AliasChoices("anomaly_type", "anomalyType"))
    confidence: int | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _upper_severity(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> int | None:
        return None if v is None else normalize_confidence(v)


class FailurePrediction(_Lenient):
    predicted_failure_days: float = 7
    failure_probability: float = 0.5
    maintenance_urgency: MaintenanceUrgency = MaintenanceUrgency.SCHEDULED
    estimated_downtime_hours: float = 2


class BusinessImpact(_Lenient):
    cost_impact: float = 100000
    business_impact_score: int = 5


class DiagnoserResponse(ReasoningResponse):
    root_cause: str
    confidence: int = Field(validation_alias=AliasChoices("confidence", "confidence_level"))
    supporting_evidence: list[str] = Field(default_factory=list)
    recommended_action: str = ""
    prediction: FailurePrediction = Field(default_factory=FailurePrediction)
    business_impact: BusinessImpact = Field(default_factory=BusinessImpact)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> int:
        return normalize_confidence(v)


class PlannedPart(_Lenient):
    part_number: str
    name: str = ""
    quantity: int = 1


class PlannerResponse(ReasoningResponse):
    title: str
    description: str = ""
    priority: Priority = Priority.HIGH
    assigned_technician: str = ""
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    parts: list[PlannedPart] = Field(default_factory=list)
    estimated_cost: float | None = None


class ValidatorResponse(ReasoningResponse):
    action_matches_diagnosis: bool
    technician_qualified: bool
    requires_human: bool = False
    concerns: list[str] = Field(default_factory=list)


class DraftMessage(_Lenient):
    recipient_type: RecipientType
    title: str
    content: str
    priority: Priority = Priority.MEDIUM


class NotifierResponse(ReasoningResponse):
    messages: list[DraftMessage] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════
#  Parsing
# ═══════════════════════════════════════════════════════════

def strip_code_fence(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[-1].strip().startswith("```"):
            lines = lines[1:-1]
        else:
            lines = lines[1:]
        text = "\n".join(lines).strip()
    return text


def parse_reasoning(raw: str, schema: type[T], *, stage: str | None = None) -> T:
    """
    Decode a reasoning response and validate it against `schema`.

    Raises:
        ReasoningParseError: not JSON, not an object, or fails validation.
    """
    text = strip_code_fence(raw or "")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReasoningParseError(
            f"Reasoning response is not valid JSON: {exc}",
            stage=stage,
            raw_response=raw,
        ) from exc

    if not isinstance(payload, dict):
        raise ReasoningParseError(
            f"Reasoning response must be a JSON object, got {type(payload).__name__}",
            stage=stage,
            raw_response=raw,
        )

    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise ReasoningParseError(
            f"Reasoning response does not match {schema.__name__}",
            stage=stage,
            raw_response=raw,
            details={"errors": exc.errors(include_url=False)},
        ) from exc
