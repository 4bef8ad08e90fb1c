"""
Routing decisions between stages.

Both gates are pure functions of the state, so the engine and the
stages (which record the next stage in their log entry) agree on the
route.
"""

from __future__ import annotations

from app.core.config import settings
from app.core.constants import END, StageName
from app.pipeline.models import Diagnosis
from app.pipeline.schemas import normalize_confidence
from app.pipeline.state import PipelineState


def after_detection(anomaly_detected: bool | None) -> str:
    """Continue to diagnosis only when an anomaly was confirmed."""
    return StageName.DIAGNOSER if anomaly_detected else END


def after_diagnosis(diagnosis: Diagnosis | None, gate: int | None = None) -> str:
    """
    Continue to planning when diagnosis confidence clears the gate;
    otherwise go straight to the Notifier for human follow-up.
    """
    threshold = settings.DIAGNOSIS_CONFIDENCE_GATE if gate is None else gate
    if diagnosis is None:
        return StageName.NOTIFIER
    if normalize_confidence(diagnosis.confidence) >= threshold:
        return StageName.PLANNER
    return StageName.NOTIFIER


def route_after(stage: str, state: PipelineState) -> str:
    """Next stage (or END) once `stage` has been merged into `state`."""
    if stage == StageName.DETECTOR:
        return after_detection(state.anomaly_detected)
    if stage == StageName.DIAGNOSER:
        return after_diagnosis(state.diagnosis)
    return FIXED_TRANSITIONS[stage]


FIXED_TRANSITIONS: dict[str, str] = {
    StageName.PLANNER: StageName.VALIDATOR,
    StageName.VALIDATOR: StageName.NOTIFIER,
    StageName.NOTIFIER: END,
}
