"""
Run outcome helpers: the session's result summary and the machine health
change that follows an anomaly.
"""

from __future__ import annotations

from typing import Any

from app.core.constants import MachineStatus, Severity
from app.pipeline.models import Machine, Notification
from app.pipeline.state import PipelineState

HEALTH_PENALTY = {
    MachineStatus.CRITICAL: 30,
    MachineStatus.WARNING: 15,
}


def summarize(state: PipelineState, notifications: tuple[Notification, ...] | None = None) -> dict[str, Any]:
    """Snapshot written to the session's result_summary."""
    anomaly = state.anomaly_details
    sent = notifications if notifications is not None else (state.notifications or ())
    return {
        "anomalyDetected": bool(state.anomaly_detected),
        "anomalyType": anomaly.type if anomaly else None,
        "severity": anomaly.severity if anomaly else None,
        "rootCause": state.diagnosis.root_cause if state.diagnosis else None,
        "confidence": state.diagnosis.confidence if state.diagnosis else None,
        "workOrder": state.work_order.wo_number if state.work_order else None,
        "safetyDecision": state.safety_approval.decision if state.safety_approval else None,
        "notificationCount": len(sent),
    }


def machine_health_after(machine: Machine, state: PipelineState) -> tuple[str, int] | None:
    """
    New (status, health_score) for the machine after this run, or None
    when no anomaly was confirmed.
    """
    if not state.anomaly_detected or state.anomaly_details is None:
        return None
    status = MachineStatus.CRITICAL if state.anomaly_details.severity == Severity.CRITICAL else MachineStatus.WARNING
    return status, max(0, machine.health_score - HEALTH_PENALTY[status])
