"""
PipelineState — the record threaded through every stage of one run.

Stages never mutate it.  Each stage returns a StateUpdate (a plain dict
of the fields it set) and the engine folds that into a new state with
merge_state():

    - log_entries is an accumulator: new entries are appended
    - progress never moves backwards
    - every other field is last-write-wins
    - the run inputs (session, machine, reading, thresholds) are fixed
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any

from app.core.constants import LogStatus
from app.pipeline.errors import StageExecutionError
from app.pipeline.models import (
    AnomalyDetails,
    DecisionPath,
    Diagnosis,
    Machine,
    Notification,
    Part,
    SafetyApproval,
    SensorReading,
    Technician,
    ThinkingRound,
    Threshold,
    WorkOrder,
)

StateUpdate = dict[str, Any]


# ═══════════════════════════════════════════════════════════
#  LogEntry
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LogEntry:
    """Immutable record of one stage invocation and its reasoning trail."""

    session_id: str
    stage: str                      # StageName value
    action: str
    decision: str
    next_stage: str                 # StageName value or END
    reasoning: str = ""
    machine_id: str | None = None
    input_data: dict[str, Any] = field(default_factory=dict)
    output_data: dict[str, Any] = field(default_factory=dict)
    thinking_rounds: tuple[ThinkingRound, ...] = ()
    decision_path: DecisionPath | None = None
    confidence: int | None = None
    status: str = LogStatus.COMPLETED
    duration_ms: int = 0
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSONB storage and API payloads."""
        return {
            "id": self.entry_id,
            "session_id": self.session_id,
            "stage": self.stage,
            "machine_id": self.machine_id,
            "action": self.action,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "reasoning": self.reasoning,
            "thinking_rounds": [r.to_dict() for r in self.thinking_rounds],
            "decision_path": self.decision_path.to_dict() if self.decision_path else None,
            "confidence": self.confidence,
            "decision": self.decision,
            "next_stage": self.next_stage,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at.isoformat(),
        }


# ═══════════════════════════════════════════════════════════
#  PipelineState
# ═══════════════════════════════════════════════════════════

_INPUT_FIELDS = frozenset({"session_id", "machine_id", "reading", "machine", "thresholds"})


@dataclass(frozen=True)
class PipelineState:
    """
    One instance per merge step of one run.

    Stage outputs start unset and are populated by exactly one stage each.
    """

    # ─── Identity & inputs (fixed for the run) ─────────
    session_id: str
    machine_id: str
    reading: SensorReading
    machine: Machine
    thresholds: tuple[Threshold, ...]

    # ─── Progress bookkeeping ──────────────────────────
    current_stage: str | None = None
    current_action: str = ""
    progress: int = 0

    # ─── Stage outputs ─────────────────────────────────
    anomaly_detected: bool | None = None
    anomaly_details: AnomalyDetails | None = None
    diagnosis: Diagnosis | None = None
    work_order: WorkOrder | None = None
    safety_approval: SafetyApproval | None = None
    notifications: tuple[Notification, ...] | None = None

    # ─── Resources consumed by the Planner ─────────────
    technicians: tuple[Technician, ...] | None = None
    parts: tuple[Part, ...] | None = None

    # ─── Accumulator ───────────────────────────────────
    log_entries: tuple[LogEntry, ...] = ()

    # ─── Executor-level failure ────────────────────────
    error: str | None = None

    @classmethod
    def start(
        cls,
        session_id: str,
        reading: SensorReading,
        machine: Machine,
        thresholds: list[Threshold] | tuple[Threshold, ...],
    ) -> PipelineState:
        """Seed state: inputs set, every output unset, progress 0, no log entries."""
        return cls(
            session_id=session_id,
            machine_id=machine.machine_id,
            reading=reading,
            machine=machine,
            thresholds=tuple(thresholds),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the whole state for API responses."""
        return {
            "session_id": self.session_id,
            "machine_id": self.machine_id,
            "reading": self.reading.to_dict(),
            "machine": self.machine.to_dict(),
            "thresholds": [t.to_dict() for t in self.thresholds],
            **serialize_update({
                "current_stage": self.current_stage,
                "current_action": self.current_action,
                "progress": self.progress,
                "anomaly_detected": self.anomaly_detected,
                "anomaly_details": self.anomaly_details,
                "diagnosis": self.diagnosis,
                "work_order": self.work_order,
                "safety_approval": self.safety_approval,
                "notifications": self.notifications,
                "technicians": self.technicians,
                "parts": self.parts,
                "log_entries": self.log_entries,
                "error": self.error,
            }),
        }


_STATE_FIELDS = frozenset(f.name for f in fields(PipelineState))


def merge_state(state: PipelineState, update: StateUpdate) -> PipelineState:
    """
    Fold one stage's partial update into `state` and return the new state.

    Applying the same update twice yields the same state: log entries
    already present (by id) are not appended again.

    Raises:
        StageExecutionError: the update names an unknown field or tries
            to change a run input.
    """
    if not update:
        return state

    unknown = set(update) - _STATE_FIELDS
    if unknown:
        raise StageExecutionError(
            f"Unknown state fields in update: {sorted(unknown)}",
            session_id=state.session_id,
            stage=update.get("current_stage"),
        )

    touched_inputs = [k for k in _INPUT_FIELDS & set(update) if update[k] != getattr(state, k)]
    if touched_inputs:
        raise StageExecutionError(
            f"Run inputs cannot be changed by a stage: {sorted(touched_inputs)}",
            session_id=state.session_id,
            stage=update.get("current_stage"),
        )

    changes: dict[str, Any] = {}
    for key, value in update.items():
        if key in _INPUT_FIELDS:
            continue
        if key == "log_entries":
            seen = {e.entry_id for e in state.log_entries}
            fresh = tuple(e for e in value if e.entry_id not in seen)
            changes[key] = state.log_entries + fresh
        elif key == "progress":
            changes[key] = max(state.progress, int(value))
        elif key in ("notifications", "technicians", "parts") and value is not None:
            changes[key] = tuple(value)
        else:
            changes[key] = value

    return replace(state, **changes)


def serialize_update(update: StateUpdate) -> dict[str, Any]:
    """Turn a (partial) state dict into JSON-ready values."""
    out: dict[str, Any] = {}
    for key, value in update.items():
        if isinstance(value, (list, tuple)):
            out[key] = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
        elif hasattr(value, "to_dict"):
            out[key] = value.to_dict()
        else:
            out[key] = value
    return out
