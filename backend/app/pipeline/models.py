"""
Domain records carried through a pipeline run.

Inputs (reading, machine, thresholds, resources) are built by the caller
or loaded from the store.  Outputs (anomaly, diagnosis, work order,
safety approval, notifications) are produced by exactly one stage each.

Every record serialises to plain dicts via to_dict() for JSONB storage
and for the status/stream payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.core.constants import (
    Criticality,
    MachineStatus,
    MaintenanceUrgency,
    Priority,
    SafetyDecision,
    ViolationLevel,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# ═══════════════════════════════════════════════════════════
#  Inputs
# ═══════════════════════════════════════════════════════════

SENSOR_METRICS = (
    "vib_rms_horizontal",
    "vib_rms_vertical",
    "vib_peak_accel",
    "bearing_temp",
    "motor_temp",
    "pressure",
    "current_amp",
)


@dataclass(frozen=True)
class SensorReading:
    """One sensor snapshot for one machine."""

    machine_id: str
    vib_rms_horizontal: float | None = None
    vib_rms_vertical: float | None = None
    vib_peak_accel: float | None = None
    bearing_temp: float | None = None
    motor_temp: float | None = None
    pressure: float | None = None
    current_amp: float | None = None
    reading_id: str | None = None
    timestamp: datetime | None = None

    def value_of(self, metric: str) -> float | None:
        """Value for a threshold metric name; None when not measured."""
        if metric not in SENSOR_METRICS:
            return None
        return getattr(self, metric)

    def metrics(self) -> dict[str, float]:
        return {m: getattr(self, m) for m in SENSOR_METRICS if getattr(self, m) is not None}

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "reading_id": self.reading_id,
            "timestamp": _iso(self.timestamp),
            **self.metrics(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SensorReading:
        return cls(
            machine_id=data["machine_id"],
            reading_id=data.get("reading_id"),
            timestamp=_parse_dt(data.get("timestamp")),
            **{m: data.get(m) for m in SENSOR_METRICS},
        )


@dataclass(frozen=True)
class Machine:
    """Asset descriptor."""

    machine_id: str
    name: str
    type: str = "BOILER_PUMP"
    location: str = ""
    criticality: str = Criticality.MEDIUM
    status: str = MachineStatus.NORMAL
    health_score: int = 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "criticality": self.criticality,
            "status": self.status,
            "health_score": self.health_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Machine:
        return cls(
            machine_id=data["machine_id"],
            name=data.get("name", data["machine_id"]),
            type=data.get("type", "BOILER_PUMP"),
            location=data.get("location", ""),
            criticality=data.get("criticality", Criticality.MEDIUM),
            status=data.get("status", MachineStatus.NORMAL),
            health_score=int(data.get("health_score", 100)),
        )


@dataclass(frozen=True)
class Threshold:
    """Warning/critical bounds for one metric.  Any bound may be absent."""

    metric: str
    unit: str = ""
    warning_low: float | None = None
    warning_high: float | None = None
    critical_low: float | None = None
    critical_high: float | None = None
    machine_type: str = "BOILER_PUMP"

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "unit": self.unit,
            "machine_type": self.machine_type,
            "warning_low": self.warning_low,
            "warning_high": self.warning_high,
            "critical_low": self.critical_low,
            "critical_high": self.critical_high,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Threshold:
        return cls(
            metric=data["metric"],
            unit=data.get("unit", ""),
            machine_type=data.get("machine_type", "BOILER_PUMP"),
            warning_low=data.get("warning_low"),
            warning_high=data.get("warning_high"),
            critical_low=data.get("critical_low"),
            critical_high=data.get("critical_high"),
        )


@dataclass(frozen=True)
class Technician:
    name: str
    skill_level: int = 1
    specializations: tuple[str, ...] = ()
    available: bool = True
    current_shift: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "skill_level": self.skill_level,
            "specializations": list(self.specializations),
            "available": self.available,
            "current_shift": self.current_shift,
        }


@dataclass(frozen=True)
class Part:
    part_number: str
    name: str
    quantity: int
    unit_cost: float
    category: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_number": self.part_number,
            "name": self.name,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "category": self.category,
        }


# ═══════════════════════════════════════════════════════════
#  Explainability trail
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ThinkingRound:
    """One thought → observation → conclusion step of a stage's reasoning."""

    round: int
    thought: str
    observation: str
    conclusion: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "thought": self.thought,
            "observation": self.observation,
            "conclusion": self.conclusion,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class DecisionChoice:
    option: str
    description: str
    score: float = 0.0
    selected: bool = False
    pros: tuple[str, ...] = ()
    cons: tuple[str, ...] = ()
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "option": self.option,
            "description": self.description,
            "score": self.score,
            "selected": self.selected,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DecisionPath:
    """The question a stage answered, the options it weighed, and its pick."""

    question: str
    choices: tuple[DecisionChoice, ...]
    final_decision: str
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "choices": [c.to_dict() for c in self.choices],
            "final_decision": self.final_decision,
            "reasoning": self.reasoning,
        }


# ═══════════════════════════════════════════════════════════
#  Stage outputs
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AnomalyMetric:
    """One threshold violation."""

    metric: str
    value: float
    threshold: float
    level: str                      # ViolationLevel value
    deviation_percent: float

    @property
    def deviation(self) -> str:
        return f"{self.deviation_percent:+.1f}%"

    @property
    def is_critical(self) -> bool:
        return self.level == ViolationLevel.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.level,
            "deviation": self.deviation,
            "deviation_percent": self.deviation_percent,
        }


@dataclass(frozen=True)
class AnomalyDetails:
    type: str
    severity: str                   # Severity value
    metrics: tuple[AnomalyMetric, ...]
    reasoning: str
    confidence: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "metrics": [m.to_dict() for m in self.metrics],
            "reasoning": self.reasoning,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Diagnosis:
    root_cause: str
    confidence: int                 # 0-100
    time_to_failure: str
    reasoning: str
    predicted_failure_days: float = 7
    failure_probability: float = 0.5
    maintenance_urgency: str = MaintenanceUrgency.SCHEDULED
    estimated_downtime_hours: float = 2
    cost_impact: float = 100000
    business_impact_score: int = 5
    supporting_evidence: tuple[str, ...] = ()
    recommended_action: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_cause": self.root_cause,
            "confidence": self.confidence,
            "time_to_failure": self.time_to_failure,
            "reasoning": self.reasoning,
            "predicted_failure_days": self.predicted_failure_days,
            "failure_probability": self.failure_probability,
            "maintenance_urgency": self.maintenance_urgency,
            "estimated_downtime_hours": self.estimated_downtime_hours,
            "cost_impact": self.cost_impact,
            "business_impact_score": self.business_impact_score,
            "supporting_evidence": list(self.supporting_evidence),
            "recommended_action": self.recommended_action,
        }


@dataclass(frozen=True)
class PartLine:
    part_number: str
    name: str
    quantity: int
    unit_cost: float = 0.0

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_number": self.part_number,
            "name": self.name,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
        }


@dataclass(frozen=True)
class CostEstimate:
    labor: float
    parts: float
    downtime: float
    avoided_failure_cost: float = 0.0

    @property
    def total(self) -> float:
        return self.labor + self.parts + self.downtime

    @property
    def roi_percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return round((self.avoided_failure_cost - self.total) / self.total * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "labor": self.labor,
            "parts": self.parts,
            "downtime": self.downtime,
            "total": self.total,
            "avoided_failure_cost": self.avoided_failure_cost,
            "roi_percent": self.roi_percent,
        }


@dataclass(frozen=True)
class WorkOrder:
    wo_number: str
    title: str
    priority: str                   # Priority value
    assigned_technician: str
    scheduled_start: datetime
    scheduled_end: datetime
    parts: tuple[PartLine, ...]
    estimated_cost: float
    reasoning: str
    description: str = ""
    cost_breakdown: CostEstimate | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wo_number": self.wo_number,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "assigned_technician": self.assigned_technician,
            "scheduled_start": _iso(self.scheduled_start),
            "scheduled_end": _iso(self.scheduled_end),
            "parts": [p.to_dict() for p in self.parts],
            "estimated_cost": self.estimated_cost,
            "cost_breakdown": self.cost_breakdown.to_dict() if self.cost_breakdown else None,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class SafetyCheck:
    check: str                      # SafetyCheckName value
    passed: bool
    note: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"check": self.check, "passed": self.passed, "note": self.note}


@dataclass(frozen=True)
class SafetyApproval:
    decision: str                   # SafetyDecision value
    checks: tuple[SafetyCheck, ...]
    requires_human_approval: bool
    reasoning: str

    @property
    def approved(self) -> bool:
        return self.decision == SafetyDecision.APPROVED

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved,
            "decision": self.decision,
            "checks": [c.to_dict() for c in self.checks],
            "requires_human_approval": self.requires_human_approval,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class Notification:
    recipient_type: str             # RecipientType value
    recipient_name: str
    channel: str                    # Channel value
    message_type: str               # MessageType value
    title: str
    content: str
    priority: str = Priority.MEDIUM
    recipient_address: str | None = None
    notification_id: str | None = None
    delivered: bool = False
    delivery_message_id: str | None = None
    sent_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "recipient_type": self.recipient_type,
            "recipient_name": self.recipient_name,
            "channel": self.channel,
            "message_type": self.message_type,
            "title": self.title,
            "content": self.content,
            "priority": self.priority,
            "delivered": self.delivered,
            "delivery_message_id": self.delivery_message_id,
            "sent_at": _iso(self.sent_at),
        }



@dataclass(frozen=True)
class Contact:
    """Directory entry that maps a person to a messaging address."""

    name: str
    role: str                       # EmployeeRole value
    line_user_id: str | None = None
    email: str | None = None
