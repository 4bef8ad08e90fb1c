"""
Shared fixtures: in-memory store, scripted reasoning client, recording
messenger and a boiler-pump machine with its thresholds.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import pytest_asyncio

from app.core.constants import Criticality, EmployeeRole, StageName
from app.integrations.line_messaging import Messenger
from app.integrations.reasoning import ReasoningClient
from app.pipeline.engine import PipelineEngine
from app.pipeline.errors import DeliveryError, ReasoningError
from app.pipeline.models import Contact, Machine, Part, SensorReading, Technician, Threshold
from app.pipeline.prompts import (
    DETECTOR_SYSTEM_PROMPT,
    DIAGNOSER_SYSTEM_PROMPT,
    NOTIFIER_SYSTEM_PROMPT,
    PLANNER_SYSTEM_PROMPT,
    VALIDATOR_SYSTEM_PROMPT,
)
from app.pipeline.session import SessionManager
from app.pipeline.stage import StageServices
from app.pipeline.state import PipelineState
from app.repositories.memory import InMemoryPipelineStore

SYSTEM_PROMPTS = {
    DETECTOR_SYSTEM_PROMPT: StageName.DETECTOR,
    DIAGNOSER_SYSTEM_PROMPT: StageName.DIAGNOSER,
    PLANNER_SYSTEM_PROMPT: StageName.PLANNER,
    VALIDATOR_SYSTEM_PROMPT: StageName.VALIDATOR,
    NOTIFIER_SYSTEM_PROMPT: StageName.NOTIFIER,
}

# Marker: the scripted reasoner sleeps longer than any test timeout
SLOW = object()


def happy_responses() -> dict[str, Any]:
    return {
        StageName.DETECTOR: {
            "is_anomaly": True,
            "severity": "HIGH",
            "anomaly_type": "BEARING_DEGRADATION",
            "confidence": 92,
            "reasoning": "Vibration and bearing temperature rose together.",
            "thinking_rounds": [
                {"thought": "Two metrics crossed critical bounds", "observation": "bearing_temp 88, vib 4.5", "conclusion": "real anomaly"},
            ],
        },
        StageName.DIAGNOSER: {
            "root_cause": "Drive-end bearing wear",
            "confidence": 90,
            "supporting_evidence": ["High horizontal vibration", "Bearing overheating"],
            "recommended_action": "Replace drive-end bearing",
            "prediction": {"predicted_failure_days": 5, "estimated_downtime_hours": 3},
            "reasoning": "Heat and vibration both point at the bearing.",
        },
        StageName.PLANNER: {
            "title": "Replace drive-end bearing",
            "description": "Replace bearing and check alignment",
            "priority": "HIGH",
            "assigned_technician": "Somchai",
            "parts": [{"part_number": "BRG-6205", "quantity": 2}],
            "reasoning": "Somchai is the bearing specialist.",
            "decision_analysis": {
                "options_considered": [
                    {"option": "Somchai", "description": "Bearing specialist", "score": 9},
                    {"option": "Malee", "description": "Electrical", "score": 4},
                ],
                "selection_reason": "Best skill match",
            },
        },
        StageName.VALIDATOR: {
            "action_matches_diagnosis": True,
            "technician_qualified": True,
            "requires_human": False,
            "reasoning": "Plan addresses the diagnosed wear.",
        },
        StageName.NOTIFIER: {
            "messages": [
                {"recipient_type": "TECHNICIAN", "title": "New work order", "content": "Replace the bearing", "priority": "HIGH"},
                {"recipient_type": "MAINTENANCE_HEAD", "title": "Work order issued", "content": "Bearing job planned", "priority": "MEDIUM"},
            ],
            "reasoning": "Technician does the work, head is informed.",
        },
    }


class ScriptedReasoner(ReasoningClient):
    """
    Answers each stage's system prompt from `responses`.

    A dict is returned as JSON, a str as-is, an exception is raised and
    SLOW sleeps for a second.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = happy_responses() if responses is None else responses
        self.calls: list[str] = []

    def respond(self, stage: str, response: Any) -> None:
        self.responses[stage] = response

    async def evaluate(self, system_prompt: str, user_prompt: str) -> str:
        stage = SYSTEM_PROMPTS[system_prompt]
        self.calls.append(stage)
        response = self.responses.get(stage)
        if response is SLOW:
            await asyncio.sleep(1)
            return "{}"
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise ReasoningError(f"no scripted response for {stage}")
        if isinstance(response, str):
            return response
        return json.dumps(response)


class RecordingMessenger(Messenger):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def deliver(self, address: str, message: dict[str, Any]) -> str | None:
        if self.fail:
            raise DeliveryError("LINE push rejected with HTTP 500", status_code=500)
        self.sent.append((address, message))
        return f"msg-{len(self.sent)}"


# ─── Domain fixtures ──────────────────────────────────────

@pytest.fixture
def machine() -> Machine:
    return Machine("BP-001", "Boiler Pump 1", location="Boiler house", criticality=Criticality.HIGH)


@pytest.fixture
def thresholds() -> list[Threshold]:
    return [
        Threshold("bearing_temp", "°C", warning_high=75, critical_high=85),
        Threshold("vib_rms_horizontal", "mm/s", warning_high=2.0, critical_high=3.0),
        Threshold("pressure", "bar", warning_low=6, warning_high=10, critical_low=5, critical_high=11),
    ]


@pytest.fixture
def critical_reading() -> SensorReading:
    return SensorReading("BP-001", bearing_temp=88, vib_rms_horizontal=4.5, pressure=8.0)


@pytest.fixture
def normal_reading() -> SensorReading:
    return SensorReading("BP-001", bearing_temp=60, vib_rms_horizontal=1.0, pressure=8.0)


@pytest.fixture
def store(machine, thresholds) -> InMemoryPipelineStore:
    return InMemoryPipelineStore(
        machines=[machine],
        thresholds=thresholds,
        technicians=[
            Technician("Somchai", skill_level=4, specializations=("bearing", "vibration")),
            Technician("Malee", skill_level=3, specializations=("electrical",)),
        ],
        parts=[
            Part("BRG-6205", "Ball bearing 6205", quantity=6, unit_cost=450),
            Part("SEAL-M12", "Mechanical seal", quantity=1, unit_cost=2800),
        ],
        contacts=[
            Contact("Somchai", EmployeeRole.TECHNICIAN, line_user_id="U-somchai"),
            Contact("Pranee", EmployeeRole.MANAGER, line_user_id="U-pranee"),
        ],
    )


@pytest.fixture
def reasoner() -> ScriptedReasoner:
    return ScriptedReasoner()


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def engine(store, reasoner, messenger) -> PipelineEngine:
    return PipelineEngine(store, reasoner, messenger, stage_timeout=0.2)


@pytest.fixture
def services(store, reasoner, messenger) -> StageServices:
    return StageServices(
        store=store,
        sessions=SessionManager(store),
        reasoner=reasoner,
        messenger=messenger,
        reasoning_timeout=0.2,
    )


@pytest_asyncio.fixture
async def state(services, machine, critical_reading, thresholds) -> PipelineState:
    """Fresh state on a RUNNING session, before any stage ran."""
    session_id = await services.sessions.create(machine.machine_id)
    return PipelineState.start(session_id, critical_reading, machine, thresholds)
