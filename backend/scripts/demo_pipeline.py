#!/usr/bin/env python3
"""
Demo script — run the maintenance pipeline locally without Docker,
Postgres, Celery, Gemini or LINE.

Uses the in-memory store, a canned reasoning client and a messenger
that prints what it would send.  Runs every demo scenario against one
boiler pump and prints the stage trail.

Usage:
    cd backend
    python -m scripts.demo_pipeline
    python -m scripts.demo_pipeline --live     # real Gemini, needs GOOGLE_API_KEY
"""

import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


CANNED_RESPONSES = {
    "anomaly detection": {
        "is_anomaly": True,
        "severity": "HIGH",
        "anomaly_type": "BEARING_DEGRADATION",
        "confidence": 0.9,
        "reasoning": "Vibration and bearing temperature rose together.",
    },
    "root-cause diagnosis": {
        "root_cause": "Outer race bearing wear on the drive end",
        "confidence": 88,
        "supporting_evidence": ["High horizontal vibration", "Bearing temperature above warning"],
        "recommended_action": "Replace drive-end bearing",
        "prediction": {"predicted_failure_days": 5, "estimated_downtime_hours": 3},
        "reasoning": "Combined vibration and heat point at the bearing.",
    },
    "maintenance planning": {
        "title": "Replace drive-end bearing",
        "description": "Replace bearing and re-check alignment",
        "priority": "HIGH",
        "assigned_technician": "Somchai",
        "parts": [{"part_number": "BRG-6205", "quantity": 2}],
        "reasoning": "Somchai is the bearing specialist on shift.",
    },
    "safety validation": {
        "action_matches_diagnosis": True,
        "technician_qualified": True,
        "requires_human": False,
        "reasoning": "Plan addresses the diagnosed bearing wear.",
    },
    "notification stage": {
        "messages": [],
        "reasoning": "Use the standard message templates.",
    },
}


def _demo_clients():
    from app.integrations.line_messaging import Messenger
    from app.integrations.reasoning import ReasoningClient

    class CannedReasoner(ReasoningClient):
        async def evaluate(self, system_prompt: str, user_prompt: str) -> str:
            for marker, payload in CANNED_RESPONSES.items():
                if marker in system_prompt:
                    return json.dumps(payload)
            return "{}"

    class PrintingMessenger(Messenger):
        async def deliver(self, address, message):
            print(f"    → LINE {address}: {message.get('altText')}")
            return f"demo-{address}"

    return CannedReasoner(), PrintingMessenger()


def _demo_store():
    from app.core.constants import Criticality, EmployeeRole
    from app.pipeline.models import Contact, Machine, Part, Technician
    from app.pipeline.scenarios import DEFAULT_THRESHOLDS
    from app.repositories.memory import InMemoryPipelineStore

    return InMemoryPipelineStore(
        machines=[Machine("BP-001", "Boiler Pump 1", location="Boiler house", criticality=Criticality.HIGH)],
        thresholds=DEFAULT_THRESHOLDS,
        technicians=[
            Technician("Somchai", skill_level=4, specializations=("bearing", "vibration")),
            Technician("Malee", skill_level=3, specializations=("electrical",)),
        ],
        parts=[
            Part("BRG-6205", "Deep groove ball bearing 6205", quantity=6, unit_cost=450),
            Part("SEAL-M12", "Mechanical seal M12", quantity=2, unit_cost=2800),
        ],
        contacts=[
            Contact("Somchai", EmployeeRole.TECHNICIAN, line_user_id="U-somchai"),
            Contact("Pranee", EmployeeRole.MANAGER, line_user_id="U-pranee"),
        ],
    )


async def run_scenario(engine, store, scenario: str):
    from app.pipeline.scenarios import SCENARIOS, build_reading
    from app.pipeline.service import load_machine, run_for_machine

    print("\n" + "=" * 70)
    print(f"  {SCENARIOS[scenario]['name']}")
    print("=" * 70)

    machine, thresholds = await load_machine(store, "BP-001")
    reading = build_reading(machine.machine_id, scenario)
    session_id = await engine.create_session(machine.machine_id)
    state = await run_for_machine(engine, session_id, reading, machine, thresholds)
    _print_state(state, store.sessions[session_id])


def _print_state(state, session):
    print(f"\n{'─' * 50}")
    print(f"  Session  : {state.session_id[:12]}...")
    print(f"  Status   : {session['status']} ({session['progress']}%)")
    if state.error:
        print(f"  Error    : {state.error}")
    for entry in state.log_entries:
        print(f"  ✓ {entry.stage:<10} {entry.decision:<28} → {entry.next_stage}")
    if state.work_order:
        wo = state.work_order
        print(f"  Work order: {wo.wo_number} for {wo.assigned_technician}, {wo.estimated_cost:,.0f} THB")
    if state.safety_approval:
        print(f"  Safety    : {state.safety_approval.decision}")
    print(f"{'─' * 50}\n")


async def main():
    from app.core.logging import setup_logging
    from app.pipeline.engine import PipelineEngine
    from app.pipeline.scenarios import SCENARIOS

    setup_logging("WARNING")     # quiet logs, show formatted output only

    print("\n╔" + "═" * 68 + "╗")
    print("║        PREDICTIVE MAINTENANCE — PIPELINE ENGINE DEMO              ║")
    print("╚" + "═" * 68 + "╝")

    store = _demo_store()
    reasoner, messenger = _demo_clients()
    if "--live" in sys.argv:
        from app.integrations.reasoning import GeminiReasoningClient
        reasoner = GeminiReasoningClient()

    engine = PipelineEngine(store, reasoner, messenger)
    for scenario in SCENARIOS:
        await run_scenario(engine, store, scenario)


if __name__ == "__main__":
    asyncio.run(main())
