"""Diagnoser: root cause, gate routing and fallback."""

import pytest

from app.core.constants import MaintenanceUrgency, ResultKind, StageName
from app.pipeline.errors import ReasoningError
from app.pipeline.stages import Detector, Diagnoser
from app.pipeline.state import merge_state


async def _detected(services, state):
    return merge_state(state, await Detector(services).run(state))


@pytest.mark.asyncio
async def test_skips_without_anomaly(services, store, state):
    assert await Diagnoser(services).run(state) == {}
    assert store.log_entries == []
    assert store.progress_history[state.session_id] == [0]


@pytest.mark.asyncio
async def test_diagnosis_is_built_and_persisted(services, store, state):
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    diagnosis = update["diagnosis"]
    assert diagnosis.root_cause == "Drive-end bearing wear"
    assert diagnosis.confidence == 90
    assert diagnosis.time_to_failure == "5 days"
    assert diagnosis.estimated_downtime_hours == 3
    assert diagnosis.supporting_evidence == ("High horizontal vibration", "Bearing overheating")
    assert update["log_entries"][0].next_stage == StageName.PLANNER
    assert update["progress"] == 40
    (record,) = store.results[ResultKind.DIAGNOSIS]
    assert record["root_cause"] == "Drive-end bearing wear"


@pytest.mark.asyncio
async def test_fractional_confidence_is_rescaled(services, reasoner, state):
    reasoner.respond(StageName.DIAGNOSER, {"root_cause": "Misalignment", "confidence": 0.72})
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    assert update["diagnosis"].confidence == 72
    assert update["log_entries"][0].next_stage == StageName.PLANNER


@pytest.mark.asyncio
async def test_low_confidence_routes_to_notifier(services, reasoner, state):
    reasoner.respond(StageName.DIAGNOSER, {"root_cause": "Possibly cavitation", "confidence": 69})
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    (entry,) = update["log_entries"]
    assert entry.next_stage == StageName.NOTIFIER
    assert entry.decision == "ESCALATE_LOW_CONFIDENCE"


@pytest.mark.asyncio
async def test_fallback_is_unknown_cause(services, reasoner, store, state):
    reasoner.respond(StageName.DIAGNOSER, ReasoningError("quota exceeded"))
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    diagnosis = update["diagnosis"]
    assert diagnosis.root_cause == "Unknown cause"
    assert diagnosis.confidence == 50
    assert diagnosis.predicted_failure_days == 7
    assert diagnosis.time_to_failure == "7 days"
    assert diagnosis.maintenance_urgency == MaintenanceUrgency.SCHEDULED
    assert update["log_entries"][0].next_stage == StageName.NOTIFIER
    assert len(store.results[ResultKind.DIAGNOSIS]) == 1


@pytest.mark.asyncio
async def test_transport_error_falls_back(services, reasoner, state):
    reasoner.respond(StageName.DIAGNOSER, ConnectionResetError("connection reset by peer"))
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    assert update["diagnosis"].root_cause == "Unknown cause"
    assert update["diagnosis"].confidence == 50
    assert "ConnectionResetError" in update["log_entries"][0].reasoning


@pytest.mark.asyncio
async def test_infinite_confidence_falls_back(services, reasoner, state):
    reasoner.respond(StageName.DIAGNOSER, '{"root_cause": "Bearing wear", "confidence": Infinity}')
    state = await _detected(services, state)

    update = await Diagnoser(services).run(state)

    assert update["diagnosis"].root_cause == "Unknown cause"
    assert update["log_entries"][0].next_stage == StageName.NOTIFIER
