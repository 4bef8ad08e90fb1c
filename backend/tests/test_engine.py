"""End-to-end runs through PipelineEngine."""

import asyncio

import pytest

from app.core.constants import END, ResultKind, SafetyDecision, SessionStatus, StageName
from app.pipeline.engine import INTERRUPTED, PipelineEngine
from app.pipeline.errors import PersistenceError
from conftest import SLOW


@pytest.mark.asyncio
async def test_critical_reading_runs_all_stages(engine, store, machine, critical_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, critical_reading, machine, thresholds)

    assert state.error is None
    assert [e.stage for e in state.log_entries] == [
        StageName.DETECTOR,
        StageName.DIAGNOSER,
        StageName.PLANNER,
        StageName.VALIDATOR,
        StageName.NOTIFIER,
    ]
    assert state.anomaly_detected is True
    assert {m.metric for m in state.anomaly_details.metrics} == {"bearing_temp", "vib_rms_horizontal"}
    assert state.diagnosis.confidence >= 70
    assert state.safety_approval.decision == SafetyDecision.APPROVED
    assert len(state.notifications) == 2
    assert state.progress == 100

    session = store.sessions[session_id]
    assert session["status"] == SessionStatus.COMPLETED
    assert session["result_summary"]["anomalyDetected"] is True
    assert store.progress_history[session_id] == sorted(store.progress_history[session_id])


@pytest.mark.asyncio
async def test_normal_reading_ends_after_detector(engine, store, reasoner, machine, normal_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, normal_reading, machine, thresholds)

    assert state.anomaly_detected is False
    assert len(state.log_entries) == 1
    assert state.log_entries[0].next_stage == END
    assert state.diagnosis is None
    assert state.work_order is None
    assert state.safety_approval is None
    assert state.notifications is None
    assert reasoner.calls == []

    session = store.sessions[session_id]
    assert session["status"] == SessionStatus.COMPLETED
    assert session["result_summary"]["anomalyDetected"] is False


@pytest.mark.parametrize("confidence, planned", [(70, True), (69, False)])
@pytest.mark.asyncio
async def test_confidence_gate(engine, reasoner, machine, critical_reading, thresholds, confidence, planned):
    reasoner.respond(StageName.DIAGNOSER, {"root_cause": "Bearing wear", "confidence": confidence})
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, critical_reading, machine, thresholds)

    stages = [e.stage for e in state.log_entries]
    assert (StageName.PLANNER in stages) is planned
    assert (state.work_order is not None) is planned
    assert (state.safety_approval is not None) is planned
    assert stages[-1] == StageName.NOTIFIER
    assert state.diagnosis is not None


@pytest.mark.asyncio
async def test_persistence_failure_fails_session(engine, store, machine, critical_reading, thresholds, monkeypatch):
    async def broken(*args, **kwargs):
        raise PersistenceError("insert into diagnoses failed")

    original_save = store.save_result

    async def save_result(kind, *args, **kwargs):
        if kind == ResultKind.DIAGNOSIS:
            await broken()
        return await original_save(kind, *args, **kwargs)

    monkeypatch.setattr(store, "save_result", save_result)
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, critical_reading, machine, thresholds)

    assert state.error == "insert into diagnoses failed"
    session = store.sessions[session_id]
    assert session["status"] == SessionStatus.FAILED
    assert session["error_message"] == "insert into diagnoses failed"
    assert session["result_summary"]["anomalyDetected"] is True


@pytest.mark.asyncio
async def test_stream_yields_one_update_per_stage(engine, machine, critical_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)

    updates = [u async for u in engine.stream(session_id, critical_reading, machine, thresholds)]

    assert [u.stage for u in updates] == [
        StageName.DETECTOR,
        StageName.DIAGNOSER,
        StageName.PLANNER,
        StageName.VALIDATOR,
        StageName.NOTIFIER,
    ]
    progress = [u.progress for u in updates]
    assert progress == sorted(progress)
    assert "anomaly_details" in updates[0].to_dict()["partial_state"]
    assert updates[-1].to_dict()["partial_state"]["notifications"][0]["recipient_name"] == "Somchai"


@pytest.mark.asyncio
async def test_stream_reports_failure_last(engine, store, machine, critical_reading, thresholds, monkeypatch):
    async def broken(*args, **kwargs):
        raise PersistenceError("log table unavailable")

    monkeypatch.setattr(store, "save_log_entry", broken)
    session_id = await engine.create_session(machine.machine_id)

    updates = [u async for u in engine.stream(session_id, critical_reading, machine, thresholds)]

    (final,) = updates
    assert final.stage is None
    assert final.error == "log table unavailable"
    assert store.sessions[session_id]["status"] == SessionStatus.FAILED


@pytest.mark.asyncio
async def test_all_reasoning_down_still_completes(engine, store, reasoner, machine, critical_reading, thresholds):
    reasoner.responses = {}
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, critical_reading, machine, thresholds)

    # Fallback diagnosis is 50% confident, below the gate
    assert [e.stage for e in state.log_entries] == [StageName.DETECTOR, StageName.DIAGNOSER, StageName.NOTIFIER]
    assert state.diagnosis.root_cause == "Unknown cause"
    assert store.sessions[session_id]["status"] == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_get_status_returns_logs_and_results(engine, machine, critical_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)
    await engine.run(session_id, critical_reading, machine, thresholds)

    status = await engine.get_status(session_id)

    assert status["session"]["status"] == SessionStatus.COMPLETED
    assert [log["stage"] for log in status["logs"]][0] == StageName.DETECTOR
    assert len(status["logs"]) == 5
    assert status["anomaly"]["type"] == "BEARING_DEGRADATION"
    assert status["diagnosis"]["root_cause"] == "Drive-end bearing wear"
    assert status["work_order"]["safety_decision"] == SafetyDecision.APPROVED
    assert len(status["notifications"]) == 2


@pytest.mark.asyncio
async def test_closing_stream_early_fails_session(engine, store, machine, critical_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)
    updates = engine.stream(session_id, critical_reading, machine, thresholds)

    first = await updates.__anext__()
    await updates.aclose()

    assert first.stage == StageName.DETECTOR
    session = store.sessions[session_id]
    assert session["status"] == SessionStatus.FAILED
    assert session["error_message"] == INTERRUPTED
    assert session["result_summary"]["anomalyDetected"] is True


@pytest.mark.asyncio
async def test_cancelled_run_fails_session(store, reasoner, messenger, machine, critical_reading, thresholds):
    reasoner.respond(StageName.DIAGNOSER, SLOW)
    engine = PipelineEngine(store, reasoner, messenger, stage_timeout=5)
    session_id = await engine.create_session(machine.machine_id)

    task = asyncio.create_task(engine.run(session_id, critical_reading, machine, thresholds))
    while StageName.DIAGNOSER not in reasoner.calls:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert store.sessions[session_id]["status"] == SessionStatus.FAILED
    assert store.sessions[session_id]["error_message"] == INTERRUPTED


@pytest.mark.asyncio
async def test_closing_stream_after_notifier_keeps_completed(engine, store, machine, critical_reading, thresholds):
    session_id = await engine.create_session(machine.machine_id)
    updates = engine.stream(session_id, critical_reading, machine, thresholds)

    async for update in updates:
        if update.stage == StageName.NOTIFIER:
            break
    await updates.aclose()

    assert store.sessions[session_id]["status"] == SessionStatus.COMPLETED
    assert store.sessions[session_id]["error_message"] is None


@pytest.mark.asyncio
async def test_malformed_stage_update_fails_session(engine, store, machine, critical_reading, thresholds, monkeypatch):
    async def bad_run(state):
        return {"not_a_field": 1}

    monkeypatch.setattr(engine.stages[StageName.DETECTOR], "run", bad_run)
    session_id = await engine.create_session(machine.machine_id)

    state = await engine.run(session_id, critical_reading, machine, thresholds)

    assert "Unknown state fields" in state.error
    assert store.sessions[session_id]["status"] == SessionStatus.FAILED
