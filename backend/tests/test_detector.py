"""Detector: threshold check, classification and fallback."""

import pytest

from app.core.constants import END, ResultKind, Severity, StageName, ViolationLevel
from app.pipeline.errors import ReasoningError
from app.pipeline.models import SensorReading, Threshold
from app.pipeline.stages import Detector
from app.pipeline.stages.detector import FALLBACK_ANOMALY_TYPE, check_thresholds
from conftest import SLOW


def test_critical_violations_are_found(critical_reading, thresholds):
    violations = check_thresholds(critical_reading, thresholds)
    by_metric = {v.metric: v for v in violations}
    assert set(by_metric) == {"bearing_temp", "vib_rms_horizontal"}
    assert all(v.level == ViolationLevel.CRITICAL for v in violations)
    assert by_metric["bearing_temp"].threshold == 85
    assert by_metric["bearing_temp"].deviation == "+3.5%"
    assert by_metric["vib_rms_horizontal"].deviation_percent == 50.0


def test_warning_band_and_low_bounds():
    thresholds = [Threshold("pressure", "bar", warning_low=6, warning_high=10, critical_low=5, critical_high=11)]
    (low,) = check_thresholds(SensorReading("M", pressure=5.5), thresholds)
    assert low.level == ViolationLevel.WARNING
    assert low.threshold == 6
    assert low.deviation == "-8.3%"

    (crit,) = check_thresholds(SensorReading("M", pressure=4.0), thresholds)
    assert crit.level == ViolationLevel.CRITICAL
    assert crit.deviation_percent == -20.0


def test_value_on_bound_is_not_a_violation():
    thresholds = [Threshold("bearing_temp", warning_high=75, critical_high=85)]
    assert check_thresholds(SensorReading("M", bearing_temp=75), thresholds) == []


def test_missing_metric_is_ignored(thresholds):
    assert check_thresholds(SensorReading("M"), thresholds) == []


@pytest.mark.asyncio
async def test_normal_reading_short_circuits(services, reasoner, store, machine, normal_reading, thresholds):
    from app.pipeline.state import PipelineState

    session_id = await services.sessions.create(machine.machine_id)
    state = PipelineState.start(session_id, normal_reading, machine, thresholds)

    update = await Detector(services).run(state)

    assert update["anomaly_detected"] is False
    assert update["anomaly_details"] is None
    assert reasoner.calls == []
    (entry,) = update["log_entries"]
    assert entry.next_stage == END
    assert store.results[ResultKind.ANOMALY] == []


@pytest.mark.asyncio
async def test_anomaly_is_classified_and_persisted(services, store, state):
    update = await Detector(services).run(state)

    details = update["anomaly_details"]
    assert update["anomaly_detected"] is True
    assert details.type == "BEARING_DEGRADATION"
    assert details.severity == Severity.HIGH
    assert details.confidence == 92
    assert len(details.metrics) == 2

    (entry,) = update["log_entries"]
    assert entry.stage == StageName.DETECTOR
    assert entry.next_stage == StageName.DIAGNOSER
    assert entry.thinking_rounds[0].round == 1
    assert len(entry.thinking_rounds) >= 2

    (record,) = store.results[ResultKind.ANOMALY]
    assert record["session_id"] == state.session_id
    assert store.log_entries == [entry]


@pytest.mark.asyncio
async def test_false_positive_overridden_by_critical_violation(services, reasoner, state):
    reasoner.respond(StageName.DETECTOR, {
        "is_anomaly": False, "severity": "LOW", "anomaly_type": "SENSOR_GLITCH", "confidence": 60,
    })

    update = await Detector(services).run(state)

    assert update["anomaly_detected"] is True
    assert update["anomaly_details"].severity == Severity.CRITICAL
    assert "Overridden" in update["anomaly_details"].reasoning


@pytest.mark.asyncio
async def test_false_positive_on_warnings_only_ends_run(services, reasoner, machine, thresholds):
    from app.pipeline.state import PipelineState

    reasoner.respond(StageName.DETECTOR, {
        "is_anomaly": False, "severity": "LOW", "anomaly_type": "SENSOR_GLITCH",
    })
    session_id = await services.sessions.create(machine.machine_id)
    state = PipelineState.start(session_id, SensorReading("BP-001", bearing_temp=80), machine, thresholds)

    update = await Detector(services).run(state)

    assert update["anomaly_detected"] is False
    assert update["log_entries"][0].next_stage == END


@pytest.mark.parametrize("failure", [ReasoningError("down"), "not json at all", SLOW])
@pytest.mark.asyncio
async def test_fallback_uses_threshold_severity(services, reasoner, state, failure):
    reasoner.respond(StageName.DETECTOR, failure)

    update = await Detector(services).run(state)

    details = update["anomaly_details"]
    assert update["anomaly_detected"] is True
    assert details.type == FALLBACK_ANOMALY_TYPE
    assert details.severity == Severity.CRITICAL


@pytest.mark.asyncio
async def test_progress_is_reported(services, store, state):
    update = await Detector(services).run(state)

    history = store.progress_history[state.session_id]
    assert history == sorted(history)
    assert history[-1] == update["progress"] == 20
    assert store.sessions[state.session_id]["current_stage"] == StageName.DETECTOR
