"""HTTP surface, with the store and engine swapped for in-memory ones."""

import json

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_engine, get_store
from app.main import app
from app.pipeline.engine import PipelineEngine


@pytest.fixture
def client(store, reasoner, messenger):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_engine] = lambda: PipelineEngine(store, reasoner, messenger, stage_timeout=0.2)
    yield TestClient(app)
    app.dependency_overrides.clear()


BEARING_READING = {"bearing_temp": 88, "vib_rms_horizontal": 4.5, "pressure": 8.0}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_run_returns_final_state(client, store):
    response = client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "reading": BEARING_READING})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert body["summary"]["anomalyDetected"] is True
    assert body["summary"]["safetyDecision"] == "APPROVED"
    assert len(body["state"]["log_entries"]) == 5
    assert store.sessions[body["session_id"]]["status"] == "COMPLETED"


def test_run_updates_machine_health(client, store):
    client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "reading": BEARING_READING})

    assert store.machines["BP-001"].health_score < 100


def test_run_with_scenario(client):
    response = client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "scenario": "bearing_wear"})

    assert response.status_code == 200
    assert response.json()["summary"]["anomalyDetected"] is True


def test_run_unknown_machine(client):
    response = client.post("/api/v1/pipeline/run", json={"machine_id": "XX-999", "reading": BEARING_READING})
    assert response.status_code == 404


def test_run_unknown_scenario(client):
    response = client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "scenario": "meltdown"})
    assert response.status_code == 422


def test_run_requires_reading_or_scenario(client):
    response = client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001"})
    assert response.status_code == 422


def test_status(client):
    run = client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "reading": BEARING_READING}).json()

    response = client.get(f"/api/v1/pipeline/status/{run['session_id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["session"]["status"] == "COMPLETED"
    assert body["session"]["progress"] == 100
    assert [log["stage"] for log in body["logs"]] == ["DETECTOR", "DIAGNOSER", "PLANNER", "VALIDATOR", "NOTIFIER"]


def test_status_unknown_session(client):
    response = client.get("/api/v1/pipeline/status/does-not-exist")
    assert response.status_code == 404


def test_stream_sends_one_line_per_stage(client):
    response = client.post("/api/v1/pipeline/stream", json={"machine_id": "BP-001", "reading": BEARING_READING})

    assert response.status_code == 200
    lines = [json.loads(line) for line in response.text.splitlines() if line]
    assert [line["stage"] for line in lines] == ["DETECTOR", "DIAGNOSER", "PLANNER", "VALIDATOR", "NOTIFIER"]
    assert {line["session_id"] for line in lines} == {response.headers["x-session-id"]}
    assert lines[-1]["progress"] == 100
    assert all(line["error"] is None for line in lines)


def test_sessions_listed(client):
    client.post("/api/v1/pipeline/run", json={"machine_id": "BP-001", "reading": BEARING_READING})

    sessions = client.get("/api/v1/pipeline/sessions", params={"machine_id": "BP-001"}).json()["sessions"]

    assert len(sessions) == 1
    assert sessions[0]["machine_id"] == "BP-001"


def test_scenarios(client):
    scenarios = client.get("/api/v1/pipeline/scenarios").json()["scenarios"]

    ids = [s["id"] for s in scenarios]
    assert "bearing_wear" in ids
    assert "combined_failure" in ids
