"""
Pipeline endpoints — run, trigger, stream, status and demo scenarios.
"""

from __future__ import annotations

import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.api.deps import get_engine, get_store
from app.api.schemas.pipeline import PipelineRunRequest, PipelineRunResponse, PipelineTriggerResponse
from app.core.constants import SessionStatus
from app.core.logging import get_logger
from app.pipeline.engine import PipelineEngine
from app.pipeline.errors import MachineNotFoundError, SessionNotFoundError
from app.pipeline.models import Machine, SensorReading, Threshold
from app.pipeline.outcome import summarize
from app.pipeline.scenarios import build_reading, list_scenarios
from app.pipeline.service import load_machine, record_machine_health, run_for_machine
from app.repositories.base import PipelineStore

logger = get_logger(__name__)

router = APIRouter(prefix="/pipeline", tags=["Pipeline"])


async def _prepare(
    request: PipelineRunRequest,
    store: PipelineStore,
) -> tuple[SensorReading, Machine, list[Threshold]]:
    """Resolve the machine, its thresholds and the reading to run on."""
    try:
        machine, thresholds = await load_machine(store, request.machine_id)
    except MachineNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None

    reading = request.to_reading()
    if reading is None:
        try:
            reading = build_reading(machine.machine_id, request.scenario)
        except KeyError:
            raise HTTPException(status_code=422, detail=f"Unknown scenario: {request.scenario}") from None
    return reading, machine, thresholds


# ─── Run (synchronous) ────────────────────────────────────
@router.post("/run", response_model=PipelineRunResponse)
async def run_pipeline(
    request: PipelineRunRequest,
    store: PipelineStore = Depends(get_store),
    engine: PipelineEngine = Depends(get_engine),
):
    """Run all stages and return the final state."""
    reading, machine, thresholds = await _prepare(request, store)
    session_id = await engine.create_session(machine.machine_id, reading.reading_id)

    state = await run_for_machine(engine, session_id, reading, machine, thresholds)
    return PipelineRunResponse(
        session_id=session_id,
        status=SessionStatus.FAILED if state.error else SessionStatus.COMPLETED,
        summary=summarize(state),
        state=state.to_dict(),
    )


# ─── Trigger (Celery) ─────────────────────────────────────
@router.post("/trigger", response_model=PipelineTriggerResponse)
async def trigger_pipeline(
    request: PipelineRunRequest,
    store: PipelineStore = Depends(get_store),
    engine: PipelineEngine = Depends(get_engine),
):
    """
    Queue a run.

    1. Creates the RUNNING session (visible immediately to /status)
    2. Dispatches the Celery task that runs the stages
    3. Returns instantly with the session id
    """
    from app.tasks.pipeline_tasks import run_pipeline as run_pipeline_task

    reading, machine, _ = await _prepare(request, store)
    session_id = await engine.create_session(machine.machine_id, reading.reading_id)

    task = run_pipeline_task.delay(
        session_id=session_id,
        machine_id=machine.machine_id,
        reading=reading.to_dict(),
    )
    logger.info("Pipeline queued", session_id=session_id, celery_task_id=task.id)

    return PipelineTriggerResponse(
        message="Pipeline queued",
        session_id=session_id,
        celery_task_id=task.id,
        status=SessionStatus.RUNNING,
    )


# ─── Stream (NDJSON) ──────────────────────────────────────
@router.post("/stream")
async def stream_pipeline(
    request: PipelineRunRequest,
    store: PipelineStore = Depends(get_store),
    engine: PipelineEngine = Depends(get_engine),
):
    """Run all stages, sending one JSON line per stage as it finishes."""
    reading, machine, thresholds = await _prepare(request, store)
    session_id = await engine.create_session(machine.machine_id, reading.reading_id)

    async def lines() -> AsyncIterator[str]:
        final = None
        async for update in engine.stream(session_id, reading, machine, thresholds):
            final = update.state
            yield json.dumps({"session_id": session_id, **update.to_dict()}, default=str) + "\n"
        if final is not None and final.error is None:
            await record_machine_health(store, machine, final)

    return StreamingResponse(
        lines(),
        media_type="application/x-ndjson",
        headers={"X-Session-Id": session_id},
    )


# ─── Status ───────────────────────────────────────────────
@router.get("/status/{session_id}")
async def get_pipeline_status(
    session_id: str,
    engine: PipelineEngine = Depends(get_engine),
):
    """Session record, its stage logs (oldest first) and its results."""
    try:
        return await engine.get_status(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found") from None


@router.get("/sessions")
async def list_pipeline_sessions(
    machine_id: str | None = None,
    limit: int = 50,
    store: PipelineStore = Depends(get_store),
):
    """Most recent sessions first."""
    return {"sessions": await store.list_sessions(machine_id=machine_id, limit=limit)}


# ─── Scenarios ────────────────────────────────────────────
@router.get("/scenarios")
async def get_scenarios():
    """Demo anomaly scenarios accepted by run/trigger/stream."""
    return {"scenarios": list_scenarios()}
