"""
Celery tasks — predictive-maintenance pipeline.

The API creates the RUNNING session and dispatches run_pipeline; the
worker runs the stages and closes the session (COMPLETED or FAILED).
"""

import asyncio

import structlog

from app.db.session import create_worker_session_factory
from app.integrations.line_messaging import LineMessenger
from app.integrations.reasoning import GeminiReasoningClient
from app.pipeline.engine import PipelineEngine
from app.pipeline.errors import MachineNotFoundError
from app.pipeline.models import SensorReading
from app.pipeline.outcome import summarize
from app.pipeline.service import load_machine, run_for_machine
from app.repositories.store import SqlPipelineStore
from app.tasks import celery_app

logger = structlog.get_logger("tasks.pipeline")


async def _run(session_id: str, machine_id: str, reading: dict) -> dict:
    """Run one session on a fresh engine (asyncio.run gives every task its own loop)."""
    db_engine, factory = create_worker_session_factory()
    try:
        store = SqlPipelineStore(factory)
        engine = PipelineEngine(store, GeminiReasoningClient(), LineMessenger())

        try:
            machine, thresholds = await load_machine(store, machine_id)
        except MachineNotFoundError as exc:
            await engine.sessions.fail(session_id, str(exc))
            return {"session_id": session_id, "status": "FAILED", "error": str(exc)}

        state = await run_for_machine(
            engine,
            session_id,
            SensorReading.from_dict(reading),
            machine,
            thresholds,
        )
        return {
            "session_id": session_id,
            "status": "FAILED" if state.error else "COMPLETED",
            "summary": summarize(state),
            "error": state.error,
        }
    finally:
        await db_engine.dispose()


@celery_app.task(bind=True, name="app.tasks.pipeline_tasks.run_pipeline")
def run_pipeline(self, session_id: str, machine_id: str, reading: dict):
    """Run the pipeline for a session created by the trigger endpoint."""
    task_log = logger.bind(task_id=self.request.id, session_id=session_id, machine_id=machine_id)
    task_log.info("Pipeline task started")

    result = asyncio.run(_run(session_id, machine_id, reading))

    task_log.info("Pipeline task finished", status=result["status"], error=result.get("error"))
    return result
