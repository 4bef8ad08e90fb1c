"""
Entry points shared by the API and the Celery worker: load a machine
with its thresholds, run the engine, apply the machine health change.
"""

from __future__ import annotations

from app.core.logging import get_logger
from app.pipeline.engine import PipelineEngine
from app.pipeline.errors import MachineNotFoundError
from app.pipeline.models import Machine, SensorReading, Threshold
from app.pipeline.outcome import machine_health_after
from app.pipeline.scenarios import DEFAULT_THRESHOLDS
from app.pipeline.state import PipelineState
from app.repositories.base import PipelineStore

logger = get_logger(__name__)


async def load_machine(store: PipelineStore, machine_id: str) -> tuple[Machine, list[Threshold]]:
    """
    Machine record and the thresholds for its type.  Machine types with
    no configured rows use the default BOILER_PUMP table.

    Raises:
        MachineNotFoundError: unknown machine id.
    """
    machine = await store.get_machine(machine_id)
    if machine is None:
        raise MachineNotFoundError(f"Machine {machine_id} not found")

    thresholds = await store.list_thresholds(machine.type)
    if not thresholds:
        logger.info("No thresholds configured, using defaults", machine_id=machine_id, machine_type=machine.type)
        thresholds = list(DEFAULT_THRESHOLDS)
    return machine, thresholds


async def record_machine_health(store: PipelineStore, machine: Machine, state: PipelineState) -> None:
    change = machine_health_after(machine, state)
    if change is None:
        return
    status, health_score = change
    await store.update_machine_health(machine.machine_id, status, health_score)
    logger.info("Machine health updated", machine_id=machine.machine_id, status=status, health_score=health_score)


async def run_for_machine(
    engine: PipelineEngine,
    session_id: str,
    reading: SensorReading,
    machine: Machine,
    thresholds: list[Threshold],
) -> PipelineState:
    """Run the pipeline, then update the machine's health if the run succeeded."""
    state = await engine.run(session_id, reading, machine, thresholds)
    if state.error is None:
        await record_machine_health(engine.store, machine, state)
    return state
