"""
PipelineEngine — the orchestrator that runs the stage graph.

    DETECTOR ─┬─▶ DIAGNOSER ─┬─▶ PLANNER ─▶ VALIDATOR ─▶ NOTIFIER ─▶ END
              │              └──────────────────────────▲
              └─▶ END  (no anomaly)

Responsibilities:
    - Create the session record before the first stage runs
    - Run one stage at a time, merge its update, pick the next stage
    - Close the session COMPLETED when a run ends without the Notifier
    - Close the session FAILED on any exception that escapes a stage,
      and when the run is cancelled or its stream is closed early
    - Expose the run both as a single result (run) and as a stream of
      per-stage updates (stream)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator

import structlog

from app.core.constants import END, StageName
from app.integrations.line_messaging import Messenger
from app.integrations.reasoning import ReasoningClient
from app.pipeline.gates import route_after
from app.pipeline.models import Machine, SensorReading, Threshold
from app.pipeline.outcome import summarize
from app.pipeline.session import SessionManager
from app.pipeline.stage import PipelineStage, StageServices
from app.pipeline.stages import Detector, Diagnoser, Notifier, Planner, Validator
from app.pipeline.state import PipelineState, StateUpdate, merge_state, serialize_update
from app.repositories.base import PipelineStore

ENTRY_STAGE = StageName.DETECTOR
INTERRUPTED = "Pipeline run was cancelled"


@dataclass
class PipelineUpdate:
    """One step of a streamed run: the stage that just finished and what it changed."""

    stage: str | None               # None on the final failure update
    action: str
    progress: int
    partial: StateUpdate = field(default_factory=dict)
    state: PipelineState | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "action": self.action,
            "progress": self.progress,
            "partial_state": serialize_update(self.partial),
            "error": self.error,
        }


class PipelineEngine:
    """
    Runs the five stages against one sensor reading.

    Usage::

        engine = PipelineEngine(store, GeminiReasoningClient(), LineMessenger())
        session_id = await engine.create_session(machine.machine_id)
        state = await engine.run(session_id, reading, machine, thresholds)
    """

    def __init__(
        self,
        store: PipelineStore,
        reasoner: ReasoningClient,
        messenger: Messenger,
        *,
        stage_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.sessions = SessionManager(store)
        services = StageServices(store=store, sessions=self.sessions, reasoner=reasoner, messenger=messenger)
        if stage_timeout is not None:
            services.reasoning_timeout = stage_timeout

        self.stages: dict[str, PipelineStage] = {
            stage.name: stage
            for stage in (
                Detector(services),
                Diagnoser(services),
                Planner(services),
                Validator(services),
                Notifier(services),
            )
        }
        self.logger = structlog.get_logger("pipeline.engine")

    async def create_session(self, machine_id: str, reading_id: str | None = None) -> str:
        return await self.sessions.create(machine_id, reading_id)

    async def run(
        self,
        session_id: str,
        reading: SensorReading,
        machine: Machine,
        thresholds: list[Threshold] | tuple[Threshold, ...],
    ) -> PipelineState:
        """Run to the end and return the final state (error set if the run failed)."""
        final: PipelineState | None = None
        async for update in self.stream(session_id, reading, machine, thresholds):
            final = update.state
        return final

    async def stream(
        self,
        session_id: str,
        reading: SensorReading,
        machine: Machine,
        thresholds: list[Threshold] | tuple[Threshold, ...],
    ) -> AsyncIterator[PipelineUpdate]:
        """Yield one PipelineUpdate per stage invocation, in execution order."""
        state = PipelineState.start(session_id, reading, machine, thresholds)
        log = self.logger.bind(session_id=session_id, machine_id=machine.machine_id)
        log.info("Pipeline started", thresholds=len(state.thresholds))

        current: str = ENTRY_STAGE
        try:
            while current != END:
                stage = self.stages[current]
                partial = await stage.run(state)
                state = merge_state(state, partial)

                yield PipelineUpdate(
                    stage=current,
                    action=state.current_action,
                    progress=state.progress,
                    partial=partial,
                    state=state,
                )
                current = route_after(current, state)

            if not await self.sessions.is_closed(session_id):
                await self.sessions.complete(session_id, summarize(state))

        except Exception as exc:
            log.exception("Pipeline failed", stage=current, error=str(exc))
            state = replace(state, error=str(exc))
            await self._fail_session(state, log)

            yield PipelineUpdate(
                stage=None,
                action="Pipeline failed",
                progress=state.progress,
                partial={"error": state.error},
                state=state,
                error=state.error,
            )
            return
        except BaseException:
            # Task cancelled or the consumer closed the stream
            log.warning("Pipeline interrupted", stage=current)
            await self._fail_session(replace(state, error=INTERRUPTED), log)
            raise

        log.info(
            "Pipeline finished",
            anomaly_detected=state.anomaly_detected,
            stages_run=len(state.log_entries),
            progress=state.progress,
        )

    async def _fail_session(self, state: PipelineState, log) -> None:
        """Close the session FAILED unless it is already closed; never raises."""
        try:
            if not await self.sessions.is_closed(state.session_id):
                await self.sessions.fail(state.session_id, state.error, summarize(state))
        except Exception as exc:
            log.error("Could not mark session failed", error=str(exc))

    async def get_status(self, session_id: str) -> dict[str, Any]:
        """
        Raises:
            SessionNotFoundError: unknown session id.
        """
        return await self.sessions.status(session_id)
