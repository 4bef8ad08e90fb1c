"""
PipelineStage — abstract base class for the five pipeline stages.

The engine calls run(state) and merges the returned StateUpdate.
A stage only implements the business logic in execute(); the helpers
here cover the parts every stage shares:

    - _progress()   persist current stage/action/progress
    - _consult()    one bounded reasoning call, parsed into a schema,
                    with failures turned into a fallback outcome
    - _entry()      build the stage's LogEntry
    - _record()     persist the LogEntry
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from app.core.config import settings
from app.core.constants import LogStatus
from app.core.logging import get_logger
from app.integrations.line_messaging import Messenger
from app.integrations.reasoning import ReasoningClient
from app.pipeline.errors import ReasoningError
from app.pipeline.models import DecisionChoice, DecisionPath, ThinkingRound
from app.pipeline.schemas import DecisionAnalysis, ReasoningResponse, parse_reasoning
from app.pipeline.session import SessionManager
from app.pipeline.state import LogEntry, PipelineState, StateUpdate
from app.repositories.base import PipelineStore

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class StageServices:
    """Collaborators shared by all stages of one engine."""

    store: PipelineStore
    sessions: SessionManager
    reasoner: ReasoningClient
    messenger: Messenger
    reasoning_timeout: float = field(default_factory=lambda: settings.STAGE_TIMEOUT_SECONDS)


@dataclass(frozen=True)
class ReasoningOutcome(Generic[T]):
    """Either a validated reasoning response, or the reason we fell back."""

    response: T | None = None
    fallback_reason: str | None = None

    @property
    def used_fallback(self) -> bool:
        return self.response is None


class ThinkingTrail:
    """Collects numbered thinking rounds for a stage's log entry."""

    def __init__(self) -> None:
        self.rounds: list[ThinkingRound] = []

    def add(self, thought: str, observation: str, conclusion: str) -> None:
        self.rounds.append(ThinkingRound(
            round=len(self.rounds) + 1,
            thought=thought,
            observation=observation,
            conclusion=conclusion,
            timestamp=datetime.now(timezone.utc),
        ))

    def extend(self, response: ReasoningResponse | None) -> None:
        """Append the rounds the reasoning model reported, if any."""
        if response is None:
            return
        for r in response.thinking_rounds:
            self.add(r.thought, r.observation, r.conclusion)


def decision_path(
    question: str,
    final_decision: str,
    analysis: DecisionAnalysis | None = None,
    reasoning: str = "",
) -> DecisionPath:
    """Build a DecisionPath, marking the option named like `final_decision` as selected."""
    choices: list[DecisionChoice] = []
    if analysis is not None:
        for opt in analysis.options_considered:
            selected = opt.option.strip().lower() == str(final_decision).strip().lower()
            choices.append(DecisionChoice(
                option=opt.option,
                description=opt.description,
                score=opt.score,
                selected=selected,
                pros=tuple(opt.pros),
                cons=tuple(opt.cons),
                reason=analysis.selection_reason if selected else None,
            ))
        reasoning = reasoning or analysis.selection_reason
    return DecisionPath(
        question=question,
        choices=tuple(choices),
        final_decision=str(final_decision),
        reasoning=reasoning,
    )


class PipelineStage(ABC):
    """
    Base class for every pipeline stage.

    Subclasses MUST implement:
        - name (StageName)
        - description (str)
        - execute(state)      — the stage's work; returns a StateUpdate

    Subclasses MAY implement:
        - should_skip(state)  — True when the upstream input is missing;
                                the stage then returns {} and leaves no trace
    """

    name: str = "UNNAMED"
    description: str = "No description"

    def __init__(self, services: StageServices) -> None:
        self.services = services
        self.logger = logger.bind(stage=self.name)

    async def should_skip(self, state: PipelineState) -> bool:
        return False

    @abstractmethod
    async def execute(self, state: PipelineState) -> StateUpdate:
        """
        Do the stage's work.

        Side effects happen in this order: progress updates, one log
        entry, the stage's domain result.  The returned update carries
        the new log entry in `log_entries`.
        """
        ...

    async def run(self, state: PipelineState) -> StateUpdate:
        if await self.should_skip(state):
            self.logger.info("Stage skipped, upstream input missing", session_id=state.session_id)
            return {}
        return await self.execute(state)

    # ─── Helpers available to all stages ───────────────

    async def _progress(self, state: PipelineState, action: str, progress: int) -> int:
        return await self.services.sessions.report_progress(state.session_id, self.name, action, progress)

    async def _consult(
        self,
        state: PipelineState,
        system_prompt: str,
        user_prompt: str,
        schema: type[T],
    ) -> ReasoningOutcome[T]:
        """
        Ask the reasoning model and validate the answer against `schema`.

        Any failure of the call (transport, unparseable answer, timeout)
        comes back as a fallback outcome.  Only cancellation propagates.
        """
        timeout = self.services.reasoning_timeout
        try:
            raw = await asyncio.wait_for(
                self.services.reasoner.evaluate(system_prompt, user_prompt),
                timeout=timeout,
            )
            return ReasoningOutcome(response=parse_reasoning(raw, schema, stage=self.name))
        except TimeoutError:
            reason = f"reasoning call timed out after {timeout:g}s"
        except ReasoningError as exc:
            reason = str(exc)
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"

        self.logger.warning("Reasoning unavailable, using fallback", session_id=state.session_id, reason=reason)
        return ReasoningOutcome(fallback_reason=reason)

    def _entry(
        self,
        state: PipelineState,
        *,
        started_at: datetime,
        action: str,
        decision: str,
        next_stage: str,
        reasoning: str,
        trail: ThinkingTrail,
        input_data: dict[str, Any] | None = None,
        output_data: dict[str, Any] | None = None,
        decision_path: DecisionPath | None = None,
        confidence: int | None = None,
    ) -> LogEntry:
        return LogEntry(
            session_id=state.session_id,
            machine_id=state.machine_id,
            stage=self.name,
            action=action,
            decision=decision,
            next_stage=next_stage,
            reasoning=reasoning,
            input_data=input_data or {},
            output_data=output_data or {},
            thinking_rounds=tuple(trail.rounds),
            decision_path=decision_path,
            confidence=confidence,
            status=LogStatus.COMPLETED,
            duration_ms=int((self._now() - started_at).total_seconds() * 1000),
        )

    async def _record(self, entry: LogEntry) -> None:
        await self.services.store.save_log_entry(entry)
        self.logger.info(
            "Stage completed",
            session_id=entry.session_id,
            decision=entry.decision,
            next_stage=entry.next_stage,
            duration_ms=entry.duration_ms,
        )

    def _update(self, action: str, progress: int, entry: LogEntry, **outputs: Any) -> StateUpdate:
        """The StateUpdate every stage returns: bookkeeping + log entry + outputs."""
        return {
            "current_stage": self.name,
            "current_action": action,
            "progress": progress,
            "log_entries": (entry,),
            **outputs,
        }

    def _now(self) -> datetime:
        """UTC-aware now."""
        return datetime.now(timezone.utc)
