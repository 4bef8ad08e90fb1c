"""
Diagnoser — root cause, time to failure and business impact of a
confirmed anomaly.

The confidence it reports drives the second gate: below
DIAGNOSIS_CONFIDENCE_GATE the run skips planning and goes straight to
the Notifier.
"""

from __future__ import annotations

from app.core.config import settings
from app.core.constants import MaintenanceUrgency, ResultKind, StageName
from app.pipeline.gates import after_diagnosis
from app.pipeline.models import Diagnosis
from app.pipeline.prompts import DIAGNOSER_SYSTEM_PROMPT, diagnoser_prompt
from app.pipeline.schemas import DiagnoserResponse
from app.pipeline.stage import PipelineStage, ThinkingTrail, decision_path
from app.pipeline.state import PipelineState, StateUpdate

FALLBACK_ROOT_CAUSE = "Unknown cause"
FALLBACK_CONFIDENCE = 50
FALLBACK_FAILURE_DAYS = 7


def _time_to_failure(days: float) -> str:
    return f"{days:g} days"


class Diagnoser(PipelineStage):
    """Reasoning-driven root-cause analysis."""

    name = StageName.DIAGNOSER
    description = "Diagnose the root cause of a confirmed anomaly"

    async def should_skip(self, state: PipelineState) -> bool:
        return not state.anomaly_detected or state.anomaly_details is None

    async def execute(self, state: PipelineState) -> StateUpdate:
        started_at = self._now()
        trail = ThinkingTrail()
        anomaly = state.anomaly_details

        await self._progress(state, "Reviewing anomaly details", 25)
        trail.add(
            "Start from the detected anomaly and the machine it happened on.",
            f"{anomaly.type} ({anomaly.severity}) on {state.machine.name}, "
            f"{len(anomaly.metrics)} metric(s) out of range.",
            "Look for a single failing component that explains all of them.",
        )

        await self._progress(state, "Analyzing root cause", 30)
        outcome = await self._consult(
            state,
            DIAGNOSER_SYSTEM_PROMPT,
            diagnoser_prompt(
                state.machine.to_dict(),
                state.reading.to_dict(),
                anomaly.to_dict(),
                settings.DOWNTIME_COST_PER_HOUR,
                settings.AVERAGE_MAINTENANCE_COST,
            ),
            DiagnoserResponse,
        )

        await self._progress(state, "Estimating time to failure and business impact", 35)

        if outcome.used_fallback:
            diagnosis = Diagnosis(
                root_cause=FALLBACK_ROOT_CAUSE,
                confidence=FALLBACK_CONFIDENCE,
                time_to_failure=_time_to_failure(FALLBACK_FAILURE_DAYS),
                reasoning=f"Fallback diagnosis, manual inspection required ({outcome.fallback_reason}).",
                predicted_failure_days=FALLBACK_FAILURE_DAYS,
                maintenance_urgency=MaintenanceUrgency.SCHEDULED,
                recommended_action="Inspect the machine manually",
            )
            analysis = None
            trail.add(
                "Reasoning service unavailable; no root cause can be established.",
                outcome.fallback_reason or "",
                f"Report an unknown cause at {FALLBACK_CONFIDENCE}% confidence.",
            )
        else:
            verdict = outcome.response
            trail.extend(verdict)
            prediction = verdict.prediction
            impact = verdict.business_impact
            diagnosis = Diagnosis(
                root_cause=verdict.root_cause,
                confidence=verdict.confidence,
                time_to_failure=_time_to_failure(prediction.predicted_failure_days),
                reasoning=verdict.reasoning,
                predicted_failure_days=prediction.predicted_failure_days,
                failure_probability=prediction.failure_probability,
                maintenance_urgency=prediction.maintenance_urgency,
                estimated_downtime_hours=prediction.estimated_downtime_hours,
                cost_impact=impact.cost_impact,
                business_impact_score=impact.business_impact_score,
                supporting_evidence=tuple(verdict.supporting_evidence),
                recommended_action=verdict.recommended_action,
            )
            analysis = verdict.decision_analysis

        next_stage = after_diagnosis(diagnosis)
        if next_stage == StageName.PLANNER:
            decision = "PLAN_MAINTENANCE"
        else:
            decision = "ESCALATE_LOW_CONFIDENCE"
            trail.add(
                "Check the confidence gate.",
                f"Confidence {diagnosis.confidence}% is below {settings.DIAGNOSIS_CONFIDENCE_GATE}%.",
                "Skip planning and notify a human.",
            )

        action = f"Diagnosed: {diagnosis.root_cause}"
        entry = self._entry(
            state,
            started_at=started_at,
            action=action,
            decision=decision,
            next_stage=next_stage,
            reasoning=diagnosis.reasoning,
            trail=trail,
            input_data={"anomaly_details": anomaly.to_dict()},
            output_data={"diagnosis": diagnosis.to_dict()},
            decision_path=decision_path(
                "What is the most likely root cause?",
                diagnosis.root_cause,
                analysis,
                diagnosis.reasoning,
            ),
            confidence=diagnosis.confidence,
        )

        progress = await self._progress(state, action, 40)
        await self._record(entry)
        await self.services.store.save_result(ResultKind.DIAGNOSIS, state.session_id, state.machine_id, diagnosis)

        return self._update(action, progress, entry, diagnosis=diagnosis)
