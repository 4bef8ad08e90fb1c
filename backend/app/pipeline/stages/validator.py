"""
Validator — guardrails that decide whether a work order may proceed
without a human.

Deterministic checks:
    COST_LIMIT        estimated cost ≤ MAX_AUTO_APPROVE_COST
    CONFIDENCE_LEVEL  diagnosis confidence ≥ MIN_AUTO_APPROVE_CONFIDENCE
    EMERGENCY_CHECK   not (CRITICAL severity on a CRITICAL machine)
AI-assisted check:
    LOGIC_VALIDATION  action matches diagnosis and technician is qualified

Decision (first match wins):
    1. emergency combination               → ESCALATE_HUMAN
    2. reasoning unavailable               → ESCALATE_HUMAN
    3. any check failed, no AI escalation  → BLOCKED
    4. cost/confidence failed or AI asks   → ESCALATE_HUMAN
    5. otherwise                           → APPROVED
"""

from __future__ import annotations

from app.core.config import settings
from app.core.constants import Criticality, SafetyCheckName, SafetyDecision, Severity, StageName
from app.pipeline.gates import FIXED_TRANSITIONS
from app.pipeline.models import SafetyApproval, SafetyCheck
from app.pipeline.prompts import VALIDATOR_SYSTEM_PROMPT, validator_prompt
from app.pipeline.schemas import ValidatorResponse
from app.pipeline.stage import PipelineStage, ThinkingTrail, decision_path
from app.pipeline.state import PipelineState, StateUpdate


def decide(checks: dict[str, SafetyCheck], ai_requires_human: bool, ai_available: bool) -> SafetyDecision:
    if not checks[SafetyCheckName.EMERGENCY_CHECK].passed:
        return SafetyDecision.ESCALATE_HUMAN
    if not ai_available:
        return SafetyDecision.ESCALATE_HUMAN
    if not all(c.passed for c in checks.values()) and not ai_requires_human:
        return SafetyDecision.BLOCKED
    if (
        not checks[SafetyCheckName.COST_LIMIT].passed
        or not checks[SafetyCheckName.CONFIDENCE_LEVEL].passed
        or ai_requires_human
    ):
        return SafetyDecision.ESCALATE_HUMAN
    return SafetyDecision.APPROVED


class Validator(PipelineStage):
    """Safety review of the planned work order."""

    name = StageName.VALIDATOR
    description = "Validate a work order against safety guardrails"

    async def should_skip(self, state: PipelineState) -> bool:
        return state.diagnosis is None or state.work_order is None

    async def execute(self, state: PipelineState) -> StateUpdate:
        started_at = self._now()
        trail = ThinkingTrail()
        diagnosis, work_order = state.diagnosis, state.work_order
        severity = state.anomaly_details.severity if state.anomaly_details else None

        await self._progress(state, "Checking cost limit", 65)
        cost_ok = work_order.estimated_cost <= settings.MAX_AUTO_APPROVE_COST
        cost_check = SafetyCheck(
            SafetyCheckName.COST_LIMIT,
            cost_ok,
            f"{work_order.estimated_cost:,.0f} THB vs limit {settings.MAX_AUTO_APPROVE_COST:,.0f} THB",
        )
        trail.add("Is the cost within the auto-approval limit?", cost_check.note, "Pass" if cost_ok else "Fail")

        await self._progress(state, "Checking diagnosis confidence", 68)
        confidence_ok = diagnosis.confidence >= settings.MIN_AUTO_APPROVE_CONFIDENCE
        confidence_check = SafetyCheck(
            SafetyCheckName.CONFIDENCE_LEVEL,
            confidence_ok,
            f"{diagnosis.confidence}% vs minimum {settings.MIN_AUTO_APPROVE_CONFIDENCE}%",
        )
        trail.add("Is the diagnosis confident enough?", confidence_check.note, "Pass" if confidence_ok else "Fail")

        await self._progress(state, "Checking emergency conditions", 72)
        emergency = severity == Severity.CRITICAL and state.machine.criticality == Criticality.CRITICAL
        emergency_check = SafetyCheck(
            SafetyCheckName.EMERGENCY_CHECK,
            not emergency,
            "Critical anomaly on a critical machine" if emergency else "No emergency condition",
        )
        trail.add(
            "Is this a critical anomaly on a critical machine?",
            f"severity={severity}, machine criticality={state.machine.criticality}",
            "Human must decide" if emergency else "Pass",
        )

        await self._progress(state, "Validating plan logic", 76)
        outcome = await self._consult(
            state,
            VALIDATOR_SYSTEM_PROMPT,
            validator_prompt(
                state.machine.to_dict(),
                diagnosis.to_dict(),
                work_order.to_dict(),
                [c.to_dict() for c in (cost_check, confidence_check, emergency_check)],
            ),
            ValidatorResponse,
        )

        await self._progress(state, "Reviewing validation result", 80)
        if outcome.used_fallback:
            ai_requires_human = True
            logic_check = SafetyCheck(
                SafetyCheckName.LOGIC_VALIDATION,
                False,
                f"Could not be verified ({outcome.fallback_reason})",
            )
            analysis = None
            trail.add(
                "Reasoning service unavailable; plan logic cannot be verified.",
                outcome.fallback_reason or "",
                "Fail safe: escalate to a human.",
            )
        else:
            review = outcome.response
            trail.extend(review)
            ai_requires_human = review.requires_human
            logic_ok = review.action_matches_diagnosis and review.technician_qualified
            note = "; ".join(review.concerns) if review.concerns else (
                "Action matches diagnosis, technician qualified" if logic_ok else "Plan does not fit the diagnosis"
            )
            logic_check = SafetyCheck(SafetyCheckName.LOGIC_VALIDATION, logic_ok, note)
            analysis = review.decision_analysis

        checks = {
            c.check: c for c in (cost_check, confidence_check, emergency_check, logic_check)
        }

        await self._progress(state, "Deciding", 85)
        decision = decide(checks, ai_requires_human, not outcome.used_fallback)
        failed = [c.check for c in checks.values() if not c.passed]
        reasoning = (
            f"{decision}: all checks passed."
            if not failed
            else f"{decision}: failed {', '.join(failed)}."
        )
        if outcome.response is not None and outcome.response.reasoning:
            reasoning = f"{reasoning} {outcome.response.reasoning}"

        approval = SafetyApproval(
            decision=decision,
            checks=tuple(checks.values()),
            requires_human_approval=decision == SafetyDecision.ESCALATE_HUMAN,
            reasoning=reasoning,
        )

        action = f"Safety decision: {decision}"
        entry = self._entry(
            state,
            started_at=started_at,
            action=action,
            decision=decision,
            next_stage=FIXED_TRANSITIONS[self.name],
            reasoning=reasoning,
            trail=trail,
            input_data={"work_order": work_order.to_dict(), "diagnosis": diagnosis.to_dict()},
            output_data={"safety_approval": approval.to_dict()},
            decision_path=decision_path(
                "May this work order proceed without a human?",
                decision,
                analysis,
                reasoning,
            ),
            confidence=diagnosis.confidence,
        )

        progress = await self._progress(state, action, 88)
        await self._record(entry)
        await self.services.store.record_safety_review(work_order.wo_number, approval)

        return self._update(action, progress, entry, safety_approval=approval)
