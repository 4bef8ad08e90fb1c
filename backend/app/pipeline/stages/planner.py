"""
Planner — turns a diagnosis into a work order.

Resources are read once per invocation (available technicians and parts
in stock, fetched concurrently).  The reasoning call proposes the plan;
everything it proposes is checked against those resources before it is
accepted:

    - technician must be in the available list, else first available,
      else "Unassigned"
    - parts must be in stock, quantities clamped to stock
    - missing window → CRITICAL starts in 2h, otherwise next off-peak slot
    - missing cost → labor + parts
"""

from __future__ import annotations

import asyncio
import secrets
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.constants import Priority, ResultKind, Severity, StageName
from app.pipeline.gates import FIXED_TRANSITIONS
from app.pipeline.models import CostEstimate, Diagnosis, Part, PartLine, Technician, WorkOrder
from app.pipeline.prompts import PLANNER_SYSTEM_PROMPT, planner_prompt
from app.pipeline.schemas import PlannedPart, PlannerResponse
from app.pipeline.stage import PipelineStage, ThinkingTrail, decision_path
from app.pipeline.state import PipelineState, StateUpdate

UNASSIGNED = "Unassigned"
CRITICAL_LEAD_TIME = timedelta(hours=2)


def new_wo_number(now: datetime) -> str:
    return f"WO-{now:%Y%m%d%H%M%S}-{secrets.token_hex(2).upper()}"


def pick_technician(requested: str | None, technicians: list[Technician]) -> str:
    if requested:
        wanted = requested.strip().lower()
        for tech in technicians:
            if tech.name.lower() == wanted:
                return tech.name
    return technicians[0].name if technicians else UNASSIGNED


def pick_parts(requested: list[PlannedPart], stock: list[Part]) -> tuple[PartLine, ...]:
    by_number = {p.part_number: p for p in stock}
    lines: list[PartLine] = []
    for item in requested:
        part = by_number.get(item.part_number)
        if part is None or part.quantity <= 0:
            continue
        lines.append(PartLine(
            part_number=part.part_number,
            name=part.name,
            quantity=max(1, min(item.quantity, part.quantity)),
            unit_cost=part.unit_cost,
        ))
    return tuple(lines)


def maintenance_window(
    severity: str,
    hours: float,
    now: datetime,
    plant_tz: tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """
    Default window: CRITICAL starts soon, everything else waits for the
    next off-peak start in the plant's local time.  Returned in UTC.
    """
    if severity == Severity.CRITICAL:
        start = now + CRITICAL_LEAD_TIME
    else:
        local_now = now.astimezone(plant_tz or ZoneInfo(settings.PLANT_TIMEZONE))
        start = local_now.replace(hour=settings.OFF_PEAK_START_HOUR, minute=0, second=0, microsecond=0)
        if start <= local_now:
            start += timedelta(days=1)
    start = start.astimezone(timezone.utc)
    return start, start + timedelta(hours=hours)


def estimate_cost(diagnosis: Diagnosis, hours: float, parts: tuple[PartLine, ...]) -> CostEstimate:
    return CostEstimate(
        labor=hours * settings.LABOR_RATE_PER_HOUR,
        parts=sum(p.line_total for p in parts),
        downtime=hours * settings.PRODUCTION_VALUE_PER_HOUR,
        avoided_failure_cost=max(
            diagnosis.cost_impact,
            diagnosis.estimated_downtime_hours * settings.DOWNTIME_COST_PER_HOUR,
        ),
    )


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Planner(PipelineStage):
    """Technician, parts, window and cost for one work order."""

    name = StageName.PLANNER
    description = "Plan a maintenance work order"

    async def should_skip(self, state: PipelineState) -> bool:
        return state.diagnosis is None

    async def execute(self, state: PipelineState) -> StateUpdate:
        started_at = self._now()
        trail = ThinkingTrail()
        diagnosis = state.diagnosis
        severity = state.anomaly_details.severity if state.anomaly_details else Severity.HIGH

        await self._progress(state, "Checking technician and parts availability", 45)
        technicians, parts = await asyncio.gather(
            self.services.store.list_available_technicians(),
            self.services.store.list_parts_in_stock(),
        )
        trail.add(
            "Find who can do the work and what is in stock.",
            f"{len(technicians)} technician(s) available, {len(parts)} part type(s) in stock.",
            "Plan with these resources only." if technicians else "No technician available; the order stays unassigned.",
        )

        await self._progress(state, "Drafting the work order", 50)
        outcome = await self._consult(
            state,
            PLANNER_SYSTEM_PROMPT,
            planner_prompt(
                state.machine.to_dict(),
                state.anomaly_details.to_dict() if state.anomaly_details else {},
                diagnosis.to_dict(),
                [t.to_dict() for t in technicians],
                [p.to_dict() for p in parts],
            ),
            PlannerResponse,
        )

        await self._progress(state, "Scheduling and estimating cost", 55)
        now = self._now()
        wo_number = new_wo_number(now)

        if outcome.used_fallback:
            hours = settings.DEFAULT_REPAIR_HOURS
            work_order = WorkOrder(
                wo_number=wo_number,
                title=f"Inspect {state.machine.name}: {diagnosis.root_cause}",
                description=diagnosis.recommended_action or "Manual inspection required",
                priority=Priority.URGENT if severity == Severity.CRITICAL else Priority.HIGH,
                assigned_technician=pick_technician(None, technicians),
                scheduled_start=now,
                scheduled_end=now + timedelta(hours=hours),
                parts=(),
                estimated_cost=settings.FALLBACK_WORK_ORDER_COST,
                reasoning=f"Fallback plan ({outcome.fallback_reason}).",
            )
            analysis = None
            trail.add(
                "Reasoning service unavailable; build a minimal plan.",
                outcome.fallback_reason or "",
                f"Assign {work_order.assigned_technician}, start now, default cost.",
            )
        else:
            plan = outcome.response
            trail.extend(plan)
            technician = pick_technician(plan.assigned_technician, technicians)
            if plan.assigned_technician and technician.lower() != plan.assigned_technician.strip().lower():
                trail.add(
                    "Check the proposed technician against the available list.",
                    f"{plan.assigned_technician} is not available.",
                    f"Assign {technician} instead.",
                )
            part_lines = pick_parts(plan.parts, parts)
            if len(part_lines) < len(plan.parts):
                trail.add(
                    "Check proposed parts against stock.",
                    f"{len(plan.parts) - len(part_lines)} part(s) not in stock.",
                    "Dropped from the order.",
                )

            hours = diagnosis.estimated_downtime_hours or settings.DEFAULT_REPAIR_HOURS
            start, end = _aware(plan.scheduled_start), _aware(plan.scheduled_end)
            if start is None:
                start, end = maintenance_window(severity, hours, now)
            if end is None or end <= start:
                end = start + timedelta(hours=hours)

            costs = estimate_cost(diagnosis, hours, part_lines)
            work_order = WorkOrder(
                wo_number=wo_number,
                title=plan.title,
                description=plan.description,
                priority=plan.priority,
                assigned_technician=technician,
                scheduled_start=start,
                scheduled_end=end,
                parts=part_lines,
                estimated_cost=plan.estimated_cost if plan.estimated_cost is not None else costs.labor + costs.parts,
                reasoning=plan.reasoning,
                cost_breakdown=costs,
            )
            analysis = plan.decision_analysis

        action = f"Work order {work_order.wo_number} planned"
        entry = self._entry(
            state,
            started_at=started_at,
            action=action,
            decision=f"ASSIGN {work_order.assigned_technician}",
            next_stage=FIXED_TRANSITIONS[self.name],
            reasoning=work_order.reasoning,
            trail=trail,
            input_data={
                "diagnosis": diagnosis.to_dict(),
                "technicians": [t.to_dict() for t in technicians],
                "parts": [p.to_dict() for p in parts],
            },
            output_data={"work_order": work_order.to_dict()},
            decision_path=decision_path(
                "Who should do the work, and when?",
                work_order.assigned_technician,
                analysis,
                work_order.reasoning,
            ),
            confidence=diagnosis.confidence,
        )

        progress = await self._progress(state, action, 60)
        await self._record(entry)
        await self.services.store.save_result(ResultKind.WORK_ORDER, state.session_id, state.machine_id, work_order)

        return self._update(
            action,
            progress,
            entry,
            work_order=work_order,
            technicians=tuple(technicians),
            parts=tuple(parts),
        )
