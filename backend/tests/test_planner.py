"""Planner: resource checks, window, cost and fallback."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.config import settings
from app.core.constants import Priority, ResultKind, Severity, StageName
from app.pipeline.errors import ReasoningError
from app.pipeline.models import Diagnosis, Part, PartLine, Technician
from app.pipeline.schemas import PlannedPart
from app.pipeline.stages import Detector, Diagnoser, Planner
from app.pipeline.stages.planner import (
    UNASSIGNED,
    estimate_cost,
    maintenance_window,
    pick_parts,
    pick_technician,
)
from app.pipeline.state import merge_state


async def _diagnosed(services, state):
    state = merge_state(state, await Detector(services).run(state))
    return merge_state(state, await Diagnoser(services).run(state))


def test_pick_technician():
    techs = [Technician("Somchai"), Technician("Malee")]
    assert pick_technician("malee", techs) == "Malee"
    assert pick_technician("Nobody", techs) == "Somchai"
    assert pick_technician(None, []) == UNASSIGNED


def test_pick_parts_keeps_stock_only_and_clamps():
    stock = [Part("BRG-6205", "Bearing", quantity=3, unit_cost=450)]
    lines = pick_parts([PlannedPart(part_number="BRG-6205", quantity=5), PlannedPart(part_number="GONE-1")], stock)
    assert lines == (PartLine("BRG-6205", "Bearing", 3, 450),)


def test_critical_window_starts_in_two_hours():
    now = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
    start, end = maintenance_window(Severity.CRITICAL, 3, now)
    assert start == now + timedelta(hours=2)
    assert end == start + timedelta(hours=3)


def test_non_critical_window_waits_for_off_peak():
    morning = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
    start, _ = maintenance_window(Severity.HIGH, 4, morning, timezone.utc)
    assert start == datetime(2026, 3, 2, settings.OFF_PEAK_START_HOUR, tzinfo=timezone.utc)

    late = datetime(2026, 3, 2, 23, 0, tzinfo=timezone.utc)
    start, _ = maintenance_window(Severity.HIGH, 4, late, timezone.utc)
    assert start == datetime(2026, 3, 3, settings.OFF_PEAK_START_HOUR, tzinfo=timezone.utc)


def test_off_peak_is_plant_local_time():
    bangkok = ZoneInfo("Asia/Bangkok")
    # 16:30 in Bangkok: tonight at 22:00 local, 15:00 UTC
    start, end = maintenance_window(Severity.HIGH, 4, datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc), bangkok)
    assert start == datetime(2026, 3, 2, 22, 0, tzinfo=bangkok)
    assert start.tzinfo == timezone.utc
    assert end - start == timedelta(hours=4)

    # 06:00 on the 3rd in Bangkok: that evening
    start, _ = maintenance_window(Severity.HIGH, 4, datetime(2026, 3, 2, 23, 0, tzinfo=timezone.utc), bangkok)
    assert start == datetime(2026, 3, 3, 22, 0, tzinfo=bangkok)


def test_off_peak_uses_configured_plant_timezone(monkeypatch):
    monkeypatch.setattr(settings, "PLANT_TIMEZONE", "Europe/Berlin")
    start, _ = maintenance_window(Severity.HIGH, 4, datetime(2026, 7, 1, 8, 0, tzinfo=timezone.utc))
    assert start == datetime(2026, 7, 1, 22, 0, tzinfo=ZoneInfo("Europe/Berlin"))


def test_estimate_cost():
    diagnosis = Diagnosis("wear", 90, "5 days", "", estimated_downtime_hours=3, cost_impact=100000)
    costs = estimate_cost(diagnosis, 3, (PartLine("BRG-6205", "Bearing", 2, 450),))
    assert costs.labor == 3 * settings.LABOR_RATE_PER_HOUR
    assert costs.parts == 900
    assert costs.downtime == 3 * settings.PRODUCTION_VALUE_PER_HOUR
    assert costs.avoided_failure_cost == max(100000, 3 * settings.DOWNTIME_COST_PER_HOUR)
    assert costs.total == costs.labor + costs.parts + costs.downtime
    assert costs.roi_percent > 0


@pytest.mark.asyncio
async def test_skips_without_diagnosis(services, state):
    assert await Planner(services).run(state) == {}


@pytest.mark.asyncio
async def test_work_order_is_planned_and_persisted(services, store, state):
    state = await _diagnosed(services, state)

    update = await Planner(services).run(state)

    wo = update["work_order"]
    assert wo.wo_number.startswith("WO-")
    assert wo.assigned_technician == "Somchai"
    assert wo.priority == Priority.HIGH
    assert wo.parts == (PartLine("BRG-6205", "Ball bearing 6205", 2, 450),)
    # no estimated_cost from reasoning: labor + parts
    assert wo.estimated_cost == 3 * settings.LABOR_RATE_PER_HOUR + 900
    assert wo.scheduled_end - wo.scheduled_start == timedelta(hours=3)
    assert wo.cost_breakdown is not None
    assert [t.name for t in update["technicians"]] == ["Somchai", "Malee"]
    assert len(update["parts"]) == 2

    (entry,) = update["log_entries"]
    assert entry.next_stage == StageName.VALIDATOR
    assert entry.decision_path.final_decision == "Somchai"
    assert [c.selected for c in entry.decision_path.choices] == [True, False]

    (record,) = store.results[ResultKind.WORK_ORDER]
    assert record["wo_number"] == wo.wo_number


@pytest.mark.asyncio
async def test_unavailable_technician_is_replaced(services, reasoner, state):
    plan = dict(reasoner.responses[StageName.PLANNER], assigned_technician="Ghost")
    reasoner.respond(StageName.PLANNER, plan)
    state = await _diagnosed(services, state)

    update = await Planner(services).run(state)

    assert update["work_order"].assigned_technician == "Somchai"


@pytest.mark.asyncio
async def test_fallback_plan(services, reasoner, state):
    reasoner.respond(StageName.PLANNER, ReasoningError("down"))
    state = await _diagnosed(services, state)

    update = await Planner(services).run(state)

    wo = update["work_order"]
    assert wo.assigned_technician == "Somchai"
    assert wo.parts == ()
    assert wo.estimated_cost == settings.FALLBACK_WORK_ORDER_COST
    assert wo.scheduled_end - wo.scheduled_start == timedelta(hours=settings.DEFAULT_REPAIR_HOURS)


@pytest.mark.asyncio
async def test_no_technicians_leaves_order_unassigned(services, store, state):
    store.technicians = []
    state = await _diagnosed(services, state)

    update = await Planner(services).run(state)

    assert update["work_order"].assigned_technician == UNASSIGNED
