"""LINE push client and flex cards."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from app.core.constants import Priority
from app.integrations.line_messaging import LineMessenger, alert_card, work_order_card
from app.pipeline.errors import DeliveryError
from app.pipeline.models import WorkOrder


def _messenger(handler) -> LineMessenger:
    return LineMessenger(
        access_token="test-token",
        base_url="https://line.test/v2/bot/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_push_returns_message_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"sentMessages": [{"id": "4711", "quoteToken": "q"}]})

    message_id = await _messenger(handler).deliver("U-somchai", {"type": "text", "text": "hi"})

    assert message_id == "4711"
    assert seen["url"] == "https://line.test/v2/bot/message/push"
    assert seen["auth"] == "Bearer test-token"
    assert seen["body"] == {"to": "U-somchai", "messages": [{"type": "text", "text": "hi"}]}


@pytest.mark.asyncio
async def test_rejected_push_raises():
    messenger = _messenger(lambda request: httpx.Response(400, json={"message": "Invalid reply token"}))

    with pytest.raises(DeliveryError) as exc_info:
        await messenger.deliver("U-somchai", {"type": "text", "text": "hi"})

    assert exc_info.value.status_code == 400
    assert "Invalid reply token" in exc_info.value.response_body


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DeliveryError):
        await _messenger(handler).deliver("U-somchai", {"type": "text", "text": "hi"})


@pytest.mark.asyncio
async def test_missing_token_raises_without_calling_out():
    calls = []
    messenger = LineMessenger(
        access_token="",
        transport=httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200)),
    )

    with pytest.raises(DeliveryError):
        await messenger.deliver("U-somchai", {"type": "text", "text": "hi"})
    assert calls == []


def test_work_order_card(machine):
    work_order = WorkOrder(
        wo_number="WO-20260101080000-AB12",
        title="Replace drive-end bearing",
        description="Replace bearing and check alignment",
        priority=Priority.HIGH,
        assigned_technician="Somchai",
        scheduled_start=datetime(2026, 1, 1, 22, 0, tzinfo=timezone.utc),
        scheduled_end=datetime(2026, 1, 2, 1, 0, tzinfo=timezone.utc),
        parts=(),
        estimated_cost=1500,
        reasoning="Bearing specialist on shift",
    )

    card = work_order_card(work_order, machine)

    assert card["type"] == "flex"
    assert card["altText"] == "Maintenance work order: Boiler Pump 1"
    assert "WO-20260101080000-AB12" in json.dumps(card)


def test_alert_card():
    card = alert_card("Bearing overheating", "Check BP-001", datetime(2026, 1, 1, tzinfo=timezone.utc))

    assert card["altText"] == "Alert: Bearing overheating"
    assert "Check BP-001" in json.dumps(card)
