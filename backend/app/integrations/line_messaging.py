"""
LINE Messaging — outbound push messages and the flex cards we send.

Messenger is what the Notifier depends on.  LineMessenger posts to the
LINE push endpoint with httpx; a non-2xx answer or a transport error is
raised as DeliveryError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx

from app.core.config import settings
from app.core.constants import Priority
from app.core.logging import get_logger
from app.pipeline.errors import DeliveryError
from app.pipeline.models import Machine, WorkOrder

logger = get_logger(__name__)

PRIORITY_COLORS = {
    Priority.LOW: "#10B981",
    Priority.MEDIUM: "#F59E0B",
    Priority.HIGH: "#EF4444",
    Priority.URGENT: "#DC2626",
}


class Messenger(ABC):

    @abstractmethod
    async def deliver(self, address: str, message: dict[str, Any]) -> str | None:
        """
        Send one message to `address`.  Returns the provider's message id
        (if it gives one).

        Raises:
            DeliveryError: the message was not accepted.
        """


class LineMessenger(Messenger):
    """LINE Messaging API push client."""

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = settings.LINE_CHANNEL_ACCESS_TOKEN if access_token is None else access_token
        self.base_url = (base_url or settings.LINE_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.LINE_TIMEOUT_SECONDS
        self._transport = transport

    async def deliver(self, address: str, message: dict[str, Any]) -> str | None:
        if not self.access_token:
            raise DeliveryError("LINE_CHANNEL_ACCESS_TOKEN is not configured")

        url = f"{self.base_url}/message/push"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        body = {"to": address, "messages": [message]}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"LINE push failed: {exc}") from exc

        if response.status_code >= 400:
            raise DeliveryError(
                f"LINE push rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        payload = response.json() if response.content else {}
        sent = payload.get("sentMessages") or []
        message_id = sent[0].get("id") if sent else None
        logger.info("LINE message pushed", message_id=message_id)
        return message_id


# ═══════════════════════════════════════════════════════════
#  Flex cards
# ═══════════════════════════════════════════════════════════

def _row(label: str, value: str) -> dict[str, Any]:
    return {
        "type": "box",
        "layout": "horizontal",
        "margin": "sm",
        "contents": [
            {"type": "text", "text": label, "size": "sm", "color": "#64748B", "flex": 2},
            {"type": "text", "text": value, "size": "sm", "color": "#E2E8F0", "flex": 3, "wrap": True},
        ],
    }


def _hero(title: str) -> dict[str, Any]:
    return {
        "type": "box",
        "layout": "vertical",
        "backgroundColor": "#1E293B",
        "paddingAll": "20px",
        "contents": [{"type": "text", "text": title, "weight": "bold", "size": "xl", "color": "#FFFFFF"}],
    }


def work_order_card(work_order: WorkOrder, machine: Machine) -> dict[str, Any]:
    """Card sent to the assigned technician, with accept/complete buttons."""
    priority_color = PRIORITY_COLORS.get(work_order.priority, PRIORITY_COLORS[Priority.MEDIUM])
    body = [
        _row("Machine", f"{machine.name} ({machine.machine_id})"),
        _row("Work order", work_order.wo_number),
        {
            "type": "box",
            "layout": "horizontal",
            "margin": "sm",
            "contents": [
                {"type": "text", "text": "Priority", "size": "sm", "color": "#64748B", "flex": 2},
                {"type": "text", "text": work_order.priority, "size": "sm", "weight": "bold", "color": priority_color, "flex": 3},
            ],
        },
        _row("Scheduled", work_order.scheduled_start.strftime("%Y-%m-%d %H:%M")),
        {"type": "separator", "margin": "md"},
        {
            "type": "text",
            "text": work_order.description or work_order.title,
            "size": "sm",
            "color": "#E2E8F0",
            "wrap": True,
            "margin": "md",
        },
    ]

    def button(label: str, data: str, color: str, style: str) -> dict[str, Any]:
        return {
            "type": "button",
            "style": style,
            "color": color,
            "margin": "sm",
            "action": {"type": "postback", "label": label, "data": data, "displayText": label},
        }

    return {
        "type": "flex",
        "altText": f"Maintenance work order: {machine.name}",
        "contents": {
            "type": "bubble",
            "hero": _hero("Maintenance work order"),
            "body": {"type": "box", "layout": "vertical", "backgroundColor": "#0F172A", "contents": body},
            "footer": {
                "type": "box",
                "layout": "horizontal",
                "spacing": "sm",
                "backgroundColor": "#0F172A",
                "contents": [
                    button("Accept", f"accept_work:{work_order.wo_number}", "#10B981", "primary"),
                    button("Done", f"complete_work:{work_order.wo_number}", "#3B82F6", "secondary"),
                ],
            },
        },
    }


def alert_card(title: str, content: str, sent_at: datetime | None = None) -> dict[str, Any]:
    """General alert card for managers and supervisors."""
    stamp = (sent_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M UTC")
    return {
        "type": "flex",
        "altText": f"Alert: {title}",
        "contents": {
            "type": "bubble",
            "hero": _hero("System alert"),
            "body": {
                "type": "box",
                "layout": "vertical",
                "backgroundColor": "#0F172A",
                "contents": [
                    {"type": "text", "text": title, "weight": "bold", "size": "md", "color": "#FFFFFF", "wrap": True},
                    {"type": "text", "text": content, "size": "sm", "color": "#E2E8F0", "wrap": True, "margin": "md"},
                    _row("Time", stamp),
                ],
            },
        },
    }
