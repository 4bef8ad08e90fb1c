"""
Notifier — tells the right people what happened, then closes the session.

Recipients:
    PLANT_MANAGER     CRITICAL severity, human approval required, or a
                      diagnosis that was too uncertain to plan
    TECHNICIAN        a work order exists (the assigned technician)
    MAINTENANCE_HEAD  a work order exists

Each recipient is resolved against the employees directory.  Resolved
contacts with a LINE id get a LINE message; everyone else gets a
DASHBOARD notification.  Delivery is best-effort: a DeliveryError is
logged and the notification stays undelivered.
"""

from __future__ import annotations

from dataclasses import replace

from app.core.constants import (
    END,
    Channel,
    EmployeeRole,
    MessageType,
    Priority,
    RecipientType,
    ResultKind,
    SafetyDecision,
    Severity,
    StageName,
)
from app.integrations.line_messaging import alert_card, work_order_card
from app.pipeline.errors import DeliveryError
from app.pipeline.models import Contact, Notification
from app.pipeline.outcome import summarize
from app.pipeline.prompts import NOTIFIER_SYSTEM_PROMPT, notifier_prompt
from app.pipeline.schemas import DraftMessage, NotifierResponse
from app.pipeline.stage import PipelineStage, ThinkingTrail, decision_path
from app.pipeline.state import PipelineState, StateUpdate

MANAGER_ROLES = (EmployeeRole.MANAGER, EmployeeRole.SUPERVISOR)

MESSAGE_TYPES = {
    RecipientType.TECHNICIAN: MessageType.WORK_ORDER,
    RecipientType.MAINTENANCE_HEAD: MessageType.STATUS_UPDATE,
    RecipientType.PLANT_MANAGER: MessageType.ALERT,
}


def plan_recipients(state: PipelineState) -> list[RecipientType]:
    severity = state.anomaly_details.severity if state.anomaly_details else None
    needs_human = state.safety_approval is not None and state.safety_approval.requires_human_approval
    unplanned = state.diagnosis is not None and state.work_order is None

    recipients: list[RecipientType] = []
    if severity == Severity.CRITICAL or needs_human or unplanned:
        recipients.append(RecipientType.PLANT_MANAGER)
    if state.work_order is not None:
        recipients.append(RecipientType.TECHNICIAN)
        recipients.append(RecipientType.MAINTENANCE_HEAD)
    return recipients or [RecipientType.PLANT_MANAGER]


def default_message(recipient: RecipientType, state: PipelineState) -> DraftMessage:
    """Plain message used when the reasoning service drafts nothing for a recipient."""
    machine = state.machine.name
    anomaly = state.anomaly_details
    wo = state.work_order
    headline = f"{anomaly.type} ({anomaly.severity})" if anomaly else "Anomaly"

    if recipient == RecipientType.TECHNICIAN and wo is not None:
        return DraftMessage(
            recipient_type=recipient,
            title=f"Work order {wo.wo_number}: {machine}",
            content=f"{wo.title}. Scheduled {wo.scheduled_start:%Y-%m-%d %H:%M}.",
            priority=wo.priority,
        )

    lines = [f"{headline} on {machine}."]
    if state.diagnosis is not None:
        lines.append(f"Root cause: {state.diagnosis.root_cause} ({state.diagnosis.confidence}% confidence).")
    if wo is not None:
        lines.append(f"Work order {wo.wo_number} assigned to {wo.assigned_technician}.")
    if state.safety_approval is not None and state.safety_approval.decision != SafetyDecision.APPROVED:
        lines.append(f"Safety decision: {state.safety_approval.decision}. Your approval is needed.")
    elif state.diagnosis is not None and wo is None:
        lines.append("Diagnosis confidence too low to plan automatically. Please review.")

    return DraftMessage(
        recipient_type=recipient,
        title=f"Maintenance alert: {machine}",
        content=" ".join(lines),
        priority=Priority.URGENT if anomaly and anomaly.severity == Severity.CRITICAL else Priority.HIGH,
    )


class Notifier(PipelineStage):
    """Message drafting, recipient resolution, delivery and session close."""

    name = StageName.NOTIFIER
    description = "Notify stakeholders and finalize the session"

    async def execute(self, state: PipelineState) -> StateUpdate:
        started_at = self._now()
        trail = ThinkingTrail()

        await self._progress(state, "Deciding who needs to be informed", 90)
        recipients = plan_recipients(state)
        trail.add(
            "Who needs to know about this run?",
            f"severity={state.anomaly_details.severity if state.anomaly_details else None}, "
            f"work order={'yes' if state.work_order else 'no'}, "
            f"safety={state.safety_approval.decision if state.safety_approval else None}",
            f"Notify {', '.join(recipients)}.",
        )

        await self._progress(state, "Drafting messages", 92)
        outcome = await self._consult(
            state,
            NOTIFIER_SYSTEM_PROMPT,
            notifier_prompt([str(r) for r in recipients], summarize(state) | {
                "machine": state.machine.to_dict(),
                "diagnosis": state.diagnosis.to_dict() if state.diagnosis else None,
                "work_order": state.work_order.to_dict() if state.work_order else None,
                "safety_approval": state.safety_approval.to_dict() if state.safety_approval else None,
            }),
            NotifierResponse,
        )

        if outcome.used_fallback:
            drafts = [default_message(RecipientType.PLANT_MANAGER, state)]
            analysis = None
            trail.add(
                "Reasoning service unavailable; send one generic alert.",
                outcome.fallback_reason or "",
                "Alert the plant manager only.",
            )
        else:
            trail.extend(outcome.response)
            drafted = {m.recipient_type: m for m in outcome.response.messages}
            drafts = [drafted.get(r) or default_message(r, state) for r in recipients]
            analysis = outcome.response.decision_analysis

        await self._progress(state, "Resolving recipients", 94)
        planned: list[Notification] = []
        for draft in drafts:
            contact = await self._resolve(draft.recipient_type, state)
            notification = Notification(
                recipient_type=draft.recipient_type,
                recipient_name=contact.name if contact else str(draft.recipient_type),
                channel=Channel.LINE if contact and contact.line_user_id else Channel.DASHBOARD,
                message_type=MESSAGE_TYPES[draft.recipient_type],
                title=draft.title,
                content=draft.content,
                priority=draft.priority,
                recipient_address=contact.line_user_id if contact else None,
            )
            planned.append(notification)

        action = f"{len(planned)} notification(s) prepared"
        reasoning = (
            outcome.response.reasoning
            if outcome.response is not None and outcome.response.reasoning
            else f"Notified {', '.join(n.recipient_type for n in planned)}."
        )
        entry = self._entry(
            state,
            started_at=started_at,
            action=action,
            decision=f"NOTIFY {len(planned)}",
            next_stage=END,
            reasoning=reasoning,
            trail=trail,
            input_data={"recipients": [str(r) for r in recipients]},
            output_data={"notifications": [n.to_dict() for n in planned]},
            decision_path=decision_path(
                "Which stakeholders must be informed?",
                ", ".join(str(r) for r in recipients),
                analysis,
                reasoning,
            ),
        )

        await self._progress(state, "Sending notifications", 96)
        await self._record(entry)

        notifications = tuple([await self._deliver(n, state) for n in planned])

        summary = summarize(state, notifications)
        await self.services.sessions.complete(state.session_id, summary)

        return self._update(
            "Pipeline completed",
            100,
            entry,
            notifications=notifications,
        )

    async def _resolve(self, recipient: RecipientType, state: PipelineState) -> Contact | None:
        store = self.services.store
        if recipient == RecipientType.TECHNICIAN:
            name = state.work_order.assigned_technician if state.work_order else None
            if not name:
                return None
            return await store.find_contact(name, (EmployeeRole.TECHNICIAN,))
        return await store.find_contact(None, MANAGER_ROLES)

    async def _deliver(self, notification: Notification, state: PipelineState) -> Notification:
        """Persist one notification and, for LINE, push it."""
        notification_id = await self.services.store.save_result(
            ResultKind.NOTIFICATION, state.session_id, state.machine_id, notification
        )
        notification = replace(notification, notification_id=notification_id)

        if notification.channel != Channel.LINE or not notification.recipient_address:
            return notification

        if notification.message_type == MessageType.WORK_ORDER and state.work_order is not None:
            message = work_order_card(state.work_order, state.machine)
        else:
            message = alert_card(notification.title, notification.content)

        try:
            message_id = await self.services.messenger.deliver(notification.recipient_address, message)
        except DeliveryError as exc:
            self.logger.warning(
                "Notification delivery failed",
                session_id=state.session_id,
                notification_id=notification_id,
                recipient=notification.recipient_name,
                error=str(exc),
            )
            return notification

        sent_at = self._now()
        await self.services.store.mark_notification_sent(notification_id, message_id, sent_at)
        return replace(notification, delivered=True, delivery_message_id=message_id, sent_at=sent_at)
