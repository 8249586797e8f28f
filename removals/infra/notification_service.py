# removals/infra/notification_service.py
"""
Operator callback notifications.

``OperatorCallbackNotifier`` implements the ``CallbackNotifier`` port: it
formats the submission payload of an escalated session into a short
operator message and sends it through the configured channel.

Configure via settings:
- OPERATOR_NOTIFICATIONS_ENABLED: bool (master switch)
- OPERATOR_NOTIFICATION_CHANNEL: "whatsapp" | "telegram" | "email"
"""
from __future__ import annotations

import html
from typing import Any

from removals.core.calculator.domain import CalculatorState
from removals.core.calculator.escalation import (
    REASON_LARGE_PROPERTY,
    REASON_SPECIALIST_ITEMS,
    REASON_UNRESOLVED_OVERRIDE,
    CallbackDecision,
)
from removals.core.calculator.rates import COMPANY, SPECIALIST_ITEMS
from removals.infra.logging_config import get_logger, mask_email, mask_phone
from removals.infra.notification_channels import (
    NotificationChannel,
    OperatorNotification,
    get_notification_channel,
    send_with_metrics,
)

logger = get_logger(__name__)

REASON_LABELS = {
    REASON_SPECIALIST_ITEMS: "Specialist items",
    REASON_LARGE_PROPERTY: "Large property",
    REASON_UNRESOLVED_OVERRIDE: "Crew override not resolved",
}

_SERVICE_LABELS = {
    "home": "Home removal",
    "office": "Office removal",
    "clearance": "Furniture only",
}


def _size_line(payload: dict[str, Any]) -> str:
    if payload.get("property_size"):
        return f"Property: {payload['property_size']}"
    if payload.get("office_size"):
        return f"Office: {payload['office_size']}"
    furniture = payload.get("furniture") or {}
    if furniture:
        line = f"Items: {furniture.get('item_count', 0)}"
        specialist = [SPECIALIST_ITEMS.get(tag, tag) for tag in furniture.get("specialist_items") or []]
        if specialist:
            line += f" (specialist: {', '.join(specialist)})"
        if furniture.get("other_specialist_description"):
            line += f"\nOther: {furniture['other_specialist_description']}"
        return line
    return "Size: not given"


def format_callback_message(payload: dict[str, Any], *, use_html: bool = False) -> str:
    """
    Operator-facing summary of an escalated session.

    ``use_html`` escapes customer text for Telegram's HTML parse mode.
    """
    esc = html.escape if use_html else (lambda s: s)
    contact = payload.get("contact") or {}

    reasons = [REASON_LABELS.get(r, r) for r in payload.get("callback_reasons") or []]
    name = f"{contact.get('first_name', '')} {contact.get('last_name', '')}".strip() or "unknown"

    lines = [
        f"Callback requested: {COMPANY['name']}",
        f"Reason: {', '.join(reasons) or 'unspecified'}",
        "",
        f"Name: {esc(name)}",
        f"Phone: {esc(contact.get('phone') or '-')}",
        f"Email: {esc(contact.get('email') or '-')}",
        "",
        f"Service: {_SERVICE_LABELS.get(payload.get('service_type'), payload.get('service_type') or '-')}",
        esc(_size_line(payload)),
        f"Estimated volume: {payload.get('estimated_cubes', 0)} cubes",
    ]

    if payload.get("from_address_formatted"):
        lines.append(f"From: {esc(payload['from_address_formatted'])}")
    if payload.get("to_address_formatted"):
        lines.append(f"To: {esc(payload['to_address_formatted'])}")
    if payload.get("selected_date"):
        lines.append(f"Date: {payload['selected_date']}")
    elif payload.get("date_flexibility"):
        lines.append(f"Date: {payload['date_flexibility']}")

    tracking = payload.get("tracking") or {}
    source = tracking.get("utm_source") or ("google ads" if tracking.get("gclid") else None)
    if source:
        lines.append(f"Source: {esc(source)}")

    lines.append(f"Session: {payload.get('session_id') or tracking.get('session_id') or '-'}")
    return "\n".join(lines)


class OperatorCallbackNotifier:
    """CallbackNotifier backed by a NotificationChannel."""

    def __init__(self, channel: NotificationChannel | None = None) -> None:
        self._channel = channel

    @property
    def channel(self) -> NotificationChannel:
        if self._channel is None:
            self._channel = get_notification_channel()
        return self._channel

    async def notify(self, state: CalculatorState, decision: CallbackDecision, payload: dict) -> bool:
        session_id = state.tracking.session_id or ""
        channel = self.channel

        try:
            notification = OperatorNotification(
                session_id=session_id,
                subject=(
                    f"Callback request: {REASON_LABELS.get(decision.primary_reason, 'quote')} "
                    f"({state.contact.full_name or 'unknown'})"
                ),
                body=format_callback_message(payload, use_html=channel.name == "telegram"),
                metadata={"reasons": list(decision.reasons)},
            )
            logger.info(
                f"Sending callback notification via {channel.name}",
                extra={
                    "session_id": session_id,
                    "channel": channel.name,
                    "phone": mask_phone(state.contact.phone),
                    "email": mask_email(state.contact.email),
                },
            )
            return await send_with_metrics(channel, notification)

        except Exception:
            logger.error(f"Failed to notify operator: session={session_id[:8]}", exc_info=True)
            return False
