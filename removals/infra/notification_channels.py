# removals/infra/notification_channels.py
"""
Notification channels for operator callback requests.

- WhatsApp  — Twilio REST client
- Telegram  — Bot API over the shared aiohttp session
- Email     — SMTP (blocking, run in the default executor)

Usage:
    channel = get_notification_channel()
    await channel.send(notification)
"""
from __future__ import annotations

import abc
import asyncio
import smtplib
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from typing import Any

import aiohttp

from removals.config import settings
from removals.infra.http_client import get_default_session
from removals.infra.logging_config import get_logger, mask_phone
from removals.infra.metrics import AppMetrics

logger = get_logger(__name__)


@dataclass
class OperatorNotification:
    session_id: str
    subject: str
    body: str
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationChannel(abc.ABC):

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Channel name for logging/metrics"""

    @abc.abstractmethod
    async def send(self, notification: OperatorNotification) -> bool:
        """True if delivered (or accepted by the provider), False otherwise."""

    @abc.abstractmethod
    def is_configured(self) -> bool:
        pass


def _whatsapp_address(raw: str) -> str:
    """Twilio expects ``whatsapp:+447700900123``."""
    clean = raw.replace("whatsapp:", "").strip()
    if not clean.startswith("+"):
        clean = f"+{clean}"
    return f"whatsapp:{clean}"


# Twilio client (lazy initialization)
_twilio_client = None


def _get_twilio_client():
    global _twilio_client
    if _twilio_client is None:
        if not settings.twilio_account_sid or not settings.twilio_auth_token:
            logger.error("Twilio credentials not configured")
            return None
        from twilio.rest import Client
        _twilio_client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
    return _twilio_client


class WhatsAppChannel(NotificationChannel):
    """WhatsApp message to the operator number through Twilio."""

    def __init__(self, operator_whatsapp: str | None = None) -> None:
        self._operator_whatsapp = operator_whatsapp or settings.operator_whatsapp

    @property
    def name(self) -> str:
        return "whatsapp"

    def is_configured(self) -> bool:
        return bool(
            self._operator_whatsapp
            and settings.twilio_phone_number
            and settings.twilio_account_sid
            and settings.twilio_auth_token
        )

    async def send(self, notification: OperatorNotification) -> bool:
        if not self.is_configured():
            logger.warning("WhatsApp channel not configured")
            return False

        client = _get_twilio_client()
        if client is None:
            return False

        dest_masked = mask_phone(self._operator_whatsapp)
        try:
            # twilio's REST client is synchronous
            result = await asyncio.to_thread(
                client.messages.create,
                from_=_whatsapp_address(settings.twilio_phone_number),
                to=_whatsapp_address(self._operator_whatsapp),
                body=notification.body,
            )
        except Exception as exc:
            logger.error(
                f"Twilio send failed: {exc}",
                extra={"session_id": notification.session_id, "error_code": getattr(exc, "code", None)},
                exc_info=True,
            )
            return False

        logger.info(
            f"WhatsApp notification sent: sid={result.sid[:8]}***, dest={dest_masked}",
            extra={"session_id": notification.session_id},
        )
        return True


class TelegramChannel(NotificationChannel):

    TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/{method}"

    @property
    def name(self) -> str:
        return "telegram"

    def is_configured(self) -> bool:
        return bool(settings.telegram_bot_token and settings.telegram_chat_id)

    async def send(self, notification: OperatorNotification) -> bool:
        if not self.is_configured():
            logger.warning("Telegram channel not configured")
            return False

        url = self.TELEGRAM_API_URL.format(token=settings.telegram_bot_token, method="sendMessage")
        payload = {
            "chat_id": settings.telegram_chat_id,
            "text": notification.body,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            session = get_default_session()
            async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=30)) as resp:
                if resp.status != 200:
                    logger.error(f"Telegram API error: status={resp.status}")
                    return False
                result = await resp.json()
                if not result.get("ok"):
                    logger.error(f"Telegram API error: ok=false, error_code={result.get('error_code')}")
                    return False

        except TimeoutError:
            logger.warning("Telegram notification timeout", extra={"session_id": notification.session_id})
            return False

        except aiohttp.ClientError as exc:
            logger.warning(f"Telegram network error: {exc}", extra={"session_id": notification.session_id})
            return False

        logger.info(
            f"Telegram notification sent: session={notification.session_id[:8]}",
            extra={"session_id": notification.session_id},
        )
        return True


class EmailChannel(NotificationChannel):

    @property
    def name(self) -> str:
        return "email"

    def is_configured(self) -> bool:
        return bool(settings.smtp_host and settings.operator_email)

    async def send(self, notification: OperatorNotification) -> bool:
        if not self.is_configured():
            logger.warning("Email channel not configured")
            return False

        msg = MIMEText(notification.body, "plain", "utf-8")
        msg["From"] = settings.smtp_user or settings.operator_email
        msg["To"] = settings.operator_email
        msg["Subject"] = notification.subject

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._send_smtp, msg)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error(
                f"Email notification failed: {type(exc).__name__}",
                extra={"session_id": notification.session_id},
                exc_info=True,
            )
            return False

        logger.info(
            f"Email notification sent: session={notification.session_id[:8]}",
            extra={"session_id": notification.session_id},
        )
        return True

    def _send_smtp(self, msg) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)


class DisabledChannel(NotificationChannel):

    @property
    def name(self) -> str:
        return "disabled"

    def is_configured(self) -> bool:
        return True

    async def send(self, notification: OperatorNotification) -> bool:
        logger.debug(f"Notifications disabled, skipping: session={notification.session_id[:8]}")
        return False


_CHANNELS: dict[str, type[NotificationChannel]] = {
    "whatsapp": WhatsAppChannel,
    "telegram": TelegramChannel,
    "email": EmailChannel,
}


def get_notification_channel() -> NotificationChannel:
    """Channel selected by settings; DisabledChannel when switched off or unknown."""
    if not settings.operator_notifications_enabled:
        logger.info("Operator notifications disabled")
        return DisabledChannel()

    channel_name = settings.operator_notification_channel
    if channel_name not in _CHANNELS:
        logger.error(f"Unknown notification channel: {channel_name}")
        return DisabledChannel()

    channel = _CHANNELS[channel_name]()
    if not channel.is_configured():
        logger.warning(f"Notification channel '{channel_name}' not configured, notifications will fail")
    return channel


async def send_with_metrics(channel: NotificationChannel, notification: OperatorNotification) -> bool:
    success = await channel.send(notification)
    AppMetrics.notification_sent(channel.name, success)
    return success
