# tests/test_notification.py
"""Tests for operator callback notifications (formatting, channels, notifier)."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from removals.core.calculator.domain import CalcStep, FurnitureDetails, PropertySize, ServiceType
from removals.core.calculator.engine import compute_quote, submission_payload
from removals.core.calculator.escalation import CallbackDecision
from removals.infra.notification_channels import (
    DisabledChannel,
    EmailChannel,
    OperatorNotification,
    TelegramChannel,
    WhatsAppChannel,
    _whatsapp_address,
    get_notification_channel,
    send_with_metrics,
)
from removals.infra.notification_service import OperatorCallbackNotifier, format_callback_message


def _callback_payload(state):
    state.tracking.session_id = "abcdef1234567890"
    quote = compute_quote(state)
    return submission_payload(state, quote)


@pytest.fixture
def large_home_state(completed_home_state):
    completed_home_state.property_size = PropertySize.FIVE_BED_PLUS
    completed_home_state.current_step = CalcStep.CALLBACK
    return completed_home_state


def _notification(body="hello"):
    return OperatorNotification(session_id="abcdef1234567890", subject="Callback", body=body)


# ============================================================================
# format_callback_message
# ============================================================================

class TestFormatCallbackMessage:
    def test_large_property(self, large_home_state):
        text = format_callback_message(_callback_payload(large_home_state))

        assert "Reason: Large property" in text
        assert "Name: Sam Taylor" in text
        assert "Phone: 07700900123" in text
        assert "Property: 5bed-plus" in text
        assert "Estimated volume: 2500 cubes" in text
        assert "From: 1 High Street, Bristol, BS1 4DJ" in text
        assert "Date: 2026-04-15" in text
        assert "Session: abcdef1234567890" in text

    def test_specialist_items(self, completed_home_state):
        state = completed_home_state
        state.service_type = ServiceType.CLEARANCE
        state.property_size = None
        state.furniture = FurnitureDetails(
            item_count=2,
            specialist_items=["piano", "other"],
            other_specialist_description="Pipe organ",
        )
        state.current_step = CalcStep.CALLBACK

        text = format_callback_message(_callback_payload(state))

        assert "Reason: Specialist items" in text
        assert "Service: Furniture only" in text
        assert "specialist: Piano / Grand Piano, Other specialist item" in text
        assert "Other: Pipe organ" in text

    def test_html_escapes_customer_text(self, large_home_state):
        large_home_state.contact.first_name = "<b>Sam</b>"
        text = format_callback_message(_callback_payload(large_home_state), use_html=True)
        assert "&lt;b&gt;Sam&lt;/b&gt;" in text

    def test_source_from_gclid(self, large_home_state):
        large_home_state.tracking.gclid = "gclid-123"
        text = format_callback_message(_callback_payload(large_home_state))
        assert "Source: google ads" in text


# ============================================================================
# Channels
# ============================================================================

class TestWhatsAppAddress:
    def test_adds_prefix_and_plus(self):
        assert _whatsapp_address("447700900123") == "whatsapp:+447700900123"

    def test_existing_prefix(self):
        assert _whatsapp_address("whatsapp:+447700900123") == "whatsapp:+447700900123"


class TestGetNotificationChannel:
    def test_disabled(self):
        with patch("removals.infra.notification_channels.settings") as mock_settings:
            mock_settings.operator_notifications_enabled = False
            assert isinstance(get_notification_channel(), DisabledChannel)

    @pytest.mark.parametrize("name,cls", [
        ("telegram", TelegramChannel),
        ("whatsapp", WhatsAppChannel),
        ("email", EmailChannel),
    ])
    def test_selected_channel(self, name, cls):
        with patch("removals.infra.notification_channels.settings") as mock_settings:
            mock_settings.operator_notifications_enabled = True
            mock_settings.operator_notification_channel = name
            assert isinstance(get_notification_channel(), cls)

    def test_unknown_channel(self):
        with patch("removals.infra.notification_channels.settings") as mock_settings:
            mock_settings.operator_notifications_enabled = True
            mock_settings.operator_notification_channel = "pigeon"
            assert isinstance(get_notification_channel(), DisabledChannel)


class TestDisabledChannel:
    @pytest.mark.asyncio
    async def test_send_reports_not_delivered(self):
        assert await DisabledChannel().send(_notification()) is False


class TestTelegramChannel:
    def _session(self, status=200, json_data=None):
        resp = AsyncMock()
        resp.status = status
        resp.json = AsyncMock(return_value=json_data if json_data is not None else {"ok": True})
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(return_value=resp)
        ctx.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.post = MagicMock(return_value=ctx)
        return session

    @pytest.mark.asyncio
    async def test_not_configured(self):
        with patch("removals.infra.notification_channels.settings") as mock_settings:
            mock_settings.telegram_bot_token = None
            mock_settings.telegram_chat_id = None
            assert await TelegramChannel().send(_notification()) is False

    @pytest.mark.asyncio
    async def test_send_success(self):
        session = self._session()
        with patch("removals.infra.notification_channels.settings") as mock_settings, \
                patch("removals.infra.notification_channels.get_default_session", return_value=session):
            mock_settings.telegram_bot_token = "123:abc"
            mock_settings.telegram_chat_id = "-100200"
            assert await TelegramChannel().send(_notification("Callback!")) is True

        url = session.post.call_args[0][0]
        payload = session.post.call_args[1]["json"]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload["chat_id"] == "-100200"
        assert payload["text"] == "Callback!"
        assert payload["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_api_error(self):
        session = self._session(json_data={"ok": False, "error_code": 400})
        with patch("removals.infra.notification_channels.settings") as mock_settings, \
                patch("removals.infra.notification_channels.get_default_session", return_value=session):
            mock_settings.telegram_bot_token = "123:abc"
            mock_settings.telegram_chat_id = "-100200"
            assert await TelegramChannel().send(_notification()) is False


class TestWhatsAppChannel:
    @pytest.mark.asyncio
    async def test_send_via_twilio(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(sid="SM1234567890")

        with patch("removals.infra.notification_channels.settings") as mock_settings, \
                patch("removals.infra.notification_channels._get_twilio_client", return_value=client):
            mock_settings.twilio_phone_number = "+441170000000"
            mock_settings.twilio_account_sid = "AC123"
            mock_settings.twilio_auth_token = "token"
            channel = WhatsAppChannel(operator_whatsapp="+447700900123")
            assert await channel.send(_notification("Call back")) is True

        kwargs = client.messages.create.call_args[1]
        assert kwargs["to"] == "whatsapp:+447700900123"
        assert kwargs["from_"] == "whatsapp:+441170000000"
        assert kwargs["body"] == "Call back"

    @pytest.mark.asyncio
    async def test_twilio_failure(self):
        client = MagicMock()
        client.messages.create.side_effect = RuntimeError("twilio down")

        with patch("removals.infra.notification_channels.settings") as mock_settings, \
                patch("removals.infra.notification_channels._get_twilio_client", return_value=client):
            mock_settings.twilio_phone_number = "+441170000000"
            mock_settings.twilio_account_sid = "AC123"
            mock_settings.twilio_auth_token = "token"
            channel = WhatsAppChannel(operator_whatsapp="+447700900123")
            assert await channel.send(_notification()) is False


class TestSendWithMetrics:
    @pytest.mark.asyncio
    async def test_records_outcome(self):
        channel = DisabledChannel()
        with patch("removals.infra.notification_channels.AppMetrics") as metrics:
            assert await send_with_metrics(channel, _notification()) is False
        metrics.notification_sent.assert_called_once_with("disabled", False)


# ============================================================================
# OperatorCallbackNotifier
# ============================================================================

class TestOperatorCallbackNotifier:
    @pytest.mark.asyncio
    async def test_sends_formatted_message(self, large_home_state):
        channel = MagicMock()
        channel.name = "telegram"
        channel.send = AsyncMock(return_value=True)
        payload = _callback_payload(large_home_state)
        decision = CallbackDecision(required=True, reasons=("large_property",))

        notifier = OperatorCallbackNotifier(channel=channel)
        assert await notifier.notify(large_home_state, decision, payload) is True

        notification = channel.send.call_args[0][0]
        assert notification.session_id == "abcdef1234567890"
        assert notification.subject == "Callback request: Large property (Sam Taylor)"
        assert "Reason: Large property" in notification.body
        assert notification.metadata == {"reasons": ["large_property"]}

    @pytest.mark.asyncio
    async def test_channel_exception_returns_false(self, large_home_state):
        channel = MagicMock()
        channel.name = "email"
        channel.send = AsyncMock(side_effect=RuntimeError("smtp exploded"))
        decision = CallbackDecision(required=True, reasons=("large_property",))

        notifier = OperatorCallbackNotifier(channel=channel)
        result = await notifier.notify(large_home_state, decision, _callback_payload(large_home_state))
        assert result is False
