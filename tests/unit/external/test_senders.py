"""
Unit tests for the email, SMS and push senders.

SMTP is patched; HTTP channels run against httpx.MockTransport.
"""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from reservoir_monitor.application.services.notification_dispatcher import (
    build_digest,
    build_notification,
)
from reservoir_monitor.config import PushSettings, SMSSettings, SMTPSettings
from reservoir_monitor.domain.entities.alert import Severity
from reservoir_monitor.domain.entities.notification import Frequency
from reservoir_monitor.infrastructure.external.push_service import HttpPushService
from reservoir_monitor.infrastructure.external.sms_gateway import (
    MAX_SMS_LENGTH,
    HttpSmsGateway,
    format_sms,
)
from reservoir_monitor.infrastructure.external.smtp_email_service import SMTPEmailSender

from ...factories import AlertFactory

SMTP_PATH = "reservoir_monitor.infrastructure.external.smtp_email_service.aiosmtplib.SMTP"


@pytest.fixture
def message():
    return build_notification(AlertFactory(severity=Severity.HIGH))


@pytest.fixture
def smtp_settings():
    return SMTPSettings(enabled=True, host="mail.test", user="alerts", password="secret")


def mock_smtp(smtp_cls):
    smtp = MagicMock()
    smtp.login = AsyncMock()
    smtp.send_message = AsyncMock()
    smtp_cls.return_value.__aenter__ = AsyncMock(return_value=smtp)
    smtp_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return smtp


class TestSMTPEmailSender:
    """Test email delivery."""

    @pytest.mark.asyncio
    async def test_send(self, smtp_settings, message):
        """Test the email is sent after logging in."""
        sender = SMTPEmailSender(smtp_settings)
        with patch(SMTP_PATH) as smtp_cls:
            smtp = mock_smtp(smtp_cls)

            assert await sender.send("tech@example.com", message) is True

        assert smtp_cls.call_args.kwargs["hostname"] == "mail.test"
        smtp.login.assert_awaited_once_with("alerts", "secret")
        sent = smtp.send_message.call_args.args[0]
        assert sent["To"] == "tech@example.com"
        assert sent["Subject"] == message.subject

    @pytest.mark.asyncio
    async def test_disabled(self, message):
        """Test nothing is sent when email is disabled."""
        sender = SMTPEmailSender(SMTPSettings(enabled=False))
        with patch(SMTP_PATH) as smtp_cls:
            assert await sender.send("tech@example.com", message) is False
        smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_error(self, smtp_settings, message):
        """Test an SMTP failure is reported as an unsuccessful send."""
        sender = SMTPEmailSender(smtp_settings)
        with patch(SMTP_PATH) as smtp_cls:
            smtp = mock_smtp(smtp_cls)
            smtp.send_message.side_effect = aiosmtplib.SMTPException("mailbox full")

            assert await sender.send("tech@example.com", message) is False

    def test_alert_body(self, smtp_settings, message):
        """Test the alert email carries plain and HTML parts with the alert text."""
        email = SMTPEmailSender(smtp_settings).build_message("tech@example.com", message)

        plain, html = [part.get_payload(decode=True).decode("utf-8") for part in email.get_payload()]
        assert message.body in plain
        assert "North Reservoir" in html

    def test_digest_body(self, smtp_settings, message):
        """Test digests list every queued notification."""
        digest = build_digest([message, message], Frequency.DAILY)

        email = SMTPEmailSender(smtp_settings).build_message("tech@example.com", digest)

        plain = email.get_payload()[0].get_payload(decode=True).decode("utf-8")
        assert plain.count(message.subject) == 2


class TestHttpChannels:
    """Test SMS and push over HTTP."""

    @pytest.mark.asyncio
    async def test_sms_payload(self, message):
        """Test the SMS gateway receives recipient, sender id and text."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202, json={"id": "m-1"})

        settings = SMSSettings(base_url="http://sms.test", send_path="/messages", api_key="k")
        client = httpx.AsyncClient(base_url=settings.base_url, transport=httpx.MockTransport(handler))
        gateway = HttpSmsGateway(settings, client=client)

        assert await gateway.send("+15550001", message) is True

        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/messages"
        assert body == {"to": "+15550001", "from": "RESERVOIR", "text": format_sms(message)}
        await gateway.close()

    @pytest.mark.asyncio
    async def test_push_payload(self, message):
        """Test push notifications go to the topic with high priority for HIGH alerts."""
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200)

        settings = PushSettings(base_url="http://push.test")
        client = httpx.AsyncClient(base_url=settings.base_url, transport=httpx.MockTransport(handler))
        push = HttpPushService(settings, client=client)

        assert await push.send("site-site-1", message) is True

        assert requests[0]["topic"] == "site-site-1"
        assert requests[0]["priority"] == "high"
        assert requests[0]["data"]["alert_id"] == str(message.alert_id)
        await push.close()

    @pytest.mark.asyncio
    async def test_provider_error(self, message):
        """Test a non-2xx response is an unsuccessful send."""
        client = httpx.AsyncClient(
            base_url="http://push.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="oops")),
        )
        push = HttpPushService(PushSettings(), client=client)

        assert await push.send("site-site-1", message) is False
        await push.close()

    @pytest.mark.asyncio
    async def test_connection_error(self, message):
        """Test a transport failure is an unsuccessful send."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(base_url="http://sms.test", transport=httpx.MockTransport(handler))
        gateway = HttpSmsGateway(SMSSettings(), client=client)

        assert await gateway.send("+15550001", message) is False
        await gateway.close()

    def test_sms_is_truncated(self):
        """Test long SMS texts are cut to the segment limit."""
        alert = AlertFactory(message="x" * 500)
        text = format_sms(build_notification(alert, escalated=True))

        assert len(text) == MAX_SMS_LENGTH
        assert text.startswith("ESCALATED [HIGH] ")
        assert text.endswith("...")
