"""
Unit tests for the payment gateway adapter, email delivery, formatting helpers
and the background dispatcher
"""
import asyncio
import json
import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import httpx
from python_http_client.exceptions import UnauthorizedError
import pytest

from donation_portal.core.errors import BadGatewayError, ServiceUnavailableError
from donation_portal.services.background import BackgroundDispatcher
from donation_portal.services.email import EmailService
from donation_portal.services.email_sender import EmailSender
from donation_portal.services.formatting import format_inr, format_long_date
from donation_portal.services.payment_gateway import RazorpayGateway, compute_signature


def _gateway(handler=None, **overrides) -> RazorpayGateway:
    options = {
        "key_id": "rzp_test_key",
        "key_secret": "rzp_test_secret",
        "api_url": "https://api.razorpay.test/v1",
        "mock": False,
        "transport": httpx.MockTransport(handler) if handler else None,
    }
    options.update(overrides)
    return RazorpayGateway(**options)


# ============================================================================
# PAYMENT GATEWAY TESTS
# ============================================================================

class TestSignature:
    """HMAC checkout signature verification"""

    def test_known_vector(self):
        signature = compute_signature("order_1", "pay_1", "secret")
        assert signature == compute_signature("order_1", "pay_1", "secret")
        assert len(signature) == 64

    def test_valid_signature_accepted(self):
        gateway = _gateway()
        assert gateway.verify_signature("order_1", "pay_1", compute_signature("order_1", "pay_1", "rzp_test_secret"))

    def test_signature_bound_to_payment(self):
        gateway = _gateway()
        signature = compute_signature("order_1", "pay_1", "rzp_test_secret")
        assert not gateway.verify_signature("order_1", "pay_2", signature)

    def test_wrong_secret_rejected(self):
        gateway = _gateway()
        assert not gateway.verify_signature("order_1", "pay_1", compute_signature("order_1", "pay_1", "other"))

    def test_missing_secret_rejects_everything(self):
        gateway = _gateway(key_secret="")
        assert not gateway.verify_signature("order_1", "pay_1", "anything")

    def test_mock_mode_accepts_everything(self):
        gateway = _gateway(mock=True)
        assert gateway.verify_signature("order_1", "pay_1", "anything")


class TestGatewayOrders:
    """Order creation against the gateway API"""

    @pytest.mark.asyncio
    async def test_mock_order_needs_no_network(self):
        gateway = _gateway(mock=True, key_id="", key_secret="")

        order = await gateway.create_order(250, "user-1")

        assert order["id"].startswith("order_")
        assert order["id"].endswith("_user-1")
        assert order["amount"] == 25000
        assert gateway.public_key is None

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        gateway = _gateway(key_id="", key_secret="")

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await gateway.create_order(100, "user-1")
        assert exc_info.value.message == "Payment gateway not configured"

    @pytest.mark.asyncio
    async def test_gateway_rejection_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "The amount must be at least INR 1.00"}})

        with pytest.raises(BadGatewayError) as exc_info:
            await _gateway(handler).create_order(100, "user-1")
        assert "at least INR 1.00" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unreachable_gateway(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(BadGatewayError):
            await _gateway(handler).create_order(100, "user-1")

    @pytest.mark.asyncio
    async def test_order_payload(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"id": "order_abc", "amount": seen["amount"], "currency": "INR"})

        order = await _gateway(handler).create_order(1234, "user-1")

        assert order["id"] == "order_abc"
        assert seen["amount"] == 123400
        assert seen["currency"] == "INR"
        assert seen["payment_capture"] == 1


# ============================================================================
# EMAIL TESTS
# ============================================================================

class TestEmailSender:
    """Provider dispatch; failures come back in the result"""

    @pytest.mark.asyncio
    async def test_log_provider_succeeds(self):
        result = await EmailSender(provider="log").send("a@example.com", "Hi", "<p>Hi</p>")

        assert result.success
        assert result.provider == "log"

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        result = await EmailSender(provider="pigeon").send("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success

    @pytest.mark.asyncio
    async def test_smtp_without_credentials_fails_softly(self):
        result = await EmailSender(provider="smtp").send("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success
        assert result.error == "Email not configured"

    @pytest.mark.asyncio
    async def test_smtp_errors_are_reported(self):
        sender = EmailSender(provider="smtp", smtp_host="smtp.test", smtp_username="user", smtp_password="pass")

        with patch("donation_portal.services.email_sender.smtplib.SMTP") as smtp_cls:
            server = MagicMock()
            server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
            smtp_cls.return_value.__enter__.return_value = server

            result = await sender.send("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success
        server.starttls.assert_called_once()

    @pytest.mark.asyncio
    async def test_smtp_ssl_port(self):
        sender = EmailSender(
            provider="smtp", smtp_host="smtp.test", smtp_port=465, smtp_username="user", smtp_password="pass"
        )

        with patch("donation_portal.services.email_sender.smtplib.SMTP_SSL") as ssl_cls:
            server = MagicMock()
            ssl_cls.return_value.__enter__.return_value = server

            result = await sender.send("a@example.com", "Hi", "<p>Hi</p>")

        assert result.success
        server.send_message.assert_called_once()
        server.starttls.assert_not_called()

    @pytest.mark.asyncio
    async def test_sendgrid_request(self):
        sender = EmailSender(provider="sendgrid", sendgrid_api_key="SG.key", from_email="hello@example.org")

        with patch("donation_portal.services.email_sender.SendGridAPIClient") as client_cls:
            result = await sender.send("a@example.com", "Hi", "<p>Hi</p>")

        assert result.success
        client_cls.assert_called_once_with("SG.key")
        message = client_cls.return_value.send.call_args.args[0].get()
        assert message["personalizations"][0]["to"][0]["email"] == "a@example.com"
        assert message["from"]["email"] == "hello@example.org"
        assert message["content"][0] == {"type": "text/html", "value": "<p>Hi</p>"}

    @pytest.mark.asyncio
    async def test_sendgrid_error_status(self):
        sender = EmailSender(provider="sendgrid", sendgrid_api_key="SG.key")

        with patch("donation_portal.services.email_sender.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.side_effect = UnauthorizedError(401, "Unauthorized", b"bad key", {})

            result = await sender.send("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success
        assert "401" in result.error

    @pytest.mark.asyncio
    async def test_sendgrid_without_key(self):
        result = await EmailSender(provider="sendgrid").send("a@example.com", "Hi", "<p>Hi</p>")

        assert not result.success
        assert result.error == "SENDGRID_API_KEY not set"


class TestEmailTemplates:
    """HTML rendering"""

    def _service(self):
        return EmailService(
            sender=EmailSender(provider="log"),
            foundation_name="Hope Foundation",
            foundation_address="Mumbai",
            frontend_url="https://donate.example.org",
        )

    def test_confirmation_uses_indian_grouping(self):
        html = self._service().render_confirmation("Asha", 150000, "Clean Water", "don-1")

        assert "1,50,000" in html
        assert "Clean Water" in html
        assert "Hope Foundation" in html

    def test_confirmation_escapes_names(self):
        html = self._service().render_confirmation("<script>", 10, "Water & Sanitation", "don-1")

        assert "<script>" not in html
        assert "Water &amp; Sanitation" in html

    def test_progress_report_sections(self):
        program = {
            "programName": "Clean Water",
            "description": "Wells",
            "targetAmount": 100000,
            "fundsReceived": 25000,
            "fundsUtilized": 5000,
            "remaining": 75000,
            "progressPercentage": 25.0,
            "utilizationRate": 20.0,
            "donorContribution": 350,
            "status": "active",
        }

        html = self._service().render_progress_report("Asha", [program])

        assert "25.0% of Target Reached" in html
        assert "75,000" in html
        assert "ACTIVE" in html


class TestFormatting:
    """INR and date helpers"""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (0, "0"),
            (999, "999"),
            (1000, "1,000"),
            (100000, "1,00,000"),
            (1234567, "12,34,567"),
            (123456789, "12,34,56,789"),
            (-150000, "-1,50,000"),
        ],
    )
    def test_format_inr(self, amount, expected):
        assert format_inr(amount) == expected

    def test_format_long_date(self):
        assert format_long_date(datetime(2025, 3, 5)) == "5 March 2025"


# ============================================================================
# BACKGROUND DISPATCHER TESTS
# ============================================================================

class TestBackgroundDispatcher:
    """Fire-and-forget task handling"""

    @pytest.mark.asyncio
    async def test_failure_does_not_reach_submitter(self):
        dispatcher = BackgroundDispatcher()

        async def boom():
            raise RuntimeError("smtp down")

        task = dispatcher.submit("send_email", boom, donation_id="d1")
        await dispatcher.drain()

        assert task.done()
        assert task.exception() is None
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_work(self):
        dispatcher = BackgroundDispatcher()
        finished = []

        async def work():
            await asyncio.sleep(0.01)
            finished.append(True)

        dispatcher.submit("work", work)
        dispatcher.submit("work", work)
        assert dispatcher.pending == 2

        await dispatcher.drain()

        assert finished == [True, True]
        assert dispatcher.pending == 0
