"""
Email transport wrapper.

Configure via settings:
- EMAIL_PROVIDER: "log" (default, delivery is only logged) | "smtp" | "sendgrid"
- For SMTP: SMTP_HOST, SMTP_PORT (465 uses implicit TLS, anything else STARTTLS),
  SMTP_USERNAME, SMTP_PASSWORD
- For SendGrid: SENDGRID_API_KEY
"""
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional
import asyncio
import smtplib

from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To
import structlog

from donation_portal.core.config import Settings

logger = structlog.get_logger(__name__)


@dataclass
class SendResult:
    success: bool
    provider: str
    error: Optional[str] = None


class EmailSender:
    """Delivers one HTML email; reports failures in the result instead of raising"""

    def __init__(
        self,
        provider: str = "log",
        from_email: str = "no-reply@example.com",
        from_name: str = "Donations",
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_username: str = "",
        smtp_password: str = "",
        sendgrid_api_key: str = "",
    ):
        self.provider = provider.lower()
        self.from_email = from_email
        self.from_name = from_name
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.sendgrid_api_key = sendgrid_api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailSender":
        return cls(
            provider=settings.email_provider,
            from_email=settings.email_from,
            from_name=settings.foundation_name,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            sendgrid_api_key=settings.sendgrid_api_key,
        )

    async def send(self, to: str, subject: str, html: str) -> SendResult:
        try:
            if self.provider == "log":
                logger.info("Email delivery simulated", to=to, subject=subject, size=len(html))
            elif self.provider == "smtp":
                await asyncio.to_thread(self._send_smtp, to, subject, html)
            elif self.provider == "sendgrid":
                await asyncio.to_thread(self._send_sendgrid, to, subject, html)
            else:
                return SendResult(False, self.provider, f"Unknown email provider '{self.provider}'")
        except (smtplib.SMTPException, OSError, RuntimeError) as e:
            logger.error("Email delivery failed", to=to, provider=self.provider, error=str(e))
            return SendResult(False, self.provider, str(e))

        logger.info("Email sent", to=to, provider=self.provider)
        return SendResult(True, self.provider)

    def _send_smtp(self, to: str, subject: str, html: str):
        if not self.smtp_username or not self.smtp_password:
            raise RuntimeError("Email not configured")

        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.smtp_username or self.from_email))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable email client.")
        message.add_alternative(html, subtype="html")

        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(message)
        else:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(message)

    def _send_sendgrid(self, to: str, subject: str, html: str):
        if not self.sendgrid_api_key:
            raise RuntimeError("SENDGRID_API_KEY not set")

        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to),
            subject=subject,
            html_content=Content("text/html", html),
        )
        try:
            SendGridAPIClient(self.sendgrid_api_key).send(message)
        except SendGridHTTPError as e:
            raise RuntimeError(f"SendGrid returned {e.status_code}: {str(e.body)[:200]}") from e
