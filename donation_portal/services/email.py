"""
Donor emails: donation confirmation and periodic progress reports.

Every attempt is recorded in the notifications table (pending -> sent/failed).
"""
from html import escape
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.config import Settings
from donation_portal.core.errors import NotFoundError
from donation_portal.middleware.metrics import emails_total
from donation_portal.models import Donation, Notification, NotificationStatus, Program, User
from donation_portal.models.base import utcnow
from donation_portal.services.email_sender import EmailSender, SendResult
from donation_portal.services.formatting import format_inr, format_long_date

logger = structlog.get_logger(__name__)

CONFIRMATION_SUBJECT = "Thank You for Your Donation!"
PROGRESS_REPORT_SUBJECT = "Progress Report - Your Impact"

BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background-color: #0ea5e9; color: white; padding: 20px; text-align: center; }
    .content { padding: 20px; background-color: #f9fafb; }
    .amount { font-size: 24px; font-weight: bold; color: #0ea5e9; }
    .button { display: inline-block; padding: 12px 24px; background-color: #0ea5e9; color: white;
              text-decoration: none; border-radius: 5px; margin-top: 20px; }
    .footer { text-align: center; padding: 20px; font-size: 12px; color: #666; }
"""


class EmailService:
    """Renders donor emails and logs each delivery attempt"""

    def __init__(
        self,
        sender: EmailSender,
        foundation_name: str,
        foundation_address: str,
        frontend_url: str,
    ):
        self.sender = sender
        self.foundation_name = foundation_name
        self.foundation_address = foundation_address
        self.frontend_url = frontend_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings, sender: Optional[EmailSender] = None) -> "EmailService":
        return cls(
            sender=sender or EmailSender.from_settings(settings),
            foundation_name=settings.foundation_name,
            foundation_address=settings.foundation_address,
            frontend_url=settings.frontend_url,
        )

    async def deliver(
        self,
        db: AsyncSession,
        recipient: str,
        subject: str,
        html: str,
        notification_type: str,
        user_id: Optional[str] = None,
    ) -> SendResult:
        """Send one email and persist the outcome"""
        notification = Notification(
            user_id=user_id,
            recipient=recipient,
            notification_type=notification_type,
            status=NotificationStatus.PENDING,
            subject=subject,
            body=html,
        )
        db.add(notification)
        await db.commit()

        result = await self.sender.send(recipient, subject, html)

        notification.provider = result.provider
        if result.success:
            notification.status = NotificationStatus.SENT
            notification.sent_at = utcnow()
        else:
            notification.status = NotificationStatus.FAILED
            notification.error_message = result.error
        await db.commit()
        emails_total.labels(notification_type=notification_type, status=notification.status.value).inc()

        logger.info(
            "Email attempt recorded",
            notification_id=notification.id,
            notification_type=notification_type,
            status=notification.status.value,
        )
        return result

    # ========================================================================
    # Donation confirmation
    # ========================================================================

    async def send_donation_confirmation(self, db: AsyncSession, donation_id: str) -> SendResult:
        donation = await db.get(Donation, donation_id)
        if not donation:
            raise NotFoundError("Donation")
        user = await db.get(User, donation.user_id)
        program = await db.get(Program, donation.program_id)
        if not user or not program:
            raise NotFoundError("User or program")

        html = self.render_confirmation(
            donor_name=user.name,
            amount=donation.amount,
            program_name=program.program_name,
            donation_id=donation.id,
        )
        return await self.deliver(
            db,
            recipient=user.email,
            subject=CONFIRMATION_SUBJECT,
            html=html,
            notification_type="donation_confirmation",
            user_id=user.id,
        )

    def render_confirmation(self, donor_name: str, amount: int, program_name: str, donation_id: str) -> str:
        certificate_url = f"{self.frontend_url}/certificates/{donation_id}"
        return f"""<!DOCTYPE html>
<html>
<head><style>{BASE_STYLE}</style></head>
<body>
  <div class="container">
    <div class="header"><h1>Thank You for Your Donation!</h1></div>
    <div class="content">
      <p>Dear {escape(donor_name)},</p>
      <p>We are deeply grateful for your generous donation of
         <span class="amount">&#8377;{format_inr(amount)}</span> towards <strong>{escape(program_name)}</strong>.</p>
      <p>Your contribution will make a significant impact in helping us achieve our mission.</p>
      <p><strong>Donation Details:</strong></p>
      <ul>
        <li>Donation ID: {escape(donation_id)}</li>
        <li>Amount: &#8377;{format_inr(amount)}</li>
        <li>Program: {escape(program_name)}</li>
        <li>Date: {format_long_date(utcnow())}</li>
      </ul>
      <p>Your 80G tax exemption certificate has been generated and is available for download.</p>
      <a href="{escape(certificate_url)}" class="button">Download Certificate</a>
      <p style="margin-top: 20px;">You will receive regular progress reports about how your donation is being utilized.</p>
    </div>
    {self._footer()}
  </div>
</body>
</html>"""

    # ========================================================================
    # Progress report
    # ========================================================================

    async def send_progress_report(self, db: AsyncSession, user: User, programs: List[Dict]) -> SendResult:
        html = self.render_progress_report(donor_name=user.name, programs=programs)
        return await self.deliver(
            db,
            recipient=user.email,
            subject=PROGRESS_REPORT_SUBJECT,
            html=html,
            notification_type="progress_report",
            user_id=user.id,
        )

    def render_progress_report(self, donor_name: str, programs: List[Dict]) -> str:
        sections = "".join(self._program_section(program) for program in programs)
        return f"""<!DOCTYPE html>
<html>
<head><style>{BASE_STYLE}</style></head>
<body>
  <div class="container">
    <div class="header">
      <h1>Progress Report</h1>
      <p style="margin: 0; font-size: 14px;">Report Date: {utcnow().strftime('%A')}, {format_long_date(utcnow())}</p>
    </div>
    <div class="content">
      <p>Dear {escape(donor_name)},</p>
      <p>Thank you for your continued support. Here is how the programs you contributed to are progressing.</p>
      {sections}
      <p>Every rupee you give is tracked and reported. Thank you for making a difference.</p>
    </div>
    {self._footer()}
  </div>
</body>
</html>"""

    @staticmethod
    def _program_section(program: Dict) -> str:
        progress = min(program["progressPercentage"], 100)
        rows = [
            ("Target Amount", f"&#8377;{format_inr(program['targetAmount'])}"),
            ("Funds Received", f"&#8377;{format_inr(program['fundsReceived'])}"),
            ("Funds Utilized", f"&#8377;{format_inr(program['fundsUtilized'])}"),
            ("Remaining to Target", f"&#8377;{format_inr(program['remaining'])}"),
            ("Utilization Rate", f"{program['utilizationRate']}%"),
            ("Your Contribution", f"&#8377;{format_inr(program['donorContribution'])}"),
        ]
        table = "".join(
            f'<tr><td style="padding: 8px 0; color: #666;">{label}:</td>'
            f'<td style="padding: 8px 0; text-align: right; font-weight: bold;">{value}</td></tr>'
            for label, value in rows
        )
        return f"""
      <div style="margin-bottom: 25px; padding: 20px; background-color: white; border-left: 4px solid #0ea5e9;">
        <h3 style="margin-top: 0; color: #0ea5e9;">{escape(program['programName'])}</h3>
        <p style="color: #666; font-size: 14px;">{escape(program.get('description') or '')}</p>
        <div style="background-color: #e5e7eb; border-radius: 10px; height: 20px; overflow: hidden;">
          <div style="background-color: #0ea5e9; height: 100%; width: {progress}%;"></div>
        </div>
        <p style="text-align: center; font-weight: bold; color: #0ea5e9;">{program['progressPercentage']}% of Target Reached</p>
        <table style="width: 100%; border-collapse: collapse; font-size: 14px;">{table}</table>
        <p style="font-size: 12px; color: #666;">Status: <strong>{escape(str(program['status']).upper())}</strong></p>
      </div>"""

    def _footer(self) -> str:
        return (
            f'<div class="footer"><p>{escape(self.foundation_name)}</p>'
            f"<p>{escape(self.foundation_address)}</p></div>"
        )
