"""
Tax certificate generation (80G / 12A) rendered to PDF with reportlab
"""
from pathlib import Path
from typing import List, Optional, Tuple
import asyncio
import textwrap
import time

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.config import Settings
from donation_portal.core.errors import NotFoundError, ValidationError
from donation_portal.models import Certificate, CertificateType, Donation, Program, User
from donation_portal.models.base import utcnow
from donation_portal.services.formatting import format_inr, format_long_date

logger = structlog.get_logger(__name__)

CERTIFICATE_TITLES = {
    CertificateType.SECTION_80G: (
        "DONATION CERTIFICATE",
        "(Under Section 80G of Income Tax Act, 1961)",
        "This is to certify that we have received a donation from the following donor "
        "towards our charitable programs.",
        "This donation is eligible for deduction under Section 80G of the Income Tax Act, 1961.",
    ),
    CertificateType.SECTION_12A: (
        "REGISTRATION CERTIFICATE",
        "(Under Section 12A of Income Tax Act, 1961)",
        "This is to certify that the following donation has been received by the organization "
        "registered under Section 12A of the Income Tax Act, 1961.",
        "This organization is registered under Section 12A and the donation is eligible for "
        "tax exemption as per applicable provisions.",
    ),
}


class CertificateService:
    """Renders certificate PDFs to disk and records them, once per donation and type"""

    def __init__(
        self,
        output_dir: str,
        foundation_name: str,
        foundation_address: str,
        registration_number: str,
    ):
        self.output_dir = Path(output_dir)
        self.foundation_name = foundation_name
        self.foundation_address = foundation_address
        self.registration_number = registration_number

    @classmethod
    def from_settings(cls, settings: Settings) -> "CertificateService":
        return cls(
            output_dir=settings.certificates_dir,
            foundation_name=settings.foundation_name,
            foundation_address=settings.foundation_address,
            registration_number=settings.foundation_registration_number,
        )

    def ensure_directory(self):
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def resolve_file(self, filename: str) -> Path:
        """Map a public filename to a file inside the certificates directory"""
        if not filename or Path(filename).name != filename or not filename.endswith(".pdf"):
            raise ValidationError("Invalid certificate filename")

        path = (self.output_dir / filename).resolve()
        if path.parent != self.output_dir.resolve() or not path.is_file():
            raise NotFoundError("Certificate")
        return path

    # ========================================================================
    # Queries
    # ========================================================================

    @staticmethod
    async def get_existing(
        db: AsyncSession, donation_id: str, certificate_type: CertificateType
    ) -> Optional[Certificate]:
        result = await db.execute(
            select(Certificate).where(
                Certificate.donation_id == donation_id,
                Certificate.certificate_type == certificate_type,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_donation(db: AsyncSession, donation_id: str) -> List[Certificate]:
        result = await db.execute(
            select(Certificate)
            .where(Certificate.donation_id == donation_id)
            .order_by(Certificate.certificate_type)
        )
        return list(result.scalars().all())

    # ========================================================================
    # Generation
    # ========================================================================

    async def _load_subjects(self, db: AsyncSession, donation_id: str) -> Tuple[Donation, User, Program]:
        donation = await db.get(Donation, donation_id)
        if not donation:
            raise NotFoundError("Donation")
        user = await db.get(User, donation.user_id)
        if not user:
            raise NotFoundError("User")
        program = await db.get(Program, donation.program_id)
        if not program:
            raise NotFoundError("Program")
        return donation, user, program

    async def generate(
        self, db: AsyncSession, donation_id: str, certificate_type: CertificateType
    ) -> Certificate:
        existing = await self.get_existing(db, donation_id, certificate_type)
        if existing:
            logger.info(
                "Certificate already issued",
                donation_id=donation_id,
                certificate_type=certificate_type.value,
            )
            return existing

        donation, user, program = await self._load_subjects(db, donation_id)

        self.ensure_directory()
        filename = f"{certificate_type.value}_{donation_id}_{int(time.time() * 1000)}.pdf"
        path = self.output_dir / filename

        await asyncio.to_thread(
            self._render,
            path,
            certificate_type,
            donor_name=user.name,
            amount=donation.amount,
            program_name=program.program_name,
            donated_at=donation.created_at,
            donation_id=donation.id,
            payment_id=donation.razorpay_payment_id,
        )

        certificate = Certificate(
            donation_id=donation_id,
            certificate_type=certificate_type,
            certificate_url=f"/certificates/{filename}",
        )
        db.add(certificate)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent generator for the same donation and type
            await db.rollback()
            path.unlink(missing_ok=True)
            existing = await self.get_existing(db, donation_id, certificate_type)
            if existing:
                return existing
            raise

        await db.refresh(certificate)
        logger.info(
            "Certificate generated",
            donation_id=donation_id,
            certificate_type=certificate_type.value,
            url=certificate.certificate_url,
        )
        return certificate

    def _render(
        self,
        path: Path,
        certificate_type: CertificateType,
        donor_name: str,
        amount: int,
        program_name: str,
        donated_at,
        donation_id: str,
        payment_id: Optional[str],
    ):
        title, subtitle, preamble, closing = CERTIFICATE_TITLES[certificate_type]
        width, height = A4
        pdf = canvas.Canvas(str(path), pagesize=A4)
        pdf.setTitle(f"{certificate_type.value} Certificate {donation_id}")
        centre = width / 2
        y = height - 30 * mm

        # Header
        pdf.setFont("Helvetica-Bold", 24)
        pdf.drawCentredString(centre, y, self.foundation_name)
        y -= 9 * mm
        pdf.setFont("Helvetica", 12)
        pdf.drawCentredString(centre, y, self.foundation_address)
        y -= 6 * mm
        pdf.setFont("Helvetica", 10)
        pdf.drawCentredString(centre, y, f"Registration No: {self.registration_number or 'N/A'}")
        y -= 16 * mm
        pdf.setFont("Helvetica-Bold", 20)
        pdf.drawCentredString(centre, y, title)
        y -= 8 * mm
        pdf.setFont("Helvetica", 14)
        pdf.drawCentredString(centre, y, subtitle)
        y -= 18 * mm

        # Body
        left = 25 * mm
        text = pdf.beginText(left, y)
        text.setFont("Helvetica", 12)
        for line in textwrap.wrap(preamble, 85):
            text.textLine(line)
        pdf.drawText(text)
        y = text.getY() - 10 * mm

        pdf.setFont("Helvetica-Bold", 14)
        pdf.drawString(left, y, f"Donor: {donor_name}")
        y -= 8 * mm
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawString(left, y, f"Amount: Rs. {format_inr(amount)}")
        y -= 8 * mm
        pdf.setFont("Helvetica", 12)
        pdf.drawString(left, y, f"Program: {program_name}")
        y -= 7 * mm
        pdf.drawString(left, y, f"Date: {format_long_date(donated_at)}")
        y -= 7 * mm
        pdf.setFont("Helvetica", 10)
        pdf.drawString(left, y, f"Donation ID: {donation_id}")
        y -= 6 * mm
        pdf.drawString(left, y, f"Transaction ID: {payment_id or 'N/A'}")
        y -= 14 * mm

        text = pdf.beginText(left, y)
        text.setFont("Helvetica", 11)
        for line in textwrap.wrap(closing, 90):
            text.textLine(line)
        pdf.drawText(text)

        # Footer
        pdf.setFont("Helvetica", 10)
        pdf.drawString(left, 40 * mm, f"Issued on: {format_long_date(utcnow())}")
        pdf.drawRightString(width - left, 40 * mm, "Authorized Signatory")
        pdf.setFont("Helvetica-Oblique", 8)
        pdf.drawCentredString(centre, 25 * mm, "This is a computer generated certificate.")

        pdf.showPage()
        pdf.save()

