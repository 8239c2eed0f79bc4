from datetime import datetime
from typing import List, Optional
import uuid

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.errors import NotFoundError, ValidationError
from donation_portal.models import (
    Certificate,
    CertificateType,
    Donation,
    Program,
    TransactionStatus,
    User,
    UserRole,
    VisibilityChoice,
)
from donation_portal.models.base import utcnow
from donation_portal.schemas.auth import DonorSummary
from donation_portal.schemas.donation import (
    AdminDonation,
    DonationHistoryItem,
    DonationStats,
    DonorDashboard,
    PublicDonation,
)

logger = structlog.get_logger(__name__)

PUBLIC_FEED_LIMIT = 100
RECENT_DONATIONS_LIMIT = 10


def generate_donor_alias() -> str:
    """Short shareable token shown instead of an anonymous donor's name"""
    return f"DONOR-{uuid.uuid4().hex[:8].upper()}"


class DonationService:
    """Donation records: creation, state transition and read models"""

    @staticmethod
    async def create_pending(
        db: AsyncSession,
        user_id: str,
        program_id: str,
        amount: int,
        order_id: str,
        visibility: VisibilityChoice,
        public_name: Optional[str] = None,
    ) -> Donation:
        """Record a new donation attempt awaiting gateway confirmation"""
        if amount < 1:
            raise ValidationError(
                "Amount must be at least 1",
                fields=[{"field": "amount", "message": "Amount must be at least 1"}],
            )

        if visibility == VisibilityChoice.PUBLIC:
            public_name = (public_name or "").strip()
            if not public_name:
                raise ValidationError(
                    "Public name is required when visibility is public",
                    fields=[{"field": "publicName", "message": "Public name is required"}],
                )
            donor_alias = None
        else:
            public_name = None
            donor_alias = generate_donor_alias()

        donation = Donation(
            user_id=user_id,
            program_id=program_id,
            amount=amount,
            razorpay_order_id=order_id,
            transaction_status=TransactionStatus.PENDING,
            visibility_choice=visibility,
            public_name=public_name,
            donor_alias=donor_alias,
        )
        db.add(donation)
        await db.commit()
        await db.refresh(donation)

        logger.info(
            "Pending donation created",
            donation_id=donation.id,
            order_id=order_id,
            amount=amount,
            visibility=visibility.value,
        )
        return donation

    @staticmethod
    async def get_donation(db: AsyncSession, donation_id: str) -> Donation:
        donation = await db.get(Donation, donation_id)
        if not donation:
            raise NotFoundError("Donation")
        return donation

    @staticmethod
    async def get_by_order_id(db: AsyncSession, order_id: str) -> Optional[Donation]:
        result = await db.execute(select(Donation).where(Donation.razorpay_order_id == order_id))
        return result.scalars().first()

    @staticmethod
    async def mark_completed(db: AsyncSession, order_id: str, payment_id: str) -> bool:
        """
        Conditionally move a pending donation to completed.

        Only the caller whose UPDATE matched the pending row gets True, so
        concurrent duplicate callbacks complete the donation exactly once.
        Does not commit.
        """
        result = await db.execute(
            update(Donation)
            .where(
                Donation.razorpay_order_id == order_id,
                Donation.transaction_status == TransactionStatus.PENDING,
            )
            .values(
                transaction_status=TransactionStatus.COMPLETED,
                razorpay_payment_id=payment_id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ========================================================================
    # Read models
    # ========================================================================

    @staticmethod
    async def get_history(db: AsyncSession, user_id: str) -> List[DonationHistoryItem]:
        """The caller's donations, newest first, with the 80G certificate link"""
        query = (
            select(Donation, Program.program_name, Certificate.certificate_url)
            .outerjoin(Program, Program.id == Donation.program_id)
            .outerjoin(
                Certificate,
                and_(
                    Certificate.donation_id == Donation.id,
                    Certificate.certificate_type == CertificateType.SECTION_80G,
                ),
            )
            .where(Donation.user_id == user_id)
            .order_by(Donation.created_at.desc())
        )
        result = await db.execute(query)

        return [
            DonationHistoryItem(
                id=donation.id,
                amount=donation.amount,
                program_id=donation.program_id,
                program_name=program_name,
                transaction_status=donation.transaction_status,
                visibility_choice=donation.visibility_choice,
                display_name=donation.display_name,
                razorpay_order_id=donation.razorpay_order_id,
                razorpay_payment_id=donation.razorpay_payment_id,
                certificate_url=certificate_url,
                created_at=donation.created_at,
            )
            for donation, program_name, certificate_url in result.all()
        ]

    @staticmethod
    async def get_dashboard(db: AsyncSession, user_id: str) -> DonorDashboard:
        history = await DonationService.get_history(db, user_id)
        completed = [d for d in history if d.transaction_status == TransactionStatus.COMPLETED]
        return DonorDashboard(
            donations=history,
            total_contribution=sum(d.amount for d in completed),
            donation_count=len(completed),
        )

    @staticmethod
    async def get_public_feed(db: AsyncSession, limit: int = PUBLIC_FEED_LIMIT) -> List[PublicDonation]:
        """Most recent completed donations for the donor wall; never exposes donor identity"""
        query = (
            select(Donation, Program.program_name)
            .outerjoin(Program, Program.id == Donation.program_id)
            .where(Donation.transaction_status == TransactionStatus.COMPLETED)
            .order_by(Donation.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(query)

        return [
            PublicDonation(
                display_name=donation.display_name,
                amount=donation.amount,
                program_name=program_name,
                date=donation.created_at,
            )
            for donation, program_name in result.all()
        ]

    @staticmethod
    async def list_all(
        db: AsyncSession,
        program_id: Optional[str] = None,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AdminDonation]:
        """Admin listing with optional filters, newest first"""
        query = (
            select(Donation, User.name, User.email, Program.program_name)
            .outerjoin(User, User.id == Donation.user_id)
            .outerjoin(Program, Program.id == Donation.program_id)
        )
        if program_id:
            query = query.where(Donation.program_id == program_id)
        if status:
            query = query.where(Donation.transaction_status == status)
        if start_date:
            query = query.where(Donation.created_at >= start_date)
        if end_date:
            query = query.where(Donation.created_at <= end_date)
        query = query.order_by(Donation.created_at.desc())
        if limit:
            query = query.limit(limit)

        result = await db.execute(query)
        return [
            AdminDonation(
                id=donation.id,
                amount=donation.amount,
                donor_name=donor_name,
                donor_email=donor_email,
                program_id=donation.program_id,
                program_name=program_name,
                transaction_status=donation.transaction_status,
                visibility_choice=donation.visibility_choice,
                display_name=donation.display_name,
                razorpay_order_id=donation.razorpay_order_id,
                razorpay_payment_id=donation.razorpay_payment_id,
                created_at=donation.created_at,
            )
            for donation, donor_name, donor_email, program_name in result.all()
        ]

    @staticmethod
    async def get_stats(db: AsyncSession) -> DonationStats:
        result = await db.execute(
            select(func.count(Donation.id), func.coalesce(func.sum(Donation.amount), 0))
            .where(Donation.transaction_status == TransactionStatus.COMPLETED)
        )
        count, total = result.one()

        recent = await DonationService.list_all(
            db, status=TransactionStatus.COMPLETED, limit=RECENT_DONATIONS_LIMIT
        )
        return DonationStats(total_donations=count, total_amount=int(total), recent_donations=recent)

    @staticmethod
    async def list_donors(db: AsyncSession) -> List[DonorSummary]:
        """Every donor account with their completed giving totals"""
        completed = (
            select(
                Donation.user_id.label("user_id"),
                func.count(Donation.id).label("donation_count"),
                func.sum(Donation.amount).label("total_donated"),
            )
            .where(Donation.transaction_status == TransactionStatus.COMPLETED)
            .group_by(Donation.user_id)
            .subquery()
        )
        query = (
            select(User, completed.c.donation_count, completed.c.total_donated)
            .outerjoin(completed, completed.c.user_id == User.id)
            .where(User.role == UserRole.DONOR)
            .order_by(User.created_at.desc())
        )
        result = await db.execute(query)

        return [
            DonorSummary(
                id=user.id,
                name=user.name,
                email=user.email,
                phone=user.phone,
                created_at=user.created_at,
                donation_count=donation_count or 0,
                total_donated=int(total_donated or 0),
            )
            for user, donation_count, total_donated in result.all()
        ]
