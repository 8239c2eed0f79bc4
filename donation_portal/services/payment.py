"""
Order creation and payment verification.

Verification finalizes a donation exactly once: the pending -> completed
transition is a conditional UPDATE, and the ledger increment shares its
transaction, so duplicate or concurrent gateway callbacks credit the program
a single time. Certificates and the confirmation email are submitted to the
background dispatcher and never affect the response.
"""
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from donation_portal.core.errors import ConflictError, NotFoundError, PaymentError, ValidationError
from donation_portal.middleware.metrics import donation_amount_total, payment_verifications_total
from donation_portal.models import CertificateType, ProgramStatus, TransactionStatus
from donation_portal.schemas.donation import CreateOrderRequest, OrderResponse, VerifyPaymentRequest
from donation_portal.services.auth import AuthService
from donation_portal.services.background import BackgroundDispatcher
from donation_portal.services.certificate import CertificateService
from donation_portal.services.donation import DonationService
from donation_portal.services.email import EmailService
from donation_portal.services.payment_gateway import RazorpayGateway
from donation_portal.services.program import ProgramService

logger = structlog.get_logger(__name__)

MESSAGE_VERIFIED = "Payment verified and processed successfully"
MESSAGE_ALREADY_PROCESSED = "Payment already processed successfully"


@dataclass
class VerificationOutcome:
    donation_id: str
    message: str
    newly_completed: bool


class PaymentService:
    """Payment flow orchestration between the gateway, the records and the ledger"""

    def __init__(
        self,
        gateway: RazorpayGateway,
        dispatcher: BackgroundDispatcher,
        session_factory: async_sessionmaker,
        certificates: CertificateService,
        emails: EmailService,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.certificates = certificates
        self.emails = emails

    async def create_order(self, db: AsyncSession, user_id: str, data: CreateOrderRequest) -> OrderResponse:
        """Create the remote order, then a pending donation that references it"""
        await AuthService.get_user(db, user_id)
        program = await ProgramService.get_program(db, data.program_id)
        if program.status == ProgramStatus.ARCHIVED:
            raise ValidationError("This program is no longer accepting donations")

        order = await self.gateway.create_order(data.amount, user_id)

        await DonationService.create_pending(
            db,
            user_id=user_id,
            program_id=program.id,
            amount=data.amount,
            order_id=order["id"],
            visibility=data.visibility_choice,
            public_name=data.public_name,
        )

        return OrderResponse(
            order_id=order["id"],
            amount=order.get("amount", data.amount * 100),
            currency=order.get("currency", self.gateway.currency),
            key=self.gateway.public_key,
        )

    async def verify_payment(self, db: AsyncSession, data: VerifyPaymentRequest) -> VerificationOutcome:
        order_id = data.razorpay_order_id
        payment_id = data.razorpay_payment_id

        if not self.gateway.verify_signature(order_id, payment_id, data.razorpay_signature):
            logger.warning("Payment signature mismatch", order_id=order_id, payment_id=payment_id)
            payment_verifications_total.labels(outcome="rejected").inc()
            raise PaymentError("Payment verification failed: Invalid signature")

        donation = await DonationService.get_by_order_id(db, order_id)
        if not donation:
            raise NotFoundError("Donation")

        if donation.transaction_status == TransactionStatus.COMPLETED:
            logger.info("Duplicate payment callback ignored", order_id=order_id, donation_id=donation.id)
            payment_verifications_total.labels(outcome="duplicate").inc()
            return VerificationOutcome(donation.id, MESSAGE_ALREADY_PROCESSED, False)

        if donation.transaction_status == TransactionStatus.FAILED:
            raise ConflictError("Donation can no longer be completed")

        donation_id, program_id, amount = donation.id, donation.program_id, donation.amount

        try:
            transitioned = await DonationService.mark_completed(db, order_id, payment_id)
            if not transitioned:
                # A concurrent callback completed it between our read and update
                await db.rollback()
                logger.info("Concurrent payment callback lost the race", order_id=order_id)
                payment_verifications_total.labels(outcome="duplicate").inc()
                return VerificationOutcome(donation_id, MESSAGE_ALREADY_PROCESSED, False)

            credited = await ProgramService.increment_funds_received(db, program_id, amount)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.error("Payment id already recorded", order_id=order_id, payment_id=payment_id)
            raise ConflictError("This payment has already been recorded")

        if credited:
            logger.info(
                "Donation completed and ledger updated",
                donation_id=donation_id,
                program_id=program_id,
                amount=amount,
            )
        else:
            logger.warning(
                "Program missing during ledger update",
                donation_id=donation_id,
                program_id=program_id,
                amount=amount,
            )

        payment_verifications_total.labels(outcome="verified").inc()
        donation_amount_total.inc(amount)

        self.dispatcher.submit(
            "fulfil_donation",
            lambda: self.fulfil_donation(donation_id),
            donation_id=donation_id,
        )
        return VerificationOutcome(donation_id, MESSAGE_VERIFIED, True)

    async def fulfil_donation(self, donation_id: str):
        """Issue both certificates and email the donor; each step fails independently"""
        async with self.session_factory() as db:
            for certificate_type in (CertificateType.SECTION_80G, CertificateType.SECTION_12A):
                try:
                    await self.certificates.generate(db, donation_id, certificate_type)
                except Exception as e:
                    await db.rollback()
                    logger.error(
                        "Certificate generation failed",
                        donation_id=donation_id,
                        certificate_type=certificate_type.value,
                        error=str(e),
                    )

            try:
                result = await self.emails.send_donation_confirmation(db, donation_id)
            except Exception as e:
                await db.rollback()
                logger.error("Confirmation email failed", donation_id=donation_id, error=str(e))
                return

            if not result.success:
                logger.warning("Confirmation email not delivered", donation_id=donation_id, error=result.error)
