from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.api.deps import get_payment_service
from donation_portal.core.security import get_current_user
from donation_portal.database.database import get_db
from donation_portal.schemas.donation import (
    CreateOrderRequest,
    DonationHistoryItem,
    OrderResponse,
    PublicDonation,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from donation_portal.services.donation import DonationService
from donation_portal.services.payment import PaymentService

router = APIRouter(prefix="/api/donations", tags=["donations"])


@router.post("/create-order", response_model=OrderResponse, status_code=201)
async def create_order(
    data: CreateOrderRequest,
    user: Dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service),
):
    """Open a gateway order and record the pending donation"""
    return await payments.create_order(db, user["userId"], data)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    data: VerifyPaymentRequest,
    user: Dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    payments: PaymentService = Depends(get_payment_service),
):
    """Confirm a gateway payment; repeated callbacks for the same order are no-ops"""
    outcome = await payments.verify_payment(db, data)
    return VerifyPaymentResponse(donation_id=outcome.donation_id, message=outcome.message)


@router.get("/history", response_model=List[DonationHistoryItem])
async def get_history(user: Dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await DonationService.get_history(db, user["userId"])


@router.get("/public", response_model=List[PublicDonation])
async def get_public_donations(db: AsyncSession = Depends(get_db)):
    """Donor wall: recent completed donations under their public name or alias"""
    return await DonationService.get_public_feed(db)
