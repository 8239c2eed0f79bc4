from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from donation_portal.models import TransactionStatus, VisibilityChoice
from donation_portal.schemas.common import APIModel
from donation_portal.schemas.program import ProgramStats


class CreateOrderRequest(APIModel):
    """Request schema for starting a donation"""
    amount: int = Field(..., ge=1, description="Amount in rupees")
    program_id: str = Field(..., min_length=1)
    visibility_choice: VisibilityChoice
    public_name: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": 500,
                "programId": "6f1c8a52-3d0e-4c55-9b7e-2f7f3b7f9a10",
                "visibilityChoice": "public",
                "publicName": "A. Donor"
            }
        }
    )

    @model_validator(mode="after")
    def check_public_name(self):
        if self.public_name is not None:
            self.public_name = self.public_name.strip() or None
        if self.visibility_choice == VisibilityChoice.PUBLIC and not self.public_name:
            raise ValueError("Public name is required when visibility is public")
        return self


class OrderResponse(APIModel):
    order_id: str
    amount: int
    currency: str
    key: Optional[str]


class VerifyPaymentRequest(BaseModel):
    """Gateway checkout callback payload, field names as the gateway sends them"""
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class VerifyPaymentResponse(APIModel):
    donation_id: str
    message: str


class DonationHistoryItem(APIModel):
    id: str
    amount: int
    program_id: str
    program_name: Optional[str]
    transaction_status: TransactionStatus
    visibility_choice: VisibilityChoice
    display_name: Optional[str]
    razorpay_order_id: str
    razorpay_payment_id: Optional[str]
    certificate_url: Optional[str] = Field(None, alias="certificateURL")
    created_at: datetime


class PublicDonation(APIModel):
    display_name: str
    amount: int
    program_name: Optional[str]
    date: datetime


class AdminDonation(APIModel):
    id: str
    amount: int
    donor_name: Optional[str]
    donor_email: Optional[str]
    program_id: str
    program_name: Optional[str]
    transaction_status: TransactionStatus
    visibility_choice: VisibilityChoice
    display_name: Optional[str]
    razorpay_order_id: str
    razorpay_payment_id: Optional[str]
    created_at: datetime


class DonationStats(APIModel):
    total_donations: int
    total_amount: int
    recent_donations: List[AdminDonation]


class DonorDashboard(APIModel):
    donations: List[DonationHistoryItem]
    total_contribution: int
    donation_count: int


class AdminDonationListResponse(APIModel):
    donations: List[AdminDonation]
    total: int


class AdminDashboard(APIModel):
    donations: DonationStats
    programs: ProgramStats
