from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from donation_portal.models import UserRole
from donation_portal.schemas.common import APIModel


class RegisterRequest(APIModel):
    """Request schema for donor registration"""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\d{10}$", description="10 digit phone number")
    password: str = Field(..., min_length=6)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Asha Rao",
                "email": "asha@example.com",
                "phone": "9876543210",
                "password": "secret123"
            }
        }
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be between 2 and 100 characters")
        return value


class LoginRequest(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(APIModel):
    user_id: str
    token: str
    role: UserRole
    name: str
    email: str


class UserProfile(APIModel):
    id: str
    name: str
    email: str
    phone: str
    role: UserRole
    created_at: datetime


class UpdateProfileRequest(APIModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\d{10}$")


class DonorSummary(APIModel):
    """Admin view of a donor and their completed giving"""
    id: str
    name: str
    email: str
    phone: str
    created_at: datetime
    donation_count: int
    total_donated: int


class DonorListResponse(APIModel):
    donors: List[DonorSummary]
    total: int
