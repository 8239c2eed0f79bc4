from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.core.security import get_current_user
from donation_portal.database.database import get_db
from donation_portal.schemas.auth import UpdateProfileRequest, UserProfile
from donation_portal.schemas.donation import DonorDashboard
from donation_portal.services.auth import AuthService
from donation_portal.services.donation import DonationService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/profile", response_model=UserProfile)
async def get_profile(user: Dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    account = await AuthService.get_user(db, user["userId"])
    return UserProfile.model_validate(account)


@router.put("/profile", response_model=UserProfile)
async def update_profile(
    data: UpdateProfileRequest,
    user: Dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update name and phone; email and role are not editable here"""
    account = await AuthService.update_profile(db, user["userId"], data)
    return UserProfile.model_validate(account)


@router.get("/dashboard", response_model=DonorDashboard)
async def get_dashboard(user: Dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Donation history plus completed-giving totals for the caller"""
    return await DonationService.get_dashboard(db, user["userId"])
