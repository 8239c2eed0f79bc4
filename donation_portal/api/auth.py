from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donation_portal.core.security import get_current_user
from donation_portal.database.database import get_db
from donation_portal.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserProfile
from donation_portal.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a donor account and return a session token"""
    return await AuthService.register(db, data)


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await AuthService.login(db, data)


@router.get("/me", response_model=UserProfile)
async def me(user: Dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Profile of the authenticated caller"""
    account = await AuthService.get_user(db, user["userId"])
    return UserProfile.model_validate(account)
