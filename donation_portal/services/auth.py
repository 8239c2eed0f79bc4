from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_portal.core.errors import AuthenticationError, ConflictError, NotFoundError
from donation_portal.core.security import create_access_token, hash_password, verify_password
from donation_portal.models import User, UserRole
from donation_portal.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)

logger = structlog.get_logger(__name__)


class AuthService:
    """Account registration, login and profile maintenance"""

    @staticmethod
    def issue_token(user: User) -> AuthResponse:
        token = create_access_token({"userId": user.id, "role": user.role.value})
        return AuthResponse(
            user_id=user.id,
            token=token,
            role=user.role,
            name=user.name,
            email=user.email,
        )

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str):
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user(db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError("User")
        return user

    @staticmethod
    async def create_user(db: AsyncSession, data: RegisterRequest, role: UserRole = UserRole.DONOR) -> User:
        if await AuthService.get_user_by_email(db, data.email):
            raise ConflictError("User with this email already exists")

        user = User(
            name=data.name,
            email=data.email.lower(),
            phone=data.phone,
            password_hash=hash_password(data.password),
            role=role,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

        logger.info("User registered", user_id=user.id, role=role.value)
        return user

    @staticmethod
    async def register(db: AsyncSession, data: RegisterRequest) -> AuthResponse:
        """Self-service registration always creates a donor account"""
        user = await AuthService.create_user(db, data)
        return AuthService.issue_token(user)

    @staticmethod
    async def login(db: AsyncSession, data: LoginRequest) -> AuthResponse:
        user = await AuthService.get_user_by_email(db, data.email)
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning("Failed login attempt", email=data.email)
            raise AuthenticationError("Invalid email or password")

        logger.info("User logged in", user_id=user.id)
        return AuthService.issue_token(user)

    @staticmethod
    async def update_profile(db: AsyncSession, user_id: str, data: UpdateProfileRequest) -> User:
        user = await AuthService.get_user(db, user_id)

        if data.name is not None:
            user.name = data.name.strip()
        if data.phone is not None:
            user.phone = data.phone

        await db.commit()
        await db.refresh(user)

        logger.info("Profile updated", user_id=user_id)
        return user
