"""
Password hashing, JWT handling and the auth dependencies used by routers
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import bcrypt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
import structlog

from donation_portal.core.config import get_settings
from donation_portal.core.errors import AuthenticationError, AuthorizationError

logger = structlog.get_logger(__name__)
security = HTTPBearer(auto_error=False)

# ============================================================================
# PASSWORDS
# ============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False

# ============================================================================
# JWT TOKEN HANDLING
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    settings = get_settings()
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expiration_minutes))
    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict:
    """Decode and validate JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning("JWT decode error", error=str(e))
        raise AuthenticationError("Invalid token")

# ============================================================================
# DEPENDENCIES
# ============================================================================

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Dict:
    """Resolve the bearer token into the caller's claims (userId, role)"""
    if not credentials:
        raise AuthenticationError("Access token is required")

    payload = decode_token(credentials.credentials)
    if not payload.get("userId"):
        raise AuthenticationError("Invalid token")

    request.state.user = payload
    return payload


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of the given roles"""

    async def checker(user: Dict = Depends(get_current_user)) -> Dict:
        if user.get("role") not in roles:
            raise AuthorizationError()
        return user

    return checker


require_admin = require_roles("admin")
