"""
prize_portal/security/rbac.py
Token issuance and role-gated FastAPI dependencies.

Tokens are HS256 JWTs carrying sub (email), role, type and exp.
Role dependencies only check the role; per-record checks (membership,
leadership, ownership) belong to the access policy.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.config import get_settings
from prize_portal.database import get_db, storage_guard
from prize_portal.errors import ErrorCode
from prize_portal.exceptions import ForbiddenError, UnauthorizedError
from prize_portal.orm.user import User, UserRole

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ================= TOKEN UTILS =================

def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "sub": user.email,
        "role": user.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


# ================= AUTH DEPENDENCIES =================

async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT access token.
    Raises 401 if the token is missing, invalid, expired, or names an inactive user.
    """
    if not token:
        raise UnauthorizedError("Authentication required", ErrorCode.AUTH_REQUIRED)

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid or expired token", ErrorCode.AUTH_INVALID)

    email = payload.get("sub")
    if not email:
        raise UnauthorizedError("Invalid or expired token", ErrorCode.AUTH_INVALID)

    async with storage_guard("get_current_user"):
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise UnauthorizedError("Invalid or expired token", ErrorCode.AUTH_INVALID)

    return user


def require_role(role: UserRole) -> Callable:
    """
    Dependency factory: current user must hold the given role.
    Usage: current_user: User = Depends(require_role(UserRole.treasury))
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != role:
            logger.warning(
                f"Access denied: User {current_user.id} with role {current_user.role.value} "
                f"attempted to access resource requiring {role.value}"
            )
            raise ForbiddenError(f"This action requires the {role.value} role")
        return current_user

    return dependency


require_student = require_role(UserRole.student)
require_entity = require_role(UserRole.entity)
require_treasury = require_role(UserRole.treasury)
