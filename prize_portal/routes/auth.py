"""
prize_portal/routes/auth.py
Login, current user and password change.
"""
import logging

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.config import get_bool_env
from prize_portal.database import get_db
from prize_portal.orm.user import User
from prize_portal.schemas.auth import PasswordChange, Token, UserLogin
from prize_portal.security.rbac import get_current_user
from prize_portal.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
limiter = Limiter(key_func=get_remote_address, enabled=get_bool_env("RATE_LIMIT_ENABLED", True))


@router.post("/login", response_model=Token)
@limiter.limit("30/minute")  # Rate limit: 30 logins per minute per IP
async def login(
    request: Request,  # Required by slowapi
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.login(db, credentials.email, credentials.password)


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": current_user.to_dict()}


@router.post("/change-password")
@limiter.limit("10/minute")
async def change_password(
    request: Request,
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(db, current_user, payload.old_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}
