"""
prize_portal/services/auth_service.py
Login, password changes and account provisioning.

bcrypt blocks the event loop, so hashing runs in a thread pool.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.config import get_settings
from prize_portal.database import storage_guard
from prize_portal.exceptions import DuplicateEmailError, InvalidInputError, UnauthorizedError
from prize_portal.orm.user import User, UserRole
from prize_portal.security.rbac import create_access_token
from prize_portal.utils.executor import run_blocking
from prize_portal.utils.validators import is_allowed_email, normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789!@#$%"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=10,
)


def normalize_password(password: str) -> str:
    """
    bcrypt only supports 72 bytes.
    Truncate after UTF-8 encoding so hash and verify agree.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


async def hash_password_async(password: str) -> str:
    return await run_blocking(pwd_context.hash, normalize_password(password))


async def verify_password_async(plain: str, hashed: str) -> bool:
    return await run_blocking(pwd_context.verify, normalize_password(plain), hashed)


def generate_password(length: int = 12) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclass
class ProvisionedUser:
    """
    A freshly created account and its one-time plain password.
    Plain values only, so a later rollback in the same session cannot expire them.
    """
    user_id: int
    email: str
    role: UserRole
    name: Optional[str]
    password: str


async def login(db: AsyncSession, email: str, password: str) -> Dict[str, Any]:
    """
    Verify credentials and issue an access token.
    Unknown email, wrong password and inactive account look the same to the caller.
    """
    async with storage_guard("login"):
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        user = result.scalar_one_or_none()

    if not user or not user.is_active or not await verify_password_async(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise UnauthorizedError()

    async with storage_guard("login"):
        user.last_login = datetime.utcnow()
        await db.commit()

    logger.info(f"User {user.id} logged in")
    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "user": user.to_dict(),
    }


async def change_password(db: AsyncSession, user: User, old_password: str, new_password: str) -> None:
    if not old_password or not new_password:
        raise InvalidInputError("Old and new passwords are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")

    if not await verify_password_async(old_password, user.password_hash):
        raise InvalidInputError("Current password is incorrect")

    async with storage_guard("change_password"):
        user.password_hash = await hash_password_async(new_password)
        await db.commit()

    logger.info(f"User {user.id} changed password")


async def create_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    student_name: Optional[str] = None,
    entity_name: Optional[str] = None,
    password: Optional[str] = None
) -> ProvisionedUser:
    """
    Create one account. Students and entities must use the allowed
    email domain; treasury accounts are exempt.
    """
    email = normalize_email(email)
    if role != UserRole.treasury and not is_allowed_email(email, get_settings().allowed_email_domain):
        raise InvalidInputError("Invalid email domain", [email])

    plain = password or generate_password()
    user = User(
        email=email,
        password_hash=await hash_password_async(plain),
        role=role,
        student_name=student_name,
        entity_name=entity_name,
        is_active=True,
    )

    async with storage_guard("create_user"):
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateEmailError(email)

    logger.info(f"Created {role.value} account {user.id}")
    return ProvisionedUser(
        user_id=user.id,
        email=user.email,
        role=role,
        name=student_name or entity_name,
        password=plain,
    )


async def bulk_create_users(
    db: AsyncSession,
    rows: List[Dict[str, Optional[str]]],
    role: UserRole
) -> Dict[str, List]:
    """
    Create many accounts of one role, continuing past individual failures.

    Returns {"created": [ProvisionedUser], "failed": [{"email", "error"}]}.
    """
    created, failed = [], []
    for row in rows:
        try:
            created.append(await create_user(
                db,
                email=row.get("email") or "",
                role=role,
                student_name=row.get("student_name"),
                entity_name=row.get("entity_name"),
            ))
        except (InvalidInputError, DuplicateEmailError) as e:
            failed.append({"email": row.get("email"), "error": e.message})

    logger.info(f"Bulk {role.value} provisioning: created={len(created)} failed={len(failed)}")
    return {"created": created, "failed": failed}
