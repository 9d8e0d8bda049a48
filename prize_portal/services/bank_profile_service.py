"""
prize_portal/services/bank_profile_service.py
A student's saved bank template.

Profiles are owned by one student and never share ciphertext with a
submitted bank record: every save encrypts the account number afresh.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import storage_guard
from prize_portal.exceptions import InvalidInputError, NotFoundError
from prize_portal.orm.bank_details import BankProfile
from prize_portal.orm.user import User
from prize_portal.security import access_policy
from prize_portal.security.pii_cipher import PIICipher, get_cipher
from prize_portal.utils.validators import BankFields, normalize_bank_details, validate_bank_details

logger = logging.getLogger(__name__)


async def _find_profile(db: AsyncSession, student_id: int) -> Optional[BankProfile]:
    result = await db.execute(select(BankProfile).where(BankProfile.student_id == student_id))
    return result.scalar_one_or_none()


async def upsert_profile(
    db: AsyncSession,
    student_id: int,
    fields: BankFields,
    cipher: PIICipher
) -> BankProfile:
    """Insert or overwrite the student's profile. Flushes; the caller commits."""
    profile = await _find_profile(db, student_id)
    if profile is None:
        profile = BankProfile(student_id=student_id)
        db.add(profile)

    profile.account_holder_name = fields.account_holder_name
    profile.account_number_encrypted = cipher.encrypt(fields.account_number)
    profile.ifsc_code = fields.ifsc_code
    profile.bank_name = fields.bank_name
    profile.branch_name = fields.branch_name

    await db.flush()
    return profile


def _masked(profile: BankProfile, cipher: PIICipher) -> Dict[str, Any]:
    data = profile.to_dict()
    data["account_number_masked"] = cipher.mask_envelope(profile.account_number_encrypted)
    return data


async def get_bank_profile(
    db: AsyncSession,
    student: User,
    cipher: Optional[PIICipher] = None
) -> Optional[Dict[str, Any]]:
    access_policy.require(access_policy.can_manage_bank_profile(student), "Only students have bank profiles")
    cipher = cipher or get_cipher()

    async with storage_guard("get_bank_profile"):
        profile = await _find_profile(db, student.id)

    return _masked(profile, cipher) if profile else None


async def save_bank_profile(
    db: AsyncSession,
    student: User,
    data: Dict[str, Any],
    cipher: Optional[PIICipher] = None
) -> Dict[str, Any]:
    access_policy.require(access_policy.can_manage_bank_profile(student), "Only students have bank profiles")

    errors = validate_bank_details(data)
    if errors:
        raise InvalidInputError("Invalid bank details", errors)

    cipher = cipher or get_cipher()
    fields = normalize_bank_details(data)

    async with storage_guard("save_bank_profile"):
        profile = await upsert_profile(db, student.id, fields, cipher)
        await db.commit()

    logger.info(f"Bank profile saved for student {student.id}")
    return _masked(profile, cipher)


async def delete_bank_profile(db: AsyncSession, student: User) -> None:
    access_policy.require(access_policy.can_manage_bank_profile(student), "Only students have bank profiles")

    async with storage_guard("delete_bank_profile"):
        profile = await _find_profile(db, student.id)
        if profile is None:
            raise NotFoundError("Bank profile")
        await db.delete(profile)
        await db.commit()

    logger.info(f"Bank profile deleted for student {student.id}")
