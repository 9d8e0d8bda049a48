"""
prize_portal/services/bank_details_service.py
Bank details lifecycle: submit, view, mark paid, export.

Each public method is one transaction. Authorization is checked through
the access policy before validation, and validation runs before any write.
"""
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import storage_guard
from prize_portal.exceptions import InvalidInputError, NotFoundError
from prize_portal.orm.bank_details import BankDetails
from prize_portal.orm.team import Team
from prize_portal.orm.user import User
from prize_portal.security import access_policy
from prize_portal.security.pii_cipher import PIICipher, get_cipher
from prize_portal.services.bank_profile_service import upsert_profile
from prize_portal.state_machines.disbursement import DisbursementStateMachine
from prize_portal.utils.validators import normalize_bank_details, validate_bank_details

logger = logging.getLogger(__name__)


class BankDetailsService:
    """Operations on a team's single bank-details record."""

    @staticmethod
    async def _load_team(db: AsyncSession, team_id: int) -> Team:
        async with storage_guard("load_team"):
            result = await db.execute(
                select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
            )
            team = result.scalar_one_or_none()
        if not team:
            raise NotFoundError("Team", team_id)
        return team

    @staticmethod
    def _masked(bank_details: BankDetails, cipher: PIICipher) -> Dict[str, Any]:
        data = bank_details.to_dict()
        data["account_number_masked"] = cipher.mask_envelope(bank_details.account_number_encrypted)
        return data

    @classmethod
    async def submit_bank_details(
        cls,
        db: AsyncSession,
        student: User,
        team_id: int,
        data: Dict[str, Any],
        save_profile: bool = False,
        used_saved_profile: bool = False,
        cipher: Optional[PIICipher] = None
    ) -> Dict[str, Any]:
        """
        Leader submits the team's bank account.

        Validations:
        - Team must exist
        - Caller must be the team's leader
        - Every field must be well formed (all violations reported together)
        - Team must still be awaiting bank details
        """
        team = await cls._load_team(db, team_id)

        access_policy.require(
            access_policy.can_submit_bank_details(student, team),
            "Only the team leader can submit bank details"
        )

        errors = validate_bank_details(data)
        if errors:
            raise InvalidInputError("Invalid bank details", errors)

        cipher = cipher or get_cipher()
        fields = normalize_bank_details(data)

        async with storage_guard("submit_bank_details"):
            machine = DisbursementStateMachine(db, team)
            bank_details = await machine.submit(
                submitter_id=student.id,
                fields=fields,
                account_number_encrypted=cipher.encrypt(fields.account_number),
                used_saved_profile=used_saved_profile,
            )

            if save_profile:
                await upsert_profile(db, student.id, fields, cipher)

            await db.commit()

        logger.info(f"Bank details {bank_details.id} submitted for team {team.id} (profile saved={save_profile})")
        return cls._masked(bank_details, cipher)

    @classmethod
    async def view_bank_details(
        cls,
        db: AsyncSession,
        user: User,
        team_id: int,
        cipher: Optional[PIICipher] = None
    ) -> Optional[Dict[str, Any]]:
        """Masked view for team members and treasury. None when nothing was submitted."""
        team = await cls._load_team(db, team_id)

        access_policy.require(access_policy.can_view_bank_details(user, team), "Access denied")

        if team.bank_details is None:
            return None

        return cls._masked(team.bank_details, cipher or get_cipher())

    @classmethod
    async def mark_paid(
        cls,
        db: AsyncSession,
        treasury: User,
        bank_details_id: int,
        payment_date: Union[date, datetime, None],
        payment_reference: Optional[str],
        cipher: Optional[PIICipher] = None
    ) -> Dict[str, Any]:
        access_policy.require(access_policy.can_mark_paid(treasury), "Treasury access required")

        errors = []
        if not payment_date:
            errors.append("Payment date is required")
        if not payment_reference or not payment_reference.strip():
            errors.append("Payment reference is required")
        if errors:
            raise InvalidInputError("Invalid payment details", errors)

        if not isinstance(payment_date, datetime):
            payment_date = datetime.combine(payment_date, time.min)

        async with storage_guard("mark_paid"):
            # FOR UPDATE is a no-op on SQLite; the machine's conditional UPDATE still holds
            result = await db.execute(
                select(BankDetails)
                .where(BankDetails.id == bank_details_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            bank_details = result.scalar_one_or_none()
            if not bank_details:
                raise NotFoundError("Bank details", bank_details_id)

            machine = DisbursementStateMachine(db, bank_details.team)
            await machine.mark_paid(
                bank_details,
                actor_id=treasury.id,
                payment_date=payment_date,
                payment_reference=payment_reference.strip(),
            )
            await db.commit()

        return cls._masked(bank_details, cipher or get_cipher())

    @classmethod
    async def export_all(
        cls,
        db: AsyncSession,
        treasury: User,
        cipher: Optional[PIICipher] = None
    ) -> List[Dict[str, Any]]:
        """
        Every bank record with the account number in the clear, newest first.

        Not best-effort: one undecryptable record fails the whole export.
        """
        access_policy.require(access_policy.can_export(treasury), "Treasury access required")
        cipher = cipher or get_cipher()

        async with storage_guard("export_all"):
            result = await db.execute(
                select(BankDetails)
                .order_by(BankDetails.submitted_at.desc(), BankDetails.id.desc())
                .execution_options(populate_existing=True)
            )
            records = result.scalars().all()

        rows = []
        for record in records:
            event = record.event
            rows.append({
                "id": record.id,
                "event_name": event.event_name,
                "entity_name": event.entity.entity_name if event.entity else None,
                "team_position": record.team.position,
                "submitted_by": record.submitter.email if record.submitter else None,
                "account_holder_name": record.account_holder_name,
                "account_number": cipher.decrypt(record.account_number_encrypted),
                "ifsc_code": record.ifsc_code,
                "bank_name": record.bank_name,
                "branch_name": record.branch_name,
                "amount": record.amount,
                "payment_status": record.payment_status.value,
                "submitted_at": record.submitted_at,
                "payment_date": record.payment_date,
                "payment_reference": record.payment_reference,
            })

        logger.info(f"Export of {len(rows)} bank records by user {treasury.id}")
        return rows

    @classmethod
    async def prize_history(
        cls,
        db: AsyncSession,
        student: User,
        cipher: Optional[PIICipher] = None
    ) -> List[Dict[str, Any]]:
        """Bank records this student submitted, masked, newest first."""
        access_policy.require(access_policy.can_manage_bank_profile(student), "Only students have a prize history")
        cipher = cipher or get_cipher()

        async with storage_guard("prize_history"):
            result = await db.execute(
                select(BankDetails)
                .where(BankDetails.submitted_by_id == student.id)
                .order_by(BankDetails.submitted_at.desc(), BankDetails.id.desc())
                .execution_options(populate_existing=True)
            )
            records = result.scalars().all()

        history = []
        for record in records:
            data = cls._masked(record, cipher)
            data["event_name"] = record.event.event_name
            data["team_position"] = record.team.position
            history.append(data)
        return history
