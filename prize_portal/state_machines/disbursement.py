"""
Disbursement State Machine

Explicit per-team state for the prize payout:

    awaiting_bank_details --submit--> payment_pending --mark_paid--> paid

Team.disbursement_state and BankDetails.payment_status are only ever
changed here, and always together. Callers own the transaction: the
machine flushes but never commits.
"""
import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.exceptions import AlreadySubmittedError, InvalidTransitionError
from prize_portal.orm.bank_details import BankDetails, PaymentStatus
from prize_portal.orm.team import DisbursementState, Team
from prize_portal.utils.validators import BankFields

logger = logging.getLogger(__name__)


class DisbursementStateMachine:
    """
    Server-side state machine for one team's prize.

    Guards (who may act) are checked by the services before the machine
    is invoked; the machine enforces only what the current state allows.
    """

    # Valid state transitions: {current_state: [allowed_next_states]}
    ALLOWED_TRANSITIONS: Dict[DisbursementState, List[DisbursementState]] = {
        DisbursementState.AWAITING_BANK_DETAILS: [DisbursementState.PAYMENT_PENDING],
        DisbursementState.PAYMENT_PENDING: [DisbursementState.PAID],
        DisbursementState.PAID: [],  # Terminal state
    }

    # Payment status mirrored onto the bank record for each team state
    PAYMENT_STATUS_FOR_STATE: Dict[DisbursementState, PaymentStatus] = {
        DisbursementState.PAYMENT_PENDING: PaymentStatus.PENDING,
        DisbursementState.PAID: PaymentStatus.COMPLETED,
    }

    def __init__(self, db: AsyncSession, team: Team):
        self.db = db
        self.team = team

    @classmethod
    def can_transition(cls, from_state: DisbursementState, to_state: DisbursementState) -> bool:
        return to_state in cls.ALLOWED_TRANSITIONS.get(from_state, [])

    def _advance(self, new_state: DisbursementState) -> DisbursementState:
        old_state = self.team.disbursement_state
        if not self.can_transition(old_state, new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {old_state.value} to {new_state.value}. "
                f"Allowed: {[s.value for s in self.ALLOWED_TRANSITIONS.get(old_state, [])]}"
            )
        self.team.disbursement_state = new_state
        return old_state

    async def _has_bank_details(self, team_id: int) -> bool:
        result = await self.db.execute(
            select(BankDetails.id).where(BankDetails.team_id == team_id)
        )
        return result.scalar_one_or_none() is not None

    async def submit(
        self,
        submitter_id: int,
        fields: BankFields,
        account_number_encrypted: str,
        used_saved_profile: bool = False
    ) -> BankDetails:
        """
        Record the leader's bank details and move the team to payment_pending.

        Raises:
            AlreadySubmittedError: the team already left awaiting_bank_details,
                or a concurrent submission won the unique constraint on team_id.
                The session is rolled back in the second case.
        """
        if self.team.bank_details is not None or \
                self.team.disbursement_state != DisbursementState.AWAITING_BANK_DETAILS:
            raise AlreadySubmittedError()

        team_id = self.team.id
        bank_details = BankDetails(
            team=self.team,
            event_id=self.team.event_id,
            entity_id=self.team.event.entity_id,
            account_holder_name=fields.account_holder_name,
            account_number_encrypted=account_number_encrypted,
            ifsc_code=fields.ifsc_code,
            bank_name=fields.bank_name,
            branch_name=fields.branch_name,
            amount=self.team.prize_amount,
            submitted_by_id=submitter_id,
            used_saved_profile=used_saved_profile,
            submitted_at=datetime.utcnow(),
            payment_status=self.PAYMENT_STATUS_FOR_STATE[DisbursementState.PAYMENT_PENDING],
        )
        self.db.add(bank_details)

        old_state = self._advance(DisbursementState.PAYMENT_PENDING)
        self.team.submitted_by_id = submitter_id

        try:
            await self.db.flush()
        except IntegrityError:
            # rollback expires self.team; use the id captured above
            await self.db.rollback()
            if not await self._has_bank_details(team_id):
                raise
            logger.info(f"Team {team_id}: concurrent bank details submission rejected")
            raise AlreadySubmittedError()

        logger.info(
            f"Team {team_id} transitioned: {old_state.value} -> "
            f"{self.team.disbursement_state.value} by user {submitter_id}"
        )
        return bank_details

    async def mark_paid(
        self,
        bank_details: BankDetails,
        actor_id: int,
        payment_date: datetime,
        payment_reference: str
    ) -> BankDetails:
        """
        Close the payout. Only amount-independent payment fields change;
        the stored amount and encrypted account number are left as submitted.

        The status change is a conditional UPDATE on payment_status, so of
        two concurrent callers exactly one wins; the other gets
        InvalidTransitionError and its session is rolled back.
        """
        if bank_details.payment_status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                f"Cannot mark payment as paid: status is already {bank_details.payment_status.value}"
            )

        old_state = self._advance(DisbursementState.PAID)
        bank_details_id = bank_details.id

        result = await self.db.execute(
            update(BankDetails)
            .where(
                BankDetails.id == bank_details_id,
                BankDetails.payment_status == PaymentStatus.PENDING,
            )
            .values(
                payment_status=self.PAYMENT_STATUS_FOR_STATE[DisbursementState.PAID],
                payment_date=payment_date,
                payment_reference=payment_reference,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            logger.info(f"Bank details {bank_details_id}: concurrent mark paid rejected")
            raise InvalidTransitionError("Cannot mark payment as paid: status is already completed")

        await self.db.flush()
        await self.db.refresh(bank_details)

        logger.info(
            f"Team {self.team.id} transitioned: {old_state.value} -> "
            f"{self.team.disbursement_state.value} by user {actor_id}"
        )
        return bank_details
