"""
prize_portal/services/reconciliation_service.py
Treasury statistics and bank-details reminders.

compute_statistics and find_pending_leaders are pure folds over loaded
rows; only send_reminders touches storage and the notifier.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import storage_guard
from prize_portal.orm.bank_details import PaymentStatus
from prize_portal.orm.event import Event
from prize_portal.services.email_service import Notifier
from prize_portal.services.event_service import load_pending_teams

logger = logging.getLogger(__name__)


@dataclass
class PendingReminder:
    """Everything a reminder needs for one team still owing bank details."""
    team_id: int
    event_id: int
    event_name: str
    prize_amount: Decimal
    leader_email: str
    leader_name: Optional[str]
    member_emails: List[str] = field(default_factory=list)


def compute_statistics(events: Iterable[Event]) -> Dict[str, object]:
    stats = {
        "total_events": 0,
        "total_prize_pool": Decimal("0"),
        "pending_bank_submissions": 0,
        "pending_payments": 0,
        "completed_payments": 0,
        "total_amount_pending": Decimal("0"),
        "total_amount_paid": Decimal("0"),
    }

    for event in events:
        stats["total_events"] += 1
        stats["total_prize_pool"] += Decimal(event.total_prize_pool or 0)

        for team in event.teams:
            if not team.bank_details_submitted:
                stats["pending_bank_submissions"] += 1

            bank_details = team.bank_details
            if bank_details is None:
                continue

            if bank_details.payment_status == PaymentStatus.PENDING:
                stats["pending_payments"] += 1
                stats["total_amount_pending"] += Decimal(bank_details.amount)
            elif bank_details.payment_status == PaymentStatus.COMPLETED:
                stats["completed_payments"] += 1
                stats["total_amount_paid"] += Decimal(bank_details.amount)

    return stats


def find_pending_leaders(teams) -> List[PendingReminder]:
    """
    One reminder per team that has not submitted bank details.
    Teams without a leader row are skipped.
    """
    reminders = []
    for team in teams:
        if team.bank_details_submitted:
            continue

        leader = team.leader
        if leader is None:
            logger.warning(f"Team {team.id} has no leader; no reminder possible")
            continue

        reminders.append(PendingReminder(
            team_id=team.id,
            event_id=team.event_id,
            event_name=team.event.event_name,
            prize_amount=team.prize_amount,
            leader_email=leader.user.email,
            leader_name=leader.user.student_name,
            member_emails=[m.user.email for m in team.members if not m.is_leader],
        ))
    return reminders


async def load_statistics(db: AsyncSession) -> Dict[str, object]:
    async with storage_guard("load_statistics"):
        result = await db.execute(select(Event).execution_options(populate_existing=True))
        events = result.scalars().all()
    return compute_statistics(events)


async def send_reminders(db: AsyncSession, notifier: Notifier) -> Dict[str, int]:
    """Remind every pending leader once; counts come from the notifier's results."""
    reminders = find_pending_leaders(await load_pending_teams(db))

    sent = failed = 0
    for reminder in reminders:
        ok = await notifier.send_reminder(
            email=reminder.leader_email,
            name=reminder.leader_name,
            event_name=reminder.event_name,
            prize_amount=reminder.prize_amount,
            team_members=reminder.member_emails,
            event_id=reminder.event_id,
        )
        if ok:
            sent += 1
        else:
            failed += 1

    logger.info(f"Reminders: sent={sent} failed={failed} total={len(reminders)}")
    return {"sent": sent, "failed": failed, "total": len(reminders)}
