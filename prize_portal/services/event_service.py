"""
prize_portal/services/event_service.py
Event creation and event/team read views.

Creation is all-or-nothing: every check, including resolving member
emails to students, runs before the first write, and the event, its
teams and their members are committed in one transaction.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.config import get_settings
from prize_portal.database import storage_guard
from prize_portal.exceptions import (
    InvalidInputError,
    InvalidTeamCompositionError,
    NotFoundError,
)
from prize_portal.orm.event import Event
from prize_portal.orm.team import DisbursementState, Team, TeamMember
from prize_portal.orm.user import User, UserRole
from prize_portal.security import access_policy
from prize_portal.services.email_service import Notifier
from prize_portal.utils.validators import is_allowed_email, normalize_email

logger = logging.getLogger(__name__)


def _to_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def validate_event_request(
    event_name: Optional[str],
    total_prize_pool: Any,
    teams: Optional[List[Dict[str, Any]]],
    allowed_domain: str
) -> None:
    """
    Check an event request without touching storage.

    Raises:
        InvalidInputError: malformed fields, bad email domains, duplicate emails
        InvalidTeamCompositionError: a team without exactly one leader
    """
    errors = []

    if not event_name or not event_name.strip():
        errors.append("Event name is required")

    pool = _to_amount(total_prize_pool)
    if pool is None or pool <= 0:
        errors.append("Total prize pool must be a positive amount")

    if not isinstance(teams, list) or not teams:
        errors.append("At least one team is required")
        raise InvalidInputError("Invalid event request", errors)

    for position, team in enumerate(teams, start=1):
        prize = _to_amount(team.get("prize_amount"))
        if prize is None or prize <= 0:
            errors.append(f"Team {position}: prize amount must be a positive amount")
        members = team.get("members")
        if not isinstance(members, list) or not members:
            errors.append(f"Team {position}: at least one member is required")

    if errors:
        raise InvalidInputError("Invalid event request", errors)

    bad_teams = [
        position for position, team in enumerate(teams, start=1)
        if sum(1 for m in team["members"] if m.get("is_team_leader")) != 1
    ]
    if bad_teams:
        raise InvalidTeamCompositionError(
            "Each team must have exactly one team leader",
            {"teams": bad_teams}
        )

    seen = set()
    for position, team in enumerate(teams, start=1):
        for member in team["members"]:
            email = normalize_email(member.get("email"))
            if not is_allowed_email(email, allowed_domain):
                errors.append(f"Team {position}: invalid email domain: {member.get('email')}")
            elif email in seen:
                errors.append(f"Team {position}: duplicate member email: {email}")
            seen.add(email)

    if errors:
        raise InvalidInputError("Invalid team members", errors)


async def _resolve_students(db: AsyncSession, emails: List[str]) -> Dict[str, User]:
    result = await db.execute(
        select(User).where(
            User.email.in_(emails),
            User.role == UserRole.student,
            User.is_active.is_(True)
        )
    )
    return {user.email: user for user in result.scalars().all()}


async def create_event(
    db: AsyncSession,
    entity: User,
    event_name: str,
    total_prize_pool: Any,
    teams: List[Dict[str, Any]],
    notifier: Optional[Notifier] = None
) -> Event:
    """
    Create an event with its ranked teams and notify the winners.

    Teams get positions 1..n in request order. Unknown or inactive
    member emails reject the whole request.
    """
    access_policy.require(access_policy.can_create_event(entity), "Only entities can create events")

    validate_event_request(event_name, total_prize_pool, teams, get_settings().allowed_email_domain)

    emails = [normalize_email(m["email"]) for team in teams for m in team["members"]]

    async with storage_guard("create_event"):
        students = await _resolve_students(db, emails)

        missing = [email for email in emails if email not in students]
        if missing:
            raise InvalidTeamCompositionError(
                "Some team members are not registered students",
                {"missing_emails": missing}
            )

        event = Event(
            entity_id=entity.id,
            event_name=event_name.strip(),
            total_prize_pool=_to_amount(total_prize_pool),
            teams=[
                Team(
                    position=position,
                    prize_amount=_to_amount(team["prize_amount"]),
                    members=[
                        TeamMember(
                            user=students[normalize_email(m["email"])],
                            is_leader=bool(m.get("is_team_leader")),
                        )
                        for m in team["members"]
                    ],
                )
                for position, team in enumerate(teams, start=1)
            ],
        )
        db.add(event)

        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

    logger.info(f"Event {event.id} created by entity {entity.id} with {len(event.teams)} teams")

    if notifier is not None:
        await notify_winners(event, entity, notifier)

    return event


async def notify_winners(event: Event, entity: User, notifier: Notifier) -> Dict[str, int]:
    """
    Tell each team's leader and members they won.
    Runs after commit; failures are counted and logged, never raised.
    """
    sent = failed = 0
    entity_name = entity.entity_name or "Unknown Entity"

    for team in event.teams:
        leader = team.leader
        others = [m for m in team.members if not m.is_leader]

        try:
            outcomes = [
                await notifier.send_team_leader_notification(
                    email=leader.user.email,
                    name=leader.user.student_name,
                    event_name=event.event_name,
                    entity_name=entity_name,
                    prize_amount=team.prize_amount,
                    team_members=[m.user.email for m in others],
                    event_id=event.id,
                )
            ]
            for member in others:
                outcomes.append(await notifier.send_team_member_notification(
                    email=member.user.email,
                    name=member.user.student_name,
                    event_name=event.event_name,
                    entity_name=entity_name,
                    prize_amount=team.prize_amount,
                    team_leader_email=leader.user.email,
                    event_id=event.id,
                ))
        except SQLAlchemyError as e:
            # Email log could not be written; the event itself is already committed
            logger.error(f"Winner notification for team {team.id} aborted: {type(e).__name__}")
            failed += len(team.members)
            continue

        sent += sum(1 for ok in outcomes if ok)
        failed += sum(1 for ok in outcomes if not ok)

    logger.info(f"Event {event.id} winner notifications: sent={sent} failed={failed}")
    return {"sent": sent, "failed": failed}


async def _load_event(db: AsyncSession, event_id: int) -> Event:
    async with storage_guard("load_event"):
        result = await db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError("Event", event_id)
    return event


async def list_entity_events(db: AsyncSession, entity: User) -> List[Dict[str, Any]]:
    access_policy.require(access_policy.can_create_event(entity), "Only entities can list their events")

    async with storage_guard("list_entity_events"):
        result = await db.execute(
            select(Event)
            .where(Event.entity_id == entity.id)
            .order_by(Event.created_at.desc(), Event.id.desc())
            .execution_options(populate_existing=True)
        )
        events = result.scalars().all()

    return [event.to_dict(include_teams=True) for event in events]


async def get_event_details(db: AsyncSession, user: User, event_id: int) -> Dict[str, Any]:
    event = await _load_event(db, event_id)
    access_policy.require(access_policy.can_view_event(user, event), "Access denied")
    return event.to_dict(include_teams=True)


async def list_student_events(db: AsyncSession, student: User) -> List[Dict[str, Any]]:
    """Every team the student is on, newest event first."""
    access_policy.require(student is not None and student.role == UserRole.student and student.is_active,
                          "Only students can view their prizes")

    async with storage_guard("list_student_events"):
        result = await db.execute(
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .join(Event, Team.event_id == Event.id)
            .where(TeamMember.user_id == student.id)
            .order_by(Event.created_at.desc(), Event.id.desc(), Team.position)
            .execution_options(populate_existing=True)
        )
        teams = result.scalars().all()

    items = []
    for team in teams:
        membership = team.member_for(student.id)
        event = team.event
        items.append({
            "team_id": team.id,
            "event_id": event.id,
            "event_name": event.event_name,
            "entity_name": event.entity.entity_name if event.entity else None,
            "position": team.position,
            "prize_amount": float(team.prize_amount),
            "is_team_leader": membership.is_leader,
            "bank_details_submitted": team.bank_details_submitted,
            "disbursement_state": team.disbursement_state.value,
            "payment_status": team.bank_details.payment_status.value if team.bank_details else None,
            "team_members": [m.to_dict() for m in team.members],
        })
    return items


async def list_all_events(db: AsyncSession, treasury: User) -> List[Dict[str, Any]]:
    access_policy.require(access_policy.can_mark_paid(treasury), "Treasury access required")

    async with storage_guard("list_all_events"):
        result = await db.execute(
            select(Event)
            .order_by(Event.created_at.desc(), Event.id.desc())
            .execution_options(populate_existing=True)
        )
        events = result.scalars().all()

    return [event.to_dict(include_teams=True) for event in events]


async def load_pending_teams(db: AsyncSession) -> List[Team]:
    """Teams whose leader has not submitted bank details yet."""
    async with storage_guard("load_pending_teams"):
        result = await db.execute(
            select(Team)
            .where(Team.disbursement_state == DisbursementState.AWAITING_BANK_DETAILS)
            .order_by(Team.event_id, Team.position)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


async def list_pending_bank_details(db: AsyncSession, treasury: User) -> List[Dict[str, Any]]:
    access_policy.require(access_policy.can_mark_paid(treasury), "Treasury access required")

    teams = await load_pending_teams(db)

    items = []
    for team in teams:
        leader = team.leader
        data = team.to_dict(include_members=True)
        data["event_name"] = team.event.event_name
        data["entity_name"] = team.event.entity.entity_name if team.event.entity else None
        data["leader_email"] = leader.user.email if leader else None
        items.append(data)
    return items
