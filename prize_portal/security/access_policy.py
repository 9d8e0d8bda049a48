"""
prize_portal/security/access_policy.py
Who may do what to which event, team or bank record.

All predicates are pure: they read already-loaded ORM objects and never
touch the session. Inactive users are denied by every predicate.
Services call require() with the predicate result before mutating anything.
"""
import logging

from prize_portal.exceptions import ForbiddenError
from prize_portal.orm.user import UserRole

logger = logging.getLogger(__name__)


def _is_active(user) -> bool:
    return user is not None and bool(user.is_active)


def _has_role(user, role: UserRole) -> bool:
    return _is_active(user) and user.role == role


def is_member(user, team) -> bool:
    if not _is_active(user) or team is None:
        return False
    return any(member.user_id == user.id for member in team.members)


def is_leader(user, team) -> bool:
    if not _is_active(user) or team is None:
        return False
    return any(member.user_id == user.id and member.is_leader for member in team.members)


def can_create_event(user) -> bool:
    return _has_role(user, UserRole.entity)


def can_view_event(user, event) -> bool:
    """Treasury sees all; an entity sees its own; a student sees events they won in."""
    if not _is_active(user) or event is None:
        return False
    if user.role == UserRole.treasury:
        return True
    if user.role == UserRole.entity:
        return event.entity_id == user.id
    if user.role == UserRole.student:
        return any(is_member(user, team) for team in event.teams)
    return False


def can_submit_bank_details(user, team) -> bool:
    return _has_role(user, UserRole.student) and is_leader(user, team)


def can_view_bank_details(user, team) -> bool:
    if not _is_active(user):
        return False
    if user.role == UserRole.treasury:
        return True
    return is_member(user, team)


def can_mark_paid(user) -> bool:
    return _has_role(user, UserRole.treasury)


def can_export(user) -> bool:
    return can_mark_paid(user)


def can_manage_bank_profile(user) -> bool:
    return _has_role(user, UserRole.student)


def require(allowed: bool, message: str = "Access forbidden") -> None:
    """Raise ForbiddenError unless the predicate result is true."""
    if not allowed:
        logger.warning(f"Access denied: {message}")
        raise ForbiddenError(message)
