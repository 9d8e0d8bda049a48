from .base import Base

from .user import User, UserRole
from .event import Event
from .team import Team, TeamMember, DisbursementState
from .bank_details import BankDetails, BankProfile, PaymentStatus
from .email_log import EmailLog, EmailType, EmailStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Event",
    "Team",
    "TeamMember",
    "DisbursementState",
    "BankDetails",
    "BankProfile",
    "PaymentStatus",
    "EmailLog",
    "EmailType",
    "EmailStatus",
]
