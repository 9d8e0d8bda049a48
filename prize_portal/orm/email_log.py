"""
prize_portal/orm/email_log.py
Append-only record of every notification attempt.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from enum import Enum as PyEnum
from prize_portal.orm.base import Base


class EmailType(str, PyEnum):
    TEAM_LEADER_NOTIFICATION = "team_leader_notification"
    TEAM_MEMBER_NOTIFICATION = "team_member_notification"
    REMINDER = "reminder"
    INITIAL_CREDENTIALS = "initial_credentials"


class EmailStatus(str, PyEnum):
    SENT = "sent"
    FAILED = "failed"


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    recipient_email = Column(String(255), nullable=False, index=True)
    email_type = Column(SQLEnum(EmailType), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    status = Column(SQLEnum(EmailStatus), nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EmailLog(id={self.id}, to='{self.recipient_email}', type={self.email_type}, status={self.status})>"
