"""
prize_portal/orm/bank_details.py
Bank details submitted by a team leader, and a student's saved bank profile.

BankDetails: at most one per team, created once, never deleted.
Only payment_status/payment_date/payment_reference change afterwards.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Index,
    CheckConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from prize_portal.orm.base import BaseModel


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class BankDetails(BaseModel):
    __tablename__ = "bank_details"

    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, unique=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    entity_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    account_holder_name = Column(String(200), nullable=False)
    account_number_encrypted = Column(String(255), nullable=False)
    ifsc_code = Column(String(11), nullable=False)
    bank_name = Column(String(200), nullable=False)
    branch_name = Column(String(200), nullable=False)

    # Copied from the team at submission; never re-derived
    amount = Column(Numeric(12, 2), nullable=False)

    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    used_saved_profile = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_date = Column(DateTime, nullable=True)
    payment_reference = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_bank_details_amount_non_negative"),
        Index("idx_bank_details_status", "payment_status"),
    )

    team = relationship("Team", back_populates="bank_details", lazy="selectin")
    event = relationship("Event", lazy="selectin")
    submitter = relationship("User", foreign_keys=[submitted_by_id], lazy="selectin")

    def __repr__(self):
        return f"<BankDetails(id={self.id}, team={self.team_id}, status={self.payment_status})>"

    def to_dict(self):
        """Public fields only: the encrypted account number is never included."""
        return {
            "id": self.id,
            "team_id": self.team_id,
            "event_id": self.event_id,
            "entity_id": self.entity_id,
            "account_holder_name": self.account_holder_name,
            "ifsc_code": self.ifsc_code,
            "bank_name": self.bank_name,
            "branch_name": self.branch_name,
            "amount": float(self.amount) if self.amount is not None else None,
            "submitted_by_id": self.submitted_by_id,
            "used_saved_profile": self.used_saved_profile,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "payment_status": self.payment_status.value if self.payment_status else None,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "payment_reference": self.payment_reference,
        }


class BankProfile(BaseModel):
    """Saved bank template, owned by one student."""
    __tablename__ = "bank_profiles"

    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    account_holder_name = Column(String(200), nullable=False)
    account_number_encrypted = Column(String(255), nullable=False)
    ifsc_code = Column(String(11), nullable=False)
    bank_name = Column(String(200), nullable=False)
    branch_name = Column(String(200), nullable=False)

    def __repr__(self):
        return f"<BankProfile(id={self.id}, student={self.student_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "account_holder_name": self.account_holder_name,
            "ifsc_code": self.ifsc_code,
            "bank_name": self.bank_name,
            "branch_name": self.branch_name,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
