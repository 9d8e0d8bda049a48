"""
prize_portal/orm/team.py
Winning team and its membership.

Each team belongs to exactly one event and has exactly one leader.
The disbursement state is an explicit tag moved only by the
disbursement state machine.
"""
from sqlalchemy import (
    Column, Integer, Boolean, Numeric, ForeignKey, Index, UniqueConstraint,
    Enum as SQLEnum, text
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from prize_portal.orm.base import BaseModel


class DisbursementState(str, PyEnum):
    """Lifecycle of a team's prize: awaiting_bank_details -> payment_pending -> paid"""
    AWAITING_BANK_DETAILS = "awaiting_bank_details"
    PAYMENT_PENDING = "payment_pending"
    PAID = "paid"


class Team(BaseModel):
    __tablename__ = "teams"

    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    prize_amount = Column(Numeric(12, 2), nullable=False)

    disbursement_state = Column(
        SQLEnum(DisbursementState),
        default=DisbursementState.AWAITING_BANK_DETAILS,
        nullable=False,
        index=True
    )
    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "position", name="uq_team_event_position"),
    )

    event = relationship("Event", back_populates="teams", lazy="selectin")
    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.id",
        lazy="selectin",
        cascade="all, delete-orphan"
    )
    bank_details = relationship("BankDetails", back_populates="team", uselist=False, lazy="selectin")

    @hybrid_property
    def bank_details_submitted(self) -> bool:
        return self.disbursement_state != DisbursementState.AWAITING_BANK_DETAILS

    @bank_details_submitted.expression
    def bank_details_submitted(cls):
        return cls.disbursement_state != DisbursementState.AWAITING_BANK_DETAILS

    @property
    def leader(self):
        for member in self.members:
            if member.is_leader:
                return member
        return None

    def member_for(self, user_id: int):
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def __repr__(self):
        return f"<Team(id={self.id}, event={self.event_id}, position={self.position}, state={self.disbursement_state})>"

    def to_dict(self, include_members=False):
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "position": self.position,
            "prize_amount": float(self.prize_amount) if self.prize_amount is not None else None,
            "disbursement_state": self.disbursement_state.value if self.disbursement_state else None,
            "bank_details_submitted": self.bank_details_submitted,
            "submitted_by_id": self.submitted_by_id,
        }

        if self.bank_details is not None:
            data["bank_details"] = {
                "id": self.bank_details.id,
                "payment_status": self.bank_details.payment_status.value,
                "submitted_at": self.bank_details.submitted_at.isoformat() if self.bank_details.submitted_at else None,
            }
        else:
            data["bank_details"] = None

        if include_members:
            data["members"] = [member.to_dict() for member in self.members]

        return data


class TeamMember(BaseModel):
    """
    Association between a team and a student.
    Storage allows at most one leader row per team; the exactly-one
    rule is checked before insert by the event service.
    """
    __tablename__ = "team_members"

    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_leader = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_member"),
        Index(
            "uq_team_single_leader",
            "team_id",
            unique=True,
            sqlite_where=text("is_leader = 1"),
            postgresql_where=text("is_leader")
        ),
    )

    team = relationship("Team", back_populates="members", lazy="selectin")
    user = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<TeamMember(team={self.team_id}, user={self.user_id}, leader={self.is_leader})>"

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "email": self.user.email if self.user else None,
            "student_name": self.user.student_name if self.user else None,
            "is_leader": self.is_leader,
        }
