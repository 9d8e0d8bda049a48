"""
prize_portal/orm/event.py
Event model: one prize-giving occasion created by an entity.
Immutable after creation; only its teams' disbursement state moves.
"""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from prize_portal.orm.base import BaseModel


class Event(BaseModel):
    __tablename__ = "events"

    entity_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_name = Column(String(255), nullable=False)
    total_prize_pool = Column(Numeric(12, 2), nullable=False)

    entity = relationship("User", lazy="selectin")
    teams = relationship(
        "Team",
        back_populates="event",
        order_by="Team.position",
        lazy="selectin",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.event_name}', entity={self.entity_id})>"

    def to_dict(self, include_teams=False):
        data = {
            "id": self.id,
            "entity_id": self.entity_id,
            "entity_name": self.entity.entity_name if self.entity else None,
            "event_name": self.event_name,
            "total_prize_pool": float(self.total_prize_pool) if self.total_prize_pool is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "team_count": len(self.teams) if self.teams else 0
        }

        if include_teams:
            data["teams"] = [team.to_dict(include_members=True) for team in self.teams]

        return data
