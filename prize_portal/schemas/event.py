"""
Event API Schemas (Pydantic)

Field-level rules (positive amounts, one leader, email domain) are
enforced by the event service so every violation is reported in the
standard error shape rather than as a 422.
"""
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class TeamMemberIn(BaseModel):
    email: str
    is_team_leader: bool = False


class TeamIn(BaseModel):
    prize_amount: Decimal
    members: List[TeamMemberIn] = Field(default_factory=list)


class EventCreate(BaseModel):
    """Request schema for creating an event with its ranked teams (first team = 1st place)."""
    event_name: str
    total_prize_pool: Decimal
    teams: List[TeamIn] = Field(default_factory=list)


class EventCreated(BaseModel):
    success: bool = True
    message: str = "Event created successfully"
    eventId: int
