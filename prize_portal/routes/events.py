"""
prize_portal/routes/events.py
Entity event management.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import get_db
from prize_portal.orm.user import User
from prize_portal.schemas.event import EventCreate, EventCreated
from prize_portal.security.rbac import get_current_user, require_entity
from prize_portal.services import event_service
from prize_portal.services.email_service import EmailService, get_email_service

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventCreated, status_code=201)
async def create_event(
    payload: EventCreate,
    current_user: User = Depends(require_entity),
    db: AsyncSession = Depends(get_db),
    notifier: EmailService = Depends(get_email_service),
):
    """Create an event with ranked teams; winners are emailed after the event is stored."""
    event = await event_service.create_event(
        db,
        current_user,
        payload.event_name,
        payload.total_prize_pool,
        [team.model_dump() for team in payload.teams],
        notifier=notifier,
    )
    return {"eventId": event.id}


@router.get("")
async def list_events(
    current_user: User = Depends(require_entity),
    db: AsyncSession = Depends(get_db),
):
    events = await event_service.list_entity_events(db, current_user)
    return {"success": True, "events": events}


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.get_event_details(db, current_user, event_id)
    return {"success": True, "event": event}
