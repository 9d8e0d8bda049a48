from fastapi import APIRouter

from prize_portal.errors import ERROR_RESPONSES
from prize_portal.routes import auth, events, student, treasury

api_router = APIRouter(prefix="/api", responses=ERROR_RESPONSES)
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(student.router)
api_router.include_router(treasury.router)

__all__ = ["api_router"]
