"""
prize_portal/routes/student.py
Student prizes, bank-details submission and saved bank profile.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import get_db
from prize_portal.orm.user import User
from prize_portal.schemas.bank import BankDetailsSubmit, BankFieldsIn
from prize_portal.security.rbac import require_student
from prize_portal.services import bank_profile_service, event_service
from prize_portal.services.bank_details_service import BankDetailsService

router = APIRouter(prefix="/student", tags=["Student"])

BANK_FIELDS = {"account_holder_name", "account_number", "ifsc_code", "bank_name", "branch_name"}


@router.get("/events")
async def my_events(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    events = await event_service.list_student_events(db, current_user)
    return {"success": True, "events": events}


@router.get("/bank-profile")
async def get_bank_profile(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    profile = await bank_profile_service.get_bank_profile(db, current_user)
    return {"success": True, "profile": profile}


@router.put("/bank-profile")
async def save_bank_profile(
    payload: BankFieldsIn,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    profile = await bank_profile_service.save_bank_profile(db, current_user, payload.model_dump())
    return {"success": True, "message": "Bank profile saved", "profile": profile}


@router.delete("/bank-profile")
async def delete_bank_profile(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    await bank_profile_service.delete_bank_profile(db, current_user)
    return {"success": True, "message": "Bank profile deleted"}


@router.post("/bank-details", status_code=201)
async def submit_bank_details(
    payload: BankDetailsSubmit,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """Team leader only. A team's bank details can be submitted once."""
    bank_details = await BankDetailsService.submit_bank_details(
        db,
        current_user,
        payload.team_id,
        payload.model_dump(include=BANK_FIELDS),
        save_profile=payload.save_to_profile,
        used_saved_profile=payload.used_saved_profile,
    )
    return {"success": True, "message": "Bank details submitted successfully", "bankDetails": bank_details}


@router.get("/bank-details/{team_id}")
async def view_bank_details(
    team_id: int,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    bank_details = await BankDetailsService.view_bank_details(db, current_user, team_id)
    return {"success": True, "bankDetails": bank_details}


@router.get("/prize-history")
async def prize_history(
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    history = await BankDetailsService.prize_history(db, current_user)
    return {"success": True, "history": history}
