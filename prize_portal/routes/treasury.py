"""
prize_portal/routes/treasury.py
Treasury review, reminders, payment marking and export.
"""
import io
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import get_db
from prize_portal.orm.user import User
from prize_portal.schemas.bank import PaymentUpdate
from prize_portal.security.rbac import require_treasury
from prize_portal.services import event_service, reconciliation_service
from prize_portal.services.bank_details_service import BankDetailsService
from prize_portal.services.email_service import EmailService, get_email_service

router = APIRouter(prefix="/treasury", tags=["Treasury"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_COLUMNS = [
    ("Event Name", "event_name"),
    ("Entity", "entity_name"),
    ("Team Position", "team_position"),
    ("Submitted By", "submitted_by"),
    ("Account Holder", "account_holder_name"),
    ("Account Number", "account_number"),
    ("IFSC Code", "ifsc_code"),
    ("Bank Name", "bank_name"),
    ("Branch", "branch_name"),
    ("Amount", "amount"),
    ("Payment Status", "payment_status"),
    ("Submitted At", "submitted_at"),
    ("Payment Date", "payment_date"),
    ("Payment Reference", "payment_reference"),
]


def _export_to_xlsx(headers: List[str], rows: List[List[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Bank Details"
    ws.append(headers)
    for row in rows:
        ws.append(row)
    out = io.BytesIO()
    wb.save(out)
    out.seek(0)
    return out.read()


def _cell(value):
    if value is None:
        return ""
    if hasattr(value, "is_finite"):  # Decimal
        return float(value)
    return value


@router.get("/events")
async def all_events(
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    events = await event_service.list_all_events(db, current_user)
    return {"success": True, "events": events}


@router.get("/pending")
async def pending_bank_details(
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    teams = await event_service.list_pending_bank_details(db, current_user)
    return {"success": True, "teams": teams}


@router.get("/bank-details/{team_id}")
async def view_bank_details(
    team_id: int,
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    bank_details = await BankDetailsService.view_bank_details(db, current_user, team_id)
    return {"success": True, "bankDetails": bank_details}


@router.post("/reminders")
async def send_reminders(
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
    notifier: EmailService = Depends(get_email_service),
):
    result = await reconciliation_service.send_reminders(db, notifier)
    return {
        "success": True,
        "message": f"Reminders sent to {result['sent']} team leaders",
        **result,
    }


@router.get("/export")
async def export_bank_details(
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    """Full account numbers in the clear; treasury only."""
    records = await BankDetailsService.export_all(db, current_user)

    headers = [label for label, _ in EXPORT_COLUMNS]
    rows = [[_cell(record[key]) for _, key in EXPORT_COLUMNS] for record in records]
    content = _export_to_xlsx(headers, rows)

    filename = f"bank_details_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.patch("/bank-details/{bank_details_id}/payment")
async def mark_paid(
    bank_details_id: int,
    payload: PaymentUpdate,
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    bank_details = await BankDetailsService.mark_paid(
        db,
        current_user,
        bank_details_id,
        payload.payment_date,
        payload.payment_reference,
    )
    return {"success": True, "message": "Payment marked as completed", "bankDetails": bank_details}


@router.get("/statistics")
async def statistics(
    current_user: User = Depends(require_treasury),
    db: AsyncSession = Depends(get_db),
):
    stats = await reconciliation_service.load_statistics(db)
    return {
        "success": True,
        "statistics": {
            key: float(value) if not isinstance(value, int) else value
            for key, value in stats.items()
        },
    }
