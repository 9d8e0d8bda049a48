"""
Bank Details API Schemas (Pydantic)
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel


class BankFieldsIn(BaseModel):
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    branch_name: str


class BankDetailsSubmit(BankFieldsIn):
    team_id: int
    save_to_profile: bool = False
    used_saved_profile: bool = False


class PaymentUpdate(BaseModel):
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
