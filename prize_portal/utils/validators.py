"""
prize_portal/utils/validators.py
Field validation for bank details and member emails.

Validators collect every violation instead of stopping at the first,
so a single InvalidInputError can report all of them.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^[0-9]{9,18}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_NAME_LENGTH = 2


@dataclass(frozen=True)
class BankFields:
    """Normalized bank fields, ready for encryption and storage."""
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    branch_name: str


def normalize_ifsc(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def is_valid_ifsc(value: Optional[str]) -> bool:
    return bool(IFSC_PATTERN.match(normalize_ifsc(value)))


def is_valid_account_number(value: Optional[str]) -> bool:
    return bool(ACCOUNT_NUMBER_PATTERN.match((value or "").strip()))


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_allowed_email(email: Optional[str], domain: str) -> bool:
    """Email must be well formed and end in @<domain>."""
    normalized = normalize_email(email)
    if not EMAIL_PATTERN.match(normalized):
        return False
    return normalized.endswith("@" + domain.lower())


def _name_ok(value: Optional[str]) -> bool:
    return len((value or "").strip()) >= MIN_NAME_LENGTH


def validate_bank_details(data: Dict[str, Any]) -> List[str]:
    """Return every violation found in a bank-details payload; empty means valid."""
    errors = []

    if not _name_ok(data.get("account_holder_name")):
        errors.append("Account holder name must be at least 2 characters")

    if not is_valid_account_number(data.get("account_number")):
        errors.append("Account number must be 9-18 digits")

    if not is_valid_ifsc(data.get("ifsc_code")):
        errors.append("Invalid IFSC code format")

    if not _name_ok(data.get("bank_name")):
        errors.append("Bank name must be at least 2 characters")

    if not _name_ok(data.get("branch_name")):
        errors.append("Branch name must be at least 2 characters")

    return errors


def normalize_bank_details(data: Dict[str, Any]) -> BankFields:
    """Trim and upper-case fields. Call only after validate_bank_details passed."""
    return BankFields(
        account_holder_name=data["account_holder_name"].strip(),
        account_number=data["account_number"].strip(),
        ifsc_code=normalize_ifsc(data["ifsc_code"]),
        bank_name=data["bank_name"].strip(),
        branch_name=data["branch_name"].strip(),
    )
