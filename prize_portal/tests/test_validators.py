"""
Tests for bank detail and email validation.
"""
import pytest

from prize_portal.tests.conftest import VALID_BANK_DETAILS
from prize_portal.utils.validators import (
    is_allowed_email,
    is_valid_account_number,
    is_valid_ifsc,
    normalize_bank_details,
    validate_bank_details,
)


@pytest.mark.parametrize("ifsc", ["SBIN0001234", "sbin0001234", " HDFC0ABC123 "])
def test_valid_ifsc(ifsc):
    assert is_valid_ifsc(ifsc)


@pytest.mark.parametrize("ifsc", ["SBIN1001234", "SBI0001234", "SBIN000123", "1234012345X", "", None])
def test_invalid_ifsc(ifsc):
    assert not is_valid_ifsc(ifsc)


@pytest.mark.parametrize("number, ok", [
    ("123456789", True),
    ("123456789012345678", True),
    ("12345678", False),
    ("1234567890123456789", False),
    ("12345678901a", False),
    ("\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669\u0660", False),
    ("\uff11\uff12\uff13\uff14\uff15\uff16\uff17\uff18\uff19", False),
    (None, False),
])
def test_account_number_length_and_digits(number, ok):
    assert is_valid_account_number(number) is ok


def test_email_domain():
    assert is_allowed_email("Asha@School.edu", "school.edu")
    assert not is_allowed_email("asha@other.edu", "school.edu")
    assert not is_allowed_email("asha@evilschool.edu", "school.edu")
    assert not is_allowed_email("not-an-email", "school.edu")


def test_valid_payload_has_no_errors():
    assert validate_bank_details(VALID_BANK_DETAILS) == []


def test_non_ascii_digits_rejected_in_payload():
    arabic_indic = "\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669\u0660"

    errors = validate_bank_details(dict(VALID_BANK_DETAILS, account_number=arabic_indic))

    assert errors == ["Account number must be 9-18 digits"]


def test_every_violation_is_reported():
    errors = validate_bank_details({
        "account_holder_name": "A",
        "account_number": "12",
        "ifsc_code": "bad",
        "bank_name": "",
        "branch_name": None,
    })

    assert len(errors) == 5


def test_normalize_trims_and_uppercases():
    fields = normalize_bank_details(VALID_BANK_DETAILS)

    assert fields.ifsc_code == "SBIN0001234"
    assert fields.account_number == "123456789012"
    assert fields.account_holder_name == "Asha Rao"
