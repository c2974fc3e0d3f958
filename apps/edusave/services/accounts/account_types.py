"""
Account type rules.

- Education Account (Singapore Citizen): has a balance, can receive top-ups.
- Student Account (PR / Non-Resident): no balance, no top-ups.
"""

from typing import Optional

from apps.edusave.errors import ValidationError
from apps.edusave.services.models import LEGACY_RESIDENTIAL_STATUSES, RESIDENTIAL_STATUSES

RESIDENTIAL_STATUS_LABELS = {
    "sc": "Singapore Citizen",
    "pr": "PR",
    "non_resident": "Non-Resident",
}


def normalize_residential_status(value: Optional[str]) -> str:
    raw = (value or "").strip().lower()
    raw = LEGACY_RESIDENTIAL_STATUSES.get(raw, raw)
    if raw not in RESIDENTIAL_STATUSES:
        raise ValidationError(f"Unknown residential status: {value!r}")
    return raw


def residential_status_label(value: Optional[str]) -> str:
    raw = (value or "").strip().lower()
    raw = LEGACY_RESIDENTIAL_STATUSES.get(raw, raw)
    return RESIDENTIAL_STATUS_LABELS.get(raw, value or "")


def account_type_for(residential_status: str) -> str:
    return "education" if residential_status == "sc" else "student"


def is_education_account(account_type: Optional[str], residential_status: Optional[str] = None) -> bool:
    if account_type:
        return account_type == "education"
    # fall back to residential status when the type was never stored
    return residential_status == "sc"


def can_receive_top_up(account_type: Optional[str], residential_status: Optional[str] = None) -> bool:
    return is_education_account(account_type, residential_status)


def account_type_label(account_type: Optional[str], residential_status: Optional[str] = None) -> str:
    if is_education_account(account_type, residential_status):
        return "Education Account"
    return "Student Account"
