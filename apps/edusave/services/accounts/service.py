from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from apps.edusave.errors import NotFoundError, ValidationError
from apps.edusave.repositories.accounts import AccountRepository
from apps.edusave.services.accounts.account_types import (
    account_type_for,
    account_type_label,
    can_receive_top_up,
    normalize_residential_status,
    residential_status_label,
)
from apps.edusave.services.accounts.education_levels import (
    education_level_rank,
    format_education_level,
)
from apps.edusave.services.models import (
    ACCOUNT_STATUSES,
    EDUCATION_LEVELS,
    SCHOOLING_STATUSES,
    AccountHolder,
    parse_date,
)
from apps.edusave.services.topups.eligibility import calculate_age
from apps.edusave.utils.clock import Clock, now as clock_now

log = logging.getLogger("edusave.accounts")

SORT_FIELDS = ("name", "age", "balance", "created_at", "education_level")


def _age(account: AccountHolder, today: date) -> Optional[int]:
    if account.date_of_birth is None:
        return None
    return calculate_age(account.date_of_birth, today)


_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# admin-editable fields; balance only moves through top-ups
_UPDATABLE = {
    "name",
    "email",
    "phone",
    "residential_address",
    "mailing_address",
    "status",
    "in_school",
    "education_level",
    "residential_status",
}


@dataclass
class AccountFilters:
    search: Optional[str] = None
    education_levels: List[str] = field(default_factory=list)
    schooling_statuses: List[str] = field(default_factory=list)
    residential_statuses: List[str] = field(default_factory=list)
    balance_min: Optional[Decimal] = None
    balance_max: Optional[Decimal] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    sort_field: str = "name"
    sort_direction: str = "asc"


def filter_accounts(
    accounts: List[AccountHolder],
    filters: AccountFilters,
    today: date,
) -> List[AccountHolder]:
    needle = (filters.search or "").strip().lower()
    residential = {normalize_residential_status(s) for s in filters.residential_statuses}

    out = []
    for a in accounts:
        if needle and not (
            needle in a.name.lower() or needle in a.nric.lower() or needle in a.email.lower()
        ):
            continue
        if filters.education_levels and a.education_level not in filters.education_levels:
            continue
        if filters.schooling_statuses and a.in_school not in filters.schooling_statuses:
            continue
        if residential and a.residential_status not in residential:
            continue
        if filters.balance_min is not None and a.balance < filters.balance_min:
            continue
        if filters.balance_max is not None and a.balance > filters.balance_max:
            continue
        if filters.age_min is not None or filters.age_max is not None:
            age = _age(a, today)
            if age is None:
                continue
            if filters.age_min is not None and age < filters.age_min:
                continue
            if filters.age_max is not None and age > filters.age_max:
                continue
        out.append(a)
    return out


def sort_accounts(
    accounts: List[AccountHolder],
    field_name: str,
    direction: str,
    today: date,
) -> List[AccountHolder]:
    if field_name not in SORT_FIELDS:
        raise ValidationError(f"Unknown sort field: {field_name}")
    if direction not in ("asc", "desc"):
        raise ValidationError(f"Unknown sort direction: {direction}")

    keys = {
        "name": lambda a: a.name.lower(),
        # unknown ages sort first
        "age": lambda a: -1 if a.date_of_birth is None else calculate_age(a.date_of_birth, today),
        "balance": lambda a: a.balance,
        "created_at": lambda a: a.created_at.timestamp() if a.created_at else 0.0,
        # unset levels sort first
        "education_level": lambda a: education_level_rank(a.education_level),
    }
    return sorted(accounts, key=keys[field_name], reverse=(direction == "desc"))


class AccountService:
    def __init__(self, accounts: AccountRepository, *, clock: Optional[Clock] = None) -> None:
        self.accounts = accounts
        self.clock = clock or clock_now

    def _today(self) -> date:
        return self.clock().date()

    def describe(self, account: AccountHolder) -> Dict[str, Any]:
        out = account.to_dict()
        out["age"] = _age(account, self._today())
        out["account_type_label"] = account_type_label(
            account.account_type, account.residential_status
        )
        out["residential_status_label"] = residential_status_label(account.residential_status)
        out["education_level_label"] = format_education_level(account.education_level)
        out["can_receive_top_up"] = can_receive_top_up(
            account.account_type, account.residential_status
        )
        return out

    def list_accounts(self, filters: Optional[AccountFilters] = None) -> List[Dict[str, Any]]:
        filters = filters or AccountFilters()
        today = self._today()
        rows = filter_accounts(self.accounts.list(), filters, today)
        rows = sort_accounts(rows, filters.sort_field, filters.sort_direction, today)
        return [self.describe(a) for a in rows]

    def get_account(self, account_id: str) -> AccountHolder:
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    def get_account_detail(self, account_id: str) -> Dict[str, Any]:
        return self.describe(self.get_account(account_id))

    def create_account(self, data: Dict[str, Any]) -> AccountHolder:
        nric = (data.get("nric") or "").strip()
        name = (data.get("name") or "").strip()
        email = (data.get("email") or "").strip()
        if not nric:
            raise ValidationError("Please enter NRIC")
        if not name:
            raise ValidationError("Please enter full name")
        dob = self._date_of_birth(data.get("date_of_birth"))
        if not email:
            raise ValidationError("Please enter email")
        if not _EMAIL.match(email):
            raise ValidationError("Please enter a valid email")

        residential_status = normalize_residential_status(data.get("residential_status") or "sc")
        education_level = self._education_level(data.get("education_level"))

        payload = {
            "nric": nric,
            "name": name,
            "date_of_birth": dob.isoformat(),
            "email": email,
            "phone": (data.get("phone") or "").strip() or None,
            "residential_address": (data.get("residential_address") or "").strip() or None,
            "mailing_address": (data.get("mailing_address") or "").strip() or None,
            "balance": "0.00",
            "status": "active",
            "in_school": "not_in_school",
            "education_level": education_level,
            "residential_status": residential_status,
            "account_type": account_type_for(residential_status),
        }
        account = self.accounts.create(payload)
        log.info("Account %s created (%s)", account.id, account.account_type)
        return account

    def update_account(self, account_id: str, changes: Dict[str, Any]) -> AccountHolder:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        patch: Dict[str, Any] = {}
        for key, value in changes.items():
            if isinstance(value, str):
                value = value.strip()
            if key in ("name", "email") and not value:
                raise ValidationError(f"{key} cannot be empty")
            if key == "email" and not _EMAIL.match(value):
                raise ValidationError("Please enter a valid email")
            if key == "status" and value not in ACCOUNT_STATUSES:
                raise ValidationError(f"Unknown account status: {value}")
            if key == "in_school" and value not in SCHOOLING_STATUSES:
                raise ValidationError(f"Unknown schooling status: {value}")
            if key == "education_level":
                value = self._education_level(value)
            if key == "residential_status":
                value = normalize_residential_status(value)
                patch["account_type"] = account_type_for(value)
            if key in ("phone", "residential_address", "mailing_address"):
                value = value or None
            patch[key] = value

        if not patch:
            return self.get_account(account_id)
        updated = self.accounts.update(account_id, patch)
        if updated is None:
            raise NotFoundError(f"Account not found: {account_id}")
        log.info("Account %s updated: %s", account_id, ", ".join(sorted(patch)))
        return updated

    def _date_of_birth(self, value: Any) -> date:
        if not value:
            raise ValidationError("Please enter date of birth")
        try:
            dob = parse_date(value)
        except ValueError:
            raise ValidationError("Date of birth must be YYYY-MM-DD")
        if dob > self._today():
            raise ValidationError("Date of birth cannot be in the future")
        return dob

    @staticmethod
    def _education_level(value: Any) -> Optional[str]:
        if value in (None, "", "any"):
            return None
        if value not in EDUCATION_LEVELS:
            raise ValidationError(f"Unknown education level: {value}")
        return value
