"""
Eligibility Evaluator
=====================

Purpose:
- Decide whether an account holder qualifies for a top-up rule.
- Pure function of (account, criteria, today): no DB, no HTTP, no clock.

Policy:
- Accounts that are not `active` are never eligible.
- Age is whole years: calendar-year difference, minus one if the birthday
  has not yet occurred this year.
- All bounds are inclusive; a None bound imposes no constraint.
- in_school / education_level are exact matches when set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Any, Iterable, List, Optional

from apps.edusave.services.accounts.education_levels import format_education_level
from apps.edusave.services.models import AccountHolder, TopUpRule, _q2


def calculate_age(date_of_birth: date, today: date) -> int:
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _range_label(lo: Any, hi: Any) -> Optional[str]:
    if lo is not None and hi is not None:
        return f"{lo}-{hi}"
    if lo is not None:
        return f"{lo}+"
    if hi is not None:
        return f"up to {hi}"
    return None


@dataclass(frozen=True)
class EligibilityCriteria:
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None
    in_school: Optional[str] = None
    education_level: Optional[str] = None

    @classmethod
    def from_rule(cls, rule: TopUpRule) -> "EligibilityCriteria":
        return cls(
            min_age=rule.min_age,
            max_age=rule.max_age,
            min_balance=rule.min_balance,
            max_balance=rule.max_balance,
            in_school=rule.in_school,
            education_level=rule.education_level,
        )

    def describe(self) -> List[str]:
        """Human-readable constraint list for admin tables."""
        out: List[str] = []
        age = _range_label(self.min_age, self.max_age)
        if age:
            out.append(f"Age {age}")
        balance = _range_label(
            None if self.min_balance is None else f"${_q2(self.min_balance)}",
            None if self.max_balance is None else f"${_q2(self.max_balance)}",
        )
        if balance:
            out.append(f"Balance {balance}")
        if self.in_school:
            out.append("In School" if self.in_school == "in_school" else "Not in School")
        if self.education_level:
            out.append(f"Education: {format_education_level(self.education_level)}")
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_age": self.min_age,
            "max_age": self.max_age,
            "min_balance": None if self.min_balance is None else str(_q2(self.min_balance)),
            "max_balance": None if self.max_balance is None else str(_q2(self.max_balance)),
            "in_school": self.in_school,
            "education_level": self.education_level,
        }


def is_eligible(account: AccountHolder, criteria: EligibilityCriteria, today: date) -> bool:
    if account.status != "active":
        return False

    if criteria.min_age is not None or criteria.max_age is not None:
        if account.date_of_birth is None:
            return False
        age = calculate_age(account.date_of_birth, today)
        if criteria.min_age is not None and age < criteria.min_age:
            return False
        if criteria.max_age is not None and age > criteria.max_age:
            return False

    balance = account.balance
    if criteria.min_balance is not None and balance < criteria.min_balance:
        return False
    if criteria.max_balance is not None and balance > criteria.max_balance:
        return False

    if criteria.in_school is not None and account.in_school != criteria.in_school:
        return False
    if criteria.education_level is not None and account.education_level != criteria.education_level:
        return False

    return True


def eligible_accounts(
    accounts: Iterable[AccountHolder],
    criteria: EligibilityCriteria,
    today: date,
) -> List[AccountHolder]:
    return [a for a in accounts if is_eligible(a, criteria, today)]
