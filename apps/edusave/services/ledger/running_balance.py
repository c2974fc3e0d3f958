"""
Running Balance (Account Ledger View)
=====================================

Derives the balance that existed immediately after each historical
transaction, for display.

The baseline (balance before the earliest transaction) is
`current_balance - sum(all amounts)`, so it is only correct over the
account's FULL transaction list. Display filters must be applied to the
output of `with_running_balance`, never to its input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from apps.edusave.errors import ValidationError
from apps.edusave.services.models import TRANSACTION_TYPES, D, Transaction, money

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimestampedBalance:
    transaction: Transaction
    balance_after: Decimal

    def to_dict(self) -> Dict[str, Any]:
        out = self.transaction.to_dict()
        out["balance_after"] = money(self.balance_after)
        return out


def _created_at(t: Transaction) -> datetime:
    return t.created_at or _EPOCH


def with_running_balance(
    current_balance: Decimal,
    transactions: Iterable[Transaction],
) -> List[TimestampedBalance]:
    """
    Newest first. The entry for the chronologically last transaction
    always carries balance_after == current_balance.
    """
    ordered = sorted(transactions, key=_created_at)  # stable on ties
    running = Decimal(current_balance) - sum((t.amount for t in ordered), D("0"))

    out: List[TimestampedBalance] = []
    for t in ordered:
        running += t.amount
        out.append(TimestampedBalance(transaction=t, balance_after=running))
    out.reverse()
    return out


def filter_transactions(
    rows: Iterable[TimestampedBalance],
    search: Optional[str] = None,
    type_: Optional[str] = None,
) -> List[TimestampedBalance]:
    if type_ and type_ != "all" and type_ not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {type_}")
    needle = (search or "").strip().lower()
    out = []
    for row in rows:
        t = row.transaction
        if type_ and type_ != "all" and t.type != type_:
            continue
        if needle:
            haystack = f"{t.description or ''}\n{t.reference or ''}".lower()
            if needle not in haystack:
                continue
        out.append(row)
    return out


def balance_summary(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    total_top_ups = D("0")
    total_fees_paid = D("0")
    for t in transactions:
        if t.status != "completed":
            continue
        if t.type == "top_up":
            total_top_ups += t.amount
        elif t.type == "course_fee":
            total_fees_paid += abs(t.amount)
    return {"total_top_ups": total_top_ups, "total_fees_paid": total_fees_paid}
