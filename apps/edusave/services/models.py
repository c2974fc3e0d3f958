"""
Canonical Records
=================

Shapes of the four stored entities (account holders, top-up rules,
top-up schedules, transactions) plus the enumerations they use.

Rows arrive from the data store as loosely typed dicts (numerics as
numbers or strings, timestamps as ISO strings). `from_row` normalizes
them; `to_dict` produces JSON-safe payloads with money as decimal strings.

No DB access and no HTTP in this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional


D = Decimal

EDUCATION_LEVELS = ("primary", "secondary", "post_secondary", "tertiary", "postgraduate")
SCHOOLING_STATUSES = ("in_school", "not_in_school")
RESIDENTIAL_STATUSES = ("sc", "pr", "non_resident")
# older records and filters used "spr" for permanent residents
LEGACY_RESIDENTIAL_STATUSES = {"spr": "pr"}
ACCOUNT_STATUSES = ("active", "inactive")

RULE_STATUSES = ("active", "inactive")

SCHEDULE_TYPES = ("batch", "individual")

TRANSACTION_TYPES = ("top_up", "course_fee", "payment", "refund")

DEFAULT_SCHEDULE_TIME = "09:00"


def _q2(x: Decimal) -> Decimal:
    return x.quantize(D("0.01"), rounding=ROUND_HALF_UP)


def money(x: Decimal) -> str:
    return str(_q2(x))


def _to_decimal(v: Any, default: Decimal = D("0")) -> Decimal:
    if v is None:
        return default
    if isinstance(v, Decimal):
        return v
    try:
        return D(str(v))
    except Exception:
        return default


def _opt_decimal(v: Any) -> Optional[Decimal]:
    if v is None or v == "":
        return None
    return _to_decimal(v)


def _opt_int(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    return int(v)


def parse_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def parse_datetime(v: Any) -> Optional[datetime]:
    """
    ISO timestamps from the store. Naive values are taken as UTC.
    """
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        parsed = v
    else:
        parsed = datetime.fromisoformat(str(v).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def canonical_residential_status(v: Any) -> str:
    raw = str(v or "sc").strip().lower()
    return LEGACY_RESIDENTIAL_STATUSES.get(raw, raw)


def _iso(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None


@dataclass
class AccountHolder:
    id: str
    nric: str
    name: str
    date_of_birth: date
    email: str
    balance: Decimal = D("0")
    status: str = "active"
    residential_status: str = "sc"
    in_school: str = "not_in_school"
    education_level: Optional[str] = None
    account_type: Optional[str] = None
    phone: Optional[str] = None
    residential_address: Optional[str] = None
    mailing_address: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AccountHolder":
        return cls(
            id=str(row.get("id")),
            nric=str(row.get("nric") or ""),
            name=str(row.get("name") or ""),
            date_of_birth=parse_date(row.get("date_of_birth")),
            email=str(row.get("email") or ""),
            balance=_to_decimal(row.get("balance")),
            status=str(row.get("status") or "active"),
            residential_status=canonical_residential_status(row.get("residential_status")),
            in_school=str(row.get("in_school") or "not_in_school"),
            education_level=row.get("education_level") or None,
            account_type=row.get("account_type") or None,
            phone=row.get("phone"),
            residential_address=row.get("residential_address"),
            mailing_address=row.get("mailing_address"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nric": self.nric,
            "name": self.name,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "email": self.email,
            "balance": money(self.balance),
            "status": self.status,
            "residential_status": self.residential_status,
            "in_school": self.in_school,
            "education_level": self.education_level,
            "account_type": self.account_type,
            "phone": self.phone,
            "residential_address": self.residential_address,
            "mailing_address": self.mailing_address,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class TopUpRule:
    """
    A reusable eligibility definition. Every filter is optional:
    None means no constraint on that dimension.
    """
    id: str
    name: str
    amount: Decimal
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None
    in_school: Optional[str] = None
    education_level: Optional[str] = None
    status: str = "active"
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TopUpRule":
        return cls(
            id=str(row.get("id")),
            name=str(row.get("name") or ""),
            amount=_to_decimal(row.get("amount")),
            min_age=_opt_int(row.get("min_age")),
            max_age=_opt_int(row.get("max_age")),
            min_balance=_opt_decimal(row.get("min_balance")),
            max_balance=_opt_decimal(row.get("max_balance")),
            in_school=row.get("in_school") or None,
            education_level=row.get("education_level") or None,
            status=str(row.get("status") or "active"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "amount": money(self.amount),
            "min_age": self.min_age,
            "max_age": self.max_age,
            "min_balance": None if self.min_balance is None else money(self.min_balance),
            "max_balance": None if self.max_balance is None else money(self.max_balance),
            "in_school": self.in_school,
            "education_level": self.education_level,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


@dataclass
class TopUpSchedule:
    """
    A planned or executed top-up. Batch schedules carry the rule pair
    (rule_id, rule_name, eligible_count); individual schedules carry the
    account pair (account_id, account_name).
    """
    id: str
    type: str
    scheduled_date: date
    amount: Decimal
    status: str
    scheduled_time: Optional[str] = None
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    eligible_count: Optional[int] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    processed_count: Optional[int] = None
    executed_date: Optional[datetime] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_batch(self) -> bool:
        return self.type == "batch"

    @property
    def display_name(self) -> str:
        if self.is_batch:
            return self.rule_name or "Batch Top-up"
        return self.account_name or "Individual Top-up"

    def scheduled_at(self, tz: Optional[tzinfo] = None) -> datetime:
        hh_mm = (self.scheduled_time or "00:00")[:5]
        hour, minute = (int(p) for p in hh_mm.split(":"))
        return datetime.combine(self.scheduled_date, time(hour, minute), tzinfo=tz)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TopUpSchedule":
        return cls(
            id=str(row.get("id")),
            type=str(row.get("type") or "batch"),
            scheduled_date=parse_date(row.get("scheduled_date")),
            scheduled_time=row.get("scheduled_time") or None,
            amount=_to_decimal(row.get("amount")),
            status=str(row.get("status") or "scheduled"),
            rule_id=row.get("rule_id"),
            rule_name=row.get("rule_name"),
            eligible_count=_opt_int(row.get("eligible_count")),
            account_id=row.get("account_id"),
            account_name=row.get("account_name"),
            processed_count=_opt_int(row.get("processed_count")),
            executed_date=parse_datetime(row.get("executed_date")),
            remarks=row.get("remarks"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.display_name,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time,
            "amount": money(self.amount),
            "status": self.status,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "eligible_count": self.eligible_count,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "processed_count": self.processed_count,
            "executed_date": _iso(self.executed_date),
            "remarks": self.remarks,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class Transaction:
    """
    Append-only ledger entry. amount is signed: credits positive,
    debits negative. Balance after the entry is never stored.
    """
    id: str
    account_id: str
    type: str
    amount: Decimal
    status: str
    created_at: datetime
    reference: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Transaction":
        return cls(
            id=str(row.get("id")),
            account_id=str(row.get("account_id")),
            type=str(row.get("type") or ""),
            amount=_to_decimal(row.get("amount")),
            status=str(row.get("status") or "completed"),
            created_at=parse_datetime(row.get("created_at")),
            reference=row.get("reference"),
            description=row.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type,
            "amount": money(self.amount),
            "status": self.status,
            "reference": self.reference,
            "description": self.description,
            "created_at": _iso(self.created_at),
        }
