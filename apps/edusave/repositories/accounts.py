from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from apps.edusave.repositories.base import SupabaseRepository
from apps.edusave.services.models import AccountHolder, money


class AccountRepository(SupabaseRepository):
    """
    public.account_holders
      id uuid pk, nric, name, date_of_birth date, email, phone,
      residential_address, mailing_address, balance numeric,
      status, residential_status, account_type, in_school,
      education_level, created_at timestamptz
    """

    table_name = "account_holders"

    def get(self, account_id: str) -> Optional[AccountHolder]:
        row = self._get_by_id(account_id)
        return AccountHolder.from_row(row) if row else None

    def list(self, *, status: Optional[str] = None) -> List[AccountHolder]:
        q = self._query().select("*")
        if status:
            q = q.eq("status", status)
        rows = self._run(q.order("created_at", desc=True), "select")
        return [AccountHolder.from_row(r) for r in rows]

    def create(self, payload: Dict[str, Any]) -> AccountHolder:
        return AccountHolder.from_row(self._insert_one(payload))

    def update(self, account_id: str, patch: Dict[str, Any]) -> Optional[AccountHolder]:
        row = self._update_by_id(account_id, patch)
        return AccountHolder.from_row(row) if row else None

    def set_balance(self, account_id: str, balance: Decimal) -> Optional[AccountHolder]:
        return self.update(account_id, {"balance": money(balance)})
