from __future__ import annotations

from typing import Any, Dict, List, Optional

from apps.edusave.repositories.base import SupabaseRepository
from apps.edusave.services.models import Transaction


class TransactionRepository(SupabaseRepository):
    """
    public.transactions (append-only)
      id uuid pk, account_id, type, amount numeric (signed), status,
      description, reference text, created_at timestamptz
    """

    table_name = "transactions"

    def list_for_account(self, account_id: str) -> List[Transaction]:
        q = (
            self._query()
            .select("*")
            .eq("account_id", account_id)
            .order("created_at", desc=False)
        )
        return [Transaction.from_row(r) for r in self._run(q, "select")]

    def find_by_reference(self, reference: str) -> Optional[Transaction]:
        row = self._first(
            self._query().select("*").eq("reference", reference).limit(1),
            "select",
        )
        return Transaction.from_row(row) if row else None

    def create(self, payload: Dict[str, Any]) -> Transaction:
        return Transaction.from_row(self._insert_one(payload))
