from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from apps.edusave.repositories.base import SupabaseRepository
from apps.edusave.services.models import TopUpRule


class RuleRepository(SupabaseRepository):
    """
    public.topup_rules
      id uuid pk, name, amount numeric, min_age int, max_age int,
      min_balance numeric, max_balance numeric, in_school,
      education_level, status, created_at timestamptz
    """

    table_name = "topup_rules"

    def get(self, rule_id: str) -> Optional[TopUpRule]:
        row = self._get_by_id(rule_id)
        return TopUpRule.from_row(row) if row else None

    def list(self) -> List[TopUpRule]:
        rows = self._run(self._query().select("*").order("created_at", desc=True), "select")
        return [TopUpRule.from_row(r) for r in rows]

    def get_many(self, rule_ids: Iterable[str]) -> List[TopUpRule]:
        ids = list(dict.fromkeys(rule_ids))
        if not ids:
            return []
        rows = self._run(self._query().select("*").in_("id", ids), "select")
        by_id = {str(r.get("id")): TopUpRule.from_row(r) for r in rows}
        # keep the caller's order
        return [by_id[i] for i in ids if i in by_id]

    def create(self, payload: Dict[str, Any]) -> TopUpRule:
        return TopUpRule.from_row(self._insert_one(payload))

    def update(self, rule_id: str, patch: Dict[str, Any]) -> Optional[TopUpRule]:
        row = self._update_by_id(rule_id, patch)
        return TopUpRule.from_row(row) if row else None

    def delete(self, rule_id: str) -> int:
        return self._delete_by_id(rule_id)
