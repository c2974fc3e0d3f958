from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from apps.edusave.repositories.base import SupabaseRepository
from apps.edusave.services.models import TopUpSchedule


class ScheduleRepository(SupabaseRepository):
    """
    public.topup_schedules
      id uuid pk, type ('batch'|'individual'), scheduled_date date,
      scheduled_time text 'HH:MM', amount numeric, status,
      rule_id, rule_name, eligible_count int,
      account_id, account_name,
      processed_count int null, executed_date timestamptz null,
      remarks text null, created_at timestamptz
    """

    table_name = "topup_schedules"

    def get(self, schedule_id: str) -> Optional[TopUpSchedule]:
        row = self._get_by_id(schedule_id)
        return TopUpSchedule.from_row(row) if row else None

    def list(self) -> List[TopUpSchedule]:
        rows = self._run(self._query().select("*").order("created_at", desc=True), "select")
        return [TopUpSchedule.from_row(r) for r in rows]

    def list_for_rule(self, rule_id: str) -> List[TopUpSchedule]:
        rows = self._run(self._query().select("*").eq("rule_id", rule_id), "select")
        return [TopUpSchedule.from_row(r) for r in rows]

    def list_due(self, on_date: date) -> List[TopUpSchedule]:
        """Scheduled entries dated on or before on_date (time is checked by the caller)."""
        q = (
            self._query()
            .select("*")
            .eq("status", "scheduled")
            .lte("scheduled_date", on_date.isoformat())
            .order("scheduled_date", desc=False)
        )
        return [TopUpSchedule.from_row(r) for r in self._run(q, "select")]

    def create(self, payload: Dict[str, Any]) -> TopUpSchedule:
        return TopUpSchedule.from_row(self._insert_one(payload))

    def update(self, schedule_id: str, patch: Dict[str, Any]) -> Optional[TopUpSchedule]:
        row = self._update_by_id(schedule_id, patch)
        return TopUpSchedule.from_row(row) if row else None

    def delete(self, schedule_id: str) -> int:
        return self._delete_by_id(schedule_id)

    def delete_pending_for_rule(self, rule_id: str) -> int:
        q = self._query().delete().eq("rule_id", rule_id).eq("status", "scheduled")
        return len(self._run(q, "delete"))
