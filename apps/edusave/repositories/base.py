"""
Supabase/Postgres adapter base.

Works with the supabase-py query builder
(`client.table(name).select(...).eq(...).execute()`), or anything shaped
like it. Every failed call is logged once and re-raised as StoreError;
callers never see client-specific exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from apps.edusave.errors import StoreError

log = logging.getLogger("edusave.repository")


class SupabaseRepository:
    table_name: str = ""

    def __init__(self, supabase_client: Any, *, table: Optional[str] = None) -> None:
        self.sb = supabase_client
        self.table = table or self.table_name

    def _query(self):
        return self.sb.table(self.table)

    def _run(self, query: Any, action: str) -> List[Dict[str, Any]]:
        try:
            r = query.execute()
        except Exception as ex:
            log.error("Supabase %s failed (%s): %s", action, self.table, ex)
            raise StoreError(f"Supabase {action} failed ({self.table})") from ex
        rows = getattr(r, "data", None) or []
        if isinstance(rows, dict):
            rows = [rows]
        return [row for row in rows if isinstance(row, dict)]

    def _first(self, query: Any, action: str) -> Optional[Dict[str, Any]]:
        rows = self._run(query, action)
        return rows[0] if rows else None

    def _insert_one(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = self._first(self._query().insert(payload), "insert")
        if row is None:
            log.error("Supabase insert returned no row (%s)", self.table)
            raise StoreError(f"Supabase insert failed ({self.table})")
        return row

    def _update_by_id(self, row_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._first(self._query().update(patch).eq("id", row_id), "update")

    def _get_by_id(self, row_id: str) -> Optional[Dict[str, Any]]:
        return self._first(self._query().select("*").eq("id", row_id).limit(1), "select")

    def _delete_by_id(self, row_id: str) -> int:
        return len(self._run(self._query().delete().eq("id", row_id), "delete"))
