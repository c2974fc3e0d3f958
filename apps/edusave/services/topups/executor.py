import logging
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from apps.edusave.db import get_supabase
from apps.edusave.deps import build_orchestrator
from apps.edusave.errors import CoreError

log = logging.getLogger("edusave.executor")

JOB_ID = "topups_due_runner"


def run_due_topups() -> Optional[Dict[str, Any]]:
    """
    One pass of the deferred executor: run every top-up whose slot has come.
    """
    client = get_supabase()
    if not client:
        log.warning("Due top-ups skipped: Supabase client not configured")
        return None
    try:
        summary = build_orchestrator(client).run_due_schedules()
    except CoreError as e:
        log.error("Due top-ups run failed: %s", e.message)
        return None
    return summary.to_dict()


def schedule_due_topups(scheduler: AsyncIOScheduler, interval_seconds: int = 60) -> None:
    scheduler.add_job(
        run_due_topups,
        "interval",
        seconds=interval_seconds,
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    log.info("Top-up executor registered, interval = %d seconds", interval_seconds)
