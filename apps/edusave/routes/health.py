from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from apps.edusave.db import require_supabase
from apps.edusave.repositories.accounts import AccountRepository
from apps.edusave.repositories.rules import RuleRepository
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.repositories.transactions import TransactionRepository
from apps.edusave.utils.settings import settings

router = APIRouter(tags=["health"])

STORE_TABLES = (
    AccountRepository.table_name,
    RuleRepository.table_name,
    ScheduleRepository.table_name,
    TransactionRepository.table_name,
)


@router.get("/health")
def health_root():
    return {"ok": True}


@router.get("/health/store")
def health_store(client: Any = Depends(require_supabase)):
    checks = {}
    for table in STORE_TABLES:
        try:
            client.table(table).select("id").limit(1).execute()
            checks[table] = True
        except Exception:
            checks[table] = False

    healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"ok": healthy, "checks": checks},
    )


@router.get("/version")
def version():
    return {
        "version": settings.EDUSAVE_VERSION,
        "environment": settings.ENVIRONMENT,
    }
