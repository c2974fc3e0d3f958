# apps/edusave/main.py
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.edusave.middleware.errors import install_error_handlers
from apps.edusave.middleware.internal_gate import InternalOnlyGate
from apps.edusave.middleware.request_log import RequestLogMiddleware

from apps.edusave.routes.health import router as health_router
from apps.edusave.routes.accounts import router as accounts_router
from apps.edusave.routes.topups import router as topups_router
from apps.edusave.routes.eservice import router as eservice_router

from apps.edusave.services.topups.executor import schedule_due_topups
from apps.edusave.utils.clock import app_timezone
from apps.edusave.utils.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("edusave.main")

app = FastAPI(
    title="EduSave Portal",
    version=settings.EDUSAVE_VERSION,
    description="Education account administration, top-ups and self-service balances",
)

# -------------------------------------------------------------------
# Error handling (stable envelopes, no stack leaks)
# -------------------------------------------------------------------
install_error_handlers(app)

# -------------------------------------------------------------------
# CORS (portal frontends, controlled)
# -------------------------------------------------------------------
if settings.CORS_MODE == "allowlist":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

# -------------------------------------------------------------------
# Admin access gate + request log
# -------------------------------------------------------------------
app.add_middleware(
    InternalOnlyGate,
    internal_token=settings.INTERNAL_TOKEN,
    protected_prefixes=("/admin",),
    exempt_prefixes=("/health", "/version", "/eservice"),
)
app.add_middleware(RequestLogMiddleware)

# -------------------------------------------------------------------
# Routers
# -------------------------------------------------------------------
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(topups_router)
app.include_router(eservice_router)

# -------------------------------------------------------------------
# Root
# -------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "status": "EduSave Online",
        "routes": [
            "/health",
            "/version",
            "/admin/accounts",
            "/admin/topups",
            "/eservice",
        ],
    }

# -------------------------------------------------------------------
# Deferred top-up executor
# -------------------------------------------------------------------
_scheduler: Optional[AsyncIOScheduler] = None


@app.on_event("startup")
async def startup_event():
    global _scheduler
    if not settings.TOPUP_SCHEDULER_ENABLED:
        log.info("EduSave starting, deferred top-up executor disabled")
        return
    _scheduler = AsyncIOScheduler(timezone=app_timezone())
    schedule_due_topups(_scheduler, settings.TOPUP_SCHEDULER_INTERVAL_SECONDS)
    _scheduler.start()
    log.info("EduSave starting, deferred top-up executor running")


@app.on_event("shutdown")
async def shutdown_event():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
