"""
Dependency wiring for routes and background jobs.

Tests override `require_supabase` and `get_clock` through
`app.dependency_overrides`.
"""

from typing import Any

from fastapi import Depends

from apps.edusave.db import require_supabase
from apps.edusave.repositories.accounts import AccountRepository
from apps.edusave.repositories.rules import RuleRepository
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.repositories.transactions import TransactionRepository
from apps.edusave.services.accounts.service import AccountService
from apps.edusave.services.topups.orchestrator import TopUpOrchestrator
from apps.edusave.services.topups.rules import RuleService
from apps.edusave.utils.clock import Clock, now


def get_clock() -> Clock:
    return now


def build_orchestrator(client: Any, clock: Clock = now) -> TopUpOrchestrator:
    return TopUpOrchestrator(
        AccountRepository(client),
        RuleRepository(client),
        ScheduleRepository(client),
        TransactionRepository(client),
        clock=clock,
    )


def get_orchestrator(
    client: Any = Depends(require_supabase),
    clock: Clock = Depends(get_clock),
) -> TopUpOrchestrator:
    return build_orchestrator(client, clock)


def get_rule_service(
    client: Any = Depends(require_supabase),
    orchestrator: TopUpOrchestrator = Depends(get_orchestrator),
) -> RuleService:
    return RuleService(RuleRepository(client), ScheduleRepository(client), orchestrator)


def get_schedule_repository(client: Any = Depends(require_supabase)) -> ScheduleRepository:
    return ScheduleRepository(client)


def get_transaction_repository(client: Any = Depends(require_supabase)) -> TransactionRepository:
    return TransactionRepository(client)


def get_account_service(
    client: Any = Depends(require_supabase),
    clock: Clock = Depends(get_clock),
) -> AccountService:
    return AccountService(AccountRepository(client), clock=clock)
