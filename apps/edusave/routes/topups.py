from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from apps.edusave.deps import get_orchestrator, get_rule_service, get_schedule_repository
from apps.edusave.errors import NotFoundError
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.services.models import DEFAULT_SCHEDULE_TIME
from apps.edusave.services.topups.history import (
    filter_schedules,
    schedule_counts,
    upcoming_schedules,
)
from apps.edusave.services.topups.orchestrator import ScheduleWhen, TopUpOrchestrator
from apps.edusave.services.topups.rules import RuleDraft, RuleService
from apps.edusave.utils.envelope import ok

router = APIRouter(prefix="/admin/topups", tags=["topups"])


class ScheduleSlot(BaseModel):
    execute_now: bool = True
    scheduled_date: Optional[date] = None
    scheduled_time: str = Field(DEFAULT_SCHEDULE_TIME, description="HH:MM, local time")

    def when(self) -> Optional[ScheduleWhen]:
        if self.execute_now or self.scheduled_date is None:
            return None
        return ScheduleWhen(date=self.scheduled_date, time=self.scheduled_time)


class RuleIn(BaseModel):
    name: str = ""
    amount: Decimal = Field(Decimal("0"), description="Credited to each eligible account")
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None
    in_school: Optional[str] = Field(None, description="in_school | not_in_school | null")
    education_level: Optional[str] = None


class RuleCreate(RuleIn):
    schedule: Optional[ScheduleSlot] = Field(
        None, description="When present, the rule is scheduled right after creation"
    )


class RuleUpdate(BaseModel):
    name: Optional[str] = None
    amount: Optional[Decimal] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None
    in_school: Optional[str] = None
    education_level: Optional[str] = None
    status: Optional[str] = Field(None, description="active | inactive")


class BatchIn(ScheduleSlot):
    rule_ids: List[str] = Field(default_factory=list)


class IndividualIn(ScheduleSlot):
    account_id: str = ""
    amount: Decimal = Decimal("0")


# -----------------------------
# Rules
# -----------------------------
@router.get("/rules")
def list_rules(service: RuleService = Depends(get_rule_service)):
    rows = service.list_rules()
    return ok(rows, meta={"count": len(rows)})


@router.post("/rules")
def create_rule(body: RuleCreate, service: RuleService = Depends(get_rule_service)):
    draft = RuleDraft(**body.model_dump(exclude={"schedule"}))
    if body.schedule is None:
        rule = service.create_rule(draft)
        return ok({"rule": rule.to_dict(), "schedule": None}, status=201)

    rule, schedule = service.create_rule_and_schedule(
        draft, body.schedule.execute_now, body.schedule.when()
    )
    return ok(
        {"rule": rule.to_dict(), "schedule": schedule.to_dict()},
        meta={"eligible_count": schedule.eligible_count},
        status=201,
    )


@router.patch("/rules/{rule_id}")
def update_rule(rule_id: str, body: RuleUpdate, service: RuleService = Depends(get_rule_service)):
    rule = service.update_rule(rule_id, body.model_dump(exclude_unset=True))
    return ok(rule.to_dict())


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str, service: RuleService = Depends(get_rule_service)):
    service.delete_rule(rule_id)
    return ok({"deleted": rule_id})


@router.get("/rules/{rule_id}/preview")
def preview_rule(rule_id: str, orchestrator: TopUpOrchestrator = Depends(get_orchestrator)):
    return ok(orchestrator.preview_rule(rule_id))


@router.post("/rules/{rule_id}/execute")
def execute_rule(rule_id: str, orchestrator: TopUpOrchestrator = Depends(get_orchestrator)):
    schedule = orchestrator.execute_rule_now(rule_id)
    return ok(schedule.to_dict())


# -----------------------------
# Top-ups
# -----------------------------
@router.post("/batch")
def schedule_batch(body: BatchIn, orchestrator: TopUpOrchestrator = Depends(get_orchestrator)):
    result = orchestrator.schedule_rules(body.rule_ids, body.execute_now, body.when())
    return ok(result.to_dict(), status=201)


@router.post("/individual")
def individual_top_up(
    body: IndividualIn,
    orchestrator: TopUpOrchestrator = Depends(get_orchestrator),
):
    schedule = orchestrator.top_up_individual(
        body.account_id, body.amount, body.execute_now, body.when()
    )
    return ok(schedule.to_dict(), status=201)


# -----------------------------
# Schedules
# -----------------------------
@router.get("/schedules")
def list_schedules(
    status: str = "all",
    type: str = "all",
    min_amount: Optional[Decimal] = None,
    sort: str = "created_desc",
    schedules: ScheduleRepository = Depends(get_schedule_repository),
):
    rows = schedules.list()
    shown = filter_schedules(rows, status=status, type_=type, min_amount=min_amount, sort=sort)
    return ok(
        {
            "schedules": [s.to_dict() for s in shown],
            "upcoming": [s.to_dict() for s in upcoming_schedules(rows)],
            "counts": schedule_counts(rows),
        },
        meta={"count": len(shown)},
    )


@router.post("/schedules/{schedule_id}/execute")
def execute_schedule(
    schedule_id: str,
    orchestrator: TopUpOrchestrator = Depends(get_orchestrator),
):
    return ok(orchestrator.execute_schedule(schedule_id).to_dict())


@router.delete("/schedules/{schedule_id}")
def delete_schedule(
    schedule_id: str,
    schedules: ScheduleRepository = Depends(get_schedule_repository),
):
    if not schedules.delete(schedule_id):
        raise NotFoundError(f"Top-up schedule not found: {schedule_id}")
    return ok({"deleted": schedule_id})


@router.post("/run-due")
def run_due(orchestrator: TopUpOrchestrator = Depends(get_orchestrator)):
    return ok(orchestrator.run_due_schedules().to_dict())
