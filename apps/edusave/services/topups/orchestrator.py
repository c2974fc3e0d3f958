"""
Top-up Orchestrator
===================

Turns rules and individual requests into schedule rows, and executes
schedules by crediting accounts.

Execution of one schedule is a sequence of independent store writes:
  1. account.balance += amount          (read-modify-write)
  2. append a `top_up` Transaction      (reference TOPUP-<schedule>-<account>)
  3. mark the schedule completed
There is no atomicity across them. The per-account reference makes a
retry skip accounts already credited, so a `failed` schedule can be
executed again until it completes.

A multi-rule batch matches every rule against one account snapshot taken
before any credit. Its schedules are executed one by one; a failed one
is listed in the result and does not stop the others.

No locking: two admins executing overlapping rules at the same time can
still double-credit an account through separate schedules.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from apps.edusave.errors import ConflictError, NotFoundError, StoreError, ValidationError
from apps.edusave.repositories.accounts import AccountRepository
from apps.edusave.repositories.rules import RuleRepository
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.repositories.transactions import TransactionRepository
from apps.edusave.services.accounts.account_types import can_receive_top_up
from apps.edusave.services.models import (
    D,
    DEFAULT_SCHEDULE_TIME,
    AccountHolder,
    TopUpRule,
    TopUpSchedule,
    _q2,
    money,
)
from apps.edusave.services.topups.eligibility import EligibilityCriteria, eligible_accounts
from apps.edusave.utils.clock import Clock, now as clock_now

log = logging.getLogger("edusave.topups")

_HH_MM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def topup_reference(schedule_id: str, account_id: str) -> str:
    return f"TOPUP-{schedule_id}-{account_id}"


@dataclass(frozen=True)
class ScheduleWhen:
    """A future execution slot. time is 'HH:MM' local time."""
    date: date
    time: str = DEFAULT_SCHEDULE_TIME

    def validate(self) -> "ScheduleWhen":
        if self.date is None:
            raise ValidationError("Please select a schedule date")
        if not _HH_MM.match(self.time or ""):
            raise ValidationError("Schedule time must be HH:MM")
        return self


@dataclass(frozen=True)
class BatchScheduleResult:
    schedules: List[TopUpSchedule]
    unique_account_count: int
    total_amount: Decimal
    executed: bool = False
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedules": [s.to_dict() for s in self.schedules],
            "unique_account_count": self.unique_account_count,
            "total_amount": money(self.total_amount),
            "executed": self.executed,
            "failed": list(self.failed),
        }


@dataclass
class DueRunSummary:
    checked_at: datetime
    executed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked_at": self.checked_at.isoformat(),
            "executed": list(self.executed),
            "failed": list(self.failed),
        }


class TopUpOrchestrator:
    def __init__(
        self,
        accounts: AccountRepository,
        rules: RuleRepository,
        schedules: ScheduleRepository,
        transactions: TransactionRepository,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.accounts = accounts
        self.rules = rules
        self.schedules = schedules
        self.transactions = transactions
        self.clock = clock or clock_now

    # -----------------------------
    # Eligibility
    # -----------------------------
    def candidate_accounts(self) -> List[AccountHolder]:
        """Active accounts that can hold a balance."""
        return [
            a
            for a in self.accounts.list(status="active")
            if can_receive_top_up(a.account_type, a.residential_status)
        ]

    def eligible_for_rule(
        self,
        rule: TopUpRule,
        candidates: Optional[Sequence[AccountHolder]] = None,
    ) -> List[AccountHolder]:
        if candidates is None:
            candidates = self.candidate_accounts()
        return eligible_accounts(candidates, EligibilityCriteria.from_rule(rule), self.clock().date())

    def preview_rule(self, rule_id: str) -> Dict[str, Any]:
        rule = self._require_rule(rule_id)
        count = len(self.eligible_for_rule(rule))
        return {
            "rule": rule.to_dict(),
            "eligible_count": count,
            "total_disbursement": money(rule.amount * count),
        }

    # -----------------------------
    # Batch (rule-based)
    # -----------------------------
    def schedule_rules(
        self,
        rule_ids: Iterable[str],
        execute_now: bool,
        when: Optional[ScheduleWhen] = None,
    ) -> BatchScheduleResult:
        ids = [i for i in rule_ids if i]
        if not ids:
            raise ValidationError("Please select at least one top-up rule")
        if not execute_now:
            if when is None:
                raise ValidationError("Please select a schedule date")
            when.validate()

        rules = self.rules.get_many(ids)
        missing = set(ids) - {r.id for r in rules}
        if missing:
            raise NotFoundError(f"Top-up rule not found: {', '.join(sorted(missing))}")
        inactive = [r.name for r in rules if r.status != "active"]
        if inactive:
            raise ValidationError(f"Inactive rules cannot be scheduled: {', '.join(inactive)}")

        candidates = self.candidate_accounts()
        remarks = f"Part of batch with {len(rules)} rules" if len(rules) > 1 else None

        # every rule is matched against the same pre-credit snapshot
        unique_ids = set()
        planned: List[Tuple[TopUpSchedule, List[AccountHolder]]] = []
        try:
            for rule in rules:
                eligible = self.eligible_for_rule(rule, candidates)
                unique_ids.update(a.id for a in eligible)
                schedule = self._create_batch_schedule(rule, len(eligible), execute_now, when, remarks)
                planned.append((schedule, eligible))
        except Exception:
            if execute_now:
                for schedule, _ in planned:
                    self._fail(schedule, 0, "Batch was not started: scheduling did not complete")
            raise

        log.info(
            "Scheduled %d batch top-up(s) for %d unique accounts (execute_now=%s)",
            len(planned), len(unique_ids), execute_now,
        )

        created = [schedule for schedule, _ in planned]
        failed: List[str] = []
        if execute_now:
            created = []
            for schedule, eligible in planned:
                try:
                    created.append(self._execute(schedule, targets=eligible))
                except Exception:
                    log.exception("Batch top-up %s failed", schedule.id)
                    failed.append(schedule.id)
                    created.append(self._refresh(schedule))

        return BatchScheduleResult(
            schedules=created,
            unique_account_count=len(unique_ids),
            total_amount=sum((r.amount for r in rules), D("0")),
            executed=execute_now,
            failed=failed,
        )

    def schedule_rule(
        self,
        rule: TopUpRule,
        execute_now: bool,
        when: Optional[ScheduleWhen] = None,
    ) -> TopUpSchedule:
        """One batch schedule for an already-loaded rule."""
        if not execute_now:
            if when is None:
                raise ValidationError("Please select a schedule date")
            when.validate()
        eligible = self.eligible_for_rule(rule)
        schedule = self._create_batch_schedule(rule, len(eligible), execute_now, when, None)
        if execute_now:
            schedule = self._execute(schedule, targets=eligible)
        return schedule

    def execute_rule_now(self, rule_id: str) -> TopUpSchedule:
        rule = self._require_rule(rule_id)
        if rule.status != "active":
            raise ValidationError(f"Inactive rules cannot be scheduled: {rule.name}")
        return self.schedule_rule(rule, execute_now=True)

    # -----------------------------
    # Individual
    # -----------------------------
    def top_up_individual(
        self,
        account_id: str,
        amount: Decimal,
        execute_now: bool,
        when: Optional[ScheduleWhen] = None,
    ) -> TopUpSchedule:
        if not account_id:
            raise ValidationError("Please select an account")
        try:
            amount = Decimal(str(amount))
        except Exception:
            raise ValidationError("Please enter a valid top-up amount")
        if not amount.is_finite():
            raise ValidationError("Please enter a valid top-up amount")
        amount = _q2(amount)
        if amount <= 0:
            raise ValidationError("Please enter a valid top-up amount")
        if not execute_now:
            if when is None:
                raise ValidationError("Please select a schedule date")
            when.validate()

        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        self._check_can_receive(account)

        date_str, time_str = self._slot(execute_now, when)
        schedule = self.schedules.create(
            {
                "type": "individual",
                "scheduled_date": date_str,
                "scheduled_time": time_str,
                "amount": money(amount),
                "status": "processing" if execute_now else "scheduled",
                "account_id": account.id,
                "account_name": account.name,
                "rule_id": None,
                "rule_name": None,
                "eligible_count": None,
                "processed_count": None,
                "executed_date": None,
                "remarks": None,
            }
        )
        log.info("Individual top-up %s created for account %s", schedule.id, account.id)

        if execute_now:
            schedule = self._execute(schedule)
        return schedule

    # -----------------------------
    # Execution
    # -----------------------------
    def execute_schedule(self, schedule_id: str) -> TopUpSchedule:
        schedule = self.schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Top-up schedule not found: {schedule_id}")
        return self._execute(schedule)

    def run_due_schedules(self, now: Optional[datetime] = None) -> DueRunSummary:
        """
        Execute every `scheduled` entry whose slot is at or before now.
        Each schedule is independent: one failure does not stop the rest.
        """
        now = now or self.clock()
        summary = DueRunSummary(checked_at=now)
        for schedule in self.schedules.list_due(now.date()):
            if schedule.scheduled_at(now.tzinfo) > now:
                continue
            try:
                self._execute(schedule)
                summary.executed.append(schedule.id)
            except Exception:
                log.exception("Scheduled top-up %s failed", schedule.id)
                summary.failed.append(schedule.id)
        if summary.executed or summary.failed:
            log.info(
                "Due top-ups run: %d executed, %d failed",
                len(summary.executed), len(summary.failed),
            )
        return summary

    def _execute(
        self,
        schedule: TopUpSchedule,
        targets: Optional[Sequence[AccountHolder]] = None,
    ) -> TopUpSchedule:
        """
        Credit a schedule. Batch schedules credit `targets` when given
        (the eligible set captured at scheduling time), otherwise the
        rule's eligible set as of now.
        """
        if schedule.status == "completed":
            raise ConflictError("Top-up schedule already completed")
        if schedule.status != "processing":
            schedule = self._mark(schedule, {"status": "processing"})

        refresh_count = False
        if schedule.is_batch:
            if targets is None:
                rule = self.rules.get(schedule.rule_id) if schedule.rule_id else None
                if rule is None:
                    self._fail(schedule, 0, "Top-up rule no longer exists")
                    raise ConflictError("Top-up rule no longer exists")
                targets = self.eligible_for_rule(rule)
                refresh_count = True
            description = f"Batch Top-up: {schedule.display_name}"
        else:
            account = self.accounts.get(schedule.account_id) if schedule.account_id else None
            if account is None:
                self._fail(schedule, 0, "Account no longer exists")
                raise NotFoundError(f"Account not found: {schedule.account_id}")
            try:
                self._check_can_receive(account)
            except ValidationError as ex:
                self._fail(schedule, 0, ex.message)
                raise
            targets = [account]
            description = "Individual Top-up"

        processed = 0
        try:
            for account in targets:
                self._credit(schedule, account, schedule.amount, description)
                processed += 1
        except Exception as ex:
            self._fail(schedule, processed, getattr(ex, "message", str(ex)))
            raise

        patch: Dict[str, Any] = {
            "status": "completed",
            "processed_count": processed,
            "executed_date": self.clock().isoformat(),
        }
        if refresh_count:
            patch["eligible_count"] = len(targets)
        completed = self._mark(schedule, patch)
        log.info(
            "Top-up %s completed: %d account(s) credited %s each",
            schedule.id, processed, money(schedule.amount),
        )
        return completed

    def _credit(
        self,
        schedule: TopUpSchedule,
        account: AccountHolder,
        amount: Decimal,
        description: str,
    ) -> bool:
        """Credit one account. False when the reference was already applied."""
        reference = topup_reference(schedule.id, account.id)
        if self.transactions.find_by_reference(reference):
            log.info("Top-up %s already applied, skipping", reference)
            return False

        fresh = self.accounts.get(account.id) or account
        updated = self.accounts.set_balance(account.id, _q2(fresh.balance + amount))
        if updated is None:
            raise NotFoundError(f"Account not found: {account.id}")

        self.transactions.create(
            {
                "account_id": account.id,
                "type": "top_up",
                "amount": money(amount),
                "description": description,
                "reference": reference,
                "status": "completed",
            }
        )
        return True

    # -----------------------------
    # Helpers
    # -----------------------------
    def _create_batch_schedule(
        self,
        rule: TopUpRule,
        eligible_count: int,
        execute_now: bool,
        when: Optional[ScheduleWhen],
        remarks: Optional[str],
    ) -> TopUpSchedule:
        date_str, time_str = self._slot(execute_now, when)
        return self.schedules.create(
            {
                "type": "batch",
                "scheduled_date": date_str,
                "scheduled_time": time_str,
                "amount": money(rule.amount),
                "status": "processing" if execute_now else "scheduled",
                "rule_id": rule.id,
                "rule_name": rule.name,
                "eligible_count": eligible_count,
                "account_id": None,
                "account_name": None,
                "processed_count": None,
                "executed_date": None,
                "remarks": remarks,
            }
        )

    def _slot(self, execute_now: bool, when: Optional[ScheduleWhen]):
        if execute_now:
            current = self.clock()
            return current.date().isoformat(), current.strftime("%H:%M")
        return when.date.isoformat(), when.time

    def _mark(self, schedule: TopUpSchedule, patch: Dict[str, Any]) -> TopUpSchedule:
        updated = self.schedules.update(schedule.id, patch)
        if updated is None:
            raise NotFoundError(f"Top-up schedule not found: {schedule.id}")
        return updated

    def _refresh(self, schedule: TopUpSchedule) -> TopUpSchedule:
        try:
            return self.schedules.get(schedule.id) or schedule
        except StoreError:
            return schedule

    def _fail(self, schedule: TopUpSchedule, processed: int, reason: str) -> None:
        try:
            self.schedules.update(
                schedule.id,
                {"status": "failed", "processed_count": processed, "remarks": reason},
            )
        except Exception:
            log.exception("Could not mark top-up %s as failed", schedule.id)

    def _require_rule(self, rule_id: str) -> TopUpRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Top-up rule not found: {rule_id}")
        return rule

    @staticmethod
    def _check_can_receive(account: AccountHolder) -> None:
        if account.status != "active":
            raise ValidationError(f"Account {account.name} is not active")
        if not can_receive_top_up(account.account_type, account.residential_status):
            raise ValidationError("Student Accounts cannot receive top-ups")
