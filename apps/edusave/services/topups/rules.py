from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from apps.edusave.errors import ConflictError, NotFoundError, ValidationError
from apps.edusave.repositories.rules import RuleRepository
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.services.models import (
    EDUCATION_LEVELS,
    RULE_STATUSES,
    SCHOOLING_STATUSES,
    TopUpRule,
    TopUpSchedule,
    _q2,
    money,
)
from apps.edusave.services.topups.eligibility import EligibilityCriteria
from apps.edusave.services.topups.orchestrator import ScheduleWhen, TopUpOrchestrator

log = logging.getLogger("edusave.topups")

# a rule referenced by one of these is frozen
_EXECUTED_STATUSES = ("processing", "completed")


@dataclass(frozen=True)
class RuleDraft:
    name: str
    amount: Decimal
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    min_balance: Optional[Decimal] = None
    max_balance: Optional[Decimal] = None
    in_school: Optional[str] = None
    education_level: Optional[str] = None
    status: str = "active"

    @classmethod
    def from_rule(cls, rule: TopUpRule) -> "RuleDraft":
        return cls(
            name=rule.name,
            amount=rule.amount,
            min_age=rule.min_age,
            max_age=rule.max_age,
            min_balance=rule.min_balance,
            max_balance=rule.max_balance,
            in_school=rule.in_school,
            education_level=rule.education_level,
            status=rule.status,
        )

    def validated(self) -> "RuleDraft":
        name = (self.name or "").strip()
        if not name:
            raise ValidationError("Please enter a rule name")
        try:
            amount = Decimal(str(self.amount))
        except Exception:
            raise ValidationError("Please enter a valid top-up amount")
        if not amount.is_finite():
            raise ValidationError("Please enter a valid top-up amount")
        # credits are whole cents; anything rounding to zero is no top-up
        amount = _q2(amount)
        if amount <= 0:
            raise ValidationError("Please enter a valid top-up amount")

        for label, value in (
            ("min_age", self.min_age),
            ("max_age", self.max_age),
            ("min_balance", self.min_balance),
            ("max_balance", self.max_balance),
        ):
            if value is not None and value < 0:
                raise ValidationError(f"{label} cannot be negative")
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValidationError("min_age cannot be greater than max_age")
        if (
            self.min_balance is not None
            and self.max_balance is not None
            and self.min_balance > self.max_balance
        ):
            raise ValidationError("min_balance cannot be greater than max_balance")

        # "any" in the admin form means no constraint
        in_school = None if self.in_school in (None, "", "any") else self.in_school
        if in_school is not None and in_school not in SCHOOLING_STATUSES:
            raise ValidationError(f"Unknown schooling status: {in_school}")
        level = None if self.education_level in (None, "", "any") else self.education_level
        if level is not None and level not in EDUCATION_LEVELS:
            raise ValidationError(f"Unknown education level: {level}")
        if self.status not in RULE_STATUSES:
            raise ValidationError(f"Unknown rule status: {self.status}")

        return replace(self, name=name, amount=amount, in_school=in_school, education_level=level)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "amount": money(Decimal(self.amount)),
            "min_age": self.min_age,
            "max_age": self.max_age,
            "min_balance": None if self.min_balance is None else money(self.min_balance),
            "max_balance": None if self.max_balance is None else money(self.max_balance),
            "in_school": self.in_school,
            "education_level": self.education_level,
            "status": self.status,
        }


class RuleService:
    """CRUD over top-up rules plus the create-and-schedule admin flow."""

    def __init__(
        self,
        rules: RuleRepository,
        schedules: ScheduleRepository,
        orchestrator: TopUpOrchestrator,
    ) -> None:
        self.rules = rules
        self.schedules = schedules
        self.orchestrator = orchestrator

    def list_rules(self) -> List[Dict[str, Any]]:
        rules = self.rules.list()
        candidates = self.orchestrator.candidate_accounts() if rules else []
        out = []
        for rule in rules:
            count = len(self.orchestrator.eligible_for_rule(rule, candidates))
            row = rule.to_dict()
            row["criteria"] = EligibilityCriteria.from_rule(rule).describe()
            row["eligible_count"] = count
            out.append(row)
        return out

    def create_rule(self, draft: RuleDraft) -> TopUpRule:
        draft = replace(draft.validated(), status="active")
        rule = self.rules.create(draft.to_payload())
        log.info("Top-up rule %s created (%s)", rule.id, rule.name)
        return rule

    def create_rule_and_schedule(
        self,
        draft: RuleDraft,
        execute_now: bool,
        when: Optional[ScheduleWhen] = None,
    ) -> Tuple[TopUpRule, TopUpSchedule]:
        draft = draft.validated()
        if not execute_now:
            if when is None:
                raise ValidationError("Please select a schedule date")
            when.validate()

        rule = self.create_rule(draft)
        try:
            schedule = self.orchestrator.schedule_rule(rule, execute_now, when)
        except Exception:
            # no compensation: the rule stays
            log.error("Rule %s created but its schedule was not", rule.id)
            raise
        return rule, schedule

    def update_rule(self, rule_id: str, changes: Dict[str, Any]) -> TopUpRule:
        rule = self._require(rule_id)
        if set(changes) - {"status"}:
            # activating/deactivating stays allowed on frozen rules
            self._ensure_mutable(rule)
        known = set(asdict(RuleDraft.from_rule(rule)))
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}")
        draft = replace(RuleDraft.from_rule(rule), **changes).validated()
        updated = self.rules.update(rule_id, draft.to_payload())
        if updated is None:
            raise NotFoundError(f"Top-up rule not found: {rule_id}")
        log.info("Top-up rule %s updated", rule_id)
        return updated

    def delete_rule(self, rule_id: str) -> None:
        rule = self._require(rule_id)
        self._ensure_mutable(rule)
        removed = self.schedules.delete_pending_for_rule(rule_id)
        self.rules.delete(rule_id)
        log.info("Top-up rule %s deleted (%d pending schedule(s) removed)", rule_id, removed)

    def _require(self, rule_id: str) -> TopUpRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Top-up rule not found: {rule_id}")
        return rule

    def _ensure_mutable(self, rule: TopUpRule) -> None:
        for schedule in self.schedules.list_for_rule(rule.id):
            partially_run = schedule.status == "failed" and (schedule.processed_count or 0) > 0
            if schedule.status in _EXECUTED_STATUSES or partially_run:
                raise ConflictError(
                    f"Rule \"{rule.name}\" has executed top-ups and can no longer be changed"
                )
