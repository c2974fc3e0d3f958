import unittest
from datetime import date
from decimal import Decimal

from apps.edusave.deps import build_orchestrator
from apps.edusave.errors import ConflictError, NotFoundError, ValidationError
from apps.edusave.repositories.rules import RuleRepository
from apps.edusave.repositories.schedules import ScheduleRepository
from apps.edusave.services.topups.orchestrator import ScheduleWhen
from apps.edusave.services.topups.rules import RuleDraft, RuleService
from tests.fakes import FakeSupabase, account_row, fixed_clock, rule_row


class RuleDraftTests(unittest.TestCase):
    def test_valid_draft_is_normalized(self) -> None:
        draft = RuleDraft(
            name="  Tertiary boost ",
            amount=Decimal("120"),
            in_school="any",
            education_level="",
        ).validated()
        self.assertEqual(draft.name, "Tertiary boost")
        self.assertIsNone(draft.in_school)
        self.assertIsNone(draft.education_level)
        self.assertEqual(draft.to_payload()["amount"], "120.00")

    def test_invalid_drafts(self) -> None:
        bad = [
            RuleDraft(name=" ", amount=Decimal("10")),
            RuleDraft(name="x", amount=Decimal("0")),
            RuleDraft(name="x", amount=Decimal("10"), min_age=-1),
            RuleDraft(name="x", amount=Decimal("10"), min_age=20, max_age=10),
            RuleDraft(name="x", amount=Decimal("10"), min_balance=Decimal("5"), max_balance=Decimal("1")),
            RuleDraft(name="x", amount=Decimal("10"), in_school="sometimes"),
            RuleDraft(name="x", amount=Decimal("10"), education_level="kindergarten"),
            RuleDraft(name="x", amount=Decimal("10"), status="paused"),
        ]
        for draft in bad:
            with self.subTest(draft=draft):
                with self.assertRaises(ValidationError):
                    draft.validated()

    def test_amount_is_rounded_to_cents_before_the_positive_check(self) -> None:
        with self.assertRaises(ValidationError):
            RuleDraft(name="x", amount=Decimal("0.004")).validated()
        draft = RuleDraft(name="x", amount=Decimal("12.345")).validated()
        self.assertEqual(draft.amount, Decimal("12.35"))
        self.assertEqual(draft.to_payload()["amount"], "12.35")


class RuleServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = FakeSupabase()
        self.orchestrator = build_orchestrator(self.db, fixed_clock)
        self.service = RuleService(
            RuleRepository(self.db), ScheduleRepository(self.db), self.orchestrator
        )
        self.db.seed(
            "account_holders",
            account_row(name="Teen", date_of_birth="2009-06-01", balance="10.00"),
            account_row(name="Adult", date_of_birth="1990-06-01", balance="10.00"),
        )

    def test_list_rules_adds_criteria_and_eligible_count(self) -> None:
        self.db.seed("topup_rules", rule_row(name="Teens", min_age=13, max_age=19, in_school="in_school"))

        [row] = self.service.list_rules()

        self.assertEqual(row["eligible_count"], 1)
        self.assertEqual(row["criteria"], ["Age 13-19", "In School"])

    def test_create_rule_is_always_active(self) -> None:
        rule = self.service.create_rule(RuleDraft(name="New", amount=Decimal("5"), status="inactive"))
        self.assertEqual(rule.status, "active")
        self.assertEqual(self.db.rows("topup_rules")[0]["status"], "active")

    def test_create_and_execute_now(self) -> None:
        rule, schedule = self.service.create_rule_and_schedule(
            RuleDraft(name="Teens", amount=Decimal("40"), max_age=18), execute_now=True
        )
        self.assertEqual(schedule.rule_id, rule.id)
        self.assertEqual(schedule.status, "completed")
        self.assertEqual(schedule.processed_count, 1)
        balances = sorted(r["balance"] for r in self.db.rows("account_holders"))
        self.assertEqual(balances, ["10.00", "50.00"])

    def test_create_and_schedule_later_needs_a_valid_slot_before_any_write(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.create_rule_and_schedule(
                RuleDraft(name="Later", amount=Decimal("5")),
                execute_now=False,
                when=ScheduleWhen(date(2026, 12, 1), "9am"),
            )
        self.assertEqual(self.db.rows("topup_rules"), [])
        self.assertEqual(self.db.rows("topup_schedules"), [])

    def test_update_allowed_until_executed(self) -> None:
        [rule] = self.db.seed("topup_rules", rule_row(name="Teens"))
        updated = self.service.update_rule(rule["id"], {"amount": Decimal("75"), "max_age": 18})
        self.assertEqual(updated.amount, Decimal("75.00"))
        self.assertEqual(updated.max_age, 18)

        self.orchestrator.execute_rule_now(rule["id"])

        with self.assertRaises(ConflictError):
            self.service.update_rule(rule["id"], {"amount": Decimal("80")})
        # status changes stay possible
        paused = self.service.update_rule(rule["id"], {"status": "inactive"})
        self.assertEqual(paused.status, "inactive")

    def test_update_rejects_unknown_fields_and_missing_rule(self) -> None:
        [rule] = self.db.seed("topup_rules", rule_row())
        with self.assertRaises(ValidationError):
            self.service.update_rule(rule["id"], {"colour": "blue"})
        with self.assertRaises(NotFoundError):
            self.service.update_rule("missing", {"status": "inactive"})

    def test_delete_removes_pending_schedules(self) -> None:
        [rule] = self.db.seed("topup_rules", rule_row())
        self.orchestrator.schedule_rules(
            [rule["id"]], execute_now=False, when=ScheduleWhen(date(2026, 12, 1))
        )

        self.service.delete_rule(rule["id"])

        self.assertEqual(self.db.rows("topup_rules"), [])
        self.assertEqual(self.db.rows("topup_schedules"), [])

    def test_delete_blocked_after_execution(self) -> None:
        [rule] = self.db.seed("topup_rules", rule_row())
        self.orchestrator.execute_rule_now(rule["id"])
        with self.assertRaises(ConflictError):
            self.service.delete_rule(rule["id"])
        self.assertEqual(len(self.db.rows("topup_rules")), 1)


if __name__ == "__main__":
    unittest.main()
