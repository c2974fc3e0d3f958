import unittest
from datetime import date
from decimal import Decimal

from apps.edusave.errors import NotFoundError, ValidationError
from apps.edusave.repositories.accounts import AccountRepository
from apps.edusave.services.accounts.service import (
    AccountFilters,
    AccountService,
    filter_accounts,
    sort_accounts,
)
from apps.edusave.services.models import AccountHolder
from tests.fakes import FakeSupabase, account_row, fixed_clock

TODAY = date(2026, 10, 18)


class AccountServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = FakeSupabase()
        self.service = AccountService(AccountRepository(self.db), clock=fixed_clock)

    def new_account(self, **kw):
        data = {
            "nric": "S7654321B",
            "name": "Lim Mei Ling",
            "date_of_birth": "2010-02-14",
            "email": "meiling@example.com",
        }
        data.update(kw)
        return self.service.create_account(data)

    def test_create_defaults(self) -> None:
        account = self.new_account()
        self.assertEqual(account.balance, Decimal("0.00"))
        self.assertEqual(account.status, "active")
        self.assertEqual(account.in_school, "not_in_school")
        self.assertEqual(account.residential_status, "sc")
        self.assertEqual(account.account_type, "education")

    def test_create_derives_student_account_for_legacy_pr(self) -> None:
        account = self.new_account(residential_status="spr")
        self.assertEqual(account.residential_status, "pr")
        self.assertEqual(account.account_type, "student")

    def test_create_requires_fields_in_form_order(self) -> None:
        cases = [
            ({"nric": ""}, "Please enter NRIC"),
            ({"name": " "}, "Please enter full name"),
            ({"date_of_birth": None}, "Please enter date of birth"),
            ({"email": ""}, "Please enter email"),
            ({"email": "not-an-email"}, "Please enter a valid email"),
        ]
        for overrides, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(ValidationError) as ctx:
                    self.new_account(**overrides)
                self.assertEqual(ctx.exception.message, message)
        self.assertEqual(self.db.rows("account_holders"), [])

    def test_future_birth_date_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.new_account(date_of_birth="2027-01-01")

    def test_update_cannot_touch_balance(self) -> None:
        account = self.new_account()
        with self.assertRaises(ValidationError):
            self.service.update_account(account.id, {"balance": "1000.00"})

    def test_update_residency_changes_account_type(self) -> None:
        account = self.new_account()
        updated = self.service.update_account(
            account.id, {"residential_status": "non_resident", "education_level": "tertiary"}
        )
        self.assertEqual(updated.account_type, "student")
        self.assertEqual(updated.education_level, "tertiary")

    def test_get_unknown_account(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.get_account("missing")
        with self.assertRaises(NotFoundError):
            self.service.update_account("missing", {"name": "X"})

    def test_detail_adds_labels_and_age(self) -> None:
        [row] = self.db.seed("account_holders", account_row(residential_status="pr", account_type="student"))
        detail = self.service.get_account_detail(row["id"])
        self.assertEqual(detail["age"], 18)
        self.assertEqual(detail["account_type_label"], "Student Account")
        self.assertEqual(detail["residential_status_label"], "PR")
        self.assertEqual(detail["education_level_label"], "Secondary")
        self.assertFalse(detail["can_receive_top_up"])

    def test_list_filters_then_sorts(self) -> None:
        self.db.seed(
            "account_holders",
            account_row(name="Cheryl", balance="300.00", education_level="tertiary"),
            account_row(name="Ahmad", balance="50.00", education_level="secondary"),
            account_row(name="Bala", balance="150.00", education_level="secondary"),
        )
        rows = self.service.list_accounts(
            AccountFilters(
                education_levels=["secondary"],
                balance_min=Decimal("40"),
                sort_field="balance",
                sort_direction="desc",
            )
        )
        self.assertEqual([r["name"] for r in rows], ["Bala", "Ahmad"])

    def test_stored_legacy_spr_reads_as_pr(self) -> None:
        [row] = self.db.seed(
            "account_holders",
            account_row(residential_status="spr", account_type="student"),
        )
        rows = self.service.list_accounts(AccountFilters(residential_statuses=["pr"]))
        self.assertEqual([r["id"] for r in rows], [row["id"]])
        detail = self.service.get_account_detail(row["id"])
        self.assertEqual(detail["residential_status"], "pr")
        self.assertEqual(detail["residential_status_label"], "PR")

    def test_missing_birth_date_does_not_break_listing(self) -> None:
        [undated] = self.db.seed("account_holders", account_row(name="Undated", date_of_birth=None))
        self.db.seed("account_holders", account_row(name="Dated"))

        rows = self.service.list_accounts(AccountFilters(sort_field="age", sort_direction="asc"))
        self.assertEqual([r["name"] for r in rows], ["Undated", "Dated"])
        self.assertIsNone(rows[0]["age"])
        self.assertIsNone(self.service.get_account_detail(undated["id"])["age"])

        aged = self.service.list_accounts(AccountFilters(age_min=0))
        self.assertEqual([r["name"] for r in aged], ["Dated"])


class FilterAndSortTests(unittest.TestCase):
    def setUp(self) -> None:
        self.accounts = [
            AccountHolder.from_row(account_row(id="1", name="Zara", nric="S1", date_of_birth="2012-01-01", education_level=None)),
            AccountHolder.from_row(account_row(id="2", name="adam", nric="S2", date_of_birth="2001-01-01", education_level="tertiary", residential_status="pr")),
            AccountHolder.from_row(account_row(id="3", name="Mei", nric="T3", date_of_birth="2008-01-01", education_level="primary")),
        ]

    def test_search_matches_name_nric_or_email(self) -> None:
        found = filter_accounts(self.accounts, AccountFilters(search="t3"), TODAY)
        self.assertEqual([a.id for a in found], ["3"])

    def test_age_range_and_residency(self) -> None:
        found = filter_accounts(self.accounts, AccountFilters(age_min=15, age_max=25), TODAY)
        self.assertEqual([a.id for a in found], ["2", "3"])
        found = filter_accounts(self.accounts, AccountFilters(residential_statuses=["spr"]), TODAY)
        self.assertEqual([a.id for a in found], ["2"])

    def test_sort_by_name_is_case_insensitive(self) -> None:
        ordered = sort_accounts(self.accounts, "name", "asc", TODAY)
        self.assertEqual([a.name for a in ordered], ["adam", "Mei", "Zara"])

    def test_sort_by_education_level_puts_unset_first(self) -> None:
        ordered = sort_accounts(self.accounts, "education_level", "asc", TODAY)
        self.assertEqual([a.id for a in ordered], ["1", "3", "2"])

    def test_unknown_sort(self) -> None:
        with self.assertRaises(ValidationError):
            sort_accounts(self.accounts, "shoe_size", "asc", TODAY)
        with self.assertRaises(ValidationError):
            sort_accounts(self.accounts, "name", "sideways", TODAY)


if __name__ == "__main__":
    unittest.main()
